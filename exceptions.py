"""Errors surfaced to the requesting connection as an `error` event.

None of these close the connection. The dispatcher catches them per
request and sends `str(exc)` back to the caller only.
"""


class RoomSyncError(Exception):
    """Base class; the message is what the client sees."""

    default_message = "Request failed"

    def __init__(self, message: str = None):
        super().__init__(message or self.default_message)


class InvalidRoomId(RoomSyncError):
    """Room ID does not match the 6 char lowercase alphanumeric format."""

    default_message = "Invalid room ID"


class RoomNotFound(RoomSyncError):
    default_message = "Room not found"


class NotLeader(RoomSyncError):
    """Caller is not the leader of the room it tried to control."""

    default_message = "Only the room leader can control playback"


class StoreUnavailable(RoomSyncError):
    """The backing store failed or timed out."""

    default_message = "Store unavailable"


class InvalidPayload(RoomSyncError):
    default_message = "Invalid payload"
