from typing import Any, Awaitable, Callable, Dict

from pydantic import BaseModel, ValidationError

from connections import ConnectionHub, ConnectionProtocol
from exceptions import InvalidPayload, NotLeader, RoomNotFound, RoomSyncError, StoreUnavailable
from leadership import authorize_leader_action
from logging_config import get_logger
from registry import RoomRegistry
from schemas.events import (
    ChangeMoodSongPayload,
    ChangeSongPayload,
    ClientEvent,
    PlayPausePayload,
    SeekPayload,
    ServerEvent,
)
from schemas.rooms import RoomJoinedResponse, RoomState

logger = get_logger(__name__)

PLAYBACK_LEADER_ERROR = "Only the room leader can control playback"
SONG_LEADER_ERROR = "Only the room leader can change songs"
SEEK_LEADER_ERROR = "Only the room leader can seek"

# Reported to the caller when the store fails mid-command
STORE_FAILURE_MESSAGES = {
    ClientEvent.CREATE_ROOM.value: "Failed to create room",
    ClientEvent.JOIN_ROOM.value: "Failed to join room",
    ClientEvent.PLAY_PAUSE.value: "Failed to update playback",
    ClientEvent.CHANGE_SONG.value: "Failed to change song",
    ClientEvent.CHANGE_MOOD_SONG.value: "Failed to change mood song",
    ClientEvent.SEEK.value: "Failed to seek",
}

Handler = Callable[[ConnectionProtocol, Any], Awaitable[None]]


class EventDispatcher:
    """
    Routes inbound events to one handler per command.

    Handlers load the room, check authorization, mutate, persist and then
    broadcast the full state to the room's group. Errors go back to the
    requesting connection only.
    """

    def __init__(self, registry: RoomRegistry, hub: ConnectionHub):
        self._registry = registry
        self._hub = hub
        self._handlers: Dict[str, Handler] = {
            ClientEvent.CREATE_ROOM.value: self.create_room,
            ClientEvent.JOIN_ROOM.value: self.join_room,
            ClientEvent.PLAY_PAUSE.value: self.play_pause,
            ClientEvent.CHANGE_SONG.value: self.change_song,
            ClientEvent.CHANGE_MOOD_SONG.value: self.change_mood_song,
            ClientEvent.SEEK.value: self.seek,
        }

    async def handle_connect(self, connection: ConnectionProtocol):
        self._hub.register(connection)
        logger.info(f"User connected: {connection.connection_id}")

    async def handle_event(self, connection: ConnectionProtocol, event: str, data: Any = None):
        handler = self._handlers.get(event)
        if handler is None:
            logger.warning(f"Unknown event '{event}' from {connection.connection_id}")
            await self.send_error(connection, f"Unknown event: {event}")
            return

        try:
            await handler(connection, data)
        except StoreUnavailable as e:
            logger.error(f"Store error handling {event} from {connection.connection_id}: {e}", exc_info=True)
            await self.send_error(connection, STORE_FAILURE_MESSAGES.get(event, str(e)))
        except RoomSyncError as e:
            logger.info(f"Rejected {event} from {connection.connection_id}: {e}")
            await self.send_error(connection, str(e))

    async def handle_disconnect(self, connection: ConnectionProtocol):
        """
        Remove the connection from every room it belongs to.

        There is no connection -> room index, so this scans every stored
        room. A store failure on one room is logged and the scan moves on.
        """
        connection_id = connection.connection_id
        self._hub.unregister(connection)

        try:
            room_ids = await self._registry.list_room_ids()
        except StoreUnavailable as e:
            logger.error(f"Error handling disconnect of {connection_id}: {e}", exc_info=True)
            return

        for room_id in room_ids:
            try:
                state = await self._registry.remove_member(room_id, connection_id)
            except StoreUnavailable as e:
                logger.error(f"Error removing {connection_id} from room {room_id}: {e}", exc_info=True)
                continue
            if state is not None:
                await self._broadcast(room_id, state)
        logger.info(f"User disconnected: {connection_id}")

    async def create_room(self, connection: ConnectionProtocol, data: Any):
        mood_mode = bool(data)
        room_id, _ = await self._registry.create_room(connection.connection_id, mood_mode=mood_mode)
        self._hub.join_group(room_id, connection.connection_id)
        await self._send(connection, ServerEvent.ROOM_CREATED.value, room_id)

    async def join_room(self, connection: ConnectionProtocol, data: Any):
        room_id = data
        state = await self._registry.join_room(room_id, connection.connection_id)
        self._hub.join_group(room_id, connection.connection_id)
        response = RoomJoinedResponse(room_id=room_id, state=state)
        await self._send(connection, ServerEvent.ROOM_JOINED.value, response.to_wire())
        logger.info(f"User {connection.connection_id} joined room {room_id}")

    async def play_pause(self, connection: ConnectionProtocol, data: Any):
        payload = self._parse(PlayPausePayload, data)

        def apply(state: RoomState):
            state.is_playing = payload.is_playing
            state.current_time = payload.current_time

        await self._update_as_leader(connection, payload.room_id, apply, PLAYBACK_LEADER_ERROR)
        logger.info(f"Room {payload.room_id} play/pause: {payload.is_playing}, time: {payload.current_time}")

    async def change_song(self, connection: ConnectionProtocol, data: Any):
        payload = self._parse(ChangeSongPayload, data)

        def apply(state: RoomState):
            state.current_song = payload.song_url
            state.current_song_id = payload.song_id
            state.current_time = 0
            state.is_playing = True
            state.title = payload.title
            state.artist = payload.artist
            state.image = payload.image

        await self._update_as_leader(connection, payload.room_id, apply, SONG_LEADER_ERROR)
        logger.info(f"Room {payload.room_id} changed song: {payload.song_id}")

    async def change_mood_song(self, connection: ConnectionProtocol, data: Any):
        payload = self._parse(ChangeMoodSongPayload, data)

        def apply(state: RoomState):
            state.current_song = payload.song_url
            state.current_song_id = payload.song_id
            state.mood = payload.mood
            state.language = payload.language
            state.current_time = 0
            state.is_playing = True
            state.title = payload.title
            state.artist = payload.artist

        await self._update_as_leader(connection, payload.room_id, apply, SONG_LEADER_ERROR)
        logger.info(
            f"Room {payload.room_id} changed mood song: {payload.song_id}, "
            f"mood: {payload.mood}, language: {payload.language}"
        )

    async def seek(self, connection: ConnectionProtocol, data: Any):
        payload = self._parse(SeekPayload, data)

        def apply(state: RoomState):
            state.current_time = payload.current_time

        await self._update_as_leader(connection, payload.room_id, apply, SEEK_LEADER_ERROR)
        logger.info(f"Room {payload.room_id} seeked to: {payload.current_time}")

    async def _update_as_leader(self, connection: ConnectionProtocol, room_id: str,
                                apply: Callable[[RoomState], None], leader_error: str) -> RoomState:
        def mutate(state: RoomState):
            authorize_leader_action(state, connection.connection_id, leader_error)
            apply(state)

        try:
            state = await self._registry.update_room(room_id, mutate)
        except RoomNotFound:
            # nobody leads a room that does not exist
            raise NotLeader(leader_error) from None
        await self._broadcast(room_id, state)
        return state

    @staticmethod
    def _parse(model: type[BaseModel], data: Any):
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise InvalidPayload() from e

    async def _broadcast(self, room_id: str, state: RoomState):
        await self._hub.emit_to_group(room_id, ServerEvent.UPDATE_STATE.value, state.to_wire())

    async def send_error(self, connection: ConnectionProtocol, message: str):
        await self._send(connection, ServerEvent.ERROR.value, message)

    async def _send(self, connection: ConnectionProtocol, event: str, data: Any = None):
        try:
            await connection.emit(event, data)
        except (ConnectionError, RuntimeError) as e:
            logger.debug(f"Could not send {event} to {connection.connection_id}: {e}")
