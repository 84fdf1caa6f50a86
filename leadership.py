"""Room leadership: who may control playback, and who takes over."""
from typing import Optional

from exceptions import NotLeader
from schemas.rooms import RoomState


def is_leader(state: RoomState, connection_id: str) -> bool:
    return state.leader_id == connection_id


def authorize_leader_action(state: RoomState, connection_id: str, message: str = None) -> None:
    """Raise NotLeader unless connection_id leads the room."""
    if not is_leader(state, connection_id):
        raise NotLeader(message)


def reassign_leader(state: RoomState, departed_id: str) -> Optional[str]:
    """
    Hand leadership to the earliest remaining member when the leader left.

    Must be called after departed_id was removed from state.users. Returns
    the new leader id, or None when leadership did not change.
    """
    if state.leader_id != departed_id or not state.users:
        return None
    state.leader_id = state.users[0]
    return state.leader_id
