import asyncio
import random
import re
import string
import weakref
from typing import Callable, Optional

from backend import RoomStore
from constants import (
    MOOD_MODE_DEFAULT_LANGUAGE,
    MOOD_MODE_DEFAULT_MOOD,
    ROOM_ID_LENGTH,
    ROOM_ID_PATTERN,
    ROOM_TTL_SECONDS,
)
from exceptions import InvalidRoomId, RoomNotFound
from leadership import reassign_leader
from logging_config import get_logger
from schemas.rooms import RoomState

logger = get_logger(__name__)

ROOM_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_room_id(length: int = ROOM_ID_LENGTH) -> str:
    # No collision check: 36^6 ids, a clash silently overwrites the older room
    return "".join(random.choices(ROOM_ID_ALPHABET, k=length))


def is_valid_room_id(room_id) -> bool:
    return isinstance(room_id, str) and re.fullmatch(ROOM_ID_PATTERN, room_id) is not None


class RoomRegistry:
    """
    Create, load, mutate and delete room records.

    Every write goes through the store with a fresh TTL. Mutations of one
    room are serialized by a per-room lock held across the whole
    read-modify-write.
    """

    def __init__(self, store: RoomStore, ttl: int = ROOM_TTL_SECONDS,
                 id_factory: Callable[[], str] = generate_room_id):
        self.store = store
        self.ttl = ttl
        self._id_factory = id_factory
        # room_id -> lock, dropped once no coroutine holds a reference
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock(self, room_id: str) -> asyncio.Lock:
        lock = self._locks.get(room_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[room_id] = lock
        return lock

    async def create_room(self, creator_id: str, mood_mode: bool = False) -> tuple[str, RoomState]:
        room_id = self._id_factory()
        state = RoomState(
            users=[creator_id],
            leader_id=creator_id,
            mood=MOOD_MODE_DEFAULT_MOOD if mood_mode else None,
            language=MOOD_MODE_DEFAULT_LANGUAGE if mood_mode else None,
        )
        await self.store.put(room_id, state, ttl=self.ttl)
        logger.info(f"Room {room_id} created by {creator_id}, mood mode: {mood_mode}")
        return room_id, state

    async def get_room(self, room_id: str) -> Optional[RoomState]:
        return await self.store.get(room_id)

    async def list_room_ids(self) -> list[str]:
        return await self.store.list_room_ids()

    async def join_room(self, room_id, connection_id: str) -> RoomState:
        if not is_valid_room_id(room_id):
            raise InvalidRoomId()

        async with self._lock(room_id):
            state = await self.store.get(room_id)
            if state is None:
                raise RoomNotFound()
            # appended even if already present; a re-join shows up twice
            state.users.append(connection_id)
            await self.store.put(room_id, state, ttl=self.ttl)

        logger.debug(f"Room {room_id} now has {len(state.users)} members")
        return state

    async def update_room(self, room_id: str, mutate: Callable[[RoomState], None]) -> RoomState:
        """
        Load the room, apply mutate in place and persist it.

        mutate may raise to abort; nothing is written in that case.
        """
        async with self._lock(room_id):
            state = await self.store.get(room_id)
            if state is None:
                raise RoomNotFound()
            mutate(state)
            await self.store.put(room_id, state, ttl=self.ttl)
        return state

    async def remove_member(self, room_id: str, connection_id: str) -> Optional[RoomState]:
        """
        Drop every occurrence of connection_id from the room.

        Returns the persisted state when members remain, None when the
        connection was not a member, the room is gone, or it was deleted
        because it became empty.
        """
        async with self._lock(room_id):
            state = await self.store.get(room_id)
            if state is None or connection_id not in state.users:
                return None

            state.users = [user for user in state.users if user != connection_id]
            if not state.users:
                await self.store.delete(room_id)
                logger.info(f"Room {room_id} deleted (empty)")
                return None

            new_leader = reassign_leader(state, connection_id)
            if new_leader:
                logger.info(f"Room {room_id} leader reassigned to {new_leader}")
            await self.store.put(room_id, state, ttl=self.ttl)
        return state
