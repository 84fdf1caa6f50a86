import asyncio
import json
import re
from typing import Optional, Protocol

import redis.asyncio as redis
from pydantic import ValidationError
from redis.exceptions import RedisError

from constants import REDIS_TIMEOUT_SECONDS, REDIS_URL, ROOM_ID_PATTERN, ROOM_TTL_SECONDS
from exceptions import StoreUnavailable
from logging_config import get_logger
from redis_keys import REDIS_ROOM_KEY, REDIS_ROOM_PATTERN, REDIS_ROOM_PREFIX
from schemas.rooms import RoomState

logger = get_logger(__name__)

_STORE_ERRORS = (RedisError, asyncio.TimeoutError, OSError)


class RoomStore(Protocol):
    """Keyed room storage with expiring entries.

    Every method may raise StoreUnavailable.
    """

    async def get(self, room_id: str) -> Optional[RoomState]: ...

    async def put(self, room_id: str, state: RoomState, ttl: int = ROOM_TTL_SECONDS) -> None: ...

    async def delete(self, room_id: str) -> None: ...

    async def list_room_ids(self) -> list[str]: ...


def encode_room(state: RoomState) -> str:
    return json.dumps(state.to_wire())


def decode_room(room_id: str, raw: str) -> Optional[RoomState]:
    try:
        return RoomState.model_validate_json(raw)
    except ValidationError as e:
        logger.warning(f"Discarding unreadable record for room {room_id}: {e}")
        return None


class RedisRoomStore:
    def __init__(self, redis_client: redis.Redis):
        self.redis_client = redis_client

    @classmethod
    def from_url(cls, url: str = REDIS_URL, timeout: float = REDIS_TIMEOUT_SECONDS) -> "RedisRoomStore":
        client = redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )
        return cls(client)

    async def connect(self):
        """Verify the store is reachable. Failure here is fatal for the process."""
        try:
            await self.redis_client.ping()
        except _STORE_ERRORS as e:
            logger.error(f"Failed to connect to Redis: {e}", exc_info=True)
            raise StoreUnavailable("Failed to connect to store") from e
        logger.info("Redis client connected successfully")

    async def close(self):
        try:
            await self.redis_client.aclose()
        except _STORE_ERRORS as e:
            logger.debug(f"Error closing Redis client: {e}")

    async def get(self, room_id: str) -> Optional[RoomState]:
        key = REDIS_ROOM_KEY.format(slug=room_id)
        try:
            raw = await self.redis_client.get(key)
        except _STORE_ERRORS as e:
            raise StoreUnavailable(f"Failed to read room {room_id}") from e
        if raw is None:
            logger.debug(f"Room {room_id} not found in Redis")
            return None
        return decode_room(room_id, raw)

    async def put(self, room_id: str, state: RoomState, ttl: int = ROOM_TTL_SECONDS) -> None:
        key = REDIS_ROOM_KEY.format(slug=room_id)
        try:
            await self.redis_client.set(key, encode_room(state), ex=ttl)
        except _STORE_ERRORS as e:
            raise StoreUnavailable(f"Failed to write room {room_id}") from e
        logger.debug(f"Room {room_id} stored with TTL {ttl} seconds")

    async def delete(self, room_id: str) -> None:
        key = REDIS_ROOM_KEY.format(slug=room_id)
        try:
            deleted = await self.redis_client.delete(key)
        except _STORE_ERRORS as e:
            raise StoreUnavailable(f"Failed to delete room {room_id}") from e
        logger.debug(f"Room {room_id} deleted: {deleted}")

    async def list_room_ids(self) -> list[str]:
        # incremental SCAN over room:* keys
        room_ids = []
        try:
            async for key in self.redis_client.scan_iter(match=REDIS_ROOM_PATTERN):
                room_id = key[len(REDIS_ROOM_PREFIX):]
                if re.match(ROOM_ID_PATTERN, room_id):
                    room_ids.append(room_id)
        except _STORE_ERRORS as e:
            raise StoreUnavailable("Failed to list rooms") from e
        return room_ids
