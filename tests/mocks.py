import asyncio
from typing import Any, Optional
from uuid import uuid4

from backend import decode_room, encode_room
from connections import ConnectionProtocol
from constants import ROOM_TTL_SECONDS
from exceptions import StoreUnavailable
from schemas.rooms import RoomState


class InMemoryRoomStore:
    """RoomStore keeping encoded records in a dict, for tests."""

    def __init__(self, latency: float = 0) -> None:
        self.records: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.calls: list[tuple[str, str]] = []
        self.failing_ops: set[str] = set()
        self._latency = latency

    def fail(self, *ops: str) -> None:
        """Make the given operations (all when none given) raise StoreUnavailable."""
        self.failing_ops = set(ops) if ops else {"get", "put", "delete", "list_room_ids"}

    def recover(self) -> None:
        self.failing_ops = set()

    def ops(self, name: str) -> list[str]:
        return [room_id for op, room_id in self.calls if op == name]

    async def _enter(self, op: str, room_id: str = "") -> None:
        self.calls.append((op, room_id))
        if self._latency:
            await asyncio.sleep(self._latency)
        if op in self.failing_ops:
            raise StoreUnavailable(f"{op} failed")

    async def get(self, room_id: str) -> Optional[RoomState]:
        await self._enter("get", room_id)
        raw = self.records.get(room_id)
        return decode_room(room_id, raw) if raw is not None else None

    async def put(self, room_id: str, state: RoomState, ttl: int = ROOM_TTL_SECONDS) -> None:
        await self._enter("put", room_id)
        self.records[room_id] = encode_room(state)
        self.ttls[room_id] = ttl

    async def delete(self, room_id: str) -> None:
        await self._enter("delete", room_id)
        self.records.pop(room_id, None)
        self.ttls.pop(room_id, None)

    async def list_room_ids(self) -> list[str]:
        await self._enter("list_room_ids")
        return list(self.records)


class MockConnection(ConnectionProtocol):
    def __init__(self, connection_id: str | None = None) -> None:
        self._connection_id = connection_id or str(uuid4())
        self._outbox: list[tuple[str, Any]] = []
        self._closed = False

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def sent_messages(self) -> list[tuple[str, Any]]:
        return self._outbox.copy()

    @property
    def is_closed(self) -> bool:
        return self._closed

    def events(self, name: str) -> list[Any]:
        """Payloads of every sent event with the given name."""
        return [data for event, data in self._outbox if event == name]

    def clear(self) -> None:
        self._outbox.clear()

    async def emit(self, event: str, data: Any = None) -> None:
        if self._closed:
            raise ConnectionError("Connection is closed")
        self._outbox.append((event, data))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self._closed = True
