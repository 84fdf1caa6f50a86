import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Set
from uuid import uuid4

from fastapi import WebSocket, WebSocketDisconnect

from logging_config import get_logger

logger = get_logger(__name__)


class ConnectionProtocol(ABC):
    """
    A client connection with a stable id that can receive named events.

    Lets the dispatcher run without real WebSocket connections.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        ...

    @abstractmethod
    async def emit(self, event: str, data: Any = None) -> None:
        """Send one `{event, data}` frame to the client."""
        ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None:
        ...


class WebSocketConnection(ConnectionProtocol):
    def __init__(self, websocket: WebSocket, connection_id: str = None):
        self._websocket = websocket
        self._connection_id = connection_id or str(uuid4())

    @property
    def connection_id(self) -> str:
        return self._connection_id

    async def emit(self, event: str, data: Any = None) -> None:
        try:
            await self._websocket.send_json({"event": event, "data": data})
        except (WebSocketDisconnect, RuntimeError) as e:
            raise ConnectionError("WebSocket already disconnected") from e

    async def receive_text(self) -> Optional[str]:
        """
        Wait for the next frame. Binary frames come back as None.

        Raises WebSocketDisconnect once the client has gone away.
        """
        message = await self._websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
        return message.get("text")

    async def close(self, code: int = 1000, reason: str = "") -> None:
        try:
            await self._websocket.close(code=code, reason=reason)
        except (WebSocketDisconnect, RuntimeError) as e:
            raise ConnectionError("WebSocket already disconnected") from e


class ConnectionHub:
    """
    Live connections of this process and their room groups.

    Groups are process local; a connection leaves every group when it
    disconnects.
    """

    def __init__(self):
        self._connections: Dict[str, ConnectionProtocol] = {}
        # Format: {room_id: {connection_id, ...}}
        self._groups: Dict[str, Set[str]] = {}

    def register(self, connection: ConnectionProtocol):
        self._connections[connection.connection_id] = connection

    def unregister(self, connection: ConnectionProtocol):
        self._connections.pop(connection.connection_id, None)
        self.leave_all(connection.connection_id)

    def join_group(self, room_id: str, connection_id: str):
        self._groups.setdefault(room_id, set()).add(connection_id)

    def leave_group(self, room_id: str, connection_id: str):
        members = self._groups.get(room_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._groups[room_id]

    def leave_all(self, connection_id: str):
        for room_id in list(self._groups):
            self.leave_group(room_id, connection_id)

    def group_members(self, room_id: str) -> Set[str]:
        return set(self._groups.get(room_id, ()))

    async def emit_to_group(self, room_id: str, event: str, data: Any = None) -> int:
        """
        Send an event to every live connection in the room's group.

        Send failures are logged and skipped. Returns the number of
        connections the event was handed to.
        """
        targets = [
            self._connections[conn_id]
            for conn_id in self._groups.get(room_id, ())
            if conn_id in self._connections
        ]
        if not targets:
            return 0

        results = await asyncio.gather(
            *(conn.emit(event, data) for conn in targets),
            return_exceptions=True,
        )
        for conn, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.debug(f"Failed to send {event} to {conn.connection_id} in room {room_id}: {result}")
        return len(targets)
