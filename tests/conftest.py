import pytest

from connections import ConnectionHub
from dispatcher import EventDispatcher
from registry import RoomRegistry
from tests.mocks import InMemoryRoomStore, MockConnection


@pytest.fixture
def store():
    return InMemoryRoomStore()


@pytest.fixture
def registry(store):
    return RoomRegistry(store)


@pytest.fixture
def hub():
    return ConnectionHub()


@pytest.fixture
def dispatcher(registry, hub):
    return EventDispatcher(registry, hub)


@pytest.fixture
def connect(dispatcher):
    """Factory registering a fresh MockConnection with the dispatcher."""

    async def _connect(connection_id: str | None = None) -> MockConnection:
        connection = MockConnection(connection_id)
        await dispatcher.handle_connect(connection)
        return connection

    return _connect
