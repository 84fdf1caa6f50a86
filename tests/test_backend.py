import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from backend import RedisRoomStore, decode_room, encode_room
from constants import ROOM_TTL_SECONDS
from exceptions import StoreUnavailable
from schemas.rooms import RoomState


def _scan(keys):
    async def _iter(*args, **kwargs):
        for key in keys:
            yield key

    return MagicMock(side_effect=_iter)


@pytest.fixture
def client():
    mock = AsyncMock()
    mock.get = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def redis_store(client):
    return RedisRoomStore(client)


class TestEncoding:
    def test_encode_omits_unset_tags(self):
        state = RoomState(users=["a"], leader_id="a")
        data = json.loads(encode_room(state))
        assert data == {
            "currentSong": None,
            "currentSongId": None,
            "currentTime": 0,
            "isPlaying": False,
            "users": ["a"],
            "leaderId": "a",
        }

    def test_decode_round_trip(self):
        state = RoomState(users=["a", "b"], leader_id="b", mood="happy", current_time=3.5)
        assert decode_room("abc123", encode_room(state)) == state

    def test_decode_garbage_is_absent(self):
        assert decode_room("abc123", "{not json") is None
        assert decode_room("abc123", json.dumps({"users": []})) is None


class TestRedisRoomStore:
    async def test_put_sets_key_with_ttl(self, redis_store, client):
        state = RoomState(users=["a"], leader_id="a")

        await redis_store.put("abc123", state)

        client.set.assert_awaited_once_with("room:abc123", encode_room(state), ex=ROOM_TTL_SECONDS)

    async def test_put_custom_ttl(self, redis_store, client):
        await redis_store.put("abc123", RoomState(users=["a"], leader_id="a"), ttl=30)
        assert client.set.await_args.kwargs["ex"] == 30

    async def test_get_decodes(self, redis_store, client):
        state = RoomState(users=["a"], leader_id="a", title="Song")
        client.get.return_value = encode_room(state)

        assert await redis_store.get("abc123") == state
        client.get.assert_awaited_once_with("room:abc123")

    async def test_get_missing(self, redis_store):
        assert await redis_store.get("abc123") is None

    async def test_delete(self, redis_store, client):
        await redis_store.delete("abc123")
        client.delete.assert_awaited_once_with("room:abc123")

    async def test_list_room_ids_filters_foreign_keys(self, redis_store, client):
        client.scan_iter = _scan(["room:abc123", "room:meta:deadbeef", "room:zz9999", "room:ABCDEF"])

        assert await redis_store.list_room_ids() == ["abc123", "zz9999"]
        client.scan_iter.assert_called_once_with(match="room:*")

    @pytest.mark.parametrize("error", [RedisConnectionError("down"), RedisTimeoutError("slow"), asyncio.TimeoutError()])
    async def test_get_failure_is_store_unavailable(self, redis_store, client, error):
        client.get.side_effect = error
        with pytest.raises(StoreUnavailable):
            await redis_store.get("abc123")

    async def test_put_failure_is_store_unavailable(self, redis_store, client):
        client.set.side_effect = RedisConnectionError("down")
        with pytest.raises(StoreUnavailable):
            await redis_store.put("abc123", RoomState(users=["a"], leader_id="a"))

    async def test_delete_failure_is_store_unavailable(self, redis_store, client):
        client.delete.side_effect = OSError("reset")
        with pytest.raises(StoreUnavailable):
            await redis_store.delete("abc123")

    async def test_list_failure_is_store_unavailable(self, redis_store, client):
        async def _broken(*args, **kwargs):
            raise RedisConnectionError("down")
            yield  # pragma: no cover

        client.scan_iter = MagicMock(side_effect=_broken)
        with pytest.raises(StoreUnavailable):
            await redis_store.list_room_ids()

    async def test_connect_pings(self, redis_store, client):
        await redis_store.connect()
        client.ping.assert_awaited_once()

    async def test_connect_failure_raises(self, redis_store, client):
        client.ping.side_effect = RedisConnectionError("refused")
        with pytest.raises(StoreUnavailable, match="Failed to connect"):
            await redis_store.connect()

    async def test_close(self, redis_store, client):
        await redis_store.close()
        client.aclose.assert_awaited_once()

    def test_from_url_sets_timeouts(self):
        store = RedisRoomStore.from_url("redis://localhost:6379/0", timeout=2)
        kwargs = store.redis_client.connection_pool.connection_kwargs
        assert kwargs["socket_timeout"] == 2
        assert kwargs["socket_connect_timeout"] == 2
