from connections import ConnectionHub
from tests.mocks import MockConnection


class TestConnectionHub:
    def test_join_and_leave_group(self):
        hub = ConnectionHub()
        hub.join_group("abc123", "conn-1")
        hub.join_group("abc123", "conn-2")

        hub.leave_group("abc123", "conn-1")

        assert hub.group_members("abc123") == {"conn-2"}

    def test_empty_group_is_dropped(self):
        hub = ConnectionHub()
        hub.join_group("abc123", "conn-1")
        hub.leave_group("abc123", "conn-1")
        assert "abc123" not in hub._groups

    async def test_unregister_leaves_every_group(self):
        hub = ConnectionHub()
        conn = MockConnection("conn-1")
        hub.register(conn)
        hub.join_group("abc123", "conn-1")
        hub.join_group("xyz789", "conn-1")

        hub.unregister(conn)

        assert hub.group_members("abc123") == set()
        assert hub.group_members("xyz789") == set()

        hub.join_group("abc123", "conn-1")
        assert await hub.emit_to_group("abc123", "updateState") == 0
        assert conn.sent_messages == []

    async def test_emit_to_group(self):
        hub = ConnectionHub()
        members = [MockConnection(f"conn-{i}") for i in range(2)]
        outsider = MockConnection("outsider")
        for conn in [*members, outsider]:
            hub.register(conn)
        for conn in members:
            hub.join_group("abc123", conn.connection_id)

        sent = await hub.emit_to_group("abc123", "updateState", {"x": 1})

        assert sent == 2
        for conn in members:
            assert conn.sent_messages == [("updateState", {"x": 1})]
        assert outsider.sent_messages == []

    async def test_emit_skips_failed_and_unknown_connections(self):
        hub = ConnectionHub()
        alive = MockConnection("alive")
        dead = MockConnection("dead")
        hub.register(alive)
        hub.register(dead)
        for conn_id in ("alive", "dead", "gone"):
            hub.join_group("abc123", conn_id)
        await dead.close()

        sent = await hub.emit_to_group("abc123", "updateState", {})

        assert sent == 2
        assert alive.sent_messages == [("updateState", {})]

    async def test_emit_to_empty_group(self):
        assert await ConnectionHub().emit_to_group("abc123", "updateState") == 0
