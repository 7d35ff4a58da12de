"""Unit tests for ConnectionState."""

import asyncio

import pytest

from film_relay.core.connection_state import ConnectionState, InvalidTransition, Role


class TestRoleTransitions:
    """Roles are assigned once and never change afterwards."""

    def test_starts_unclassified(self):
        conn = ConnectionState(ws=None)

        assert conn.role is Role.UNCLASSIFIED
        assert conn.camera_id is None
        assert conn.is_open

    def test_promote_to_camera(self):
        conn = ConnectionState(ws=None)

        conn.promote_to_camera(2)

        assert conn.role is Role.CAMERA
        assert conn.camera_id == 2

    def test_promote_to_client(self):
        conn = ConnectionState(ws=None)

        conn.promote_to_client()

        assert conn.role is Role.CONTROL_CLIENT

    def test_camera_cannot_become_client(self):
        conn = ConnectionState(ws=None)
        conn.promote_to_camera(1)

        with pytest.raises(InvalidTransition):
            conn.promote_to_client()

    def test_client_cannot_become_camera(self):
        conn = ConnectionState(ws=None)
        conn.promote_to_client()

        with pytest.raises(InvalidTransition):
            conn.promote_to_camera(1)

    def test_closed_is_terminal(self):
        conn = ConnectionState(ws=None)
        conn.mark_closed()

        assert not conn.is_open
        with pytest.raises(InvalidTransition):
            conn.promote_to_camera(1)


class TestOutbox:
    """Queued delivery through the writer task."""

    @pytest.mark.asyncio
    async def test_messages_written_in_order(self, make_connection, received):
        conn = make_connection()

        for i in range(5):
            assert conn.send({"type": "n", "i": i}) is True

        assert [m["i"] for m in await received(conn)] == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_send_after_close_is_dropped(self, make_connection):
        conn = make_connection()
        await conn.close()

        assert conn.send({"type": "late"}) is False
        assert conn.ws.sent == []

    @pytest.mark.asyncio
    async def test_full_outbox_drops_message(self):
        conn = ConnectionState(ws=None, outbox_size=1)

        assert conn.send({"type": "a"}) is True
        assert conn.send({"type": "b"}) is False

    @pytest.mark.asyncio
    async def test_write_failure_marks_connection_closed(self, make_connection):
        conn = make_connection(fail=True)

        conn.send({"type": "a"})
        await conn.flush()

        assert conn.is_connected is False
        assert conn.send({"type": "b"}) is False

    @pytest.mark.asyncio
    async def test_stalled_write_times_out(self):
        class StalledWebSocket:
            async def send_text(self, text):
                await asyncio.sleep(10)

        conn = ConnectionState(StalledWebSocket(), send_timeout=0.05)
        conn.start()

        conn.send({"type": "a"})
        await asyncio.wait_for(conn.flush(), timeout=2)

        assert conn.is_connected is False
        await conn.close()

    @pytest.mark.asyncio
    async def test_close_discards_pending_messages(self):
        conn = ConnectionState(ws=None)
        conn.send({"type": "a"})
        conn.send({"type": "b"})

        await conn.close()

        await asyncio.wait_for(conn.flush(), timeout=1)
