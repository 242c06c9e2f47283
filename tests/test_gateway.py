"""Connection lifecycle handlers wired onto a real python-socketio server."""

import pytest

from gateway import Gateway, create_socket_server
from registry import RoomRegistry
from relay import Relay
from schemas.events import EVENT_NAMES
from tests.conftest import FakeEmitter


@pytest.fixture
def gateway():
    sio = create_socket_server(cors_origins=["http://localhost:3000"], transports=["websocket", "polling"])
    registry = RoomRegistry()
    relay = Relay(registry, FakeEmitter())
    gateway = Gateway(sio, registry, relay)
    gateway.register()
    return gateway


def handler(gateway, name):
    return gateway.sio.handlers["/"][name]


class TestRegistration:
    def test_every_event_has_a_handler(self, gateway):
        registered = set(gateway.sio.handlers["/"])
        assert set(EVENT_NAMES) <= registered
        assert {"connect", "disconnect", "*"} <= registered

    def test_socket_server_options(self, gateway):
        eio = gateway.sio.eio
        assert eio.ping_timeout == 60
        assert eio.ping_interval == 25
        assert eio.cors_allowed_origins == ["http://localhost:3000"]
        assert eio.cors_credentials is True
        assert set(eio.transports) == {"websocket", "polling"}


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_connect_registers_connection(self, gateway, caplog):
        caplog.set_level("INFO")
        await gateway.on_connect("sid-1", {})
        assert gateway.connection_count == 1
        assert "Connected: sid-1" in caplog.text

    @pytest.mark.asyncio
    async def test_disconnect_leaves_all_rooms(self, gateway, caplog):
        caplog.set_level("INFO")
        await gateway.on_connect("X", {})
        await gateway.on_connect("Y", {})
        await handler(gateway, "join-project")("X", "p1")
        await handler(gateway, "join-chat")("X", "c1")
        await handler(gateway, "join-project")("Y", "p1")

        await gateway.on_disconnect("X", "transport close")

        assert gateway.registry.rooms_of("X") == set()
        assert gateway.registry.members("project:p1") == {"Y"}
        assert "chat:c1" not in gateway.registry
        assert gateway.connection_count == 1
        assert "Disconnected: X transport close" in caplog.text

    @pytest.mark.asyncio
    async def test_disconnect_without_reason(self, gateway):
        await gateway.on_connect("X", {})
        await gateway.on_disconnect("X")
        assert gateway.connection_count == 0


class TestEventHandlers:
    @pytest.mark.asyncio
    async def test_task_event_routed_to_relay(self, gateway):
        emitter = gateway.relay.emitter
        await handler(gateway, "join-project")("X", "abc123")
        await handler(gateway, "join-project")("Y", "abc123")

        payload = {"projectId": "abc123", "taskId": "t1", "toColumn": "done"}
        await handler(gateway, "task-moved")("X", payload)

        assert emitter.received_by("Y") == [("task-moved", payload)]
        assert emitter.received_by("X") == []

    @pytest.mark.asyncio
    async def test_event_without_data(self, gateway):
        await handler(gateway, "task-created")("X")
        assert gateway.relay.emitter.sent == []

    @pytest.mark.asyncio
    async def test_catch_all_ignores_unknown_events(self, gateway):
        await handler(gateway, "*")("board-reset", "X", {"projectId": "p1"})
        assert gateway.relay.emitter.sent == []
