from typing import Any, List, Union

import socketio

from logging_config import get_logger
from registry import RoomRegistry
from relay import Relay
from schemas.events import EVENT_NAMES

logger = get_logger(__name__)


def create_socket_server(cors_origins: Union[str, List[str]] = "*", transports: List[str] = None,
                         ping_timeout: int = 60, ping_interval: int = 25) -> socketio.AsyncServer:
    """Build the Socket.IO server.

    Transport negotiation (websocket upgrade, polling fallback), handshake
    validation, connection ids and ping/pong liveness are handled here by
    python-socketio; a client that misses pings past ``ping_timeout`` is
    disconnected and goes through the normal disconnect handler.
    """
    return socketio.AsyncServer(
        async_mode="asgi",
        cors_allowed_origins=cors_origins,
        cors_credentials=True,
        transports=transports or ["websocket", "polling"],
        ping_timeout=ping_timeout,
        ping_interval=ping_interval,
        # Library loggers log every packet; ours cover lifecycle and relays
        logger=False,
        engineio_logger=False,
    )


class Gateway:
    """Connection lifecycle and event routing for one Socket.IO server."""

    def __init__(self, sio: socketio.AsyncServer, registry: RoomRegistry, relay: Relay):
        self.sio = sio
        self.registry = registry
        self.relay = relay

    def register(self) -> None:
        self.sio.on("connect", self.on_connect)
        self.sio.on("disconnect", self.on_disconnect)
        for name in EVENT_NAMES:
            self.sio.on(name, self._handler_for(name))
        self.sio.on("*", self.on_unknown_event)

    def _handler_for(self, name: str):
        async def handler(sid: str, *args):
            await self.relay.dispatch(name, sid, args[0] if args else None)

        handler.__name__ = name.replace("-", "_")
        return handler

    async def on_connect(self, sid: str, environ: dict, auth: Any = None) -> None:
        self.registry.add_connection(sid)
        logger.info(f"Connected: {sid}")

    async def on_disconnect(self, sid: str, reason: Any = None) -> None:
        rooms = self.registry.rooms_of(sid)
        await self.relay.drop_connection(sid)
        logger.info(f"Disconnected: {sid} {reason or 'unknown reason'} (left {len(rooms)} rooms)")

    async def on_unknown_event(self, event: str, sid: str, *args) -> None:
        logger.debug(f"Ignoring unknown event {event!r} from {sid}")

    @property
    def connection_count(self) -> int:
        return self.registry.connection_count
