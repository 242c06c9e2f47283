from contextlib import asynccontextmanager
from typing import List, Optional, Union

import socketio
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend import RedisBackbone
from constants import (
    CORS_ORIGIN,
    PING_INTERVAL,
    PING_TIMEOUT,
    REDIS_URL,
    SERVICE_NAME,
    SERVICE_VERSION,
    SOCKET_PATH,
    SOCKET_TRANSPORTS,
    parse_origins,
    parse_transports,
)
from gateway import Gateway, create_socket_server
from logging_config import get_logger
from registry import RoomRegistry
from relay import Relay
from routers.system import system_router

logger = get_logger(__name__)


def create_app(
    redis_url: str = REDIS_URL,
    cors_origins: Union[str, List[str], None] = None,
    transports: Optional[List[str]] = None,
    ping_timeout: int = PING_TIMEOUT,
    ping_interval: int = PING_INTERVAL,
    socket_path: str = SOCKET_PATH,
    backbone: Optional[RedisBackbone] = None,
) -> socketio.ASGIApp:
    """Assemble the relay service.

    Components are built here and handed to each other explicitly; the
    backbone is connected on startup and closed on shutdown by the lifespan.
    The Socket.IO app sits in front and passes everything outside
    ``/<socket_path>/`` (including lifespan) to the FastAPI app.
    """
    if cors_origins is None:
        cors_origins = parse_origins(CORS_ORIGIN)
    if transports is None:
        transports = parse_transports(SOCKET_TRANSPORTS)
    if backbone is None:
        backbone = RedisBackbone.from_url(redis_url)

    registry = RoomRegistry()
    sio = create_socket_server(cors_origins, transports, ping_timeout, ping_interval)
    relay = Relay(registry, emitter=sio, backbone=backbone)
    gateway = Gateway(sio, registry, relay)
    gateway.register()

    @asynccontextmanager
    async def lifespan(api: FastAPI):
        await backbone.start(on_message=relay.deliver_remote)
        logger.info(f"{SERVICE_NAME} ready, socket path /{socket_path}, backbone {backbone.status}")
        try:
            yield
        finally:
            await backbone.close()
            logger.info(f"{SERVICE_NAME} stopped")

    api = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION, lifespan=lifespan)

    # Credentials cannot be combined with a literal "*" origin, so the wildcard is sent as a regex
    if cors_origins == "*":
        api.add_middleware(
            CORSMiddleware,
            allow_origin_regex=".*",
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )
    else:
        api.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST"],
            allow_headers=["*"],
        )

    api.include_router(system_router)

    api.state.registry = registry
    api.state.backbone = backbone
    api.state.relay = relay
    api.state.gateway = gateway
    api.state.sio = sio
    api.state.socket_path = f"/{socket_path}"

    logger.info(f"Relay application initialized (origins: {cors_origins}, transports: {transports})")
    return socketio.ASGIApp(sio, other_asgi_app=api, socketio_path=socket_path)


app = create_app()
