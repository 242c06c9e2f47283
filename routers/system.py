from datetime import datetime, timezone

from fastapi import APIRouter, Request

from constants import SERVICE_NAME, SERVICE_SHORT_NAME, SERVICE_VERSION
from logging_config import get_logger
from schemas.system import HealthResponse, InfoResponse

logger = get_logger(__name__)

system_router = APIRouter(tags=["system"])


@system_router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    """Liveness check. Reports ok while degraded so single-instance deployments stay healthy."""
    backbone = request.app.state.backbone
    registry = request.app.state.registry
    return HealthResponse(
        status="ok",
        service=SERVICE_SHORT_NAME,
        timestamp=datetime.now(timezone.utc).isoformat(),
        backbone=backbone.status,
        connections=registry.connection_count,
    )


@system_router.get("/", response_model=InfoResponse)
async def info(request: Request):
    return InfoResponse(
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        socket_path=request.app.state.socket_path,
        status="running",
    )
