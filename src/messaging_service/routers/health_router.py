from fastapi import APIRouter, Depends

from ..dependencies import get_connection_registry
from ..services import ConnectionRegistry

health_router = APIRouter(tags=["Health"])


@health_router.get("/health")
async def health_check(registry: ConnectionRegistry = Depends(get_connection_registry)):
    return {"status": "ok", "liveConnections": await registry.total_connections()}
