# src/telemetry_bridge/api/routes.py
from fastapi import APIRouter, FastAPI
from typing import Any, Dict
from ..core.bridge import BridgeService
from .dependencies import BridgeDependency
from .endpoints.actions import actions_router
from .endpoints.files import files_router
from .endpoints.realtime import realtime_router
from .endpoints.sensors import sensors_router

health_router = APIRouter()

@health_router.get("/health")
async def health(bridge: BridgeDependency) -> Dict[str, Any]:
    return {
        "status": "ok",
        "broker_connected": bridge.broker.connected.is_set(),
        "clients": bridge.hub.client_count,
    }


def create_app(bridge: BridgeService) -> FastAPI:
    """Build the FastAPI application around a constructed bridge"""
    app = FastAPI(
        title="Telemetry Bridge API",
        description="Schema driven bridge between MQTT telemetry and a web dashboard",
        version="1.0.0"
    )

    # Store bridge for dependency injection
    app.state.components = bridge

    app.include_router(sensors_router, prefix="/api")
    app.include_router(files_router, prefix="/api")
    app.include_router(actions_router, prefix="/api")
    app.include_router(realtime_router)
    app.include_router(health_router)

    return app
