from fastapi import APIRouter, HTTPException
from typing import Any, Dict
import traceback
from ..dependencies import BridgeDependency, SensorCacheDependency
from ...utils.logging import get_logger

logger = get_logger(__name__)

sensors_router = APIRouter()


@sensors_router.get("/config")
async def get_config(bridge: BridgeDependency) -> Dict[str, Any]:
    """The validated schema exactly as it was loaded"""
    return bridge.raw_config


@sensors_router.get("/sensors")
async def get_sensors(cache: SensorCacheDependency) -> Dict[str, Any]:
    return cache.snapshot()


@sensors_router.get("/system")
async def get_system(bridge: BridgeDependency) -> Dict[str, str]:
    try:
        return await bridge.system_status()
    except Exception:
        logger.error(f"Error getting system info: {traceback.format_exc()}")
        raise HTTPException(status_code=500, detail="Failed to read system metrics")
