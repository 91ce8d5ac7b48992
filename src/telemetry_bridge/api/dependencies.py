# src/telemetry_bridge/api/dependencies.py
from fastapi import Request
from typing import Annotated
from fastapi import Depends
from ..core.bridge import BridgeService
from ..core.action_dispatcher import ActionDispatcher
from ..core.file_gateway import FileGateway
from ..storage.cache import SensorCache

async def get_bridge(request: Request) -> BridgeService:
    return request.app.state.components

async def get_sensor_cache(request: Request) -> SensorCache:
    return request.app.state.components.cache

async def get_file_gateway(request: Request) -> FileGateway:
    return request.app.state.components.files

async def get_action_dispatcher(request: Request) -> ActionDispatcher:
    return request.app.state.components.actions

# Type definitions for dependencies
BridgeDependency = Annotated[BridgeService, Depends(get_bridge)]
SensorCacheDependency = Annotated[SensorCache, Depends(get_sensor_cache)]
FileGatewayDependency = Annotated[FileGateway, Depends(get_file_gateway)]
ActionDispatcherDependency = Annotated[ActionDispatcher, Depends(get_action_dispatcher)]
