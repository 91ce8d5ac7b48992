import asyncio
from fastapi import APIRouter, WebSocket
from ...core.broadcast import Client
from ...utils.logging import get_logger

logger = get_logger(__name__)

realtime_router = APIRouter()


async def _forward_events(websocket: WebSocket, client: Client) -> None:
    """Drain the client's queue onto the socket in production order"""
    try:
        while True:
            event = await client.queue.get()
            await websocket.send_json(event)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.debug(f"Stopped sending to client {client.client_id}: {str(e)}")


@realtime_router.websocket("/ws")
async def realtime_updates(websocket: WebSocket):
    """Push init, sensor_update and system_update events to the browser.

    Anything the browser sends is ignored; the loop only watches for the
    disconnect.
    """
    hub = websocket.app.state.components.hub
    await websocket.accept()
    client = hub.connect()
    sender = asyncio.create_task(_forward_events(websocket, client))
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        hub.disconnect(client)
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
