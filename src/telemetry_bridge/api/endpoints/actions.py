from fastapi import APIRouter
from typing import Any, Dict
import traceback
from ..dependencies import ActionDispatcherDependency
from ..responses import failure
from ...models.api import ActionRequest
from ...utils.exceptions import BridgeError
from ...utils.logging import get_logger

logger = get_logger(__name__)

actions_router = APIRouter()


'''
# Trigger the button named "reboot" with a payload
response = await client.post("/api/action", json={"action": "reboot", "value": "now"})
# {"ack": "Action sent", "success": true, "error": ""}
'''

@actions_router.post("/action")
async def post_action(request: ActionRequest, actions: ActionDispatcherDependency) -> Dict[str, Any]:
    try:
        await actions.dispatch(request.action, request.value)
        return {"ack": "Action sent", "success": True, "error": ""}
    except BridgeError as e:
        logger.warning(f"Action {request.action!r} rejected: {str(e)}")
        return failure(e, "Action failed", ack="")
    except Exception as e:
        logger.error(f"Error dispatching action {request.action!r}: {traceback.format_exc()}")
        return failure(e, "Action failed", ack="")
