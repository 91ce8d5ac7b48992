from typing import Any, Dict
from fastapi.responses import JSONResponse
from ..utils.exceptions import AccessDeniedError, BridgeError, NotFoundError, ValidationError

STATUS_CODES = (
    (AccessDeniedError, 403),
    (NotFoundError, 404),
    (ValidationError, 400),
)


def status_for(error: Exception) -> int:
    for error_type, status_code in STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 500


def failure(error: Exception, fallback: str, **fields: Any) -> Dict[str, Any]:
    """Uniform failure body; only BridgeError messages reach the caller"""
    message = str(error) if isinstance(error, BridgeError) else fallback
    return {**fields, "success": False, "error": message}


def failure_response(error: Exception, fallback: str) -> JSONResponse:
    return JSONResponse(status_code=status_for(error), content=failure(error, fallback))
