"""Global exception handlers for consistent error responses.

Design:
- ValidationAppError → 400
- StoreUnavailableError → 503 with Retry-After (the failure is transient)
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for tracing
"""

import logging
import math

from fastapi import Request
from fastapi.responses import JSONResponse

from notify_relay.core.errors import AppError, StoreUnavailableError
from notify_relay.core.logging import get_request_id

logger = logging.getLogger(__name__)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Body shape::

        {"error": {"code": ..., "message": ..., "request_id": ..., "details": ...}}

    ``details`` is only present when the error carries it.
    """
    status_code = 400
    headers: dict[str, str] = {}
    if isinstance(exc, StoreUnavailableError):
        status_code = 503
        retry_after = (exc.details or {}).get("retry_after", 1.0)
        headers["Retry-After"] = str(max(1, math.ceil(retry_after)))

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    error_content = {
        "code": exc.code,
        "message": exc.message,
        "request_id": get_request_id(),
    }
    if exc.details:
        error_content["details"] = exc.details

    return JSONResponse(
        status_code=status_code,
        content={"error": error_content},
        headers=headers or None,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors.

    Logs the failure type and returns a generic message; no stack trace
    reaches the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "internal_server_error",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": get_request_id(),
            }
        },
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with the FastAPI app.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
