"""Error envelopes and FastAPI exception handlers for the relay."""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mpesa_relay.integrations.errors import AuthError, RelayError, ValidationError

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ErrorHandler:
    """Turns exceptions into the ``success: false`` envelope every synchronous endpoint returns."""

    def __init__(self, debug: bool = False) -> None:
        self.debug = debug

    def relay_error_body(self, exc: RelayError) -> Dict[str, Any]:
        if isinstance(exc, ValidationError):
            return {"success": False, "error": exc.message}
        return {
            "success": False,
            "error": exc.message,
            "details": None if isinstance(exc, AuthError) else exc.details,
            "timestamp": _now_iso(),
        }

    def handle_exception(self, exc: Exception, context: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        logger.error("Unhandled exception: %s (context=%s)", exc, context or {}, exc_info=True)
        body: Dict[str, Any] = {"success": False, "error": "Internal server error"}
        if self.debug:
            body["message"] = str(exc)
        return body


def install_exception_handlers(app, error_handler: ErrorHandler) -> None:
    async def relay_error(request: Request, exc: RelayError) -> JSONResponse:
        if not isinstance(exc, ValidationError):
            logger.error("[%s] %s failed: %s", type(exc).__name__, request.url.path, exc.message)
        return JSONResponse(status_code=exc.http_status, content=error_handler.relay_error_body(exc))

    async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"field": " -> ".join(str(loc) for loc in error["loc"]), "message": error["msg"]}
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid request body", "details": errors},
        )

    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={"success": False, "error": "Endpoint not found"})
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=500,
            content=error_handler.handle_exception(exc, context={"path": request.url.path}),
        )

    app.add_exception_handler(RelayError, relay_error)
    app.add_exception_handler(RequestValidationError, request_validation_error)
    app.add_exception_handler(StarletteHTTPException, http_error)
    app.add_exception_handler(Exception, unhandled_error)
