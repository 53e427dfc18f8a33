"""API error handling: consistent error responses.

Registers FastAPI exception handlers that convert storage-layer exceptions
into ``{"error": {"code": "...", "message": "..."}}`` JSON responses.

Status code mapping:
- ``ValidationError`` and request body validation failures: 400
- ``NotFoundError``: 404
- ``HTTPException`` (e.g. 401 for a missing session): its own status
- Any other ``Exception``: 500
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from paintrack.api.models import ErrorDetail, ErrorResponse
from paintrack.storage.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _error(status_code: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def _handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    logger.info("Validation error on %s %s: %s", request.method, request.url.path, exc)
    return _error(400, "VALIDATION_ERROR", str(exc))


async def _handle_request_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Return 400 when the request body does not match its model."""
    errors = exc.errors()
    logger.info("Malformed request on %s %s: %s", request.method, request.url.path, errors)
    message = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in errors
    )
    return _error(400, "VALIDATION_ERROR", message or "Invalid request")


_HTTP_ERROR_CODES = {
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework HTTP errors (401 from auth, unknown routes) in the envelope."""
    response = _error(
        exc.status_code,
        _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
        str(exc.detail),
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def _handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    logger.info("Not found: %s", exc)
    return _error(404, "NOT_FOUND", str(exc), {"kind": exc.kind, "id": str(exc.entity_id)})


class CatchAllErrorMiddleware(BaseHTTPMiddleware):
    """Convert any unhandled exception into the standard 500 error envelope."""

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception:
            logger.error(
                "Unhandled exception on %s %s",
                request.method,
                request.url.path,
                exc_info=True,
            )
            return _error(500, "INTERNAL_ERROR", "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI application."""
    app.add_exception_handler(ValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError,
        _handle_request_validation_error,  # type: ignore[arg-type]
    )
    app.add_exception_handler(NotFoundError, _handle_not_found)  # type: ignore[arg-type]
    app.add_exception_handler(
        StarletteHTTPException,
        _handle_http_exception,  # type: ignore[arg-type]
    )
    app.add_middleware(CatchAllErrorMiddleware)
