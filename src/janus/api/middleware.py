"""API error handling: consistent error envelopes.

Status code mapping:
- ``ApiError`` -> its own status and code
- ``RequestValidationError`` (malformed path/query values) -> 400 ``VALIDATION_ERROR``
- any other ``Exception`` -> 500 ``INTERNAL_ERROR``
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from janus.api.deps import ApiError
from janus.api.models import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


def error_response(
    status_code: int, code: str, message: str, details: object | None = None
) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


async def _handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    return error_response(exc.status_code, exc.code, exc.message, exc.details)


async def _handle_request_validation_error(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())[1:]),
            "message": str(error.get("msg", "Invalid value")),
        }
        for error in exc.errors()
    ]
    logger.info("Request validation failed on %s: %s", request.url.path, details)
    return error_response(400, "VALIDATION_ERROR", "Validation failed", details)


class CatchAllErrorMiddleware(BaseHTTPMiddleware):
    """Converts any unhandled exception into a 500 error envelope.

    Sits above the Starlette exception handler layer so that nothing escapes
    as a plain-text 500.
    """

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
            return error_response(500, "INTERNAL_ERROR", "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the application."""
    app.add_exception_handler(ApiError, _handle_api_error)  # type: ignore[arg-type]
    app.add_exception_handler(
        RequestValidationError,
        _handle_request_validation_error,  # type: ignore[arg-type]
    )
    app.add_middleware(CatchAllErrorMiddleware)
