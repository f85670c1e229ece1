"""Request-scoped dependencies for the calendar API.

Provides:
- ``ApiError``: an exception carrying the HTTP status and error code that the
  error middleware renders into the standard envelope.
- ``require_user_id``: resolves the authenticated user or fails with 401.
- ``get_provider_id`` / ``get_provider``: resolve the ``?provider=`` query
  parameter and build a per-request calendar adapter.
- ``provider_errors``: maps calendar-layer failures to ``ApiError`` and logs
  them with request context.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, Query, Request

from janus.auth import SessionResolver, TokenSource
from janus.calendar.base import CalendarProvider
from janus.calendar.errors import (
    CalendarNotLinkedError,
    CalendarRequestError,
    UnsupportedProviderError,
)
from janus.calendar.registry import get_calendar_provider
from janus.calendar.types import ProviderId, UserId
from janus.config import JanusConfig
from janus.core.telemetry import calendar_span
from janus.validation import validate_provider_id

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Raised by handlers to return a specific error envelope."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
    ) -> None:
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details
        super().__init__(message)


def get_config(request: Request) -> JanusConfig:
    return request.app.state.config


def get_token_source(request: Request) -> TokenSource:
    return request.app.state.token_source


def get_session_resolver(request: Request) -> SessionResolver:
    return request.app.state.session_resolver


async def require_user_id(
    request: Request,
    resolver: SessionResolver = Depends(get_session_resolver),
) -> UserId:
    user_id = await resolver.resolve_user_id(request)
    if user_id is None:
        logger.info(
            "auth_failed",
            extra={"path": request.url.path, "method": request.method},
        )
        raise ApiError(401, "UNAUTHORIZED", "Unauthorized")
    return user_id


def get_provider_id(
    provider: str | None = Query(default=None),
    config: JanusConfig = Depends(get_config),
) -> ProviderId:
    if provider is None or not provider.strip():
        return config.default_provider
    provider_id = validate_provider_id(provider)
    if provider_id is None:
        raise ApiError(
            400,
            "INVALID_PROVIDER",
            "Invalid provider",
            details={"validProviders": [p.value for p in ProviderId]},
        )
    return provider_id


async def get_provider(
    request: Request,
    user_id: UserId = Depends(require_user_id),
    provider_id: ProviderId = Depends(get_provider_id),
    config: JanusConfig = Depends(get_config),
    token_source: TokenSource = Depends(get_token_source),
) -> AsyncIterator[CalendarProvider]:
    """Build a fresh adapter for this request and release it afterwards."""
    try:
        provider = get_calendar_provider(
            user_id,
            provider_id,
            token_source=token_source,
            http_client=getattr(request.app.state, "http_client", None),
            settings=config.providers,
        )
    except UnsupportedProviderError as exc:
        raise ApiError(400, "UNSUPPORTED_PROVIDER", str(exc)) from exc

    try:
        yield provider
    finally:
        await provider.aclose()


@asynccontextmanager
async def provider_errors(
    *,
    operation: str,
    resource: str,
    user_id: str,
    provider_id: str,
    calendar_id: str | None = None,
    event_id: str | None = None,
) -> AsyncIterator[None]:
    """Translate calendar-layer failures inside the block into ``ApiError``.

    The block runs inside a ``janus.api.<resource>.<operation>`` span with the
    request ids bound to the logging context.
    """
    with calendar_span(
        f"janus.api.{resource}.{operation}",
        user_id=user_id,
        provider_id=provider_id,
        calendar_id=calendar_id,
        event_id=event_id,
    ):
        try:
            yield
        except (CalendarNotLinkedError, CalendarRequestError) as exc:
            raise _to_api_error(exc, operation=operation, resource=resource) from exc


def _to_api_error(
    exc: CalendarNotLinkedError | CalendarRequestError, *, operation: str, resource: str
) -> ApiError:
    status_code = getattr(exc, "status_code", None)
    logger.warning(
        "%s_%s_failed",
        resource,
        operation,
        extra={"upstream_status": status_code, "error": str(exc)},
    )
    if isinstance(exc, CalendarNotLinkedError):
        return ApiError(400, "CALENDAR_NOT_LINKED", "Calendar not connected")
    if status_code in (401, 403):
        return ApiError(401, "TOKEN_EXPIRED", "Calendar access expired")
    if status_code == 404:
        return ApiError(404, "NOT_FOUND", f"{resource.capitalize()} not found")
    return ApiError(500, "INTERNAL_ERROR", f"Failed to {operation} {resource}")
