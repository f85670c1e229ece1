"""Event endpoints, mounted under ``/api/v1/calendars/{calendar_id}/events``.

Request bodies are validated with the shared schemas in ``janus.validation``
rather than FastAPI body models, so malformed JSON and schema violations
produce the ``INVALID_JSON`` / ``VALIDATION_ERROR`` envelopes.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, ValidationError

from janus.api.deps import ApiError, get_provider, provider_errors, require_user_id
from janus.api.models import ApiResponse
from janus.calendar.base import CalendarProvider
from janus.calendar.types import CalendarEvent, CalendarId, EventId, ListEventsParams, UserId
from janus.validation import (
    CreateEventInput,
    ListEventsQuery,
    UpdateEventInput,
    format_validation_errors,
    to_create_event_params,
    to_update_event_params,
)

router = APIRouter(prefix="/api/v1/calendars", tags=["events"])


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as exc:
        raise ApiError(400, "INVALID_JSON", "Invalid JSON body") from exc


def _validate[M: BaseModel](model: type[M], payload: Any) -> M:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ApiError(
            400,
            "VALIDATION_ERROR",
            "Validation failed",
            details=format_validation_errors(exc),
        ) from exc


@router.get(
    "/{calendar_id}/events",
    response_model=ApiResponse[list[CalendarEvent]],
    response_model_exclude_none=True,
)
async def list_events(
    calendar_id: str,
    request: Request,
    user_id: UserId = Depends(require_user_id),
    provider: CalendarProvider = Depends(get_provider),
) -> ApiResponse[list[CalendarEvent]]:
    """List events in a calendar.

    Query parameters: ``timeMin``, ``timeMax``, ``maxResults`` (1-2500), ``q``,
    ``singleEvents`` (``true``/``false``) and ``orderBy``
    (``startTime``/``updated``).
    """
    query = _validate(ListEventsQuery, dict(request.query_params))
    params = ListEventsParams(
        calendar_id=CalendarId(calendar_id),
        time_min=query.time_min,
        time_max=query.time_max,
        max_results=query.max_results,
        query=query.q,
        single_events=query.single_events,
        order_by=query.order_by,
    )
    async with provider_errors(
        operation="list",
        resource="events",
        user_id=user_id,
        provider_id=provider.provider_id,
        calendar_id=calendar_id,
    ):
        events = await provider.list_events(params)
    return ApiResponse[list[CalendarEvent]](data=events)


@router.post(
    "/{calendar_id}/events",
    status_code=201,
    response_model=ApiResponse[CalendarEvent],
    response_model_exclude_none=True,
)
async def create_event(
    calendar_id: str,
    request: Request,
    user_id: UserId = Depends(require_user_id),
    provider: CalendarProvider = Depends(get_provider),
) -> ApiResponse[CalendarEvent]:
    payload = _validate(CreateEventInput, await _read_json(request))
    async with provider_errors(
        operation="create",
        resource="event",
        user_id=user_id,
        provider_id=provider.provider_id,
        calendar_id=calendar_id,
    ):
        event = await provider.create_event(
            CalendarId(calendar_id), to_create_event_params(payload)
        )
    return ApiResponse[CalendarEvent](data=event)


@router.get(
    "/{calendar_id}/events/{event_id}",
    response_model=ApiResponse[CalendarEvent],
    response_model_exclude_none=True,
)
async def get_event(
    calendar_id: str,
    event_id: str,
    user_id: UserId = Depends(require_user_id),
    provider: CalendarProvider = Depends(get_provider),
) -> ApiResponse[CalendarEvent]:
    async with provider_errors(
        operation="get",
        resource="event",
        user_id=user_id,
        provider_id=provider.provider_id,
        calendar_id=calendar_id,
        event_id=event_id,
    ):
        event = await provider.get_event(CalendarId(calendar_id), EventId(event_id))
    return ApiResponse[CalendarEvent](data=event)


@router.patch(
    "/{calendar_id}/events/{event_id}",
    response_model=ApiResponse[CalendarEvent],
    response_model_exclude_none=True,
)
async def update_event(
    calendar_id: str,
    event_id: str,
    request: Request,
    user_id: UserId = Depends(require_user_id),
    provider: CalendarProvider = Depends(get_provider),
) -> ApiResponse[CalendarEvent]:
    """Partially update an event; omitted fields are left untouched."""
    payload = _validate(UpdateEventInput, await _read_json(request))
    async with provider_errors(
        operation="update",
        resource="event",
        user_id=user_id,
        provider_id=provider.provider_id,
        calendar_id=calendar_id,
        event_id=event_id,
    ):
        event = await provider.update_event(
            CalendarId(calendar_id), EventId(event_id), to_update_event_params(payload)
        )
    return ApiResponse[CalendarEvent](data=event)


@router.delete("/{calendar_id}/events/{event_id}", status_code=204)
async def delete_event(
    calendar_id: str,
    event_id: str,
    user_id: UserId = Depends(require_user_id),
    provider: CalendarProvider = Depends(get_provider),
) -> Response:
    async with provider_errors(
        operation="delete",
        resource="event",
        user_id=user_id,
        provider_id=provider.provider_id,
        calendar_id=calendar_id,
        event_id=event_id,
    ):
        await provider.delete_event(CalendarId(calendar_id), EventId(event_id))
    return Response(status_code=204)
