"""Calendar endpoints, mounted at ``/api/v1/calendars``."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from janus.api.deps import get_provider, provider_errors, require_user_id
from janus.api.models import ApiResponse
from janus.calendar.base import CalendarProvider
from janus.calendar.types import Calendar, CalendarId, UserId

router = APIRouter(prefix="/api/v1/calendars", tags=["calendars"])


@router.get(
    "",
    response_model=ApiResponse[list[Calendar]],
    response_model_exclude_none=True,
)
async def list_calendars(
    user_id: UserId = Depends(require_user_id),
    provider: CalendarProvider = Depends(get_provider),
) -> ApiResponse[list[Calendar]]:
    """List every calendar the user can see on the selected provider."""
    async with provider_errors(
        operation="list",
        resource="calendars",
        user_id=user_id,
        provider_id=provider.provider_id,
    ):
        calendars = await provider.list_calendars()
    return ApiResponse[list[Calendar]](data=calendars)


@router.get(
    "/{calendar_id}",
    response_model=ApiResponse[Calendar],
    response_model_exclude_none=True,
)
async def get_calendar(
    calendar_id: str,
    user_id: UserId = Depends(require_user_id),
    provider: CalendarProvider = Depends(get_provider),
) -> ApiResponse[Calendar]:
    async with provider_errors(
        operation="get",
        resource="calendar",
        user_id=user_id,
        provider_id=provider.provider_id,
        calendar_id=calendar_id,
    ):
        calendar = await provider.get_calendar(CalendarId(calendar_id))
    return ApiResponse[Calendar](data=calendar)
