"""Calendar tools exposed to an LLM over MCP.

Tools never raise: provider failures come back as
``{"error": True, "message": ..., "code": ...}`` so the model can relay them.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from fastmcp import FastMCP

from janus.calendar.base import CalendarProvider
from janus.calendar.errors import CalendarNotLinkedError, UnsupportedProviderError
from janus.calendar.types import (
    AttendeeInput,
    CalendarId,
    CreateEventParams,
    EventId,
    EventOrderBy,
    ListEventsParams,
    ProviderId,
    SendUpdates,
    TimedEventDateTime,
    UpdateEventParams,
)
from janus.core.telemetry import calendar_span, mark_span_failed
from janus.validation import (
    RecurrenceInput,
    RemindersInput,
    parse_instant,
    to_event_reminders,
    to_recurrence_rule,
)

logger = logging.getLogger(__name__)

_PROVIDER_DISPLAY_NAMES: dict[str, str] = {
    ProviderId.google.value: "Google Calendar",
    ProviderId.outlook.value: "Outlook Calendar",
    "microsoft": "Outlook Calendar",
}


def tool_error(exc: Exception, *, user_id: str, operation: str) -> dict[str, Any]:
    """Log a tool failure and build the model-facing error payload."""
    mark_span_failed(exc)
    logger.warning(
        "tool_%s_failed",
        operation,
        extra={"user_id": user_id, "error": str(exc)},
        exc_info=exc,
    )

    if isinstance(exc, CalendarNotLinkedError):
        display_name = _PROVIDER_DISPLAY_NAMES.get(exc.provider_id, f"{exc.provider_name} Calendar")
        return {
            "error": True,
            "message": f"{display_name} is not connected. Please link your account first.",
            "code": "NOT_LINKED",
        }
    if isinstance(exc, UnsupportedProviderError):
        return {"error": True, "message": str(exc), "code": "UNSUPPORTED_PROVIDER"}
    return {
        "error": True,
        "message": f"Failed to {operation}. Please try again.",
        "code": "OPERATION_FAILED",
    }


def _dump(model: Any) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def _require_instant(value: str, name: str) -> datetime:
    parsed = parse_instant(value)
    if parsed is None:
        raise ValueError(f"{name} must be an ISO 8601 date-time, got {value!r}")
    return parsed


def register_calendar_tools(mcp: Any, *, user_id: str, provider: CalendarProvider) -> None:
    """Register the six calendar tools on *mcp* for one user and provider.

    Each call runs inside a ``janus.tool.<name>`` span with the user,
    provider, calendar and event ids bound for logging.
    """

    def _span(operation: str, calendar_id: str | None = None, event_id: str | None = None):
        return calendar_span(
            f"janus.tool.{operation}",
            user_id=user_id,
            provider_id=provider.provider_id,
            calendar_id=calendar_id,
            event_id=event_id,
        )

    @mcp.tool()
    async def list_calendars() -> Any:
        """List all calendars available to the user.

        Call this first to discover calendar IDs. The primary calendar ID is
        usually 'primary'. Use the returned IDs for the other tools.
        """
        with _span("list_calendars"):
            try:
                calendars = await provider.list_calendars()
            except Exception as exc:
                return tool_error(exc, user_id=user_id, operation="list_calendars")
        return [_dump(calendar) for calendar in calendars]

    @mcp.tool()
    async def list_events(
        calendar_id: str,
        time_min: str,
        time_max: str,
        max_results: int | None = None,
        query: str | None = None,
    ) -> Any:
        """List events in a calendar within a date range.

        For today's events use today's date as time_min and tomorrow as
        time_max (ISO 8601, e.g. 2024-01-15T00:00:00Z). Always pass both.
        Recurring events are expanded into individual occurrences, ordered by
        start time.
        """
        with _span("list_events", calendar_id):
            try:
                params = ListEventsParams(
                    calendar_id=CalendarId(calendar_id),
                    time_min=_require_instant(time_min, "time_min"),
                    time_max=_require_instant(time_max, "time_max"),
                    max_results=max_results,
                    query=query,
                    single_events=True,
                    order_by=EventOrderBy.start_time,
                )
                events = await provider.list_events(params)
            except Exception as exc:
                return tool_error(exc, user_id=user_id, operation="list_events")
        return [_dump(event) for event in events]

    @mcp.tool()
    async def get_event(calendar_id: str, event_id: str) -> Any:
        """Get full details of one event: times, location, attendees, reminders, recurrence."""
        with _span("get_event", calendar_id, event_id):
            try:
                event = await provider.get_event(CalendarId(calendar_id), EventId(event_id))
            except Exception as exc:
                return tool_error(exc, user_id=user_id, operation="get_event")
        return _dump(event)

    @mcp.tool()
    async def create_event(
        calendar_id: str,
        summary: str,
        start_date_time: str,
        end_date_time: str,
        time_zone: str,
        description: str | None = None,
        location: str | None = None,
        attendees: list[str] | None = None,
        reminders: RemindersInput | None = None,
        recurrence: RecurrenceInput | None = None,
    ) -> Any:
        """Create a calendar event and notify attendees.

        Times are ISO 8601 local date-times (e.g. 2024-01-15T14:00:00) and
        time_zone is a required IANA zone such as 'Europe/Paris'. Recurrence
        examples: {frequency: 'daily'}, {frequency: 'weekly', byDay: ['MO',
        'WE', 'FR']}, {frequency: 'monthly', byMonthDay: [1]}.
        """
        with _span("create_event", calendar_id):
            try:
                params = CreateEventParams(
                    summary=summary,
                    description=description,
                    location=location,
                    start=TimedEventDateTime(date_time=start_date_time, time_zone=time_zone),
                    end=TimedEventDateTime(date_time=end_date_time, time_zone=time_zone),
                    attendees=(
                        [AttendeeInput(email=email) for email in attendees] if attendees else None
                    ),
                    send_updates=SendUpdates.all,
                    reminders=to_event_reminders(reminders) if reminders else None,
                    recurrence=to_recurrence_rule(recurrence) if recurrence else None,
                )
                event = await provider.create_event(CalendarId(calendar_id), params)
            except Exception as exc:
                return tool_error(exc, user_id=user_id, operation="create_event")
        return _dump(event)

    @mcp.tool()
    async def update_event(
        calendar_id: str,
        event_id: str,
        summary: str | None = None,
        description: str | None = None,
        location: str | None = None,
        start_date_time: str | None = None,
        end_date_time: str | None = None,
        time_zone: str | None = None,
        reminders: RemindersInput | None = None,
        recurrence: RecurrenceInput | None = None,
    ) -> Any:
        """Update an existing event. Only pass the fields that should change."""
        with _span("update_event", calendar_id, event_id):
            try:
                params = UpdateEventParams(
                    summary=summary,
                    description=description,
                    location=location,
                    start=(
                        TimedEventDateTime(date_time=start_date_time, time_zone=time_zone)
                        if start_date_time
                        else None
                    ),
                    end=(
                        TimedEventDateTime(date_time=end_date_time, time_zone=time_zone)
                        if end_date_time
                        else None
                    ),
                    send_updates=SendUpdates.all,
                    reminders=to_event_reminders(reminders) if reminders else None,
                    recurrence=to_recurrence_rule(recurrence) if recurrence else None,
                )
                event = await provider.update_event(
                    CalendarId(calendar_id), EventId(event_id), params
                )
            except Exception as exc:
                return tool_error(exc, user_id=user_id, operation="update_event")
        return _dump(event)

    @mcp.tool()
    async def delete_event(calendar_id: str, event_id: str) -> Any:
        """Permanently delete an event. This cannot be undone."""
        with _span("delete_event", calendar_id, event_id):
            try:
                await provider.delete_event(CalendarId(calendar_id), EventId(event_id))
            except Exception as exc:
                return tool_error(exc, user_id=user_id, operation="delete_event")
        return {"success": True, "message": f"Event {event_id} deleted successfully"}


def create_calendar_mcp(user_id: str, provider: CalendarProvider) -> FastMCP:
    """Build a FastMCP server exposing the calendar tools for one user."""
    mcp = FastMCP("janus-calendar")
    register_calendar_tools(mcp, user_id=user_id, provider=provider)
    return mcp
