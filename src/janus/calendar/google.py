"""Google Calendar v3 adapter."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from janus.calendar.base import CalendarProvider
from janus.calendar.http import DEFAULT_TIMEOUT_S, UpstreamClient
from janus.calendar.rrule import encode_rrule
from janus.calendar.tokens import AccessTokenCache
from janus.calendar.types import (
    AccessRole,
    AllDayEventDateTime,
    AttendeeInput,
    Calendar,
    CalendarEvent,
    CalendarId,
    CreateEventParams,
    CustomReminders,
    DefaultReminders,
    EventAttendee,
    EventDateTime,
    EventId,
    EventOrganizer,
    EventReminder,
    EventReminders,
    EventStatus,
    ListEventsParams,
    ProviderId,
    ReminderMethod,
    ResponseStatus,
    TimedEventDateTime,
    UpdateEventParams,
    Visibility,
)

if TYPE_CHECKING:
    from janus.auth import TokenSource

GOOGLE_CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"
GOOGLE_AUTH_PROVIDER_ID = "google"
GOOGLE_PROVIDER_NAME = "Google"
UNTITLED = "Untitled"


class GoogleCalendarProvider(CalendarProvider):
    """Maps Google Calendar v3 calendar-list and event resources."""

    def __init__(
        self,
        user_id: str,
        *,
        token_source: TokenSource,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = GOOGLE_CALENDAR_API_BASE_URL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._user_id = user_id
        token_kwargs: dict[str, Any] = {} if clock is None else {"clock": clock}
        self._tokens = AccessTokenCache(
            token_source,
            user_id=user_id,
            auth_provider_id=GOOGLE_AUTH_PROVIDER_ID,
            provider_name=GOOGLE_PROVIDER_NAME,
            **token_kwargs,
        )
        self._client = UpstreamClient(
            provider=ProviderId.google.value,
            base_url=base_url,
            tokens=self._tokens,
            http_client=http_client,
            timeout_s=timeout_s,
        )

    @property
    def provider_id(self) -> ProviderId:
        return ProviderId.google

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_calendars(self) -> list[Calendar]:
        payload = await self._client.request_json(
            "GET", "/users/me/calendarList", operation="list_calendars"
        )
        return [_map_calendar(item) for item in _items(payload)]

    async def get_calendar(self, calendar_id: CalendarId) -> Calendar:
        payload = await self._client.request_json(
            "GET",
            f"/users/me/calendarList/{quote(calendar_id, safe='')}",
            operation="get_calendar",
            calendar_id=calendar_id,
        )
        return _map_calendar(payload)

    async def list_events(self, params: ListEventsParams) -> list[CalendarEvent]:
        query: dict[str, Any] = {}
        if params.time_min is not None:
            query["timeMin"] = _google_rfc3339(params.time_min)
        if params.time_max is not None:
            query["timeMax"] = _google_rfc3339(params.time_max)
        if params.max_results is not None:
            query["maxResults"] = params.max_results
        if params.query:
            query["q"] = params.query
        if params.single_events is not None:
            query["singleEvents"] = "true" if params.single_events else "false"
        if params.order_by is not None:
            query["orderBy"] = params.order_by.value

        payload = await self._client.request_json(
            "GET",
            f"/calendars/{quote(params.calendar_id, safe='')}/events",
            operation="list_events",
            params=query,
            calendar_id=params.calendar_id,
        )
        return [_map_event(item, params.calendar_id) for item in _items(payload)]

    async def get_event(self, calendar_id: CalendarId, event_id: EventId) -> CalendarEvent:
        payload = await self._client.request_json(
            "GET",
            _event_path(calendar_id, event_id),
            operation="get_event",
            calendar_id=calendar_id,
            event_id=event_id,
        )
        return _map_event(payload, calendar_id)

    async def create_event(
        self, calendar_id: CalendarId, params: CreateEventParams
    ) -> CalendarEvent:
        body: dict[str, Any] = {
            "summary": params.summary,
            "start": _to_google_datetime(params.start),
            "end": _to_google_datetime(params.end),
        }
        body.update(_build_optional_fields(params))

        payload = await self._client.request_json(
            "POST",
            f"/calendars/{quote(calendar_id, safe='')}/events",
            operation="create_event",
            params=_send_updates_params(params.send_updates),
            json_body=body,
            calendar_id=calendar_id,
        )
        return _map_event(payload, calendar_id)

    async def update_event(
        self,
        calendar_id: CalendarId,
        event_id: EventId,
        params: UpdateEventParams,
    ) -> CalendarEvent:
        body: dict[str, Any] = {}
        if params.summary is not None:
            body["summary"] = params.summary
        if params.start is not None:
            body["start"] = _to_google_datetime(params.start)
        if params.end is not None:
            body["end"] = _to_google_datetime(params.end)
        body.update(_build_optional_fields(params))

        payload = await self._client.request_json(
            "PATCH",
            _event_path(calendar_id, event_id),
            operation="update_event",
            params=_send_updates_params(params.send_updates),
            json_body=body,
            calendar_id=calendar_id,
            event_id=event_id,
        )
        return _map_event(payload, calendar_id)

    async def delete_event(self, calendar_id: CalendarId, event_id: EventId) -> None:
        await self._client.request_json(
            "DELETE",
            _event_path(calendar_id, event_id),
            operation="delete_event",
            calendar_id=calendar_id,
            event_id=event_id,
        )


# ---------------------------------------------------------------------------
# Write direction
# ---------------------------------------------------------------------------


def _event_path(calendar_id: str, event_id: str) -> str:
    return f"/calendars/{quote(calendar_id, safe='')}/events/{quote(event_id, safe='')}"


def _send_updates_params(send_updates: Any) -> dict[str, Any] | None:
    if send_updates is None:
        return None
    return {"sendUpdates": send_updates.value}


def _build_optional_fields(params: CreateEventParams | UpdateEventParams) -> dict[str, Any]:
    """Fields shared by insert and patch bodies; only set fields are included."""
    body: dict[str, Any] = {}
    if params.description is not None:
        body["description"] = params.description
    if params.location is not None:
        body["location"] = params.location
    if params.attendees is not None:
        body["attendees"] = [_to_google_attendee(attendee) for attendee in params.attendees]
    if params.visibility is not None:
        body["visibility"] = params.visibility.value
    if params.reminders is not None:
        body["reminders"] = _to_google_reminders(params.reminders)
    if params.recurrence is not None:
        body["recurrence"] = [encode_rrule(params.recurrence)]
    return body


def _to_google_datetime(value: EventDateTime) -> dict[str, Any]:
    if isinstance(value, TimedEventDateTime):
        payload: dict[str, Any] = {"dateTime": value.date_time}
        if value.time_zone:
            payload["timeZone"] = value.time_zone
        return payload
    return {"date": value.date}


def _to_google_attendee(attendee: AttendeeInput) -> dict[str, Any]:
    payload: dict[str, Any] = {"email": attendee.email}
    if attendee.display_name is not None:
        payload["displayName"] = attendee.display_name
    if attendee.optional is not None:
        payload["optional"] = attendee.optional
    return payload


def _to_google_reminders(reminders: EventReminders) -> dict[str, Any]:
    if isinstance(reminders, DefaultReminders):
        return {"useDefault": True}
    return {
        "useDefault": False,
        "overrides": [
            {"method": override.method.value, "minutes": override.minutes}
            for override in reminders.overrides
        ],
    }


def _google_rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Read direction
# ---------------------------------------------------------------------------


def _items(payload: dict[str, Any]) -> list[dict[str, Any]]:
    items = payload.get("items")
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def _require_id(payload: dict[str, Any], kind: str) -> str:
    value = payload.get("id")
    if not isinstance(value, str) or not value:
        raise ValueError(f"Google {kind} payload is missing an id")
    return value


def _normalize_optional_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value or None


def _parse_google_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def _enum_or_default(enum_cls: Any, value: Any, default: Any) -> Any:
    try:
        return enum_cls(value)
    except ValueError:
        return default


def _map_calendar(payload: dict[str, Any]) -> Calendar:
    return Calendar(
        id=CalendarId(_require_id(payload, "calendar")),
        name=payload.get("summary") or UNTITLED,
        description=_normalize_optional_text(payload.get("description")),
        color=_normalize_optional_text(payload.get("backgroundColor")),
        primary=bool(payload.get("primary", False)),
        access_role=_enum_or_default(AccessRole, payload.get("accessRole"), AccessRole.reader),
        time_zone=_normalize_optional_text(payload.get("timeZone")),
    )


def _map_event_datetime(payload: Any) -> EventDateTime:
    data = payload if isinstance(payload, dict) else {}
    date_time = data.get("dateTime")
    if isinstance(date_time, str) and date_time:
        return TimedEventDateTime(
            date_time=date_time,
            time_zone=_normalize_optional_text(data.get("timeZone")),
        )
    date_value = data.get("date")
    return AllDayEventDateTime(date=date_value if isinstance(date_value, str) else "")


def _map_reminders(payload: Any) -> EventReminders | None:
    if not isinstance(payload, dict):
        return None
    if payload.get("useDefault"):
        return DefaultReminders()
    overrides = payload.get("overrides")
    if isinstance(overrides, list) and overrides:
        return CustomReminders(
            overrides=[
                EventReminder(
                    method=_enum_or_default(
                        ReminderMethod, override.get("method"), ReminderMethod.popup
                    ),
                    minutes=int(override.get("minutes") or 0),
                )
                for override in overrides
                if isinstance(override, dict)
            ]
        )
    # useDefault=false with no overrides still means calendar defaults.
    return DefaultReminders()


def _map_attendee(payload: dict[str, Any]) -> EventAttendee:
    return EventAttendee(
        email=str(payload.get("email") or ""),
        display_name=_normalize_optional_text(payload.get("displayName")),
        response_status=_enum_or_default(
            ResponseStatus, payload.get("responseStatus"), ResponseStatus.needs_action
        ),
        optional=payload.get("optional"),
        organizer=payload.get("organizer"),
        self_=payload.get("self"),
    )


def _map_organizer(payload: Any) -> EventOrganizer | None:
    if not isinstance(payload, dict):
        return None
    return EventOrganizer(
        email=str(payload.get("email") or ""),
        display_name=_normalize_optional_text(payload.get("displayName")),
        self_=payload.get("self"),
    )


def _map_event(payload: dict[str, Any], calendar_id: str) -> CalendarEvent:
    attendees = payload.get("attendees")
    recurrence = payload.get("recurrence")
    recurring_event_id = _normalize_optional_text(payload.get("recurringEventId"))

    return CalendarEvent(
        id=EventId(_require_id(payload, "event")),
        calendar_id=CalendarId(calendar_id),
        summary=payload.get("summary") or UNTITLED,
        description=_normalize_optional_text(payload.get("description")),
        location=_normalize_optional_text(payload.get("location")),
        start=_map_event_datetime(payload.get("start")),
        end=_map_event_datetime(payload.get("end")),
        status=_enum_or_default(EventStatus, payload.get("status"), EventStatus.confirmed),
        attendees=(
            [_map_attendee(item) for item in attendees if isinstance(item, dict)]
            if isinstance(attendees, list)
            else None
        ),
        organizer=_map_organizer(payload.get("organizer")),
        reminders=_map_reminders(payload.get("reminders")),
        recurrence=(
            [line for line in recurrence if isinstance(line, str)]
            if isinstance(recurrence, list)
            else None
        ),
        created=_parse_google_datetime(payload.get("created")),
        updated=_parse_google_datetime(payload.get("updated")),
        html_link=_normalize_optional_text(payload.get("htmlLink")),
        recurring_event_id=EventId(recurring_event_id) if recurring_event_id else None,
        visibility=_enum_or_default(Visibility, payload.get("visibility"), Visibility.default),
    )
