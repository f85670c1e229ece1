"""Microsoft Graph (Outlook) calendar adapter."""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from janus.calendar.base import CalendarProvider
from janus.calendar.http import DEFAULT_TIMEOUT_S, UpstreamClient
from janus.calendar.rrule import decode_graph_recurrence, encode_graph_recurrence, encode_rrule
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
    EventOrderBy,
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

GRAPH_API_BASE_URL = "https://graph.microsoft.com/v1.0"
MICROSOFT_AUTH_PROVIDER_ID = "microsoft"
MICROSOFT_PROVIDER_NAME = "Microsoft"
UNTITLED = "Untitled"

GRAPH_RESPONSE_STATUS_MAP: dict[str, ResponseStatus] = {
    "none": ResponseStatus.needs_action,
    "notResponded": ResponseStatus.needs_action,
    "organizer": ResponseStatus.accepted,
    "tentativelyAccepted": ResponseStatus.tentative,
    "accepted": ResponseStatus.accepted,
    "declined": ResponseStatus.declined,
}

GRAPH_SHOW_AS_MAP: dict[str, EventStatus] = {
    "free": EventStatus.confirmed,
    "tentative": EventStatus.tentative,
    "busy": EventStatus.confirmed,
    "oof": EventStatus.confirmed,
    "workingElsewhere": EventStatus.confirmed,
    "unknown": EventStatus.confirmed,
}

GRAPH_SENSITIVITY_MAP: dict[str, Visibility] = {
    "normal": Visibility.default,
    "personal": Visibility.private,
    "private": Visibility.private,
    "confidential": Visibility.confidential,
}

_VISIBILITY_TO_SENSITIVITY: dict[Visibility, str] = {
    Visibility.private: "private",
    Visibility.confidential: "confidential",
}

_FRACTION_PATTERN = re.compile(r"\.\d+")

_ORDER_BY_MAP: dict[EventOrderBy, str] = {
    EventOrderBy.start_time: "start/dateTime asc",
    EventOrderBy.updated: "lastModifiedDateTime desc",
}


class OutlookCalendarProvider(CalendarProvider):
    """Maps Microsoft Graph ``/me/calendars`` resources.

    Graph models one reminder per event and a single ``patternedRecurrence``,
    so some canonical fields are written lossily (first reminder override,
    first ``by_month_day`` / ``by_month`` value).
    """

    def __init__(
        self,
        user_id: str,
        *,
        token_source: TokenSource,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = GRAPH_API_BASE_URL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._user_id = user_id
        token_kwargs: dict[str, Any] = {} if clock is None else {"clock": clock}
        self._tokens = AccessTokenCache(
            token_source,
            user_id=user_id,
            auth_provider_id=MICROSOFT_AUTH_PROVIDER_ID,
            provider_name=MICROSOFT_PROVIDER_NAME,
            **token_kwargs,
        )
        self._client = UpstreamClient(
            provider=ProviderId.outlook.value,
            base_url=base_url,
            tokens=self._tokens,
            http_client=http_client,
            timeout_s=timeout_s,
        )

    @property
    def provider_id(self) -> ProviderId:
        return ProviderId.outlook

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_calendars(self) -> list[Calendar]:
        payload = await self._client.request_json(
            "GET", "/me/calendars", operation="list_calendars"
        )
        return [_map_calendar(item) for item in _values(payload)]

    async def get_calendar(self, calendar_id: CalendarId) -> Calendar:
        payload = await self._client.request_json(
            "GET",
            f"/me/calendars/{quote(calendar_id, safe='')}",
            operation="get_calendar",
            calendar_id=calendar_id,
        )
        return _map_calendar(payload)

    async def list_events(self, params: ListEventsParams) -> list[CalendarEvent]:
        query: dict[str, Any] = {}
        filters: list[str] = []
        if params.time_min is not None:
            filters.append(f"start/dateTime ge '{_graph_instant(params.time_min)}'")
        if params.time_max is not None:
            filters.append(f"end/dateTime le '{_graph_instant(params.time_max)}'")
        if filters:
            query["$filter"] = " and ".join(filters)
        if params.max_results is not None:
            query["$top"] = params.max_results
        if params.query:
            query["$search"] = f'"{params.query}"'
        if params.order_by is not None:
            query["$orderby"] = _ORDER_BY_MAP[params.order_by]

        payload = await self._client.request_json(
            "GET",
            _events_path(params.calendar_id),
            operation="list_events",
            params=query or None,
            calendar_id=params.calendar_id,
        )
        return [_map_event(item, params.calendar_id) for item in _values(payload)]

    async def get_event(self, calendar_id: CalendarId, event_id: EventId) -> CalendarEvent:
        return await self._fetch_event(calendar_id, event_id, operation="get_event")

    async def _fetch_event(
        self, calendar_id: CalendarId, event_id: EventId, *, operation: str
    ) -> CalendarEvent:
        payload = await self._client.request_json(
            "GET",
            _event_path(calendar_id, event_id),
            operation=operation,
            calendar_id=calendar_id,
            event_id=event_id,
        )
        return _map_event(payload, calendar_id)

    async def create_event(
        self, calendar_id: CalendarId, params: CreateEventParams
    ) -> CalendarEvent:
        body: dict[str, Any] = {
            "subject": params.summary,
            "start": _to_graph_datetime(params.start),
            "end": _to_graph_datetime(params.end),
            "isAllDay": isinstance(params.start, AllDayEventDateTime),
            "sensitivity": _to_graph_sensitivity(params.visibility),
        }
        body.update(_build_optional_fields(params))
        if params.recurrence is not None:
            body["recurrence"] = encode_graph_recurrence(
                params.recurrence, _boundary_value(params.start)
            )

        payload = await self._client.request_json(
            "POST",
            _events_path(calendar_id),
            operation="create_event",
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
            body["subject"] = params.summary
        if params.start is not None:
            body["start"] = _to_graph_datetime(params.start)
            body["isAllDay"] = isinstance(params.start, AllDayEventDateTime)
        if params.end is not None:
            body["end"] = _to_graph_datetime(params.end)
        if params.visibility is not None:
            body["sensitivity"] = _to_graph_sensitivity(params.visibility)
        body.update(_build_optional_fields(params))

        if params.recurrence is not None:
            start = params.start
            if start is None:
                # The range needs a start date; seed it from the stored event.
                existing = await self._fetch_event(
                    calendar_id, event_id, operation="update_event"
                )
                start = existing.start
            body["recurrence"] = encode_graph_recurrence(
                params.recurrence, _boundary_value(start)
            )

        payload = await self._client.request_json(
            "PATCH",
            _event_path(calendar_id, event_id),
            operation="update_event",
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


def _events_path(calendar_id: str) -> str:
    return f"/me/calendars/{quote(calendar_id, safe='')}/events"


def _event_path(calendar_id: str, event_id: str) -> str:
    return f"{_events_path(calendar_id)}/{quote(event_id, safe='')}"


def _graph_instant(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _boundary_value(value: EventDateTime) -> str:
    if isinstance(value, TimedEventDateTime):
        return value.date_time
    return value.date


def _to_graph_datetime(value: EventDateTime) -> dict[str, Any]:
    if isinstance(value, TimedEventDateTime):
        return {"dateTime": value.date_time, "timeZone": value.time_zone or "UTC"}
    return {"dateTime": f"{value.date}T00:00:00", "timeZone": "UTC"}


def _to_graph_sensitivity(visibility: Visibility | None) -> str:
    if visibility is None:
        return "normal"
    return _VISIBILITY_TO_SENSITIVITY.get(visibility, "normal")


def _to_graph_attendee(attendee: AttendeeInput) -> dict[str, Any]:
    email_address: dict[str, Any] = {"address": attendee.email}
    if attendee.display_name is not None:
        email_address["name"] = attendee.display_name
    return {
        "emailAddress": email_address,
        "type": "optional" if attendee.optional else "required",
    }


def _to_graph_reminders(reminders: EventReminders) -> dict[str, Any]:
    if isinstance(reminders, CustomReminders) and reminders.overrides:
        return {
            "isReminderOn": True,
            "reminderMinutesBeforeStart": reminders.overrides[0].minutes,
        }
    return {"isReminderOn": False}


def _build_optional_fields(params: CreateEventParams | UpdateEventParams) -> dict[str, Any]:
    body: dict[str, Any] = {}
    if params.description is not None:
        body["body"] = {"contentType": "text", "content": params.description}
    if params.location is not None:
        body["location"] = {"displayName": params.location}
    if params.attendees is not None:
        body["attendees"] = [_to_graph_attendee(attendee) for attendee in params.attendees]
    if params.reminders is not None:
        body.update(_to_graph_reminders(params.reminders))
    return body


# ---------------------------------------------------------------------------
# Read direction
# ---------------------------------------------------------------------------


def _values(payload: dict[str, Any]) -> list[dict[str, Any]]:
    values = payload.get("value")
    if not isinstance(values, list):
        return []
    return [item for item in values if isinstance(item, dict)]


def _require_id(payload: dict[str, Any], kind: str) -> str:
    value = payload.get("id")
    if not isinstance(value, str) or not value:
        raise ValueError(f"Graph {kind} payload is missing an id")
    return value


def _normalize_optional_text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value or None


def _parse_graph_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    normalized = value.replace("Z", "+00:00")
    # Graph emits seven fractional digits; fromisoformat accepts at most six.
    normalized = _FRACTION_PATTERN.sub(lambda match: match.group(0)[:7], normalized)
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _map_calendar(payload: dict[str, Any]) -> Calendar:
    return Calendar(
        id=CalendarId(_require_id(payload, "calendar")),
        name=payload.get("name") or UNTITLED,
        color=_normalize_optional_text(payload.get("hexColor")),
        primary=bool(payload.get("isDefaultCalendar", False)),
        access_role=AccessRole.owner if payload.get("canEdit") else AccessRole.reader,
    )


def _map_event_datetime(payload: Any, is_all_day: bool) -> EventDateTime:
    data = payload if isinstance(payload, dict) else {}
    date_time = data.get("dateTime")
    if not isinstance(date_time, str) or not date_time:
        return AllDayEventDateTime(date="")
    if is_all_day:
        return AllDayEventDateTime(date=date_time.split("T", 1)[0])
    return TimedEventDateTime(
        date_time=date_time,
        time_zone=_normalize_optional_text(data.get("timeZone")),
    )


def _map_reminders(is_reminder_on: Any, minutes: Any) -> EventReminders:
    if is_reminder_on and isinstance(minutes, int) and not isinstance(minutes, bool):
        return CustomReminders(
            overrides=[EventReminder(method=ReminderMethod.popup, minutes=minutes)]
        )
    return DefaultReminders()


def _map_status(payload: dict[str, Any]) -> EventStatus:
    if payload.get("isCancelled"):
        return EventStatus.cancelled
    return GRAPH_SHOW_AS_MAP.get(str(payload.get("showAs") or ""), EventStatus.confirmed)


def _map_attendee(payload: dict[str, Any]) -> EventAttendee:
    email_address = payload.get("emailAddress")
    email_data = email_address if isinstance(email_address, dict) else {}
    status = payload.get("status")
    response = status.get("response") if isinstance(status, dict) else None
    return EventAttendee(
        email=str(email_data.get("address") or ""),
        display_name=_normalize_optional_text(email_data.get("name")),
        response_status=GRAPH_RESPONSE_STATUS_MAP.get(
            str(response or "none"), ResponseStatus.needs_action
        ),
        optional=payload.get("type") == "optional",
        organizer=False,
        self_=False,
    )


def _map_organizer(payload: dict[str, Any]) -> EventOrganizer | None:
    organizer = payload.get("organizer")
    email_address = organizer.get("emailAddress") if isinstance(organizer, dict) else None
    if not isinstance(email_address, dict):
        return None
    is_organizer = payload.get("isOrganizer")
    return EventOrganizer(
        email=str(email_address.get("address") or ""),
        display_name=_normalize_optional_text(email_address.get("name")),
        self_=is_organizer if isinstance(is_organizer, bool) else None,
    )


def _map_description(payload: dict[str, Any]) -> str | None:
    preview = payload.get("bodyPreview")
    if isinstance(preview, str):
        return preview
    body = payload.get("body")
    if isinstance(body, dict):
        return _normalize_optional_text(body.get("content"))
    return None


def _map_event(payload: dict[str, Any], calendar_id: str) -> CalendarEvent:
    is_all_day = bool(payload.get("isAllDay"))
    location = payload.get("location")
    attendees = payload.get("attendees")
    series_master_id = _normalize_optional_text(payload.get("seriesMasterId"))
    rule = decode_graph_recurrence(payload.get("recurrence"))

    return CalendarEvent(
        id=EventId(_require_id(payload, "event")),
        calendar_id=CalendarId(calendar_id),
        summary=payload.get("subject") or UNTITLED,
        description=_map_description(payload),
        location=(
            _normalize_optional_text(location.get("displayName"))
            if isinstance(location, dict)
            else None
        ),
        start=_map_event_datetime(payload.get("start"), is_all_day),
        end=_map_event_datetime(payload.get("end"), is_all_day),
        status=_map_status(payload),
        attendees=(
            [_map_attendee(item) for item in attendees if isinstance(item, dict)]
            if isinstance(attendees, list)
            else None
        ),
        organizer=_map_organizer(payload),
        reminders=_map_reminders(
            payload.get("isReminderOn"), payload.get("reminderMinutesBeforeStart")
        ),
        recurrence=[encode_rrule(rule)] if rule is not None else None,
        created=_parse_graph_datetime(payload.get("createdDateTime")),
        updated=_parse_graph_datetime(payload.get("lastModifiedDateTime")),
        html_link=_normalize_optional_text(payload.get("webLink")),
        recurring_event_id=EventId(series_master_id) if series_master_id else None,
        visibility=GRAPH_SENSITIVITY_MAP.get(
            str(payload.get("sensitivity") or "normal"), Visibility.default
        ),
    )
