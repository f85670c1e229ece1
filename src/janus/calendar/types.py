"""Provider-neutral calendar domain model.

Every provider adapter maps its upstream payloads into these shapes and back.
Models serialize with camelCase aliases (``calendarId``, ``dateTime``, ...)
and accept either the alias or the Python field name on input.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Literal, NewType

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

CalendarId = NewType("CalendarId", str)
EventId = NewType("EventId", str)
UserId = NewType("UserId", str)

_TIME_OF_DAY_PATTERN = re.compile(r"T\d{2}:\d{2}")
_ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ProviderId(StrEnum):
    """Calendar providers recognized by the registry."""

    google = "google"
    outlook = "outlook"
    apple = "apple"


class AccessRole(StrEnum):
    owner = "owner"
    writer = "writer"
    reader = "reader"
    free_busy_reader = "freeBusyReader"


class ResponseStatus(StrEnum):
    """RSVP state of an attendee."""

    needs_action = "needsAction"
    declined = "declined"
    tentative = "tentative"
    accepted = "accepted"


class EventStatus(StrEnum):
    confirmed = "confirmed"
    tentative = "tentative"
    cancelled = "cancelled"


class Visibility(StrEnum):
    default = "default"
    public = "public"
    private = "private"
    confidential = "confidential"


class EventOrderBy(StrEnum):
    start_time = "startTime"
    updated = "updated"


class SendUpdates(StrEnum):
    """Controls whether attendees are notified about a change."""

    all = "all"
    external_only = "externalOnly"
    none = "none"


class ReminderMethod(StrEnum):
    email = "email"
    popup = "popup"
    sms = "sms"


class RecurrenceFrequency(StrEnum):
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


class Weekday(StrEnum):
    """RFC 5545 two-letter weekday codes."""

    MO = "MO"
    TU = "TU"
    WE = "WE"
    TH = "TH"
    FR = "FR"
    SA = "SA"
    SU = "SU"


class CalendarModel(BaseModel):
    """Base for domain models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Recurrence
# ---------------------------------------------------------------------------


class CountEnd(CalendarModel):
    type: Literal["count"] = "count"
    count: int = Field(ge=1)


def normalize_until(value: str) -> str:
    """Return *value* as ``YYYY-MM-DD`` or a second-precision UTC ``...Z`` instant.

    Instants with an offset are converted to UTC and sub-second digits are
    dropped. Date-times without an offset are rejected.
    """
    text = value.strip()
    if _ISO_DATE_PATTERN.match(text):
        try:
            datetime.strptime(text, "%Y-%m-%d")
        except ValueError as exc:
            raise ValueError(f"until is not a valid date: {value!r}") from exc
        return text
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"until must be an ISO date or date-time: {value!r}") from exc
    if parsed.tzinfo is None:
        raise ValueError(f"until date-time must include a UTC offset: {value!r}")
    return parsed.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class UntilEnd(CalendarModel):
    """Recurrence ends at an ISO date (``2024-12-31``) or instant (``...T23:59:59Z``)."""

    type: Literal["until"] = "until"
    until: str = Field(min_length=1)

    @field_validator("until")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return normalize_until(value)


class ForeverEnd(CalendarModel):
    type: Literal["forever"] = "forever"


RecurrenceEnd = Annotated[CountEnd | UntilEnd | ForeverEnd, Field(discriminator="type")]


class RecurrenceRule(CalendarModel):
    """Canonical recurrence representation shared by all providers."""

    frequency: RecurrenceFrequency
    interval: int = Field(default=1, ge=1)
    end: RecurrenceEnd = Field(default_factory=ForeverEnd)
    by_day: list[Weekday] | None = None
    by_month_day: list[Annotated[int, Field(ge=1, le=31)]] | None = None
    by_month: list[Annotated[int, Field(ge=1, le=12)]] | None = None

    @field_validator("by_day", "by_month_day", "by_month", mode="after")
    @classmethod
    def _empty_list_is_absent(cls, value: list | None) -> list | None:
        return value or None


# ---------------------------------------------------------------------------
# Date/time boundaries
# ---------------------------------------------------------------------------


class TimedEventDateTime(CalendarModel):
    kind: Literal["timed"] = "timed"
    date_time: str
    time_zone: str | None = None

    @field_validator("date_time")
    @classmethod
    def _require_time_of_day(cls, value: str) -> str:
        if not _TIME_OF_DAY_PATTERN.search(value):
            raise ValueError(f"timed dateTime must include a time of day: {value!r}")
        return value


class AllDayEventDateTime(CalendarModel):
    kind: Literal["allDay"] = "allDay"
    date: str

    @field_validator("date")
    @classmethod
    def _reject_time_of_day(cls, value: str) -> str:
        if "T" in value:
            raise ValueError(f"all-day date must not include a time of day: {value!r}")
        return value


EventDateTime = Annotated[TimedEventDateTime | AllDayEventDateTime, Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Reminders and people
# ---------------------------------------------------------------------------


class EventReminder(CalendarModel):
    method: ReminderMethod
    minutes: int


class DefaultReminders(CalendarModel):
    type: Literal["default"] = "default"


class CustomReminders(CalendarModel):
    type: Literal["custom"] = "custom"
    overrides: list[EventReminder] = Field(default_factory=list)


EventReminders = Annotated[DefaultReminders | CustomReminders, Field(discriminator="type")]


class EventAttendee(CalendarModel):
    email: str
    display_name: str | None = None
    response_status: ResponseStatus | None = None
    optional: bool | None = None
    organizer: bool | None = None
    self_: bool | None = Field(default=None, alias="self")


class EventOrganizer(CalendarModel):
    email: str
    display_name: str | None = None
    self_: bool | None = Field(default=None, alias="self")


class AttendeeInput(CalendarModel):
    """Writable subset of an attendee."""

    email: str
    display_name: str | None = None
    optional: bool | None = None


# ---------------------------------------------------------------------------
# Calendars and events
# ---------------------------------------------------------------------------


class Calendar(CalendarModel):
    id: CalendarId
    name: str
    description: str | None = None
    color: str | None = None
    primary: bool = False
    access_role: AccessRole
    time_zone: str | None = None


class CalendarEvent(CalendarModel):
    """Canonical event shape produced by every provider adapter."""

    id: EventId
    calendar_id: CalendarId
    summary: str
    description: str | None = None
    location: str | None = None
    start: EventDateTime
    end: EventDateTime
    status: EventStatus = EventStatus.confirmed
    attendees: list[EventAttendee] | None = None
    organizer: EventOrganizer | None = None
    reminders: EventReminders | None = None
    # One RRULE line in practice; providers may append exception lines.
    recurrence: list[str] | None = None
    created: datetime | None = None
    updated: datetime | None = None
    html_link: str | None = None
    recurring_event_id: EventId | None = None
    visibility: Visibility = Visibility.default


class ListEventsParams(CalendarModel):
    calendar_id: CalendarId
    time_min: datetime | None = None
    time_max: datetime | None = None
    max_results: int | None = Field(default=None, ge=1)
    query: str | None = None
    single_events: bool | None = None
    order_by: EventOrderBy | None = None


class CreateEventParams(CalendarModel):
    summary: str
    description: str | None = None
    location: str | None = None
    start: EventDateTime
    end: EventDateTime
    attendees: list[AttendeeInput] | None = None
    visibility: Visibility | None = None
    send_updates: SendUpdates | None = None
    reminders: EventReminders | None = None
    recurrence: RecurrenceRule | None = None


class UpdateEventParams(CalendarModel):
    """Partial patch: ``None`` fields are left untouched upstream."""

    summary: str | None = None
    description: str | None = None
    location: str | None = None
    start: EventDateTime | None = None
    end: EventDateTime | None = None
    attendees: list[AttendeeInput] | None = None
    visibility: Visibility | None = None
    send_updates: SendUpdates | None = None
    reminders: EventReminders | None = None
    recurrence: RecurrenceRule | None = None


def to_calendar_id(value: str) -> CalendarId:
    return CalendarId(value)


def to_event_id(value: str) -> EventId:
    return EventId(value)


def to_user_id(value: str) -> UserId:
    return UserId(value)
