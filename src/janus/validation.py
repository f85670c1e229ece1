"""Request schemas shared by the REST and tool layers.

The schemas accept the public JSON shape (``dateTime``/``date`` boundaries,
``useDefault`` reminders, flat ``count``/``until`` recurrence) and the
``to_*`` converters turn validated input into the canonical calendar types.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from pydantic import Field, ValidationError, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

from janus.calendar.types import (
    AllDayEventDateTime,
    AttendeeInput,
    CalendarModel,
    CountEnd,
    CreateEventParams,
    CustomReminders,
    DefaultReminders,
    EventDateTime,
    EventOrderBy,
    EventReminder,
    EventReminders,
    ForeverEnd,
    ProviderId,
    RecurrenceEnd,
    RecurrenceFrequency,
    RecurrenceRule,
    ReminderMethod,
    SendUpdates,
    TimedEventDateTime,
    UntilEnd,
    UpdateEventParams,
    Visibility,
    Weekday,
    normalize_until,
)

MAX_LIST_RESULTS = 2500

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_TIME_OF_DAY_PATTERN = re.compile(r"T\d{2}:\d{2}")


def validate_provider_id(value: Any) -> ProviderId | None:
    """Case-insensitive provider lookup; ``None`` for anything unrecognized."""
    if not isinstance(value, str):
        return None
    try:
        return ProviderId(value.strip().lower())
    except ValueError:
        return None


def parse_instant(value: Any) -> datetime | None:
    """Parse an ISO 8601 date or date-time; ``None`` when unparseable."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class EventDateTimeInput(CalendarModel):
    date_time: str | None = None
    date: str | None = None
    time_zone: str | None = None

    @model_validator(mode="after")
    def _require_date_or_date_time(self) -> EventDateTimeInput:
        if self.date_time is None and self.date is None:
            raise ValueError("Either dateTime or date must be provided")
        if self.date_time is not None and not _TIME_OF_DAY_PATTERN.search(self.date_time):
            raise ValueError("dateTime must include a time of day")
        if self.date_time is None and self.date is not None and "T" in self.date:
            raise ValueError("date must not include a time of day")
        return self


class ReminderOverrideInput(CalendarModel):
    method: ReminderMethod
    minutes: int = Field(ge=0)


class RemindersInput(CalendarModel):
    use_default: bool
    overrides: list[ReminderOverrideInput] | None = None


class RecurrenceInput(CalendarModel):
    frequency: RecurrenceFrequency
    interval: int | None = Field(default=None, ge=1)
    count: int | None = Field(default=None, ge=1)
    until: str | None = None
    by_day: list[Weekday] | None = None
    by_month_day: list[int] | None = None
    by_month: list[int] | None = None

    @field_validator("until")
    @classmethod
    def _validate_until(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_until(value)

    @field_validator("by_month_day")
    @classmethod
    def _validate_month_days(cls, value: list[int] | None) -> list[int] | None:
        if value is not None and any(day < 1 or day > 31 for day in value):
            raise ValueError("byMonthDay values must be between 1 and 31")
        return value

    @field_validator("by_month")
    @classmethod
    def _validate_months(cls, value: list[int] | None) -> list[int] | None:
        if value is not None and any(month < 1 or month > 12 for month in value):
            raise ValueError("byMonth values must be between 1 and 12")
        return value

    @model_validator(mode="after")
    def _reject_count_and_until(self) -> RecurrenceInput:
        if self.count is not None and self.until is not None:
            raise ValueError("Cannot specify both count and until")
        return self


class AttendeeInputSchema(CalendarModel):
    email: str
    display_name: str | None = None
    optional: bool | None = None

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: str) -> str:
        normalized = value.strip()
        if not _EMAIL_PATTERN.match(normalized):
            raise ValueError("Invalid email address")
        return normalized


class CreateEventInput(CalendarModel):
    summary: str = Field(min_length=1)
    description: str | None = None
    location: str | None = None
    start: EventDateTimeInput
    end: EventDateTimeInput
    attendees: list[AttendeeInputSchema] | None = None
    visibility: Visibility | None = None
    send_updates: SendUpdates | None = None
    reminders: RemindersInput | None = None
    recurrence: RecurrenceInput | None = None


class UpdateEventInput(CalendarModel):
    summary: str | None = Field(default=None, min_length=1)
    description: str | None = None
    location: str | None = None
    start: EventDateTimeInput | None = None
    end: EventDateTimeInput | None = None
    attendees: list[AttendeeInputSchema] | None = None
    visibility: Visibility | None = None
    send_updates: SendUpdates | None = None
    reminders: RemindersInput | None = None
    recurrence: RecurrenceInput | None = None


class ListEventsQuery(CalendarModel):
    """Query-string parameters for listing events (``timeMin``, ``maxResults``, ...)."""

    provider: str | None = None
    time_min: datetime | None = None
    time_max: datetime | None = None
    max_results: int | None = Field(default=None, ge=1, le=MAX_LIST_RESULTS)
    q: str | None = None
    single_events: bool | None = None
    order_by: EventOrderBy | None = None

    @field_validator("time_min", "time_max", mode="before")
    @classmethod
    def _parse_instant(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None or isinstance(value, datetime):
            return value
        parsed = parse_instant(value)
        if parsed is None:
            raise ValueError(f"Invalid date format for {to_camel(info.field_name or '')}")
        return parsed

    @field_validator("single_events", mode="before")
    @classmethod
    def _parse_flag(cls, value: Any) -> Any:
        if isinstance(value, str):
            if value not in {"true", "false"}:
                raise ValueError("singleEvents must be 'true' or 'false'")
            return value == "true"
        return value


# ---------------------------------------------------------------------------
# Converters
# ---------------------------------------------------------------------------


def to_event_date_time(value: EventDateTimeInput) -> EventDateTime:
    if value.date_time:
        return TimedEventDateTime(date_time=value.date_time, time_zone=value.time_zone)
    return AllDayEventDateTime(date=value.date or "")


def to_event_reminders(value: RemindersInput) -> EventReminders:
    if value.use_default:
        return DefaultReminders()
    return CustomReminders(
        overrides=[
            EventReminder(method=override.method, minutes=override.minutes)
            for override in value.overrides or []
        ]
    )


def to_recurrence_rule(value: RecurrenceInput) -> RecurrenceRule:
    end: RecurrenceEnd
    if value.count is not None:
        end = CountEnd(count=value.count)
    elif value.until:
        end = UntilEnd(until=value.until)
    else:
        end = ForeverEnd()
    return RecurrenceRule(
        frequency=value.frequency,
        interval=value.interval or 1,
        end=end,
        by_day=value.by_day,
        by_month_day=value.by_month_day,
        by_month=value.by_month,
    )


def _to_attendees(value: list[AttendeeInputSchema] | None) -> list[AttendeeInput] | None:
    if value is None:
        return None
    return [
        AttendeeInput(
            email=attendee.email,
            display_name=attendee.display_name,
            optional=attendee.optional,
        )
        for attendee in value
    ]


def to_create_event_params(value: CreateEventInput) -> CreateEventParams:
    return CreateEventParams(
        summary=value.summary,
        description=value.description,
        location=value.location,
        start=to_event_date_time(value.start),
        end=to_event_date_time(value.end),
        attendees=_to_attendees(value.attendees),
        visibility=value.visibility,
        send_updates=value.send_updates,
        reminders=to_event_reminders(value.reminders) if value.reminders else None,
        recurrence=to_recurrence_rule(value.recurrence) if value.recurrence else None,
    )


def to_update_event_params(value: UpdateEventInput) -> UpdateEventParams:
    return UpdateEventParams(
        summary=value.summary,
        description=value.description,
        location=value.location,
        start=to_event_date_time(value.start) if value.start else None,
        end=to_event_date_time(value.end) if value.end else None,
        attendees=_to_attendees(value.attendees),
        visibility=value.visibility,
        send_updates=value.send_updates,
        reminders=to_event_reminders(value.reminders) if value.reminders else None,
        recurrence=to_recurrence_rule(value.recurrence) if value.recurrence else None,
    )


def format_validation_errors(exc: ValidationError) -> list[dict[str, str]]:
    """Flatten a pydantic error into ``[{"field": "start.dateTime", "message": ...}]``."""
    errors: list[dict[str, str]] = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()))
        message = str(error.get("msg", "Invalid value"))
        # Strip pydantic's "Value error, " prefix from custom validator messages.
        if message.startswith("Value error, "):
            message = message[len("Value error, ") :]
        errors.append({"field": field, "message": message})
    return errors
