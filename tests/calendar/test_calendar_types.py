"""Tests for the canonical calendar models."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from janus.calendar.types import (
    AllDayEventDateTime,
    CalendarEvent,
    CountEnd,
    CustomReminders,
    EventDateTime,
    EventReminders,
    ForeverEnd,
    RecurrenceEnd,
    RecurrenceFrequency,
    RecurrenceRule,
    TimedEventDateTime,
    UntilEnd,
)

pytestmark = pytest.mark.unit


class TestRecurrenceRule:
    def test_defaults(self):
        rule = RecurrenceRule(frequency="weekly")
        assert rule.interval == 1
        assert rule.end == ForeverEnd()
        assert rule.by_day is None

    def test_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            RecurrenceRule(frequency="daily", interval=0)

    def test_month_day_range_is_enforced(self):
        with pytest.raises(ValidationError):
            RecurrenceRule(frequency="monthly", by_month_day=[32])

    def test_accepts_camel_case_aliases(self):
        rule = RecurrenceRule.model_validate(
            {"frequency": "weekly", "byDay": ["MO"], "end": {"type": "count", "count": 3}}
        )
        assert rule.by_day == ["MO"]
        assert rule.end == CountEnd(count=3)

    def test_end_is_discriminated_by_type(self):
        adapter = TypeAdapter(RecurrenceEnd)
        assert adapter.validate_python({"type": "until", "until": "2024-12-31"}).until == (
            "2024-12-31"
        )
        with pytest.raises(ValidationError):
            adapter.validate_python({"type": "sometimes"})

    def test_frequency_is_a_string_enum(self):
        assert RecurrenceRule(frequency="yearly").frequency is RecurrenceFrequency.yearly


class TestUntilEnd:
    def test_date_is_kept(self):
        assert UntilEnd(until="2024-12-31").until == "2024-12-31"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("2024-12-31T23:59:59Z", "2024-12-31T23:59:59Z"),
            ("2024-12-31T23:59:59.500Z", "2024-12-31T23:59:59Z"),
            ("2025-01-01T01:59:59+02:00", "2024-12-31T23:59:59Z"),
            ("2024-12-31T23:59Z", "2024-12-31T23:59:00Z"),
        ],
    )
    def test_instants_normalize_to_utc_seconds(self, raw, expected):
        assert UntilEnd(until=raw).until == expected

    @pytest.mark.parametrize(
        "raw", ["", "soon", "2024-02-30", "2024-12-31T23:59", "2024-12-31T23:59:59"]
    )
    def test_rejects_unusable_values(self, raw):
        with pytest.raises(ValidationError):
            UntilEnd(until=raw)


class TestEventDateTime:
    def test_timed_requires_time_of_day(self):
        with pytest.raises(ValidationError):
            TimedEventDateTime(date_time="2024-06-01")

    def test_all_day_rejects_time_of_day(self):
        with pytest.raises(ValidationError):
            AllDayEventDateTime(date="2024-06-01T10:00:00")

    def test_union_dispatches_on_kind(self):
        adapter = TypeAdapter(EventDateTime)
        value = adapter.validate_python({"kind": "allDay", "date": "2024-06-01"})
        assert isinstance(value, AllDayEventDateTime)

    def test_serializes_with_camel_case(self):
        value = TimedEventDateTime(date_time="2024-06-01T10:00:00", time_zone="UTC")
        assert value.model_dump(by_alias=True) == {
            "kind": "timed",
            "dateTime": "2024-06-01T10:00:00",
            "timeZone": "UTC",
        }


class TestCalendarEvent:
    def test_custom_reminders_default_to_no_overrides(self):
        reminders = TypeAdapter(EventReminders).validate_python({"type": "custom"})
        assert reminders == CustomReminders(overrides=[])

    def test_attendee_self_uses_wire_name(self):
        event = CalendarEvent.model_validate(
            {
                "id": "evt-1",
                "calendarId": "primary",
                "summary": "Standup",
                "start": {"kind": "timed", "dateTime": "2024-06-01T09:00:00Z"},
                "end": {"kind": "timed", "dateTime": "2024-06-01T09:15:00Z"},
                "attendees": [{"email": "me@example.com", "self": True}],
            }
        )
        assert event.attendees is not None
        assert event.attendees[0].self_ is True
        dumped = event.model_dump(mode="json", by_alias=True, exclude_none=True)
        assert dumped["attendees"] == [{"email": "me@example.com", "self": True}]
        assert dumped["status"] == "confirmed"
        assert dumped["visibility"] == "default"
