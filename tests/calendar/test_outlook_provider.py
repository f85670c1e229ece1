"""Tests for the Microsoft Graph (Outlook) adapter."""

from __future__ import annotations

from datetime import UTC, datetime

import httpx
import pytest

from janus.calendar.errors import CalendarNotLinkedError, CalendarRequestError
from janus.calendar.outlook import OutlookCalendarProvider
from janus.calendar.types import (
    AccessRole,
    AllDayEventDateTime,
    AttendeeInput,
    CalendarId,
    CreateEventParams,
    CustomReminders,
    DefaultReminders,
    EventId,
    EventOrderBy,
    EventReminder,
    EventStatus,
    ListEventsParams,
    ProviderId,
    RecurrenceRule,
    ResponseStatus,
    TimedEventDateTime,
    UntilEnd,
    UpdateEventParams,
    Visibility,
    Weekday,
)
from tests.conftest import USER_ID, RecordingTransport

pytestmark = pytest.mark.unit

BASE = "/v1.0/me/calendars"


def _graph_event(**overrides):
    payload = {
        "id": "AAMk-1",
        "subject": "Planning",
        "start": {"dateTime": "2024-06-03T09:00:00.0000000", "timeZone": "UTC"},
        "end": {"dateTime": "2024-06-03T10:00:00.0000000", "timeZone": "UTC"},
        "isAllDay": False,
        "isCancelled": False,
        "showAs": "busy",
        "sensitivity": "normal",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def provider(token_source, transport, make_http_client) -> OutlookCalendarProvider:
    return OutlookCalendarProvider(
        USER_ID, token_source=token_source, http_client=make_http_client(transport)
    )


# ---------------------------------------------------------------------------
# Calendars
# ---------------------------------------------------------------------------


class TestOutlookCalendars:
    async def test_list_calendars_maps_entries(self, provider, transport):
        transport.routes[("GET", BASE)] = {
            "value": [
                {
                    "id": "cal-1",
                    "name": "Calendar",
                    "hexColor": "#ff8c00",
                    "isDefaultCalendar": True,
                    "canEdit": True,
                },
                {"id": "cal-2", "canEdit": False},
            ]
        }

        calendars = await provider.list_calendars()

        assert provider.provider_id is ProviderId.outlook
        assert calendars[0].color == "#ff8c00"
        assert calendars[0].primary is True
        assert calendars[0].access_role is AccessRole.owner
        assert calendars[1].name == "Untitled"
        assert calendars[1].access_role is AccessRole.reader
        assert transport.requests[0].headers["Authorization"] == "Bearer graph-token"

    async def test_get_calendar(self, provider, transport):
        transport.routes[("GET", f"{BASE}/cal-1")] = {"id": "cal-1", "name": "Work"}

        calendar = await provider.get_calendar(CalendarId("cal-1"))

        assert calendar.name == "Work"


# ---------------------------------------------------------------------------
# Events: read
# ---------------------------------------------------------------------------


class TestOutlookListEvents:
    async def test_query_parameters(self, provider, transport):
        transport.routes[("GET", f"{BASE}/cal-1/events")] = {"value": []}

        await provider.list_events(
            ListEventsParams(
                calendar_id=CalendarId("cal-1"),
                time_min=datetime(2024, 6, 1, tzinfo=UTC),
                time_max=datetime(2024, 6, 8, tzinfo=UTC),
                max_results=10,
                query="budget",
                single_events=True,
                order_by=EventOrderBy.start_time,
            )
        )

        params = transport.requests[0].url.params
        assert params["$filter"] == (
            "start/dateTime ge '2024-06-01T00:00:00.000Z' "
            "and end/dateTime le '2024-06-08T00:00:00.000Z'"
        )
        assert params["$top"] == "10"
        assert params["$search"] == '"budget"'
        assert params["$orderby"] == "start/dateTime asc"

    async def test_no_parameters_when_unset(self, provider, transport):
        transport.routes[("GET", f"{BASE}/cal-1/events")] = {"value": []}

        await provider.list_events(ListEventsParams(calendar_id=CalendarId("cal-1")))

        assert dict(transport.requests[0].url.params) == {}

    async def test_maps_event_fields(self, provider, transport):
        transport.routes[("GET", f"{BASE}/cal-1/events/AAMk-1")] = _graph_event(
            bodyPreview="Quarterly planning",
            location={"displayName": "Room 4"},
            attendees=[
                {
                    "emailAddress": {"address": "bob@example.com", "name": "Bob"},
                    "type": "optional",
                    "status": {"response": "tentativelyAccepted"},
                },
                {"emailAddress": {"address": "amy@example.com"}, "type": "required"},
            ],
            organizer={"emailAddress": {"address": "me@example.com", "name": "Me"}},
            isOrganizer=True,
            isReminderOn=True,
            reminderMinutesBeforeStart=15,
            recurrence={
                "pattern": {"type": "weekly", "interval": 1, "daysOfWeek": ["monday"]},
                "range": {"type": "endDate", "startDate": "2024-06-03", "endDate": "2024-12-30"},
            },
            createdDateTime="2024-05-01T10:00:00.1234567Z",
            lastModifiedDateTime="2024-05-02T08:30:00Z",
            webLink="https://outlook.office365.com/owa/?itemid=1",
            seriesMasterId="AAMk-master",
            sensitivity="personal",
        )

        event = await provider.get_event(CalendarId("cal-1"), EventId("AAMk-1"))

        assert event.summary == "Planning"
        assert event.description == "Quarterly planning"
        assert event.location == "Room 4"
        assert event.start == TimedEventDateTime(
            date_time="2024-06-03T09:00:00.0000000", time_zone="UTC"
        )
        assert event.status is EventStatus.confirmed
        assert event.attendees is not None
        bob, amy = event.attendees
        assert bob.optional is True
        assert bob.response_status is ResponseStatus.tentative
        assert amy.optional is False
        assert amy.response_status is ResponseStatus.needs_action
        assert amy.organizer is False
        assert event.organizer is not None
        assert event.organizer.self_ is True
        assert event.reminders == CustomReminders(
            overrides=[EventReminder(method="popup", minutes=15)]
        )
        assert event.recurrence == ["RRULE:FREQ=WEEKLY;UNTIL=20241230T235959Z;BYDAY=MO"]
        assert event.created == datetime(2024, 5, 1, 10, 0, 0, 123456, tzinfo=UTC)
        assert event.updated == datetime(2024, 5, 2, 8, 30, tzinfo=UTC)
        assert event.recurring_event_id == "AAMk-master"
        assert event.visibility is Visibility.private

    async def test_cancelled_flag_wins_over_show_as(self, provider, transport):
        transport.routes[("GET", f"{BASE}/cal-1/events/AAMk-1")] = _graph_event(
            isCancelled=True, showAs="tentative"
        )

        event = await provider.get_event(CalendarId("cal-1"), EventId("AAMk-1"))

        assert event.status is EventStatus.cancelled

    async def test_tentative_show_as(self, provider, transport):
        transport.routes[("GET", f"{BASE}/cal-1/events/AAMk-1")] = _graph_event(
            showAs="tentative"
        )

        event = await provider.get_event(CalendarId("cal-1"), EventId("AAMk-1"))

        assert event.status is EventStatus.tentative

    async def test_reminder_off_reads_as_default(self, provider, transport):
        transport.routes[("GET", f"{BASE}/cal-1/events/AAMk-1")] = _graph_event(
            isReminderOn=False, reminderMinutesBeforeStart=15
        )

        event = await provider.get_event(CalendarId("cal-1"), EventId("AAMk-1"))

        assert event.reminders == DefaultReminders()
        assert event.recurrence is None

    async def test_unknown_values_fall_back_to_neutral_defaults(self, provider, transport):
        transport.routes[("GET", f"{BASE}/cal-1/events/AAMk-1")] = _graph_event(
            sensitivity="topSecret", showAs="onBreak"
        )

        event = await provider.get_event(CalendarId("cal-1"), EventId("AAMk-1"))

        assert event.visibility is Visibility.default
        assert event.status is EventStatus.confirmed

    async def test_all_day_keeps_date_portion(self, provider, transport):
        transport.routes[("GET", f"{BASE}/cal-1/events/AAMk-1")] = _graph_event(
            isAllDay=True,
            start={"dateTime": "2024-06-05T00:00:00.0000000", "timeZone": "UTC"},
            end={"dateTime": "2024-06-06T00:00:00.0000000", "timeZone": "UTC"},
        )

        event = await provider.get_event(CalendarId("cal-1"), EventId("AAMk-1"))

        assert event.start == AllDayEventDateTime(date="2024-06-05")
        assert event.end == AllDayEventDateTime(date="2024-06-06")

    async def test_body_content_when_no_preview(self, provider, transport):
        transport.routes[("GET", f"{BASE}/cal-1/events/AAMk-1")] = _graph_event(
            body={"contentType": "text", "content": "Agenda"}
        )

        event = await provider.get_event(CalendarId("cal-1"), EventId("AAMk-1"))

        assert event.description == "Agenda"


# ---------------------------------------------------------------------------
# Events: write
# ---------------------------------------------------------------------------


class TestOutlookWriteEvents:
    async def test_create_event_body(self, provider, transport):
        transport.routes[("POST", f"{BASE}/cal-1/events")] = _graph_event()

        await provider.create_event(
            CalendarId("cal-1"),
            CreateEventParams(
                summary="Planning",
                description="Agenda",
                location="Room 4",
                start=TimedEventDateTime(date_time="2024-06-03T09:00:00", time_zone="Europe/Paris"),
                end=TimedEventDateTime(date_time="2024-06-03T10:00:00"),
                attendees=[AttendeeInput(email="bob@example.com", display_name="Bob")],
                visibility=Visibility.confidential,
                reminders=CustomReminders(
                    overrides=[
                        EventReminder(method="popup", minutes=10),
                        EventReminder(method="email", minutes=60),
                    ]
                ),
                recurrence=RecurrenceRule(frequency="weekly", by_day=[Weekday.MO]),
            ),
        )

        assert transport.json_body() == {
            "subject": "Planning",
            "start": {"dateTime": "2024-06-03T09:00:00", "timeZone": "Europe/Paris"},
            "end": {"dateTime": "2024-06-03T10:00:00", "timeZone": "UTC"},
            "isAllDay": False,
            "sensitivity": "confidential",
            "body": {"contentType": "text", "content": "Agenda"},
            "location": {"displayName": "Room 4"},
            "attendees": [
                {
                    "emailAddress": {"address": "bob@example.com", "name": "Bob"},
                    "type": "required",
                }
            ],
            "isReminderOn": True,
            "reminderMinutesBeforeStart": 10,
            "recurrence": {
                "pattern": {"type": "weekly", "interval": 1, "daysOfWeek": ["monday"]},
                "range": {"type": "noEnd", "startDate": "2024-06-03"},
            },
        }

    async def test_create_all_day_event(self, provider, transport):
        transport.routes[("POST", f"{BASE}/cal-1/events")] = _graph_event()

        await provider.create_event(
            CalendarId("cal-1"),
            CreateEventParams(
                summary="Offsite",
                start=AllDayEventDateTime(date="2024-06-05"),
                end=AllDayEventDateTime(date="2024-06-06"),
                reminders=DefaultReminders(),
            ),
        )

        body = transport.json_body()
        assert body["start"] == {"dateTime": "2024-06-05T00:00:00", "timeZone": "UTC"}
        assert body["end"] == {"dateTime": "2024-06-06T00:00:00", "timeZone": "UTC"}
        assert body["isAllDay"] is True
        assert body["sensitivity"] == "normal"
        assert body["isReminderOn"] is False

    async def test_update_patch_only_contains_set_fields(self, provider, transport):
        transport.routes[("PATCH", f"{BASE}/cal-1/events/AAMk-1")] = _graph_event(
            subject="Renamed"
        )

        event = await provider.update_event(
            CalendarId("cal-1"), EventId("AAMk-1"), UpdateEventParams(summary="Renamed")
        )

        assert event.summary == "Renamed"
        assert transport.json_body() == {"subject": "Renamed"}

    async def test_recurrence_update_without_start_reads_stored_event(self, provider, transport):
        transport.routes[("GET", f"{BASE}/cal-1/events/AAMk-1")] = _graph_event()
        transport.routes[("PATCH", f"{BASE}/cal-1/events/AAMk-1")] = _graph_event()

        await provider.update_event(
            CalendarId("cal-1"),
            EventId("AAMk-1"),
            UpdateEventParams(
                recurrence=RecurrenceRule(
                    frequency="daily", end=UntilEnd(until="2024-06-30T23:59:59Z")
                )
            ),
        )

        assert [request.method for request in transport.requests] == ["GET", "PATCH"]
        assert transport.json_body() == {
            "recurrence": {
                "pattern": {"type": "daily", "interval": 1},
                "range": {"type": "endDate", "startDate": "2024-06-03", "endDate": "2024-06-30"},
            }
        }

    async def test_failed_start_lookup_reports_update_operation(self, provider, transport):
        transport.routes[("GET", f"{BASE}/cal-1/events/AAMk-1")] = httpx.Response(
            404, json={"error": {"code": "ErrorItemNotFound", "message": "gone"}}
        )

        with pytest.raises(CalendarRequestError) as exc_info:
            await provider.update_event(
                CalendarId("cal-1"),
                EventId("AAMk-1"),
                UpdateEventParams(recurrence=RecurrenceRule(frequency="daily")),
            )

        assert exc_info.value.operation == "update_event"
        assert exc_info.value.status_code == 404
        assert exc_info.value.event_id == "AAMk-1"
        assert [request.method for request in transport.requests] == ["GET"]

    async def test_recurrence_update_with_start_skips_lookup(self, provider, transport):
        transport.routes[("PATCH", f"{BASE}/cal-1/events/AAMk-1")] = _graph_event()

        await provider.update_event(
            CalendarId("cal-1"),
            EventId("AAMk-1"),
            UpdateEventParams(
                start=AllDayEventDateTime(date="2024-07-01"),
                recurrence=RecurrenceRule(frequency="yearly"),
            ),
        )

        assert [request.method for request in transport.requests] == ["PATCH"]
        body = transport.json_body()
        assert body["isAllDay"] is True
        assert body["recurrence"]["range"]["startDate"] == "2024-07-01"

    async def test_delete_event(self, provider, transport):
        transport.routes[("DELETE", f"{BASE}/cal-1/events/AAMk-1")] = httpx.Response(204)

        await provider.delete_event(CalendarId("cal-1"), EventId("AAMk-1"))

        assert transport.requests[0].method == "DELETE"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestOutlookErrors:
    async def test_unauthorized_is_surfaced_with_status(self, provider, transport):
        transport.routes[("GET", BASE)] = httpx.Response(
            401, json={"error": {"code": "InvalidAuthenticationToken", "message": "expired"}}
        )

        with pytest.raises(CalendarRequestError) as exc_info:
            await provider.list_calendars()
        assert exc_info.value.status_code == 401
        assert exc_info.value.provider == "outlook"
        assert str(exc_info.value) == "outlook list_calendars failed (401): expired"

    async def test_unlinked_account_uses_microsoft_identity(
        self, token_source, transport, make_http_client
    ):
        token_source.remove_token(provider_id="microsoft", user_id=USER_ID)
        provider = OutlookCalendarProvider(
            USER_ID, token_source=token_source, http_client=make_http_client(transport)
        )

        with pytest.raises(CalendarNotLinkedError) as exc_info:
            await provider.list_calendars()
        assert exc_info.value.provider_id == "microsoft"
        assert exc_info.value.provider_name == "Microsoft"
