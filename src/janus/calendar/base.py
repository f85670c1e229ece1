"""Provider-agnostic calendar capability contract."""

from __future__ import annotations

import abc

from janus.calendar.types import (
    Calendar,
    CalendarEvent,
    CalendarId,
    CreateEventParams,
    EventId,
    ListEventsParams,
    ProviderId,
    UpdateEventParams,
)


class CalendarProvider(abc.ABC):
    """One user's view of one upstream calendar service.

    Instances are cheap to build and perform no I/O until the first call.
    """

    @property
    @abc.abstractmethod
    def provider_id(self) -> ProviderId:
        """Tag identifying the upstream service."""

    @abc.abstractmethod
    async def list_calendars(self) -> list[Calendar]:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_calendar(self, calendar_id: CalendarId) -> Calendar:
        raise NotImplementedError

    @abc.abstractmethod
    async def list_events(self, params: ListEventsParams) -> list[CalendarEvent]:
        raise NotImplementedError

    @abc.abstractmethod
    async def get_event(self, calendar_id: CalendarId, event_id: EventId) -> CalendarEvent:
        raise NotImplementedError

    @abc.abstractmethod
    async def create_event(
        self, calendar_id: CalendarId, params: CreateEventParams
    ) -> CalendarEvent:
        raise NotImplementedError

    @abc.abstractmethod
    async def update_event(
        self,
        calendar_id: CalendarId,
        event_id: EventId,
        params: UpdateEventParams,
    ) -> CalendarEvent:
        """Apply a partial patch; fields left as ``None`` are not sent upstream."""
        raise NotImplementedError

    @abc.abstractmethod
    async def delete_event(self, calendar_id: CalendarId, event_id: EventId) -> None:
        raise NotImplementedError

    async def aclose(self) -> None:
        """Release transport resources owned by this adapter."""
        return None
