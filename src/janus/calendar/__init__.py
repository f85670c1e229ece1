"""Provider-neutral calendar layer: domain types, recurrence codec, and adapters."""

from janus.calendar.base import CalendarProvider
from janus.calendar.errors import (
    CalendarError,
    CalendarNotLinkedError,
    CalendarRequestError,
    RecurrenceParseError,
    UnsupportedProviderError,
)
from janus.calendar.registry import ProviderEndpoint, ProviderSettings, get_calendar_provider
from janus.calendar.rrule import (
    decode_graph_recurrence,
    decode_rrule,
    encode_graph_recurrence,
    encode_rrule,
)

__all__ = [
    "CalendarError",
    "CalendarNotLinkedError",
    "CalendarProvider",
    "CalendarRequestError",
    "ProviderEndpoint",
    "ProviderSettings",
    "RecurrenceParseError",
    "UnsupportedProviderError",
    "decode_graph_recurrence",
    "decode_rrule",
    "encode_graph_recurrence",
    "encode_rrule",
    "get_calendar_provider",
]
