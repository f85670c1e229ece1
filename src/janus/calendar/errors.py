"""Error taxonomy raised by the calendar provider layer."""

from __future__ import annotations


class CalendarError(RuntimeError):
    """Base error for calendar provider failures."""


class CalendarNotLinkedError(CalendarError):
    """Raised when no usable access token exists for a (user, provider) pair.

    Callers match on this type to ask the end user to connect their account.
    """

    def __init__(self, *, provider_id: str, provider_name: str) -> None:
        self.provider_id = provider_id
        self.provider_name = provider_name
        super().__init__(f"No {provider_name} account linked for this user")


class UnsupportedProviderError(CalendarError):
    """Raised for a recognized provider id that has no adapter yet."""

    def __init__(self, provider_id: str) -> None:
        self.provider_id = provider_id
        super().__init__(f"Calendar provider '{provider_id}' is not supported yet")


class CalendarRequestError(CalendarError):
    """Raised when an upstream calendar API call fails.

    ``status_code`` is ``None`` for transport-level failures (DNS, timeouts,
    connection resets) where no HTTP response was received.
    """

    def __init__(
        self,
        *,
        provider: str,
        operation: str,
        status_code: int | None,
        message: str,
        calendar_id: str | None = None,
        event_id: str | None = None,
    ) -> None:
        self.provider = provider
        self.operation = operation
        self.status_code = status_code
        self.message = message
        self.calendar_id = calendar_id
        self.event_id = event_id
        status = status_code if status_code is not None else "transport"
        super().__init__(f"{provider} {operation} failed ({status}): {message}")


class RecurrenceParseError(ValueError):
    """Raised when a recurrence rule falls outside the supported RRULE subset."""
