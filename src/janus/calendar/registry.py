"""Adapter construction keyed by provider id."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx

from janus.calendar.base import CalendarProvider
from janus.calendar.errors import UnsupportedProviderError
from janus.calendar.google import GOOGLE_CALENDAR_API_BASE_URL, GoogleCalendarProvider
from janus.calendar.http import DEFAULT_TIMEOUT_S
from janus.calendar.outlook import GRAPH_API_BASE_URL, OutlookCalendarProvider
from janus.calendar.types import ProviderId

if TYPE_CHECKING:
    from janus.auth import TokenSource


@dataclass
class ProviderEndpoint:
    api_base_url: str
    timeout_s: float = DEFAULT_TIMEOUT_S


@dataclass
class ProviderSettings:
    """Upstream endpoints for each implemented provider."""

    google: ProviderEndpoint = field(
        default_factory=lambda: ProviderEndpoint(api_base_url=GOOGLE_CALENDAR_API_BASE_URL)
    )
    outlook: ProviderEndpoint = field(
        default_factory=lambda: ProviderEndpoint(api_base_url=GRAPH_API_BASE_URL)
    )


IMPLEMENTED_PROVIDERS: frozenset[ProviderId] = frozenset({ProviderId.google, ProviderId.outlook})


def get_calendar_provider(
    user_id: str,
    provider_id: ProviderId | str,
    *,
    token_source: TokenSource,
    http_client: httpx.AsyncClient | None = None,
    settings: ProviderSettings | None = None,
) -> CalendarProvider:
    """Build a fresh adapter for *user_id*; no network I/O happens here.

    Raises
    ------
    ValueError
        If *provider_id* is not a known provider id.
    UnsupportedProviderError
        If the provider is known but has no adapter yet.
    """
    resolved = ProviderId(provider_id)
    settings = settings or ProviderSettings()

    match resolved:
        case ProviderId.google:
            return GoogleCalendarProvider(
                user_id,
                token_source=token_source,
                http_client=http_client,
                base_url=settings.google.api_base_url,
                timeout_s=settings.google.timeout_s,
            )
        case ProviderId.outlook:
            return OutlookCalendarProvider(
                user_id,
                token_source=token_source,
                http_client=http_client,
                base_url=settings.outlook.api_base_url,
                timeout_s=settings.outlook.timeout_s,
            )
        case _:
            raise UnsupportedProviderError(resolved.value)
