"""Token acquisition and session seams.

OAuth issuance and refresh live in the fronting auth service. This module only
defines what the calendar layer needs from it: a bearer token for a
(provider, user) pair, and the user id behind an inbound request.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable

from fastapi import Request

from janus.calendar.types import UserId

USER_ID_HEADER = "X-User-Id"


@dataclass(frozen=True)
class AccessToken:
    access_token: str
    expires_at: datetime | None = None


@runtime_checkable
class TokenSource(Protocol):
    """Returns a usable bearer token, or ``None`` when the account is not linked."""

    async def get_access_token(self, *, provider_id: str, user_id: str) -> AccessToken | None:
        ...


class StaticTokenSource:
    """In-memory token source keyed by ``(provider_id, user_id)``.

    Used for local development (seeded from ``[auth.tokens]``) and tests.
    """

    def __init__(self, tokens: Mapping[tuple[str, str], AccessToken] | None = None) -> None:
        self._tokens: dict[tuple[str, str], AccessToken] = dict(tokens or {})

    def set_token(self, *, provider_id: str, user_id: str, token: AccessToken) -> None:
        self._tokens[(provider_id, user_id)] = token

    def remove_token(self, *, provider_id: str, user_id: str) -> None:
        self._tokens.pop((provider_id, user_id), None)

    async def get_access_token(self, *, provider_id: str, user_id: str) -> AccessToken | None:
        return self._tokens.get((provider_id, user_id))


@runtime_checkable
class SessionResolver(Protocol):
    async def resolve_user_id(self, request: Request) -> UserId | None:
        ...


class HeaderSessionResolver:
    """Trusts a user id header injected by the authenticating reverse proxy.

    When ``fallback_user_id`` is set (local development), requests without the
    header resolve to that user instead of being rejected.
    """

    def __init__(
        self,
        *,
        header_name: str = USER_ID_HEADER,
        fallback_user_id: str | None = None,
    ) -> None:
        self._header_name = header_name
        self._fallback_user_id = fallback_user_id

    async def resolve_user_id(self, request: Request) -> UserId | None:
        value = (request.headers.get(self._header_name) or "").strip()
        if value:
            return UserId(value)
        if self._fallback_user_id:
            return UserId(self._fallback_user_id)
        return None
