"""Per-adapter access-token cache with lazy refresh."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from janus.calendar.errors import CalendarNotLinkedError

if TYPE_CHECKING:
    from janus.auth import TokenSource

# Refresh when less than this much lifetime remains.
TOKEN_REFRESH_BUFFER = timedelta(seconds=60)
# Assumed lifetime when the token source reports no expiry.
DEFAULT_TOKEN_LIFETIME = timedelta(seconds=3600)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class AccessTokenCache:
    """Caches one bearer token for a single (user, provider) pair.

    The cache lives on one adapter instance and is never shared, so there is
    no locking: concurrent adapters for the same user each fetch their own
    token.
    """

    def __init__(
        self,
        token_source: TokenSource,
        *,
        user_id: str,
        auth_provider_id: str,
        provider_name: str,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._token_source = token_source
        self._user_id = user_id
        self._auth_provider_id = auth_provider_id
        self._provider_name = provider_name
        self._clock = clock
        self._access_token: str | None = None
        self._expires_at: datetime | None = None

    async def get_access_token(self) -> str:
        cached = self._access_token
        if cached is not None and self._token_is_fresh():
            return cached

        token = await self._token_source.get_access_token(
            provider_id=self._auth_provider_id,
            user_id=self._user_id,
        )
        if token is None or not token.access_token:
            raise CalendarNotLinkedError(
                provider_id=self._auth_provider_id,
                provider_name=self._provider_name,
            )

        self._access_token = token.access_token
        expires_at = token.expires_at or (self._clock() + DEFAULT_TOKEN_LIFETIME)
        if expires_at.tzinfo is None:
            # Naive expiries from the token store are UTC.
            expires_at = expires_at.replace(tzinfo=UTC)
        self._expires_at = expires_at
        return self._access_token

    def _token_is_fresh(self) -> bool:
        if self._access_token is None or self._expires_at is None:
            return False
        return self._expires_at - self._clock() > TOKEN_REFRESH_BUFFER
