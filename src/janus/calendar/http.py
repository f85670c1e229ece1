"""Bearer-authenticated JSON transport shared by the provider adapters."""

from __future__ import annotations

from typing import Any

import httpx

from janus.calendar.errors import CalendarRequestError
from janus.calendar.tokens import AccessTokenCache

DEFAULT_TIMEOUT_S = 30.0
_MAX_ERROR_MESSAGE_LENGTH = 200


def safe_error_message(response: httpx.Response) -> str:
    """Extract a short, single-line message from an upstream error response.

    Google and Graph both use ``{"error": {"message": ...}}``; anything else
    falls back to the raw body.
    """
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error_payload = payload.get("error")
        if isinstance(error_payload, dict):
            message = error_payload.get("message")
            if isinstance(message, str) and message.strip():
                return " ".join(message.split())[:_MAX_ERROR_MESSAGE_LENGTH]
        if isinstance(error_payload, str) and error_payload.strip():
            return " ".join(error_payload.split())[:_MAX_ERROR_MESSAGE_LENGTH]

    raw_text = response.text.strip()
    if raw_text:
        return " ".join(raw_text.split())[:_MAX_ERROR_MESSAGE_LENGTH]
    return "Request failed without an error payload"


class UpstreamClient:
    """Issues JSON requests against one calendar API on behalf of one user.

    Owns its ``httpx.AsyncClient`` unless one is injected. Failures are never
    retried.
    """

    def __init__(
        self,
        *,
        provider: str,
        base_url: str,
        tokens: AccessTokenCache,
        http_client: httpx.AsyncClient | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self._provider = provider
        self._base_url = base_url.rstrip("/")
        self._tokens = tokens
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout_s)

    async def request_json(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        calendar_id: str | None = None,
        event_id: str | None = None,
    ) -> dict[str, Any]:
        access_token = await self._tokens.get_access_token()
        normalized_path = path if path.startswith("/") else f"/{path}"
        url = f"{self._base_url}{normalized_path}"

        try:
            response = await self._http_client.request(
                method,
                url,
                params=params,
                json=json_body,
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as exc:
            raise CalendarRequestError(
                provider=self._provider,
                operation=operation,
                status_code=None,
                message=str(exc) or exc.__class__.__name__,
                calendar_id=calendar_id,
                event_id=event_id,
            ) from exc

        if response.status_code < 200 or response.status_code >= 300:
            raise CalendarRequestError(
                provider=self._provider,
                operation=operation,
                status_code=response.status_code,
                message=safe_error_message(response),
                calendar_id=calendar_id,
                event_id=event_id,
            )

        if response.status_code == 204 or not response.content:
            return {}

        try:
            payload = response.json()
        except ValueError as exc:
            raise CalendarRequestError(
                provider=self._provider,
                operation=operation,
                status_code=response.status_code,
                message="Upstream returned invalid JSON for a successful response",
                calendar_id=calendar_id,
                event_id=event_id,
            ) from exc

        if not isinstance(payload, dict):
            raise CalendarRequestError(
                provider=self._provider,
                operation=operation,
                status_code=response.status_code,
                message="Upstream returned an unexpected JSON payload shape",
                calendar_id=calendar_id,
                event_id=event_id,
            )
        return payload

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()
