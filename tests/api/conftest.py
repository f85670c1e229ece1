"""Shared fixtures for calendar API tests.

The app is wired to an ``httpx.MockTransport`` upstream, so the real adapters
run end to end against canned Google and Graph payloads.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable

import httpx
import pytest
from fastapi import FastAPI

from janus.api.app import create_app
from janus.auth import StaticTokenSource
from janus.config import AuthConfig, JanusConfig
from tests.conftest import USER_ID, RecordingTransport

GOOGLE = "/calendar/v3"
GRAPH = "/v1.0/me/calendars"

AUTH_HEADERS = {"X-User-Id": USER_ID}


@pytest.fixture
def upstream() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def build_app(
    upstream: RecordingTransport,
    token_source: StaticTokenSource,
    make_http_client: Callable[[RecordingTransport], httpx.AsyncClient],
) -> Callable[..., FastAPI]:
    def _build(config: JanusConfig | None = None) -> FastAPI:
        return create_app(
            config or JanusConfig(),
            token_source=token_source,
            http_client=make_http_client(upstream),
        )

    return _build


@pytest.fixture
async def client(build_app) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=build_app())
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
async def dev_client(build_app) -> AsyncIterator[httpx.AsyncClient]:
    """Client for an app that falls back to a configured dev user."""
    app = build_app(JanusConfig(auth=AuthConfig(dev_user_id=USER_ID)))
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
