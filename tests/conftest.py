"""Shared fixtures for the janus test suite."""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import pytest
import structlog
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from janus.auth import AccessToken, StaticTokenSource

USER_ID = "user-1"


class FakeClock:
    """Manually advanced clock for token-expiry tests."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2024, 6, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingTransport:
    """httpx handler that records requests and replays queued responses.

    ``routes`` maps ``(METHOD, path)`` to a canned response: a JSON-able body,
    an ``httpx.Response``, or a callable taking the request.
    """

    def __init__(self, routes: dict[tuple[str, str], Any] | None = None) -> None:
        self.routes: dict[tuple[str, str], Any] = dict(routes or {})
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        entry = self.routes.get((request.method, request.url.path))
        if entry is None:
            return httpx.Response(404, json={"error": {"message": "Not Found"}})
        if callable(entry):
            return entry(request)
        if isinstance(entry, httpx.Response):
            return entry
        return httpx.Response(200, json=entry)

    def json_body(self, index: int = -1) -> dict[str, Any]:
        return json.loads(self.requests[index].content)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_source(clock: FakeClock) -> StaticTokenSource:
    expires_at = clock.now + timedelta(hours=1)
    return StaticTokenSource(
        {
            ("google", USER_ID): AccessToken("google-token", expires_at),
            ("microsoft", USER_ID): AccessToken("graph-token", expires_at),
        }
    )


@pytest.fixture
def make_http_client() -> Callable[[RecordingTransport], httpx.AsyncClient]:
    def _make(transport: RecordingTransport) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(transport))

    return _make


def _reset_otel_global_state() -> None:
    trace._TRACER_PROVIDER_SET_ONCE = trace.Once()
    trace._TRACER_PROVIDER = None


@pytest.fixture
def spans():
    """Install an in-memory TracerProvider and return its exporter."""
    _reset_otel_global_state()
    structlog.contextvars.clear_contextvars()
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    yield exporter
    provider.shutdown()
    _reset_otel_global_state()
