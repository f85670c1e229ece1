"""Tests for structured logging setup."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import structlog
from opentelemetry.sdk.trace import TracerProvider

from janus.core.logging import (
    _ACCESS_LOGGERS,
    REDACTION_MARKER,
    ServiceNameAdder,
    _remove_installed_handlers,
    add_trace_ids,
    configure_logging,
    redact_credentials,
    redact_text,
)

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_logging():
    """Undo configure_logging() and clear bound context between tests."""
    yield
    _remove_installed_handlers()
    logging.getLogger().setLevel(logging.WARNING)
    for name in _ACCESS_LOGGERS:
        logging.getLogger(name).setLevel(logging.NOTSET)
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


def _janus_handlers(logger: logging.Logger) -> list[logging.Handler]:
    return [h for h in logger.handlers if (h.get_name() or "").startswith("janus.")]


# ---------------------------------------------------------------------------
# Processors
# ---------------------------------------------------------------------------


class TestServiceNameAdder:
    def test_adds_service(self):
        assert ServiceNameAdder("janus-dev")(None, "info", {"event": "x"})["service"] == (
            "janus-dev"
        )

    def test_keeps_explicit_service(self):
        result = ServiceNameAdder("janus")(None, "info", {"event": "x", "service": "other"})
        assert result["service"] == "other"


class TestAddTraceIds:
    def test_no_ids_outside_a_span(self):
        result = add_trace_ids(None, "info", {"event": "test"})
        assert "trace_id" not in result
        assert "span_id" not in result

    def test_ids_inside_a_recording_span(self):
        provider = TracerProvider()
        tracer = provider.get_tracer("test")
        with tracer.start_as_current_span("calendar-call") as span:
            result = add_trace_ids(None, "info", {"event": "test"})
            ctx = span.get_span_context()
        provider.shutdown()

        assert result["trace_id"] == format(ctx.trace_id, "032x")
        assert result["span_id"] == format(ctx.span_id, "016x")


class TestRedaction:
    def test_secret_keys_are_masked(self):
        result = redact_credentials(
            None, "info", {"event": "x", "access_token": "abc", "Authorization": "Bearer abc"}
        )
        assert result["access_token"] == REDACTION_MARKER
        assert result["Authorization"] == REDACTION_MARKER

    def test_bearer_values_in_text_are_masked(self):
        assert redact_text("sent Authorization: Bearer ya29.a0AfH6SM") == (
            f"sent Authorization: Bearer {REDACTION_MARKER}"
        )

    def test_token_pairs_in_text_are_masked(self):
        assert redact_text("refresh failed: refresh_token=1//0g; retry") == (
            f"refresh failed: refresh_token={REDACTION_MARKER}; retry"
        )
        assert redact_text('{"access_token": "abc"}') == (
            f'{{"access_token": {REDACTION_MARKER}}}'
        )

    def test_plain_messages_are_untouched(self):
        message = "google get_event failed (401): Calendar access token expired"
        assert redact_credentials(None, "info", {"event": message})["event"] == message


# ---------------------------------------------------------------------------
# configure_logging()
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_text_format_installs_console_renderer(self):
        configure_logging(fmt="text")
        (handler,) = _janus_handlers(logging.getLogger())
        assert isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter)
        assert isinstance(handler.formatter.processors[-1], structlog.dev.ConsoleRenderer)

    def test_json_format_installs_json_renderer(self):
        configure_logging(fmt="json")
        (handler,) = _janus_handlers(logging.getLogger())
        assert isinstance(handler.formatter.processors[-1], structlog.processors.JSONRenderer)

    def test_unknown_format_is_rejected(self):
        with pytest.raises(ValueError, match="Unknown log format"):
            configure_logging(fmt="xml")

    def test_reconfiguring_replaces_own_handlers_only(self):
        foreign = logging.NullHandler()
        logging.getLogger().addHandler(foreign)
        try:
            configure_logging()
            configure_logging()
            assert len(_janus_handlers(logging.getLogger())) == 1
            assert foreign in logging.getLogger().handlers
        finally:
            logging.getLogger().removeHandler(foreign)

    def test_access_loggers_pinned_to_warning(self):
        configure_logging(level="DEBUG")
        assert logging.getLogger().level == logging.DEBUG
        for name in ("httpx", "httpcore", "uvicorn.access"):
            assert logging.getLogger(name).level == logging.WARNING


class TestLogFiles:
    def test_app_and_access_files(self, tmp_path: Path):
        configure_logging(log_root=tmp_path / "nested", service_name="janus-dev")

        (app_file,) = [
            h for h in _janus_handlers(logging.getLogger()) if isinstance(h, logging.FileHandler)
        ]
        assert app_file.baseFilename == str(tmp_path / "nested" / "janus-dev.log")

        (access_file,) = _janus_handlers(logging.getLogger("httpx"))
        assert access_file.baseFilename == str(tmp_path / "nested" / "janus-dev.access.log")

    def test_file_lines_carry_service_and_bound_context(self, tmp_path: Path):
        configure_logging(fmt="text", log_root=tmp_path, service_name="jsontest")

        with structlog.contextvars.bound_contextvars(user_id="user-1", calendar_id="primary"):
            logging.getLogger("janus.test").warning(
                "events_get_failed", extra={"error": "Bearer secret-token rejected"}
            )

        line = (tmp_path / "jsontest.log").read_text().strip().splitlines()[-1]
        data = json.loads(line)
        assert data["event"] == "events_get_failed"
        assert data["service"] == "jsontest"
        assert data["level"] == "warning"
        assert data["user_id"] == "user-1"
        assert data["calendar_id"] == "primary"
        assert data["error"] == f"Bearer {REDACTION_MARKER} rejected"
