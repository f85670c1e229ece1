"""OpenTelemetry spans around calendar calls made by the REST and tool layers.

Janus depends on ``opentelemetry-api`` only. Spans are no-ops until the host
process installs a TracerProvider (for example through
``opentelemetry-instrument``); once one is installed, every calendar call
becomes a span and its trace ids appear on the log lines emitted inside it.

The calendar adapters themselves stay free of telemetry; callers wrap them.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from opentelemetry import trace

_TRACER_NAME = "janus"
_ATTRIBUTE_PREFIX = "janus."


def get_tracer() -> trace.Tracer:
    return trace.get_tracer(_TRACER_NAME)


@contextmanager
def calendar_span(name: str, **context: object) -> Iterator[trace.Span]:
    """Run the block inside span *name* with *context* bound for logging.

    Keyword values that are not ``None`` become span attributes
    (``janus.user_id``, ``janus.calendar_id``, ...) and structlog context
    variables, so log lines written inside the block carry the same ids.
    Exceptions escaping the block are recorded on the span and re-raised.
    """
    bound = {key: str(value) for key, value in context.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        with get_tracer().start_as_current_span(name) as span:
            for key, value in bound.items():
                span.set_attribute(f"{_ATTRIBUTE_PREFIX}{key}", value)
            yield span


def mark_span_failed(exc: BaseException) -> None:
    """Flag the current span as failed for an exception that was handled."""
    span = trace.get_current_span()
    span.set_status(trace.StatusCode.ERROR, str(exc))
    span.record_exception(exc)
