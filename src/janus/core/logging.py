"""Logging setup for Janus.

``configure_logging`` routes stdlib and structlog loggers through a single
structlog ``ProcessorFormatter``. Every line carries:

- ``service``: the configured service name
- request context bound with ``structlog.contextvars`` (``user_id``,
  ``provider_id``, ``calendar_id``, ``event_id``), see
  ``janus.core.telemetry.calendar_span``
- ``trace_id`` / ``span_id`` while a recording OTel span is current

Bearer tokens and token-like fields are masked before rendering.

With ``log_root`` set, JSON copies are written to::

    {log_root}/{service}.log          # everything at or above the root level
    {log_root}/{service}.access.log   # uvicorn, httpx and MCP server chatter
"""

from __future__ import annotations

import logging
import re
import sys
from pathlib import Path
from typing import Any

import structlog
from opentelemetry import trace

LOG_FORMATS = ("text", "json")

REDACTION_MARKER = "[REDACTED]"

_HANDLER_PREFIX = "janus."

_ACCESS_LOGGERS = (
    "uvicorn.access",
    "uvicorn.error",
    "httpx",
    "httpcore",
    "mcp.server.lowlevel.server",
)

_SECRET_KEYS = frozenset(
    {"authorization", "access_token", "refresh_token", "client_secret", "token"}
)
_SECRET_PAIR_PATTERN = re.compile(
    r"""(?i)\b(access_token|refresh_token|client_secret|token)(['"]?\s*[=:]\s*)['"]?[^\s,;'"]+['"]?"""
)
_BEARER_PATTERN = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9\-._~+/]+=*")


def redact_text(value: str) -> str:
    """Mask ``Bearer <token>`` and ``token=...`` style values inside *value*."""
    redacted = _BEARER_PATTERN.sub(f"Bearer {REDACTION_MARKER}", value)
    return _SECRET_PAIR_PATTERN.sub(rf"\1\2{REDACTION_MARKER}", redacted)


# ---------------------------------------------------------------------------
# Processors
# ---------------------------------------------------------------------------


class ServiceNameAdder:
    """Stamp each event with ``service`` unless the call site set one."""

    def __init__(self, service_name: str) -> None:
        self.service_name = service_name

    def __call__(self, logger: Any, method_name: str, event_dict: dict) -> dict:  # noqa: ARG002
        event_dict.setdefault("service", self.service_name)
        return event_dict


def add_trace_ids(
    logger: Any,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Attach the current span's ids; events outside a span get none."""
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = trace.format_trace_id(ctx.trace_id)
        event_dict["span_id"] = trace.format_span_id(ctx.span_id)
    return event_dict


def redact_credentials(
    logger: Any,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    for key, value in list(event_dict.items()):
        if key.lower() in _SECRET_KEYS and value is not None:
            event_dict[key] = REDACTION_MARKER
        elif isinstance(value, str):
            event_dict[key] = redact_text(value)
    return event_dict


def _pre_chain(service_name: str, timestamp_fmt: str) -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt=timestamp_fmt),
        ServiceNameAdder(service_name),
        add_trace_ids,
        redact_credentials,
    ]


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _formatter(
    pre_chain: list[structlog.types.Processor], renderer: structlog.types.Processor
) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=pre_chain,
    )


def _json_file_handler(
    path: Path, name: str, pre_chain: list[structlog.types.Processor]
) -> logging.FileHandler:
    handler = logging.FileHandler(path)
    handler.set_name(f"{_HANDLER_PREFIX}{name}")
    handler.setFormatter(_formatter(pre_chain, structlog.processors.JSONRenderer()))
    return handler


def _remove_installed_handlers() -> None:
    """Detach and close handlers from an earlier ``configure_logging`` call."""
    for logger in (logging.getLogger(), *map(logging.getLogger, _ACCESS_LOGGERS)):
        for handler in list(logger.handlers):
            if (handler.get_name() or "").startswith(_HANDLER_PREFIX):
                logger.removeHandler(handler)
                handler.close()


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_root: Path | None = None,
    service_name: str | None = None,
) -> None:
    """Configure process-wide logging.

    Safe to call more than once: handlers installed by a previous call are
    replaced, handlers added by other code (test capture, for instance) are
    left alone.

    Raises
    ------
    ValueError
        If *fmt* is not one of ``LOG_FORMATS``.
    """
    if fmt not in LOG_FORMATS:
        raise ValueError(f"Unknown log format {fmt!r}; expected one of {', '.join(LOG_FORMATS)}")

    name = service_name or "janus"
    if fmt == "json":
        console_chain = _pre_chain(name, "iso")
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        console_chain = _pre_chain(name, "%H:%M:%S")
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    _remove_installed_handlers()

    console = logging.StreamHandler(sys.stderr)
    console.set_name(f"{_HANDLER_PREFIX}console")
    console.setFormatter(_formatter(console_chain, renderer))

    root = logging.getLogger()
    root.addHandler(console)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for logger_name in _ACCESS_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    if log_root is not None:
        log_root = Path(log_root)
        log_root.mkdir(parents=True, exist_ok=True)
        file_chain = _pre_chain(name, "iso")
        root.addHandler(_json_file_handler(log_root / f"{name}.log", "app-file", file_chain))
        access_handler = _json_file_handler(
            log_root / f"{name}.access.log", "access-file", file_chain
        )
        for logger_name in _ACCESS_LOGGERS:
            logging.getLogger(logger_name).addHandler(access_handler)

    structlog.configure(
        processors=[*console_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
