from __future__ import annotations

import logging
import sys
from typing import Any, Dict

import structlog
from structlog.processors import TimeStamper
from opentelemetry import trace


def _add_trace_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    span = trace.get_current_span()
    ctx = span.get_span_context()
    if ctx and ctx.is_valid:
        event_dict["trace_id"] = format(ctx.trace_id, "032x")
        event_dict["span_id"] = format(ctx.span_id, "016x")
    return event_dict


def _renderer(fmt: str):
    if fmt == "console":
        return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    return structlog.processors.JSONRenderer()


def setup_logging(level: str | int = "INFO", fmt: str = "json") -> None:
    """Configure structlog for the scanner and the API.

    ``fmt`` is ``json`` (one object per line) or ``console`` for a terminal.
    Every event carries the ``scan_id`` bound by :func:`bind_scan` and the
    active OpenTelemetry trace/span ids.
    """
    lvl = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    fmt = (fmt or "json").strip().lower()

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        TimeStamper(fmt="iso", utc=True),
        _add_trace_context,
    ]
    if fmt != "console":
        processors.append(structlog.processors.dict_tracebacks)
    processors += [structlog.processors.UnicodeDecoder(), _renderer(fmt)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(lvl if isinstance(lvl, int) else logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def bind_scan(scan_id: str) -> None:
    """Tag log events from the current task, and tasks it spawns, with ``scan_id``."""
    structlog.contextvars.bind_contextvars(scan_id=scan_id)


def get_logger(name: str):
    return structlog.get_logger(name)
