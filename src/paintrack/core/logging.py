"""Process-wide logging setup.

All modules log through ``logging.getLogger(__name__)``; structlog's
``ProcessorFormatter`` renders those records either as a colored console
line (``text``) or as one JSON object per line (``json``). Every record is
stamped with the id of the authenticated user, if any, and the current
OpenTelemetry trace and span ids.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path

import structlog
from opentelemetry import trace

_user_context: ContextVar[int | None] = ContextVar("paintrack_user_id", default=None)

# Third-party loggers that are only useful at WARNING and above.
_NOISE_LOGGERS = ("uvicorn.access", "asyncpg", "httpx", "httpcore")

_INVALID_TRACE_ID = "0" * 32
_INVALID_SPAN_ID = "0" * 16


def set_user_context(user_id: int | None) -> None:
    _user_context.set(user_id)


def get_user_context() -> int | None:
    return _user_context.get()


def add_user_context(logger, method_name, event_dict: dict) -> dict:  # noqa: ARG001
    event_dict["user_id"] = _user_context.get()
    return event_dict


def add_otel_context(logger, method_name, event_dict: dict) -> dict:  # noqa: ARG001
    """Stamp ``trace_id``/``span_id``; all-zero ids when no span is recording."""
    span_context = trace.get_current_span().get_span_context()
    if span_context is not None and span_context.trace_id:
        event_dict["trace_id"] = f"{span_context.trace_id:032x}"
        event_dict["span_id"] = f"{span_context.span_id:016x}"
    else:
        event_dict["trace_id"] = _INVALID_TRACE_ID
        event_dict["span_id"] = _INVALID_SPAN_ID
    return event_dict


def _build_processors(time_fmt: str) -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=time_fmt),
        add_user_context,
        add_otel_context,
        structlog.stdlib.ExtraAdder(),
    ]


def _formatter(renderer: structlog.types.Processor, time_fmt: str) -> logging.Formatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_build_processors(time_fmt),
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_file: Path | str | None = None,
) -> None:
    """Install the console handler (and optionally a JSON file handler) on the root logger.

    Safe to call more than once; earlier root handlers are replaced. An
    unknown *level* name falls back to INFO.
    """
    if fmt == "json":
        time_fmt = "iso"
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        time_fmt = "%H:%M:%S"
        renderer = structlog.dev.ConsoleRenderer()

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(renderer, time_fmt))
    root.addHandler(console)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        to_file = logging.FileHandler(path)
        to_file.setFormatter(_formatter(structlog.processors.JSONRenderer(), "iso"))
        root.addHandler(to_file)

    root.setLevel(logging.getLevelNamesMapping().get(level.upper(), logging.INFO))
    for name in _NOISE_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            *_build_processors(time_fmt),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
