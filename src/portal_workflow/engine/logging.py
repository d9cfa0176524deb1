"""Structured logging configuration.

Standard library logging with a JSON line formatter. Context travels in
``extra={...}`` and is emitted under the ``extra`` key. While an event is being
dispatched, every record (from the engine, an action or a listener) is also
stamped with the emission it belongs to, under the ``emission`` key.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any

_RESERVED_LOG_RECORD_ATTRS: set[str] = {
    "args",
    "asctime",
    "created",
    "emission",
    "exc_info",
    "exc_text",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "msg",
    "name",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "taskName",
    "thread",
    "threadName",
}

_NOISY_LOGGERS: tuple[str, ...] = ("sqlalchemy.engine", "urllib3", "uvicorn.access")


@dataclass(frozen=True, slots=True)
class EmissionContext:
    event_type: str
    event_id: int | None
    # 0 for an emit from application code, +1 for each emit made by a listener.
    depth: int = 0


_current_emission: ContextVar[EmissionContext | None] = ContextVar("workflow_emission", default=None)


def current_emission() -> EmissionContext | None:
    return _current_emission.get()


@contextmanager
def emission_context(event_type: str, event_id: int | None) -> Iterator[EmissionContext]:
    """Mark log records produced inside the block as belonging to one emission."""

    parent = _current_emission.get()
    context = EmissionContext(
        event_type=event_type,
        event_id=event_id,
        depth=parent.depth + 1 if parent is not None else 0,
    )
    token = _current_emission.set(context)
    try:
        yield context
    finally:
        _current_emission.reset(token)


class EmissionContextFilter(logging.Filter):
    """Attach the active :class:`EmissionContext` to each record as ``record.emission``."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 (record)
        context = _current_emission.get()
        if context is not None and not hasattr(record, "emission"):
            record.emission = asdict(context)
        return True


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003 (record)
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        emission = getattr(record, "emission", None)
        if emission:
            payload["emission"] = emission

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_LOG_RECORD_ATTRS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        # Payload values are arbitrary; fall back to str() for anything json can't encode.
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str) -> None:
    """Configure root logging with structured JSON output."""

    root = logging.getLogger()

    # Remove any existing handlers to avoid duplicate logs when re-configuring.
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(EmissionContextFilter())

    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(root.level, logging.INFO))
