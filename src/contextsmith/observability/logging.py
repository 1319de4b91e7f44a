"""
contextsmith — structured logging

File: src/contextsmith/observability/logging.py
Last updated: 2026-10-18

Purpose
- Route the package's structlog events (packer decisions, git invocations, config sources) into
  JSON lines on stderr and, when configured, a log file.

Functional requirements
- stdout carries bundle text and reports only; log records never reach it.
- Every record carries the correlation fields of the running command (``command``, ``run_id``).
- One CLI invocation owns one set of handlers; setting up again replaces them.
"""

from __future__ import annotations

import contextvars
import json
import logging
import math
import sys
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

import structlog

if TYPE_CHECKING:
    from typing import TextIO

JSONValue = str | int | float | bool | None | list["JSONValue"] | dict[str, "JSONValue"]

ROOT_LOGGER_NAME: Final[str] = "contextsmith"
_NON_FINITE_VALUE: Final[str] = "<non-finite>"

# Attributes every LogRecord has; anything else on a record is an event field.
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime"}

_CORRELATION: contextvars.ContextVar[tuple[tuple[str, str], ...]] = contextvars.ContextVar(
    "contextsmith_correlation", default=()
)

_active_handlers: tuple[logging.Handler, ...] = ()


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Where and how verbosely one CLI invocation logs."""

    level: int | str = "WARNING"
    log_file: Path | str | None = None
    stream: TextIO | None = None


class _JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, JSONValue] = {
            "timestamp": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        event.update(sorted(get_correlation_context().items()))

        fields = {
            key: _to_json(value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and not key.startswith("_")
        }
        if fields:
            event["fields"] = fields
        if record.exc_info is not None:
            event["exception"] = self.formatException(record.exc_info)

        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def setup_logging(config: LoggingConfig | None = None) -> logging.Logger:
    """Attach JSON-lines handlers (stderr, plus the log file when set) to the package logger."""

    global _active_handlers

    resolved = config if config is not None else LoggingConfig()
    level = parse_log_level(resolved.level)
    formatter = _JsonLineFormatter()

    handlers: list[logging.Handler] = [
        logging.StreamHandler(resolved.stream if resolved.stream is not None else sys.stderr)
    ]
    if resolved.log_file is not None:
        log_path = Path(resolved.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    shutdown_logging()
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    _active_handlers = tuple(handlers)
    return logger


def shutdown_logging() -> None:
    """Flush, close and detach the handlers installed by :func:`setup_logging`."""

    global _active_handlers

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in _active_handlers:
        logger.removeHandler(handler)
        handler.flush()
        handler.close()
    _active_handlers = ()


def get_logger(name: str) -> Any:
    """Return a structlog logger bound to the stdlib logger ``name``.

    Events become ordinary ``logging`` records (event name as message, key/values as extra
    fields) so they share the JSON stream and never reach stdout.
    """

    return structlog.wrap_logger(
        logging.getLogger(name),
        wrapper_class=structlog.stdlib.BoundLogger,
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.render_to_log_kwargs,
        ],
    )


def get_correlation_context() -> dict[str, str]:
    return dict(_CORRELATION.get())


@contextmanager
def correlation_scope(**fields: str) -> Iterator[None]:
    """Attach ``fields`` to every log record emitted inside the block."""

    state = get_correlation_context()
    for key, value in fields.items():
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"correlation value for {key!r} must be a non-empty string")
        state[key] = value.strip()
    token = _CORRELATION.set(tuple(state.items()))
    try:
        yield
    finally:
        _CORRELATION.reset(token)


def parse_log_level(value: int | str) -> int:
    if isinstance(value, bool):
        raise ValueError("level must be int or str")
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        raise ValueError(f"level must be int or str, got {type(value).__name__}")

    parsed = logging.getLevelName(value.strip().upper())
    if isinstance(parsed, int):
        return parsed
    raise ValueError(f"unsupported logging level {value!r}")


def _utc_timestamp(epoch_seconds: float) -> str:
    timestamp = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _to_json(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else _NON_FINITE_VALUE
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, Mapping):
        return {str(key): _to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted(
            (_to_json(item) for item in value),
            key=lambda item: json.dumps(item, sort_keys=True, ensure_ascii=False),
        )
    return repr(value)


__all__ = [
    "ROOT_LOGGER_NAME",
    "JSONValue",
    "LoggingConfig",
    "correlation_scope",
    "get_correlation_context",
    "get_logger",
    "parse_log_level",
    "setup_logging",
    "shutdown_logging",
]
