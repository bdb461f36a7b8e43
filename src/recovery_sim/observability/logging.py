"""Structured logging: one JSON object per line, shared by structlog and stdlib loggers.

Records are rendered by a ``structlog.stdlib.ProcessorFormatter`` attached to the queue
handler, so rendering (and correlation lookup) happens on the emitting thread. The queue
listener thread only writes finished lines to the file and stdout sinks.
"""

from __future__ import annotations

import atexit
import logging
import logging.handlers
import math
import queue
import sys
from collections.abc import Iterator, Mapping, MutableMapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

import structlog

if TYPE_CHECKING:
    from recovery_sim.config.schema import EngineSettings

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

_NON_FINITE_VALUE: Final[str] = "<non-finite>"
_DEFAULT_LOG_FILENAME: Final[str] = "simulation.jsonl"
_DEFAULT_LOGGER_NAME: Final[str] = "recovery_sim"

# Lifted to the top level of each line; everything else lands under "fields".
_CORRELATION_KEYS: Final[tuple[str, ...]] = ("run_id", "tenant", "wave_id", "correlation_id")

_active: LoggingHandle | None = None


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Configuration for queue-backed structured logging."""

    run_id: str
    base_log_dir: Path | str = Path("logs")
    logger_name: str = _DEFAULT_LOGGER_NAME
    level: int | str = "INFO"
    log_filename: str = _DEFAULT_LOG_FILENAME
    log_to_stdout: bool = True
    log_to_file: bool = True


@dataclass(slots=True, eq=False)
class LoggingHandle:
    """An installed logging setup; ``close`` drains the queue into the sinks."""

    logger: logging.Logger
    run_id: str
    log_path: Path | None
    queue_handler: logging.handlers.QueueHandler
    listener: logging.handlers.QueueListener
    sinks: tuple[logging.Handler, ...]
    closed: bool = False

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.logger.removeHandler(self.queue_handler)
        # stop() enqueues a sentinel and joins, so every accepted record is written.
        self.listener.stop()
        for sink in self.sinks:
            sink.close()


class _JsonLineShaper:
    """structlog processor laying an event dict out as the canonical JSON line."""

    def __init__(self, run_id: str) -> None:
        self._run_id = run_id

    def __call__(
        self, logger: object, method_name: str, event_dict: MutableMapping[str, Any]
    ) -> dict[str, JSONValue]:
        line: dict[str, JSONValue] = {
            "timestamp": event_dict.pop("timestamp", None),
            "level": str(event_dict.pop("level", method_name)).upper(),
            "logger": event_dict.pop("logger", None),
            "message": str(event_dict.pop("event", "")),
            "run_id": self._run_id,
        }
        for key in _CORRELATION_KEYS:
            value = event_dict.pop(key, None)
            if isinstance(value, str) and value.strip():
                line[key] = value.strip()

        exception = event_dict.pop("exception", None)
        if exception:
            line["exception"] = str(exception)
        stack = event_dict.pop("stack", None) or event_dict.pop("stack_info", None)
        if stack:
            line["stack"] = str(stack)

        fields = {
            key: _jsonable(value)
            for key, value in event_dict.items()
            if not key.startswith("_")
        }
        if fields:
            line["fields"] = fields
        return line


def configure_structlog() -> None:
    """Route structlog events into stdlib logging so they share the JSON sinks."""

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def build_json_formatter(run_id: str) -> structlog.stdlib.ProcessorFormatter:
    """Formatter rendering both structlog and plain stdlib records as JSON lines."""

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.ExtraAdder(),
        ],
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _JsonLineShaper(run_id),
            structlog.processors.JSONRenderer(
                sort_keys=True, separators=(",", ":"), ensure_ascii=False
            ),
        ],
    )


def setup_structured_logging(config: LoggingConfig) -> LoggingHandle:
    """Install queue-backed JSON logging for one run, replacing any earlier setup."""
    global _active

    run_id = _require_text(config.run_id, "run_id")
    logger_name = _require_text(config.logger_name, "logger_name")
    log_filename = _require_text(config.log_filename, "log_filename")
    if Path(log_filename).name != log_filename:
        raise ValueError("log_filename must not include path separators")
    level = _parse_log_level(config.level)

    shutdown_logging()

    sinks: list[logging.Handler] = []
    log_path: Path | None = None
    if config.log_to_file:
        log_path = Path(config.base_log_dir) / run_id / log_filename
        log_path.parent.mkdir(parents=True, exist_ok=True)
        sinks.append(logging.FileHandler(log_path, encoding="utf-8"))
    if config.log_to_stdout:
        sinks.append(logging.StreamHandler(sys.stdout))
    for sink in sinks:
        sink.setFormatter(logging.Formatter("%(message)s"))

    logger = logging.getLogger(logger_name)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    logger.setLevel(level)
    logger.propagate = False

    # Unbounded, so emitting threads never block on the sinks.
    log_queue: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
    queue_handler = logging.handlers.QueueHandler(log_queue)
    queue_handler.setFormatter(build_json_formatter(run_id))
    listener = logging.handlers.QueueListener(log_queue, *sinks)
    listener.start()
    logger.addHandler(queue_handler)
    configure_structlog()

    _active = LoggingHandle(
        logger=logger,
        run_id=run_id,
        log_path=log_path,
        queue_handler=queue_handler,
        listener=listener,
        sinks=tuple(sinks),
    )
    return _active


def setup_logging(settings: EngineSettings, *, run_id: str) -> logging.Logger:
    """Configure structured logging from engine settings and return the package logger."""

    handle = setup_structured_logging(
        LoggingConfig(
            run_id=run_id,
            base_log_dir=settings.log_dir,
            level=settings.log_level,
            log_to_stdout=settings.log_to_stdout,
        )
    )
    return handle.logger


def shutdown_logging(handle: LoggingHandle | None = None) -> None:
    """Drain and close ``handle``, or the active setup when none is given."""
    global _active

    target = handle if handle is not None else _active
    if target is None:
        return
    target.close()
    if target is _active:
        _active = None


atexit.register(shutdown_logging)


def get_correlation_context() -> dict[str, str]:
    """Return the correlation fields bound in the current context."""
    return {
        key: value
        for key, value in structlog.contextvars.get_contextvars().items()
        if isinstance(value, str)
    }


@contextmanager
def correlation_scope(**fields: str) -> Iterator[None]:
    """Bind correlation fields for every log line emitted in scope, then restore."""
    bound = {
        key: _require_text(value, f"correlation value for {key}")
        for key, value in fields.items()
    }
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def _require_text(value: object, name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string, got {type(value).__name__}")
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"{name} must not be empty")
    return normalized


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    levels = logging.getLevelNamesMapping()
    name = str(value).strip().upper()
    if name not in levels:
        raise ValueError(f"unsupported logging level {value!r}")
    return levels[name]


def _jsonable(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else _NON_FINITE_VALUE
    if isinstance(value, Enum):
        return _jsonable(value.value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_jsonable(item) for item in value), key=repr)
    return repr(value)


__all__ = [
    "JSONScalar",
    "JSONValue",
    "LoggingConfig",
    "LoggingHandle",
    "build_json_formatter",
    "configure_structlog",
    "correlation_scope",
    "get_correlation_context",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
