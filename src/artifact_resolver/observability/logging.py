"""
artifact-resolver — structured logging.

Purpose
- Write one JSON object per log record to ``<log_dir>/artifact-resolver.jsonl``.
- Route ``structlog`` component loggers through the same stdlib pipeline so event
  keyword arguments land under ``fields``.

Functional requirements
- Records are handed to a bounded queue and written by a listener thread; a full
  queue drops the record and counts it instead of blocking a refresh.
- Correlation fields (``refresh_id``, ``source_id``) bound with ``correlation_scope``
  are captured on the emitting thread and written as top-level keys.
- Secret-looking keys, ``key=value`` assignments, bearer tokens, and URL
  credentials are redacted unless redaction is disabled.
"""

from __future__ import annotations

import atexit
import contextvars
import json
import logging
import logging.handlers
import queue
import re
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

import structlog

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogRedactor = Callable[[JSONValue], JSONValue]

REDACTED: Final[str] = "***REDACTED***"
_DEFAULT_LOG_FILENAME: Final[str] = "artifact-resolver.jsonl"
_DEFAULT_LOGGER_NAME: Final[str] = "artifact_resolver"

CORRELATION_KEYS: Final[tuple[str, ...]] = ("refresh_id", "correlation_id", "source_id")

_SECRET_KEY_FRAGMENTS: Final[tuple[str, ...]] = (
    "secret",
    "token",
    "password",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "cookie",
    "private_key",
)
_SECRET_PATTERNS: Final[tuple[tuple[re.Pattern[str], str], ...]] = (
    (
        re.compile(
            r"(?i)\b(api[_-]?key|token|password|secret|authorization)\b\s*([:=])\s*[^\s,;]+"
        ),
        rf"\1\2{REDACTED}",
    ),
    (re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*"), f"Bearer {REDACTED}"),
    (re.compile(r"(?i)\b([a-z][a-z0-9+.-]*://)[^/\s:@]+:[^/\s@]+@"), rf"\1{REDACTED}@"),
)

# Attributes every LogRecord carries; anything else on a record came from ``extra``.
_RECORD_ATTRIBUTES: Final[frozenset[str]] = frozenset(
    {*vars(logging.makeLogRecord({})), "message", "asctime", "taskName", "correlation"}
)

_CorrelationState = tuple[tuple[str, str], ...]
_CORRELATION: contextvars.ContextVar[_CorrelationState] = contextvars.ContextVar(
    "artifact_resolver_correlation", default=()
)

_active_lock = threading.Lock()
_active: StructuredLoggingHandle | None = None
_atexit_registered = False


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Where and how verbosely the JSON-lines log is written."""

    log_dir: Path | str = Path("logs")
    logger_name: str = _DEFAULT_LOGGER_NAME
    level: int | str = "INFO"
    queue_size: int = 4096
    log_filename: str = _DEFAULT_LOG_FILENAME
    log_to_stdout: bool = False
    redact: bool = True


def logging_config_from_settings(
    observability: Mapping[str, object] | None = None,
    *,
    log_dir: Path | str | None = None,
) -> LoggingConfig:
    """Translate an ``[observability]`` config section; ``log_dir`` wins when given."""

    section = dict(observability or {})
    level = section.get("log_level", "INFO")
    directory = log_dir if log_dir is not None else section.get("log_dir", "logs")
    return LoggingConfig(
        log_dir=directory if isinstance(directory, (Path, str)) else "logs",
        level=level if isinstance(level, (int, str)) else "INFO",
        log_to_stdout=bool(section.get("log_to_stdout", False)),
        redact=bool(section.get("redact_secrets", True)),
    )


class _ContextQueueHandler(logging.handlers.QueueHandler):
    def __init__(self, log_queue: queue.Queue[object]) -> None:
        super().__init__(log_queue)
        self.dropped = 0
        self._drop_lock = threading.Lock()

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        # The listener thread cannot see this thread's contextvars.
        context = get_correlation_context()
        if context:
            record.correlation = context
        prepared: logging.LogRecord = super().prepare(record)
        return prepared

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            with self._drop_lock:
                self.dropped += 1


class JsonLinesFormatter(logging.Formatter):
    """Render a record as one sorted, compact JSON object."""

    def __init__(self, *, redactor: LogRedactor) -> None:
        super().__init__()
        self._redact = redactor

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, JSONValue] = {
            "timestamp": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "event": _as_text(self._redact(record.getMessage())),
        }
        payload.update(_record_correlation(record))

        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES
            and key not in CORRELATION_KEYS
            and not key.startswith("_")
        }
        if extras:
            payload["fields"] = self._redact(_to_json(extras))
        if record.exc_info:
            payload["exception"] = _as_text(self._redact(self.formatException(record.exc_info)))
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


@dataclass(slots=True, eq=False)
class StructuredLoggingHandle:
    """The running queue listener plus the sinks it owns."""

    logger: logging.Logger
    log_path: Path
    queue_handler: _ContextQueueHandler
    listener: logging.handlers.QueueListener
    sinks: tuple[logging.Handler, ...]
    _closed: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock)

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    @property
    def dropped_records(self) -> int:
        return self.queue_handler.dropped

    def flush(self, *, timeout_seconds: float = 2.0) -> None:
        pending = self.listener.queue
        deadline = time.monotonic() + max(timeout_seconds, 0.0)
        while getattr(pending, "unfinished_tasks", 0) > 0 and time.monotonic() < deadline:
            time.sleep(0.01)
        for sink in self.sinks:
            sink.flush()

    def shutdown(self, *, timeout_seconds: float = 2.0) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self.flush(timeout_seconds=timeout_seconds)
        self.listener.stop()
        self.logger.removeHandler(self.queue_handler)
        self.queue_handler.close()
        for sink in self.sinks:
            sink.close()


def setup_structured_logging(config: LoggingConfig) -> StructuredLoggingHandle:
    """Start queue-backed JSON-lines logging, replacing any previous setup."""

    global _active
    shutdown_logging()

    if config.queue_size <= 0:
        raise ValueError("queue_size must be > 0")
    filename = config.log_filename.strip()
    if not filename or Path(filename).name != filename:
        raise ValueError("log_filename must be a bare, non-empty file name")
    name = config.logger_name.strip()
    if not name:
        raise ValueError("logger_name must not be empty")
    level = _parse_level(config.level)

    log_dir = Path(config.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / filename

    formatter = JsonLinesFormatter(redactor=default_log_redactor if config.redact else _unchanged)
    sinks: list[logging.Handler] = [logging.FileHandler(log_path, encoding="utf-8")]
    if config.log_to_stdout:
        sinks.append(logging.StreamHandler())
    for sink in sinks:
        sink.setLevel(level)
        sink.setFormatter(formatter)

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()

    log_queue: queue.Queue[object] = queue.Queue(maxsize=config.queue_size)
    queue_handler = _ContextQueueHandler(log_queue)
    queue_handler.setLevel(level)
    listener = logging.handlers.QueueListener(log_queue, *sinks, respect_handler_level=True)
    listener.start()
    logger.addHandler(queue_handler)
    handle = StructuredLoggingHandle(
        logger=logger,
        log_path=log_path,
        queue_handler=queue_handler,
        listener=listener,
        sinks=tuple(sinks),
    )
    configure_structlog()

    with _active_lock:
        _active = handle
    _ensure_atexit_shutdown()
    return handle


def configure_structlog() -> None:
    """Send structlog events to stdlib logging with their kwargs as ``extra``."""

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.format_exc_info,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def flush_logging(
    handle: StructuredLoggingHandle | None = None, *, timeout_seconds: float = 2.0
) -> None:
    target = handle if handle is not None else get_active_logging_handle()
    if target is not None:
        target.flush(timeout_seconds=timeout_seconds)


def shutdown_logging(
    handle: StructuredLoggingHandle | None = None, *, timeout_seconds: float = 2.0
) -> None:
    """Stop the listener and close sinks for ``handle`` (default: the active one)."""

    global _active
    target = handle if handle is not None else get_active_logging_handle()
    if target is None:
        return
    target.shutdown(timeout_seconds=timeout_seconds)
    with _active_lock:
        if _active is target:
            _active = None


def get_active_logging_handle() -> StructuredLoggingHandle | None:
    with _active_lock:
        return _active


# ---------------------------------------------------------------------------
# Correlation
# ---------------------------------------------------------------------------


def get_correlation_context() -> dict[str, str]:
    return dict(_CORRELATION.get())


def set_correlation_fields(**fields: str | None) -> contextvars.Token[_CorrelationState]:
    """Bind (or with ``None``, unbind) correlation fields; returns a reset token."""

    state = get_correlation_context()
    for key, value in fields.items():
        if value is None:
            state.pop(key, None)
        elif value.strip():
            state[key] = value.strip()
        else:
            raise ValueError(f"correlation value for {key!r} must not be empty")
    return _CORRELATION.set(tuple(state.items()))


def reset_correlation_fields(token: contextvars.Token[_CorrelationState]) -> None:
    _CORRELATION.reset(token)


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    token = set_correlation_fields(**fields)
    try:
        yield
    finally:
        reset_correlation_fields(token)


# ---------------------------------------------------------------------------
# Redaction
# ---------------------------------------------------------------------------


def default_log_redactor(value: JSONValue) -> JSONValue:
    """Redact secrets anywhere inside a JSON-compatible value."""

    if isinstance(value, str):
        for pattern, replacement in _SECRET_PATTERNS:
            value = pattern.sub(replacement, value)
        return value
    if isinstance(value, list):
        return [default_log_redactor(item) for item in value]
    if isinstance(value, dict):
        return {
            key: REDACTED if _is_secret_key(key) else default_log_redactor(item)
            for key, item in value.items()
        }
    return value


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(fragment in lowered for fragment in _SECRET_KEY_FRAGMENTS)


def _unchanged(value: JSONValue) -> JSONValue:
    return value


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ensure_atexit_shutdown() -> None:
    global _atexit_registered
    if not _atexit_registered:
        atexit.register(shutdown_logging)
        _atexit_registered = True


def _parse_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    parsed = logging.getLevelName(value.strip().upper())
    if not isinstance(parsed, int):
        raise ValueError(f"unsupported logging level {value!r}")
    return parsed


def _utc_timestamp(epoch_seconds: float) -> str:
    moment = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _record_correlation(record: logging.LogRecord) -> dict[str, JSONValue]:
    merged: dict[str, JSONValue] = {}
    captured = getattr(record, "correlation", None)
    if isinstance(captured, Mapping):
        merged.update((k, v) for k, v in captured.items() if isinstance(v, str))
    for key in CORRELATION_KEYS:
        value = getattr(record, key, None)
        if isinstance(value, str) and value.strip():
            merged[key] = value.strip()
    return merged


def _as_text(value: JSONValue) -> str:
    if isinstance(value, str):
        return value
    return "" if value is None else json.dumps(value, sort_keys=True, ensure_ascii=False)


def _to_json(value: object) -> JSONValue:
    decoded: JSONValue = json.loads(json.dumps(value, default=_json_fallback))
    return decoded


def _json_fallback(value: object) -> object:
    if isinstance(value, datetime):
        aware = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
        return aware.astimezone(UTC).isoformat().replace("+00:00", "Z")
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


__all__ = [
    "CORRELATION_KEYS",
    "REDACTED",
    "JSONScalar",
    "JSONValue",
    "JsonLinesFormatter",
    "LogRedactor",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "configure_structlog",
    "correlation_scope",
    "default_log_redactor",
    "flush_logging",
    "get_active_logging_handle",
    "get_correlation_context",
    "logging_config_from_settings",
    "reset_correlation_fields",
    "set_correlation_fields",
    "setup_structured_logging",
    "shutdown_logging",
]
