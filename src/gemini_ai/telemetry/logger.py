"""
Structured logging for gemini-ai-python.

Records carry keyword fields (``logger.warning("Retrying", attempt=2)``) and
the request context bound with ``log_context``. API keys are redacted from
messages and fields before anything is written.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from collections.abc import Iterator

_current_context: ContextVar[LogContext | None] = ContextVar("gemini_log_context", default=None)

REDACTED = "***REDACTED***"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"

    @property
    def numeric(self) -> int:
        return logging.getLevelName(self.value)


@dataclass(frozen=True)
class LogContext:
    """Fields attached to every record emitted inside one API call.

    Attributes:
        request_id: Client-generated request identifier
        model: Model resource name
        operation: API method (generateContent, cachedContents.create, ...)
        extra: Any other call-scoped fields
    """

    request_id: str | None = None
    model: str | None = None
    operation: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        fields = {k: v for k, v in asdict(self).items() if k != "extra" and v is not None}
        fields.update(self.extra)
        return fields


def get_log_context() -> LogContext:
    return _current_context.get() or LogContext()


def set_log_context(context: LogContext) -> None:
    _current_context.set(context)


def clear_log_context() -> None:
    _current_context.set(None)


@contextmanager
def log_context(**fields: Any) -> Iterator[LogContext]:
    """Bind call fields for the duration of a block, on top of the current ones.

    Known names (request_id, model, operation) fill the context attributes;
    anything else lands in ``extra``.
    """
    parent = get_log_context()
    known = {k: fields.pop(k) for k in ("request_id", "model", "operation") if k in fields}
    merged = LogContext(
        request_id=known.get("request_id", parent.request_id),
        model=known.get("model", parent.model),
        operation=known.get("operation", parent.operation),
        extra={**parent.extra, **fields},
    )
    token = _current_context.set(merged)
    try:
        yield merged
    finally:
        _current_context.reset(token)


class SensitiveDataMasker:
    """Redacts Google API keys from text and field mappings."""

    DEFAULT_PATTERNS: ClassVar[list[tuple[str, str]]] = [
        (r"AIza[0-9A-Za-z_\-]{20,}", "AIza" + REDACTED),
        (r"([?&]key=)([^&\s\"']+)", r"\1" + REDACTED),
        (r"(x-goog-api-key[\"']?\s*[:=]\s*[\"']?)([^\"'\s,}]+)", r"\1" + REDACTED),
        (r"((?:GEMINI|GOOGLE)_API_KEY=)(\S+)", r"\1" + REDACTED),
    ]
    SECRET_FIELDS: ClassVar[tuple[str, ...]] = ("api_key", "apikey", "x-goog-api-key", "secret")

    def __init__(self, patterns: list[tuple[str, str]] | None = None) -> None:
        self._rules = [
            (re.compile(pattern, re.IGNORECASE), replacement)
            for pattern, replacement in (patterns or self.DEFAULT_PATTERNS)
        ]

    def mask(self, text: str) -> str:
        for rule, replacement in self._rules:
            text = rule.sub(replacement, text)
        return text

    def mask_dict(self, data: dict[str, Any]) -> dict[str, Any]:
        """Redact secret-named fields outright and scrub string values, recursively."""
        masked: dict[str, Any] = {}
        for key, value in data.items():
            if any(name in key.lower() for name in self.SECRET_FIELDS):
                masked[key] = REDACTED
            elif isinstance(value, str):
                masked[key] = self.mask(value)
            elif isinstance(value, dict):
                masked[key] = self.mask_dict(value)
            else:
                masked[key] = value
        return masked


class _StructuredFormatter(logging.Formatter):
    def __init__(self, masker: SensitiveDataMasker | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.masker = masker or SensitiveDataMasker()

    def structured_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        fields = get_log_context().to_dict()
        fields.update(getattr(record, "extra_fields", {}))
        return self.masker.mask_dict(fields)


class JsonFormatter(_StructuredFormatter):
    """One JSON object per record; structured fields sit at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": self.masker.mask(record.getMessage()),
            **self.structured_fields(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(_StructuredFormatter):
    """``time | LEVEL | logger | message | k=v ...``"""

    def __init__(self, masker: SensitiveDataMasker | None = None) -> None:
        super().__init__(
            masker,
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = self.masker.mask(super().format(record))
        fields = self.structured_fields(record)
        if not fields:
            return line
        return line + " | " + " ".join(f"{k}={v}" for k, v in fields.items())


class GeminiLogger:
    """Thin wrapper over a stdlib logger that takes keyword fields.

    Example:
        >>> logger = get_logger("gemini_ai.resilience")
        >>> logger.warning("Retrying request", attempt=2, delay=1.5)
    """

    _handler: ClassVar[logging.Handler | None] = None
    _level: ClassVar[int | None] = None

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    @classmethod
    def configure(
        cls,
        level: LogLevel | str = LogLevel.INFO,
        format: str = "text",
        stream: Any = None,
        masker: SensitiveDataMasker | None = None,
    ) -> None:
        """Send all ``gemini_ai`` records to one handler.

        Args:
            level: Minimum level
            format: ``"json"`` or ``"text"``
            stream: Output stream, stderr by default
            masker: Masker used by the formatter

        Until this is called records propagate to the application's
        handlers unchanged.
        """
        if not isinstance(level, LogLevel):
            level = LogLevel(level.upper())
        formatter = JsonFormatter(masker) if format == "json" else TextFormatter(masker)
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(formatter)

        root = logging.getLogger("gemini_ai")
        if cls._handler is not None:
            root.removeHandler(cls._handler)
        root.addHandler(handler)
        root.setLevel(level.numeric)
        root.propagate = False
        cls._handler = handler

    def _emit(self, level: int, msg: str, exc_info: bool, fields: dict[str, Any]) -> None:
        if self._logger.isEnabledFor(level):
            extra = {"extra_fields": fields} if fields else None
            self._logger.log(level, msg, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, msg, False, fields)

    def info(self, msg: str, **fields: Any) -> None:
        self._emit(logging.INFO, msg, False, fields)

    def warning(self, msg: str, exc_info: bool = False, **fields: Any) -> None:
        self._emit(logging.WARNING, msg, exc_info, fields)

    def error(self, msg: str, exc_info: bool = False, **fields: Any) -> None:
        self._emit(logging.ERROR, msg, exc_info, fields)

    @property
    def name(self) -> str:
        return self._logger.name


def get_logger(name: str) -> GeminiLogger:
    return GeminiLogger(logging.getLogger(name))
