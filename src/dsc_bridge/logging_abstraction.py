"""Structured logging for the bridge.

All bridge loggers hang off the ``dsc_bridge`` package logger, which owns the
handlers: a human-readable stream, a JSON-lines file, or both
(``DSC_LOG_FORMAT``). Each line carries the current tick trace label and the
``extra=`` mapping passed at the call site as its context fields.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping, MutableMapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from typing_extensions import override

from dsc_bridge import const
from dsc_bridge.correlation import current_trace

__all__ = [
    "DscLogger",
    "HumanReadableFormatter",
    "JSONFormatter",
    "get_logger",
    "set_package_level",
]

_NO_TRACE = "-------"


def _context(record: logging.LogRecord) -> dict[str, object]:
    context = getattr(record, "context", None)
    return dict(context) if isinstance(context, Mapping) else {}


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "trace": getattr(record, "trace", None),
            "message": record.getMessage(),
        }
        context = _context(record)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``12:00:01.250 WARNING dsc_bridge.bridge [t000042] message | key=value``"""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s [%(trace_label)s] %(message)s",
            datefmt="%H:%M:%S",
        )

    @override
    def formatMessage(self, record: logging.LogRecord) -> str:
        record.trace_label = getattr(record, "trace", None) or _NO_TRACE
        line = super().formatMessage(record)
        context = _context(record)
        if context:
            line += " | " + " ".join(f"{key}={value}" for key, value in context.items())
        return line


class DscLogger(logging.LoggerAdapter):
    """Moves call-site ``extra=`` into a ``context`` field and stamps the trace label."""

    def __init__(self, logger: logging.Logger) -> None:
        super().__init__(logger, {})

    @override
    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        context = kwargs.pop("extra", None) or {}
        kwargs["extra"] = {"context": dict(context), "trace": current_trace()}
        return msg, kwargs


def _open_file(path: str) -> logging.Handler | None:
    try:
        file_path = Path(path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(file_path, mode="a")
    except OSError as e:
        print(f"Warning: cannot open log file {path}: {e}", file=sys.stderr)
        return None


def _build_handlers(log_format: str, json_file: str | None, human_output: str | None) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if log_format in ("human", "both"):
        target = human_output or "stdout"
        if target in ("stdout", "stderr"):
            human: logging.Handler = logging.StreamHandler(getattr(sys, target))
        else:
            human = _open_file(target) or logging.StreamHandler(sys.stdout)
        human.setFormatter(HumanReadableFormatter())
        handlers.append(human)
    if log_format in ("json", "both") and json_file:
        structured = _open_file(json_file)
        if structured is not None:
            structured.setFormatter(JSONFormatter())
            handlers.append(structured)
    return handlers


def _package_logger() -> logging.Logger:
    package = logging.getLogger(const.DSC_LOG_NAME)
    if not package.handlers:
        package.setLevel(logging.DEBUG if const.DSC_DEBUG else logging.INFO)
        for handler in _build_handlers(const.DSC_LOG_FORMAT, const.DSC_LOG_JSON_FILE, const.DSC_LOG_HUMAN_OUTPUT):
            package.addHandler(handler)
    return package


def get_logger(name: str) -> DscLogger:
    """Return a bridge logger; the package handlers are installed on first use."""
    _ = _package_logger()
    return DscLogger(logging.getLogger(name))


def set_package_level(level: int) -> None:
    """Set the level every ``dsc_bridge.*`` logger inherits."""
    _package_logger().setLevel(level)
