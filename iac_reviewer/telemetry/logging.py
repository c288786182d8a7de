# iac_reviewer/telemetry/logging.py
"""
Log output for the review step.

Two renderings of the same stdlib records:
  - "actions": GitHub workflow commands, so warnings and errors become run
    annotations and debug lines only show with step debugging enabled
  - "json": one object per line for log shipping or local tooling

Static context (PR number, repository) is attached with :func:`bind`.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, MutableMapping, Tuple

# Attributes every LogRecord carries; anything else arrived via ``extra``.
_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
    "taskName",
}


def _utc_z(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, datetime):
        return _utc_z(value.timestamp())
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    return str(value)


def record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        k: v
        for k, v in vars(record).items()
        if k not in _RECORD_ATTRS and not k.startswith("_")
    }


class JsonFormatter(logging.Formatter):
    """``ts``, ``level``, ``logger``, ``message`` then any extras, one line per record."""

    def format(self, record: logging.LogRecord) -> str:
        doc: Dict[str, Any] = {
            "ts": _utc_z(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record_extras(record).items():
            doc.setdefault(key, _jsonable(value))
        if record.exc_info:
            doc["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(doc, ensure_ascii=False)


def _escape_data(text: str) -> str:
    # Same escaping as @actions/core for workflow command data.
    return text.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


class ActionsFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        text = record.getMessage()
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"

        if record.levelno >= logging.ERROR:
            command = "error"
        elif record.levelno >= logging.WARNING:
            command = "warning"
        elif record.levelno <= logging.DEBUG:
            command = "debug"
        else:
            return text
        return f"::{command}::{_escape_data(text)}"


_FORMATTERS = {"actions": ActionsFormatter, "json": JsonFormatter}
_configured = False


def configure_root_logging(
    level: int | str = "INFO",
    fmt: str = "actions",
    *,
    force: bool = False,
) -> None:
    """
    Point the root logger at stdout with the chosen formatter. Existing root
    handlers are dropped. Repeated calls are no-ops unless ``force`` is set.
    """
    global _configured
    if _configured and not force:
        return

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(_FORMATTERS.get(fmt, ActionsFormatter)())
    root.addHandler(handler)
    root.setLevel(level)
    _configured = True


class ContextAdapter(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Adds bound context to every record; per-call ``extra`` keys win."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        merged = dict(self.extra or {})
        call_extra = kwargs.get("extra")
        if isinstance(call_extra, Mapping):
            merged.update(call_extra)
        kwargs["extra"] = merged
        return msg, kwargs


def bind(logger: logging.Logger | None = None, **context: Any) -> ContextAdapter:
    """``bind(log, pr_number=42).info("...")`` tags the record with pr_number."""
    return ContextAdapter(logger or logging.getLogger(), context)


__all__ = [
    "JsonFormatter",
    "ActionsFormatter",
    "configure_root_logging",
    "ContextAdapter",
    "bind",
    "record_extras",
]
