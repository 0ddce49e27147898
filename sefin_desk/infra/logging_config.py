"""
Logging setup for the signing desk.

- readable: coloured single-line records for local work
- json: one JSON object per record for log aggregation
- level and format come from LOG_LEVEL / LOG_FORMAT
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

from sefin_desk.infra.settings import LOG_FORMAT, LOG_LEVEL

_EXTRA_FIELDS = (
    "task_id",
    "process_id",
    "approver_id",
    "document_kind",
    "step",
    "error_kind",
)


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        extras = " ".join(
            f"{key}={getattr(record, key)}" for key in _EXTRA_FIELDS if getattr(record, key, None) is not None
        )
        line = f"{ts} {color}{record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"
        if extras:
            line = f"{line} [{extras}]"
        if record.exc_info and record.exc_info[0] is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel((level or LOG_LEVEL).upper())
    for handler in list(root.handlers):
        if getattr(handler, "_sefin_desk", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler._sefin_desk = True  # type: ignore[attr-defined]
    if (fmt or LOG_FORMAT).lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ReadableFormatter())
    root.addHandler(handler)
