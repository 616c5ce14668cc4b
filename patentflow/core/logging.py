"""
Logging Configuration Module

Configures the root logger once at startup:
- Development: human-readable format on stderr
- Production (LOG_JSON=true): one JSON object per line for log aggregation
- Log level: controlled via the LOG_LEVEL setting
"""
import json
import logging
import sys
from datetime import datetime, timezone

from patentflow.core.config import settings

# Extra attributes callers attach with `extra={...}` that are worth keeping
CONTEXT_FIELDS = ("operation", "project_id", "user_id", "method", "path", "status", "duration_ms")


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production / log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        for key in CONTEXT_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val
        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.now().strftime("%H:%M:%S")
        context = " ".join(
            f"{key}={getattr(record, key)}" for key in CONTEXT_FIELDS
            if getattr(record, key, None) is not None
        )
        base = f"{ts} {record.levelname:<8} {record.name}: {record.getMessage()}"
        if context:
            base += f" [{context}]"
        if record.exc_info and record.exc_info[0] is not None:
            base += "\n" + self.formatException(record.exc_info)
        return base


def configure_logging() -> None:
    """
    Set up the root logger.

    Safe to call more than once: existing root handlers are replaced so test
    sessions and reloads do not duplicate output.
    """
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    formatter = JSONFormatter() if settings.LOG_JSON else ReadableFormatter()

    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.setLevel(level)
    root.addHandler(handler)
    root.setLevel(level)

    # Quieten noisy libraries
    for noisy in ("httpx", "httpcore", "sqlalchemy.engine", "google_genai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
