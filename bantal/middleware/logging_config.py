"""
Logging setup for the back-office API.

Records carry structured ``extra=`` fields (request id, identity, document,
project, blob). Production emits one JSON object per line; development
prints a coloured line with those fields appended as ``key=value``.

Env:
    LOG_LEVEL   DEBUG / INFO / WARNING ... (default DEBUG in dev, INFO in prod)
    LOG_FORMAT  "json" or "text" to override the per-environment default
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

REQUEST_KEYS = ("method", "path", "status", "duration_ms", "remote_addr", "request_id")
DOMAIN_KEYS = ("identity_id", "document_id", "document_type", "project_id", "blob_id")

NOISY_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine")


def record_context(record: logging.LogRecord, keys=REQUEST_KEYS + DOMAIN_KEYS) -> dict:
    """Structured fields present on the record, in declaration order."""
    return {key: getattr(record, key) for key in keys if getattr(record, key, None) is not None}


class JSONFormatter(logging.Formatter):
    """One JSON object per record for the log shipper."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(record_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Coloured single-line output for a developer terminal."""

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
        line = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        context = record_context(record, DOMAIN_KEYS)
        if context:
            line += " " + " ".join(f"{k}={v}" for k, v in context.items())
        duration = getattr(record, "duration_ms", None)
        if duration is not None:
            line += f" [{duration:.0f}ms]"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install a single stderr handler on the root logger for this app."""
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = os.getenv("LOG_FORMAT", "json" if is_prod else "text").lower()
    formatter = JSONFormatter() if fmt == "json" else ReadableFormatter()

    # replaces handlers left by an earlier create_app()
    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.setLevel(level)
    root.addHandler(handler)
    root.setLevel(level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
