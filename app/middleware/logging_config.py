"""
Structured logging configuration.

Report lifecycle code logs with ``extra={"organization_id": ..., "report_id": ...}``;
both formatters surface those ids so one generation can be followed across
claim, aggregate and complete/fail lines.

- Development: one line per record, ids appended as ``org=1 q=4 tpl=2 report=9``
- Production: one JSON object per record
- LOG_LEVEL picks the level, LOG_FORMAT=json|readable overrides the format
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Request fields set by app.middleware.timing
REQUEST_FIELDS = ("method", "path", "status", "duration_ms", "remote_addr", "request_id")

# Report ids, with the short labels used by the readable format
REPORT_FIELDS = (
    ("organization_slug", "org"),
    ("organization_id", "org_id"),
    ("questionnaire_id", "q"),
    ("template_id", "tpl"),
    ("report_id", "report"),
)


def _context(record: logging.LogRecord, names) -> dict:
    out = {}
    for name in names:
        value = getattr(record, name, None)
        if value is not None:
            out[name] = value
    return out


class JSONFormatter(logging.Formatter):
    """One JSON object per record; context ids become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(_context(record, REQUEST_FIELDS))
        entry.update(_context(record, [name for name, _ in REPORT_FIELDS]))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Colored single-line format for development."""

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
        ids = " ".join(
            f"{label}={getattr(record, name)}"
            for name, label in REPORT_FIELDS
            if getattr(record, name, None) is not None
        )
        duration = getattr(record, "duration_ms", None)
        line = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"
        if ids:
            line += f" [{ids}]"
        if duration is not None:
            line += f" ({duration:.0f}ms)"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install a single stderr handler on the root logger.

    Development and testing use ReadableFormatter, production JSONFormatter.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)
    fmt = os.getenv("LOG_FORMAT", "json" if is_prod else "readable").lower()

    # Cleared first so repeated create_app() calls in tests do not stack handlers
    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else ReadableFormatter())
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine", "alembic"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)
    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, fmt)
