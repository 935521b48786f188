"""Logging setup for the moderation API.

Dev gets readable lines; ``LOG_FORMAT=json`` switches to one JSON object per
line for log shipping. Either way each record carries the request id of the
request that produced it, and moderation events can attach the ids they are
about via ``extra=``.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from config.settings import settings

# Keys callers may pass through ``extra=`` that end up in JSON output
CONTEXT_FIELDS = ("request_id", "review_id", "report_id", "user_id", "moderator_id")

_TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(request_id)s] %(name)s: %(message)s"


class RequestIDFilter(logging.Filter):
    """Copy the current request ID onto every record ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        from marketplace.middleware.request_id import request_id_var

        record.request_id = request_id_var.get() or "-"
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value and value != "-":
                entry[key] = value
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(log_format: Optional[str] = None, level: Optional[str] = None) -> logging.Handler:
    """Install a single stdout handler on the root logger and return it."""
    log_format = log_format or settings.LOG_FORMAT
    level = (level or settings.LOG_LEVEL).upper()

    root = logging.getLogger()
    root.setLevel(getattr(logging, level, logging.INFO))
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIDFilter())
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT, datefmt="%H:%M:%S"))
    root.addHandler(handler)

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    return handler
