"""
Structured logging for the serverless function and the dev server.

JSON lines in production (Vercel collects stdout/stderr), plain text locally.
"""

import json
import logging
from datetime import datetime, timezone

_EXTRA_FIELDS = ("error_code", "path", "email", "operation", "table", "count")

_HANDLER_NAME = "insta-detoxify"


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _EXTRA_FIELDS:
            val = record.__dict__.get(key)
            if val is not None:
                log[key] = val
        if record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False)


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """
    Install the root handler. Safe to call more than once: warm serverless
    invocations re-run the app lifespan, and we must not stack handlers.
    """
    root = logging.getLogger()
    for existing in root.handlers:
        if existing.get_name() == _HANDLER_NAME:
            handler = existing
            break
    else:
        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        root.addHandler(handler)

    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler
