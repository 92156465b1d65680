# backend/logging_config.py

import json
import logging
import sys
from contextvars import ContextVar
from typing import Optional

from backend.config import LOG_LEVEL

# Set by the request-id middleware for the lifetime of one request
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


# Custom formatter that outputs logs as structured JSON
class JsonFormatter(logging.Formatter):
    def format(self, record):
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
        }

        if getattr(record, "request_id", None):
            payload["request_id"] = record.request_id

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload)


class RequestIdFilter(logging.Filter):
    """Copy the current request id onto every record."""

    def filter(self, record):
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()
        return True


def setup_logging(level: str = LOG_LEVEL):
    # stdout is what Railway collects
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.setLevel(level)

    # Avoid duplicate lines when called twice (reload, tests)
    root.handlers.clear()
    root.addHandler(handler)
