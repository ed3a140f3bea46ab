"""Structured logging for DocVault.

JSON lines by default, plain text for local development. The HTTP middleware
stores the current request id in ``request_id_ctx`` and every record picks it
up through ``RequestIdFilter``.
"""

import json
import logging
import os
import sys
from contextvars import ContextVar
from traceback import format_exception
from typing import Optional

request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime", "request_id"}


class RequestIdFilter(logging.Filter):
    """Attach the active request id to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get()
        return True


class JsonFormatter(logging.Formatter):
    """Structured JSON formatter for hosted logs."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        req_id = getattr(record, "request_id", None)
        if req_id is not None:
            payload["request_id"] = req_id

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            stack = "".join(format_exception(*record.exc_info))
            max_stack = int(os.getenv("LOG_STACK_LIMIT", "4000"))
            payload["error"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "stack": stack[:max_stack] + ("...(truncated)" if len(stack) > max_stack else ""),
            }

        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> None:
    """Configure the root logger. Safe to call more than once."""
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdFilter())
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s [%(name)s] [req=%(request_id)s] %(message)s"
        ))

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, "_docvault_handler", False):
            root.removeHandler(existing)
    handler._docvault_handler = True
    root.addHandler(handler)
    root.setLevel(level.upper())

    # uvicorn installs its own access log; ours is the request_completed event
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
