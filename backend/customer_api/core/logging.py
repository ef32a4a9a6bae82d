"""
Structured logging for the customer API and the client cache.

Uses LOG_LEVEL from settings (customer_api.core.config) and installs a JSON
formatter on the root logger. Every record carries the service name, the
environment and, while a request is being served, its correlation id.

Usage:
    from customer_api.core.logging import init_logging, get_logger
    init_logging()
    log = get_logger(__name__)
    log.info("customer updated", extra={"customer_id": cid})
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from customer_api.core.config import get_settings

__all__ = ["init_logging", "get_logger", "bind_request_id", "reset_request_id", "SERVICE_NAME"]

SERVICE_NAME = "customer-api"

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Attributes every LogRecord has; anything else came in through `extra`
_RESERVED = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime", "taskName"}


def bind_request_id(request_id: Optional[str]):
    """Attach a correlation id to log records emitted in the current context."""
    return _request_id.set(request_id)


def reset_request_id(token) -> None:
    _request_id.reset(token)


class JsonFormatter(logging.Formatter):
    """JSON log formatter with stable keys."""

    default_time_format = "%Y-%m-%dT%H:%M:%S%z"

    def __init__(self, *, environment: str = "development") -> None:
        super().__init__()
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:  # noqa: A003
        payload: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).strftime(
                self.default_time_format
            ),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "env": self.environment,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = _request_id.get()
        if request_id:
            payload["request_id"] = request_id

        for key, value in record.__dict__.items():
            if key in _RESERVED or key in payload:
                continue
            try:
                json.dumps(value)
                payload[key] = value
            except (TypeError, ValueError):
                payload[key] = str(value)

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


_configured: bool = False


def init_logging() -> None:
    """
    Initialize application logging with a JSON formatter and level from settings.
    Idempotent: safe to call multiple times.
    """
    global _configured
    if _configured:
        return

    settings = get_settings()
    level = logging.getLevelName((settings.log_level or "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    # Replace handlers installed by uvicorn/pytest to avoid duplicate lines
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter(environment=settings.app_env))
    root.addHandler(handler)

    _configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a named logger; records propagate to the JSON root handler."""
    return logging.getLogger(name if name else SERVICE_NAME)
