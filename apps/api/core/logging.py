"""
Structured logging for the API.

JSON lines in production, plain text locally. Every record carries the
request id of the HTTP request it was emitted under (or "-" outside a
request), so one upload batch or one distribution can be followed across
service, storage and database log lines.
"""
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import json
import logging
import sys
import uuid

from core.config import settings

SERVICE_NAME = "gym-content-api"

_request_id: ContextVar[str] = ContextVar("request_id", default="-")


def new_request_id(incoming: Optional[str] = None) -> str:
    """Adopt a sane client-supplied id, otherwise mint one; bind it to this context."""
    value = (incoming or "").strip()
    if not value or len(value) > 64 or not value.replace("-", "").isalnum():
        value = uuid.uuid4().hex
    _request_id.set(value)
    return value


def current_request_id() -> str:
    return _request_id.get()


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record; `extra_fields` are merged at top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "environment": settings.ENVIRONMENT,
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        extra = getattr(record, "extra_fields", None)
        if isinstance(extra, dict):
            entry.update(extra)
        return json.dumps(entry, default=str)


def setup_logging() -> logging.Logger:
    """Install the single stdout handler on the root logger."""
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    if settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s [%(request_id)s] %(name)s %(levelname)s: %(message)s")

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for noisy in ("sqlalchemy.engine", "urllib3", "multipart", "python_multipart"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    logging.getLogger("alembic").setLevel(logging.INFO)
    return root
