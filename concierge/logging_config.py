"""Structured logging for the concierge webhook.

Every record is one JSON line. Per-message fields (sender, delivery id,
outcome) travel in a ``context`` dict, either passed as
``extra={"context": {...}}`` or bound once through :func:`bind_logger`.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Optional

LOGGER_NAMESPACE = "concierge"
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context: Optional[dict] = getattr(record, "context", None)
        if context:
            entry["context"] = context

        if record.levelno >= logging.WARNING:
            entry["source"] = f"{record.module}:{record.lineno}"

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Route all logging through a single stdout JSON handler."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


class ContextLogger(logging.LoggerAdapter):
    """Carries bound context; ``context=...`` on a call is merged on top."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        call_context = kwargs.pop("context", None) or {}
        merged = {**self.extra, **call_context}
        if merged:
            kwargs.setdefault("extra", {})["context"] = merged
        return msg, kwargs


def bind_logger(name: str, **context: Any) -> ContextLogger:
    """``concierge.<name>`` logger with ``context`` (None values dropped) on every line."""
    return ContextLogger(get_logger(name), {k: v for k, v in context.items() if v is not None})
