"""
Structured logging configuration for production use.

Provides JSON-formatted logs for better parsing and aggregation.

Every record emitted while a request is being served carries that request's
context: request_id (from the X-Request-ID header, or generated) and, once the
bearer token is resolved, the user_id. Engine logs can therefore be grouped by
user without every call site repeating it in extra_fields.
"""
import logging
import sys
import json
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from core.config import settings

# Request-scoped fields. The dict is shared by reference with the threadpool
# and middleware tasks that copy this context, so bind_log_context updates
# made inside a dependency are seen by the endpoint's logs too.
_log_context: ContextVar[Optional[Dict[str, Any]]] = ContextVar("energy_log_context", default=None)

CONTEXT_FIELDS = ("request_id", "user_id")


def start_log_context(**fields) -> Token:
    """Begin a fresh context (one per request). Pass the token to reset_log_context."""
    return _log_context.set(dict(fields))


def reset_log_context(token: Token) -> None:
    _log_context.reset(token)


def bind_log_context(**fields) -> None:
    """Add fields to the current request's context. No-op outside a request."""
    context = _log_context.get()
    if context is not None:
        context.update(fields)


def current_log_context() -> Dict[str, Any]:
    return dict(_log_context.get() or {})


class RequestContextFilter(logging.Filter):
    """Copy the request context onto each record so plain-text formats can use it."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = current_log_context()
        for name in CONTEXT_FIELDS:
            setattr(record, name, context.get(name, "-"))
        return True


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Request context first; explicit extra_fields win on collision
        log_data.update(current_log_context())

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields if present
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


def setup_logging():
    """
    Configure application-wide logging.

    Uses JSON format in production, text format in development.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    # Create formatter
    if settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production":
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s %(user_id)s] %(message)s"
        )

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove existing handlers
    root_logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(RequestContextFilter())
    root_logger.addHandler(console_handler)

    # Set levels for noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return root_logger
