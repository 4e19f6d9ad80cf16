"""
Structured logging configuration for the ParkLookup media service.

This module provides:
- JSON structured logging with structlog
- Context enrichment (request_id, user_id, asset_id)
- Audit logging for the media upload lifecycle
- Log filtering and formatting
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime

import structlog
from structlog.types import FilteringBoundLogger

from .config import settings

# Context variables for request tracking
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_ctx: ContextVar[str | None] = ContextVar("user_id", default=None)
asset_id_ctx: ContextVar[str | None] = ContextVar("asset_id", default=None)

_RESERVED_RECORD_FIELDS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "exc_info",
    "exc_text",
    "stack_info",
}


class StructlogFormatter(logging.Formatter):
    """Custom formatter to bridge between stdlib logging and structlog."""

    def __init__(self, processor):
        super().__init__()
        self.processor = processor

    def format(self, record: logging.LogRecord) -> str:
        """Format log record using structlog processor."""
        event_dict = {
            "event": record.getMessage(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        _add_context_vars(event_dict)

        if record.exc_info:
            event_dict["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_FIELDS and key not in event_dict:
                event_dict[key] = value

        return self.processor(None, None, event_dict)


def _add_context_vars(event_dict: dict) -> dict:
    if request_id := request_id_ctx.get():
        event_dict["request_id"] = request_id
    if user_id := user_id_ctx.get():
        event_dict["user_id"] = user_id
    if asset_id := asset_id_ctx.get():
        event_dict["asset_id"] = asset_id
    return event_dict


def add_context_fields(logger, method_name, event_dict):
    """Add context fields to every log entry."""
    _add_context_vars(event_dict)

    event_dict["app"] = settings.app.app_name
    event_dict["version"] = settings.app.version
    event_dict["environment"] = settings.app.environment

    return event_dict


def add_timestamps(logger, method_name, event_dict):
    """Add timestamp in ISO format."""
    event_dict["timestamp"] = datetime.utcnow().isoformat() + "Z"
    return event_dict


def filter_sensitive_data(logger, method_name, event_dict):
    """Filter sensitive data from logs."""
    sensitive_fields = {"password", "secret", "token", "api_key", "access_key", "authorization"}

    def _filter(obj):
        if isinstance(obj, dict):
            return {
                key: (
                    "[REDACTED]"
                    if any(field in str(key).lower() for field in sensitive_fields)
                    else _filter(value)
                )
                for key, value in obj.items()
            }
        elif isinstance(obj, list):
            return [_filter(item) for item in obj]
        return obj

    return _filter(event_dict)


def _renderer():
    if settings.app.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_structlog():
    """Configure structlog with JSON output."""
    processors = [
        add_context_fields,
        add_timestamps,
        filter_sensitive_data,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        _renderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_stdlib_logging():
    """Configure standard library logging to work with structlog."""
    formatter = StructlogFormatter(_renderer())

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.app.log_level))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(getattr(logging, settings.app.log_level))
    root_logger.addHandler(console_handler)

    logging.getLogger("uvicorn.access").handlers = []
    logging.getLogger("uvicorn.access").propagate = True

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


class LoggingContextManager:
    """Context manager for setting logging context."""

    def __init__(self, request_id: str | None = None, user_id: str | None = None, asset_id: str | None = None):
        self.request_id = request_id or request_id_ctx.get() or str(uuid.uuid4())
        self.user_id = user_id
        self.asset_id = asset_id
        self._tokens = []

    def __enter__(self):
        self._tokens.append(request_id_ctx.set(self.request_id))
        if self.user_id:
            self._tokens.append(user_id_ctx.set(self.user_id))
        if self.asset_id:
            self._tokens.append(asset_id_ctx.set(self.asset_id))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        for token in reversed(self._tokens):
            token.var.reset(token)
        self._tokens.clear()


class AuditLogger:
    """Structured audit logging for media lifecycle events."""

    def __init__(self):
        self.logger = structlog.get_logger("audit")

    def log_media_uploaded(self, media_id: str, user_id: str, park_code: str, media_type: str,
                           processing_time: float, **kwargs):
        """Log an asset reaching the ready state."""
        self.logger.info(
            "media_uploaded",
            media_id=media_id,
            user_id=user_id,
            park_code=park_code,
            media_type=media_type,
            processing_time_seconds=processing_time,
            action="upload_media",
            **kwargs,
        )

    def log_media_failed(self, media_id: str, user_id: str, error: str, **kwargs):
        """Log an asset transitioning to failed."""
        self.logger.error(
            "media_failed",
            media_id=media_id,
            user_id=user_id,
            error=error,
            action="upload_media",
            status="failed",
            **kwargs,
        )

    def log_media_deleted(self, media_id: str, user_id: str, **kwargs):
        """Log asset deletion."""
        self.logger.info(
            "media_deleted",
            media_id=media_id,
            user_id=user_id,
            action="delete_media",
            **kwargs,
        )


def setup_logging():
    """Initialize all logging systems."""
    setup_structlog()
    setup_stdlib_logging()


# Global logger instances
audit_logger = AuditLogger()


def get_logger(name: str = None) -> FilteringBoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def with_logging_context(request_id: str = None, user_id: str = None, asset_id: str = None) -> LoggingContextManager:
    """Create logging context manager."""
    return LoggingContextManager(request_id, user_id, asset_id)


def create_request_id() -> str:
    """Generate unique request ID."""
    return str(uuid.uuid4())
