"""Structured logging configuration for SearXNG-MCP.

Provides JSON-formatted logs with correlation IDs and rich context for
production observability, plus the client-facing MCP log level that
decides which messages are forwarded to the connected client.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from mcp.server.fastmcp import Context

# Context variable for correlation ID tracking across async operations
correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    'correlation_id', default=None
)

ClientLogLevel = Literal["error", "warning", "info", "debug"]

# Lower value = more severe
CLIENT_LOG_LEVELS: dict[str, int] = {
    "error": 0,
    "warning": 1,
    "info": 2,
    "debug": 3,
}

_current_log_level: ClientLogLevel = "info"


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Outputs logs in JSON format with timestamp, level, logger name, message,
    and optional context fields like session_id, operation, correlation_id.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        timestamp = datetime.now(timezone.utc).replace(tzinfo=None)
        log_data = {
            "timestamp": timestamp.isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add correlation ID if set
        correlation_id = correlation_id_var.get()
        if correlation_id:
            log_data["correlation_id"] = correlation_id

        # Add extra fields if present
        if hasattr(record, "session_id"):
            log_data["session_id"] = record.session_id
        if hasattr(record, "operation"):
            log_data["operation"] = record.operation
        if hasattr(record, "duration_ms"):
            log_data["duration_ms"] = record.duration_ms
        if hasattr(record, "extra"):
            log_data["extra"] = record.extra

        # Add error info if present
        if record.exc_info:
            log_data["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class StructuredLogger:
    """Helper for structured logging with context fields.

    Wraps standard Python logger to make it easy to add structured fields
    like session_id, operation, duration_ms, etc.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log_operation(
        self,
        level: str,
        message: str,
        session_id: str | None = None,
        operation: str | None = None,
        duration_ms: int | None = None,
        **extra: Any
    ) -> None:
        """Log with structured fields.

        Args:
            level: Log level (INFO, WARNING, ERROR, etc.)
            message: Log message
            session_id: Optional MCP session ID
            operation: Optional operation name (e.g., "web_url_read")
            duration_ms: Optional operation duration in milliseconds
            **extra: Additional fields to include in log
        """
        log_level = getattr(logging, level.upper())
        if not self.logger.isEnabledFor(log_level):
            return

        record = self.logger.makeRecord(
            self.logger.name,
            log_level,
            "(structured)",
            0,
            message,
            (),
            None
        )

        if session_id:
            record.session_id = session_id
        if operation:
            record.operation = operation
        if duration_ms is not None:
            record.duration_ms = duration_ms
        if extra:
            record.extra = extra

        self.logger.handle(record)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log at INFO level."""
        self.log_operation("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log at WARNING level."""
        self.log_operation("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log at ERROR level."""
        self.log_operation("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log at DEBUG level."""
        self.log_operation("DEBUG", message, **kwargs)


# --- Client-facing log level (MCP logging/setLevel) ---

def set_log_level(level: str) -> bool:
    """Set the level of messages forwarded to MCP clients.

    Returns:
        True if the level was recognised and applied
    """
    global _current_log_level
    normalized = level.lower()
    if normalized not in CLIENT_LOG_LEVELS:
        return False
    _current_log_level = normalized  # type: ignore[assignment]
    return True


def get_current_log_level() -> ClientLogLevel:
    return _current_log_level


def should_log(level: str) -> bool:
    """Whether a message at `level` passes the client-facing filter."""
    rank = CLIENT_LOG_LEVELS.get(level.lower())
    if rank is None:
        return False
    return rank <= CLIENT_LOG_LEVELS[_current_log_level]


async def log_to_client(ctx: Context | None, level: ClientLogLevel, message: str) -> None:
    """Forward a log message to the MCP client if the level allows it."""
    if ctx is None or not should_log(level):
        return
    await ctx.log(level, message, logger_name="searxng_mcp")


def configure_logging(
    log_level: str = "INFO",
    structured: bool = True,
    log_file: str | None = None
) -> None:
    """Configure application logging.

    Console output goes to stderr so the stdio transport stays clean.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        structured: If True, use JSON formatter; if False, use human-readable
        log_file: Optional file path to write logs to
    """
    root_logger = logging.getLogger("searxng_mcp")
    root_logger.setLevel(log_level.upper())

    # Remove existing handlers to avoid duplicates
    root_logger.handlers.clear()

    if structured:
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
