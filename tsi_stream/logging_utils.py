"""
Centralized logging and error classification for streaming queries.

Features:
- Structured logging with contextual information
- Classification of query failures into stable categories
- Operation timing for query calls
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import Any

import structlog

from .exceptions import (
    EnvelopeParseError,
    ExpiredAccessTokenError,
    QueryConnectionError,
    QueryTimeoutError,
    UnexpectedServerError,
)

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)


class QueryErrorHandler:
    """Error classification for query failures."""

    @staticmethod
    def classify_error(error: BaseException) -> str:
        """
        Classify an error into a logging category.

        Args:
            error: The exception to classify

        Returns:
            Error category name
        """
        if isinstance(error, ExpiredAccessTokenError):
            return "expired_token"
        if isinstance(error, UnexpectedServerError):
            return "server_error"
        if isinstance(error, EnvelopeParseError):
            return "parse_error"
        if isinstance(error, QueryTimeoutError | TimeoutError):
            return "timeout_error"
        if isinstance(error, QueryConnectionError | ConnectionError | OSError):
            return "connection_error"
        return "unknown_error"


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
    log_timing: bool = True,
):
    """
    Async context manager for operation logging.

    Args:
        operation: Description of the operation
        context: Additional context for logging
        log_timing: Whether to log operation timing

    Yields:
        Bound logger for the operation
    """
    operation_logger = logger.bind(
        operation=operation,
        **(context or {}),
    )

    operation_logger.info("Operation started")
    start_time = time.perf_counter() if log_timing else None

    try:
        yield operation_logger

        log_data: dict[str, Any] = {}
        if log_timing and start_time is not None:
            duration = round((time.perf_counter() - start_time) * 1000, 2)
            log_data["duration_ms"] = duration

        operation_logger.info("Operation completed successfully", **log_data)

    except Exception as e:
        error_log_data: dict[str, Any] = {
            "error_type": type(e).__name__,
            "error_category": QueryErrorHandler.classify_error(e),
            "error_message": str(e),
        }
        if log_timing and start_time is not None:
            duration = round((time.perf_counter() - start_time) * 1000, 2)
            error_log_data["duration_ms"] = duration

        operation_logger.error("Operation failed", **error_log_data)
        raise
