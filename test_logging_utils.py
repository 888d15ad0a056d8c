#!/usr/bin/env python3
"""
Test script for logging utilities.

This validates that error classification and operation logging work correctly.
"""

import pytest

from tsi_stream.exceptions import (
    EnvelopeParseError,
    ExpiredAccessTokenError,
    QueryConnectionError,
    QueryTimeoutError,
    UnexpectedServerError,
)
from tsi_stream.logging_utils import QueryErrorHandler, operation_context


class TestQueryErrorHandler:
    """Test the QueryErrorHandler class."""

    @pytest.mark.parametrize(
        ("error", "category"),
        [
            (ExpiredAccessTokenError("expired"), "expired_token"),
            (UnexpectedServerError("Error Code: X, Error Message: Y"), "server_error"),
            (EnvelopeParseError("bad json"), "parse_error"),
            (QueryTimeoutError("late", timeout=1.0), "timeout_error"),
            (TimeoutError("Connection timed out"), "timeout_error"),
            (QueryConnectionError("refused"), "connection_error"),
            (ConnectionError("Connection refused"), "connection_error"),
            (OSError("Network unreachable"), "connection_error"),
            (RuntimeError("Unknown error"), "unknown_error"),
        ],
    )
    def test_classify_error(self, error, category):
        assert QueryErrorHandler.classify_error(error) == category


class TestOperationContext:
    """Test operation context manager."""

    @pytest.mark.asyncio
    async def test_operation_context_success(self):
        """Test operation context with successful operation."""
        async with operation_context("test_operation", context={"endpoint": "wss://x"}) as log:
            assert log is not None
            result = "success"
        assert result == "success"

    @pytest.mark.asyncio
    async def test_operation_context_reraises(self):
        """Test operation context re-raises the original error."""
        with pytest.raises(ExpiredAccessTokenError, match="expired"):
            async with operation_context("test_operation"):
                raise ExpiredAccessTokenError("expired")
