"""
Streaming query client for progress-reporting WebSocket query endpoints.

This package provides:
- A single-call streaming query client over secure WebSockets
- Frame reassembly and progress/error envelope interpretation
- A typed error hierarchy, with expired access tokens distinguishable
- YAML/.env configuration and structured logging
"""

from __future__ import annotations

from .client import StreamingQueryClient
from .config import Configuration, StreamingSettings, TsiEnvironment
from .endpoint import build_endpoint
from .exceptions import (
    EnvelopeParseError,
    ExpiredAccessTokenError,
    QueryConnectionError,
    QueryError,
    QueryTimeoutError,
    ServerReportedError,
    UnexpectedServerError,
)

__all__ = [
    # Configuration
    "Configuration",
    # Errors
    "EnvelopeParseError",
    "ExpiredAccessTokenError",
    "QueryConnectionError",
    "QueryError",
    "QueryTimeoutError",
    "ServerReportedError",
    "StreamingQueryClient",
    "StreamingSettings",
    "TsiEnvironment",
    "UnexpectedServerError",
    "build_endpoint",
]
