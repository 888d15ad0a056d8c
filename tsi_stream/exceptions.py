"""
Error taxonomy for streaming queries.

Every failure of a query call surfaces as one of these types:
- Transport failures while opening, sending or receiving
- Deadline expiry for the whole call
- Malformed payloads that do not match the progress envelope
- Errors reported by the server inside the envelope, with the expired
  access token case split out so callers can refresh credentials
"""

from __future__ import annotations


class QueryError(Exception):
    """Base error for a streaming query call."""

    def __init__(self, message: str, endpoint: str | None = None):
        super().__init__(message)
        self.message = message
        self.endpoint = endpoint


class QueryConnectionError(QueryError):
    """Opening, sending on, or receiving from the connection failed."""
    pass


class QueryTimeoutError(QueryError):
    """The query did not complete before its deadline."""

    def __init__(self, message: str, timeout: float | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.timeout = timeout


class EnvelopeParseError(QueryError):
    """Inbound payload is not a valid progress envelope."""

    def __init__(self, message: str, raw_message: str | bytes | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw_message = raw_message


class ServerReportedError(QueryError):
    """The server answered with an error envelope."""
    pass


class ExpiredAccessTokenError(ServerReportedError):
    """The access token embedded in the query has expired."""
    pass


class UnexpectedServerError(ServerReportedError):
    """Any server error other than an expired access token."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        server_message: str | None = None,
        inner_code: str | None = None,
        inner_message: str | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.code = code
        self.server_message = server_message
        self.inner_code = inner_code
        self.inner_message = inner_message
