"""
Progress envelope schema and interpreter outcomes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field

from ..exceptions import QueryError

EXPIRED_TOKEN_CODE = "AuthenticationFailed"
EXPIRED_TOKEN_INNER_CODE = "TokenExpired"


class InnerErrorDescriptor(BaseModel):
    """Nested error detail reported by the server."""
    code: str | None = None
    message: str | None = None


class ErrorDescriptor(BaseModel):
    """Error object embedded in a progress envelope."""
    code: str | None = None
    message: str | None = None
    inner_error: InnerErrorDescriptor | None = Field(default=None, alias="innererror")

    @property
    def is_expired_token(self) -> bool:
        return (
            self.code == EXPIRED_TOKEN_CODE
            and self.inner_error is not None
            and self.inner_error.code == EXPIRED_TOKEN_INNER_CODE
        )

    def describe(self) -> str:
        """Compose outer and inner code/message into one line."""
        text = f"Error Code: {self.code or ''}, Error Message: {self.message or ''}"
        if self.inner_error is not None:
            text += (
                f", Inner Error Code: {self.inner_error.code or ''}"
                f", Inner Error Message: {self.inner_error.message or ''}"
            )
        return text


class ProgressEnvelope(BaseModel):
    """
    Decoded view of one inbound message.

    Only the fields that drive the receive loop are modelled; anything else
    in the payload is ignored. A missing completion percentage reads as 0,
    i.e. the query is still running. Strings and booleans are rejected.
    """
    error: ErrorDescriptor | None = None
    percent_completed: float = Field(default=0.0, alias="percentCompleted", strict=True)


class OutcomeKind(Enum):
    """Receive loop decisions."""
    CONTINUE = "continue"
    COMPLETE = "complete"
    FAIL = "fail"


@dataclass(frozen=True)
class Outcome:
    """Result of interpreting one inbound message."""
    kind: OutcomeKind
    percent_completed: float = 0.0
    error: QueryError | None = None

    @classmethod
    def fail(cls, error: QueryError) -> Outcome:
        return cls(kind=OutcomeKind.FAIL, error=error)
