"""
Progress/error interpretation of reassembled messages.

Each message is decoded into a ProgressEnvelope and mapped to one of three
outcomes: keep reading, stop because the query completed, or fail. Failures
are returned as values so the connection layer decides how to unwind.
"""

from __future__ import annotations

from pydantic import ValidationError

from ..exceptions import (
    EnvelopeParseError,
    ExpiredAccessTokenError,
    UnexpectedServerError,
)
from .models import ErrorDescriptor, Outcome, OutcomeKind, ProgressEnvelope

COMPLETE_PERCENT = 100.0
DEFAULT_COMPLETION_TOLERANCE = 0.01


class ProgressInterpreter:
    """Maps inbound messages to receive loop outcomes."""

    def __init__(self, completion_tolerance: float = DEFAULT_COMPLETION_TOLERANCE):
        if completion_tolerance <= 0:
            raise ValueError("completion_tolerance must be positive")
        self.completion_tolerance = completion_tolerance

    def interpret(self, message: str) -> Outcome:
        try:
            envelope = ProgressEnvelope.model_validate_json(message)
        except ValidationError as e:
            return Outcome.fail(
                EnvelopeParseError(
                    f"Malformed progress envelope: {e.error_count()} validation error(s)",
                    raw_message=message,
                )
            )

        if envelope.error is not None:
            return Outcome.fail(self._classify(envelope.error))

        percent = envelope.percent_completed
        if abs(percent - COMPLETE_PERCENT) < self.completion_tolerance:
            return Outcome(kind=OutcomeKind.COMPLETE, percent_completed=percent)
        return Outcome(kind=OutcomeKind.CONTINUE, percent_completed=percent)

    @staticmethod
    def _classify(error: ErrorDescriptor) -> ExpiredAccessTokenError | UnexpectedServerError:
        if error.is_expired_token:
            return ExpiredAccessTokenError(error.inner_error.message or "")

        inner = error.inner_error
        return UnexpectedServerError(
            error.describe(),
            code=error.code,
            server_message=error.message,
            inner_code=inner.code if inner else None,
            inner_message=inner.message if inner else None,
        )
