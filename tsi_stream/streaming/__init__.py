"""
Streaming building blocks for the query client.

This package contains:
- Frame reassembly of fragmented transport messages
- The progress envelope schema
- Progress/error interpretation of each message
"""

from __future__ import annotations

from .interpreter import ProgressInterpreter
from .models import (
    ErrorDescriptor,
    InnerErrorDescriptor,
    Outcome,
    OutcomeKind,
    ProgressEnvelope,
)
from .reassembler import Fragment, FragmentChannel, FrameReassembler

__all__ = [
    "ErrorDescriptor",
    "Fragment",
    "FragmentChannel",
    "FrameReassembler",
    "InnerErrorDescriptor",
    "Outcome",
    "OutcomeKind",
    "ProgressEnvelope",
    "ProgressInterpreter",
]
