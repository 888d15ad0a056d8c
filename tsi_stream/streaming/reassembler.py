"""
Reassembly of fragmented transport frames into complete text messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..exceptions import EnvelopeParseError

DEFAULT_BUFFER_SIZE = 16 * 1024


@dataclass(frozen=True)
class Fragment:
    """One transport-level chunk of a message."""
    data: bytes
    end_of_message: bool


class FragmentChannel(Protocol):
    """Duplex connection as seen by the streaming query client."""

    @property
    def is_open(self) -> bool: ...

    async def send_text(self, text: str) -> None: ...

    async def receive_fragment(self, max_size: int) -> Fragment: ...

    async def close(self, code: int, reason: str) -> None: ...


class FrameReassembler:
    """Buffers fragments until the end-of-message flag, then decodes UTF-8."""

    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE):
        if buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")
        self.buffer_size = buffer_size

    async def receive_complete_message(self, channel: FragmentChannel) -> str:
        """
        Read fragments from the channel until one closes the message.

        The accumulator is local to the call, so bytes of consecutive
        messages never mix. Transport errors raised by the channel propagate
        unchanged.
        """
        accumulated = bytearray()
        while True:
            fragment = await channel.receive_fragment(self.buffer_size)
            accumulated.extend(fragment.data)
            if fragment.end_of_message:
                break

        try:
            return accumulated.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EnvelopeParseError(
                f"Message is not valid UTF-8: {e}", raw_message=bytes(accumulated)
            ) from e
