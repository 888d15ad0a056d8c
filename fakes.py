"""
In-memory FragmentChannel used by the test suite.
"""

from __future__ import annotations

import asyncio
from collections import deque

from tsi_stream.exceptions import QueryConnectionError
from tsi_stream.streaming.reassembler import Fragment


def split_message(text: str, *sizes: int) -> list[tuple[bytes, bool]]:
    """Split a message into fragments of the given byte sizes, rest in the last one."""
    data = text.encode("utf-8")
    fragments = []
    for size in sizes:
        fragments.append((data[:size], False))
        data = data[size:]
    fragments.append((data, True))
    return fragments


class FakeChannel:
    """Scripted channel: replays fragments, records sends and close calls."""

    def __init__(
        self,
        messages: list[str | list[tuple[bytes, bool]]] | None = None,
        *,
        send_error: Exception | None = None,
        close_error: Exception | None = None,
        block_when_empty: bool = False,
    ):
        self.fragments: deque[tuple[bytes, bool]] = deque()
        for message in messages or []:
            if isinstance(message, str):
                self.fragments.append((message.encode("utf-8"), True))
            else:
                self.fragments.extend(message)
        self.send_error = send_error
        self.close_error = close_error
        self.block_when_empty = block_when_empty
        self.sent: list[str] = []
        self.requested_sizes: list[int] = []
        self.close_calls: list[tuple[int, str]] = []
        self.open = True

    @property
    def is_open(self) -> bool:
        return self.open

    async def send_text(self, text: str) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(text)

    async def receive_fragment(self, max_size: int) -> Fragment:
        self.requested_sizes.append(max_size)
        if not self.fragments:
            if self.block_when_empty:
                await asyncio.Event().wait()
            self.open = False
            raise QueryConnectionError("Connection closed by server")
        data, final = self.fragments.popleft()
        return Fragment(data, end_of_message=final)

    async def close(self, code: int, reason: str) -> None:
        self.close_calls.append((code, reason))
        self.open = False
        if self.close_error is not None:
            raise self.close_error


class FakeChannelFactory:
    """Channel factory returning prepared channels and recording open calls."""

    def __init__(self, *channels: FakeChannel, open_error: Exception | None = None):
        self.channels = deque(channels)
        self.open_error = open_error
        self.calls: list[tuple[str, dict]] = []

    async def __call__(self, uri: str, **kwargs) -> FakeChannel:
        self.calls.append((uri, kwargs))
        if self.open_error is not None:
            raise self.open_error
        return self.channels.popleft()
