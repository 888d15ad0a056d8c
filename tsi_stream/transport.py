"""
WebSocket transport for the streaming query client.

Wraps a `websockets` asyncio client connection behind the FragmentChannel
interface and translates transport failures into QueryConnectionError.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import structlog
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, WebSocketException
from websockets.protocol import State

from .exceptions import QueryConnectionError
from .streaming.reassembler import Fragment

logger = structlog.get_logger(__name__)


class WebSocketChannel:
    """
    Fragment-level view of a WebSocket connection.

    Frames of the current message are read with one frame of lookahead so the
    final piece of a message can be flagged. Frames larger than the requested
    size are handed out in several pieces.
    """

    def __init__(self, connection: ClientConnection, uri: str | None = None):
        self._connection = connection
        self.uri = uri
        self._frames: AsyncIterator[bytes] | None = None
        self._lookahead: bytes | None = None
        self._pending: memoryview | None = None
        self._pending_is_last = False

    @classmethod
    async def open(
        cls,
        uri: str,
        *,
        open_timeout: float | None = 10.0,
        max_message_size: int | None = None,
    ) -> WebSocketChannel:
        """Connect to the endpoint and wrap the connection."""
        try:
            connection = await connect(
                uri, open_timeout=open_timeout, max_size=max_message_size
            )
        except (OSError, WebSocketException) as e:
            raise QueryConnectionError(
                f"Failed to connect to {uri}: {e}", endpoint=uri
            ) from e

        logger.debug("WebSocket connected", endpoint=uri)
        return cls(connection, uri)

    @property
    def is_open(self) -> bool:
        return self._connection.state is State.OPEN

    async def send_text(self, text: str) -> None:
        try:
            await self._connection.send(text)
        except (OSError, ConnectionClosed) as e:
            raise QueryConnectionError(
                f"Failed to send query: {e}", endpoint=self.uri
            ) from e

    async def receive_fragment(self, max_size: int) -> Fragment:
        if self._pending is None:
            frame, self._pending_is_last = await self._next_frame()
            self._pending = memoryview(frame)

        piece = self._pending[:max_size]
        rest = self._pending[max_size:]
        if rest:
            self._pending = rest
            return Fragment(bytes(piece), end_of_message=False)

        self._pending = None
        return Fragment(bytes(piece), end_of_message=self._pending_is_last)

    async def close(self, code: int, reason: str) -> None:
        await self._connection.close(code=code, reason=reason)

    async def _next_frame(self) -> tuple[bytes, bool]:
        """Return the next frame of the current message and whether it is the last."""
        try:
            if self._frames is None:
                self._frames = aiter(self._connection.recv_streaming(decode=False))
                self._lookahead = await anext(self._frames)

            frame = self._lookahead
            try:
                self._lookahead = await anext(self._frames)
            except StopAsyncIteration:
                self._frames = None
                self._lookahead = None
                return frame, True
            return frame, False

        except (OSError, ConnectionClosed) as e:
            self._frames = None
            self._lookahead = None
            raise QueryConnectionError(
                f"Connection lost while receiving: {e}", endpoint=self.uri
            ) from e
