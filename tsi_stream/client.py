"""
Streaming query client.

Sends one query over a secure WebSocket and collects the progressively
completed result messages until the server reports 100% completion.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from .config import StreamingSettings, TsiEnvironment
from .endpoint import build_endpoint
from .exceptions import QueryTimeoutError
from .logging_utils import operation_context
from .streaming.interpreter import ProgressInterpreter
from .streaming.models import OutcomeKind
from .streaming.reassembler import FragmentChannel, FrameReassembler
from .transport import WebSocketChannel

ChannelFactory = Callable[..., Awaitable[FragmentChannel]]


class StreamingQueryClient:
    """
    Client for progress-streaming queries.

    Each call owns its connection, accumulation buffer and result list, so
    independent calls can run concurrently on one client instance.
    """

    def __init__(
        self,
        environment: TsiEnvironment,
        settings: StreamingSettings | None = None,
        channel_factory: ChannelFactory | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            environment: Environment whose host receives the queries
            settings: Protocol and tuning settings, defaults when omitted
            channel_factory: Coroutine opening a FragmentChannel for a URI,
                WebSocketChannel.open when omitted
        """
        self.environment = environment
        self.settings = settings or StreamingSettings()
        self._channel_factory = channel_factory or WebSocketChannel.open
        self._reassembler = FrameReassembler(self.settings.receive_buffer_size)
        self._interpreter = ProgressInterpreter(self.settings.completion_tolerance)

    async def query_websocket(self, query: str, resource_path: str) -> list[str]:
        """
        Run a query and return every raw result message in receipt order.

        The last message reports completion. Messages are returned verbatim;
        cumulative versus aggregate semantics are left to the caller.

        Raises:
            QueryConnectionError: Opening, sending or receiving failed
            QueryTimeoutError: settings.query_timeout elapsed
            EnvelopeParseError: A message is not a valid progress envelope
            ExpiredAccessTokenError: The server rejected an expired token
            UnexpectedServerError: The server reported any other error
        """
        endpoint = str(
            build_endpoint(
                self.environment.fqdn, resource_path, self.settings.api_version
            )
        )

        async with operation_context(
            "query_websocket", context={"endpoint": endpoint}
        ) as op_logger:
            deadline = asyncio.timeout(self.settings.query_timeout)
            try:
                async with deadline:
                    results = await self._run_query(endpoint, query, op_logger)
            except TimeoutError as e:
                if not deadline.expired():
                    raise
                raise QueryTimeoutError(
                    f"Query did not complete within {self.settings.query_timeout}s",
                    timeout=self.settings.query_timeout,
                    endpoint=endpoint,
                ) from e

            op_logger.info("Query results received", message_count=len(results))
            return results

    async def _run_query(self, endpoint: str, query: str, op_logger: Any) -> list[str]:
        async with self._open_channel(endpoint, op_logger) as channel:
            await channel.send_text(query)
            op_logger.debug("Query sent", query_length=len(query))

            results: list[str] = []
            while True:
                message = await self._reassembler.receive_complete_message(channel)
                outcome = self._interpreter.interpret(message)

                if outcome.kind is OutcomeKind.FAIL:
                    if outcome.error.endpoint is None:
                        outcome.error.endpoint = endpoint
                    raise outcome.error

                results.append(message)
                op_logger.debug(
                    "Progress received",
                    percent_completed=outcome.percent_completed,
                    message_count=len(results),
                )

                if outcome.kind is OutcomeKind.COMPLETE:
                    return results

    @asynccontextmanager
    async def _open_channel(
        self, endpoint: str, op_logger: Any
    ) -> AsyncIterator[FragmentChannel]:
        """Open a channel and close it gracefully on every exit path."""
        channel = await self._channel_factory(
            endpoint,
            open_timeout=self.settings.open_timeout,
            max_message_size=self.settings.max_message_size,
        )
        try:
            yield channel
        finally:
            await self._close_channel(channel, op_logger)

    async def _close_channel(self, channel: FragmentChannel, op_logger: Any) -> None:
        if not channel.is_open:
            op_logger.debug("Connection already closed")
            return

        try:
            await channel.close(self.settings.close_code, self.settings.close_reason)
        except Exception as e:
            # Outcome of the call is already decided
            op_logger.warning(
                "Failed to close connection",
                error_type=type(e).__name__,
                error_message=str(e),
            )
