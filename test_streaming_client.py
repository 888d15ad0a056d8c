#!/usr/bin/env python3
"""
Tests for the streaming query client connection lifecycle.
"""

import asyncio

import pytest

from fakes import FakeChannel, FakeChannelFactory, split_message
from tsi_stream.client import StreamingQueryClient
from tsi_stream.config import StreamingSettings, TsiEnvironment
from tsi_stream.exceptions import (
    EnvelopeParseError,
    ExpiredAccessTokenError,
    QueryConnectionError,
    QueryTimeoutError,
    UnexpectedServerError,
)

ENVIRONMENT = TsiEnvironment(fqdn="env-1234.env.timeseries.azure.com")
ENDPOINT = "wss://env-1234.env.timeseries.azure.com/events?api-version=2016-12-12"
QUERY = '{"headers": {"Authorization": "Bearer token"}, "content": {}}'
NORMAL_CLOSE = (1000, "CompletedByClient")

PROGRESS = [
    '{"percentCompleted":30}',
    '{"percentCompleted":60}',
    '{"percentCompleted":100}',
]
EXPIRED_TOKEN = (
    '{"error":{"code":"AuthenticationFailed",'
    '"innererror":{"code":"TokenExpired","message":"m"}}}'
)


def make_client(*channels, settings=None, **factory_kwargs):
    factory = FakeChannelFactory(*channels, **factory_kwargs)
    return StreamingQueryClient(ENVIRONMENT, settings, channel_factory=factory), factory


class TestSuccessfulQueries:
    """Queries that run to completion."""

    @pytest.mark.asyncio
    async def test_three_progress_messages(self):
        """All messages are returned in order and the connection is closed."""
        channel = FakeChannel(PROGRESS)
        client, factory = make_client(channel)

        results = await client.query_websocket(QUERY, "events")

        assert results == PROGRESS
        assert channel.sent == [QUERY]
        assert channel.close_calls == [NORMAL_CLOSE]
        assert [uri for uri, _ in factory.calls] == [ENDPOINT]

    @pytest.mark.asyncio
    async def test_loop_stops_at_completion(self):
        """Messages after the completing one are never read."""
        trailing = '{"percentCompleted":100}'
        channel = FakeChannel(PROGRESS + [trailing])
        client, _ = make_client(channel)

        results = await client.query_websocket(QUERY, "events")

        assert results == PROGRESS
        assert len(channel.fragments) == 1

    @pytest.mark.asyncio
    async def test_fragmented_messages(self):
        """Fragmented messages are reassembled before interpretation."""
        channel = FakeChannel([split_message(m, 3, 7) for m in PROGRESS])
        client, _ = make_client(channel, settings=StreamingSettings(receive_buffer_size=8))

        assert await client.query_websocket(QUERY, "events") == PROGRESS
        assert set(channel.requested_sizes) == {8}

    @pytest.mark.asyncio
    async def test_settings_passed_to_channel_factory(self):
        settings = StreamingSettings(open_timeout=3.0, max_message_size=1024)
        client, factory = make_client(FakeChannel(PROGRESS), settings=settings)

        await client.query_websocket(QUERY, "/aggregates")

        uri, kwargs = factory.calls[0]
        assert uri.endswith("/aggregates?api-version=2016-12-12")
        assert kwargs == {"open_timeout": 3.0, "max_message_size": 1024}

    @pytest.mark.asyncio
    async def test_close_failure_is_suppressed(self):
        """Close errors never change the outcome of the call."""
        channel = FakeChannel(PROGRESS, close_error=RuntimeError("close failed"))
        client, _ = make_client(channel)

        assert await client.query_websocket(QUERY, "events") == PROGRESS
        assert channel.close_calls == [NORMAL_CLOSE]

    @pytest.mark.asyncio
    async def test_already_closed_channel_is_not_closed_again(self):
        channel = FakeChannel(PROGRESS)
        client, _ = make_client(channel)

        async def close_early(code, reason):
            channel.close_calls.append((code, reason))
            channel.open = False

        original_receive = channel.receive_fragment

        async def receive_then_drop(max_size):
            fragment = await original_receive(max_size)
            if not channel.fragments:
                channel.open = False
            return fragment

        channel.receive_fragment = receive_then_drop
        channel.close = close_early

        assert await client.query_websocket(QUERY, "events") == PROGRESS
        assert channel.close_calls == []

    @pytest.mark.asyncio
    async def test_concurrent_queries_are_independent(self):
        first = FakeChannel(['{"percentCompleted":50}', '{"percentCompleted":100, "id": 1}'])
        second = FakeChannel(['{"percentCompleted":100, "id": 2}'])
        client, _ = make_client(first, second)

        results = await asyncio.gather(
            client.query_websocket("q1", "events"),
            client.query_websocket("q2", "aggregates"),
        )

        assert results == [
            ['{"percentCompleted":50}', '{"percentCompleted":100, "id": 1}'],
            ['{"percentCompleted":100, "id": 2}'],
        ]
        assert first.sent == ["q1"]
        assert second.sent == ["q2"]


class TestFailedQueries:
    """Queries that fail, always closing an open connection."""

    @pytest.mark.asyncio
    async def test_expired_token_closes_connection(self):
        channel = FakeChannel([EXPIRED_TOKEN])
        client, _ = make_client(channel)

        with pytest.raises(ExpiredAccessTokenError) as exc_info:
            await client.query_websocket(QUERY, "events")

        assert str(exc_info.value) == "m"
        assert exc_info.value.endpoint == ENDPOINT
        assert channel.close_calls == [NORMAL_CLOSE]

    @pytest.mark.asyncio
    async def test_server_error_mid_stream_discards_results(self):
        channel = FakeChannel([
            '{"percentCompleted":30}',
            '{"error":{"code":"X","message":"Y"},"percentCompleted":60}',
            '{"percentCompleted":100}',
        ])
        client, _ = make_client(channel)

        with pytest.raises(UnexpectedServerError, match="Error Code: X, Error Message: Y"):
            await client.query_websocket(QUERY, "events")

        assert channel.close_calls == [NORMAL_CLOSE]
        assert len(channel.fragments) == 1

    @pytest.mark.asyncio
    async def test_malformed_message(self):
        channel = FakeChannel(["<html>gateway error</html>"])
        client, _ = make_client(channel)

        with pytest.raises(EnvelopeParseError):
            await client.query_websocket(QUERY, "events")

        assert channel.close_calls == [NORMAL_CLOSE]

    @pytest.mark.asyncio
    async def test_connection_lost_while_receiving(self):
        """A dropped connection fails the call; nothing left to close."""
        channel = FakeChannel(['{"percentCompleted":30}'])
        client, _ = make_client(channel)

        with pytest.raises(QueryConnectionError):
            await client.query_websocket(QUERY, "events")

        assert channel.close_calls == []

    @pytest.mark.asyncio
    async def test_open_failure(self):
        client, factory = make_client(open_error=QueryConnectionError("refused"))

        with pytest.raises(QueryConnectionError, match="refused"):
            await client.query_websocket(QUERY, "events")

        assert len(factory.calls) == 1

    @pytest.mark.asyncio
    async def test_send_failure_closes_connection(self):
        channel = FakeChannel(PROGRESS, send_error=QueryConnectionError("send failed"))
        client, _ = make_client(channel)

        with pytest.raises(QueryConnectionError, match="send failed"):
            await client.query_websocket(QUERY, "events")

        assert channel.close_calls == [NORMAL_CLOSE]

    @pytest.mark.asyncio
    async def test_unclassified_error_closes_connection(self):
        channel = FakeChannel(PROGRESS, send_error=RuntimeError("unexpected"))
        client, _ = make_client(channel)

        with pytest.raises(RuntimeError):
            await client.query_websocket(QUERY, "events")

        assert channel.close_calls == [NORMAL_CLOSE]


class TestDeadlineAndCancellation:
    """Deadline and cancellation of stalled queries."""

    @pytest.mark.asyncio
    async def test_query_timeout(self):
        channel = FakeChannel(['{"percentCompleted":30}'], block_when_empty=True)
        client, _ = make_client(channel, settings=StreamingSettings(query_timeout=0.05))

        with pytest.raises(QueryTimeoutError) as exc_info:
            await client.query_websocket(QUERY, "events")

        assert exc_info.value.timeout == 0.05
        assert channel.close_calls == [NORMAL_CLOSE]

    @pytest.mark.asyncio
    async def test_cancellation_closes_connection(self):
        channel = FakeChannel([], block_when_empty=True)
        client, _ = make_client(channel)

        task = asyncio.create_task(client.query_websocket(QUERY, "events"))
        while not channel.requested_sizes:
            await asyncio.sleep(0)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert channel.close_calls == [NORMAL_CLOSE]


class TestEndpointValidation:
    """Invalid endpoint parts fail before any connection is opened."""

    @pytest.mark.asyncio
    async def test_host_with_port_is_rejected(self):
        factory = FakeChannelFactory(FakeChannel(PROGRESS))
        client = StreamingQueryClient(
            TsiEnvironment(fqdn="h.example.com:8443"), channel_factory=factory
        )

        with pytest.raises(ValueError, match="Invalid endpoint"):
            await client.query_websocket(QUERY, "events")

        assert factory.calls == []
