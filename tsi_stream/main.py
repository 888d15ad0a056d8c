"""
Command-line entry point: run one streaming query and print its messages.

Usage:
    python -m tsi_stream <resource_path> [query | -]

The query is read from stdin when omitted or given as "-".
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from .client import StreamingQueryClient
from .config import Configuration
from .exceptions import ExpiredAccessTokenError, QueryError

EXIT_QUERY_FAILED = 1
EXIT_TOKEN_EXPIRED = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tsi_stream",
        description="Run a streaming query and print every progress message.",
    )
    parser.add_argument("resource_path", help='Resource path, e.g. "events"')
    parser.add_argument(
        "query", nargs="?", default="-", help='Query payload, "-" reads stdin'
    )
    parser.add_argument(
        "--config", default=None, help="Path to an alternative config.yaml"
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    """Run the query described by the parsed arguments, returning an exit code."""
    config = Configuration(args.config)
    logging.basicConfig(
        level=config.get_logging_config().get("level", "INFO"),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    client = StreamingQueryClient(
        config.get_environment(), config.get_streaming_settings()
    )
    if args.query == "-":
        query = sys.stdin.read().removesuffix("\n")
    else:
        query = args.query

    query_task = asyncio.create_task(client.query_websocket(query, args.resource_path))

    if sys.platform != "win32":
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, query_task.cancel)

    try:
        messages = await query_task
    except asyncio.CancelledError:
        logging.info("Query cancelled")
        return EXIT_QUERY_FAILED
    except ExpiredAccessTokenError as e:
        logging.error(f"Access token expired: {e}")
        return EXIT_TOKEN_EXPIRED
    except QueryError as e:
        logging.error(f"Query failed: {e}")
        return EXIT_QUERY_FAILED

    for message in messages:
        print(message)
    return 0


def main(argv: list[str] | None = None) -> int:
    return asyncio.run(run(parse_args(argv)))


if __name__ == "__main__":
    sys.exit(main())
