"""Endpoint construction for streaming queries."""

from __future__ import annotations

import httpx

DEFAULT_API_VERSION = "2016-12-12"
SECURE_WEBSOCKET_SCHEME = "wss"


def build_endpoint(
    host: str, resource_path: str, api_version: str = DEFAULT_API_VERSION
) -> httpx.URL:
    """Build `wss://{host}/{resource_path}?api-version={api_version}`.

    Args:
        host: Fully qualified host name of the environment.
        resource_path: Resource path relative to the host, e.g. "events".
        api_version: Value of the api-version query parameter.

    Raises:
        ValueError: If host is empty or the parts do not form a valid URL.
    """
    host = host.strip()
    if not host:
        raise ValueError("host must not be empty")

    try:
        return httpx.URL(
            scheme=SECURE_WEBSOCKET_SCHEME,
            host=host,
            path="/" + resource_path.lstrip("/"),
            params={"api-version": api_version},
        )
    except httpx.InvalidURL as e:
        raise ValueError(
            f"Invalid endpoint for host {host!r} and path {resource_path!r}: {e}"
        ) from e
