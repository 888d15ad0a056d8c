"""Configuration management for the streaming query client."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

import yaml
from dotenv import load_dotenv

from .endpoint import DEFAULT_API_VERSION
from .streaming.interpreter import DEFAULT_COMPLETION_TOLERANCE
from .streaming.reassembler import DEFAULT_BUFFER_SIZE

ENVIRONMENT_FQDN_VAR = "TSI_ENVIRONMENT_FQDN"
NORMAL_CLOSURE = 1000


@dataclass(frozen=True)
class TsiEnvironment:
    """Environment the queries are sent to."""
    fqdn: str


@dataclass(frozen=True)
class StreamingSettings:
    """Tuning and protocol constants for one query call."""
    api_version: str = DEFAULT_API_VERSION
    receive_buffer_size: int = DEFAULT_BUFFER_SIZE
    open_timeout: float | None = 10.0
    query_timeout: float | None = None
    max_message_size: int | None = None
    close_code: int = NORMAL_CLOSURE
    close_reason: str = "CompletedByClient"
    completion_tolerance: float = DEFAULT_COMPLETION_TOLERANCE


class Configuration:
    """Manages configuration and environment variables for the query client."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()
        self._config = self._load_yaml_config(config_path)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    def _load_yaml_config(self, config_path: str | None) -> dict[str, Any]:
        """Load configuration from YAML file."""
        if config_path is None:
            config_path = os.path.join(os.path.dirname(__file__), "config.yaml")
        with open(config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    def get_environment(self) -> TsiEnvironment:
        """Get the target environment.

        The TSI_ENVIRONMENT_FQDN environment variable takes precedence over
        environment.fqdn in config.yaml.

        Raises:
            ValueError: If no host name is configured.
        """
        fqdn = os.getenv(ENVIRONMENT_FQDN_VAR) or (
            self._config.get("environment", {}).get("fqdn")
        )
        if not fqdn:
            raise ValueError(
                f"Environment host not configured - set {ENVIRONMENT_FQDN_VAR} "
                "or environment.fqdn in config.yaml"
            )
        return TsiEnvironment(fqdn=fqdn)

    def get_streaming_settings(self) -> StreamingSettings:
        """Get streaming settings from YAML.

        Returns:
            Validated StreamingSettings.

        Raises:
            ValueError: If required streaming parameters are missing or invalid.
        """
        streaming_config = self._config.get("streaming", {})

        required_keys = [
            "api_version", "receive_buffer_size", "open_timeout",
            "query_timeout", "max_message_size", "close_reason",
        ]
        for key in required_keys:
            if key not in streaming_config:
                raise ValueError(
                    f"streaming.{key} must be explicitly configured in config.yaml"
                )

        buffer_size = streaming_config["receive_buffer_size"]
        open_timeout = streaming_config["open_timeout"]
        query_timeout = streaming_config["query_timeout"]
        max_message_size = streaming_config["max_message_size"]

        if not isinstance(buffer_size, int) or buffer_size < 1:
            raise ValueError("streaming.receive_buffer_size must be a positive integer")
        if open_timeout is None or open_timeout <= 0:
            raise ValueError("streaming.open_timeout must be positive")
        if query_timeout is not None and query_timeout <= 0:
            raise ValueError("streaming.query_timeout must be positive or null")
        if max_message_size is not None and max_message_size < 1:
            raise ValueError("streaming.max_message_size must be positive or null")

        return StreamingSettings(
            api_version=str(streaming_config["api_version"]),
            receive_buffer_size=buffer_size,
            open_timeout=float(open_timeout),
            query_timeout=None if query_timeout is None else float(query_timeout),
            max_message_size=max_message_size,
            close_reason=str(streaming_config["close_reason"]),
        )

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML.

        Returns:
            Logging configuration dictionary.
        """
        return self._config.get("logging", {})
