"""
Relay Configuration

Centralized configuration. All environment variables MUST be read here.
Command-line flags take precedence over environment variables; required
values that are still missing raise ConfigurationError before anything
connects.
"""
from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from bsky_relay.jetstream.client import DEFAULT_ENDPOINTS, build_subscribe_url


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _require(value: str, name: str, description: str) -> str:
    """Return a required setting or raise ConfigurationError."""
    if not value:
        raise ConfigurationError(
            f"Missing required setting: {name}\n"
            f"Description: {description}\n"
            f"Please set it with a flag, in your .env file or in the environment."
        )
    return value


def _optional_env(name: str, default: str = "") -> str:
    """Get an optional environment variable with a default."""
    return os.environ.get(name, default)


def _optional_env_int(name: str, default: int) -> int:
    """Get an optional integer environment variable with a default."""
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Invalid integer value for {name}: {value}")


def _optional_env_float(name: str, default: float) -> float:
    """Get an optional float environment variable with a default."""
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"Invalid number value for {name}: {value}")


@dataclass(frozen=True)
class JetstreamConfig:
    """Jetstream feed connection configuration."""
    address: str = ""  # explicit override; empty means rotate
    endpoints: tuple[str, ...] = DEFAULT_ENDPOINTS
    zstd_dictionary: Optional[Path] = None
    read_timeout: float = 5.0
    reconnect_delay: float = 2.0


@dataclass(frozen=True)
class BlueskyConfig:
    """Bluesky account used for profile lookups."""
    handle: str
    app_password: str
    server_url: str = "https://bsky.social"

    def __repr__(self) -> str:
        return (
            f"BlueskyConfig(handle={self.handle!r}, app_password='***', "
            f"server_url={self.server_url!r})"
        )


@dataclass(frozen=True)
class WebhookConfig:
    """Outbound webhook configuration."""
    url: str

    def __repr__(self) -> str:
        return "WebhookConfig(url='***')"


@dataclass(frozen=True)
class Settings:
    """Root configuration container."""
    jetstream: JetstreamConfig
    bluesky: BlueskyConfig
    webhook: WebhookConfig
    watch_word: str
    max_in_flight: int = 64
    log_level: str = "INFO"


def build_parser() -> argparse.ArgumentParser:
    """Command-line flags, each defaulting to its environment variable."""
    parser = argparse.ArgumentParser(
        prog="bsky-relay",
        description="Relay Bluesky posts mentioning a watch-word to a Slack webhook.",
    )
    parser.add_argument(
        "--addr",
        default=_optional_env("JETSTREAM_ADDRESS"),
        help="jetstream websocket address (default: rotate public instances)",
    )
    parser.add_argument(
        "--bsky-handle",
        default=_optional_env("BSKY_HANDLE"),
        help="bluesky handle for auth (required)",
    )
    parser.add_argument(
        "--bsky-app-password",
        default=_optional_env("BSKY_APP_PASSWORD"),
        help="bluesky app password for auth (required)",
    )
    parser.add_argument(
        "--slack-webhook-url",
        default=_optional_env("SLACK_WEBHOOK_URL"),
        help="slack webhook URL (required)",
    )
    parser.add_argument(
        "--bsky-server-url",
        default=_optional_env("BSKY_SERVER_URL", "https://bsky.social"),
        help="bluesky PDS server URL",
    )
    parser.add_argument(
        "--watch-word",
        default=_optional_env("WATCH_WORD", "tailscale"),
        help="the word to watch out for (required)",
    )
    parser.add_argument(
        "--zstd-dictionary",
        default=_optional_env("JETSTREAM_ZSTD_DICTIONARY"),
        help="path to a jetstream zstd dictionary (overrides the bundled one)",
    )
    parser.add_argument(
        "--read-timeout",
        type=float,
        default=_optional_env_float("JETSTREAM_READ_TIMEOUT", 5.0),
        help="seconds to wait for each frame before reconnecting",
    )
    parser.add_argument(
        "--reconnect-delay",
        type=float,
        default=_optional_env_float("JETSTREAM_RECONNECT_DELAY", 2.0),
        help="seconds to wait between connection attempts",
    )
    parser.add_argument(
        "--max-in-flight",
        type=int,
        default=_optional_env_int("MAX_IN_FLIGHT", 64),
        help="maximum concurrent notification deliveries",
    )
    parser.add_argument(
        "--log-level",
        default=_optional_env("LOG_LEVEL", "INFO"),
        help="logging level",
    )
    return parser


def load_settings(argv: Optional[Sequence[str]] = None) -> Settings:
    """
    Resolve settings from flags and environment.

    Raises:
        ConfigurationError: If a required value is missing or invalid
    """
    args = build_parser().parse_args(argv)

    webhook_url = _require(
        args.slack_webhook_url, "SLACK_WEBHOOK_URL", "Slack incoming webhook URL"
    )
    server_url = _require(
        args.bsky_server_url, "BSKY_SERVER_URL", "Bluesky PDS server URL"
    )
    handle = _require(args.bsky_handle, "BSKY_HANDLE", "Bluesky account handle")
    app_password = _require(
        args.bsky_app_password, "BSKY_APP_PASSWORD", "Bluesky app password"
    )
    watch_word = _require(args.watch_word.strip(), "WATCH_WORD", "Word to watch for")

    if args.addr:
        try:
            build_subscribe_url(args.addr)
        except ValueError as e:
            raise ConfigurationError(f"Invalid Jetstream address {args.addr!r}: {e}") from e

    dictionary = None
    if args.zstd_dictionary:
        dictionary = Path(args.zstd_dictionary)
        if not dictionary.is_file():
            raise ConfigurationError(f"zstd dictionary not found: {dictionary}")

    if args.read_timeout <= 0:
        raise ConfigurationError("read timeout must be positive")
    if args.reconnect_delay < 0:
        raise ConfigurationError("reconnect delay must not be negative")
    if args.max_in_flight < 1:
        raise ConfigurationError("max in-flight deliveries must be at least 1")

    return Settings(
        jetstream=JetstreamConfig(
            address=args.addr,
            zstd_dictionary=dictionary,
            read_timeout=args.read_timeout,
            reconnect_delay=args.reconnect_delay,
        ),
        bluesky=BlueskyConfig(
            handle=handle,
            app_password=app_password,
            server_url=server_url,
        ),
        webhook=WebhookConfig(url=webhook_url),
        watch_word=watch_word,
        max_in_flight=args.max_in_flight,
        log_level=args.log_level.upper(),
    )
