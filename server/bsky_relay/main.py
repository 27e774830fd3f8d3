"""
Bluesky Relay Entry Point

Streams posts from Jetstream and notifies the webhook about the ones that
mention the watch-word. Runs until SIGINT/SIGTERM.
"""
from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Optional, Sequence

import aiohttp
from dotenv import load_dotenv

from bsky_relay.bluesky import BlueskyClient, ProfileEnricher
from bsky_relay.config import ConfigurationError, Settings, load_settings
from bsky_relay.core.types import EndpointRotation
from bsky_relay.dispatcher import NotificationDispatcher
from bsky_relay.jetstream import EventDecoder, FrameDecompressor, JetstreamSupervisor
from bsky_relay.notifier import SlackWebhookNotifier

logger = logging.getLogger("bsky_relay")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def run(
    settings: Settings,
    shutdown_event: Optional[asyncio.Event] = None,
) -> None:
    """
    Main loop - runs the relay until shutdown.

    1. Opens one shared HTTP session
    2. Wires the enricher, notifier and dispatcher
    3. Streams Jetstream through the decoder, reconnecting on errors
    4. On shutdown, cancels the stream and any in-flight deliveries

    Raises:
        Exception: Whatever stopped the supervisor, if it stopped on its own
    """
    if shutdown_event is None:
        shutdown_event = asyncio.Event()

        def signal_handler() -> None:
            logger.info("Shutdown signal received")
            shutdown_event.set()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

    if settings.jetstream.zstd_dictionary is not None:
        decompressor = FrameDecompressor.from_file(settings.jetstream.zstd_dictionary)
    else:
        decompressor = FrameDecompressor.bundled()
        if decompressor is None:
            logger.warning("Bundled zstd dictionary not found, requesting uncompressed frames")
    decoder = EventDecoder(settings.watch_word, decompressor)

    rotation = EndpointRotation(
        endpoints=settings.jetstream.endpoints,
        override=settings.jetstream.address,
    )

    logger.info(
        "Starting relay",
        extra={
            "watch_word": settings.watch_word,
            "override": settings.jetstream.address or None,
            "compressed": decoder.compressed,
        },
    )

    async with aiohttp.ClientSession(trust_env=True) as session:
        bluesky = BlueskyClient(session, settings.bluesky.server_url)
        notifier = SlackWebhookNotifier(session, settings.webhook.url)
        dispatcher = NotificationDispatcher(
            ProfileEnricher(bluesky),
            notifier,
            max_in_flight=settings.max_in_flight,
        )
        supervisor = JetstreamSupervisor(
            rotation,
            decoder,
            dispatcher,
            bluesky,
            settings.bluesky.handle,
            settings.bluesky.app_password,
            read_timeout=settings.jetstream.read_timeout,
            reconnect_delay=settings.jetstream.reconnect_delay,
        )

        supervisor_task = asyncio.create_task(supervisor.run(shutdown_event))
        shutdown_task = asyncio.create_task(shutdown_event.wait())
        try:
            # The supervisor only returns early if it crashed
            await asyncio.wait(
                {supervisor_task, shutdown_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            logger.info("Shutting down...")

            for task in (supervisor_task, shutdown_task):
                task.cancel()
            await asyncio.gather(supervisor_task, shutdown_task, return_exceptions=True)

            await dispatcher.close()

            stats = supervisor.get_stats()
            dispatch_stats = dispatcher.stats
            logger.info(
                "Final stats",
                extra={
                    "frames_received": stats["frames_received"],
                    "frame_errors": stats["frame_errors"],
                    "matches": stats["matches"],
                    "connection_attempts": stats["connection_attempts"],
                    "delivered": dispatch_stats.delivered,
                    "muted": dispatch_stats.muted,
                    "failed": dispatch_stats.failed,
                },
            )

    error = None if supervisor_task.cancelled() else supervisor_task.exception()
    if error is not None:
        raise error


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Console entry point. Returns the process exit status."""
    load_dotenv()

    try:
        settings = load_settings(argv)
    except ConfigurationError as e:
        _configure_logging("INFO")
        logger.error(f"Configuration error: {e}")
        return 1

    _configure_logging(settings.log_level)
    try:
        asyncio.run(run(settings))
    except Exception:
        logger.exception("Relay stopped unexpectedly")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
