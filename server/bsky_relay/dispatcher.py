"""
Notification Dispatcher

Runs enrichment → segmentation → formatting → delivery for each matched
event as its own task, so a slow notification never stalls ingestion.

    dispatcher = NotificationDispatcher(enricher, notifier, max_in_flight=64)
    dispatcher.dispatch(event, frame_context)   # returns immediately
    ...
    await dispatcher.close()                     # cancels in-flight deliveries
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from bsky_relay.core.types import DeliveryError, ProfileFetchError, ValidationError
from bsky_relay.models.notification import OutboundMessage, Profile
from bsky_relay.models.post import FeedEvent
from bsky_relay.notifier.formatter import build_image_url, format_message, post_url
from bsky_relay.richtext.segmenter import segment

logger = logging.getLogger(__name__)

DEFAULT_MAX_IN_FLIGHT = 64


class Enricher(Protocol):
    async def fetch(self, author_id: str) -> Profile:
        ...


class Notifier(Protocol):
    async def send(self, message: OutboundMessage) -> None:
        ...


@dataclass
class DispatchStats:
    """Counters for dispatched notifications."""

    dispatched: int = 0
    delivered: int = 0
    muted: int = 0
    failed: int = 0


class NotificationDispatcher:
    """
    Fire-and-forget delivery of matched events.

    Spawning a task never waits. At most max_in_flight tasks talk to the
    network at once; the rest wait on a semaphore inside their own task.
    """

    def __init__(
        self,
        enricher: Enricher,
        notifier: Notifier,
        *,
        max_in_flight: int = DEFAULT_MAX_IN_FLIGHT,
    ) -> None:
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be >= 1")
        self._enricher = enricher
        self._notifier = notifier
        self._semaphore = asyncio.Semaphore(max_in_flight)
        self._tasks: set[asyncio.Task[None]] = set()
        self._stats = DispatchStats()

    @property
    def stats(self) -> DispatchStats:
        return self._stats

    @property
    def pending(self) -> int:
        """Number of tasks not yet finished."""
        return len(self._tasks)

    def dispatch(self, event: FeedEvent, frame_context: str = "") -> asyncio.Task[None]:
        """
        Start delivery for one matched event and return immediately.

        Args:
            event: Event that passed every decoder filter
            frame_context: Identifies the source frame in logs; defaults to
                the record's at:// URI
        """
        if not frame_context:
            commit = event.commit
            frame_context = f"at://{event.author_id}/{commit.collection}/{commit.record_key}"
        self._stats.dispatched += 1
        task = asyncio.create_task(self._run(event, frame_context))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, event: FeedEvent, frame_context: str) -> None:
        try:
            await self._deliver(event, frame_context)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._stats.failed += 1
            logger.error(
                f"Unexpected error delivering notification for {frame_context}: {e}",
                extra={
                    "author_id": event.author_id,
                    "frame": frame_context,
                    "error": str(e),
                },
                exc_info=True,
            )

    async def _deliver(self, event: FeedEvent, frame_context: str) -> None:
        async with self._semaphore:
            try:
                profile = await self._enricher.fetch(event.author_id)
            except ProfileFetchError as e:
                self._stats.failed += 1
                logger.error(
                    f"Failed to fetch profile for {frame_context}: {e}",
                    extra={"author_id": event.author_id, "frame": frame_context},
                )
                return

            link = post_url(event, profile.handle)

            # Mute status is only known once the profile is fetched
            if profile.is_muted:
                self._stats.muted += 1
                logger.info(
                    f"Skipped post from muted user: {link}",
                    extra={"author_id": event.author_id, "post": link},
                )
                return

            try:
                record = event.commit.record
                fragments = segment(record.text, record.facets)
                message = format_message(event, profile, fragments, build_image_url(event))
                await self._notifier.send(message)
            except (DeliveryError, ValidationError) as e:
                self._stats.failed += 1
                logger.error(
                    f"Failed to deliver notification for {frame_context}: {e}",
                    extra={"author_id": event.author_id, "frame": frame_context},
                )
                return

            self._stats.delivered += 1
            logger.info(
                f"Delivered notification: {link}",
                extra={"author_id": event.author_id, "post": link},
            )

    async def close(self) -> None:
        """Cancel in-flight deliveries and wait for them to unwind."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(
            "Dispatcher closed",
            extra={"cancelled": len(tasks), "delivered": self._stats.delivered},
        )
