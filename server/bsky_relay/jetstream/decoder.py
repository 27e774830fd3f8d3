"""
Jetstream Frame Decoder

Decompresses and parses raw feed frames, then applies the inclusion filters:
event kind and operation, staleness, and watch-word match.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Optional, Union

import zstandard

from bsky_relay.core.types import DecodeError
from bsky_relay.jetstream.normalizer import normalize_event, parse_timestamp
from bsky_relay.models.post import FeedEvent

logger = logging.getLogger(__name__)

# Posts older than this are replays (reconnect/backfill), not news
STALENESS_WINDOW = timedelta(hours=24)


def _bundled_resource() -> Traversable:
    """Location of the zstd dictionary Jetstream publishes with its server."""
    return resources.files("bsky_relay.jetstream") / "data" / "zstd_dictionary"


@dataclass(frozen=True)
class FrameDecompressor:
    """
    Stateless zstd decoder bound to the feed's shared dictionary.

    Every call builds its own one-shot decompression object, so a single
    instance can be shared by any number of concurrent callers.
    """

    dictionary: zstandard.ZstdCompressionDict

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "FrameDecompressor":
        """Load the dictionary Jetstream publishes alongside its server."""
        data = Path(path).read_bytes()
        return cls(dictionary=zstandard.ZstdCompressionDict(data))

    @classmethod
    def bundled(cls) -> Optional["FrameDecompressor"]:
        """
        Load the dictionary shipped as package data.

        Returns:
            The decompressor, or None when the package was built without it
        """
        resource = _bundled_resource()
        if not resource.is_file():
            return None
        return cls(dictionary=zstandard.ZstdCompressionDict(resource.read_bytes()))

    def decompress(self, frame: bytes) -> bytes:
        """
        Decompress one frame.

        Raises:
            DecodeError: If the frame is not valid zstd data for this dictionary
        """
        try:
            decompressor = zstandard.ZstdDecompressor(dict_data=self.dictionary)
            return decompressor.decompressobj().decompress(frame)
        except zstandard.ZstdError as e:
            raise DecodeError(
                f"Failed to decompress frame: {e}",
                frame_size=len(frame),
            ) from e


class EventDecoder:
    """
    Turns raw frames into eligible, fresh, matching FeedEvents.

    decode() returns None for events that are filtered out (not an error)
    and raises for frames that cannot be read at all.
    """

    def __init__(
        self,
        watch_word: str,
        decompressor: Optional[FrameDecompressor] = None,
        *,
        staleness_window: timedelta = STALENESS_WINDOW,
    ) -> None:
        """
        Initialize the decoder.

        Args:
            watch_word: Case-insensitive substring a post must contain
            decompressor: zstd decoder, or None when frames arrive as plain JSON
            staleness_window: Maximum post age accepted
        """
        if not watch_word:
            raise ValueError("watch_word must be non-empty string")
        self._watch_word = watch_word.lower()
        self._decompressor = decompressor
        self._staleness_window = staleness_window

    @property
    def compressed(self) -> bool:
        """Whether frames are expected to be zstd-compressed."""
        return self._decompressor is not None

    def decode(
        self,
        frame: Union[str, bytes],
        now: Optional[datetime] = None,
    ) -> Optional[FeedEvent]:
        """
        Decode one frame and apply all filters.

        Args:
            frame: Raw WebSocket message
            now: Reference time for staleness (defaults to current UTC time)

        Returns:
            The event if it passes every filter, otherwise None

        Raises:
            DecodeError: If the frame cannot be decompressed or parsed as JSON
            ValidationError: If the JSON does not match the event schema or
                the record timestamp is unparsable
        """
        payload = self._decompress(frame)

        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise DecodeError(
                f"Failed to parse frame as JSON: {e}",
                frame_size=len(payload),
            ) from e

        event = normalize_event(data)

        if not event.is_eligible:
            return None

        record = event.commit.record
        created_at = parse_timestamp(record.created_at)

        now = now or datetime.now(timezone.utc)
        if now - created_at > self._staleness_window:
            logger.debug(
                "Ignoring stale post",
                extra={"author_id": event.author_id, "created_at": record.created_at},
            )
            return None

        if self._watch_word not in record.text.lower():
            return None

        return event

    def _decompress(self, frame: Union[str, bytes]) -> Union[str, bytes]:
        if isinstance(frame, str):
            return frame
        if self._decompressor is None:
            return frame
        return self._decompressor.decompress(frame)
