"""
Jetstream Connection Supervisor

Owns the feed connection lifecycle: endpoint rotation, dial, Bluesky login,
the bounded-deadline read loop, and fixed-delay reconnect.

    Disconnected → Dialing → Streaming → Disconnected (on any error)
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Protocol, Union
from urllib.parse import urlencode, urlsplit, urlunsplit

import websockets

from bsky_relay.core.types import (
    DecodeError,
    EndpointRotation,
    FeedConnectionError,
    ValidationError,
)
from bsky_relay.jetstream.decoder import EventDecoder

if TYPE_CHECKING:
    from bsky_relay.dispatcher import NotificationDispatcher

logger = logging.getLogger(__name__)

# Public Jetstream instances
# https://github.com/bluesky-social/jetstream#public-instances
DEFAULT_ENDPOINTS = (
    "jetstream1.us-east.bsky.network",
    "jetstream2.us-east.bsky.network",
    "jetstream1.us-west.bsky.network",
    "jetstream2.us-west.bsky.network",
)

SUBSCRIBE_PATH = "/subscribe"
WANTED_COLLECTION = "app.bsky.feed.post"
FRAME_PREVIEW_BYTES = 32

Connector = Callable[..., Awaitable[Any]]


class Authenticator(Protocol):
    """Session backend re-established on every connection."""

    async def login(self, handle: str, app_password: str) -> None:
        ...


def build_subscribe_url(endpoint: str, collection: str = WANTED_COLLECTION) -> str:
    """
    Build the subscription URL for an endpoint.

    A bare host gets wss:// and the default subscribe path and query. A full
    ws:// or wss:// URL keeps whatever path and query it already has.

    Raises:
        ValueError: If the endpoint is not a usable WebSocket address
    """
    parts = urlsplit(endpoint if "://" in endpoint else f"wss://{endpoint}")
    if parts.scheme not in ("ws", "wss"):
        raise ValueError(f"unsupported scheme {parts.scheme!r}, expected ws or wss")
    if not parts.hostname:
        raise ValueError("missing host")
    path = parts.path if parts.path not in ("", "/") else SUBSCRIBE_PATH
    query = parts.query or urlencode({"wantedCollections": collection})
    return urlunsplit((parts.scheme, parts.netloc, path, query, ""))


def _preview(frame: Union[str, bytes]) -> str:
    return repr(frame[:FRAME_PREVIEW_BYTES])


class JetstreamSupervisor:
    """
    Keeps a Jetstream subscription alive until shutdown.

    Every read error closes the connection, waits reconnect_delay and dials
    the next endpoint from the rotation. Nothing short of cancellation or the
    shutdown event stops the loop.
    """

    def __init__(
        self,
        rotation: EndpointRotation,
        decoder: EventDecoder,
        dispatcher: NotificationDispatcher,
        authenticator: Authenticator,
        handle: str,
        app_password: str,
        *,
        connect: Connector = websockets.connect,
        read_timeout: float = 5.0,
        reconnect_delay: float = 2.0,
        open_timeout: float = 10.0,
        collection: str = WANTED_COLLECTION,
    ) -> None:
        """
        Initialize the supervisor.

        Args:
            rotation: Endpoint cursor, advanced once per dial attempt
            decoder: Frame decoder and filter
            dispatcher: Receives matched events
            authenticator: Bluesky client to log in after each dial
            handle: Account handle for login
            app_password: Account app password for login
            connect: WebSocket dialer with the websockets.connect signature
            read_timeout: Deadline for each frame read (seconds)
            reconnect_delay: Fixed wait between connection attempts (seconds)
            open_timeout: Timeout for the opening handshake (seconds)
            collection: Record collection to subscribe to
        """
        self._rotation = rotation
        self._decoder = decoder
        self._dispatcher = dispatcher
        self._authenticator = authenticator
        self._handle = handle
        self._app_password = app_password
        self._connect = connect
        self._read_timeout = read_timeout
        self._reconnect_delay = reconnect_delay
        self._open_timeout = open_timeout
        self._collection = collection

        # Connection state
        self._connected = False
        self._current_url: Optional[str] = None

        # Stats
        self._frames_received = 0
        self._frame_errors = 0
        self._matches = 0
        self._last_message_time: Optional[datetime] = None

    @property
    def connected(self) -> bool:
        """Check if currently streaming."""
        return self._connected

    @property
    def rotation(self) -> EndpointRotation:
        return self._rotation

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """
        Dial, stream and reconnect until shutdown_event is set.

        Connection errors never escape; cancellation does.
        """
        while not shutdown_event.is_set():
            url = build_subscribe_url(self._rotation.next_endpoint(), self._collection)
            self._current_url = url

            logger.info("Connecting to Jetstream", extra={"url": url})

            try:
                await self._stream(url, shutdown_event)
            except Exception as e:
                logger.error(
                    f"Jetstream connection error on {url}: {e}",
                    extra={"url": url, "error": str(e)},
                )
            finally:
                self._connected = False

            if shutdown_event.is_set():
                break

            logger.info(
                f"Reconnecting in {self._reconnect_delay}s",
                extra={"attempt": self._rotation.attempt_count},
            )
            if await self._wait_for_shutdown(shutdown_event, self._reconnect_delay):
                break

        logger.info("Jetstream supervisor stopped", extra=self.get_stats())

    async def _stream(self, url: str, shutdown_event: asyncio.Event) -> None:
        """Run one connection from dial to the first read error."""
        ws = await self._dial(url)
        try:
            # Session is re-established per connection; failure ends this attempt
            await self._authenticator.login(self._handle, self._app_password)

            self._connected = True
            logger.info("Connected to Jetstream", extra={"url": url})

            while not shutdown_event.is_set():
                try:
                    frame = await asyncio.wait_for(ws.recv(), timeout=self._read_timeout)
                except asyncio.TimeoutError as e:
                    raise FeedConnectionError(
                        f"No frame within {self._read_timeout}s read deadline",
                        endpoint=url,
                    ) from e

                self._handle_frame(frame)
        finally:
            try:
                await ws.close()
            except Exception as e:
                logger.warning(
                    f"Error closing WebSocket: {e}",
                    extra={"error": str(e)},
                )

    async def _dial(self, url: str) -> Any:
        headers = {}
        if self._decoder.compressed:
            headers["Socket-Encoding"] = "zstd"

        try:
            return await self._connect(
                url,
                additional_headers=headers,
                open_timeout=self._open_timeout,
            )
        except Exception as e:
            raise FeedConnectionError(
                f"Failed to connect: {e}",
                endpoint=url,
            ) from e

    def _handle_frame(self, frame: Union[str, bytes]) -> None:
        """Decode one frame synchronously and hand matches to the dispatcher."""
        self._frames_received += 1
        self._last_message_time = datetime.now(timezone.utc)

        try:
            event = self._decoder.decode(frame)
        except (DecodeError, ValidationError) as e:
            self._frame_errors += 1
            logger.warning(
                f"Error reading Jetstream message: {e}",
                extra={"message_preview": _preview(frame)},
            )
            return

        if event is None:
            return

        self._matches += 1
        commit = event.commit
        frame_context = f"at://{event.author_id}/{commit.collection}/{commit.record_key}"
        logger.debug("Matched post", extra={"uri": frame_context})
        self._dispatcher.dispatch(event, frame_context)

    @staticmethod
    async def _wait_for_shutdown(shutdown_event: asyncio.Event, delay: float) -> bool:
        """Sleep for delay unless shutdown comes first. Returns True on shutdown."""
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return False
        return True

    def get_stats(self) -> dict[str, Any]:
        """Get connection statistics."""
        return {
            "connected": self._connected,
            "url": self._current_url,
            "frames_received": self._frames_received,
            "frame_errors": self._frame_errors,
            "matches": self._matches,
            "connection_attempts": self._rotation.attempt_count,
            "last_message_time": (
                self._last_message_time.isoformat()
                if self._last_message_time
                else None
            ),
        }
