"""
Jetstream Module

Connection supervisor, frame decoder and event normalizer for the Bluesky
Jetstream feed.
"""
from bsky_relay.jetstream.client import (
    DEFAULT_ENDPOINTS,
    JetstreamSupervisor,
    build_subscribe_url,
)
from bsky_relay.jetstream.decoder import EventDecoder, FrameDecompressor
from bsky_relay.jetstream.normalizer import normalize_event, parse_timestamp

__all__ = [
    "DEFAULT_ENDPOINTS",
    "EventDecoder",
    "FrameDecompressor",
    "JetstreamSupervisor",
    "build_subscribe_url",
    "normalize_event",
    "parse_timestamp",
]
