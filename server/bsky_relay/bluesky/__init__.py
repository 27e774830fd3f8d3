"""
Bluesky Module

XRPC client and author profile enrichment.
"""
from bsky_relay.bluesky.client import BlueskyClient
from bsky_relay.bluesky.profiles import (
    DEFAULT_AVATAR_URL,
    ProfileEnricher,
    normalize_profile,
)

__all__ = [
    "BlueskyClient",
    "DEFAULT_AVATAR_URL",
    "ProfileEnricher",
    "normalize_profile",
]
