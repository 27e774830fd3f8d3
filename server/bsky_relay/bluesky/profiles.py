"""
Profile Enricher

Fetches a post author's profile and applies the normalization rules the
notification formatter relies on.
"""
from __future__ import annotations

import logging
from typing import Any, Protocol

from bsky_relay.models.notification import Profile

logger = logging.getLogger(__name__)

DEFAULT_AVATAR_URL = "https://up.erisa.uk/blueskydefaultavatar.png"

# Handle reported for accounts whose handle fails verification
INVALID_HANDLE = "handle.invalid"


class ProfileSource(Protocol):
    """Anything that can fetch a raw profile view by actor."""

    async def fetch_profile(self, actor: str) -> dict[str, Any]:
        ...


def normalize_profile(author_id: str, raw: dict[str, Any]) -> Profile:
    """
    Build a Profile from a raw profile view.

    An empty avatar falls back to DEFAULT_AVATAR_URL, and an invalid handle
    falls back to the author's DID so profile links keep working.
    """
    did = raw.get("did") or author_id

    handle = raw.get("handle") or ""
    if not handle or handle == INVALID_HANDLE:
        handle = did

    avatar_url = raw.get("avatar") or DEFAULT_AVATAR_URL

    viewer = raw.get("viewer")
    is_muted = bool(viewer.get("muted", False)) if isinstance(viewer, dict) else False

    return Profile(
        did=did,
        display_name=raw.get("displayName") or "",
        handle=handle,
        avatar_url=avatar_url,
        is_muted=is_muted,
    )


class ProfileEnricher:
    """Resolves author ids to normalized profiles. No retries at this layer."""

    def __init__(self, source: ProfileSource) -> None:
        self._source = source

    async def fetch(self, author_id: str) -> Profile:
        """
        Fetch and normalize the profile for an author.

        Raises:
            ProfileFetchError: If the profile cannot be fetched
        """
        raw = await self._source.fetch_profile(author_id)
        return normalize_profile(author_id, raw)
