"""
Notification Models

Author profiles and the outbound webhook message built from a matched post.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

FOOTER_TEXT = "Posted"


@dataclass(frozen=True)
class Profile:
    """Author profile as handed downstream by the enricher (already normalized)."""

    did: str
    display_name: str
    handle: str
    avatar_url: str
    is_muted: bool = False


@dataclass(frozen=True)
class OutboundMessage:
    """
    A single attachment-style webhook notification.

    Built once per matched event and sent once.
    """

    body_markup: str
    author_line: str
    author_icon: str
    author_link: str
    posted_at_epoch_seconds: int
    image_url: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the incoming-webhook JSON body."""
        attachment: dict[str, Any] = {
            "author_name": self.author_line,
            "author_icon": self.author_icon,
            "author_link": self.author_link,
            "text": self.body_markup,
            "footer": FOOTER_TEXT,
            "ts": str(self.posted_at_epoch_seconds),
        }
        if self.image_url:
            attachment["image_url"] = self.image_url

        return {
            "unfurl_links": True,
            "unfurl_media": True,
            "attachments": [attachment],
        }
