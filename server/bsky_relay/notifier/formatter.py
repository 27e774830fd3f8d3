"""
Notification Formatter

Builds the outbound webhook message for a matched post from its segmented
text, the author's profile and the first embedded image.
"""
from __future__ import annotations

from typing import Optional
from urllib.parse import quote

from bsky_relay.jetstream.normalizer import parse_timestamp
from bsky_relay.models.notification import OutboundMessage, Profile
from bsky_relay.models.post import PROFILE_URL_TEMPLATE, FeedEvent, TextFragment
from bsky_relay.richtext.segmenter import render_markup

IMAGE_URL_TEMPLATE = "https://cdn.bsky.app/img/feed_fullsize/plain/{did}/{link}"
POST_URL_TEMPLATE = "https://bsky.app/profile/{author}/post/{rkey}"
VIEW_POST_LABEL = "View post on Bluesky ↗"

# Characters left unescaped in a URL path segment
_PATH_SEGMENT_SAFE = ":@&=+$"


def post_url(event: FeedEvent, handle: Optional[str] = None) -> str:
    """Public web URL of the post, addressed by handle when known."""
    author = handle or event.author_id
    return POST_URL_TEMPLATE.format(
        author=quote(author, safe=_PATH_SEGMENT_SAFE),
        rkey=quote(event.commit.record_key, safe=_PATH_SEGMENT_SAFE),
    )


def build_image_url(event: FeedEvent) -> Optional[str]:
    """CDN URL of the first embedded image, or None for text-only posts."""
    record = event.commit.record if event.commit else None
    if record is None or not record.images:
        return None
    return IMAGE_URL_TEMPLATE.format(did=event.author_id, link=record.images[0].link)


def format_message(
    event: FeedEvent,
    profile: Profile,
    fragments: list[TextFragment],
    image_url: Optional[str] = None,
) -> OutboundMessage:
    """
    Combine a matched event with its author's profile into one message.

    Args:
        event: An event that passed the decoder's filters
        profile: Normalized author profile
        fragments: Segmented record text
        image_url: CDN URL of the first embedded image, if any

    Returns:
        The message ready for delivery

    Raises:
        ValidationError: If the record timestamp cannot be parsed
    """
    record = event.commit.record
    posted_at = parse_timestamp(record.created_at)

    body = render_markup(fragments)
    body += f"\n<{post_url(event, profile.handle)}|{VIEW_POST_LABEL}>"

    return OutboundMessage(
        body_markup=body,
        author_line=f"{profile.display_name} (@{profile.handle})",
        author_icon=profile.avatar_url,
        author_link=PROFILE_URL_TEMPLATE.format(profile.handle),
        posted_at_epoch_seconds=int(posted_at.timestamp()),
        image_url=image_url,
    )
