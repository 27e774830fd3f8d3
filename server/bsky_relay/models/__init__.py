"""
Relay Data Models

Frozen dataclasses for feed events, rich text and notifications.
"""
from bsky_relay.models.notification import OutboundMessage, Profile
from bsky_relay.models.post import (
    Commit,
    CommitOperation,
    Facet,
    Feature,
    FeedEvent,
    ImageRef,
    LinkFeature,
    MentionFeature,
    Record,
    TagFeature,
    TextFragment,
    UnknownFeature,
)

__all__ = [
    "Commit",
    "CommitOperation",
    "Facet",
    "Feature",
    "FeedEvent",
    "ImageRef",
    "LinkFeature",
    "MentionFeature",
    "OutboundMessage",
    "Profile",
    "Record",
    "TagFeature",
    "TextFragment",
    "UnknownFeature",
]
