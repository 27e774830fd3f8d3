"""
Feed Event Models

Data structures for Jetstream post events and their rich-text annotations.
All models use frozen dataclasses with __post_init__ validation.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

PROFILE_URL_TEMPLATE = "https://bsky.app/profile/{}"
HASHTAG_URL_TEMPLATE = "https://bsky.app/hashtag/{}"

LINK_FEATURE_TYPE = "app.bsky.richtext.facet#link"
MENTION_FEATURE_TYPE = "app.bsky.richtext.facet#mention"
TAG_FEATURE_TYPE = "app.bsky.richtext.facet#tag"


class CommitOperation(str, Enum):
    """Repository commit operation."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    OTHER = "other"

    @classmethod
    def from_string(cls, value: str) -> "CommitOperation":
        """Convert string to CommitOperation, defaulting to OTHER."""
        for member in cls:
            if member.value == value.lower():
                return member
        return cls.OTHER


@dataclass(frozen=True)
class LinkFeature:
    """Facet feature linking to an external URI."""

    uri: str

    def target_uri(self) -> Optional[str]:
        return self.uri


@dataclass(frozen=True)
class MentionFeature:
    """Facet feature mentioning another account by DID."""

    did: str

    def target_uri(self) -> Optional[str]:
        return PROFILE_URL_TEMPLATE.format(self.did)


@dataclass(frozen=True)
class TagFeature:
    """Facet feature for a hashtag (label without the leading '#')."""

    tag: str

    def target_uri(self) -> Optional[str]:
        return HASHTAG_URL_TEMPLATE.format(self.tag)


@dataclass(frozen=True)
class UnknownFeature:
    """Facet feature of a type the relay does not render."""

    type: str

    def target_uri(self) -> Optional[str]:
        return None


Feature = Union[LinkFeature, MentionFeature, TagFeature, UnknownFeature]


@dataclass(frozen=True)
class Facet:
    """A byte-range annotation over a record's UTF-8 text."""

    byte_start: int
    byte_end: int
    features: tuple[Feature, ...] = ()


@dataclass(frozen=True)
class ImageRef:
    """Reference to an embedded image blob."""

    link: str

    def __post_init__(self) -> None:
        if not self.link:
            raise ValueError("link must be non-empty string")


@dataclass(frozen=True)
class Record:
    """The post record carried by a commit."""

    text: str
    created_at: str  # RFC 3339, parsed by the decoder
    images: tuple[ImageRef, ...] = ()
    facets: tuple[Facet, ...] = ()


@dataclass(frozen=True)
class Commit:
    """A repository commit from the feed."""

    operation: CommitOperation
    record_key: str
    record: Optional[Record] = None
    collection: str = ""


@dataclass(frozen=True)
class FeedEvent:
    """
    One decoded Jetstream event.

    Produced per frame by the decoder and discarded after the dispatch
    decision.
    """

    author_id: str
    kind: str
    commit: Optional[Commit]
    emitted_at_micros: int

    def __post_init__(self) -> None:
        """Validate required fields."""
        if not self.author_id:
            raise ValueError("author_id must be non-empty string")

    @property
    def is_eligible(self) -> bool:
        """True for a newly created record with a usable record key."""
        return (
            self.kind == "commit"
            and self.commit is not None
            and self.commit.operation is CommitOperation.CREATE
            and self.commit.record is not None
            and bool(self.commit.record_key)
        )


@dataclass(frozen=True)
class TextFragment:
    """A contiguous slice of post text, optionally carrying facet features."""

    text: str
    features: Optional[tuple[Feature, ...]] = None

    def target_uri(self) -> Optional[str]:
        """
        Link target of the first recognized feature, in facet order.

        Unknown features are skipped. A recognized feature with an empty
        target still decides the outcome (no link).
        """
        for feature in self.features or ():
            uri = feature.target_uri()
            if uri is not None:
                return uri or None
        return None
