"""
Jetstream Event Normalizer

Transforms decoded Jetstream JSON messages into internal FeedEvent format.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any

from bsky_relay.core.types import ValidationError
from bsky_relay.models.post import (
    LINK_FEATURE_TYPE,
    MENTION_FEATURE_TYPE,
    TAG_FEATURE_TYPE,
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
    UnknownFeature,
)

logger = logging.getLogger(__name__)

_RFC3339 = re.compile(
    r"^\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$"
)


def parse_timestamp(ts: str) -> datetime:
    """
    Parse an RFC 3339 timestamp to UTC datetime.

    Args:
        ts: Timestamp string such as "2024-11-20T17:06:15.272Z"

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        ValidationError: If timestamp format is invalid
    """
    if not ts:
        raise ValidationError("Timestamp is empty", field="createdAt")

    # Date-only strings and local times without an offset are not RFC 3339
    if not _RFC3339.match(ts):
        raise ValidationError(
            f"Invalid timestamp format: {ts}",
            field="createdAt",
            value=ts,
        )

    try:
        # Handle 'Z' suffix (Zulu time = UTC)
        normalized = ts.upper()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"

        return datetime.fromisoformat(normalized).astimezone(timezone.utc)

    except ValueError as e:
        raise ValidationError(
            f"Invalid timestamp format: {ts}",
            field="createdAt",
            value=ts,
        ) from e


def parse_feature(raw: dict[str, Any]) -> Feature:
    """Map one facet feature to its variant by $type."""
    feature_type = raw.get("$type", "")

    if feature_type == LINK_FEATURE_TYPE:
        return LinkFeature(uri=str(raw.get("uri", "")))
    if feature_type == MENTION_FEATURE_TYPE:
        return MentionFeature(did=str(raw.get("did", "")))
    if feature_type == TAG_FEATURE_TYPE:
        return TagFeature(tag=str(raw.get("tag", "")))

    return UnknownFeature(type=str(feature_type))


def _parse_facet(raw: Any) -> Facet:
    if not isinstance(raw, dict):
        raise ValidationError("Facet must be an object", field="facets", value=raw)

    index = raw.get("index")
    if not isinstance(index, dict):
        raise ValidationError("Facet is missing index", field="facets.index", value=raw)

    byte_start = index.get("byteStart", 0)
    byte_end = index.get("byteEnd", 0)
    if not isinstance(byte_start, int) or not isinstance(byte_end, int):
        raise ValidationError(
            "Facet index must be integers",
            field="facets.index",
            value=index,
        )

    features = raw.get("features") or []
    if not isinstance(features, list):
        raise ValidationError("Facet features must be a list", field="facets.features")

    return Facet(
        byte_start=byte_start,
        byte_end=byte_end,
        features=tuple(parse_feature(f) for f in features if isinstance(f, dict)),
    )


def _parse_images(embed: Any) -> tuple[ImageRef, ...]:
    """Extract image blob references from a record embed, if any."""
    if not isinstance(embed, dict):
        return ()

    images = embed.get("images")
    if not isinstance(images, list):
        return ()

    refs = []
    for image in images:
        try:
            link = image["image"]["ref"]["$link"]
        except (KeyError, TypeError):
            logger.debug("Skipping embedded image without blob link")
            continue
        if isinstance(link, str) and link:
            refs.append(ImageRef(link=link))
    return tuple(refs)


def _parse_record(raw: Any) -> Record:
    if not isinstance(raw, dict):
        raise ValidationError("Record must be an object", field="commit.record", value=raw)

    text = raw.get("text", "")
    if not isinstance(text, str):
        raise ValidationError("Record text must be a string", field="text", value=text)

    created_at = raw.get("createdAt", "")
    if not isinstance(created_at, str):
        raise ValidationError(
            "Record createdAt must be a string",
            field="createdAt",
            value=created_at,
        )

    facets = raw.get("facets") or []
    if not isinstance(facets, list):
        raise ValidationError("Record facets must be a list", field="facets")

    return Record(
        text=text,
        created_at=created_at,
        images=_parse_images(raw.get("embed")),
        facets=tuple(_parse_facet(f) for f in facets),
    )


def _parse_commit(raw: Any) -> Commit:
    if not isinstance(raw, dict):
        raise ValidationError("Commit must be an object", field="commit", value=raw)

    record = raw.get("record")

    return Commit(
        operation=CommitOperation.from_string(str(raw.get("operation", ""))),
        record_key=str(raw.get("rkey", "")),
        record=_parse_record(record) if record is not None else None,
        collection=str(raw.get("collection", "")),
    )


def normalize_event(raw: Any) -> FeedEvent:
    """
    Transform a single decoded Jetstream message to FeedEvent.

    Args:
        raw: Decoded JSON message

    Returns:
        Normalized FeedEvent

    Raises:
        ValidationError: If message does not match the event schema
    """
    if not isinstance(raw, dict):
        raise ValidationError(
            f"Expected dict, got {type(raw).__name__}",
            field="message",
            value=raw,
        )

    did = raw.get("did")
    if not did or not isinstance(did, str):
        raise ValidationError("Missing required field: did", field="did")

    time_us = raw.get("time_us", 0)
    if not isinstance(time_us, int):
        raise ValidationError("time_us must be an integer", field="time_us", value=time_us)

    commit = raw.get("commit")

    return FeedEvent(
        author_id=did,
        kind=str(raw.get("kind", "")),
        commit=_parse_commit(commit) if commit is not None else None,
        emitted_at_micros=time_us,
    )
