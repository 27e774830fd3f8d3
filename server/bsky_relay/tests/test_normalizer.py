"""
Tests for bsky_relay.jetstream.normalizer

Pure unit tests: raw dicts in, FeedEvents out.
"""
from dataclasses import fields
from datetime import datetime, timezone

import pytest

from bsky_relay.core.types import ValidationError
from bsky_relay.jetstream.normalizer import normalize_event, parse_feature, parse_timestamp
from bsky_relay.models.post import (
    CommitOperation,
    LinkFeature,
    MentionFeature,
    TagFeature,
    UnknownFeature,
)


# ── parse_timestamp ───────────────────────────────────────────────────────────

def test_parse_timestamp_zulu():
    assert parse_timestamp("2024-11-20T17:06:15.272Z") == datetime(
        2024, 11, 20, 17, 6, 15, 272000, tzinfo=timezone.utc
    )


def test_parse_timestamp_with_offset_is_converted_to_utc():
    parsed = parse_timestamp("2024-11-20T19:06:15+02:00")
    assert parsed == datetime(2024, 11, 20, 17, 6, 15, tzinfo=timezone.utc)
    assert parsed.tzinfo == timezone.utc


def test_parse_timestamp_lowercase_separators():
    assert parse_timestamp("2024-11-20t17:06:15z") == datetime(
        2024, 11, 20, 17, 6, 15, tzinfo=timezone.utc
    )


@pytest.mark.parametrize(
    "value",
    [
        "",
        "yesterday",
        "2024-13-45T00:00:00Z",
        "2024-11-20",
        "2024-11-20T12:00:00",
        "2024-11-20 12:00:00Z",
        "2024-11-20T12:00Z",
    ],
)
def test_parse_timestamp_invalid_raises(value):
    with pytest.raises(ValidationError) as exc_info:
        parse_timestamp(value)
    assert exc_info.value.field == "createdAt"


# ── parse_feature ─────────────────────────────────────────────────────────────

def test_parse_feature_variants():
    assert parse_feature(
        {"$type": "app.bsky.richtext.facet#link", "uri": "https://x.dev"}
    ) == LinkFeature(uri="https://x.dev")
    assert parse_feature(
        {"$type": "app.bsky.richtext.facet#mention", "did": "did:plc:q"}
    ) == MentionFeature(did="did:plc:q")
    assert parse_feature(
        {"$type": "app.bsky.richtext.facet#tag", "tag": "go"}
    ) == TagFeature(tag="go")
    assert parse_feature({"$type": "com.example#bold"}) == UnknownFeature(
        type="com.example#bold"
    )


# ── normalize_event ───────────────────────────────────────────────────────────

def test_normalize_full_commit(make_message):
    raw = make_message(
        "see tailscale.com #vpn",
        facets=[
            {
                "index": {"byteStart": 4, "byteEnd": 17},
                "features": [
                    {"$type": "app.bsky.richtext.facet#link", "uri": "https://tailscale.com"}
                ],
            },
            {
                "index": {"byteStart": 18, "byteEnd": 22},
                "features": [{"$type": "app.bsky.richtext.facet#tag", "tag": "vpn"}],
            },
        ],
        embed={
            "$type": "app.bsky.embed.images",
            "images": [
                {"alt": "", "image": {"ref": {"$link": "bafkreiimg1"}, "mimeType": "image/jpeg"}},
                {"alt": "", "image": {"ref": {"$link": "bafkreiimg2"}}},
            ],
        },
    )

    event = normalize_event(raw)

    assert event.author_id == "did:plc:abc123"
    assert event.kind == "commit"
    assert event.emitted_at_micros == 1732104000000000
    assert event.commit.operation is CommitOperation.CREATE
    assert event.commit.record_key == "3lbqta5lnck2i"
    assert event.commit.collection == "app.bsky.feed.post"
    assert event.commit.record.text == "see tailscale.com #vpn"
    assert [i.link for i in event.commit.record.images] == ["bafkreiimg1", "bafkreiimg2"]
    assert [(f.byte_start, f.byte_end) for f in event.commit.record.facets] == [(4, 17), (18, 22)]
    assert event.commit.record.facets[1].features == (TagFeature(tag="vpn"),)
    assert event.is_eligible


def test_normalize_delete_commit_without_record(make_message):
    raw = make_message(operation="delete")
    del raw["commit"]["record"]

    event = normalize_event(raw)

    assert event.commit.operation is CommitOperation.DELETE
    assert event.commit.record is None
    assert not event.is_eligible


def test_normalize_identity_event_without_commit():
    event = normalize_event(
        {"did": "did:plc:abc", "time_us": 1, "kind": "identity", "identity": {}}
    )
    assert event.commit is None
    assert not event.is_eligible


def test_unknown_operation_maps_to_other(make_message):
    event = normalize_event(make_message(operation="resync"))
    assert event.commit.operation is CommitOperation.OTHER


def test_embed_without_images_yields_none(make_message):
    raw = make_message(embed={"$type": "app.bsky.embed.external", "external": {}})
    assert normalize_event(raw).commit.record.images == ()


def test_commit_revision_is_not_kept(make_message):
    commit = normalize_event(make_message()).commit

    assert {f.name for f in fields(commit)} == {
        "operation",
        "record_key",
        "record",
        "collection",
    }


@pytest.mark.parametrize(
    "raw",
    [
        [],
        {"kind": "commit"},
        {"did": "did:plc:x", "time_us": "soon"},
        {"did": "did:plc:x", "kind": "commit", "commit": "nope"},
    ],
)
def test_malformed_messages_raise_validation_error(raw):
    with pytest.raises(ValidationError):
        normalize_event(raw)


def test_malformed_facet_index_raises(make_message):
    raw = make_message(facets=[{"index": {"byteStart": "0", "byteEnd": 3}, "features": []}])
    with pytest.raises(ValidationError, match="integers"):
        normalize_event(raw)
