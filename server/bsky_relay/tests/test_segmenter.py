"""
Tests for bsky_relay.richtext.segmenter

Pure unit tests, no I/O or mocking.
"""
import pytest

from bsky_relay.models.post import (
    Facet,
    LinkFeature,
    MentionFeature,
    TagFeature,
    TextFragment,
    UnknownFeature,
)
from bsky_relay.richtext.segmenter import render_markup, segment


def _link(start: int, end: int, uri: str = "https://example.com") -> Facet:
    return Facet(byte_start=start, byte_end=end, features=(LinkFeature(uri=uri),))


# ── No facets ─────────────────────────────────────────────────────────────────

def test_empty_text_yields_no_fragments():
    assert segment("", []) == []


def test_empty_text_with_zero_width_facet_yields_no_fragments():
    assert segment("", [_link(0, 0)]) == []


def test_no_facets_yields_single_plain_fragment():
    fragments = segment("just some text", [])
    assert fragments == [TextFragment(text="just some text")]
    assert fragments[0].features is None


# ── Basic segmentation ────────────────────────────────────────────────────────

def test_mention_in_middle_of_text():
    mention = MentionFeature(did="abc")
    facets = [Facet(byte_start=6, byte_end=15, features=(mention,))]

    fragments = segment("hello tailscale world", facets)

    assert fragments == [
        TextFragment(text="hello "),
        TextFragment(text="tailscale", features=(mention,)),
        TextFragment(text=" world"),
    ]
    assert render_markup(fragments) == (
        "hello <https://bsky.app/profile/abc|tailscale> world"
    )


def test_facet_at_start_and_end_of_text():
    fragments = segment("abc def", [_link(0, 3, "https://a"), _link(4, 7, "https://d")])

    assert [f.text for f in fragments] == ["abc", " ", "def"]
    assert fragments[1].features is None
    assert render_markup(fragments) == "<https://a|abc> <https://d|def>"


def test_unsorted_facets_are_ordered_by_byte_start():
    fragments = segment("one two three", [_link(8, 13, "https://3"), _link(0, 3, "https://1")])

    assert [f.text for f in fragments] == ["one", " two ", "three"]
    assert fragments[0].target_uri() == "https://1"
    assert fragments[2].target_uri() == "https://3"


# ── Byte offsets ──────────────────────────────────────────────────────────────

def test_offsets_index_utf8_bytes_not_characters():
    # "café " is 6 bytes in UTF-8 (é is two bytes) but 5 characters
    text = "café #sky"
    tag = TagFeature(tag="sky")

    fragments = segment(text, [Facet(byte_start=6, byte_end=10, features=(tag,))])

    assert fragments == [
        TextFragment(text="café "),
        TextFragment(text="#sky", features=(tag,)),
    ]


def test_emoji_before_facet():
    text = "🦋 tailscale"
    # 🦋 is 4 bytes, then a space
    fragments = segment(text, [_link(5, 14)])

    assert [f.text for f in fragments] == ["🦋 ", "tailscale"]


# ── Overlaps and ties ─────────────────────────────────────────────────────────

def test_overlapping_facet_is_dropped():
    fragments = segment(
        "abcdefghij",
        [_link(0, 5, "https://first"), _link(3, 8, "https://second")],
    )

    assert [f.text for f in fragments] == ["abcde", "fghij"]
    assert fragments[0].target_uri() == "https://first"
    assert fragments[1].features is None
    assert "https://second" not in render_markup(fragments)


def test_same_start_keeps_original_order():
    first = _link(0, 3, "https://first")
    second = _link(0, 5, "https://second")

    assert [f.text for f in segment("abcdefg", [first, second])] == ["abc", "defg"]
    assert [f.text for f in segment("abcdefg", [second, first])] == ["abcde", "fg"]


# ── Degenerate facets ─────────────────────────────────────────────────────────

def test_zero_width_facet_emits_nothing_and_keeps_order():
    fragments = segment("abcdef", [_link(2, 2, "https://empty"), _link(2, 4, "https://cd")])

    assert [f.text for f in fragments] == ["ab", "cd", "ef"]
    assert fragments[1].target_uri() == "https://cd"
    assert all(f.target_uri() != "https://empty" for f in fragments)


def test_whitespace_only_facet_drops_features():
    fragments = segment("a   b", [_link(1, 4)])

    assert fragments == [
        TextFragment(text="a"),
        TextFragment(text="   "),
        TextFragment(text="b"),
    ]
    assert fragments[1].features is None


def test_out_of_bounds_facet_is_skipped():
    fragments = segment("short", [_link(2, 99)])
    assert fragments == [TextFragment(text="short")]


@pytest.mark.parametrize(
    "text,facets",
    [
        ("hello tailscale world", [_link(6, 15)]),
        ("a #tag and @someone.bsky.social", [_link(2, 6), _link(11, 31)]),
        ("ünïcödé 🦋 text", [_link(0, 12), _link(12, 16)]),
        ("abc", [_link(0, 0), _link(3, 3)]),
    ],
)
def test_fragments_concatenate_to_original_text(text, facets):
    assert "".join(f.text for f in segment(text, facets)) == text


# ── Feature resolution ────────────────────────────────────────────────────────

def test_first_recognized_feature_wins():
    fragment = TextFragment(
        text="x",
        features=(
            UnknownFeature(type="app.bsky.richtext.facet#future"),
            TagFeature(tag="news"),
            LinkFeature(uri="https://ignored"),
        ),
    )

    assert fragment.target_uri() == "https://bsky.app/hashtag/news"


def test_only_unknown_features_render_plain():
    fragments = [
        TextFragment(text="plain", features=(UnknownFeature(type="something#else"),)),
    ]

    assert render_markup(fragments) == "plain"


def test_recognized_feature_with_empty_target_renders_plain():
    fragment = TextFragment(
        text="x",
        features=(LinkFeature(uri=""), MentionFeature(did="did:plc:abc")),
    )

    assert fragment.target_uri() is None
    assert render_markup([fragment]) == "x"
