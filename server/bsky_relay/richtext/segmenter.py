"""
Rich Text Segmentation

Overlays facet byte ranges onto post text to produce ordered fragments, and
renders those fragments as Slack link markup.

Facet offsets index the UTF-8 encoding of the text, so all slicing happens on
the encoded bytes.
"""
from __future__ import annotations

import logging
from typing import Iterable

from bsky_relay.models.post import Facet, TextFragment

logger = logging.getLogger(__name__)


def _slice(data: bytes, start: int, end: int) -> str:
    return data[start:end].decode("utf-8", errors="replace")


def segment(text: str, facets: Iterable[Facet]) -> list[TextFragment]:
    """
    Split text into fragments at facet boundaries.

    Facets are ordered by byte_start with a stable sort. A facet starting
    before the cursor overlaps an earlier one and is dropped. A facet whose
    text is blank is emitted without features.

    Args:
        text: Post text
        facets: Facets in any order

    Returns:
        Fragments in reading order; their texts concatenate to the original
        text when facets do not overlap.
    """
    data = text.encode("utf-8")
    size = len(data)
    fragments: list[TextFragment] = []

    cursor = 0
    for facet in sorted(facets, key=lambda f: f.byte_start):
        start, end = facet.byte_start, facet.byte_end

        if not 0 <= start <= end <= size:
            logger.debug(
                "Skipping facet outside text bounds",
                extra={"byte_start": start, "byte_end": end, "text_bytes": size},
            )
            continue

        if cursor < start:
            fragments.append(TextFragment(text=_slice(data, cursor, start)))
        elif cursor > start:
            continue

        if start < end:
            fragment_text = _slice(data, start, end)
            if fragment_text.strip():
                fragments.append(
                    TextFragment(text=fragment_text, features=tuple(facet.features))
                )
            else:
                fragments.append(TextFragment(text=fragment_text))
        cursor = end

    if cursor < size:
        fragments.append(TextFragment(text=_slice(data, cursor, size)))

    return fragments


def render_markup(fragments: Iterable[TextFragment]) -> str:
    """Render fragments as Slack markup, linking those with a resolvable feature."""
    parts = []
    for fragment in fragments:
        uri = fragment.target_uri()
        if uri:
            parts.append(f"<{uri}|{fragment.text}>")
        else:
            parts.append(fragment.text)
    return "".join(parts)
