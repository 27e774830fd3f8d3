"""
Rich Text Module

Facet segmentation and markup rendering for post text.
"""
from bsky_relay.richtext.segmenter import render_markup, segment

__all__ = [
    "render_markup",
    "segment",
]
