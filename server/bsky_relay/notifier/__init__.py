"""
Notifier Module

Message formatting and webhook delivery.
"""
from bsky_relay.notifier.formatter import build_image_url, format_message, post_url
from bsky_relay.notifier.slack import SlackWebhookNotifier

__all__ = [
    "SlackWebhookNotifier",
    "build_image_url",
    "format_message",
    "post_url",
]
