"""
Slack Webhook Notifier

Delivers outbound messages to a Slack-compatible incoming webhook. One POST
per message, no retries.
"""
from __future__ import annotations

import asyncio
import logging

import aiohttp

from bsky_relay.core.types import DeliveryError
from bsky_relay.models.notification import OutboundMessage

logger = logging.getLogger(__name__)


class SlackWebhookNotifier:
    """Posts messages to a fixed webhook URL over a shared aiohttp session."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        webhook_url: str,
        *,
        timeout: float = 10.0,
    ) -> None:
        self._session = session
        self._webhook_url = webhook_url
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._messages_sent = 0

    @property
    def messages_sent(self) -> int:
        """Get total messages accepted by the webhook."""
        return self._messages_sent

    async def send(self, message: OutboundMessage) -> None:
        """
        Send one message.

        Raises:
            DeliveryError: On a non-200 response (carrying status and body)
                or a transport failure
        """
        try:
            async with self._session.post(
                self._webhook_url,
                json=message.to_payload(),
                timeout=self._timeout,
            ) as resp:
                if resp.status != 200:
                    body = await resp.text()
                    logger.error(
                        f"Error code response from webhook: {resp.status} {body[:200]}",
                        extra={"status": resp.status, "response_body": body},
                    )
                    raise DeliveryError(
                        "Webhook rejected notification",
                        status=resp.status,
                        body=body,
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise DeliveryError(f"Failed to post to webhook: {e}") from e

        self._messages_sent += 1
