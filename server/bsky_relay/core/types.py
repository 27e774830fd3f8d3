"""
Core Type Definitions and Exceptions

Relay exceptions, grouped the way the supervisor and dispatcher handle them,
and the endpoint rotation cursor.

    frame-local:  ValidationError, DecodeError           (frame dropped)
    connection:   FeedConnectionError, AuthenticationError (reconnect)
    delivery:     ProfileFetchError, DeliveryError        (event dropped)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

# Longest response body or value preview carried in an error
PREVIEW_LIMIT = 200


def _clip(value: Any, limit: int = PREVIEW_LIMIT) -> str:
    text = value if isinstance(value, str) else repr(value)
    return text if len(text) <= limit else text[:limit] + "..."


class RelayError(Exception):
    """
    Base exception for all relay errors.

    Keyword context is kept on the instance and rendered into str(), so a
    plain f"{e}" in a log line carries it. None values are left out.
    """

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = " ".join(f"{k}={v}" for k, v in self.context.items())
        return f"{self.message} ({details})"


# ── Frame-local ──────────────────────────────────────────────────────────────

class ValidationError(RelayError):
    """A decoded frame does not match the Jetstream event schema."""

    def __init__(self, message: str, field: str, value: Any = None) -> None:
        super().__init__(
            message,
            field=field,
            value=_clip(value, 80) if value is not None else None,
        )
        self.field = field
        self.value = value


class DecodeError(RelayError):
    """A raw frame cannot be decompressed or read as JSON."""

    def __init__(self, message: str, frame_size: int) -> None:
        super().__init__(message, frame_size=frame_size)
        self.frame_size = frame_size


# ── Connection ───────────────────────────────────────────────────────────────

class FeedConnectionError(RelayError):
    """The feed connection could not be dialed, or broke while streaming."""

    def __init__(self, message: str, endpoint: str) -> None:
        super().__init__(message, endpoint=endpoint)
        self.endpoint = endpoint


class AuthenticationError(RelayError):
    """The Bluesky account could not be logged in or its session refreshed."""

    def __init__(self, message: str, handle: str, status: Optional[int] = None) -> None:
        super().__init__(message, handle=handle, status=status)
        self.handle = handle
        self.status = status


# ── Delivery ─────────────────────────────────────────────────────────────────

class ProfileFetchError(RelayError):
    """An author profile could not be fetched."""

    def __init__(
        self,
        message: str,
        actor: str,
        status: Optional[int] = None,
        body: str = "",
    ) -> None:
        super().__init__(
            message,
            actor=actor,
            status=status,
            body=_clip(body) if body else None,
        )
        self.actor = actor
        self.status = status
        self.body = body


class DeliveryError(RelayError):
    """The webhook rejected a notification or could not be reached."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = "") -> None:
        super().__init__(message, status=status, body=_clip(body) if body else None)
        self.status = status
        self.body = body


@dataclass
class EndpointRotation:
    """
    Owned round-robin cursor over feed endpoints.

    With an override set, every dial goes to the override. Otherwise each
    call to next_endpoint() advances one position, wrapping at the end.
    """

    endpoints: tuple[str, ...]
    override: str = ""
    cursor: int = field(default=0)
    attempt_count: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        if not self.override and not self.endpoints:
            raise ValueError("endpoints must be non-empty when no override is set")
        if self.endpoints:
            self.cursor %= len(self.endpoints)

    def next_endpoint(self) -> str:
        """Return the endpoint for the next dial attempt and advance."""
        self.attempt_count += 1

        if self.override:
            return self.override

        endpoint = self.endpoints[self.cursor]
        self.cursor = (self.cursor + 1) % len(self.endpoints)
        return endpoint
