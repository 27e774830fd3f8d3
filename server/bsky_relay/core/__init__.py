"""
Relay Core Utilities

Exceptions and shared state types used across the relay.
"""
from bsky_relay.core.types import (
    AuthenticationError,
    DecodeError,
    DeliveryError,
    EndpointRotation,
    FeedConnectionError,
    ProfileFetchError,
    RelayError,
    ValidationError,
)

__all__ = [
    "AuthenticationError",
    "DecodeError",
    "DeliveryError",
    "EndpointRotation",
    "FeedConnectionError",
    "ProfileFetchError",
    "RelayError",
    "ValidationError",
]
