"""
Shared fixtures for bsky_relay tests.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest

NOW = datetime(2024, 11, 20, 12, 0, 0, tzinfo=timezone.utc)
AUTHOR_DID = "did:plc:abc123"


def _iso(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_message() -> Callable[..., dict[str, Any]]:
    """
    Factory for decoded Jetstream commit messages.

    Keyword overrides: text, operation, kind, rkey, age, created_at, facets,
    embed, did.
    """

    def _make(
        text: str = "I love tailscale",
        *,
        operation: str = "create",
        kind: str = "commit",
        rkey: str = "3lbqta5lnck2i",
        age: timedelta = timedelta(minutes=5),
        created_at: str | None = None,
        facets: list[dict[str, Any]] | None = None,
        embed: dict[str, Any] | None = None,
        did: str = AUTHOR_DID,
    ) -> dict[str, Any]:
        record: dict[str, Any] = {
            "$type": "app.bsky.feed.post",
            "text": text,
            "createdAt": created_at if created_at is not None else _iso(NOW - age),
            "langs": ["en"],
        }
        if facets is not None:
            record["facets"] = facets
        if embed is not None:
            record["embed"] = embed

        return {
            "did": did,
            "time_us": 1732104000000000,
            "kind": kind,
            "commit": {
                "rev": "3lbqta5m4ls2i",
                "operation": operation,
                "collection": "app.bsky.feed.post",
                "rkey": rkey,
                "record": record,
                "cid": "bafyreia",
            },
        }

    return _make
