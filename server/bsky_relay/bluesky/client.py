"""
Bluesky XRPC Client

Minimal async client for what the relay needs: creating a session from an
app password, keeping it fresh, and fetching an actor's profile.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from bsky_relay.core.types import AuthenticationError, ProfileFetchError

logger = logging.getLogger(__name__)

CREATE_SESSION_PATH = "/xrpc/com.atproto.server.createSession"
REFRESH_SESSION_PATH = "/xrpc/com.atproto.server.refreshSession"
GET_PROFILE_PATH = "/xrpc/app.bsky.actor.getProfile"

# XRPC error name returned (with status 400) once an access token lapses
EXPIRED_TOKEN_ERROR = "ExpiredToken"


class BlueskyClient:
    """
    Async Bluesky API client over a caller-supplied aiohttp session.

    The session is shared with other components and is not closed here.
    Access tokens are short-lived; fetch_profile refreshes the session once
    when the server reports the token expired, then retries.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        server_url: str = "https://bsky.social",
        *,
        timeout: float = 10.0,
    ) -> None:
        self._session = session
        self._server_url = server_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._handle = ""
        self._access_token: Optional[str] = None
        self._refresh_token: Optional[str] = None
        self._refresh_lock = asyncio.Lock()
        self._refresh_count = 0

    @property
    def authenticated(self) -> bool:
        """Check if a session token is held."""
        return self._access_token is not None

    @property
    def refresh_count(self) -> int:
        """Get number of successful session refreshes."""
        return self._refresh_count

    async def login(self, handle: str, app_password: str) -> None:
        """
        Create a session for the given account.

        Raises:
            AuthenticationError: If the server rejects the credentials or
                cannot be reached
        """
        self._handle = handle
        data = await self._session_call(
            CREATE_SESSION_PATH,
            json={"identifier": handle, "password": app_password},
        )
        self._store_tokens(data)
        logger.info(f"Authenticated with Bluesky as {handle}")

    async def refresh_session(self) -> None:
        """
        Exchange the refresh token for a new token pair.

        Raises:
            AuthenticationError: If no session is held or the refresh fails
        """
        if self._refresh_token is None:
            raise AuthenticationError("No session to refresh", handle=self._handle)

        data = await self._session_call(
            REFRESH_SESSION_PATH,
            headers={"Authorization": f"Bearer {self._refresh_token}"},
        )
        self._store_tokens(data)
        self._refresh_count += 1
        logger.info(f"Refreshed Bluesky session for {self._handle}")

    async def _session_call(
        self,
        path: str,
        *,
        json: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        url = f"{self._server_url}{path}"

        try:
            async with self._session.post(
                url,
                json=json,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    raise AuthenticationError(
                        f"{path} rejected with status {resp.status}: {text[:200]}",
                        handle=self._handle,
                        status=resp.status,
                    )
                data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise AuthenticationError(
                f"{path} request failed: {e}",
                handle=self._handle,
            ) from e

        if not isinstance(data, dict) or not data.get("accessJwt"):
            raise AuthenticationError(
                "Session response did not include an access token",
                handle=self._handle,
            )
        return data

    def _store_tokens(self, data: dict[str, Any]) -> None:
        self._access_token = data["accessJwt"]
        self._refresh_token = data.get("refreshJwt") or None

    async def fetch_profile(self, actor: str) -> dict[str, Any]:
        """
        Fetch the raw profile view for an actor (DID or handle).

        Raises:
            ProfileFetchError: If not logged in, the request fails, or an
                expired session cannot be refreshed
        """
        token = self._access_token
        if token is None:
            raise ProfileFetchError("Bluesky client is not logged in", actor=actor)

        status, payload = await self._get_profile(actor, token)

        if status == 400 and EXPIRED_TOKEN_ERROR in str(payload):
            await self._refresh_after_expiry(token, actor)
            status, payload = await self._get_profile(actor, self._access_token)

        if status != 200:
            raise ProfileFetchError(
                "Profile request failed",
                actor=actor,
                status=status,
                body=str(payload),
            )
        if not isinstance(payload, dict):
            raise ProfileFetchError("Profile response is not an object", actor=actor)
        return payload

    async def _get_profile(self, actor: str, token: str) -> tuple[int, Any]:
        """One getProfile call. Returns (status, decoded JSON or error text)."""
        url = f"{self._server_url}{GET_PROFILE_PATH}"
        headers = {"Authorization": f"Bearer {token}"}

        try:
            async with self._session.get(
                url,
                params={"actor": actor},
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                if resp.status != 200:
                    return resp.status, await resp.text()
                return resp.status, await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProfileFetchError(
                f"Profile request failed: {e}",
                actor=actor,
            ) from e

    async def _refresh_after_expiry(self, stale_token: str, actor: str) -> None:
        """Refresh once per expired token, however many fetches hit it."""
        async with self._refresh_lock:
            if self._access_token != stale_token:
                return
            try:
                await self.refresh_session()
            except AuthenticationError as e:
                raise ProfileFetchError(
                    f"Session expired and refresh failed: {e}",
                    actor=actor,
                ) from e
