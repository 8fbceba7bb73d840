"""
HTTP helpers shared by source adapters.

Provides:
- HTTPClientError: Non-success responses from auxiliary endpoints
- TokenManager: Cached OAuth access token with refresh ahead of expiry
- client_credentials_fetcher: Token fetcher for the client credentials grant

Token refresh is kept out of the adapters so each adapter only deals with
turning API responses into drafts.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

# (access_token, expires_in_seconds)
TokenFetcher = Callable[[], Awaitable[tuple[str, float]]]


class HTTPClientError(Exception):
    """Base exception for HTTP client errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class TokenManager:
    """
    Holds one access token and refreshes it before it expires.

    Concurrent callers share a single refresh via an asyncio lock.

    Example:
        manager = TokenManager(client_credentials_fetcher(client, url, cid, secret))
        token = await manager.get_token()
    """

    def __init__(self, fetch_token: TokenFetcher, refresh_margin: float = 60.0):
        """
        Initialize token manager.

        Args:
            fetch_token: Async callable returning (token, expires_in seconds)
            refresh_margin: Seconds before expiry at which the token is refreshed
        """
        self._fetch_token = fetch_token
        self.refresh_margin = refresh_margin
        self._token: str | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    def _now(self) -> float:
        return time.monotonic()

    @property
    def is_valid(self) -> bool:
        """Whether a cached token exists outside the refresh margin."""
        return self._token is not None and self._now() < self._expires_at - self.refresh_margin

    async def get_token(self) -> str:
        """Return the cached token, fetching a new one when needed."""
        async with self._lock:
            if self.is_valid:
                return self._token  # type: ignore[return-value]

            logger.info("Fetching new access token")
            token, expires_in = await self._fetch_token()
            self._token = token
            self._expires_at = self._now() + float(expires_in)
            return token

    def invalidate(self) -> None:
        """Drop the cached token, e.g. after a 401."""
        self._token = None
        self._expires_at = 0.0


def client_credentials_fetcher(
    client: httpx.AsyncClient,
    token_url: str,
    client_id: str,
    client_secret: str,
    user_agent: str | None = None,
) -> TokenFetcher:
    """
    Build a token fetcher for the OAuth2 client credentials grant.

    Credentials are sent with HTTP basic auth.

    Raises (from the returned fetcher):
        HTTPClientError: On a non-200 response or a body without access_token
    """

    async def fetch() -> tuple[str, float]:
        headers = {"User-Agent": user_agent} if user_agent else None
        response = await client.post(
            token_url,
            data={"grant_type": "client_credentials"},
            auth=(client_id, client_secret),
            headers=headers,
        )
        if response.status_code != 200:
            raise HTTPClientError(
                f"Token request failed: HTTP {response.status_code}",
                status_code=response.status_code,
                response_body=response.text[:500],
            )

        data = response.json()
        token = data.get("access_token")
        if not token:
            raise HTTPClientError(
                "Token response missing access_token",
                status_code=response.status_code,
                response_body=response.text[:500],
            )
        return token, float(data.get("expires_in", 3600))

    return fetch
