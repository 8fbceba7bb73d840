"""Tests for token management helpers."""

import asyncio

import httpx
import pytest
import respx

from content_ingest.ingestion.http_client import (
    HTTPClientError,
    TokenManager,
    client_credentials_fetcher,
)

TOKEN_URL = "https://www.reddit.com/api/v1/access_token"


def counting_fetcher(expires_in: float = 3600.0):
    calls = []

    async def fetch():
        calls.append(1)
        return f"token-{len(calls)}", expires_in

    return fetch, calls


class TestTokenManager:
    """Tests for TokenManager caching and refresh."""

    @pytest.mark.asyncio
    async def test_caches_token(self):
        fetch, calls = counting_fetcher()
        manager = TokenManager(fetch)

        assert await manager.get_token() == "token-1"
        assert await manager.get_token() == "token-1"
        assert len(calls) == 1
        assert manager.is_valid

    @pytest.mark.asyncio
    async def test_refreshes_inside_margin(self, fake_clock):
        fetch, calls = counting_fetcher(expires_in=120.0)
        manager = TokenManager(fetch, refresh_margin=60.0)
        manager._now = fake_clock.now

        await manager.get_token()
        fake_clock.t = 59.0
        assert await manager.get_token() == "token-1"

        fake_clock.t = 61.0
        assert not manager.is_valid
        assert await manager.get_token() == "token-2"

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self):
        fetch, calls = counting_fetcher()
        manager = TokenManager(fetch)

        await manager.get_token()
        manager.invalidate()

        assert not manager.is_valid
        assert await manager.get_token() == "token-2"

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_fetch(self):
        calls = []

        async def slow_fetch():
            calls.append(1)
            await asyncio.sleep(0.01)
            return "shared", 3600.0

        manager = TokenManager(slow_fetch)

        tokens = await asyncio.gather(*(manager.get_token() for _ in range(5)))

        assert tokens == ["shared"] * 5
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_fetch_errors_propagate(self):
        async def failing():
            raise HTTPClientError("Token request failed: HTTP 401", status_code=401)

        manager = TokenManager(failing)

        with pytest.raises(HTTPClientError):
            await manager.get_token()
        assert not manager.is_valid


class TestClientCredentialsFetcher:
    """Tests for the client credentials token request."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_posts_grant_with_basic_auth(self):
        route = respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"access_token": "abc", "expires_in": 86400})
        )

        async with httpx.AsyncClient() as client:
            fetch = client_credentials_fetcher(
                client, TOKEN_URL, "id", "secret", user_agent="content-ingest/0.1"
            )
            token, expires_in = await fetch()

        assert token == "abc"
        assert expires_in == 86400.0
        request = route.calls.last.request
        assert request.headers["Authorization"].startswith("Basic ")
        assert request.headers["User-Agent"] == "content-ingest/0.1"
        assert b"grant_type=client_credentials" in request.content

    @pytest.mark.asyncio
    @respx.mock
    async def test_default_expiry(self):
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json={"access_token": "abc"}))

        async with httpx.AsyncClient() as client:
            _, expires_in = await client_credentials_fetcher(client, TOKEN_URL, "id", "secret")()

        assert expires_in == 3600.0

    @pytest.mark.asyncio
    @respx.mock
    async def test_non_200_raises(self):
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(401, text="unauthorized"))

        async with httpx.AsyncClient() as client:
            with pytest.raises(HTTPClientError) as exc_info:
                await client_credentials_fetcher(client, TOKEN_URL, "id", "bad")()

        assert exc_info.value.status_code == 401
        assert exc_info.value.response_body == "unauthorized"

    @pytest.mark.asyncio
    @respx.mock
    async def test_missing_token_raises(self):
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(200, json={"error": "invalid_grant"}))

        async with httpx.AsyncClient() as client:
            with pytest.raises(HTTPClientError, match="missing access_token"):
                await client_credentials_fetcher(client, TOKEN_URL, "id", "secret")()
