"""Tests for the URL liveness checker."""

import asyncio
from unittest.mock import AsyncMock

import httpx
import pytest
import respx

from content_ingest.validation.liveness import (
    GenericStrategy,
    LivenessChecker,
    LivenessResult,
    LivenessStrategy,
    OEmbedStrategy,
)

IMAGE_URL = "https://i.redd.it/abc123.jpg"


class RecordingStrategy(LivenessStrategy):
    """Matches every URL and tracks how many probes run at once."""

    name = "recording"

    def __init__(self, delay: float = 0.01, dead: set[str] | None = None):
        self.delay = delay
        self.dead = dead or set()
        self.in_flight = 0
        self.max_in_flight = 0
        self.seen: list[str] = []

    def matches(self, url: str) -> bool:
        return True

    async def check(self, client, url, timeout):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.seen.append(url)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        if url in self.dead:
            return LivenessResult(ok=False, status=404, reason="not found")
        return LivenessResult(ok=True, status=200)


def make_checker(**kwargs) -> LivenessChecker:
    kwargs.setdefault("timeout", 5.0)
    kwargs.setdefault("min_content_length", 1000)
    return LivenessChecker(**kwargs)


class TestGenericStrategy:
    """Tests for HEAD based probing."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_live_image(self):
        respx.head(IMAGE_URL).mock(
            return_value=httpx.Response(
                200, headers={"Content-Type": "image/jpeg", "Content-Length": "48213"}
            )
        )

        async with make_checker() as checker:
            result = await checker.check(IMAGE_URL)

        assert result == LivenessResult(ok=True, status=200)

    @pytest.mark.asyncio
    @respx.mock
    async def test_small_response_is_placeholder(self):
        respx.head(IMAGE_URL).mock(
            return_value=httpx.Response(
                200, headers={"Content-Type": "image/png", "Content-Length": "500"}
            )
        )

        async with make_checker() as checker:
            result = await checker.check(IMAGE_URL)

        assert not result.ok
        assert result.status == 200
        assert result.reason == "too small"

    @pytest.mark.asyncio
    @respx.mock
    async def test_not_found(self):
        respx.head(IMAGE_URL).mock(return_value=httpx.Response(404))

        async with make_checker() as checker:
            result = await checker.check(IMAGE_URL)

        assert result == LivenessResult(ok=False, status=404, reason="HTTP 404")

    @pytest.mark.asyncio
    @respx.mock
    async def test_html_without_length_rejected(self):
        respx.head(IMAGE_URL).mock(
            return_value=httpx.Response(200, headers={"Content-Type": "text/html; charset=utf-8"})
        )

        async with make_checker() as checker:
            result = await checker.check(IMAGE_URL)

        assert result.reason == "invalid content type"

    @pytest.mark.asyncio
    @respx.mock
    async def test_octet_stream_without_length_accepted(self):
        respx.head(IMAGE_URL).mock(
            return_value=httpx.Response(200, headers={"Content-Type": "application/octet-stream"})
        )

        async with make_checker() as checker:
            assert (await checker.check(IMAGE_URL)).ok

    @pytest.mark.asyncio
    @respx.mock
    async def test_head_refused_falls_back_to_get(self):
        respx.head(IMAGE_URL).mock(return_value=httpx.Response(405))
        get_route = respx.get(IMAGE_URL).mock(
            return_value=httpx.Response(
                200, headers={"Content-Type": "image/jpeg", "Content-Length": "5000"}
            )
        )

        async with make_checker() as checker:
            result = await checker.check(IMAGE_URL)

        assert result.ok
        assert get_route.called

    def test_matches_everything(self):
        assert GenericStrategy().matches("ftp://anything")


class TestOEmbedStrategy:
    """Tests for oEmbed probing of video hosts."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,ok,reason",
        [
            (200, True, None),
            (401, False, "private or restricted"),
            (403, False, "private or restricted"),
            (404, False, "not found"),
            (500, False, "oembed returned 500"),
        ],
    )
    async def test_status_mapping(self, status, ok, reason):
        with respx.mock:
            respx.get(host="www.youtube.com", path="/oembed").mock(
                return_value=httpx.Response(status, json={})
            )
            async with make_checker() as checker:
                result = await checker.check("https://www.youtube.com/watch?v=abc123")

        assert result.ok is ok
        assert result.reason == reason
        assert result.status == status

    @pytest.mark.asyncio
    @respx.mock
    async def test_url_is_encoded(self):
        route = respx.get(host="vimeo.com", path="/api/oembed.json").mock(
            return_value=httpx.Response(200, json={})
        )

        async with make_checker() as checker:
            await checker.check("https://vimeo.com/12345")

        assert route.calls.last.request.url.params["url"] == "https://vimeo.com/12345"

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://youtu.be/abc", "youtube"),
            ("https://www.youtube.com/shorts/abc", "youtube"),
            ("https://vimeo.com/123", "vimeo"),
            ("https://www.tiktok.com/@chef/video/1", "tiktok"),
            ("https://www.youtube.com/channel/abc", "generic"),
            (IMAGE_URL, "generic"),
        ],
    )
    def test_dispatch(self, url, expected):
        checker = LivenessChecker(client=AsyncMock())
        assert checker.strategy_for(url).name == expected


class TestLivenessChecker:
    """Tests for error mapping and registration."""

    @pytest.mark.asyncio
    async def test_no_url(self):
        async with make_checker() as checker:
            assert await checker.check(None) == LivenessResult(ok=False, reason="no url")
            assert (await checker.check("")).reason == "no url"

    @pytest.mark.asyncio
    @respx.mock
    async def test_http_timeout(self):
        respx.head(IMAGE_URL).mock(side_effect=httpx.ConnectTimeout("timed out"))

        async with make_checker() as checker:
            result = await checker.check(IMAGE_URL)

        assert result == LivenessResult(ok=False, reason="timeout")

    @pytest.mark.asyncio
    async def test_deadline_covers_whole_probe(self):
        slow = RecordingStrategy(delay=1.0)
        async with LivenessChecker(strategies=[slow]) as checker:
            result = await checker.check(IMAGE_URL, timeout=0.05)

        assert result.reason == "timeout"

    @pytest.mark.asyncio
    @respx.mock
    async def test_dns_failure(self):
        respx.head(IMAGE_URL).mock(
            side_effect=httpx.ConnectError("[Errno -2] Name or service not known")
        )

        async with make_checker() as checker:
            result = await checker.check(IMAGE_URL)

        assert result.reason == "dns lookup failed"

    @pytest.mark.asyncio
    @respx.mock
    async def test_connection_refused(self):
        respx.head(IMAGE_URL).mock(side_effect=httpx.ConnectError("Connection refused"))

        async with make_checker() as checker:
            result = await checker.check(IMAGE_URL)

        assert result.reason == "connection failed"

    @pytest.mark.asyncio
    @respx.mock
    async def test_redirect_loop_is_broken_not_raised(self):
        respx.head(IMAGE_URL).mock(
            return_value=httpx.Response(302, headers={"Location": IMAGE_URL})
        )

        async with make_checker() as checker:
            result = await checker.check(IMAGE_URL)

        assert result == LivenessResult(ok=False, reason="too many redirects")

    @pytest.mark.asyncio
    @respx.mock
    async def test_other_http_errors_are_broken(self):
        respx.head(IMAGE_URL).mock(side_effect=httpx.DecodingError("bad gzip"))

        async with make_checker() as checker:
            result = await checker.check(IMAGE_URL)

        assert not result.ok
        assert result.reason == "bad gzip"

    def test_explicit_zero_timeout_is_kept(self):
        assert make_checker(timeout=0.0, client=AsyncMock()).timeout == 0.0

    @pytest.mark.asyncio
    async def test_register_takes_priority(self):
        custom = OEmbedStrategy("youtube-mirror", ("youtube.com/watch",), "https://m/{url}")

        async with make_checker() as checker:
            checker.register(custom)

            assert checker.strategy_for("https://www.youtube.com/watch?v=1") is custom
            assert checker.strategies[0] is custom
            assert checker.strategies[-1].name == "generic"

    @pytest.mark.asyncio
    async def test_shared_client_not_closed(self):
        async with httpx.AsyncClient() as client:
            async with LivenessChecker(client=client):
                pass
            assert not client.is_closed


class TestCheckBatch:
    """Tests for bounded-concurrency batches."""

    @pytest.mark.asyncio
    async def test_bounded_concurrency(self):
        strategy = RecordingStrategy()
        items = [{"url": f"https://m/{n}.jpg"} for n in range(12)]

        async with LivenessChecker(strategies=[strategy]) as checker:
            results = [r async for r in checker.check_batch(items, concurrency=3)]

        assert len(results) == 12
        assert strategy.max_in_flight <= 3
        assert {id(r.item) for r in results} == {id(i) for i in items}

    @pytest.mark.asyncio
    async def test_results_pair_items(self):
        strategy = RecordingStrategy(dead={"https://m/dead.jpg"})
        items = [{"link": "https://m/ok.jpg"}, {"link": "https://m/dead.jpg"}]

        async with LivenessChecker(strategies=[strategy]) as checker:
            results = {
                r.item["link"]: r.result.ok
                async for r in checker.check_batch(items, url_getter="link")
            }

        assert results == {"https://m/ok.jpg": True, "https://m/dead.jpg": False}

    @pytest.mark.asyncio
    async def test_callable_getter_and_missing_url(self):
        strategy = RecordingStrategy()
        items = [("a", "https://m/a.jpg"), ("b", None)]

        async with LivenessChecker(strategies=[strategy]) as checker:
            results = [r async for r in checker.check_batch(items, url_getter=lambda i: i[1])]

        reasons = {r.item[0]: r.result.reason for r in results}
        assert reasons == {"a": None, "b": "no url"}

    @pytest.mark.asyncio
    async def test_restartable(self):
        strategy = RecordingStrategy()
        items = [{"url": f"https://m/{n}.jpg"} for n in range(4)]

        async with LivenessChecker(strategies=[strategy]) as checker:
            batch = checker.check_batch(items, concurrency=2)
            first = [r async for r in batch]
            second = [r async for r in batch]

        assert len(batch) == 4
        assert len(first) == len(second) == 4
        assert len(strategy.seen) == 8

    @pytest.mark.asyncio
    @respx.mock
    async def test_redirect_loop_does_not_sink_batch(self):
        looping = "https://i.redd.it/loop.jpg"
        respx.head(looping).mock(return_value=httpx.Response(302, headers={"Location": looping}))
        respx.head(IMAGE_URL).mock(
            return_value=httpx.Response(
                200, headers={"Content-Type": "image/jpeg", "Content-Length": "48213"}
            )
        )
        items = [{"url": looping}, {"url": IMAGE_URL}]

        async with make_checker() as checker:
            results = {r.item["url"]: r.result async for r in checker.check_batch(items)}

        assert results[looping].reason == "too many redirects"
        assert results[IMAGE_URL].ok

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        async with make_checker() as checker:
            assert [r async for r in checker.check_batch([])] == []
