"""
URL liveness checks for stored media.

Platform strategies probe video hosts through their oEmbed endpoints; every
other URL gets a generic HEAD request (GET fallback) with a placeholder-size
and content-type heuristic. Network failures never raise: they come back as
a LivenessResult with ok=False and a short reason.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar
from urllib.parse import quote

import httpx

from content_ingest.config.settings import get_settings
from content_ingest.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALLOWED_CONTENT_PREFIXES = ("image/", "video/", "application/octet-stream")
HEAD_UNSUPPORTED = {405, 501}
_DNS_MARKERS = ("name or service not known", "nodename nor servname", "getaddrinfo", "name resolution")


@dataclass
class LivenessResult:
    """Outcome of one probe."""

    ok: bool
    status: int | None = None
    reason: str | None = None


@dataclass
class BatchCheckResult(Generic[T]):
    """A batch item together with its probe outcome."""

    item: T
    result: LivenessResult


class LivenessStrategy(ABC):
    """A way of probing URLs of one platform."""

    name: str = "generic"

    @abstractmethod
    def matches(self, url: str) -> bool:
        """Whether this strategy handles the URL."""
        ...

    @abstractmethod
    async def check(self, client: httpx.AsyncClient, url: str, timeout: float) -> LivenessResult:
        """Probe the URL. May raise httpx errors; the checker maps them to results."""
        ...


class OEmbedStrategy(LivenessStrategy):
    """
    Probe through a platform's oEmbed endpoint.

    A 200 means the media is public and exists; 401/403 mean it exists but
    is private; 404 means it is gone.
    """

    def __init__(self, name: str, url_markers: Iterable[str], endpoint: str):
        """
        Args:
            name: Platform tag (youtube, vimeo, ...)
            url_markers: Substrings identifying the platform's media URLs
            endpoint: oEmbed URL template with a `{url}` placeholder
        """
        self.name = name
        self.url_markers = tuple(url_markers)
        self.endpoint = endpoint

    def matches(self, url: str) -> bool:
        lower = url.lower()
        return any(marker in lower for marker in self.url_markers)

    async def check(self, client: httpx.AsyncClient, url: str, timeout: float) -> LivenessResult:
        oembed_url = self.endpoint.format(url=quote(url, safe=""))
        response = await client.get(oembed_url, timeout=timeout)
        status = response.status_code

        if status == 200:
            return LivenessResult(ok=True, status=status)
        if status in (401, 403):
            return LivenessResult(ok=False, status=status, reason="private or restricted")
        if status == 404:
            return LivenessResult(ok=False, status=status, reason="not found")
        return LivenessResult(ok=False, status=status, reason=f"oembed returned {status}")


class GenericStrategy(LivenessStrategy):
    """HEAD the URL (GET when HEAD is refused) and sanity check the headers."""

    name = "generic"

    def __init__(self, min_content_length: int = 1000):
        self.min_content_length = min_content_length

    def matches(self, url: str) -> bool:
        return True

    async def _get_headers_only(
        self, client: httpx.AsyncClient, url: str, timeout: float
    ) -> httpx.Response:
        # Streaming request: the body is never read
        async with client.stream("GET", url, timeout=timeout) as response:
            return response

    async def check(self, client: httpx.AsyncClient, url: str, timeout: float) -> LivenessResult:
        response = await client.head(url, timeout=timeout)
        if response.status_code in HEAD_UNSUPPORTED:
            logger.debug(f"HEAD not supported for {url}, trying GET")
            response = await self._get_headers_only(client, url, timeout)

        status = response.status_code
        if not 200 <= status < 400:
            return LivenessResult(ok=False, status=status, reason=f"HTTP {status}")

        content_length = _parse_length(response.headers.get("content-length"))
        if content_length is not None and content_length < self.min_content_length:
            return LivenessResult(ok=False, status=status, reason="too small")

        content_type = response.headers.get("content-type", "").strip().lower()
        if (
            content_type
            and content_length is None
            and not content_type.startswith(ALLOWED_CONTENT_PREFIXES)
        ):
            return LivenessResult(ok=False, status=status, reason="invalid content type")

        return LivenessResult(ok=True, status=status)


def _parse_length(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def default_strategies() -> list[LivenessStrategy]:
    """Built-in platform strategies, checked in order before the generic one."""
    return [
        OEmbedStrategy(
            "youtube",
            ("youtube.com/watch", "youtube.com/shorts/", "youtu.be/"),
            "https://www.youtube.com/oembed?url={url}&format=json",
        ),
        OEmbedStrategy(
            "vimeo",
            ("vimeo.com/",),
            "https://vimeo.com/api/oembed.json?url={url}",
        ),
        OEmbedStrategy(
            "tiktok",
            ("tiktok.com/",),
            "https://www.tiktok.com/oembed?url={url}",
        ),
    ]


def _transport_reason(exc: httpx.TransportError) -> str:
    message = str(exc)
    if isinstance(exc, httpx.ConnectError):
        if any(marker in message.lower() for marker in _DNS_MARKERS):
            return "dns lookup failed"
        return "connection failed"
    return message or type(exc).__name__


def _resolve_url(item: Any, url_getter: str | Callable[[Any], str | None]) -> str | None:
    if callable(url_getter):
        return url_getter(item)
    if isinstance(item, dict):
        return item.get(url_getter)
    return getattr(item, url_getter, None)


class BatchCheck(Generic[T]):
    """
    Lazy batch of checks. Each `async for` starts the probes from scratch.

    Items run in chunks of `concurrency`; a chunk completes before the next
    starts and its results are yielded in completion order.
    """

    def __init__(
        self,
        checker: "LivenessChecker",
        items: Iterable[T],
        concurrency: int,
        url_getter: str | Callable[[T], str | None],
        timeout: float | None,
    ):
        self._checker = checker
        self._items = list(items)
        self._concurrency = max(1, concurrency)
        self._url_getter = url_getter
        self._timeout = timeout

    def __len__(self) -> int:
        return len(self._items)

    def __aiter__(self) -> AsyncIterator[BatchCheckResult[T]]:
        return self._run()

    async def _check_item(self, item: T) -> BatchCheckResult[T]:
        url = _resolve_url(item, self._url_getter)
        result = await self._checker.check(url, timeout=self._timeout)
        return BatchCheckResult(item=item, result=result)

    async def _run(self) -> AsyncIterator[BatchCheckResult[T]]:
        for start in range(0, len(self._items), self._concurrency):
            chunk = self._items[start : start + self._concurrency]
            tasks = [asyncio.create_task(self._check_item(item)) for item in chunk]
            try:
                for next_done in asyncio.as_completed(tasks):
                    yield await next_done
            finally:
                for task in tasks:
                    if not task.done():
                        task.cancel()


class LivenessChecker:
    """
    Dispatches URLs to liveness strategies.

    Usage:
        async with LivenessChecker() as checker:
            result = await checker.check("https://youtu.be/abc123")
            async for checked in checker.check_batch(rows, url_getter="check_url"):
                ...
    """

    def __init__(
        self,
        timeout: float | None = None,
        min_content_length: int | None = None,
        user_agent: str | None = None,
        client: httpx.AsyncClient | None = None,
        strategies: list[LivenessStrategy] | None = None,
    ):
        """
        Initialize checker.

        Args:
            timeout: Default deadline per check in seconds
            min_content_length: Smallest plausible media size in bytes
            user_agent: User agent sent with probes
            client: Shared HTTP client (one is created when omitted)
            strategies: Platform strategies (defaults to the oEmbed set)
        """
        settings = get_settings()
        self.timeout = timeout if timeout is not None else settings.liveness_timeout_seconds
        min_length = (
            min_content_length
            if min_content_length is not None
            else settings.liveness_min_content_length
        )
        self.user_agent = user_agent or settings.liveness_user_agent

        self._strategies = strategies if strategies is not None else default_strategies()
        self._generic = GenericStrategy(min_content_length=min_length)

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            headers={"User-Agent": self.user_agent, "Accept": "*/*"},
        )
        self._metrics = get_metrics()

    async def __aenter__(self) -> "LivenessChecker":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def strategies(self) -> list[LivenessStrategy]:
        return [*self._strategies, self._generic]

    def register(self, strategy: LivenessStrategy) -> None:
        """Add a platform strategy. It takes priority over the existing ones."""
        self._strategies.insert(0, strategy)

    def strategy_for(self, url: str) -> LivenessStrategy:
        for strategy in self._strategies:
            if strategy.matches(url):
                return strategy
        return self._generic

    async def check(self, url: str | None, timeout: float | None = None) -> LivenessResult:
        """
        Probe one URL.

        Args:
            url: URL to check
            timeout: Deadline for the whole probe (defaults to the checker's)

        Returns:
            LivenessResult; network failures never raise
        """
        if not url:
            return LivenessResult(ok=False, reason="no url")

        deadline = timeout if timeout is not None else self.timeout
        strategy = self.strategy_for(url)

        try:
            result = await asyncio.wait_for(
                strategy.check(self._client, url, deadline), timeout=deadline
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            result = LivenessResult(ok=False, reason="timeout")
        except httpx.TransportError as e:
            result = LivenessResult(ok=False, reason=_transport_reason(e))
        except httpx.TooManyRedirects:
            result = LivenessResult(ok=False, reason="too many redirects")
        except httpx.HTTPError as e:
            result = LivenessResult(ok=False, reason=str(e) or type(e).__name__)
        except httpx.InvalidURL as e:
            result = LivenessResult(ok=False, reason=str(e) or "invalid url")

        if not result.ok:
            logger.debug(f"{strategy.name} check failed for {url}: {result.reason}")
        self._metrics.record_liveness_check(strategy.name, result.ok)
        return result

    def check_batch(
        self,
        items: Iterable[T],
        concurrency: int | None = None,
        url_getter: str | Callable[[T], str | None] = "url",
        timeout: float | None = None,
    ) -> BatchCheck[T]:
        """
        Check many items with bounded concurrency.

        Args:
            items: Items carrying URLs
            concurrency: Checks in flight at once (defaults to 5)
            url_getter: Field name (mapping key or attribute) or accessor function
            timeout: Per-check deadline

        Returns:
            A restartable async iterable of BatchCheckResult
        """
        return BatchCheck(self, items, concurrency or 5, url_getter, timeout)
