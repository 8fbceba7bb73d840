"""
Source URL deduplication.

Keeps a process-local set of normalized source URLs, loaded once from the
content table and extended by the importer after every successful insert.
The store's unique index on source_url remains the source of truth: two
processes can both pass the cache check for the same URL, and the loser's
insert is reported as a skip.
"""

import logging
from collections.abc import Callable, Iterable
from typing import Any, Protocol, TypeVar
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from content_ingest.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PORTS = {"http": 80, "https": 443, "ws": 80, "wss": 443, "ftp": 21}


class SourceUrlStore(Protocol):
    """Anything that can list the stored source URLs."""

    async def get_source_urls(self) -> list[str]: ...


def normalize_url(url: str | None) -> str | None:
    """
    Normalize a URL for duplicate comparison.

    - lower-cases scheme and host, drops default ports
    - strips trailing slashes from any non-root path
    - sorts query parameters by key (stable for repeated keys)

    Inputs that are not absolute URLs fall back to lower-cased, trimmed text.
    The result is idempotent: normalize_url(normalize_url(u)) == normalize_url(u).

    Args:
        url: URL to normalize

    Returns:
        Normalized URL, or None for empty or blank input
    """
    stripped = url.strip() if url else ""
    if not stripped:
        return None

    try:
        parts = urlsplit(stripped)
        if not parts.scheme or not parts.hostname:
            raise ValueError("not an absolute URL")
        port = parts.port  # raises ValueError on a malformed port
    except ValueError:
        return stripped.lower()

    scheme = parts.scheme.lower()
    host = parts.hostname  # already lower-cased by urlsplit
    if ":" in host:
        host = f"[{host}]"

    netloc = host
    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{host}:{port}"
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = parts.path.rstrip("/") or "/"

    query = ""
    if parts.query:
        pairs = parse_qsl(parts.query, keep_blank_values=True)
        query = urlencode(sorted(pairs, key=lambda kv: kv[0]))

    return urlunsplit((scheme, netloc, path, query, parts.fragment))


def _resolve_url(item: Any, url_getter: str | Callable[[Any], str | None]) -> str | None:
    """Read a URL from an item via accessor function, mapping key or attribute."""
    if callable(url_getter):
        return url_getter(item)
    if isinstance(item, dict):
        return item.get(url_getter)
    return getattr(item, url_getter, None)


class Deduplicator:
    """
    Normalized source URL cache backed by the content store.

    Usage:
        dedup = Deduplicator(ContentRepository(db))
        await dedup.load_cache()

        if not await dedup.exists(draft.source_url):
            await repo.insert(record)
            dedup.add_to_cache(draft.source_url)
    """

    def __init__(self, store: SourceUrlStore):
        """
        Initialize deduplicator.

        Args:
            store: Repository exposing get_source_urls()
        """
        self._store = store
        self._cache: set[str] = set()
        self._loaded = False

    @property
    def size(self) -> int:
        """Number of normalized URLs in the cache."""
        return len(self._cache)

    @property
    def loaded(self) -> bool:
        return self._loaded

    normalize = staticmethod(normalize_url)

    async def load_cache(self) -> None:
        """Load every stored source URL. Subsequent calls are no-ops."""
        if self._loaded:
            return

        logger.info("Loading existing source URLs")
        urls = await self._store.get_source_urls()
        for url in urls:
            normalized = normalize_url(url)
            if normalized:
                self._cache.add(normalized)

        self._loaded = True
        get_metrics().set_dedup_cache_size(len(self._cache))
        logger.info(f"Loaded {len(self._cache)} existing URLs")

    async def exists(self, url: str | None) -> bool:
        """Check whether a URL (in any equivalent form) is already stored."""
        if not url:
            return False

        await self.load_cache()
        return normalize_url(url) in self._cache

    async def exists_batch(self, urls: Iterable[str | None]) -> set[str]:
        """
        Check several URLs at once.

        Returns:
            The input URLs (as given, not normalized) that are already stored
        """
        await self.load_cache()
        return {url for url in urls if url and normalize_url(url) in self._cache}

    async def filter_new(
        self,
        items: Iterable[T],
        url_getter: str | Callable[[T], str | None] = "source_url",
    ) -> list[T]:
        """
        Drop items whose URL is already stored.

        Items without a URL cannot be deduplicated and pass through.

        Args:
            items: Candidate items
            url_getter: Field name (mapping key or attribute) or accessor function

        Returns:
            Items not present in the cache, in input order
        """
        await self.load_cache()

        new_items = []
        for item in items:
            url = _resolve_url(item, url_getter)
            if not url or normalize_url(url) not in self._cache:
                new_items.append(item)
        return new_items

    def add_to_cache(self, url: str | None) -> None:
        """Record a URL after a successful insert."""
        normalized = normalize_url(url)
        if normalized:
            self._cache.add(normalized)
            get_metrics().set_dedup_cache_size(len(self._cache))

    def clear_cache(self) -> None:
        """Forget all cached URLs; the next lookup reloads from the store."""
        self._cache.clear()
        self._loaded = False
