"""
Base adapter interface and shared helpers for source adapters.

An adapter knows one platform: it fetches raw items (typed per source) and
turns each into a ContentDraft, or None to reject it. Rate limiting,
deduplication, tagging and persistence belong to the ContentImporter, so
adapters stay small.
"""

import html
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from content_ingest.ingestion.schemas import ContentDraft, ContentType, Platform

RawItem = TypeVar("RawItem")

_GIF_MARKERS = (".gif", "giphy", "tenor")
_VIDEO_MARKERS = ("youtube.com", "youtu.be", ".mp4", ".webm", "tiktok", "vimeo")

# Giphy rendition names by requested resolution
_GIPHY_RENDITIONS = {"high": "original", "medium": "fixed_width", "low": "fixed_width_small"}


class SourceAdapter(ABC, Generic[RawItem]):
    """
    Abstract base class for source adapters.

    Subclasses must implement:
        - platform: Platform enum value
        - fetch(): Return the raw items for one run
        - transform(): Convert a raw item to a ContentDraft (or None)
    """

    def __init__(self, source_identifier: str = "default", display_name: str | None = None):
        """
        Initialize adapter.

        Args:
            source_identifier: Source key within the platform (subreddit, query, ...)
            display_name: Human readable name stored with the import source
        """
        self.source_identifier = source_identifier
        self._display_name = display_name

    @property
    @abstractmethod
    def platform(self) -> Platform:
        """Return the platform this adapter handles."""
        ...

    @property
    def display_name(self) -> str:
        return self._display_name or f"{self.platform.value}/{self.source_identifier}"

    @property
    def name(self) -> str:
        """Human-readable adapter name."""
        return f"{self.platform.value}_adapter"

    @abstractmethod
    async def fetch(self) -> list[RawItem]:
        """
        Fetch raw items from the platform.

        Called by the importer under its rate limiter, so one call should
        make one request (or a small fixed number of them).
        """
        ...

    @abstractmethod
    async def transform(self, item: RawItem) -> ContentDraft | None:
        """
        Convert a raw item to a draft.

        Returns:
            ContentDraft, or None when the item should be skipped
        """
        ...

    async def close(self) -> None:
        """Release resources held by the adapter."""


def detect_content_type(url: str | None) -> str:
    """
    Guess the content type from a media URL.

    GIF hosts and .gif files map to gif, video hosts and video files to
    video, anything else to meme.
    """
    if not url:
        return ContentType.MEME.value

    lower = url.lower()
    if any(marker in lower for marker in _GIF_MARKERS):
        return ContentType.GIF.value
    if any(marker in lower for marker in _VIDEO_MARKERS):
        return ContentType.VIDEO.value
    return ContentType.MEME.value


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(key)
    return getattr(obj, key, None)


def _url_of(obj: Any) -> str | None:
    return _get(obj, "url") if obj is not None else None


def extract_media_url(item: Any, resolution: str = "medium") -> str | None:
    """
    Pull a media URL out of the common API response shapes.

    Handles plain strings, Giphy `images`, Tenor `media_formats` and legacy
    `media`, Reddit `preview`, then generic url fields.

    Args:
        item: Raw API item (mapping or object) or a URL string
        resolution: "high", "medium" or "low" where renditions exist

    Returns:
        Media URL or None
    """
    if isinstance(item, str):
        return item
    if item is None:
        return None

    images = _get(item, "images")
    if images:
        rendition = _GIPHY_RENDITIONS.get(resolution, "fixed_width")
        return _url_of(_get(images, rendition)) or _url_of(_get(images, "original"))

    formats = _get(item, "media_formats")
    if formats:
        for name in ("gif", "mediumgif", "tinygif"):
            url = _url_of(_get(formats, name))
            if url:
                return url
        return None

    media = _get(item, "media")
    if isinstance(media, list) and media:
        first = media[0]
        return _url_of(_get(first, "gif")) or _url_of(_get(first, "mediumgif"))

    preview = _get(item, "preview")
    if preview:
        preview_images = _get(preview, "images") or []
        if preview_images:
            source_url = _url_of(_get(preview_images[0], "source"))
            return source_url.replace("&amp;", "&") if source_url else None

    for key in ("url", "media_url", "image_url", "src"):
        value = _get(item, key)
        if value:
            return value
    return None


def clean_text(text: str | None, max_length: int | None = None) -> str | None:
    """
    Unescape HTML entities, strip tags and collapse whitespace.

    Args:
        text: Raw text from an API
        max_length: Optional truncation length

    Returns:
        Cleaned text, or None if nothing remains
    """
    if not text:
        return None

    cleaned = html.unescape(text)
    cleaned = re.sub(r"<[^>]+>", " ", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()

    if max_length is not None:
        cleaned = cleaned[:max_length].rstrip()

    return cleaned or None
