"""
Reddit adapter for pizza content.

Reads one subreddit listing per run, either through the public JSON
endpoints (no credentials) or through the OAuth API when a TokenManager is
supplied. Handles:
- Filtering NSFW, self, removed, gallery, crosspost and v.redd.it posts
- Resolving direct media URLs (i.redd.it, imgur, giphy, preview images)
- Dropping posts that are not about pizza
- Optional liveness probe of the media URL before a post is accepted
"""

import logging
import re
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from content_ingest.config.settings import get_settings
from content_ingest.ingestion.base_adapter import SourceAdapter, clean_text
from content_ingest.ingestion.http_client import TokenManager, client_credentials_fetcher
from content_ingest.ingestion.schemas import ContentDraft, ContentType, Platform

logger = logging.getLogger(__name__)

DEFAULT_SUBREDDITS = ["pizza", "pizzacrimes", "FoodPorn", "CasualUK"]
SORT_OPTIONS = ("hot", "new", "top", "rising")
TIME_OPTIONS = ("hour", "day", "week", "month", "year", "all")

REDDIT_PUBLIC_BASE = "https://www.reddit.com"
REDDIT_API_BASE = "https://oauth.reddit.com"
REDDIT_TOKEN_URL = "https://www.reddit.com/api/v1/access_token"

PIZZA_TERMS = ("pizza", "pizzeria", "slice", "pepperoni", "margherita", "cheese", "dough", "pie")
IMAGE_HOSTS = ("i.redd.it", "i.imgur.com", "media.giphy.com")
PLACEHOLDER_THUMBNAILS = {"self", "default", "nsfw", "spoiler", "image", ""}
VIRAL_SCORE = 1000

_DIRECT_IMAGE_RE = re.compile(r"\.(jpg|jpeg|png|gif|webp)(\?.*)?$", re.IGNORECASE)
_GIPHY_PAGE_RE = re.compile(r"giphy\.com/gifs/(?:[^-/]+-)*([a-zA-Z0-9]+)")
_GIPHY_MEDIA_RE = re.compile(r"media\.giphy\.com/media/([^/]+)")


class MediaChecker(Protocol):
    """Anything with an async check(url) returning an object with `ok` and `reason`."""

    async def check(self, url: str | None) -> Any: ...


class RedditPost(BaseModel):
    """The fields of a Reddit listing child (`data`) used by the adapter."""

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = ""
    subreddit: str = ""
    url: str | None = None
    permalink: str = ""
    thumbnail: str | None = None
    selftext: str | None = None
    score: int = 0
    over_18: bool = False
    is_self: bool = False
    is_gallery: bool = False
    removed: bool = False
    removed_by_category: str | None = None
    crosspost_parent_list: list[dict[str, Any]] = Field(default_factory=list)
    preview: dict[str, Any] | None = None

    @property
    def preview_url(self) -> str | None:
        images = (self.preview or {}).get("images") or []
        if not images:
            return None
        source_url = (images[0].get("source") or {}).get("url")
        return _unescape(source_url) if source_url else None

    @property
    def source_url(self) -> str:
        return f"https://reddit.com{self.permalink}"


def _unescape(url: str) -> str:
    return url.replace("&amp;", "&")


def has_direct_media(post: RedditPost) -> bool:
    """Check whether a post links straight to an image or a known image host."""
    if post.is_self or post.removed or post.removed_by_category:
        return False
    if not post.url:
        return False

    url = post.url.lower()
    if "v.redd.it" in url:
        return False
    if "/gallery/" in url or post.is_gallery:
        return False
    if post.crosspost_parent_list:
        return False

    return bool(_DIRECT_IMAGE_RE.search(url)) or any(host in url for host in IMAGE_HOSTS)


def resolve_media(post: RedditPost) -> tuple[str | None, str]:
    """
    Work out the media URL and content type for a post.

    Returns:
        (media_url or None, content type)
    """
    media_url: str | None = None
    content_type = ContentType.MEME.value

    if post.url:
        url = _unescape(post.url)
        lower = url.lower()

        if _DIRECT_IMAGE_RE.search(url) or "i.redd.it" in lower or "i.imgur.com" in lower:
            media_url = url
            if ".gif" in lower:
                content_type = ContentType.GIF.value
        elif "imgur.com" in lower and "/a/" not in lower and "/gallery/" not in lower:
            media_url = url.replace("imgur.com", "i.imgur.com", 1)
            if not re.search(r"\.(jpg|jpeg|png|gif)$", media_url, re.IGNORECASE):
                media_url += ".jpg"
        elif "giphy.com" in lower:
            match = _GIPHY_PAGE_RE.search(url) or _GIPHY_MEDIA_RE.search(url)
            if match:
                media_url = f"https://media.giphy.com/media/{match.group(1)}/giphy.gif"
                content_type = ContentType.GIF.value

    if not media_url:
        media_url = post.preview_url

    return media_url, content_type


def is_pizza_related(post: RedditPost, subreddit: str) -> bool:
    """Pizza term in the title or subreddit name."""
    if "pizza" in subreddit.lower():
        return True
    text = f"{post.title} {subreddit}".lower()
    return any(term in text for term in PIZZA_TERMS)


class RedditAdapter(SourceAdapter[RedditPost]):
    """
    Adapter for a single subreddit listing.

    Rate Limits:
        - Public JSON endpoints tolerate about 10 requests per minute
        - One listing request per fetch()

    Example:
        async with httpx.AsyncClient() as client:
            adapter = RedditAdapter("pizza", client=client, sort="top", time="week")
            stats = await importer.run_adapter(adapter)
    """

    def __init__(
        self,
        subreddit: str = "pizza",
        client: httpx.AsyncClient | None = None,
        token_manager: TokenManager | None = None,
        sort: str = "hot",
        time: str = "week",
        limit: int = 25,
        user_agent: str | None = None,
        media_checker: MediaChecker | None = None,
    ):
        """
        Initialize Reddit adapter.

        Args:
            subreddit: Subreddit name without the r/ prefix
            client: Shared HTTP client (one is created when omitted)
            token_manager: OAuth tokens; public JSON endpoints are used without it
            sort: Listing sort (hot, new, top, rising)
            time: Time window for top listings
            limit: Posts per request (Reddit caps this at 100)
            user_agent: User agent string
            media_checker: Optional liveness checker run on every media URL
        """
        super().__init__(source_identifier=subreddit, display_name=f"r/{subreddit}")

        if sort not in SORT_OPTIONS:
            raise ValueError(f"Unsupported sort {sort!r}, expected one of {SORT_OPTIONS}")
        if time not in TIME_OPTIONS:
            raise ValueError(f"Unsupported time {time!r}, expected one of {TIME_OPTIONS}")

        self.subreddit = subreddit
        self.sort = sort
        self.time = time
        self.limit = max(1, min(limit, 100))
        self._user_agent = user_agent or get_settings().reddit_user_agent
        self._token_manager = token_manager
        self._media_checker = media_checker

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=30.0, follow_redirects=True)

    @classmethod
    def from_settings(
        cls,
        subreddit: str,
        client: httpx.AsyncClient | None = None,
        **kwargs: Any,
    ) -> "RedditAdapter":
        """Build an adapter, using OAuth when Reddit credentials are configured."""
        settings = get_settings()
        owns_client = client is None
        client = client or httpx.AsyncClient(timeout=30.0, follow_redirects=True)

        token_manager = None
        if settings.reddit_configured:
            token_manager = TokenManager(
                client_credentials_fetcher(
                    client,
                    REDDIT_TOKEN_URL,
                    settings.reddit_client_id,
                    settings.reddit_client_secret,
                    user_agent=settings.reddit_user_agent,
                )
            )
        else:
            logger.info("Reddit credentials not configured, using public JSON endpoints")

        adapter = cls(subreddit, client=client, token_manager=token_manager, **kwargs)
        adapter._owns_client = owns_client
        return adapter

    @property
    def platform(self) -> Platform:
        return Platform.REDDIT

    async def _request_listing(self) -> httpx.Response:
        params = {"limit": self.limit, "t": self.time, "raw_json": 1}
        headers = {"User-Agent": self._user_agent}

        if self._token_manager is None:
            url = f"{REDDIT_PUBLIC_BASE}/r/{self.subreddit}/{self.sort}.json"
            return await self._client.get(url, params=params, headers=headers)

        url = f"{REDDIT_API_BASE}/r/{self.subreddit}/{self.sort}"
        token = await self._token_manager.get_token()
        response = await self._client.get(
            url, params=params, headers={**headers, "Authorization": f"Bearer {token}"}
        )
        if response.status_code == 401:
            logger.info("Reddit token rejected, refreshing")
            self._token_manager.invalidate()
            token = await self._token_manager.get_token()
            response = await self._client.get(
                url, params=params, headers={**headers, "Authorization": f"Bearer {token}"}
            )
        return response

    async def fetch(self) -> list[RedditPost]:
        """
        Fetch one listing page.

        Raises:
            httpx.HTTPStatusError: On a non-success response (429 included)
        """
        logger.info(f"Fetching r/{self.subreddit} ({self.sort}, {self.time}, limit={self.limit})")
        response = await self._request_listing()
        response.raise_for_status()

        children = (response.json().get("data") or {}).get("children") or []
        posts: list[RedditPost] = []
        for child in children:
            data = child.get("data") or {}
            try:
                posts.append(RedditPost.model_validate({"subreddit": self.subreddit, **data}))
            except ValidationError as e:
                logger.warning(f"Unparseable post {data.get('id', '?')} in r/{self.subreddit}: {e}")

        logger.debug(f"Fetched {len(posts)} posts from r/{self.subreddit}")
        return posts

    async def transform(self, post: RedditPost) -> ContentDraft | None:
        """Convert a post to a draft, or None when it should be skipped."""
        if post.over_18 or not has_direct_media(post):
            return None

        media_url, content_type = resolve_media(post)
        if not media_url:
            return None

        if not is_pizza_related(post, self.subreddit):
            return None

        if self._media_checker is not None:
            result = await self._media_checker.check(media_url)
            if not result.ok:
                logger.info(f"Skipping {post.id}: media {result.reason or 'unavailable'}")
                return None

        thumbnail_url = None
        if post.thumbnail and post.thumbnail not in PLACEHOLDER_THUMBNAILS:
            thumbnail_url = _unescape(post.thumbnail)

        return ContentDraft(
            type=content_type,
            title=post.title[:200],
            url=media_url,
            thumbnail_url=thumbnail_url or media_url,
            source_url=post.source_url,
            source_platform=Platform.REDDIT.value,
            description=clean_text(post.selftext, max_length=500),
            is_viral=post.score > VIRAL_SCORE,
            keywords=[self.subreddit],
        )

    async def close(self) -> None:
        """Close the HTTP client if this adapter created it."""
        if self._owns_client:
            await self._client.aclose()
