"""
Canonical content schemas for the ingestion pipeline.

Adapters produce ContentDraft instances; the importer applies defaults and
persists ContentRecord instances. Field names mirror the columns of the
`content` table so records can be written without translation.
"""

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Platform(str, Enum):
    """Known content platforms."""

    REDDIT = "reddit"
    GIPHY = "giphy"
    TENOR = "tenor"
    IMGUR = "imgur"
    YOUTUBE = "youtube"
    VIMEO = "vimeo"
    TIKTOK = "tiktok"
    PEXELS = "pexels"
    UNSPLASH = "unsplash"
    PIXABAY = "pixabay"
    FLICKR = "flickr"
    TUMBLR = "tumblr"
    MOCK = "mock"


class ContentType(str, Enum):
    """Content categories shown on the site."""

    MEME = "meme"
    GIF = "gif"
    VIDEO = "video"
    PHOTO = "photo"
    ART = "art"
    MUSIC = "music"


class ContentStatus(str, Enum):
    """Moderation state of a stored content row."""

    APPROVED = "approved"
    PENDING = "pending"
    FLAGGED_BROKEN = "flagged_broken"


def platform_value(platform: Platform | str) -> str:
    """Return the plain string form of a platform."""
    return platform.value if isinstance(platform, Platform) else platform


class ContentDraft(BaseModel):
    """
    Candidate record produced by an adapter's transform function.

    Only `url` is required. The auxiliary text fields (alt_text, caption,
    keywords) feed the auto-tagger and are never persisted.
    """

    type: str | None = None
    title: str | None = None
    url: str
    thumbnail_url: str | None = None
    source_url: str | None = None
    source_platform: str | None = None
    description: str | None = None
    tags: list[str] = Field(default_factory=list)
    is_viral: bool = False

    alt_text: str | None = None
    caption: str | None = None
    keywords: list[str] = Field(default_factory=list)

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        """Lower-case and de-duplicate tags, dropping blanks."""
        normalized: list[str] = []
        for tag in v:
            t = tag.strip().lower()
            if t and t not in normalized:
                normalized.append(t)
        return normalized


class ContentRecord(BaseModel):
    """
    Persisted canonical form of a draft.

    Build instances with `from_draft()` so that field defaults are applied
    consistently.
    """

    type: str
    title: str
    url: str
    thumbnail_url: str
    source_url: str | None = None
    source_platform: str
    tags: list[str]
    status: ContentStatus = ContentStatus.APPROVED
    description: str | None = None
    is_viral: bool = False

    model_config = {"use_enum_values": True}

    @classmethod
    def from_draft(
        cls,
        draft: ContentDraft,
        platform: Platform | str,
        default_tags: list[str] | None = None,
    ) -> "ContentRecord":
        """
        Apply field defaults to a draft.

        Args:
            draft: Transformed candidate
            platform: Importer platform, used when the draft names none
            default_tags: Tags used when the draft carries none

        Returns:
            ContentRecord ready for insertion
        """
        return cls(
            type=draft.type or ContentType.MEME.value,
            title=draft.title or "Untitled",
            url=draft.url,
            thumbnail_url=draft.thumbnail_url or draft.url,
            source_url=draft.source_url,
            source_platform=draft.source_platform or platform_value(platform),
            tags=draft.tags or list(default_tags or ["pizza"]),
            status=ContentStatus.APPROVED,
            description=draft.description or None,
            is_viral=draft.is_viral,
        )


@dataclass
class ItemError:
    """A per-item failure recorded during an import run."""

    item: str
    error: str


@dataclass
class ImportStats:
    """Counters for a single import run."""

    found: int = 0
    imported: int = 0
    skipped: int = 0
    errors: list[ItemError] = field(default_factory=list)

    def summary(self) -> str:
        """Human-readable one-line summary."""
        return (
            f"found={self.found} imported={self.imported} "
            f"skipped={self.skipped} errors={len(self.errors)}"
        )
