"""
Mock adapter for testing and development.

Generates synthetic pizza content that mimics what real sources return.
Useful for:
- Exercising the importer without API credentials
- Dry runs of the whole pipeline
- Development and debugging

Output is deterministic for a given seed, so repeated runs produce the same
source URLs and exercise deduplication.
"""

import random
from dataclasses import dataclass, field

from content_ingest.ingestion.base_adapter import SourceAdapter, detect_content_type
from content_ingest.ingestion.schemas import ContentDraft, Platform

TITLE_TEMPLATES = [
    "{style} pizza fresh out of the oven",
    "Homemade {style} with extra {topping}",
    "Is {topping} on pizza a crime?",
    "Late night {style} slice hits different",
    "My first attempt at {style} dough",
    "Epic {topping} pizza fail",
]

STYLES = ["neapolitan", "deep dish", "new york", "detroit", "sicilian", "margherita"]
TOPPINGS = ["pineapple", "pepperoni", "mushroom", "basil", "anchovy", "jalapeno"]
EXTENSIONS = [".jpg", ".png", ".gif", ".mp4"]


@dataclass
class MockItem:
    """A synthetic raw item."""

    id: str
    title: str
    media_url: str
    permalink: str
    score: int = 0
    nsfw: bool = False
    keywords: list[str] = field(default_factory=list)


class MockAdapter(SourceAdapter[MockItem]):
    """
    Mock adapter that generates synthetic pizza content.

    A share of items is marked NSFW so that transform rejections show up in
    the skip counts.
    """

    def __init__(
        self,
        source_identifier: str = "default",
        items_per_fetch: int = 10,
        seed: int = 42,
        nsfw_ratio: float = 0.1,
    ):
        """
        Initialize mock adapter.

        Args:
            source_identifier: Source key recorded with the run
            items_per_fetch: Number of items generated per fetch
            seed: Seed for the item generator
            nsfw_ratio: Fraction of items the transform rejects
        """
        super().__init__(source_identifier=source_identifier)
        self._items_per_fetch = items_per_fetch
        self._seed = seed
        self._nsfw_ratio = nsfw_ratio

    @property
    def platform(self) -> Platform:
        return Platform.MOCK

    async def fetch(self) -> list[MockItem]:
        """Generate mock raw items."""
        rng = random.Random(f"{self._seed}:{self.source_identifier}")
        items = []

        for n in range(1, self._items_per_fetch + 1):
            style = rng.choice(STYLES)
            topping = rng.choice(TOPPINGS)
            title = rng.choice(TITLE_TEMPLATES).format(style=style, topping=topping)
            slug = f"{self.source_identifier}-{n}"

            items.append(
                MockItem(
                    id=f"mock_{slug}",
                    title=title,
                    media_url=f"https://media.example.com/pizza/{slug}{rng.choice(EXTENSIONS)}",
                    permalink=f"https://example.com/posts/{slug}",
                    score=rng.randint(0, 5000),
                    nsfw=rng.random() < self._nsfw_ratio,
                    keywords=[style, topping],
                )
            )

        return items

    async def transform(self, item: MockItem) -> ContentDraft | None:
        """Transform a mock item to a draft."""
        if item.nsfw:
            return None

        return ContentDraft(
            type=detect_content_type(item.media_url),
            title=item.title,
            url=item.media_url,
            source_url=item.permalink,
            source_platform=Platform.MOCK.value,
            is_viral=item.score > 1000,
            keywords=item.keywords,
        )
