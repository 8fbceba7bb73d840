"""
Keyword and pattern based tag extraction.

Tags are derived from a fixed vocabulary of pizza terms plus a handful of
regex rules. The base tag always comes first and the result is capped at
`max_tags`, so callers can store the output without further checks.
"""

import re
from collections.abc import Iterable, Mapping
from typing import Any


PIZZA_KEYWORDS = [
    # Pizza styles
    "pepperoni", "margherita", "hawaiian", "supreme", "veggie", "meat lovers",
    "cheese", "deep dish", "thin crust", "stuffed crust", "new york", "chicago",
    "neapolitan", "sicilian", "detroit", "california", "greek", "flatbread",
    # Toppings
    "mushroom", "olive", "onion", "pepper", "sausage", "bacon", "ham",
    "pineapple", "anchovy", "jalapeno", "spinach", "tomato", "basil",
    "garlic", "mozzarella", "parmesan", "ricotta", "feta",
    # Pizza terms
    "slice", "pie", "crust", "dough", "sauce", "oven", "delivery",
    "pizzeria", "pizzaiolo", "pizza party", "pizza night", "pizza time",
    "pizza box", "pizza cutter", "pizza stone", "pizza peel",
    # Reactions
    "delicious", "yummy", "tasty", "perfect", "amazing", "best",
    "worst", "fail", "win", "epic", "legendary", "cursed", "blessed",
    # Content kinds
    "meme", "funny", "viral", "trending", "satisfying", "asmr",
    "recipe", "tutorial", "review", "mukbang", "eating", "cooking",
    # Brands
    "dominos", "pizza hut", "papa johns", "little caesars", "costco",
    "digiorno", "totinos", "red baron", "tombstone",
    # Occasions
    "birthday", "party", "weekend", "friday", "game day", "super bowl",
    "movie night", "date night", "hangover", "midnight", "late night",
]

PATTERNS: list[tuple[str, str]] = [
    (r"\bcrimes?\b", "pizza-crimes"),
    (r"\bfail(s|ed|ure)?\b", "fail"),
    (r"\bwin(s|ner)?\b", "win"),
    (r"\bwtf\b", "wtf"),
    (r"\bomg\b", "omg"),
    (r"\bfood\s*porn\b", "food-porn"),
    (r"\bhomemade\b", "homemade"),
    (r"\bdiy\b", "diy"),
    (r"\brestaurant\b", "restaurant"),
    (r"\bfrozen\b", "frozen-pizza"),
    (r"\bcheesy\b", "cheesy"),
    (r"\bcrispy\b", "crispy"),
    (r"\b(odd|weird|strange|unusual)\b", "unusual"),
    (r"\bitalian?\b", "italian"),
    (r"\bantipasto\b", "italian"),
    (r"\bgif\b", "animated"),
    (r"\b(cat|dog|pet)s?\b", "pets"),
    (r"\bkids?\b", "kids"),
    (r"\bcelebrit(y|ies)\b", "celebrity"),
    (r"\bvegan\b", "vegan"),
    (r"\bvegetarian\b", "vegetarian"),
    (r"\bgluten\s*free\b", "gluten-free"),
    (r"\bketo\b", "keto"),
    (r"\bhealthy\b", "healthy"),
]

_TEXT_FIELDS = ("title", "description", "alt_text", "caption")


def slugify_tag(value: str) -> str:
    """Lower-case a keyword and join its words with hyphens."""
    return re.sub(r"\s+", "-", value.strip().lower())


def _keyword_regex(keyword: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE)


def _label(value: Any) -> str:
    return str(getattr(value, "value", value)).lower()


def _field(content: Any, name: str) -> Any:
    if isinstance(content, Mapping):
        return content.get(name)
    return getattr(content, name, None)


class AutoTagger:
    """
    Extracts a bounded tag list from free text.

    Usage:
        tagger = AutoTagger(max_tags=6)
        tags = tagger.extract_tags("Deep dish fail", platform="reddit")
        # ['pizza', 'deep-dish', 'fail', 'reddit']
    """

    def __init__(
        self,
        max_tags: int = 8,
        base_tag: str = "pizza",
        include_source: bool = True,
        custom_keywords: Iterable[str] | None = None,
    ):
        """
        Initialize tagger.

        Args:
            max_tags: Maximum number of tags returned (base tag included)
            base_tag: Tag that always leads the result
            include_source: Whether to append the platform as a tag
            custom_keywords: Extra keywords appended to the default vocabulary
        """
        self.max_tags = max(1, max_tags)
        self.base_tag = base_tag
        self.include_source = include_source

        self._keywords: list[tuple[str, re.Pattern[str]]] = []
        for keyword in [*PIZZA_KEYWORDS, *(custom_keywords or [])]:
            self.add_keyword(keyword)

        self._patterns: list[tuple[re.Pattern[str], str]] = []
        for pattern, tag in PATTERNS:
            self.add_pattern(pattern, tag)

    @property
    def keywords(self) -> list[str]:
        return [k for k, _ in self._keywords]

    def add_keyword(self, keyword: str) -> None:
        """Add a whole-word keyword; matching text yields its slug as a tag."""
        if keyword and keyword.strip():
            self._keywords.append((keyword, _keyword_regex(keyword.strip())))

    def add_pattern(self, pattern: str | re.Pattern[str], tag: str) -> None:
        """Add a regex rule that emits `tag` when it matches."""
        if isinstance(pattern, str):
            pattern = re.compile(pattern, re.IGNORECASE)
        self._patterns.append((pattern, tag))

    def extract_tags(
        self,
        text: str | None,
        platform: str | None = None,
        content_type: str | None = None,
    ) -> list[str]:
        """
        Extract tags from text.

        Order: base tag, keyword hits in vocabulary order, pattern hits,
        then platform and content type.

        Args:
            text: Free text to scan
            platform: Source platform, added when include_source is set
            content_type: Content type, always added when given

        Returns:
            Unique tags, at most max_tags long
        """
        if not text:
            return [self.base_tag]
        if not isinstance(text, str):
            text = str(text)

        tags: dict[str, None] = {self.base_tag: None}

        for keyword, regex in self._keywords:
            if regex.search(text):
                tags[slugify_tag(keyword)] = None

        for regex, tag in self._patterns:
            if regex.search(text):
                tags[tag] = None

        if self.include_source and platform:
            tags[_label(platform)] = None

        if content_type:
            tags[_label(content_type)] = None

        return list(tags)[: self.max_tags]

    def extract_from_content(self, content: Any) -> list[str]:
        """
        Extract tags from the text fields of a draft, mapping or object.

        Joins title, description, alt_text, caption and keywords.
        """
        parts = [_field(content, name) for name in _TEXT_FIELDS]
        keywords = _field(content, "keywords") or []
        if isinstance(keywords, str) or not isinstance(keywords, Iterable):
            keywords = [keywords]
        text = " ".join(str(p) for p in [*parts, *keywords] if p)

        platform = _field(content, "platform") or _field(content, "source_platform")
        return self.extract_tags(
            text,
            platform=platform,
            content_type=_field(content, "type"),
        )

    def merge_tags(
        self, existing: Iterable[str] | None, generated: Iterable[str] | None
    ) -> list[str]:
        """
        Case-normalized union of two tag lists, capped at max_tags.

        None lists count as empty and entries that are not strings are dropped.
        """
        merged: dict[str, None] = {}
        for tag in [*(existing or []), *(generated or [])]:
            normalized = tag.strip().lower() if isinstance(tag, str) else ""
            if normalized:
                merged[normalized] = None
        return list(merged)[: self.max_tags]
