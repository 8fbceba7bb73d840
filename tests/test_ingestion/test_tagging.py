"""Tests for AutoTagger."""

import re

import pytest

from content_ingest.ingestion.schemas import ContentDraft, ContentType
from content_ingest.ingestion.tagging import AutoTagger, slugify_tag


@pytest.fixture
def tagger() -> AutoTagger:
    return AutoTagger()


class TestExtractTags:
    """Tests for extract_tags."""

    def test_base_tag_first(self, tagger):
        tags = tagger.extract_tags("Pepperoni slice", platform="reddit")
        assert tags[0] == "pizza"

    def test_keyword_order_then_patterns_then_source(self, tagger):
        tags = tagger.extract_tags("Deep dish fail", platform="reddit", content_type="meme")
        assert tags == ["pizza", "deep-dish", "fail", "reddit", "meme"]

    def test_multi_word_keywords_are_slugged(self, tagger):
        tags = tagger.extract_tags("Friday pizza night with Little Caesars")
        assert "pizza-night" in tags
        assert "little-caesars" in tags

    def test_whole_word_matching(self, tagger):
        tags = tagger.extract_tags("Hamburger and peppers")
        assert "ham" not in tags
        assert "pepper" not in tags

    def test_patterns(self, tagger):
        tags = tagger.extract_tags("Weird frozen crimes")
        assert "unusual" in tags
        assert "frozen-pizza" in tags
        assert "pizza-crimes" in tags

    def test_case_insensitive(self, tagger):
        assert "margherita" in tagger.extract_tags("MARGHERITA")

    def test_include_source_false(self):
        tagger = AutoTagger(include_source=False)
        tags = tagger.extract_tags("slice", platform="reddit", content_type="gif")
        assert "reddit" not in tags
        assert "gif" in tags

    def test_enum_platform_and_type(self, tagger):
        tags = tagger.extract_tags("slice", content_type=ContentType.GIF)
        assert tags[-1] == "gif"

    def test_custom_base_tag(self):
        tagger = AutoTagger(base_tag="food")
        assert tagger.extract_tags("") == ["food"]

    @pytest.mark.parametrize("text", [None, "", "zzz nothing matches", "!!!"])
    def test_always_includes_base(self, tagger, text):
        tags = tagger.extract_tags(text)
        assert tags[0] == "pizza"
        assert len(tags) <= tagger.max_tags

    def test_empty_text_returns_only_base(self, tagger):
        assert tagger.extract_tags("", platform="reddit") == ["pizza"]

    @pytest.mark.parametrize("max_tags", [1, 3, 8])
    def test_capped_at_max_tags(self, max_tags):
        tagger = AutoTagger(max_tags=max_tags)
        text = " ".join(tagger.keywords)
        tags = tagger.extract_tags(text, platform="reddit", content_type="meme")
        assert len(tags) == max_tags
        assert tags[0] == "pizza"

    def test_no_duplicates(self, tagger):
        tags = tagger.extract_tags("fail fails failed win winner", platform="pizza")
        assert len(tags) == len(set(tags))


class TestCustomRules:
    """Tests for runtime keyword and pattern registration."""

    def test_custom_keywords_constructor(self):
        tagger = AutoTagger(custom_keywords=["calzone"])
        assert "calzone" in tagger.extract_tags("Calzone is not pizza")

    def test_add_keyword(self, tagger):
        tagger.add_keyword("Grandma Pie")
        assert "grandma-pie" in tagger.extract_tags("Grandma pie from Long Island")

    def test_keyword_with_regex_characters(self, tagger):
        tagger.add_keyword("st. louis")
        assert "st.-louis" in tagger.extract_tags("St. Louis style")
        assert "st.-louis" not in tagger.extract_tags("stX louis style")

    def test_add_pattern_string(self, tagger):
        tagger.add_pattern(r"\bbbq\b", "barbecue")
        assert "barbecue" in tagger.extract_tags("BBQ chicken")

    def test_add_pattern_compiled(self, tagger):
        tagger.add_pattern(re.compile(r"burnt"), "burnt")
        assert "burnt" in tagger.extract_tags("totally burnt")


class TestExtractFromContent:
    """Tests for extract_from_content."""

    def test_from_draft(self, tagger):
        draft = ContentDraft(
            url="https://i.redd.it/x.jpg",
            title="Cursed slice",
            description="with pineapple",
            caption="homemade",
            keywords=["detroit"],
            source_platform="reddit",
            type="meme",
        )
        tags = tagger.extract_from_content(draft)
        assert tags[0] == "pizza"
        for tag in ("cursed", "slice", "pineapple", "detroit", "homemade", "reddit", "meme"):
            assert tag in tags

    def test_from_mapping_prefers_platform(self, tagger):
        tags = tagger.extract_from_content(
            {"title": "slice", "platform": "giphy", "source_platform": "reddit"}
        )
        assert "giphy" in tags
        assert "reddit" not in tags

    def test_empty_content(self, tagger):
        assert tagger.extract_from_content({}) == ["pizza"]

    def test_single_string_keywords(self, tagger):
        tags = tagger.extract_from_content({"title": "x", "keywords": "cheese"})
        assert tags == ["pizza", "cheese"]

    def test_non_string_fields(self, tagger):
        tags = tagger.extract_from_content({"title": 1984, "keywords": 7})
        assert tags[0] == "pizza"

    def test_none_content(self, tagger):
        assert tagger.extract_from_content(None) == ["pizza"]


class TestMergeTags:
    """Tests for merge_tags."""

    def test_union_preserves_order(self, tagger):
        assert tagger.merge_tags(["pizza", "Slice"], ["slice", "cheese"]) == [
            "pizza",
            "slice",
            "cheese",
        ]

    def test_capped(self):
        tagger = AutoTagger(max_tags=3)
        assert tagger.merge_tags(["a", "b"], ["c", "d"]) == ["a", "b", "c"]

    def test_drops_blank(self, tagger):
        assert tagger.merge_tags(["", "  "], ["x"]) == ["x"]

    def test_none_lists_are_empty(self, tagger):
        assert tagger.merge_tags(None, ["pizza"]) == ["pizza"]
        assert tagger.merge_tags(["Slice"], None) == ["slice"]
        assert tagger.merge_tags(None, None) == []

    def test_skips_non_string_tags(self, tagger):
        assert tagger.merge_tags([3, None, "Crust"], ["cheese"]) == ["crust", "cheese"]


def test_slugify_tag():
    assert slugify_tag("  Meat   Lovers ") == "meat-lovers"
