"""Tests for fuzzy matching and the search ranking engine."""

from datetime import datetime, timedelta, timezone

import pytest

from feedrank.models.content import Author
from feedrank.models.enums import SortKey
from feedrank.models.search import SearchFilters, SearchOptions
from feedrank.services.search.engine import ContentSearchService, FuzzyRankingEngine, apply_filters
from feedrank.services.search.fuzzy import FuzzyMatcher, partial_similarity
from feedrank.services.search.scoring import behavior_score, freshness_score, quality_score, relevance_score
from tests.helpers import make_item

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def sample_corpus():
    return [
        make_item(
            "grumpy",
            title="Grumpy cat compilation",
            tags=["cats", "funny"],
            views=500,
            likes=100,
            author=Author(id="bob", username="bob", display_name="Bob", item_count=50),
            author_id="bob",
            created_at=NOW - timedelta(days=2),
        ),
        make_item(
            "skate",
            title="Dog learns to skate",
            tags=["dogs"],
            views=3000,
            type="video",
            author=Author(id="carol", username="carol", display_name="Carol"),
            author_id="carol",
            created_at=NOW - timedelta(days=10),
        ),
        make_item(
            "kitten",
            title="Sleeping kitten",
            content="A tiny cat naps in the sun",
            tags=["cute"],
            views=200,
            created_at=NOW - timedelta(hours=3),
        ),
    ]


class TestPartialSimilarity:
    def test_substring(self):
        assert partial_similarity("abc", "xxabcxx") == 1.0

    def test_empty(self):
        assert partial_similarity("", "text") == 0
        assert partial_similarity("text", "") == 0

    def test_short_text(self):
        assert partial_similarity("hello", "help") == pytest.approx(2 * 3 / 9)

    def test_typo(self):
        assert partial_similarity("grumpi", "grumpy cat") == pytest.approx(2 * 5 / 12)


class TestFuzzyMatcher:
    def test_title_match(self):
        match = FuzzyMatcher().match(sample_corpus()[0], "Grumpy")
        assert match.distance == 0
        assert "title" in match.matched_fields

    def test_typo_tolerated(self):
        match = FuzzyMatcher().match(sample_corpus()[0], "grumpi")
        assert match.matched_fields == ["title"]
        assert match.distance == pytest.approx(1 - 10 / 12)

    def test_unrelated(self):
        assert FuzzyMatcher().match(sample_corpus()[1], "grumpy") is None

    def test_too_short(self):
        assert FuzzyMatcher().match(sample_corpus()[0], "g") is None

    def test_distance_averages_matching_fields(self):
        item = make_item("x", title="cats", tags=["cat"])
        match = FuzzyMatcher().match(item, "cat")
        assert set(match.matched_fields) == {"title", "tags"}
        assert match.distance == 0


class TestScores:
    def test_empty_query_formula(self):
        item = make_item(
            "s1",
            views=500,
            likes=100,
            shares=50,
            comments=10,
            avg_view_time=60,
            author=Author(id="a", item_count=50),
            created_at=NOW - timedelta(days=2),
            updated_at=NOW - timedelta(days=1),
        )
        assert relevance_score(item, None, "") == 0.5
        assert quality_score(item) == pytest.approx(0.17)
        assert freshness_score(item, NOW) == pytest.approx(0.74)
        assert behavior_score(item) == pytest.approx(0.428)

        result = FuzzyRankingEngine().score_items([item], "", NOW)[0]
        assert result.comprehensive_score == pytest.approx(0.5 * 0.4 + 0.17 * 0.3 + 0.74 * 0.2 + 0.428 * 0.1)
        assert result.fuzzy_match_score is None

    def test_relevance_bonuses_are_capped(self):
        item = sample_corpus()[0]
        assert relevance_score(item, 0.0, "grumpy") == 1.0
        assert relevance_score(item, 0.5, "zzz") == 0.5

    def test_freshness_floor(self):
        item = make_item("old", created_at=NOW - timedelta(days=400))
        assert freshness_score(item, NOW) == 0

    def test_behavior_defaults(self):
        assert behavior_score(make_item("quiet")) == pytest.approx(0.3 * 30 / 120)


class TestRankingEngine:
    """Filtering, sorting and paginating fuzzy search results."""

    def test_literal_match_ranks_first(self):
        page = FuzzyRankingEngine().search(sample_corpus(), "cat", now=NOW)
        ids = [r.item.id for r in page.results]
        assert ids[0] == "grumpy"
        assert "kitten" in ids
        assert "skate" not in ids

    def test_empty_query_returns_everything(self):
        page = FuzzyRankingEngine().search(sample_corpus(), "   ", now=NOW)
        assert page.pagination.total == 3
        assert all(r.relevance_score == 0.5 for r in page.results)

    def test_short_query_matches_nothing(self):
        page = FuzzyRankingEngine().search(sample_corpus(), "c", now=NOW)
        assert page.results == []
        assert page.pagination.total == 0
        assert page.stats.total_results == 0

    @pytest.mark.parametrize(
        "sort_by,first",
        [(SortKey.POPULARITY, "skate"), (SortKey.CREATED_AT, "kitten"), (SortKey.FRESHNESS, "kitten")],
    )
    def test_sort_keys(self, sort_by, first):
        page = FuzzyRankingEngine().search(sample_corpus(), "", SearchOptions(sort_by=sort_by), now=NOW)
        assert page.results[0].item.id == first

    def test_sorted_descending(self):
        page = FuzzyRankingEngine().search(sample_corpus(), "", now=NOW)
        scores = [r.comprehensive_score for r in page.results]
        assert scores == sorted(scores, reverse=True)
        assert page.scoring.comprehensive == scores[0]

    def test_pagination(self):
        page = FuzzyRankingEngine().search(sample_corpus(), "", SearchOptions(page=2, limit=1), now=NOW)
        assert len(page.results) == 1
        assert page.pagination.total_pages == 3
        assert page.pagination.has_next
        assert page.pagination.has_prev

    def test_stats(self):
        page = FuzzyRankingEngine().search(sample_corpus(), "", now=NOW)
        assert page.stats.total_results == 3
        assert sum(page.stats.score_distribution.values()) == 3
        assert set(page.stats.average_scores) == {"relevance", "quality", "freshness", "user_behavior", "comprehensive"}


class TestFilters:
    def test_type_and_tags(self):
        corpus = sample_corpus()
        assert [i.id for i in apply_filters(corpus, SearchFilters(type="video"))] == ["skate"]
        assert [i.id for i in apply_filters(corpus, SearchFilters(tags=["cute", "dogs"]))] == ["skate", "kitten"]

    def test_author_by_username_or_id(self):
        corpus = sample_corpus()
        assert [i.id for i in apply_filters(corpus, SearchFilters(author="carol"))] == ["skate"]

    def test_date_range(self):
        filters = SearchFilters(date_from=NOW - timedelta(days=5), date_to=NOW - timedelta(days=1))
        assert [i.id for i in apply_filters(sample_corpus(), filters)] == ["grumpy"]

    def test_no_filters(self):
        assert len(apply_filters(sample_corpus(), None)) == 3


class TestContentSearchService:
    async def test_searches_public_items(self, repos):
        page = await ContentSearchService(repos).search("cat")
        ids = [r.item.id for r in page.results]
        assert "cat-1" in ids
        assert "draft-1" not in ids

    async def test_status_filter_reaches_drafts(self, repos):
        options = SearchOptions(filters=SearchFilters(status="draft"))
        page = await ContentSearchService(repos).search("draft", options)
        assert [r.item.id for r in page.results] == ["draft-1"]
