"""Tests for the recommendation engine: blending, caching, pagination and invalidation."""

import asyncio

import pytest

from feedrank.core.constants import COLD_START_WEIGHTS, DEFAULT_WEIGHT_ROW
from feedrank.core.exceptions import InvalidWeightsError, RepositoryUnavailableError
from feedrank.models.content import Follow
from feedrank.models.enums import Algorithm
from feedrank.models.recommendation import FeedOptions, InfiniteScrollOptions, UserBehavior
from feedrank.services.recommendation.engine import RecommendationEngine
from feedrank.services.recommendation.providers import UpdatedProvider
from feedrank.services.recommendation.weights import EngineConfig
from feedrank.services.repositories import Repositories
from tests.helpers import BrokenContent, FakeCache, ago, make_item

ANONYMOUS_ORDER = ["dog-1", "cat-1", "cat-2", "dog-2", "cat-3", "cat-4", "meme-1"]


class ExplodingProvider:
    async def get(self, user_id, options):
        raise RuntimeError("boom")


class SlowProvider:
    async def get(self, user_id, options):
        await asyncio.sleep(1)
        return []


def ids(result) -> list[str]:
    return [c.id for c in result.recommendations]


class TestMixedFeed:
    """Blended feed for anonymous and known users."""

    async def test_anonymous_is_cold_start(self, engine):
        result = await engine.get_mixed_recommendations(None)

        assert ids(result) == ANONYMOUS_ORDER
        assert result.weights == COLD_START_WEIGHTS
        assert result.query_info.is_cold_start
        assert result.query_info.requested_limit == 30
        assert result.query_info.adjusted_limit == 60
        assert result.query_info.cold_start_multiplier == 2.0
        assert not result.user_authenticated
        assert result.cold_start_status is None

    async def test_anonymous_gets_no_social_data(self, engine):
        result = await engine.get_mixed_recommendations(None)
        for candidate in result.recommendations:
            assert candidate.social_score is None
            assert candidate.recommendation_reason is None

    async def test_total_score_blends_providers(self, engine):
        result = await engine.get_mixed_recommendations(None)
        dog_2 = next(c for c in result.recommendations if c.id == "dog-2")
        assert set(dog_2.algorithm_scores) == {Algorithm.HOT, Algorithm.LATEST, Algorithm.UPDATED}
        expected = sum(score * COLD_START_WEIGHTS[a] for a, score in dog_2.algorithm_scores.items())
        assert dog_2.total_score == pytest.approx(expected)

    async def test_known_user(self, engine):
        result = await engine.get_mixed_recommendations("alice")

        assert result.user_authenticated
        assert not result.query_info.is_cold_start
        assert result.query_info.adjusted_limit == 30
        assert result.weights == DEFAULT_WEIGHT_ROW
        assert result.cold_start_status.activity_profile.total_interactions == 6
        scores = [c.total_score for c in result.recommendations]
        assert scores == sorted(scores, reverse=True)

    async def test_social_reasons_attached(self, engine):
        result = await engine.get_mixed_recommendations("alice")
        by_id = {c.id: c for c in result.recommendations}

        assert by_id["cat-1"].social_score > 0
        assert by_id["cat-1"].recommendation_reason == "Your friend Bob published this"
        # alice published meme-1 herself, nobody else touched it
        assert by_id["meme-1"].recommendation_reason == "Recently updated"

    async def test_toggles(self, engine):
        options = FeedOptions(
            include_diversity=False,
            include_cold_start_analysis=False,
            include_social_scores=False,
            include_recommendation_reasons=False,
        )
        result = await engine.get_mixed_recommendations("alice", options)

        assert result.diversity is None
        assert result.cold_start_status is None
        assert result.weights == DEFAULT_WEIGHT_ROW
        assert all(c.social_score is None and c.recommendation_reason is None for c in result.recommendations)

    async def test_new_user_is_cold(self, engine):
        result = await engine.get_mixed_recommendations("newbie", FeedOptions(limit=5))
        assert result.query_info.is_cold_start
        assert result.query_info.adjusted_limit == 10
        assert result.weights[Algorithm.CONTENT_BASED] == 0

    async def test_exclusion(self, engine):
        result = await engine.get_mixed_recommendations(None, FeedOptions(exclude_ids=["dog-1", "cat-1"]))
        assert ids(result) == ANONYMOUS_ORDER[2:]
        assert result.pagination.total == 5
        assert result.query_info.excluded_count == 2

    async def test_pages_do_not_overlap(self, engine):
        first = await engine.get_mixed_recommendations(None, FeedOptions(limit=2, page=1))
        second = await engine.get_mixed_recommendations(None, FeedOptions(limit=2, page=2))

        assert ids(first) == ["dog-1", "cat-1"]
        assert ids(second) == ["cat-2", "dog-2"]
        assert first.pagination.has_more
        assert first.pagination.next_page == 2

    async def test_tags(self, engine):
        result = await engine.get_mixed_recommendations(None, FeedOptions(tags=["dogs", "dogs"]))
        assert ids(result) == ["dog-1", "dog-2"]
        assert result.applied_tags == ["dogs"]

    async def test_custom_weights(self, engine):
        weights = {"hot": 0, "latest": 0, "updated": 1}
        result = await engine.get_mixed_recommendations(None, FeedOptions(custom_weights=weights))
        assert ids(result) == ["dog-2", "meme-1"]
        assert result.weights[Algorithm.UPDATED] == 1

    async def test_invalid_weights(self, engine):
        with pytest.raises(InvalidWeightsError):
            await engine.get_mixed_recommendations(None, FeedOptions(custom_weights={"bogus": 1}))
        with pytest.raises(InvalidWeightsError):
            await engine.get_mixed_recommendations(None, FeedOptions(custom_weights={"hot": -1}))

    async def test_diversity(self, engine):
        result = await engine.get_mixed_recommendations(None)
        assert 0 < result.diversity.tag_diversity <= 1
        assert result.diversity.unique_authors == 3


class TestFeedCache:
    async def test_repeated_calls_are_stable(self, engine, memory_repo, cache):
        first = await engine.get_mixed_recommendations(None)
        memory_repo.add_item(make_item("late-arrival", hot_score=5000, created_at=ago(minutes=5)))
        second = await engine.get_mixed_recommendations(None)

        assert ids(first) == ids(second)
        assert cache.keys("mixed:anonymous:")

    async def test_cache_bypass(self, engine, cache):
        result = await engine.get_mixed_recommendations(None, FeedOptions(use_cache=False))
        assert ids(result) == ANONYMOUS_ORDER
        assert not cache.keys("mixed:")

    async def test_invalidated_feed_is_rebuilt(self, engine, memory_repo):
        await engine.get_mixed_recommendations(None)
        memory_repo.add_item(make_item("late-arrival", hot_score=5000, created_at=ago(minutes=5)))
        await engine.invalidate_feed(None)
        result = await engine.get_mixed_recommendations(None)
        assert ids(result)[0] == "late-arrival"

    async def test_analysis_mode_is_part_of_the_key(self, engine):
        # alice's activity row equals the default row, so only the mode tells the feeds apart
        plain = await engine.get_mixed_recommendations("alice", FeedOptions(include_cold_start_analysis=False))
        analyzed = await engine.get_mixed_recommendations("alice")

        assert plain.weights == analyzed.weights
        assert plain.cold_start_status is None
        assert analyzed.cold_start_status is not None
        assert not analyzed.cold_start_status.is_cold_start

    async def test_broken_cache_still_serves(self, repos, config):
        engine = RecommendationEngine(repos, FakeCache(fail=True), config)
        anonymous = await engine.get_mixed_recommendations(None)
        alice = await engine.get_mixed_recommendations("alice")
        assert ids(anonymous) == ANONYMOUS_ORDER
        assert alice.recommendations


class TestProviderFailures:
    async def test_failed_and_slow_providers_are_skipped(self, repos, cache):
        config = EngineConfig(provider_timeout_seconds=0.05)
        providers = {
            Algorithm.HOT: ExplodingProvider(),
            Algorithm.LATEST: SlowProvider(),
            Algorithm.UPDATED: UpdatedProvider(repos, cache, config),
        }
        engine = RecommendationEngine(repos, cache, config, providers=providers)
        result = await engine.get_mixed_recommendations(None)
        assert ids(result) == ["dog-2", "meme-1"]

    @pytest.mark.parametrize("user_id", [None, "alice"])
    async def test_content_outage_is_raised(self, memory_repo, cache, config, user_id):
        base = memory_repo.as_repositories()
        repos = Repositories(
            users=base.users, content=BrokenContent(), interactions=base.interactions, follows=base.follows
        )
        engine = RecommendationEngine(repos, cache, config)

        with pytest.raises(RepositoryUnavailableError):
            await engine.get_mixed_recommendations(user_id)
        assert not cache.keys("mixed:")

    async def test_all_providers_failing(self, repos, cache, config):
        providers = {a: ExplodingProvider() for a in Algorithm}
        engine = RecommendationEngine(repos, cache, config, providers=providers)
        result = await engine.get_mixed_recommendations("alice")
        assert result.recommendations == []
        assert result.pagination.total == 0
        assert not result.pagination.has_more


class TestInfiniteScroll:
    async def test_first_page(self, engine):
        result = await engine.get_infinite_scroll_recommendations(None, InfiniteScrollOptions(limit=3))

        assert ids(result) == ANONYMOUS_ORDER[:3]
        assert result.pagination.next_page == 2
        assert result.query_info.total_needed == 3 + 50
        assert result.query_info.adjusted_limit == 106

    async def test_next_page_with_exclusions(self, engine):
        options = InfiniteScrollOptions(page=2, limit=2, exclude_ids=["dog-1"])
        result = await engine.get_infinite_scroll_recommendations(None, options)

        assert ids(result) == ["dog-2", "cat-3"]
        assert result.query_info.total_needed == 2 * 2 + 1 + 50

    async def test_last_page(self, engine):
        result = await engine.get_infinite_scroll_recommendations(None, InfiniteScrollOptions(page=3, limit=3))
        assert ids(result) == ["meme-1"]
        assert not result.pagination.has_more
        assert result.pagination.next_page is None

    async def test_known_user_not_multiplied(self, engine):
        result = await engine.get_infinite_scroll_recommendations("alice", InfiniteScrollOptions(limit=5))
        assert result.query_info.adjusted_limit == 55
        assert result.query_info.cold_start_multiplier == 1.0


class TestStatsAndStrategy:
    async def test_global_stats(self, engine, cache):
        stats = await engine.get_algorithm_stats()
        assert stats.total_items == 7
        assert stats.hot_items == 5
        assert stats.trending_items == 2
        assert stats.viral_items == 1
        assert stats.user_activity is None
        assert "stats:global" in cache.store

    async def test_user_stats(self, engine):
        stats = await engine.get_algorithm_stats("alice")
        assert stats.cold_start is False
        assert stats.user_activity.total_interactions == 6
        assert "cats" in stats.user_preferences

    async def test_strategy_for_engaged_user(self, engine, cache):
        strategy = await engine.adjust_strategy("alice", UserBehavior(click_rate=0.5))
        assert strategy.focus == "personalization"
        assert not strategy.cold_start_handling
        assert cache.keys("strategy:alice:")

    async def test_strategy_for_new_user(self, engine):
        strategy = await engine.adjust_strategy("newbie", UserBehavior(click_rate=0.5))
        assert strategy.focus == "discovery"
        assert strategy.cold_start_handling
        assert strategy.weights[Algorithm.CONTENT_BASED] == 0


class TestInvalidation:
    async def test_invalidate_user(self, engine, cache):
        await engine.get_mixed_recommendations("alice")
        await engine.get_algorithm_stats("alice")
        await engine.adjust_strategy("alice", UserBehavior())
        await engine.get_algorithm_stats("bob")
        assert cache.keys("social_score:alice:")

        deleted = await engine.invalidate_user("alice")

        assert deleted > 0
        assert not [k for k in cache.store if ":alice" in k]
        assert "stats:bob" in cache.store
        # shared provider caches survive
        assert cache.keys("hot:global:")

    async def test_invalidate_user_sees_new_follows(self, engine, memory_repo):
        before = await engine.get_mixed_recommendations("newbie")
        assert next(c for c in before.recommendations if c.id == "dog-1").social_score == 0

        memory_repo.add_follow(Follow(follower_id="newbie", following_id="carol"))
        await engine.invalidate_user("newbie")

        after = await engine.get_mixed_recommendations("newbie")
        dog_1 = next(c for c in after.recommendations if c.id == "dog-1")
        assert dog_1.social_score > 0
        assert dog_1.recommendation_reason == "Your friend Carol published this"

    async def test_invalidate_feed(self, engine, cache):
        await engine.get_mixed_recommendations(None)
        await engine.get_mixed_recommendations("alice")

        await engine.invalidate_feed(None)

        assert not cache.keys("mixed:anonymous:")
        assert not cache.keys("hot:")
        assert not cache.keys("latest:")
        assert not cache.keys("updated:")
        assert cache.keys("mixed:alice:")

    async def test_invalidation_with_broken_cache(self, repos, config):
        engine = RecommendationEngine(repos, FakeCache(fail=True), config)
        assert await engine.invalidate_user("alice") == 0
