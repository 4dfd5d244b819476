"""Tests for the hot, latest, updated and personalized candidate providers."""

from datetime import timedelta

import pytest

from feedrank.core.exceptions import RepositoryUnavailableError
from feedrank.models.enums import Algorithm
from feedrank.models.recommendation import ProviderOptions
from feedrank.services.recommendation.providers import (
    HotProvider,
    LatestProvider,
    PersonalizedProvider,
    UpdatedProvider,
    provider_cache_key,
)
from feedrank.services.repositories import Repositories
from feedrank.services.similarity.content_based import ContentBasedRecommender
from feedrank.services.similarity.preferences import TagPreferenceCalculator
from tests.helpers import BrokenContent, ago, make_item


def ids(candidates) -> list[str]:
    return [c.id for c in candidates]


class TestHotProvider:
    async def test_recent_items_by_hotness(self, repos, cache, config):
        result = await HotProvider(repos, cache, config).get(None, ProviderOptions(limit=10))
        # six public items in the last 7 days is enough for a limit of 10
        assert ids(result) == ["dog-1", "cat-1", "cat-2", "dog-2", "cat-3", "cat-4"]
        assert result[0].score == 1200
        assert result[0].details["hot_level"] == "viral"
        assert all(c.recommendation_type == Algorithm.HOT for c in result)

    async def test_window_widens_when_sparse(self, repos, cache, config):
        result = await HotProvider(repos, cache, config).get(None, ProviderOptions(limit=20))
        assert "meme-1" in ids(result)
        assert "draft-1" not in ids(result)

    async def test_tag_filter(self, repos, cache, config):
        result = await HotProvider(repos, cache, config).get(None, ProviderOptions(limit=4, tags=["dogs"]))
        assert ids(result) == ["dog-1", "dog-2"]

    async def test_limit_respected(self, repos, cache, config):
        result = await HotProvider(repos, cache, config).get(None, ProviderOptions(limit=2))
        assert ids(result) == ["dog-1", "cat-1"]

    async def test_served_from_cache(self, memory_repo, repos, cache, config):
        provider = HotProvider(repos, cache, config)
        first = await provider.get(None, ProviderOptions(limit=10))
        memory_repo.add_item(make_item("new-hot", hot_score=99999, created_at=ago(hours=1)))
        second = await provider.get(None, ProviderOptions(limit=10))

        assert ids(first) == ids(second)
        key = provider_cache_key(Algorithm.HOT, None, ProviderOptions(limit=10))
        assert key in cache.store
        assert cache.ttls[key] == config.ttl("hot")

    async def test_repository_outage_propagates(self, memory_repo, cache, config):
        base = memory_repo.as_repositories()
        repos = Repositories(
            users=base.users, content=BrokenContent(), interactions=base.interactions, follows=base.follows
        )
        with pytest.raises(RepositoryUnavailableError):
            await HotProvider(repos, cache, config).get(None, ProviderOptions(limit=10))
        assert cache.store == {}

    async def test_other_failures_yield_nothing(self, memory_repo, cache, config):
        base = memory_repo.as_repositories()
        repos = Repositories(
            users=base.users,
            content=BrokenContent(RuntimeError("bad row")),
            interactions=base.interactions,
            follows=base.follows,
        )
        result = await HotProvider(repos, cache, config).get(None, ProviderOptions(limit=10))
        assert result == []
        assert cache.store == {}


class TestLatestProvider:
    async def test_newest_first(self, repos, cache, config):
        result = await LatestProvider(repos, cache, config).get(None, ProviderOptions(limit=2))
        assert ids(result) == ["dog-2", "dog-1"]
        assert result[0].score > result[1].score
        assert 0.9 < result[0].details["hours_since_created"] < 1.1

    async def test_widens_to_a_week(self, repos, cache, config):
        result = await LatestProvider(repos, cache, config).get(None, ProviderOptions(limit=10))
        assert ids(result) == ["dog-2", "dog-1", "cat-1", "cat-2", "cat-3", "cat-4"]

    def test_recency_score(self):
        item = make_item("a", created_at=ago(seconds=10))
        now = item.created_at + timedelta(seconds=10)
        assert LatestProvider.recency_score(item, now) == 1 / 10000
        assert LatestProvider.recency_score(item, item.created_at) == 1.0


class TestUpdatedProvider:
    async def test_recently_modified(self, repos, cache, config):
        result = await UpdatedProvider(repos, cache, config).get(None, ProviderOptions(limit=4))
        assert ids(result) == ["dog-2", "meme-1"]

        dog, meme = result
        # edited within the hour, created today
        assert dog.score == 300 * 2.0
        # edited two days ago, created three weeks ago
        assert abs(meme.score - 20 * 1.1 * 1.4) < 1e-9
        assert 1.9 < meme.details["days_since_modified"] < 2.1


class TestPersonalizedProvider:
    def make_provider(self, repos, cache, config) -> PersonalizedProvider:
        recommender = ContentBasedRecommender(repos, TagPreferenceCalculator(repos))
        return PersonalizedProvider(Algorithm.CONTENT_BASED, recommender, repos, cache, config)

    async def test_anonymous_gets_nothing(self, repos, cache, config):
        assert await self.make_provider(repos, cache, config).get(None, ProviderOptions(limit=5)) == []
        assert cache.store == {}

    async def test_cached_per_user(self, repos, cache, config):
        result = await self.make_provider(repos, cache, config).get("alice", ProviderOptions(limit=5))
        assert result
        assert cache.keys("content_based:alice:")
        assert not cache.keys("content_based:global:")
