import json
import math
from datetime import datetime, timedelta, timezone

from loguru import logger
from pydantic import TypeAdapter

from feedrank.core.cache import CacheBackend, with_cache
from feedrank.core.constants import PROVIDER_KEY
from feedrank.core.exceptions import RepositoryUnavailableError
from feedrank.core.security import redact_id
from feedrank.models.content import ContentItem
from feedrank.models.enums import Algorithm
from feedrank.models.recommendation import Candidate, ProviderOptions
from feedrank.services.recommendation.weights import EngineConfig
from feedrank.services.repositories import Repositories
from feedrank.services.similarity.collaborative import CollaborativeRecommender
from feedrank.services.similarity.content_based import ContentBasedRecommender
from feedrank.services.similarity.hot_score import hot_level, updated_content_score
from feedrank.services.similarity.interactions import days_since

MIN_QUERY_LIMIT = 50
PERSONALIZED_MIN_SIMILARITY = 0.1

_CANDIDATES = TypeAdapter(list[Candidate])


def provider_cache_key(algorithm: Algorithm, user_id: str | None, options: ProviderOptions) -> str:
    return PROVIDER_KEY.format(
        algorithm=algorithm.value,
        scope=user_id or "global",
        limit=options.limit,
        window=options.window if options.window is not None else "default",
        tags=json.dumps(sorted(options.tags)),
    )


def merge_unique(primary: list[ContentItem], extra: list[ContentItem], score_of) -> list[ContentItem]:
    """Union by id, keeping the higher scoring copy of a duplicate."""
    merged: dict[str, ContentItem] = {it.id: it for it in primary}
    for it in extra:
        current = merged.get(it.id)
        if current is None or score_of(it) > score_of(current):
            merged[it.id] = it
    return list(merged.values())


class CandidateProvider:
    """
    Base class for a cacheable candidate source.

    Subclasses implement `_fetch`. A repository outage propagates to the
    caller; any other error raised while fetching is logged and the provider
    contributes nothing.
    """

    algorithm: Algorithm

    def __init__(self, repos: Repositories, cache: CacheBackend, config: EngineConfig):
        self.repos = repos
        self.cache = cache
        self.config = config

    async def get(self, user_id: str | None, options: ProviderOptions) -> list[Candidate]:
        if self.algorithm.is_personalized and not user_id:
            return []
        try:
            return await with_cache(
                self.cache,
                provider_cache_key(self.algorithm, user_id if self.algorithm.is_personalized else None, options),
                self.config.ttl(self.algorithm.value),
                lambda: self._fetch(user_id, options),
                _CANDIDATES,
            )
        except RepositoryUnavailableError:
            raise
        except Exception as e:
            logger.error(f"[{redact_id(user_id)}] Provider {self.algorithm.value} failed: {e}")
            return []

    async def _fetch(self, user_id: str | None, options: ProviderOptions) -> list[Candidate]:
        raise NotImplementedError

    def _query_limit(self, limit: int) -> int:
        return min(max(limit, MIN_QUERY_LIMIT), self.config.scan_limit)

    @staticmethod
    def _needs_widening(found: int, limit: int) -> bool:
        return found < math.ceil(limit / 2)


class HotProvider(CandidateProvider):
    algorithm = Algorithm.HOT
    window_days = 7
    widened_days = 30

    async def _fetch(self, user_id: str | None, options: ProviderOptions) -> list[Candidate]:
        now = datetime.now(timezone.utc)
        days = options.window or self.window_days
        tags = options.tags or None
        query_limit = self._query_limit(options.limit)

        items = await self.repos.content.find_items(
            created_after=now - timedelta(days=days), tags=tags, sort_by="hot_score", limit=query_limit
        )
        if self._needs_widening(len(items), options.limit) and days < self.widened_days:
            logger.debug(f"Only {len(items)} hot items in {days}d, widening to {self.widened_days}d")
            wider = await self.repos.content.find_items(
                created_after=now - timedelta(days=self.widened_days),
                tags=tags,
                sort_by="hot_score",
                limit=query_limit,
            )
            items = merge_unique(items, wider, lambda it: it.hot_score)

        items.sort(key=lambda it: it.hot_score, reverse=True)
        return [
            Candidate(
                item=it,
                score=it.hot_score,
                recommendation_type=self.algorithm,
                details={"hot_level": hot_level(it.hot_score)},
            )
            for it in items[: options.limit]
        ]


class LatestProvider(CandidateProvider):
    algorithm = Algorithm.LATEST
    window_hours = 24
    widened_hours = 24 * 7

    @staticmethod
    def recency_score(item: ContentItem, now: datetime) -> float:
        created = item.created_at if item.created_at.tzinfo else item.created_at.replace(tzinfo=timezone.utc)
        age_ms = (now - created).total_seconds() * 1000
        return 1 / max(age_ms, 1.0)

    async def _fetch(self, user_id: str | None, options: ProviderOptions) -> list[Candidate]:
        now = datetime.now(timezone.utc)
        hours = options.window or self.window_hours
        tags = options.tags or None
        query_limit = self._query_limit(options.limit)

        items = await self.repos.content.find_items(
            created_after=now - timedelta(hours=hours), tags=tags, sort_by="created_at", limit=query_limit
        )
        if self._needs_widening(len(items), options.limit) and hours < self.widened_hours:
            logger.debug(f"Only {len(items)} items in the last {hours}h, widening to {self.widened_hours}h")
            wider = await self.repos.content.find_items(
                created_after=now - timedelta(hours=self.widened_hours),
                tags=tags,
                sort_by="created_at",
                limit=query_limit,
            )
            items = merge_unique(items, wider, lambda it: self.recency_score(it, now))

        items.sort(key=lambda it: it.created_at, reverse=True)
        return [
            Candidate(
                item=it,
                score=self.recency_score(it, now),
                recommendation_type=self.algorithm,
                details={"hours_since_created": days_since(it.created_at, now) * 24},
            )
            for it in items[: options.limit]
        ]


class UpdatedProvider(CandidateProvider):
    algorithm = Algorithm.UPDATED
    window_days = 30
    widened_days = 90

    async def _fetch(self, user_id: str | None, options: ProviderOptions) -> list[Candidate]:
        now = datetime.now(timezone.utc)
        days = options.window or self.window_days
        tags = options.tags or None
        query_limit = self._query_limit(options.limit)

        items = await self.repos.content.find_items(
            modified_after=now - timedelta(days=days), tags=tags, sort_by="modified_at", limit=query_limit
        )
        if self._needs_widening(len(items), options.limit) and days < self.widened_days:
            wider = await self.repos.content.find_items(
                modified_after=now - timedelta(days=self.widened_days),
                tags=tags,
                sort_by="modified_at",
                limit=query_limit,
            )
            items = merge_unique(items, wider, lambda it: updated_content_score(it, now))

        items = [it for it in items if it.modified_at is not None]
        items.sort(key=lambda it: it.modified_at, reverse=True)
        return [
            Candidate(
                item=it,
                score=updated_content_score(it, now),
                recommendation_type=self.algorithm,
                details={"days_since_modified": days_since(it.modified_at, now)},
            )
            for it in items[: options.limit]
        ]


class PersonalizedProvider(CandidateProvider):
    """Adapts a similarity recommender to the provider contract."""

    def __init__(
        self,
        algorithm: Algorithm,
        recommender: ContentBasedRecommender | CollaborativeRecommender,
        repos: Repositories,
        cache: CacheBackend,
        config: EngineConfig,
    ):
        super().__init__(repos, cache, config)
        self.algorithm = algorithm
        self.recommender = recommender

    async def _fetch(self, user_id: str | None, options: ProviderOptions) -> list[Candidate]:
        return await self.recommender.recommend(
            user_id,
            limit=options.limit,
            tags=options.tags or None,
            min_similarity=PERSONALIZED_MIN_SIMILARITY,
            exclude_interacted=True,
            include_hot_score=True,
        )
