import asyncio
import json
import math

from loguru import logger
from pydantic import TypeAdapter

from feedrank.core.cache import CacheBackend, with_cache
from feedrank.core.constants import (
    ACTIVITY_KEY,
    COLD_START_KEY,
    HOT_THRESHOLD,
    MIXED_KEY,
    STATS_KEY,
    STRATEGY_KEY,
    TRENDING_THRESHOLD,
    VIRAL_THRESHOLD,
)
from feedrank.core.exceptions import RepositoryUnavailableError
from feedrank.core.security import redact_id
from feedrank.models.activity import ColdStartStatus
from feedrank.models.enums import Algorithm
from feedrank.models.recommendation import (
    AlgorithmStats,
    CachedFeed,
    Candidate,
    FeedOptions,
    InfiniteScrollOptions,
    ProviderOptions,
    QueryInfo,
    RecommendationResult,
    RecommendationStrategy,
    UserBehavior,
    WeightVector,
)
from feedrank.services.recommendation.activity import ActivityProfiler
from feedrank.services.recommendation.cold_start import ColdStartDetector
from feedrank.services.recommendation.diversity import analyze_diversity
from feedrank.services.recommendation.merger import merge_candidates
from feedrank.services.recommendation.pagination import clamp_limit, clamp_page, exclude_seen, paginate
from feedrank.services.recommendation.providers import (
    CandidateProvider,
    HotProvider,
    LatestProvider,
    PersonalizedProvider,
    UpdatedProvider,
)
from feedrank.services.recommendation.reasons import attach_reasons
from feedrank.services.recommendation.social import SocialScoreAugmenter
from feedrank.services.recommendation.weights import EngineConfig, WeightAdjuster, parse_weight_overrides
from feedrank.services.repositories import Repositories
from feedrank.services.similarity import (
    CollaborativeRecommender,
    ContentBasedRecommender,
    SocialCollaborativeRecommender,
    SocialGraphLoader,
    SocialScoreCalculator,
    TagPreferenceCalculator,
)

_FEED = TypeAdapter(CachedFeed)
_STATS = TypeAdapter(AlgorithmStats)
_STRATEGY = TypeAdapter(RecommendationStrategy)


def build_providers(
    repos: Repositories,
    cache: CacheBackend,
    config: EngineConfig,
    preferences: TagPreferenceCalculator,
    graph_loader: SocialGraphLoader,
) -> dict[Algorithm, CandidateProvider]:
    content_based = ContentBasedRecommender(repos, preferences, scan_limit=config.scan_limit)
    collaborative = CollaborativeRecommender(repos, user_scan_limit=config.user_scan_limit)
    social = SocialCollaborativeRecommender(repos, graph_loader, user_scan_limit=config.user_scan_limit)
    return {
        Algorithm.HOT: HotProvider(repos, cache, config),
        Algorithm.LATEST: LatestProvider(repos, cache, config),
        Algorithm.UPDATED: UpdatedProvider(repos, cache, config),
        Algorithm.CONTENT_BASED: PersonalizedProvider(Algorithm.CONTENT_BASED, content_based, repos, cache, config),
        Algorithm.COLLABORATIVE_FILTERING: PersonalizedProvider(
            Algorithm.COLLABORATIVE_FILTERING, collaborative, repos, cache, config
        ),
        Algorithm.SOCIAL_COLLABORATIVE_FILTERING: PersonalizedProvider(
            Algorithm.SOCIAL_COLLABORATIVE_FILTERING, social, repos, cache, config
        ),
    }


class RecommendationEngine:
    """
    Blends the candidate providers into one ranked, paginated feed.

    The merged list (before exclusion and pagination) is cached per user,
    fetch size, resolved weights, analysis mode and tags, so consecutive pages of the same
    request shape slice one stable ordering.
    """

    def __init__(
        self,
        repos: Repositories,
        cache: CacheBackend,
        config: EngineConfig | None = None,
        providers: dict[Algorithm, CandidateProvider] | None = None,
    ):
        self.repos = repos
        self.cache = cache
        self.config = config or EngineConfig()

        preferences = TagPreferenceCalculator(repos)
        self.graph_loader = SocialGraphLoader(repos, max_users=self.config.user_scan_limit)

        self.profiler = ActivityProfiler(repos, cache, self.config)
        self.cold_start = ColdStartDetector(cache, self.config, self.profiler, preferences)
        self.weight_adjuster = WeightAdjuster(self.config)
        self.providers = providers or build_providers(repos, cache, self.config, preferences, self.graph_loader)
        self.social = SocialScoreAugmenter(SocialScoreCalculator(repos, self.graph_loader), cache, self.config)

    # Feed assembly

    async def _run_provider(self, algorithm: Algorithm, user_id: str | None, options: ProviderOptions):
        provider = self.providers.get(algorithm)
        if provider is None:
            return []
        return await asyncio.wait_for(provider.get(user_id, options), timeout=self.config.provider_timeout_seconds)

    async def _compute_feed(
        self,
        user_id: str | None,
        fetch_limit: int,
        weights: WeightVector,
        status: ColdStartStatus | None,
        tags: list[str],
    ) -> CachedFeed:
        enabled = [a for a, w in weights.items() if w > 0 and (user_id or not a.is_personalized)]
        outcomes = await asyncio.gather(
            *(
                self._run_provider(a, user_id, ProviderOptions(limit=math.ceil(fetch_limit * weights[a]), tags=tags))
                for a in enabled
            ),
            return_exceptions=True,
        )

        results: dict[Algorithm, list[Candidate]] = {}
        for algorithm, outcome in zip(enabled, outcomes):
            if isinstance(outcome, RepositoryUnavailableError):
                logger.error(f"[{redact_id(user_id)}] Provider {algorithm.value} lost its repository: {outcome}")
                raise outcome
            if isinstance(outcome, BaseException):
                kind = "timed out" if isinstance(outcome, asyncio.TimeoutError) else f"failed: {outcome}"
                logger.warning(f"[{redact_id(user_id)}] Provider {algorithm.value} {kind}")
                results[algorithm] = []
            else:
                results[algorithm] = outcome

        merged = merge_candidates(results, weights)
        logger.info(
            f"[{redact_id(user_id)}] Merged {len(merged)} candidates from "
            f"{sum(1 for r in results.values() if r)}/{len(enabled)} providers"
        )
        return CachedFeed(recommendations=merged, weights=weights, cold_start_status=status)

    async def _feed(
        self,
        user_id: str | None,
        fetch_limit: int,
        custom_weights: dict[str, float],
        tags: list[str],
        status: ColdStartStatus | None,
        use_cache: bool,
    ) -> CachedFeed:
        weights = self.weight_adjuster.adjust(status if user_id else ColdStartStatus.fallback(), custom_weights)

        async def compute() -> CachedFeed:
            return await self._compute_feed(user_id, fetch_limit, weights, status, tags)

        if not use_cache:
            return await compute()

        # A feed built without cold-start analysis must not answer an analyzed request
        key = MIXED_KEY.format(
            scope=user_id or "anonymous",
            limit=fetch_limit,
            mode="analyzed" if status is not None else "plain",
            weights=json.dumps({a.value: w for a, w in weights.items()}, sort_keys=True),
            tags=json.dumps(tags),
        )
        return await with_cache(self.cache, key, self.config.ttl("mixed"), compute, _FEED)

    def _is_cold(self, user_id: str | None, status: ColdStartStatus | None) -> bool:
        return not user_id or bool(status and status.is_cold_start)

    async def _decorate_page(
        self, user_id: str | None, page: list[Candidate], include_social_scores: bool, include_reasons: bool
    ) -> list[Candidate]:
        if include_social_scores and user_id:
            page = await self.social.augment(user_id, page)
        if include_reasons and user_id:
            attach_reasons(page)
        return page

    async def get_mixed_recommendations(
        self, user_id: str | None, options: FeedOptions | None = None
    ) -> RecommendationResult:
        options = options or FeedOptions()
        parse_weight_overrides(options.custom_weights)

        limit = clamp_limit(options.limit, self.config.default_feed_limit)
        page = clamp_page(options.page)
        tags = sorted(set(options.tags))

        status = None
        if user_id and options.include_cold_start_analysis:
            status = await self.cold_start.detect(user_id)
        is_cold = self._is_cold(user_id, status)
        multiplier = self.config.cold_start_limit_multiplier if is_cold else 1.0
        fetch_limit = math.ceil(limit * multiplier)

        feed = await self._feed(
            user_id, fetch_limit, options.custom_weights, tags, status, options.use_cache
        )

        visible = exclude_seen(feed.recommendations, options.exclude_ids)
        page_items, pagination = paginate(visible, page, limit)
        page_items = await self._decorate_page(
            user_id, page_items, options.include_social_scores, options.include_recommendation_reasons
        )

        return RecommendationResult(
            recommendations=page_items,
            weights=feed.weights,
            cold_start_status=feed.cold_start_status,
            diversity=analyze_diversity(page_items) if options.include_diversity else None,
            pagination=pagination,
            query_info=QueryInfo(
                requested_limit=limit,
                adjusted_limit=fetch_limit,
                cold_start_multiplier=multiplier,
                is_cold_start=is_cold,
                excluded_count=len(options.exclude_ids),
            ),
            user_authenticated=bool(user_id),
            applied_tags=tags,
        )

    async def get_infinite_scroll_recommendations(
        self, user_id: str | None, options: InfiniteScrollOptions | None = None
    ) -> RecommendationResult:
        options = options or InfiniteScrollOptions()
        parse_weight_overrides(options.custom_weights)

        limit = clamp_limit(options.limit, self.config.default_infinite_scroll_limit)
        page = clamp_page(options.page)
        tags = sorted(set(options.tags))
        total_needed = page * limit + len(options.exclude_ids) + self.config.infinite_scroll_buffer

        status = await self.cold_start.detect(user_id) if user_id else None
        is_cold = self._is_cold(user_id, status)
        multiplier = self.config.cold_start_limit_multiplier if is_cold else 1.0
        fetch_limit = math.ceil(total_needed * multiplier)

        feed = await self._feed(user_id, fetch_limit, options.custom_weights, tags, status, use_cache=True)

        visible = exclude_seen(feed.recommendations, options.exclude_ids)
        page_items, pagination = paginate(visible, page, limit)
        page_items = await self._decorate_page(
            user_id, page_items, options.include_social_scores, options.include_recommendation_reasons
        )

        return RecommendationResult(
            recommendations=page_items,
            weights=feed.weights,
            cold_start_status=feed.cold_start_status,
            pagination=pagination,
            query_info=QueryInfo(
                requested_limit=limit,
                adjusted_limit=fetch_limit,
                cold_start_multiplier=multiplier,
                total_needed=total_needed,
                is_cold_start=is_cold,
                excluded_count=len(options.exclude_ids),
            ),
            user_authenticated=bool(user_id),
            applied_tags=tags,
        )

    # Stats and strategy

    async def get_algorithm_stats(self, user_id: str | None = None) -> AlgorithmStats:
        async def compute() -> AlgorithmStats:
            content = self.repos.content
            total, hot, trending, viral = await asyncio.gather(
                content.count_items(),
                content.count_items(min_hot_score=HOT_THRESHOLD),
                content.count_items(min_hot_score=TRENDING_THRESHOLD),
                content.count_items(min_hot_score=VIRAL_THRESHOLD),
            )
            stats = AlgorithmStats(total_items=total, hot_items=hot, trending_items=trending, viral_items=viral)
            if user_id:
                status = await self.cold_start.detect(user_id)
                stats.user_activity = status.activity_profile
                stats.cold_start = status.is_cold_start
                stats.user_preferences = status.tag_preferences
            return stats

        key = STATS_KEY.format(scope=user_id or "global")
        return await with_cache(self.cache, key, self.config.ttl("stats"), compute, _STATS)

    async def adjust_strategy(self, user_id: str, behavior: UserBehavior | None = None) -> RecommendationStrategy:
        behavior = behavior or UserBehavior()

        async def compute() -> RecommendationStrategy:
            status = await self.cold_start.detect(user_id)
            weights, focus = self.weight_adjuster.strategy(behavior, status.is_cold_start)
            logger.info(f"[{redact_id(user_id)}] Strategy adjusted to {focus}")
            return RecommendationStrategy(weights=weights, focus=focus, cold_start_handling=status.is_cold_start)

        key = STRATEGY_KEY.format(user_id=user_id, behavior=behavior.model_dump_json())
        return await with_cache(self.cache, key, self.config.ttl("strategy"), compute, _STRATEGY)

    # Invalidation

    async def _delete_patterns(self, patterns: list[str], scope: str) -> int:
        outcomes = await asyncio.gather(
            *(self.cache.delete_by_pattern(p) for p in patterns), return_exceptions=True
        )
        deleted = 0
        for pattern, outcome in zip(patterns, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(f"[{scope}] Failed to invalidate '{pattern}': {outcome}")
            else:
                deleted += outcome
        return deleted

    async def invalidate_user(self, user_id: str) -> int:
        """Drop every cache entry derived from one user's history."""
        patterns = [
            ACTIVITY_KEY.format(user_id=user_id),
            COLD_START_KEY.format(user_id=user_id),
            f"{Algorithm.CONTENT_BASED.value}:{user_id}:*",
            f"{Algorithm.COLLABORATIVE_FILTERING.value}:{user_id}:*",
            f"{Algorithm.SOCIAL_COLLABORATIVE_FILTERING.value}:{user_id}:*",
            f"mixed:{user_id}:*",
            STATS_KEY.format(scope=user_id),
            f"strategy:{user_id}:*",
            f"social_score:{user_id}:*",
        ]
        deleted = await self._delete_patterns(patterns, redact_id(user_id))
        # Cached graphs are keyed by the users they were grown from, not by everyone they contain
        self.graph_loader.invalidate()
        logger.info(f"[{redact_id(user_id)}] Invalidated {deleted} cache entries")
        return deleted

    async def invalidate_feed(self, user_id: str | None = None) -> int:
        """Drop a user's (or the anonymous) merged feed and the shared provider caches."""
        patterns = [
            f"mixed:{user_id or 'anonymous'}:*",
            f"{Algorithm.HOT.value}:*",
            f"{Algorithm.LATEST.value}:*",
            f"{Algorithm.UPDATED.value}:*",
        ]
        deleted = await self._delete_patterns(patterns, redact_id(user_id))
        logger.info(f"[{redact_id(user_id)}] Invalidated {deleted} feed cache entries")
        return deleted
