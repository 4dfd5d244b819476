import math
from datetime import datetime, timezone

from loguru import logger

from feedrank.core.constants import DEFAULT_SEARCH_LIMIT
from feedrank.models.content import ContentItem
from feedrank.models.enums import SortKey
from feedrank.models.search import (
    ScoringSummary,
    SearchFilters,
    SearchOptions,
    SearchPage,
    SearchPagination,
    SearchResult,
    SearchStats,
)
from feedrank.services.recommendation.pagination import clamp_limit, clamp_page
from feedrank.services.repositories import Repositories
from feedrank.services.search.fuzzy import FuzzyMatcher
from feedrank.services.search.scoring import (
    behavior_score,
    comprehensive_score,
    freshness_score,
    quality_score,
    relevance_score,
)

_SORT_KEYS = {
    SortKey.COMPREHENSIVE: lambda r: r.comprehensive_score,
    SortKey.RELEVANCE: lambda r: r.relevance_score,
    SortKey.QUALITY: lambda r: r.quality_score,
    SortKey.FRESHNESS: lambda r: r.freshness_score,
    SortKey.POPULARITY: lambda r: r.item.views,
    SortKey.CREATED_AT: lambda r: r.item.created_at.timestamp(),
}


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def apply_filters(items: list[ContentItem], filters: SearchFilters | None) -> list[ContentItem]:
    """Structured filters, applied before any fuzzy matching."""
    if filters is None:
        return list(items)

    def keep(item: ContentItem) -> bool:
        if filters.type and item.type != filters.type:
            return False
        if filters.status and item.status != filters.status:
            return False
        if filters.tags and not item.has_any_tag(filters.tags):
            return False
        if filters.author:
            names = {item.author_id}
            if item.author:
                names.add(item.author.username)
            if filters.author not in names:
                return False
        created = _aware(item.created_at)
        if filters.date_from and created < _aware(filters.date_from):
            return False
        if filters.date_to and created > _aware(filters.date_to):
            return False
        return True

    return [it for it in items if keep(it)]


class FuzzyRankingEngine:
    """
    Scores a corpus against a free-text query.

    Each result carries relevance, quality, freshness and behaviour
    sub-scores blended 0.4 / 0.3 / 0.2 / 0.1 into a comprehensive score.
    """

    def __init__(self, matcher: FuzzyMatcher | None = None):
        self.matcher = matcher or FuzzyMatcher()

    def score_items(self, corpus: list[ContentItem], query: str, now: datetime | None = None) -> list[SearchResult]:
        now = now or datetime.now(timezone.utc)
        query = (query or "").strip()

        results = []
        for item in corpus:
            distance = None
            matched_fields: list[str] = []
            if query:
                match = self.matcher.match(item, query)
                if match is None:
                    continue
                distance = match.distance
                matched_fields = match.matched_fields

            relevance = relevance_score(item, distance, query)
            quality = quality_score(item)
            freshness = freshness_score(item, now)
            behavior = behavior_score(item)
            results.append(
                SearchResult(
                    item=item,
                    relevance_score=relevance,
                    quality_score=quality,
                    freshness_score=freshness,
                    user_behavior_score=behavior,
                    comprehensive_score=comprehensive_score(relevance, quality, freshness, behavior),
                    fuzzy_match_score=distance,
                    matched_fields=matched_fields,
                )
            )
        return results

    def search(
        self,
        corpus: list[ContentItem],
        query: str,
        options: SearchOptions | None = None,
        now: datetime | None = None,
    ) -> SearchPage:
        options = options or SearchOptions()
        page = clamp_page(options.page)
        limit = clamp_limit(options.limit, DEFAULT_SEARCH_LIMIT)

        candidates = apply_filters(corpus, options.filters)
        results = self.score_items(candidates, query, now)

        key = _SORT_KEYS.get(options.sort_by, _SORT_KEYS[SortKey.COMPREHENSIVE])
        results.sort(key=lambda r: (-key(r), r.item.id))

        total = len(results)
        skip = (page - 1) * limit
        page_results = results[skip : skip + limit]
        total_pages = math.ceil(total / limit)

        scoring = ScoringSummary()
        if page_results:
            top = page_results[0]
            scoring = ScoringSummary(
                relevance=top.relevance_score,
                quality=top.quality_score,
                freshness=top.freshness_score,
                user_behavior=top.user_behavior_score,
                comprehensive=top.comprehensive_score,
            )

        logger.debug(f"Search '{query}' matched {total} of {len(corpus)} items")
        return SearchPage(
            results=page_results,
            pagination=SearchPagination(
                page=page,
                limit=limit,
                total=total,
                total_pages=total_pages,
                has_next=page < total_pages,
                has_prev=page > 1,
            ),
            scoring=scoring,
            stats=self.get_search_stats(results),
        )

    @staticmethod
    def get_search_stats(results: list[SearchResult]) -> SearchStats:
        if not results:
            return SearchStats()

        n = len(results)
        averages = {
            "relevance": sum(r.relevance_score for r in results) / n,
            "quality": sum(r.quality_score for r in results) / n,
            "freshness": sum(r.freshness_score for r in results) / n,
            "user_behavior": sum(r.user_behavior_score for r in results) / n,
            "comprehensive": sum(r.comprehensive_score for r in results) / n,
        }
        distribution = {"high": 0, "medium": 0, "low": 0}
        for r in results:
            if r.comprehensive_score >= 0.7:
                distribution["high"] += 1
            elif r.comprehensive_score >= 0.4:
                distribution["medium"] += 1
            else:
                distribution["low"] += 1
        return SearchStats(total_results=n, average_scores=averages, score_distribution=distribution)


class ContentSearchService:
    """Loads the searchable corpus from the content repository and ranks it."""

    def __init__(self, repos: Repositories, ranking: FuzzyRankingEngine | None = None, scan_limit: int = 5000):
        self.repos = repos
        self.ranking = ranking or FuzzyRankingEngine()
        self.scan_limit = scan_limit

    async def search(self, query: str, options: SearchOptions | None = None) -> SearchPage:
        options = options or SearchOptions()
        status = options.filters.status if options.filters and options.filters.status else "public"
        corpus = await self.repos.content.find_items(status=status, sort_by="created_at", limit=self.scan_limit)
        return self.ranking.search(corpus, query, options)
