from fastapi import Header
from loguru import logger

from feedrank.core.cache import CacheBackend, RedisCache, build_cache
from feedrank.core.config import settings
from feedrank.services.recommendation.engine import RecommendationEngine
from feedrank.services.recommendation.weights import EngineConfig
from feedrank.services.repositories import InMemoryRepository, Repositories
from feedrank.services.search.engine import ContentSearchService


class ServiceContainer:
    """Lazily wires the repository, cache and engines from settings."""

    def __init__(self):
        self._repos: Repositories | None = None
        self._cache: CacheBackend | None = None
        self._engine: RecommendationEngine | None = None
        self._search: ContentSearchService | None = None

    @property
    def repos(self) -> Repositories:
        if self._repos is None:
            if settings.DATA_SEED_PATH:
                repo = InMemoryRepository.from_json_file(settings.DATA_SEED_PATH)
            else:
                logger.warning("DATA_SEED_PATH not set, starting with an empty repository")
                repo = InMemoryRepository()
            self._repos = repo.as_repositories()
        return self._repos

    @property
    def cache(self) -> CacheBackend:
        if self._cache is None:
            self._cache = build_cache()
        return self._cache

    @property
    def engine(self) -> RecommendationEngine:
        if self._engine is None:
            self._engine = RecommendationEngine(self.repos, self.cache, EngineConfig.from_settings(settings))
        return self._engine

    @property
    def search(self) -> ContentSearchService:
        if self._search is None:
            self._search = ContentSearchService(self.repos, scan_limit=settings.SCAN_LIMIT)
        return self._search

    async def close(self) -> None:
        if isinstance(self._cache, RedisCache):
            await self._cache.close()


container = ServiceContainer()


def get_engine() -> RecommendationEngine:
    return container.engine


def get_search_service() -> ContentSearchService:
    return container.search


def get_user_id(x_user_id: str | None = Header(default=None)) -> str | None:
    """Caller identity; authentication happens upstream of this service."""
    return x_user_id.strip() if x_user_id and x_user_id.strip() else None


def split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]
