import asyncio

from loguru import logger
from pydantic import TypeAdapter

from feedrank.core.cache import CacheBackend, with_cache
from feedrank.core.constants import COLD_START_KEY
from feedrank.core.exceptions import RepositoryUnavailableError
from feedrank.core.security import redact_id
from feedrank.models.activity import ColdStartStatus
from feedrank.services.recommendation.activity import ActivityProfiler
from feedrank.services.recommendation.weights import EngineConfig
from feedrank.services.similarity.preferences import TagPreferenceCalculator


class ColdStartDetector:
    """Decides whether a user has too little history for personalized providers."""

    def __init__(
        self,
        cache: CacheBackend,
        config: EngineConfig,
        profiler: ActivityProfiler,
        preferences: TagPreferenceCalculator,
    ):
        self.cache = cache
        self.config = config
        self.profiler = profiler
        self.preferences = preferences
        self._adapter = TypeAdapter(ColdStartStatus)

    async def detect(self, user_id: str) -> ColdStartStatus:
        try:
            return await with_cache(
                self.cache,
                COLD_START_KEY.format(user_id=user_id),
                self.config.ttl("cold_start"),
                lambda: self._compute(user_id),
                self._adapter,
            )
        except RepositoryUnavailableError:
            raise
        except Exception as e:
            logger.error(f"[{redact_id(user_id)}] Cold start check failed, assuming cold start: {e}")
            return ColdStartStatus.fallback()

    async def _compute(self, user_id: str) -> ColdStartStatus:
        profile, prefs = await asyncio.gather(self.profiler.profile(user_id), self.preferences.calculate(user_id))
        is_cold = profile.total_interactions < self.config.cold_start_min_interactions or not prefs.preferences
        logger.info(
            f"[{redact_id(user_id)}] Activity {profile.level.value} ({profile.total_interactions} interactions),"
            f" cold start: {is_cold}"
        )
        return ColdStartStatus(
            is_cold_start=is_cold,
            activity_profile=profile,
            tag_preferences=prefs.preferences,
            recommended_mode="hot" if is_cold else "mixed",
        )
