import asyncio
import math

from loguru import logger
from pydantic import TypeAdapter

from feedrank.core.cache import CacheBackend, with_cache
from feedrank.core.constants import ACTIVITY_KEY, ACTIVITY_LEVEL_THRESHOLDS
from feedrank.core.security import redact_id
from feedrank.models.activity import ActivityProfile, InteractionBreakdown
from feedrank.models.enums import ActivityLevel, InteractionKind
from feedrank.services.recommendation.weights import EngineConfig
from feedrank.services.repositories import Repositories


def activity_score(total_interactions: int) -> float:
    return math.log10(total_interactions + 1) * 10


def activity_level(score: float) -> ActivityLevel:
    for threshold, level in ACTIVITY_LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return ActivityLevel.INACTIVE


class ActivityProfiler:
    """Summarises how much a user interacts, as a log-scaled score and a level."""

    def __init__(self, repos: Repositories, cache: CacheBackend, config: EngineConfig):
        self.repos = repos
        self.cache = cache
        self.config = config
        self._adapter = TypeAdapter(ActivityProfile)

    async def profile(self, user_id: str) -> ActivityProfile:
        return await with_cache(
            self.cache,
            ACTIVITY_KEY.format(user_id=user_id),
            self.config.ttl("activity"),
            lambda: self._compute(user_id),
            self._adapter,
        )

    async def _compute(self, user_id: str) -> ActivityProfile:
        if await self.repos.users.get_user(user_id) is None:
            logger.warning(f"[{redact_id(user_id)}] Unknown user, treating as inactive")
            return ActivityProfile()

        likes, comments, shares, collections, views = await asyncio.gather(
            self.repos.interaction_store(InteractionKind.LIKE).count_by_user(user_id),
            self.repos.interaction_store(InteractionKind.COMMENT).count_by_user(user_id),
            self.repos.interaction_store(InteractionKind.SHARE).count_by_user(user_id),
            self.repos.interaction_store(InteractionKind.COLLECTION).count_by_user(user_id),
            self.repos.interaction_store(InteractionKind.VIEW).count_by_user(user_id),
        )
        breakdown = InteractionBreakdown(
            likes=likes, comments=comments, shares=shares, collections=collections, views=views
        )
        total = breakdown.total
        score = activity_score(total)
        return ActivityProfile(score=score, level=activity_level(score), total_interactions=total, breakdown=breakdown)
