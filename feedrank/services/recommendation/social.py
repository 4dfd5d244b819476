import asyncio

from loguru import logger
from pydantic import ValidationError

from feedrank.core.cache import CacheBackend
from feedrank.core.constants import SOCIAL_SCORE_KEY
from feedrank.core.security import redact_id
from feedrank.models.recommendation import Candidate, SocialScore
from feedrank.services.recommendation.merger import rank_key
from feedrank.services.recommendation.weights import EngineConfig
from feedrank.services.similarity.social_score import SocialScoreCalculator, SocialScoreOptions


class SocialScoreAugmenter:
    """Attaches social-proximity scores to the page being returned."""

    def __init__(self, calculator: SocialScoreCalculator, cache: CacheBackend, config: EngineConfig):
        self.calculator = calculator
        self.cache = cache
        self.config = config
        self.options = SocialScoreOptions(
            include_distance=True, include_influence=True, include_interactions=True, max_distance=3
        )

    async def _cached(self, user_id: str, item_id: str) -> SocialScore | None:
        key = SOCIAL_SCORE_KEY.format(user_id=user_id, item_id=item_id)
        try:
            raw = await self.cache.get_json(key)
            return SocialScore.model_validate(raw) if raw is not None else None
        except ValidationError as e:
            logger.warning(f"Discarding malformed social score {key}: {e}")
        except Exception as e:
            logger.warning(f"Social score cache read failed for {key}: {e}")
        return None

    async def _store(self, user_id: str, score: SocialScore) -> None:
        key = SOCIAL_SCORE_KEY.format(user_id=user_id, item_id=score.item_id)
        try:
            await self.cache.set(key, score.model_dump(mode="json"), self.config.ttl("social_score"))
        except Exception as e:
            logger.error(f"Social score cache write failed for {key}: {e}")

    async def scores_for(self, user_id: str, item_ids: list[str]) -> dict[str, SocialScore]:
        cached = await asyncio.gather(*(self._cached(user_id, iid) for iid in item_ids))
        scores = {iid: s for iid, s in zip(item_ids, cached) if s is not None}

        missing = [iid for iid in item_ids if iid not in scores]
        if missing:
            fresh = await self.calculator.calculate_many(user_id, missing, self.options)
            await asyncio.gather(*(self._store(user_id, s) for s in fresh))
            scores.update({s.item_id: s for s in fresh})
        return scores

    async def augment(self, user_id: str | None, page: list[Candidate]) -> list[Candidate]:
        if not user_id or not page:
            return page
        try:
            scores = await self.scores_for(user_id, [c.id for c in page])
        except Exception as e:
            logger.error(f"[{redact_id(user_id)}] Social scoring failed, page left unchanged: {e}")
            return page

        for candidate in page:
            score = scores.get(candidate.id)
            if score is None:
                continue
            candidate.social_score = score.social_score
            candidate.social_distance_score = score.distance_score
            candidate.social_influence_score = score.influence_score
            candidate.social_interaction_score = score.interaction_score
            candidate.social_reasons = score.reasons
            candidate.social_interactions = score.social_interactions

        # total_score is untouched, the sort keeps output ordered
        return sorted(page, key=rank_key)
