import json

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from feedrank.api.dependencies import get_engine, get_user_id, split_csv
from feedrank.core.exceptions import InvalidWeightsError, RepositoryUnavailableError
from feedrank.core.security import redact_id
from feedrank.models.recommendation import (
    AlgorithmStats,
    FeedOptions,
    InfiniteScrollOptions,
    RecommendationResult,
    RecommendationStrategy,
    UserBehavior,
)
from feedrank.services.recommendation.engine import RecommendationEngine

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


def _parse_weights(raw: str | None) -> dict[str, float]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidWeightsError(f"custom_weights is not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise InvalidWeightsError("custom_weights must be a JSON object")
    try:
        return {str(k): float(v) for k, v in parsed.items()}
    except (TypeError, ValueError) as e:
        raise InvalidWeightsError(f"custom_weights values must be numbers: {e}") from e


@router.get("/mixed", response_model=RecommendationResult)
async def get_mixed_recommendations(
    limit: int = Query(default=30),
    page: int = Query(default=1),
    tags: str | None = Query(default=None, description="Comma separated tags"),
    exclude_ids: str | None = Query(default=None, description="Comma separated item ids already shown"),
    custom_weights: str | None = Query(default=None, description='JSON object, e.g. {"hot": 0.5}'),
    include_diversity: bool = True,
    include_cold_start_analysis: bool = True,
    include_social_scores: bool = True,
    include_recommendation_reasons: bool = True,
    use_cache: bool = True,
    user_id: str | None = Depends(get_user_id),
    engine: RecommendationEngine = Depends(get_engine),
):
    try:
        options = FeedOptions(
            limit=limit,
            page=page,
            tags=split_csv(tags),
            exclude_ids=split_csv(exclude_ids),
            custom_weights=_parse_weights(custom_weights),
            include_diversity=include_diversity,
            include_cold_start_analysis=include_cold_start_analysis,
            include_social_scores=include_social_scores,
            include_recommendation_reasons=include_recommendation_reasons,
            use_cache=use_cache,
        )
        return await engine.get_mixed_recommendations(user_id, options)
    except InvalidWeightsError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except RepositoryUnavailableError as e:
        logger.error(f"[{redact_id(user_id)}] Repository unavailable: {e}")
        raise HTTPException(status_code=503, detail="Content repository unavailable")
    except Exception as e:
        logger.exception(f"[{redact_id(user_id)}] Error building mixed feed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/infinite-scroll", response_model=RecommendationResult)
async def get_infinite_scroll(
    page: int = Query(default=1),
    limit: int = Query(default=10),
    tags: str | None = Query(default=None),
    exclude_ids: str | None = Query(default=None),
    custom_weights: str | None = Query(default=None),
    include_social_scores: bool = True,
    include_recommendation_reasons: bool = True,
    user_id: str | None = Depends(get_user_id),
    engine: RecommendationEngine = Depends(get_engine),
):
    try:
        options = InfiniteScrollOptions(
            page=page,
            limit=limit,
            tags=split_csv(tags),
            exclude_ids=split_csv(exclude_ids),
            custom_weights=_parse_weights(custom_weights),
            include_social_scores=include_social_scores,
            include_recommendation_reasons=include_recommendation_reasons,
        )
        return await engine.get_infinite_scroll_recommendations(user_id, options)
    except InvalidWeightsError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except RepositoryUnavailableError as e:
        logger.error(f"[{redact_id(user_id)}] Repository unavailable: {e}")
        raise HTTPException(status_code=503, detail="Content repository unavailable")
    except Exception as e:
        logger.exception(f"[{redact_id(user_id)}] Error building infinite scroll page {page}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/stats", response_model=AlgorithmStats)
async def get_algorithm_stats(
    user_id: str | None = Depends(get_user_id),
    engine: RecommendationEngine = Depends(get_engine),
):
    try:
        return await engine.get_algorithm_stats(user_id)
    except RepositoryUnavailableError as e:
        logger.error(f"[{redact_id(user_id)}] Repository unavailable: {e}")
        raise HTTPException(status_code=503, detail="Content repository unavailable")
    except Exception as e:
        logger.exception(f"[{redact_id(user_id)}] Error computing algorithm stats: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/strategy", response_model=RecommendationStrategy)
async def adjust_strategy(
    behavior: UserBehavior,
    user_id: str | None = Depends(get_user_id),
    engine: RecommendationEngine = Depends(get_engine),
):
    if not user_id:
        raise HTTPException(status_code=400, detail="X-User-Id header is required")
    try:
        return await engine.adjust_strategy(user_id, behavior)
    except RepositoryUnavailableError as e:
        logger.error(f"[{redact_id(user_id)}] Repository unavailable: {e}")
        raise HTTPException(status_code=503, detail="Content repository unavailable")
    except Exception as e:
        logger.exception(f"[{redact_id(user_id)}] Error adjusting strategy: {e}")
        raise HTTPException(status_code=500, detail=str(e))
