from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from feedrank.api.dependencies import get_engine, get_user_id
from feedrank.core.security import redact_id
from feedrank.services.recommendation.engine import RecommendationEngine

router = APIRouter(prefix="/cache", tags=["cache"])


@router.delete("/users/{user_id}")
async def invalidate_user(user_id: str, engine: RecommendationEngine = Depends(get_engine)):
    """
    Drop every cached value derived from a user's history.
    Call after the user likes, comments, shares, collects or follows.
    """
    try:
        deleted = await engine.invalidate_user(user_id)
        return {"message": "User caches cleared", "status": "success", "deleted": deleted}
    except Exception as e:
        logger.error(f"[{redact_id(user_id)}] Error clearing user caches: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to clear cache: {str(e)}")


@router.delete("/feed")
async def invalidate_feed(
    user_id: str | None = Depends(get_user_id),
    engine: RecommendationEngine = Depends(get_engine),
):
    """Drop the caller's merged feed and the shared hot, latest and updated caches."""
    try:
        deleted = await engine.invalidate_feed(user_id)
        return {"message": "Feed caches cleared", "status": "success", "deleted": deleted}
    except Exception as e:
        logger.error(f"[{redact_id(user_id)}] Error clearing feed caches: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to clear cache: {str(e)}")
