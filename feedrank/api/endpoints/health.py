from fastapi import APIRouter

from feedrank.core.config import APP_VERSION

router = APIRouter(tags=["health"])


@router.get("/health", summary="Simple readiness probe")
async def health_check() -> dict[str, str]:
    return {"status": "ok", "version": APP_VERSION}
