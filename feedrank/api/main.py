from fastapi import APIRouter

from .endpoints.caching import router as caching_router
from .endpoints.health import router as health_router
from .endpoints.recommendations import router as recommendations_router
from .endpoints.search import router as search_router

api_router = APIRouter()


@api_router.get("/")
async def root():
    return {"message": "feedrank API is running"}


api_router.include_router(recommendations_router)
api_router.include_router(search_router)
api_router.include_router(caching_router)
api_router.include_router(health_router)
