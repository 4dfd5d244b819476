import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from feedrank.api.dependencies import container
from feedrank.api.main import api_router

from .config import settings
from .version import __version__

logger.remove()
logger.add(sys.stderr, level=settings.LOG_LEVEL.upper())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifespan events (startup/shutdown).
    """
    logger.info(f"feedrank {__version__} starting ({settings.APP_ENV})")
    yield
    try:
        await container.close()
        logger.info("Redis cache client closed")
    except Exception as exc:
        logger.warning(f"Failed to close Redis cache client: {exc}")


app = FastAPI(
    title="feedrank",
    description="Multi-source feed ranking and fuzzy search scoring",
    version=__version__,
    lifespan=lifespan,
    docs_url=None if settings.APP_ENV != "development" else "/docs",
    redoc_url=None if settings.APP_ENV != "development" else "/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)
