from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from feedrank.api.dependencies import get_search_service, split_csv
from feedrank.core.exceptions import RepositoryUnavailableError
from feedrank.models.enums import SortKey
from feedrank.models.search import SearchFilters, SearchOptions, SearchPage
from feedrank.services.search.engine import ContentSearchService

router = APIRouter(tags=["search"])


@router.get("/search", response_model=SearchPage)
async def search(
    q: str = Query(default="", description="Free-text query; empty ranks the whole corpus"),
    page: int = Query(default=1),
    limit: int = Query(default=50),
    sort_by: SortKey = Query(default=SortKey.COMPREHENSIVE),
    type: str | None = None,
    status: str | None = None,
    tags: str | None = Query(default=None, description="Comma separated tags"),
    author: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    service: ContentSearchService = Depends(get_search_service),
):
    filters = SearchFilters(
        type=type, status=status, tags=split_csv(tags), author=author, date_from=date_from, date_to=date_to
    )
    try:
        return await service.search(q, SearchOptions(page=page, limit=limit, sort_by=sort_by, filters=filters))
    except RepositoryUnavailableError as e:
        logger.error(f"Repository unavailable during search: {e}")
        raise HTTPException(status_code=503, detail="Content repository unavailable")
    except Exception as e:
        logger.exception(f"Error searching for '{q}': {e}")
        raise HTTPException(status_code=500, detail=str(e))
