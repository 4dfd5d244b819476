from datetime import datetime

from pydantic import BaseModel, Field

from feedrank.models.content import ContentItem
from feedrank.models.enums import SortKey


class SearchFilters(BaseModel):
    type: str | None = None
    status: str | None = None
    tags: list[str] = Field(default_factory=list)
    author: str | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None


class SearchOptions(BaseModel):
    page: int = 1
    limit: int = 50
    sort_by: SortKey = SortKey.COMPREHENSIVE
    filters: SearchFilters | None = None


class SearchResult(BaseModel):
    item: ContentItem
    relevance_score: float
    quality_score: float
    freshness_score: float
    user_behavior_score: float
    comprehensive_score: float
    # Raw distance from the fuzzy matcher (0 = perfect match); None for empty queries
    fuzzy_match_score: float | None = None
    matched_fields: list[str] = Field(default_factory=list)


class SearchPagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class ScoringSummary(BaseModel):
    relevance: float = 0.0
    quality: float = 0.0
    freshness: float = 0.0
    user_behavior: float = 0.0
    comprehensive: float = 0.0


class SearchStats(BaseModel):
    total_results: int = 0
    average_scores: dict[str, float] = Field(default_factory=dict)
    # Comprehensive score buckets: high >= 0.7, medium >= 0.4, low otherwise
    score_distribution: dict[str, int] = Field(default_factory=dict)


class SearchPage(BaseModel):
    results: list[SearchResult] = Field(default_factory=list)
    pagination: SearchPagination
    scoring: ScoringSummary = Field(default_factory=ScoringSummary)
    stats: SearchStats | None = None
