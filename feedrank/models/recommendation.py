from typing import Any

from pydantic import BaseModel, Field

from feedrank.models.activity import ActivityProfile, ColdStartStatus
from feedrank.models.content import ContentItem
from feedrank.models.enums import Algorithm

WeightVector = dict[Algorithm, float]


class SocialReason(BaseModel):
    type: str
    text: str
    weight: float
    user_id: str
    username: str = ""


class SocialInteraction(BaseModel):
    user_id: str
    username: str = ""
    display_name: str | None = None
    action: str
    weight: float
    distance: int
    distance_type: str
    influence_score: float = 0.0
    influence_level: str = "none"


class SocialScore(BaseModel):
    """Social-proximity score of one item for one viewer."""

    item_id: str
    social_score: float = 0.0
    distance_score: float = 0.0
    influence_score: float = 0.0
    interaction_score: float = 0.0
    reasons: list[SocialReason] = Field(default_factory=list)
    social_interactions: list[SocialInteraction] = Field(default_factory=list)


class Candidate(BaseModel):
    """
    One item proposed by a provider, later merged across providers.

    `score` is the raw provider score. `total_score` is the only field that is
    comparable across providers and is filled in by the merger.
    """

    item: ContentItem
    score: float = 0.0
    recommendation_type: Algorithm
    details: dict[str, Any] = Field(default_factory=dict)

    algorithm_scores: dict[Algorithm, float] = Field(default_factory=dict)
    total_score: float = 0.0

    social_score: float | None = None
    social_distance_score: float | None = None
    social_influence_score: float | None = None
    social_interaction_score: float | None = None
    social_reasons: list[SocialReason] = Field(default_factory=list)
    social_interactions: list[SocialInteraction] = Field(default_factory=list)

    recommendation_reason: str | None = None
    recommendation_reasons: list[SocialReason] = Field(default_factory=list)

    @property
    def id(self) -> str:
        return self.item.id


class ProviderOptions(BaseModel):
    limit: int = 20
    tags: list[str] = Field(default_factory=list)
    # Primary window; providers interpret it in their own unit (days or hours)
    window: int | None = None


class FeedOptions(BaseModel):
    limit: int = 30
    custom_weights: dict[str, float] = Field(default_factory=dict)
    include_diversity: bool = True
    include_cold_start_analysis: bool = True
    include_social_scores: bool = True
    include_recommendation_reasons: bool = True
    use_cache: bool = True
    tags: list[str] = Field(default_factory=list)
    page: int = 1
    exclude_ids: list[str] = Field(default_factory=list)


class InfiniteScrollOptions(BaseModel):
    page: int = 1
    limit: int = 10
    exclude_ids: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    custom_weights: dict[str, float] = Field(default_factory=dict)
    include_social_scores: bool = True
    include_recommendation_reasons: bool = True


class Pagination(BaseModel):
    page: int
    limit: int
    skip: int
    total: int
    has_more: bool
    total_pages: int
    next_page: int | None = None


class QueryInfo(BaseModel):
    requested_limit: int
    adjusted_limit: int | None = None
    cold_start_multiplier: float | None = None
    total_needed: int | None = None
    is_cold_start: bool
    excluded_count: int = 0


class Diversity(BaseModel):
    tag_diversity: float = 0.0
    author_diversity: float = 0.0
    unique_tags: int = 0
    unique_authors: int = 0
    total_tags: int = 0
    total_authors: int = 0


class RecommendationResult(BaseModel):
    recommendations: list[Candidate] = Field(default_factory=list)
    weights: WeightVector = Field(default_factory=dict)
    cold_start_status: ColdStartStatus | None = None
    diversity: Diversity | None = None
    pagination: Pagination
    query_info: QueryInfo
    algorithm: str = "mixed"
    user_authenticated: bool = False
    applied_tags: list[str] = Field(default_factory=list)


class CachedFeed(BaseModel):
    """Full merged feed stored under the mixed-feed cache key."""

    recommendations: list[Candidate] = Field(default_factory=list)
    weights: WeightVector = Field(default_factory=dict)
    cold_start_status: ColdStartStatus | None = None


class UserBehavior(BaseModel):
    click_rate: float = 0.0
    engagement_rate: float = 0.0
    diversity_preference: float = 0.0


class RecommendationStrategy(BaseModel):
    weights: WeightVector
    focus: str = "balanced"
    cold_start_handling: bool = False


class AlgorithmStats(BaseModel):
    total_items: int = 0
    hot_items: int = 0
    trending_items: int = 0
    viral_items: int = 0
    user_activity: ActivityProfile | None = None
    cold_start: bool | None = None
    user_preferences: dict[str, float] | None = None
