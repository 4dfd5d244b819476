from enum import Enum


class Algorithm(str, Enum):
    """Identifiers of the candidate providers blended into the feed."""

    HOT = "hot"
    LATEST = "latest"
    UPDATED = "updated"
    CONTENT_BASED = "content_based"
    COLLABORATIVE_FILTERING = "collaborative_filtering"
    SOCIAL_COLLABORATIVE_FILTERING = "social_collaborative_filtering"

    @property
    def is_personalized(self) -> bool:
        return self in PERSONALIZED_ALGORITHMS


PERSONALIZED_ALGORITHMS = frozenset(
    {
        Algorithm.CONTENT_BASED,
        Algorithm.COLLABORATIVE_FILTERING,
        Algorithm.SOCIAL_COLLABORATIVE_FILTERING,
    }
)


class ActivityLevel(str, Enum):
    VERY_ACTIVE = "very_active"
    ACTIVE = "active"
    MODERATE = "moderate"
    LOW = "low"
    INACTIVE = "inactive"


class InteractionKind(str, Enum):
    LIKE = "like"
    COMMENT = "comment"
    SHARE = "share"
    COLLECTION = "collection"
    VIEW = "view"


class SortKey(str, Enum):
    COMPREHENSIVE = "comprehensive"
    RELEVANCE = "relevance"
    QUALITY = "quality"
    FRESHNESS = "freshness"
    POPULARITY = "popularity"
    CREATED_AT = "createdAt"
