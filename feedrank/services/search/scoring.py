from datetime import datetime, timezone

from feedrank.models.content import ContentItem

# Blend of the four sub-scores into the comprehensive score
RELEVANCE_WEIGHT = 0.4
QUALITY_WEIGHT = 0.3
FRESHNESS_WEIGHT = 0.2
BEHAVIOR_WEIGHT = 0.1

EMPTY_QUERY_RELEVANCE = 0.5
DEFAULT_VIEW_TIME = 30.0
FRESHNESS_DECAY = 0.1


def _age_days(moment: datetime, now: datetime) -> float:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return max((now - moment).total_seconds() / 86400.0, 0.0)


def _contains(text: str | None, query: str) -> bool:
    return bool(text) and query in text.lower()


def relevance_score(item: ContentItem, distance: float | None, query: str) -> float:
    """
    Fuzzy match strength plus literal-containment bonuses.

    `distance` is the matcher's distance (0 is a perfect match). An empty
    query scores every item 0.5.
    """
    query = query.strip().lower()
    if not query:
        return EMPTY_QUERY_RELEVANCE

    score = max(0.0, 1 - (distance or 0.0))
    if _contains(item.title, query):
        score += 0.2
    if any(_contains(tag, query) for tag in item.tags):
        score += 0.15
    author = item.author
    if author and (_contains(author.display_name, query) or _contains(author.username, query)):
        score += 0.1
    return min(1.0, score)


def quality_score(item: ContentItem) -> float:
    author_items = item.author.item_count if item.author else 0
    score = (
        min(1.0, item.views / 10000) * 0.2
        + min(1.0, item.likes / 1000) * 0.3
        + min(1.0, item.shares / 500) * 0.2
        + min(1.0, item.comments / 100) * 0.1
        + min(1.0, author_items / 100) * 0.2
    )
    return min(1.0, score)


def freshness_score(item: ContentItem, now: datetime) -> float:
    created_age = _age_days(item.created_at, now)
    updated_age = _age_days(item.updated_at or item.created_at, now)
    return (
        max(0.0, 1 - created_age * FRESHNESS_DECAY) * 0.4
        + max(0.0, 1 - updated_age * FRESHNESS_DECAY) * 0.3
        + min(1.0, item.views / 1000) * 0.3
    )


def behavior_score(item: ContentItem) -> float:
    view_time = item.avg_view_time if item.avg_view_time is not None else DEFAULT_VIEW_TIME
    engagement = (item.likes + item.shares + item.comments) / max(item.views, 1)
    return min(1.0, item.views / 1000) * 0.3 + min(1.0, view_time / 120) * 0.3 + min(1.0, engagement) * 0.4


def comprehensive_score(relevance: float, quality: float, freshness: float, behavior: float) -> float:
    return (
        relevance * RELEVANCE_WEIGHT
        + quality * QUALITY_WEIGHT
        + freshness * FRESHNESS_WEIGHT
        + behavior * BEHAVIOR_WEIGHT
    )
