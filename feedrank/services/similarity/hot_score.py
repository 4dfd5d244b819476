from datetime import datetime, timezone

from feedrank.models.content import ContentItem


def hot_level(hot_score: float) -> str:
    """Bucket a hotness score into a display level."""
    if hot_score >= 1000:
        return "viral"
    if hot_score >= 500:
        return "trending"
    if hot_score >= 100:
        return "popular"
    if hot_score >= 50:
        return "active"
    if hot_score >= 10:
        return "normal"
    return "new"


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def updated_content_score(item: ContentItem, now: datetime | None = None) -> float:
    """
    Hotness boosted for recently modified content.

    Recent edits multiply the hot score (up to 2x within the hour), and older
    items get a larger bonus when they are edited.
    """
    if item.modified_at is None or item.modified_at == item.created_at:
        return item.hot_score

    now = now or datetime.now(timezone.utc)
    hours_since_modified = (now - _aware(item.modified_at)).total_seconds() / 3600.0

    freshness = 1.0
    if hours_since_modified <= 1:
        freshness = 2.0
    elif hours_since_modified <= 6:
        freshness = 1.5
    elif hours_since_modified <= 24:
        freshness = 1.3
    elif hours_since_modified <= 72:
        freshness = 1.1

    days_since_creation = (now - _aware(item.created_at)).total_seconds() / 86400.0
    age_bonus = 1.0
    if days_since_creation > 7:
        age_bonus = 1.4
    elif days_since_creation > 3:
        age_bonus = 1.2

    return item.hot_score * freshness * age_bonus
