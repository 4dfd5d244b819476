import asyncio
from datetime import datetime, timezone

from feedrank.models.content import InteractionEvent
from feedrank.models.enums import InteractionKind
from feedrank.services.repositories import Repositories

# Relative strength of each interaction kind when building preferences
INTERACTION_WEIGHTS: dict[InteractionKind, float] = {
    InteractionKind.LIKE: 1.0,
    InteractionKind.COMMENT: 2.0,
    InteractionKind.SHARE: 3.0,
    InteractionKind.COLLECTION: 1.5,
    InteractionKind.VIEW: 0.1,
}

DECAY_FACTOR = 0.95
MAX_DECAY_DAYS = 365
# Blend weight of normalized hotness into personalized scores
HOT_SCORE_WEIGHT = 0.3
HOT_SCORE_NORMALIZER = 1000.0


def days_since(moment: datetime, now: datetime | None = None) -> float:
    now = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (now - moment).total_seconds() / 86400.0


def time_decay(moment: datetime, now: datetime | None = None) -> float:
    """Exponential decay of an interaction's weight with its age in days."""
    age = days_since(moment, now)
    if age <= 0:
        return 1.0
    if age >= MAX_DECAY_DAYS:
        return 0.1
    return DECAY_FACTOR**age


def normalized_hot(hot_score: float) -> float:
    return min(max(hot_score, 0.0) / HOT_SCORE_NORMALIZER, 1.0)


def blend_with_hot(score: float, hot_score: float, weight: float = HOT_SCORE_WEIGHT) -> float:
    if hot_score <= 0:
        return score
    return score * (1 - weight) + normalized_hot(hot_score) * weight


async def fetch_user_interactions(repos: Repositories, user_id: str) -> list[InteractionEvent]:
    """All interaction events of one user, across the five stores."""
    batches = await asyncio.gather(*(repos.interaction_store(kind).list_by_user(user_id) for kind in InteractionKind))
    return [ev for batch in batches for ev in batch]


async def fetch_users_interactions(repos: Repositories, user_ids: list[str]) -> list[InteractionEvent]:
    batches = await asyncio.gather(
        *(repos.interaction_store(kind).list_by_users(user_ids) for kind in InteractionKind)
    )
    return [ev for batch in batches for ev in batch]
