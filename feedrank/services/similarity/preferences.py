from collections import defaultdict
from datetime import datetime, timezone

from loguru import logger

from feedrank.core.security import redact_id
from feedrank.models.activity import TagPreferences
from feedrank.services.repositories import Repositories
from feedrank.services.similarity.interactions import INTERACTION_WEIGHTS, fetch_user_interactions, time_decay

# A tag needs at least this many interactions before it counts as a preference
MIN_TAG_INTERACTIONS = 3


class TagPreferenceCalculator:
    """
    Builds a user's tag preference vector from their interaction history.

    Each interaction adds its kind weight (decayed by age) to every tag of the
    item it touched. Tags seen fewer than MIN_TAG_INTERACTIONS times are
    dropped and the rest are normalized by the strongest tag.
    """

    def __init__(self, repos: Repositories, min_interactions: int = MIN_TAG_INTERACTIONS, use_time_decay: bool = True):
        self.repos = repos
        self.min_interactions = min_interactions
        self.use_time_decay = use_time_decay

    async def calculate(self, user_id: str) -> TagPreferences:
        events = await fetch_user_interactions(self.repos, user_id)
        if not events:
            return TagPreferences()

        item_ids = list({ev.item_id for ev in events})
        items = {it.id: it for it in await self.repos.content.get_items(item_ids)}

        now = datetime.now(timezone.utc)
        raw: dict[str, float] = defaultdict(float)
        counts: dict[str, int] = defaultdict(int)
        for ev in events:
            item = items.get(ev.item_id)
            if not item or not item.tags:
                continue
            weight = INTERACTION_WEIGHTS.get(ev.kind, 1.0)
            if self.use_time_decay:
                weight *= time_decay(ev.created_at, now)
            for tag in item.tags:
                raw[tag] += weight
                counts[tag] += 1

        kept = {tag: score for tag, score in raw.items() if counts[tag] >= self.min_interactions}
        max_score = max([*kept.values(), 1.0])
        preferences = {tag: score / max_score for tag, score in kept.items()}

        logger.debug(f"[{redact_id(user_id)}] Tag preferences: {len(preferences)} of {len(raw)} tags kept")
        return TagPreferences(
            preferences=preferences,
            interaction_counts=dict(counts),
            total_interactions=len(events),
            confidence=len(kept) / max(len(raw), 1),
        )
