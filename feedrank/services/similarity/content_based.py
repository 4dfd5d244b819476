from loguru import logger

from feedrank.core.security import redact_id
from feedrank.models.content import ContentItem
from feedrank.models.enums import Algorithm
from feedrank.models.recommendation import Candidate
from feedrank.services.repositories import Repositories
from feedrank.services.similarity.interactions import blend_with_hot, fetch_user_interactions, normalized_hot
from feedrank.services.similarity.preferences import TagPreferenceCalculator

MIN_CONFIDENCE = 0.1
TOP_TAGS_LIMIT = 5


def jaccard_similarity(set_a: set[str], set_b: set[str]) -> float:
    """Calculate Jaccard similarity between two sets."""
    if not set_a or not set_b:
        return 0.0
    union = len(set_a | set_b)
    return len(set_a & set_b) / union if union > 0 else 0.0


def tag_similarity(item_tags: list[str], other_tags: list[str], preferences: dict[str, float] | None = None) -> float:
    """Jaccard overlap, blended with the mean preference of shared tags when preferences are known."""
    a, b = set(item_tags), set(other_tags)
    jaccard = jaccard_similarity(a, b)
    if not preferences:
        return jaccard
    shared = a & b
    preference_weight = sum(preferences.get(t, 0.0) for t in shared) / len(shared) if shared else 0.0
    return jaccard * 0.6 + preference_weight * 0.4


def preference_match(item_tags: list[str], preferences: dict[str, float]) -> float:
    """How much of the item is covered by preferred tags, and how strongly."""
    if not item_tags or not preferences:
        return 0.0
    matched = [preferences[t] for t in item_tags if t in preferences]
    match_ratio = len(matched) / len(item_tags)
    average = sum(matched) / len(matched) if matched else 0.0
    return match_ratio * 0.4 + average * 0.6


class ContentBasedRecommender:
    """Ranks items by how well their tags match the user's tag preferences."""

    def __init__(self, repos: Repositories, preference_calculator: TagPreferenceCalculator, scan_limit: int = 5000):
        self.repos = repos
        self.preferences = preference_calculator
        self.scan_limit = scan_limit

    async def recommend(
        self,
        user_id: str,
        limit: int = 20,
        tags: list[str] | None = None,
        min_similarity: float = 0.1,
        exclude_interacted: bool = True,
        include_hot_score: bool = True,
    ) -> list[Candidate]:
        prefs = await self.preferences.calculate(user_id)

        if prefs.confidence < MIN_CONFIDENCE:
            logger.info(f"[{redact_id(user_id)}] Not enough tag history, falling back to hot items")
            items = await self.repos.content.find_items(tags=tags, sort_by="hot_score", limit=limit)
            return [
                Candidate(
                    item=it,
                    score=normalized_hot(it.hot_score),
                    recommendation_type=Algorithm.CONTENT_BASED,
                    details={"fallback": True, "content_similarity": 0.0, "preference_match": 0.0},
                )
                for it in items
            ]

        items = await self.repos.content.find_items(tags=tags, sort_by="hot_score", limit=self.scan_limit)
        if exclude_interacted:
            interacted = {ev.item_id for ev in await fetch_user_interactions(self.repos, user_id)}
            items = [it for it in items if it.id not in interacted]

        top_tags = [t for t, _ in sorted(prefs.preferences.items(), key=lambda x: x[1], reverse=True)][:TOP_TAGS_LIMIT]
        scored = [self._score(it, prefs.preferences, top_tags, include_hot_score) for it in items]

        scored = [c for c in scored if c.score >= min_similarity]
        scored.sort(key=lambda c: c.score, reverse=True)
        return scored[:limit]

    @staticmethod
    def _score(item: ContentItem, preferences: dict[str, float], top_tags: list[str], include_hot: bool) -> Candidate:
        match = preference_match(item.tags, preferences)
        similarity = tag_similarity(item.tags, top_tags, preferences) if top_tags else 0.0
        score = match * 0.6 + similarity * 0.4
        if include_hot:
            score = blend_with_hot(score, item.hot_score)
        return Candidate(
            item=item,
            score=score,
            recommendation_type=Algorithm.CONTENT_BASED,
            details={
                "content_similarity": similarity,
                "preference_match": match,
                "matched_tags": [t for t in item.tags if t in preferences],
            },
        )
