import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone

from loguru import logger

from feedrank.core.security import redact_id
from feedrank.models.content import ContentItem
from feedrank.models.enums import Algorithm
from feedrank.models.recommendation import Candidate
from feedrank.services.repositories import Repositories
from feedrank.services.similarity.interactions import (
    INTERACTION_WEIGHTS,
    blend_with_hot,
    fetch_users_interactions,
    normalized_hot,
    time_decay,
)
from feedrank.services.similarity.social_graph import SocialGraph, SocialGraphLoader

MAX_SIMILAR_USERS = 50

InteractionMatrix = dict[str, dict[str, float]]


def pearson_similarity(ratings_a: dict[str, float], ratings_b: dict[str, float]) -> float:
    """Pearson correlation over co-rated items, clamped to [0, 1]."""
    common = ratings_a.keys() & ratings_b.keys()
    n = len(common)
    if n == 0:
        return 0.0

    xs = [ratings_a[i] for i in common]
    ys = [ratings_b[i] for i in common]
    sum_x, sum_y = sum(xs), sum(ys)
    sum_x_sq = sum(x * x for x in xs)
    sum_y_sq = sum(y * y for y in ys)
    p_sum = sum(x * y for x, y in zip(xs, ys))

    num = p_sum - (sum_x * sum_y) / n
    den_sq = (sum_x_sq - sum_x**2 / n) * (sum_y_sq - sum_y**2 / n)
    # Near-constant ratings carry no correlation signal
    if den_sq <= 1e-12:
        return 0.0
    return max(0.0, min(num / math.sqrt(den_sq), 1.0))


@dataclass
class Neighbour:
    user_id: str
    similarity: float
    influence: float = 0.0


@dataclass
class _Accumulator:
    total_score: float = 0.0
    total_similarity: float = 0.0
    total_influence: float = 0.0
    neighbours: list[str] = field(default_factory=list)


async def build_interaction_matrix(repos: Repositories, user_ids: list[str]) -> InteractionMatrix:
    """user -> item -> sum of decayed interaction weights."""
    events = await fetch_users_interactions(repos, user_ids)
    now = datetime.now(timezone.utc)
    matrix: InteractionMatrix = defaultdict(lambda: defaultdict(float))
    for ev in events:
        matrix[ev.user_id][ev.item_id] += INTERACTION_WEIGHTS.get(ev.kind, 1.0) * time_decay(ev.created_at, now)
    return {uid: dict(items) for uid, items in matrix.items()}


def find_similar_users(
    target_id: str,
    matrix: InteractionMatrix,
    min_similarity: float = 0.1,
    max_users: int = MAX_SIMILAR_USERS,
) -> list[Neighbour]:
    target = matrix.get(target_id)
    if not target:
        return []
    found = []
    for uid, ratings in matrix.items():
        if uid == target_id:
            continue
        similarity = pearson_similarity(target, ratings)
        if similarity >= min_similarity:
            found.append(Neighbour(uid, similarity))
    found.sort(key=lambda n: (-n.similarity, n.user_id))
    return found[:max_users]


class CollaborativeRecommender:
    """User-based collaborative filtering over a bounded interaction matrix."""

    algorithm = Algorithm.COLLABORATIVE_FILTERING

    def __init__(self, repos: Repositories, user_scan_limit: int = 1000, max_similar_users: int = MAX_SIMILAR_USERS):
        self.repos = repos
        self.user_scan_limit = user_scan_limit
        self.max_similar_users = max_similar_users

    async def _load_graph(self, user_id: str) -> SocialGraph | None:
        return None

    async def _matrix_for(self, user_id: str, graph: SocialGraph | None) -> InteractionMatrix:
        user_ids = await self.repos.users.list_active_user_ids(self.user_scan_limit)
        wanted = list(dict.fromkeys([user_id, *user_ids]))[: self.user_scan_limit + 1]
        return await build_interaction_matrix(self.repos, wanted)

    def _neighbours(
        self, user_id: str, matrix: InteractionMatrix, min_similarity: float, graph: SocialGraph | None
    ) -> list[Neighbour]:
        return find_similar_users(user_id, matrix, min_similarity, self.max_similar_users)

    async def recommend(
        self,
        user_id: str,
        limit: int = 20,
        tags: list[str] | None = None,
        min_similarity: float = 0.1,
        exclude_interacted: bool = True,
        include_hot_score: bool = True,
    ) -> list[Candidate]:
        graph = await self._load_graph(user_id)
        matrix = await self._matrix_for(user_id, graph)
        if not matrix.get(user_id):
            logger.info(f"[{redact_id(user_id)}] No interaction history for {self.algorithm.value}, using hot items")
            return await self._hot_fallback(limit, tags)

        neighbours = self._neighbours(user_id, matrix, min_similarity, graph)
        if not neighbours:
            logger.info(f"[{redact_id(user_id)}] No similar users for {self.algorithm.value}, using hot items")
            return await self._hot_fallback(limit, tags)

        seen = set(matrix[user_id])
        pool: dict[str, _Accumulator] = defaultdict(_Accumulator)
        for n in neighbours:
            for item_id, rating in matrix.get(n.user_id, {}).items():
                if exclude_interacted and item_id in seen:
                    continue
                acc = pool[item_id]
                acc.total_score += self._weighted(rating, n)
                acc.total_similarity += n.similarity
                acc.total_influence += n.influence
                acc.neighbours.append(n.user_id)

        items = await self.repos.content.get_items(list(pool))
        items = [it for it in items if it.status == "public" and (not tags or it.has_any_tag(tags))]

        results = []
        for it in items:
            acc = pool[it.id]
            if acc.total_similarity <= 0:
                continue
            base = acc.total_score / acc.total_similarity
            score = blend_with_hot(base, it.hot_score) if include_hot_score else base
            results.append(self._candidate(it, score, base, acc))

        results.sort(key=lambda c: (-c.score, c.id))
        logger.debug(
            f"[{redact_id(user_id)}] {self.algorithm.value}: {len(neighbours)} neighbours, {len(results)} candidates"
        )
        return results[:limit]

    @staticmethod
    def _weighted(rating: float, neighbour: Neighbour) -> float:
        return rating * neighbour.similarity

    def _candidate(self, item: ContentItem, score: float, base: float, acc: _Accumulator) -> Candidate:
        return Candidate(
            item=item,
            score=score,
            recommendation_type=self.algorithm,
            details={
                "collaborative_score": base,
                "similar_users_count": len(acc.neighbours),
                "average_similarity": acc.total_similarity / len(acc.neighbours),
            },
        )

    async def _hot_fallback(self, limit: int, tags: list[str] | None) -> list[Candidate]:
        items = await self.repos.content.find_items(tags=tags, sort_by="hot_score", limit=limit)
        return [
            Candidate(
                item=it,
                score=normalized_hot(it.hot_score),
                recommendation_type=self.algorithm,
                details={"fallback": True, "similar_users_count": 0},
            )
            for it in items
        ]


class SocialCollaborativeRecommender(CollaborativeRecommender):
    """
    Collaborative filtering whose neighbours come from the follow graph.

    A neighbour's similarity blends behavioural correlation with follow-graph
    overlap and the neighbour's influence, and influential neighbours weigh
    more when their ratings are aggregated.
    """

    algorithm = Algorithm.SOCIAL_COLLABORATIVE_FILTERING

    def __init__(self, repos: Repositories, graph_loader: SocialGraphLoader, **kwargs):
        super().__init__(repos, **kwargs)
        self.graph_loader = graph_loader

    async def _load_graph(self, user_id: str) -> SocialGraph | None:
        return await self.graph_loader.load([user_id], depth=2)

    async def _matrix_for(self, user_id: str, graph: SocialGraph | None) -> InteractionMatrix:
        graph_users = sorted(uid for uid in (graph.nodes if graph else {}) if uid != user_id)
        return await build_interaction_matrix(self.repos, [user_id, *graph_users[: self.user_scan_limit]])

    def _neighbours(
        self, user_id: str, matrix: InteractionMatrix, min_similarity: float, graph: SocialGraph | None
    ) -> list[Neighbour]:
        graph = graph or SocialGraph()
        target = matrix.get(user_id, {})
        found = []
        for uid in graph.nodes:
            if uid == user_id:
                continue
            influence = graph.network_influence(uid)
            similarity = min(
                pearson_similarity(target, matrix.get(uid, {})) * 0.6
                + graph.social_similarity(user_id, uid) * 0.3
                + min(influence / 100, 1.0) * 0.1,
                1.0,
            )
            if similarity >= min_similarity:
                found.append(Neighbour(uid, similarity, influence))
        found.sort(key=lambda n: (-n.similarity, -n.influence, n.user_id))
        return found[: self.max_similar_users]

    @staticmethod
    def _weighted(rating: float, neighbour: Neighbour) -> float:
        return rating * neighbour.similarity * (1 + neighbour.influence / 100)

    def _candidate(self, item: ContentItem, score: float, base: float, acc: _Accumulator) -> Candidate:
        candidate = super()._candidate(item, score, base, acc)
        candidate.details["average_influence_score"] = acc.total_influence / len(acc.neighbours)
        return candidate
