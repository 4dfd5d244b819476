import asyncio
from dataclasses import dataclass

from loguru import logger

from feedrank.core.security import redact_id
from feedrank.models.content import User
from feedrank.models.enums import InteractionKind
from feedrank.models.recommendation import SocialInteraction, SocialReason, SocialScore
from feedrank.services.repositories import Repositories
from feedrank.services.similarity.social_graph import SocialGraph, SocialGraphLoader

ACTION_WEIGHTS: dict[str, float] = {
    "publish": 5.0,
    "like": 3.0,
    "comment": 3.0,
    "share": 4.0,
    "collect": 2.0,
    "view": 1.0,
}

_KIND_ACTIONS: dict[InteractionKind, str] = {
    InteractionKind.LIKE: "like",
    InteractionKind.COMMENT: "comment",
    InteractionKind.SHARE: "share",
    InteractionKind.COLLECTION: "collect",
    InteractionKind.VIEW: "view",
}

DISTANCE_WEIGHTS: dict[str, float] = {
    "direct_follow": 1.0,
    "mutual_follow": 1.5,
    "second_degree": 0.6,
    "third_degree": 0.3,
}

REASON_TEMPLATES: dict[str, str] = {
    "publish": "Your friend {name} published this",
    "like": "Your friend {name} liked this",
    "comment": "Your friend {name} commented on this",
    "share": "Your friend {name} shared this",
    "collect": "Your friend {name} saved this",
    "view": "Your friend {name} viewed this",
}

MAX_SOCIAL_SCORE = 20.0
MAX_REASONS = 3
MIN_REASON_WEIGHT = 2.0
BATCH_SIZE = 10


@dataclass
class SocialScoreOptions:
    include_distance: bool = True
    include_influence: bool = True
    include_interactions: bool = True
    max_distance: int = 3


def distance_info(graph: SocialGraph, viewer_id: str, other_id: str, max_distance: int = 3) -> tuple[int, str] | None:
    """Follow distance from the viewer to another user and its relationship type."""
    hops = graph.distance(viewer_id, other_id, max_distance)
    if hops is None:
        return None
    if hops == 1:
        node = graph.node(other_id)
        mutual = node is not None and viewer_id in node.following
        return 1, "mutual_follow" if mutual else "direct_follow"
    return hops, "second_degree" if hops == 2 else "third_degree"


class SocialScoreCalculator:
    """
    Scores how strongly an item surfaced through the viewer's follow graph.

    Every user who published or interacted with the item contributes an
    interaction score of action weight x distance weight x influence
    multiplier, provided they sit within max_distance follow hops.
    """

    def __init__(self, repos: Repositories, graph_loader: SocialGraphLoader):
        self.repos = repos
        self.graph_loader = graph_loader

    async def _interacting_users(self, viewer_id: str, item_id: str) -> dict[str, str]:
        """user id -> strongest action that user took on the item."""
        items = await self.repos.content.get_items([item_id])
        batches = await asyncio.gather(
            *(self.repos.interaction_store(kind).list_by_item(item_id) for kind in InteractionKind)
        )

        actions: dict[str, str] = {}
        for batch in batches:
            for ev in batch:
                if ev.user_id == viewer_id:
                    continue
                action = _KIND_ACTIONS[ev.kind]
                current = actions.get(ev.user_id)
                if current is None or ACTION_WEIGHTS[action] > ACTION_WEIGHTS[current]:
                    actions[ev.user_id] = action

        author_id = items[0].author_id if items else None
        if author_id and author_id != viewer_id:
            actions[author_id] = "publish"
        return actions

    async def calculate(self, viewer_id: str, item_id: str, options: SocialScoreOptions | None = None) -> SocialScore:
        options = options or SocialScoreOptions()
        graph = await self.graph_loader.load([viewer_id], depth=options.max_distance)
        if graph.node(viewer_id) is None:
            return SocialScore(item_id=item_id)

        actions = await self._interacting_users(viewer_id, item_id)
        in_reach = {}
        for uid, action in actions.items():
            info = distance_info(graph, viewer_id, uid, options.max_distance)
            if info:
                in_reach[uid] = (action, info)
        if not in_reach:
            return SocialScore(item_id=item_id)

        users = await asyncio.gather(*(self.repos.users.get_user(uid) for uid in in_reach))
        profiles: dict[str, User | None] = dict(zip(in_reach, users))

        distance_score = influence_score = interaction_score = 0.0
        interactions: list[SocialInteraction] = []
        reasons: list[SocialReason] = []

        for uid, (action, (hops, distance_type)) in in_reach.items():
            distance_weight = DISTANCE_WEIGHTS[distance_type]
            influence, level = graph.influence(uid) if options.include_influence else (0.0, "none")
            weight = ACTION_WEIGHTS[action] * distance_weight * (1 + influence / 100)

            if options.include_interactions:
                interaction_score += weight
            if options.include_distance:
                distance_score += distance_weight
            if options.include_influence:
                influence_score += influence

            user = profiles.get(uid)
            username = user.username if user else ""
            display_name = user.display_name if user else None
            interactions.append(
                SocialInteraction(
                    user_id=uid,
                    username=username,
                    display_name=display_name,
                    action=action,
                    weight=weight,
                    distance=hops,
                    distance_type=distance_type,
                    influence_score=influence,
                    influence_level=level,
                )
            )
            if weight >= MIN_REASON_WEIGHT:
                reasons.append(
                    SocialReason(
                        type=action,
                        text=REASON_TEMPLATES[action].format(name=display_name or username or uid),
                        weight=weight,
                        user_id=uid,
                        username=username,
                    )
                )

        reasons.sort(key=lambda r: r.weight, reverse=True)
        interactions.sort(key=lambda i: i.weight, reverse=True)
        total = min(interaction_score + distance_score + influence_score, MAX_SOCIAL_SCORE)

        return SocialScore(
            item_id=item_id,
            social_score=total,
            distance_score=distance_score,
            influence_score=influence_score,
            interaction_score=interaction_score,
            reasons=reasons[:MAX_REASONS],
            social_interactions=interactions,
        )

    async def calculate_many(
        self, viewer_id: str, item_ids: list[str], options: SocialScoreOptions | None = None
    ) -> list[SocialScore]:
        results: list[SocialScore] = []
        for start in range(0, len(item_ids), BATCH_SIZE):
            batch = item_ids[start : start + BATCH_SIZE]
            results.extend(await asyncio.gather(*(self.calculate(viewer_id, iid, options) for iid in batch)))
        logger.debug(f"[{redact_id(viewer_id)}] Social scores computed for {len(results)} items")
        return results
