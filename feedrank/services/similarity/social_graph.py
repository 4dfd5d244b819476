import math
from dataclasses import dataclass, field

from async_lru import alru_cache
from loguru import logger

from feedrank.services.repositories import Repositories

# Influence weights shared by social filtering and social scores
FOLLOWER_WEIGHT = 0.3
FOLLOWING_WEIGHT = 0.2
MUTUAL_FOLLOW_WEIGHT = 0.5
MAX_INFLUENCE_SCORE = 100.0


@dataclass
class SocialNode:
    followers: set[str] = field(default_factory=set)
    following: set[str] = field(default_factory=set)

    @property
    def mutual(self) -> set[str]:
        return self.followers & self.following

    @property
    def raw_influence(self) -> float:
        return (
            len(self.followers) * FOLLOWER_WEIGHT
            + len(self.following) * FOLLOWING_WEIGHT
            + len(self.mutual) * MUTUAL_FOLLOW_WEIGHT
        )


@dataclass
class SocialGraph:
    nodes: dict[str, SocialNode] = field(default_factory=dict)

    def node(self, user_id: str) -> SocialNode | None:
        return self.nodes.get(user_id)

    def add_follow(self, follower_id: str, following_id: str) -> None:
        self.nodes.setdefault(follower_id, SocialNode()).following.add(following_id)
        self.nodes.setdefault(following_id, SocialNode()).followers.add(follower_id)

    def network_influence(self, user_id: str) -> float:
        """Log-scaled influence used to rank socially similar users."""
        node = self.nodes.get(user_id)
        if not node:
            return 0.0
        return round(math.log10(node.raw_influence + 1) * 10, 2)

    def influence(self, user_id: str) -> tuple[float, str]:
        """Capped linear influence and its level, used by social scores."""
        node = self.nodes.get(user_id)
        if not node:
            return 0.0, "none"
        score = min(node.raw_influence, MAX_INFLUENCE_SCORE)
        if score >= 50:
            level = "influencer"
        elif score >= 20:
            level = "popular"
        elif score >= 10:
            level = "active"
        elif score >= 5:
            level = "moderate"
        elif score >= 1:
            level = "low"
        else:
            level = "none"
        return score, level

    def social_similarity(self, user_a: str, user_b: str) -> float:
        a, b = self.nodes.get(user_a), self.nodes.get(user_b)
        if not a or not b:
            return 0.0

        similarity = 0.0
        if a.followers and b.followers:
            similarity += len(a.followers & b.followers) / max(len(a.followers), len(b.followers)) * 0.3
        if a.following and b.following:
            similarity += len(a.following & b.following) / max(len(a.following), len(b.following)) * 0.3

        a_follows_b = user_b in a.following
        b_follows_a = user_a in b.following
        if a_follows_b and b_follows_a:
            similarity += 0.4
        elif a_follows_b or b_follows_a:
            similarity += 0.2
        return min(similarity, 1.0)

    def distance(self, user_id: str, target_id: str, max_distance: int = 3) -> int | None:
        """Follow hops from user to target, or None when further than max_distance."""
        if user_id not in self.nodes:
            return None
        frontier = {user_id}
        seen = {user_id}
        for hop in range(1, max_distance + 1):
            nxt = set()
            for uid in frontier:
                node = self.nodes.get(uid)
                if node:
                    nxt |= node.following
            nxt -= seen
            if target_id in nxt:
                return hop
            if not nxt:
                return None
            seen |= nxt
            frontier = nxt
        return None


class SocialGraphLoader:
    """Loads the follow graph around a set of users, expanding hop by hop."""

    def __init__(self, repos: Repositories, max_users: int = 1000):
        self.repos = repos
        self.max_users = max_users
        # Cached per loader instance
        self._cached_build = alru_cache(maxsize=500, ttl=300)(self._build)

    async def load(self, user_ids: list[str], depth: int = 1) -> SocialGraph:
        return await self._cached_build(tuple(sorted(set(user_ids))), depth)

    def invalidate(self) -> None:
        """Forget every cached graph, so the next load sees fresh follows."""
        self._cached_build.cache_clear()

    async def _build(self, user_ids: tuple[str, ...], depth: int) -> SocialGraph:
        graph = SocialGraph()
        visited: set[str] = set()
        frontier = set(user_ids)

        for _ in range(max(depth, 1)):
            frontier -= visited
            if not frontier or len(visited) >= self.max_users:
                break
            follows = await self.repos.follows.list_follows(sorted(frontier))
            visited |= frontier
            discovered = set()
            for f in follows:
                graph.add_follow(f.follower_id, f.following_id)
                discovered.add(f.follower_id)
                discovered.add(f.following_id)
            frontier = discovered

        logger.debug(f"Social graph loaded around {len(user_ids)} users: {len(graph.nodes)} nodes")
        return graph
