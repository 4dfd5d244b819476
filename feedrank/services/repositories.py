import json
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Literal, Protocol

from loguru import logger

from feedrank.models.content import ContentItem, Follow, InteractionEvent, User
from feedrank.models.enums import InteractionKind

ItemSort = Literal["hot_score", "created_at", "modified_at"]


class UserRepository(Protocol):
    async def get_user(self, user_id: str) -> User | None: ...

    async def list_active_user_ids(self, limit: int) -> list[str]: ...


class ContentRepository(Protocol):
    async def find_items(
        self,
        *,
        status: str = "public",
        created_after: datetime | None = None,
        modified_after: datetime | None = None,
        tags: list[str] | None = None,
        sort_by: ItemSort = "hot_score",
        limit: int = 50,
    ) -> list[ContentItem]: ...

    async def get_items(self, item_ids: list[str]) -> list[ContentItem]: ...

    async def count_items(self, *, status: str = "public", min_hot_score: float | None = None) -> int: ...


class InteractionStore(Protocol):
    """Read access to one kind of interaction event (likes, comments, ...)."""

    kind: InteractionKind

    async def count_by_user(self, user_id: str) -> int: ...

    async def list_by_user(self, user_id: str) -> list[InteractionEvent]: ...

    async def list_by_item(self, item_id: str) -> list[InteractionEvent]: ...

    async def list_by_users(self, user_ids: list[str]) -> list[InteractionEvent]: ...


class FollowRepository(Protocol):
    async def list_follows(self, user_ids: list[str]) -> list[Follow]: ...


@dataclass
class Repositories:
    """Bundle of the read-only collaborators the engine consumes."""

    users: UserRepository
    content: ContentRepository
    interactions: dict[InteractionKind, InteractionStore]
    follows: FollowRepository

    def interaction_store(self, kind: InteractionKind) -> InteractionStore:
        return self.interactions[kind]


@dataclass
class _MemoryInteractionStore:
    kind: InteractionKind
    events: list[InteractionEvent] = field(default_factory=list)

    async def count_by_user(self, user_id: str) -> int:
        return sum(1 for ev in self.events if ev.user_id == user_id)

    async def list_by_user(self, user_id: str) -> list[InteractionEvent]:
        return [ev for ev in self.events if ev.user_id == user_id]

    async def list_by_item(self, item_id: str) -> list[InteractionEvent]:
        return [ev for ev in self.events if ev.item_id == item_id]

    async def list_by_users(self, user_ids: list[str]) -> list[InteractionEvent]:
        wanted = set(user_ids)
        return [ev for ev in self.events if ev.user_id in wanted]


class InMemoryRepository:
    """
    Process-local implementation of every repository protocol.

    Used by the test-suite and for local runs seeded from a JSON file with
    the keys "users", "items", "interactions" and "follows".
    """

    def __init__(
        self,
        users: list[User] | None = None,
        items: list[ContentItem] | None = None,
        interactions: list[InteractionEvent] | None = None,
        follows: list[Follow] | None = None,
    ):
        self._users: dict[str, User] = {u.id: u for u in users or []}
        self._items: dict[str, ContentItem] = {it.id: it for it in items or []}
        self._follows: list[Follow] = list(follows or [])
        grouped: dict[InteractionKind, list[InteractionEvent]] = defaultdict(list)
        for ev in interactions or []:
            grouped[ev.kind].append(ev)
        self._stores = {kind: _MemoryInteractionStore(kind, grouped[kind]) for kind in InteractionKind}

    @classmethod
    def from_json_file(cls, path: str | Path) -> "InMemoryRepository":
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        repo = cls(
            users=[User.model_validate(u) for u in data.get("users", [])],
            items=[ContentItem.model_validate(it) for it in data.get("items", [])],
            interactions=[InteractionEvent.model_validate(ev) for ev in data.get("interactions", [])],
            follows=[Follow.model_validate(f) for f in data.get("follows", [])],
        )
        logger.info(f"Seeded in-memory repository from {path}: {len(repo._items)} items, {len(repo._users)} users")
        return repo

    def as_repositories(self) -> Repositories:
        return Repositories(users=self, content=self, interactions=dict(self._stores), follows=self)

    def add_item(self, item: ContentItem) -> None:
        self._items[item.id] = item

    def add_interaction(self, event: InteractionEvent) -> None:
        self._stores[event.kind].events.append(event)

    def add_follow(self, follow: Follow) -> None:
        self._follows.append(follow)

    # Users

    async def get_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    async def list_active_user_ids(self, limit: int) -> list[str]:
        return [u.id for u in self._users.values() if u.status == "active"][:limit]

    # Content

    async def find_items(
        self,
        *,
        status: str = "public",
        created_after: datetime | None = None,
        modified_after: datetime | None = None,
        tags: list[str] | None = None,
        sort_by: ItemSort = "hot_score",
        limit: int = 50,
    ) -> list[ContentItem]:
        found = []
        for it in self._items.values():
            if status and it.status != status:
                continue
            if created_after and it.created_at < created_after:
                continue
            if modified_after and (it.modified_at is None or it.modified_at < modified_after):
                continue
            if tags and not it.has_any_tag(tags):
                continue
            found.append(it)

        if sort_by == "created_at":
            found.sort(key=lambda x: x.created_at, reverse=True)
        elif sort_by == "modified_at":
            found.sort(key=lambda x: x.modified_at or x.created_at, reverse=True)
        else:
            found.sort(key=lambda x: x.hot_score, reverse=True)
        return [it.model_copy(deep=True) for it in found[:limit]]

    async def get_items(self, item_ids: list[str]) -> list[ContentItem]:
        return [self._items[i].model_copy(deep=True) for i in item_ids if i in self._items]

    async def count_items(self, *, status: str = "public", min_hot_score: float | None = None) -> int:
        return sum(
            1
            for it in self._items.values()
            if it.status == status and (min_hot_score is None or it.hot_score >= min_hot_score)
        )

    # Follows

    async def list_follows(self, user_ids: list[str]) -> list[Follow]:
        wanted = set(user_ids)
        return [f for f in self._follows if f.follower_id in wanted or f.following_id in wanted]
