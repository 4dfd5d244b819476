"""Builders for the in-memory fixtures used across the test-suite."""

import fnmatch
import json
from datetime import datetime, timedelta, timezone
from typing import Any

from feedrank.core.exceptions import RepositoryUnavailableError
from feedrank.models.content import Author, ContentItem, Follow, InteractionEvent, User
from feedrank.models.enums import Algorithm, InteractionKind
from feedrank.models.recommendation import Candidate


class FakeCache:
    """Dict-backed cache that stores JSON like Redis does."""

    def __init__(self, fail: bool = False):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            raise RuntimeError("cache unavailable")

    async def get_json(self, key: str) -> Any:
        self._check()
        raw = self.store.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        self._check()
        self.store[key] = json.dumps(value)
        self.ttls[key] = ttl

    async def delete_by_pattern(self, pattern: str) -> int:
        self._check()
        matched = [k for k in self.store if fnmatch.fnmatchcase(k, pattern)]
        for k in matched:
            del self.store[k]
        return len(matched)

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self.store if k.startswith(prefix))


class BrokenContent:
    """Content repository that fails every call, by default as an outage."""

    def __init__(self, error: Exception | None = None):
        self.error = error or RepositoryUnavailableError("content database is down")

    async def find_items(self, **kwargs):
        raise self.error

    async def get_items(self, item_ids):
        raise self.error

    async def count_items(self, **kwargs):
        raise self.error


def ago(now: datetime | None = None, **delta) -> datetime:
    return (now or datetime.now(timezone.utc)) - timedelta(**delta)


def make_item(item_id: str, **fields) -> ContentItem:
    fields.setdefault("title", f"Item {item_id}")
    fields.setdefault("created_at", ago(hours=2))
    return ContentItem(id=item_id, **fields)


def make_candidate(item_id: str, score: float, algorithm: Algorithm = Algorithm.HOT, **item_fields) -> Candidate:
    return Candidate(item=make_item(item_id, **item_fields), score=score, recommendation_type=algorithm)


def like(user_id: str, item_id: str, kind: InteractionKind = InteractionKind.LIKE, **delta) -> InteractionEvent:
    return InteractionEvent(user_id=user_id, item_id=item_id, kind=kind, created_at=ago(**(delta or {"days": 1})))


def seed_data() -> dict[str, list]:
    """
    A small community:

    - alice: heavy user who loves #cats, mutual follow with bob
    - bob: likes #cats too, follows carol
    - carol: publishes #dogs content
    - newbie: no history at all
    """
    authors = {
        "alice": Author(id="alice", username="alice", display_name="Alice", item_count=12),
        "bob": Author(id="bob", username="bob", display_name="Bob", item_count=3),
        "carol": Author(id="carol", username="carol", display_name="Carol", item_count=150),
    }
    users = [
        User(id="alice", username="alice", display_name="Alice"),
        User(id="bob", username="bob", display_name="Bob"),
        User(id="carol", username="carol", display_name="Carol"),
        User(id="newbie", username="newbie"),
    ]
    items = [
        make_item("cat-1", title="Grumpy cat", tags=["cats", "funny"], hot_score=900, author_id="bob",
                  author=authors["bob"], created_at=ago(days=1)),
        make_item("cat-2", title="Cat on a keyboard", tags=["cats"], hot_score=400, author_id="carol",
                  author=authors["carol"], created_at=ago(days=2)),
        make_item("cat-3", title="Sleeping kitten", tags=["cats", "cute"], hot_score=150, author_id="alice",
                  author=authors["alice"], created_at=ago(days=3)),
        make_item("cat-4", title="Cat vs cucumber", tags=["cats", "funny"], hot_score=60, author_id="bob",
                  author=authors["bob"], created_at=ago(days=4)),
        make_item("dog-1", title="Good boy", tags=["dogs"], hot_score=1200, author_id="carol",
                  author=authors["carol"], created_at=ago(hours=5)),
        make_item("dog-2", title="Dog learns to skate", tags=["dogs", "funny"], hot_score=300, author_id="carol",
                  author=authors["carol"], created_at=ago(hours=1), modified_at=ago(minutes=30)),
        make_item("meme-1", title="Distracted boyfriend", tags=["classic"], hot_score=20, author_id="alice",
                  author=authors["alice"], created_at=ago(days=20), modified_at=ago(days=2)),
        make_item("draft-1", title="Unfinished cat draft", tags=["cats"], status="draft", hot_score=5000,
                  author_id="alice", author=authors["alice"]),
    ]
    interactions = [
        like("alice", "cat-1"),
        like("alice", "cat-1", InteractionKind.COMMENT),
        like("alice", "cat-3"),
        like("alice", "cat-4"),
        like("alice", "cat-4", InteractionKind.SHARE),
        like("alice", "dog-1", InteractionKind.VIEW),
        like("bob", "cat-1"),
        like("bob", "cat-2"),
        like("bob", "cat-4"),
        like("bob", "cat-2", InteractionKind.COLLECTION),
        like("carol", "dog-1"),
        like("carol", "dog-2", InteractionKind.SHARE),
    ]
    follows = [
        Follow(follower_id="alice", following_id="bob"),
        Follow(follower_id="bob", following_id="alice"),
        Follow(follower_id="bob", following_id="carol"),
    ]
    return {"users": users, "items": items, "interactions": interactions, "follows": follows}
