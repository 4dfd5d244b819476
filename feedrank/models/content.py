from datetime import datetime, timezone

from pydantic import BaseModel, Field

from feedrank.models.enums import InteractionKind


class Author(BaseModel):
    id: str
    username: str = ""
    display_name: str | None = None
    # Number of items the author has published, used as a reputation proxy
    item_count: int = 0


class ContentItem(BaseModel):
    """A rankable piece of content as exposed by the content repository."""

    id: str
    title: str = ""
    content: str = ""
    detail_markdown: str = ""
    tags: list[str] = Field(default_factory=list)
    status: str = "public"
    type: str | None = None
    author_id: str | None = None
    author: Author | None = None

    hot_score: float = 0.0
    views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    collections: int = 0
    avg_view_time: float | None = None

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime | None = None
    modified_at: datetime | None = None

    def has_any_tag(self, tags: list[str] | set[str]) -> bool:
        return bool(tags) and any(tag in tags for tag in self.tags)


class InteractionEvent(BaseModel):
    user_id: str
    item_id: str
    kind: InteractionKind
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Follow(BaseModel):
    follower_id: str
    following_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class User(BaseModel):
    id: str
    username: str = ""
    display_name: str | None = None
    status: str = "active"
