from typing import Literal

from pydantic import BaseModel, Field

from feedrank.models.enums import ActivityLevel


class InteractionBreakdown(BaseModel):
    likes: int = 0
    comments: int = 0
    shares: int = 0
    collections: int = 0
    views: int = 0

    @property
    def total(self) -> int:
        return self.likes + self.comments + self.shares + self.collections + self.views


class ActivityProfile(BaseModel):
    """Interaction volume of a user. Derived per request, never persisted."""

    score: float = 0.0
    level: ActivityLevel = ActivityLevel.INACTIVE
    total_interactions: int = 0
    breakdown: InteractionBreakdown = Field(default_factory=InteractionBreakdown)


class TagPreferences(BaseModel):
    preferences: dict[str, float] = Field(default_factory=dict)
    interaction_counts: dict[str, int] = Field(default_factory=dict)
    total_interactions: int = 0
    confidence: float = 0.0


class ColdStartStatus(BaseModel):
    is_cold_start: bool = True
    activity_profile: ActivityProfile = Field(default_factory=ActivityProfile)
    tag_preferences: dict[str, float] = Field(default_factory=dict)
    recommended_mode: Literal["hot", "mixed"] = "hot"

    @classmethod
    def fallback(cls) -> "ColdStartStatus":
        """Status used when the history cannot be computed."""
        return cls(is_cold_start=True, activity_profile=ActivityProfile(), recommended_mode="hot")
