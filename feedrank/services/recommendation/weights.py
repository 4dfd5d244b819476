from typing import Any

from pydantic import BaseModel, Field, model_validator

from feedrank.core import constants
from feedrank.core.exceptions import InvalidWeightsError
from feedrank.models.activity import ColdStartStatus
from feedrank.models.enums import ActivityLevel, Algorithm
from feedrank.models.recommendation import UserBehavior, WeightVector


def _check_row(name: str, row: dict[Algorithm, float]) -> None:
    missing = [a.value for a in Algorithm if a not in row]
    if missing:
        raise ValueError(f"weight row '{name}' is missing {', '.join(missing)}")
    negative = [a.value for a, w in row.items() if w < 0]
    if negative:
        raise ValueError(f"weight row '{name}' has negative weights for {', '.join(negative)}")


class EngineConfig(BaseModel):
    """Tunable tables and limits of the recommendation engine."""

    weight_table: dict[ActivityLevel, dict[Algorithm, float]] = Field(
        default_factory=lambda: {k: dict(v) for k, v in constants.ACTIVITY_WEIGHT_TABLE.items()}
    )
    cold_start_weights: dict[Algorithm, float] = Field(default_factory=lambda: dict(constants.COLD_START_WEIGHTS))
    base_weights: dict[Algorithm, float] = Field(default_factory=lambda: dict(constants.BASE_ALGORITHM_WEIGHTS))
    strategy_weights: dict[str, dict[Algorithm, float]] = Field(
        default_factory=lambda: {k: dict(v) for k, v in constants.STRATEGY_WEIGHTS.items()}
    )
    ttls: dict[str, int] = Field(default_factory=lambda: dict(constants.CACHE_TTLS))

    cold_start_min_interactions: int = constants.COLD_START_MIN_INTERACTIONS
    cold_start_limit_multiplier: float = constants.COLD_START_LIMIT_MULTIPLIER
    infinite_scroll_buffer: int = constants.INFINITE_SCROLL_BUFFER
    default_feed_limit: int = constants.DEFAULT_FEED_LIMIT
    default_infinite_scroll_limit: int = constants.DEFAULT_INFINITE_SCROLL_LIMIT

    provider_timeout_seconds: float = 10.0
    scan_limit: int = 5000
    user_scan_limit: int = 1000

    @model_validator(mode="after")
    def _validate_tables(self) -> "EngineConfig":
        missing_levels = [lvl.value for lvl in ActivityLevel if lvl not in self.weight_table]
        if missing_levels:
            raise ValueError(f"weight table has no row for {', '.join(missing_levels)}")
        for level, row in self.weight_table.items():
            _check_row(level.value, row)
        _check_row("cold_start", self.cold_start_weights)
        _check_row("base", self.base_weights)
        for name, row in self.strategy_weights.items():
            _check_row(name, row)
        return self

    def ttl(self, name: str) -> int:
        return self.ttls.get(name, 600)

    @classmethod
    def from_settings(cls, settings: Any) -> "EngineConfig":
        return cls(
            provider_timeout_seconds=settings.PROVIDER_TIMEOUT_SECONDS,
            default_feed_limit=settings.DEFAULT_FEED_LIMIT,
            scan_limit=settings.SCAN_LIMIT,
            user_scan_limit=settings.USER_SCAN_LIMIT,
        )


def parse_weight_overrides(overrides: dict[str, float] | None) -> WeightVector:
    """Validate caller supplied weights, keyed by algorithm name."""
    parsed: WeightVector = {}
    for key, value in (overrides or {}).items():
        try:
            algorithm = Algorithm(key)
        except ValueError:
            raise InvalidWeightsError(f"Unknown algorithm '{key}'") from None
        if value is None or value < 0:
            raise InvalidWeightsError(f"Weight for '{key}' must be >= 0, got {value}")
        parsed[algorithm] = float(value)
    return parsed


class WeightAdjuster:
    """
    Maps a cold-start status to per-provider weights.

    Pure and deterministic: cold-start users get the hot-heavy row, everyone
    else the row of their activity level, and caller overrides win last.
    A missing status (analysis skipped) selects the default row.
    """

    def __init__(self, config: EngineConfig):
        self.config = config

    def adjust(self, status: ColdStartStatus | None, overrides: dict[str, float] | None = None) -> WeightVector:
        custom = parse_weight_overrides(overrides)

        if status is not None and status.is_cold_start:
            weights = dict(self.config.cold_start_weights)
        else:
            level = status.activity_profile.level if status else ActivityLevel.INACTIVE
            weights = dict(self.config.weight_table[level])

        weights.update(custom)
        return {a: weights[a] for a in Algorithm}

    def strategy(self, behavior: UserBehavior, cold_start: bool) -> tuple[WeightVector, str]:
        """Pick a strategy row from observed behaviour. Returns (weights, focus)."""
        weights = dict(self.config.base_weights)
        focus = "balanced"
        rules = [
            (behavior.click_rate > 0.3, "personalization"),
            (behavior.engagement_rate > 0.5, "social"),
            (behavior.diversity_preference > 0.7, "exploration"),
            (cold_start, "discovery"),
        ]
        for matched, name in rules:
            if matched:
                weights.update(self.config.strategy_weights[name])
                focus = name
        return {a: weights[a] for a in Algorithm}, focus
