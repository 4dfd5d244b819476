"""
Core constants used across the application. Keep these simple and documented.
"""

from feedrank.models.enums import ActivityLevel, Algorithm

# Base blend used when no activity-specific row applies (strategy helper)
BASE_ALGORITHM_WEIGHTS: dict[Algorithm, float] = {
    Algorithm.HOT: 0.22,
    Algorithm.LATEST: 0.22,
    Algorithm.UPDATED: 0.16,
    Algorithm.CONTENT_BASED: 0.17,
    Algorithm.COLLABORATIVE_FILTERING: 0.12,
    Algorithm.SOCIAL_COLLABORATIVE_FILTERING: 0.11,
}

COLD_START_WEIGHTS: dict[Algorithm, float] = {
    Algorithm.HOT: 0.8,
    Algorithm.LATEST: 0.15,
    Algorithm.UPDATED: 0.05,
    Algorithm.CONTENT_BASED: 0.0,
    Algorithm.COLLABORATIVE_FILTERING: 0.0,
    Algorithm.SOCIAL_COLLABORATIVE_FILTERING: 0.0,
}

# Rows favour personalized providers as activity increases.
# LOW and INACTIVE share the default row.
DEFAULT_WEIGHT_ROW: dict[Algorithm, float] = {
    Algorithm.HOT: 0.35,
    Algorithm.LATEST: 0.25,
    Algorithm.UPDATED: 0.2,
    Algorithm.CONTENT_BASED: 0.15,
    Algorithm.COLLABORATIVE_FILTERING: 0.03,
    Algorithm.SOCIAL_COLLABORATIVE_FILTERING: 0.02,
}

ACTIVITY_WEIGHT_TABLE: dict[ActivityLevel, dict[Algorithm, float]] = {
    ActivityLevel.VERY_ACTIVE: {
        Algorithm.HOT: 0.13,
        Algorithm.LATEST: 0.13,
        Algorithm.UPDATED: 0.1,
        Algorithm.CONTENT_BASED: 0.28,
        Algorithm.COLLABORATIVE_FILTERING: 0.18,
        Algorithm.SOCIAL_COLLABORATIVE_FILTERING: 0.18,
    },
    ActivityLevel.ACTIVE: {
        Algorithm.HOT: 0.18,
        Algorithm.LATEST: 0.17,
        Algorithm.UPDATED: 0.12,
        Algorithm.CONTENT_BASED: 0.22,
        Algorithm.COLLABORATIVE_FILTERING: 0.18,
        Algorithm.SOCIAL_COLLABORATIVE_FILTERING: 0.13,
    },
    ActivityLevel.MODERATE: {
        Algorithm.HOT: 0.22,
        Algorithm.LATEST: 0.25,
        Algorithm.UPDATED: 0.15,
        Algorithm.CONTENT_BASED: 0.17,
        Algorithm.COLLABORATIVE_FILTERING: 0.13,
        Algorithm.SOCIAL_COLLABORATIVE_FILTERING: 0.08,
    },
    ActivityLevel.LOW: DEFAULT_WEIGHT_ROW,
    ActivityLevel.INACTIVE: DEFAULT_WEIGHT_ROW,
}

# Activity score thresholds, checked in order
ACTIVITY_LEVEL_THRESHOLDS: list[tuple[float, ActivityLevel]] = [
    (50.0, ActivityLevel.VERY_ACTIVE),
    (30.0, ActivityLevel.ACTIVE),
    (15.0, ActivityLevel.MODERATE),
    (5.0, ActivityLevel.LOW),
]

COLD_START_MIN_INTERACTIONS = 5
# Anonymous and cold-start feeds ask providers for this many times the page size
COLD_START_LIMIT_MULTIPLIER = 2.0
INFINITE_SCROLL_BUFFER = 50

DEFAULT_FEED_LIMIT = 30
DEFAULT_INFINITE_SCROLL_LIMIT = 10
DEFAULT_SEARCH_LIMIT = 50

# TTLs in seconds
CACHE_TTLS: dict[str, int] = {
    "activity": 1800,
    "cold_start": 3600,
    Algorithm.HOT.value: 900,
    Algorithm.LATEST.value: 300,
    Algorithm.UPDATED.value: 600,
    Algorithm.CONTENT_BASED.value: 1800,
    Algorithm.COLLABORATIVE_FILTERING.value: 3600,
    Algorithm.SOCIAL_COLLABORATIVE_FILTERING.value: 3600,
    "mixed": 600,
    "social_score": 1800,
    "stats": 1800,
    "strategy": 3600,
}

# Cache key templates (prefix is added by the cache backend)
ACTIVITY_KEY = "activity:{user_id}"
COLD_START_KEY = "cold_start:{user_id}"
PROVIDER_KEY = "{algorithm}:{scope}:{limit}:{window}:{tags}"
MIXED_KEY = "mixed:{scope}:{limit}:{mode}:{weights}:{tags}"
SOCIAL_SCORE_KEY = "social_score:{user_id}:{item_id}"
STATS_KEY = "stats:{scope}"
STRATEGY_KEY = "strategy:{user_id}:{behavior}"

# Hotness buckets used by the stats endpoint and the hot provider
HOT_THRESHOLD = 100
TRENDING_THRESHOLD = 500
VIRAL_THRESHOLD = 1000

# Strategy rows selected from observed behaviour; later rows win
STRATEGY_WEIGHTS: dict[str, dict[Algorithm, float]] = {
    "personalization": {
        Algorithm.HOT: 0.09,
        Algorithm.LATEST: 0.09,
        Algorithm.UPDATED: 0.09,
        Algorithm.CONTENT_BASED: 0.32,
        Algorithm.COLLABORATIVE_FILTERING: 0.23,
        Algorithm.SOCIAL_COLLABORATIVE_FILTERING: 0.18,
    },
    "social": {
        Algorithm.HOT: 0.13,
        Algorithm.LATEST: 0.09,
        Algorithm.UPDATED: 0.1,
        Algorithm.CONTENT_BASED: 0.18,
        Algorithm.COLLABORATIVE_FILTERING: 0.23,
        Algorithm.SOCIAL_COLLABORATIVE_FILTERING: 0.27,
    },
    "exploration": {
        Algorithm.HOT: 0.2,
        Algorithm.LATEST: 0.25,
        Algorithm.UPDATED: 0.2,
        Algorithm.CONTENT_BASED: 0.17,
        Algorithm.COLLABORATIVE_FILTERING: 0.1,
        Algorithm.SOCIAL_COLLABORATIVE_FILTERING: 0.08,
    },
    "discovery": {
        Algorithm.HOT: 0.5,
        Algorithm.LATEST: 0.3,
        Algorithm.UPDATED: 0.2,
        Algorithm.CONTENT_BASED: 0.0,
        Algorithm.COLLABORATIVE_FILTERING: 0.0,
        Algorithm.SOCIAL_COLLABORATIVE_FILTERING: 0.0,
    },
}
