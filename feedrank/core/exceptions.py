class FeedRankError(Exception):
    """Base error for the ranking engine."""


class RepositoryUnavailableError(FeedRankError):
    """A backing repository could not be reached at the transport layer."""


class InvalidWeightsError(FeedRankError, ValueError):
    """Custom weights reference an unknown algorithm or carry a negative value."""
