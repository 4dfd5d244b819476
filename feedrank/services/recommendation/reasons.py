from feedrank.models.enums import Algorithm
from feedrank.models.recommendation import Candidate

GENERIC_REASONS: dict[Algorithm, str] = {
    Algorithm.HOT: "Trending right now",
    Algorithm.LATEST: "Freshly published",
    Algorithm.UPDATED: "Recently updated",
    Algorithm.CONTENT_BASED: "Based on the topics you like",
    Algorithm.COLLABORATIVE_FILTERING: "People with similar taste liked this",
    Algorithm.SOCIAL_COLLABORATIVE_FILTERING: "Popular in your network",
}


def generic_reason(candidate: Candidate) -> str:
    return GENERIC_REASONS.get(candidate.recommendation_type, "Recommended for you")


def attach_reasons(page: list[Candidate]) -> None:
    """Social reasons win; otherwise a generic line by provider type."""
    for candidate in page:
        if candidate.social_reasons:
            candidate.recommendation_reason = candidate.social_reasons[0].text
            candidate.recommendation_reasons = list(candidate.social_reasons)
        else:
            candidate.recommendation_reason = generic_reason(candidate)
