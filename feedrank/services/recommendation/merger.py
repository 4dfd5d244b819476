from feedrank.models.enums import Algorithm
from feedrank.models.recommendation import Candidate, WeightVector

# Merge order; the first provider to propose an item owns its recommendation_type
PROVIDER_ORDER: tuple[Algorithm, ...] = tuple(Algorithm)


def rank_key(candidate: Candidate) -> tuple[float, str]:
    return -candidate.total_score, candidate.id


def merge_candidates(results: dict[Algorithm, list[Candidate]], weights: WeightVector) -> list[Candidate]:
    """
    Deduplicate provider outputs by item id and sum weighted raw scores.

    Each provider's raw score is recorded in `algorithm_scores` and adds
    `raw * weight` to `total_score`. Scores are not normalized across
    providers. Output is sorted by total score, ties by item id.
    """
    merged: dict[str, Candidate] = {}
    for algorithm in PROVIDER_ORDER:
        weight = weights.get(algorithm, 0.0)
        for candidate in results.get(algorithm, []):
            entry = merged.get(candidate.id)
            if entry is None:
                entry = candidate.model_copy(update={"algorithm_scores": {}, "total_score": 0.0})
                merged[candidate.id] = entry
            entry.algorithm_scores[algorithm] = candidate.score
            entry.total_score += candidate.score * weight

    return sorted(merged.values(), key=rank_key)
