import difflib
from dataclasses import dataclass, field

from feedrank.models.content import ContentItem

# Field weights, strongest first
FIELD_WEIGHTS: dict[str, float] = {
    "title": 0.8,
    "tags": 0.7,
    "content": 0.6,
    "detail_markdown": 0.4,
    "author.display_name": 0.1,
    "author.username": 0.05,
}

MATCH_THRESHOLD = 0.3
MIN_MATCH_LENGTH = 2


@dataclass
class FuzzyMatch:
    distance: float
    matched_fields: list[str] = field(default_factory=list)


def partial_similarity(query: str, text: str) -> float:
    """
    Best similarity of the query against any same-length window of the text.

    Windows are anchored on the matching blocks difflib finds, so long
    texts are not scanned character by character.
    """
    if not query or not text:
        return 0.0
    if query in text:
        return 1.0
    if len(text) <= len(query):
        return difflib.SequenceMatcher(None, query, text).ratio()

    best = 0.0
    matcher = difflib.SequenceMatcher(None, query, text, autojunk=False)
    for block in matcher.get_matching_blocks():
        if block.size < MIN_MATCH_LENGTH:
            continue
        start = max(block.b - block.a, 0)
        window = text[start : start + len(query)]
        best = max(best, difflib.SequenceMatcher(None, query, window).ratio())
        if best == 1.0:
            break
    return best


def _field_values(item: ContentItem) -> dict[str, list[str]]:
    author = item.author
    return {
        "title": [item.title],
        "tags": list(item.tags),
        "content": [item.content],
        "detail_markdown": [item.detail_markdown],
        "author.display_name": [author.display_name or ""] if author else [],
        "author.username": [author.username] if author else [],
    }


class FuzzyMatcher:
    """Weighted, case-insensitive approximate matching over an item's text fields."""

    def __init__(self, weights: dict[str, float] | None = None, threshold: float = MATCH_THRESHOLD):
        self.weights = weights or FIELD_WEIGHTS
        self.threshold = threshold

    def match(self, item: ContentItem, query: str) -> FuzzyMatch | None:
        """Return the item's distance to the query, or None when it does not match."""
        query = query.strip().lower()
        if len(query) < MIN_MATCH_LENGTH:
            return None

        weighted = 0.0
        total_weight = 0.0
        matched = []
        for name, values in _field_values(item).items():
            texts = [v.lower() for v in values if v]
            if not texts:
                continue
            distance = 1 - max(partial_similarity(query, t) for t in texts)
            if distance > self.threshold:
                continue
            weight = self.weights.get(name, 0.0)
            weighted += distance * weight
            total_weight += weight
            matched.append(name)

        if not matched or total_weight <= 0:
            return None
        return FuzzyMatch(distance=weighted / total_weight, matched_fields=matched)
