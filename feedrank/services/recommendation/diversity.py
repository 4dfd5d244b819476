from feedrank.models.recommendation import Candidate, Diversity


def analyze_diversity(candidates: list[Candidate]) -> Diversity:
    """Tag and author concentration of a page. Never changes ordering."""
    tags = [tag for c in candidates for tag in c.item.tags]
    authors = [c.item.author_id for c in candidates if c.item.author_id]

    unique_tags = len(set(tags))
    unique_authors = len(set(authors))
    return Diversity(
        tag_diversity=unique_tags / len(tags) if tags else 0.0,
        author_diversity=unique_authors / len(authors) if authors else 0.0,
        unique_tags=unique_tags,
        unique_authors=unique_authors,
        total_tags=len(tags),
        total_authors=len(authors),
    )
