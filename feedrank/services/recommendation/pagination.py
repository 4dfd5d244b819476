import math

from feedrank.models.recommendation import Candidate, Pagination


def clamp_page(page: int | None) -> int:
    return page if page and page >= 1 else 1


def clamp_limit(limit: int | None, default: int) -> int:
    return limit if limit and limit > 0 else default


def exclude_seen(candidates: list[Candidate], exclude_ids: list[str] | None) -> list[Candidate]:
    if not exclude_ids:
        return list(candidates)
    excluded = {str(i) for i in exclude_ids}
    return [c for c in candidates if c.id not in excluded]


def paginate(candidates: list[Candidate], page: int, limit: int) -> tuple[list[Candidate], Pagination]:
    """Slice one page out of an already filtered list."""
    skip = (page - 1) * limit
    total = len(candidates)
    has_more = skip + limit < total
    return candidates[skip : skip + limit], Pagination(
        page=page,
        limit=limit,
        skip=skip,
        total=total,
        has_more=has_more,
        total_pages=math.ceil(total / limit) if limit else 0,
        next_page=page + 1 if has_more else None,
    )
