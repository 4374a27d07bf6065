"""Page wrapper for list endpoints."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Callable, List

from models import db


@dataclass(frozen=True)
class PageResponse:
    content: List[Any]
    number: int
    size: int
    total_elements: int
    total_pages: int
    first: bool
    last: bool

    def to_dict(self):
        return asdict(self)


def paginate(select, page: int, size: int, mapper: Callable[[Any], Any]) -> PageResponse:
    """Run ``select`` for one 1-based page and map each row with ``mapper``."""
    pagination = db.paginate(select, page=max(page, 1), per_page=max(size, 1), error_out=False)
    return PageResponse(
        content=[mapper(item) for item in pagination.items],
        number=pagination.page,
        size=pagination.per_page,
        total_elements=pagination.total or 0,
        total_pages=pagination.pages,
        first=not pagination.has_prev,
        last=not pagination.has_next,
    )
