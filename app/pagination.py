from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional

from app.errors import RequestValidationFailed


@dataclass(frozen=True)
class Sort:
    column: Any
    ascending: bool


@dataclass(frozen=True)
class PageRequest:
    page: int
    size: int
    sort: Optional[Sort] = None


@dataclass
class Page:
    items: list[Any]
    page: int
    size: int
    total_elements: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_elements / self.size) if self.size else 0

    @property
    def has_next(self) -> bool:
        return self.page + 1 < self.total_pages


def parse_sort(value: Optional[str], allowed: dict[str, Any], default: str) -> Sort:
    """Parse ``<field>,<direction>``; only a case-insensitive ``asc`` sorts ascending."""
    raw = value if value else default
    parts = [part.strip() for part in raw.split(",")]
    field = parts[0]
    if field not in allowed:
        raise RequestValidationFailed(
            f"Unsupported sort field '{field}'; expected one of: {', '.join(sorted(allowed))}"
        )
    ascending = len(parts) > 1 and parts[1].lower() == "asc"
    return Sort(column=allowed[field], ascending=ascending)


def paginate(query, request: PageRequest, fallback_order=None) -> Page:
    total = query.order_by(None).count()
    offset = request.page * request.size
    if offset >= total:
        return Page(items=[], page=request.page, size=request.size, total_elements=total)

    if request.sort is not None:
        column = request.sort.column
        query = query.order_by(column.asc() if request.sort.ascending else column.desc())
    elif fallback_order is not None:
        query = query.order_by(fallback_order)
    # tiebreaker on id
    entity = query.column_descriptions[0]["entity"]
    query = query.order_by(entity.id)
    rows = query.offset(offset).limit(request.size).all()
    return Page(items=rows, page=request.page, size=request.size, total_elements=total)


def page_meta(page: Page) -> dict:
    return {
        "page": page.page,
        "size": page.size,
        "totalElements": page.total_elements,
        "totalPages": page.total_pages,
        "hasNext": page.has_next,
    }
