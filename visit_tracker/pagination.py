import math
from dataclasses import dataclass
from typing import Generic, List, Sequence, TypeVar

from .config import MAX_PAGE_LIMIT
from .models import Pagination
from .results import Result

T = TypeVar("T")


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class PaginatedItems(Generic[T]):
    items: List[T]
    pagination: Pagination


def validate_page_request(page: int, limit: int) -> Result[PageRequest]:
    if page < 1:
        return Result.failure("Page must be at least 1")
    if limit < 1 or limit > MAX_PAGE_LIMIT:
        return Result.failure(f"Limit must be between 1 and {MAX_PAGE_LIMIT}")
    return Result.success(PageRequest(page=page, limit=limit))


def build_pagination(page: int, limit: int, total: int) -> Pagination:
    total_pages = math.ceil(total / limit)
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_previous_page=page > 1,
    )


def paginate(items: Sequence[T], page: int, limit: int) -> Result[PaginatedItems[T]]:
    """
    Slice an already filtered and ordered sequence into one page.

    A page past the end of the data is not an error: it comes back empty with
    metadata describing the full sequence.
    """
    request = validate_page_request(page, limit)
    if not request.ok:
        return Result.failure(request.error, request.kind)

    offset = request.value.offset
    page_items = list(items[offset:offset + limit])
    return Result.success(PaginatedItems(items=page_items, pagination=build_pagination(page, limit, len(items))))
