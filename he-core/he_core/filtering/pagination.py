import math
from dataclasses import dataclass
from typing import Generic, List, Optional, Sequence, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: List[T]
    total: int
    page: int
    total_pages: int


def paginate(items: Sequence[T], page: int = 1, per_page: Optional[int] = 10) -> Page[T]:
    """
    Slice a result list for a paged table. per_page=None shows everything on
    one page. Out-of-range pages are clamped to the last (or first) page.
    """
    total = len(items)
    if per_page is None:
        return Page(items=list(items), total=total, page=1, total_pages=1)
    if per_page <= 0:
        raise ValueError("per_page must be positive")

    total_pages = math.ceil(total / per_page)
    current = min(max(page, 1), total_pages if total_pages > 0 else 1)
    start = (current - 1) * per_page
    return Page(items=list(items[start:start + per_page]), total=total, page=current, total_pages=total_pages)
