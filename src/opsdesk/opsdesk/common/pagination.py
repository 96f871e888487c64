from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, Sequence, TypeVar

from ..core.constants import DEFAULT_PAGE_SIZE

T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    total: int
    total_pages: int
    current_page: int
    page_size: int


def paginate(items: Sequence[T], page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> Page[T]:
    page = max(int(page or 1), 1)
    page_size = max(int(page_size or DEFAULT_PAGE_SIZE), 1)
    start = (page - 1) * page_size
    return Page(
        items=list(items[start : start + page_size]),
        total=len(items),
        total_pages=math.ceil(len(items) / page_size),
        current_page=page,
        page_size=page_size,
    )
