"""Pagination helpers for the operator item list."""

from __future__ import annotations

import math
from typing import Optional

from fastapi import Response


PAGE_SIZES = (10, 20, 50, 100)
DEFAULT_PAGE_SIZE = 10


def total_pages(total: int, page_size: int) -> int:
    if total <= 0 or page_size < 1:
        return 0
    return math.ceil(total / page_size)


def page_window(page: int, page_size: int) -> tuple[int, int]:
    """Half-open slice bounds of a 1-indexed page."""
    start = (page - 1) * page_size
    return start, start + page_size


def has_next_page(page: int, total: int, page_size: int) -> bool:
    return page < total_pages(total, page_size)


def set_pagination_headers(
    response: Optional[Response],
    *,
    total: Optional[int],
    page: int,
    page_size: int,
) -> None:
    if not response:
        return
    if total is not None:
        response.headers["X-Total-Count"] = str(total)
    response.headers["X-Page"] = str(page)
    response.headers["X-Page-Size"] = str(page_size)
