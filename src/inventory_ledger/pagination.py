"""Page window math shared by the product and adjustment listings."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True, frozen=True)
class PageWindow:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def unbounded(self) -> bool:
        """A zero limit means "every active row on one page"."""

        return not self.limit


def page_window(page: int = 1, limit: int = 0, *, max_limit: Optional[int] = None) -> PageWindow:
    if page < 1:
        raise ValueError("page must be >= 1")
    if limit < 0:
        raise ValueError("limit must be >= 0")
    if max_limit is not None and limit > max_limit:
        limit = max_limit
    return PageWindow(page=page, limit=limit)


def total_pages(total_items: int, limit: int) -> int:
    if not limit:
        return 1
    return math.ceil(total_items / limit)
