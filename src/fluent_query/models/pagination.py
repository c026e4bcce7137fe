"""Page of a select query, returned by ``Query.paginate``."""

from __future__ import annotations

import math
from typing import Any

from pydantic import BaseModel, Field


class Pagination(BaseModel):
    """One page of rows plus the arithmetic needed to render page links.

    Page numbers are 1-based. For an empty result ``total_pages`` and
    ``last_page`` are 0, and ``next_page`` is 0 as well.
    """

    items: list[Any] = Field(default_factory=list, description="Rows on this page.")
    total_items: int = Field(description="Rows matching the query, ignoring pages.")
    total_pages: int
    items_per_page: int
    current_page: int
    last_page: int
    previous_page: int = Field(description="Previous page number, never below 1.")
    next_page: int = Field(description="Next page number, never above last_page.")
    in_first_page: bool
    in_last_page: bool
    has_previous_page: bool
    has_next_page: bool

    @classmethod
    def from_page(
        cls,
        items: list[Any],
        *,
        total_items: int,
        items_per_page: int,
        page: int,
    ) -> Pagination:
        """Derive page numbers and flags for *page* of *total_items* rows."""
        total_pages = math.ceil(total_items / items_per_page) if total_items else 0
        return cls(
            items=items,
            total_items=total_items,
            total_pages=total_pages,
            items_per_page=items_per_page,
            current_page=page,
            last_page=total_pages,
            previous_page=max(1, page - 1),
            next_page=min(total_pages, page + 1),
            in_first_page=page == 1,
            in_last_page=page == total_pages,
            has_previous_page=page > 1,
            has_next_page=page < total_pages,
        )
