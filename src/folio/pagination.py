"""Pagination window over a visible set.

Pages are 1-based.  The current page always satisfies
``1 <= current_page <= total_pages`` where ``total_pages`` is at least 1,
so an empty visible set still has one (empty) page.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")


def total_pages_for(total_items: int, page_size: int) -> int:
    """Number of pages needed for *total_items*, never less than 1."""
    return max(1, math.ceil(max(0, total_items) / page_size))


class PaginationWindow:
    """Clamped page cursor for a list view."""

    def __init__(self, page_size: int, *, total_items: int = 0) -> None:
        self._page_size = _validate_page_size(page_size)
        self._total_items = max(0, total_items)
        self._current_page = 1

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def total_items(self) -> int:
        return self._total_items

    @property
    def current_page(self) -> int:
        return self._current_page

    @property
    def total_pages(self) -> int:
        return total_pages_for(self._total_items, self._page_size)

    @property
    def has_next(self) -> bool:
        return self._current_page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self._current_page > 1

    def set_page_size(self, page_size: int) -> None:
        """Change the page size and return to page 1."""
        self._page_size = _validate_page_size(page_size)
        self._current_page = 1

    def go_to(self, page_number: int) -> int:
        """Move to *page_number*, clamped to ``[1, total_pages]``."""
        self._current_page = min(max(1, int(page_number)), self.total_pages)
        return self._current_page

    def next(self) -> int:
        """Advance one page; no-op on the last page."""
        return self.go_to(self._current_page + 1)

    def previous(self) -> int:
        """Go back one page; no-op on the first page."""
        return self.go_to(self._current_page - 1)

    def sync(self, total_items: int) -> bool:
        """Record a new visible-set size and clamp the current page.

        Returns True when the current page had to move.
        """
        self._total_items = max(0, total_items)
        last = self.total_pages
        if self._current_page > last:
            self._current_page = last
            return True
        return False

    def current_slice(self, visible: Sequence[T]) -> Sequence[T]:
        """Return the items of *visible* on the current page."""
        start = (self._current_page - 1) * self._page_size
        return visible[start : start + self._page_size]


def _validate_page_size(page_size: int) -> int:
    if isinstance(page_size, bool) or not isinstance(page_size, int) or page_size < 1:
        raise ValueError(f"page_size must be a positive integer, got {page_size!r}")
    return page_size
