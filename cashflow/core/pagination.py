"""Offset pagination helpers for list endpoints."""
from __future__ import annotations

from dataclasses import dataclass

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


@dataclass(frozen=True, slots=True)
class PageRequest:
    page: int
    page_size: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def parse_positive_int(value: int | str | None, *, default: int) -> int:
    """Parse a positive integer, falling back to ``default`` on junk input."""

    try:
        parsed = int(value) if value is not None else default
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def page_request(
    page: int | str | None,
    page_size: int | str | None,
    *,
    max_page_size: int = MAX_PAGE_SIZE,
) -> PageRequest:
    size = min(parse_positive_int(page_size, default=DEFAULT_PAGE_SIZE), max_page_size)
    return PageRequest(page=parse_positive_int(page, default=1), page_size=size)


def iter_pages(fetch, page_size: int):
    """Yield successive batches from ``fetch(offset, limit)`` until a short page."""

    offset = 0
    while True:
        batch = fetch(offset, page_size)
        if batch:
            yield batch
        if len(batch) < page_size:
            return
        offset += page_size


def chunked(items, size: int):
    """Split a sequence into lists of at most ``size`` items."""

    for start in range(0, len(items), size):
        yield items[start : start + size]
