"""Paginated fetching around the backend's fixed per-request row cap."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import Any, Protocol

from .config import PAGE_SIZE
from .models import Page
from .query import QueryDescriptor

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class SupportsSelect(Protocol):
    def select(self, descriptor: QueryDescriptor) -> Page: ...


def iter_pages(fetch: Callable[[int, int], list[Row]], page_size: int = PAGE_SIZE) -> Iterator[list[Row]]:
    """Yield successive non-empty pages from ``fetch(offset, limit)``.

    Stops after the first page shorter than ``page_size`` (including an empty
    one). The generator is finite and cannot be rewound; start a new one for a
    new fetch cycle.
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    offset = 0
    while True:
        rows = fetch(offset, page_size)
        logger.debug("Fetched page offset=%s rows=%s", offset, len(rows))
        if rows:
            yield rows
        if len(rows) < page_size:
            return
        offset += page_size


def fetch_all(store: SupportsSelect, descriptor: QueryDescriptor, page_size: int = PAGE_SIZE) -> list[Row]:
    """Fetch every row matching ``descriptor``, one window of ``page_size`` at a time.

    Any failing page aborts the cycle; rows accumulated so far are discarded
    with the local accumulator and the error propagates to the caller.
    """
    unbounded = descriptor.with_count(False)

    def _fetch(offset: int, limit: int) -> list[Row]:
        return store.select(unbounded.with_window(offset, limit)).rows

    rows: list[Row] = []
    pages = 0
    for page in iter_pages(_fetch, page_size):
        rows.extend(page)
        pages += 1
    logger.info("Fetched %s rows from %s in %s page(s)", len(rows), descriptor.table, pages)
    return rows


def fetch_page(
    store: SupportsSelect,
    descriptor: QueryDescriptor,
    page: int,
    page_size: int,
    *,
    with_count: bool = False,
) -> Page:
    """Single bounded round trip for UI-driven pagination."""
    if page < 0 or page_size <= 0:
        raise ValueError("page must be >= 0 and page_size > 0")
    bounded = descriptor.with_window(page * page_size, page_size).with_count(with_count)
    result = store.select(bounded)
    return Page(rows=result.rows, count=result.count if with_count else None)
