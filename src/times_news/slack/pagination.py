"""Cursor pagination over Slack list methods."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TypeVar

T = TypeVar("T")

PageFetcher = Callable[[str | None], Awaitable[tuple[list[T], str | None]]]


async def paginate(fetch_page: PageFetcher[T]) -> AsyncIterator[T]:
    """Yield items from every page until the cursor runs out.

    Pages are fetched one at a time; the first call gets ``None`` and each
    following call gets the cursor returned by the previous page. Errors from
    ``fetch_page`` propagate unchanged.
    """
    cursor: str | None = None
    while True:
        items, next_cursor = await fetch_page(cursor)
        for item in items:
            yield item
        if not next_cursor:
            return
        cursor = next_cursor
