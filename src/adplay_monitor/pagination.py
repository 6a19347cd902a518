"""Continuation-token walker over paged store reads.

The store can grow without bound between calls, so every walk is capped at
``max_pages`` and can be cancelled between pages through an asyncio.Event.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

from .exceptions import PaginationCancelled, PaginationOverrun
from .models import QueryPage, QueryRequest
from .repository_protocol import StoreProtocol

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 1000


async def iter_pages(
    fetch_page: Callable[[dict[str, Any] | None], Awaitable[QueryPage]],
    table: str,
    *,
    max_pages: int = DEFAULT_MAX_PAGES,
    cancel: asyncio.Event | None = None,
) -> AsyncIterator[QueryPage]:
    """
    Yield pages until the store stops returning a continuation token.

    Args:
        fetch_page: Coroutine fetching the page after a start key (None first)
        table: Table name, for errors and logs
        max_pages: Ceiling on the number of pages fetched
        cancel: Event checked before each page request

    Raises:
        PaginationOverrun: If more than ``max_pages`` pages would be needed
        PaginationCancelled: If ``cancel`` is set between pages
    """
    start_key: dict[str, Any] | None = None
    pages = 0
    while True:
        if cancel is not None and cancel.is_set():
            raise PaginationCancelled(table, pages)
        if pages >= max_pages:
            logger.warning("Pagination over %s stopped at %d pages", table, pages)
            raise PaginationOverrun(table, max_pages)

        page = await fetch_page(start_key)
        pages += 1
        yield page

        if not page.has_more:
            logger.debug("Pagination over %s finished after %d pages", table, pages)
            return
        start_key = page.last_evaluated_key


async def walk_query(
    store: StoreProtocol,
    request: QueryRequest,
    *,
    max_pages: int = DEFAULT_MAX_PAGES,
    cancel: asyncio.Event | None = None,
) -> list[dict[str, Any]]:
    """Run a key query to exhaustion and return every matching item."""

    async def fetch(start_key: dict[str, Any] | None) -> QueryPage:
        return await store.query(request.with_start_key(start_key))

    items: list[dict[str, Any]] = []
    async for page in iter_pages(fetch, request.table, max_pages=max_pages, cancel=cancel):
        items.extend(page.items)
    return items


async def walk_scan(
    store: StoreProtocol,
    table: str,
    *,
    projection: list[str] | None = None,
    max_pages: int = DEFAULT_MAX_PAGES,
    cancel: asyncio.Event | None = None,
) -> list[dict[str, Any]]:
    """Scan a whole table and return every item."""

    async def fetch(start_key: dict[str, Any] | None) -> QueryPage:
        return await store.scan(table, exclusive_start_key=start_key, projection=projection)

    items: list[dict[str, Any]] = []
    async for page in iter_pages(fetch, table, max_pages=max_pages, cancel=cancel):
        items.extend(page.items)
    return items
