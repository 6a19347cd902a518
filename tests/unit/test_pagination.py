"""Tests for the continuation-token walker."""

import asyncio

import pytest

from adplay_monitor.exceptions import PaginationCancelled, PaginationOverrun
from adplay_monitor.models import QueryPage, QueryRequest
from adplay_monitor.pagination import iter_pages, walk_query, walk_scan
from tests.fixtures.stores import InMemoryStore, play_item


def _scripted(pages: list[list[int]]):
    """A fetch function returning ``pages`` in order, recording start keys."""
    calls: list[dict | None] = []

    async def fetch(start_key):
        calls.append(start_key)
        index = len(calls) - 1
        more = index + 1 < len(pages)
        return QueryPage(
            items=[{"n": n} for n in pages[index]],
            last_evaluated_key={"page": index + 1} if more else None,
            count=len(pages[index]),
        )

    return fetch, calls


class TestIterPages:
    """Tests for iter_pages."""

    async def test_concatenates_pages_in_order(self) -> None:
        fetch, calls = _scripted([[1, 2], [3, 4], [5]])

        items = []
        async for page in iter_pages(fetch, "plays"):
            items.extend(page.items)

        assert [i["n"] for i in items] == [1, 2, 3, 4, 5]
        assert len(calls) == 3
        assert calls == [None, {"page": 1}, {"page": 2}]

    async def test_single_page(self) -> None:
        fetch, calls = _scripted([[1]])
        pages = [page async for page in iter_pages(fetch, "plays")]
        assert len(pages) == 1
        assert len(calls) == 1

    async def test_empty_first_page_without_token_stops(self) -> None:
        fetch, calls = _scripted([[]])
        pages = [page async for page in iter_pages(fetch, "plays")]
        assert pages[0].items == []
        assert len(calls) == 1

    async def test_overrun(self) -> None:
        fetch, calls = _scripted([[1], [2], [3]])

        with pytest.raises(PaginationOverrun) as exc_info:
            async for _ in iter_pages(fetch, "plays", max_pages=2):
                pass

        assert len(calls) == 2
        assert exc_info.value.max_pages == 2
        assert exc_info.value.table_name == "plays"

    async def test_exact_page_budget_is_enough(self) -> None:
        fetch, calls = _scripted([[1], [2]])
        pages = [page async for page in iter_pages(fetch, "plays", max_pages=2)]
        assert len(pages) == 2

    async def test_cancel_between_pages(self) -> None:
        fetch, calls = _scripted([[1], [2], [3]])
        cancel = asyncio.Event()

        with pytest.raises(PaginationCancelled) as exc_info:
            async for _ in iter_pages(fetch, "plays", cancel=cancel):
                cancel.set()

        assert len(calls) == 1
        assert exc_info.value.pages == 1

    async def test_cancel_before_first_page(self) -> None:
        fetch, calls = _scripted([[1]])
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(PaginationCancelled):
            async for _ in iter_pages(fetch, "plays", cancel=cancel):
                pass
        assert calls == []


class TestWalkers:
    """Tests for walk_query and walk_scan over a paging store."""

    async def test_walk_query_follows_continuation(self) -> None:
        items = [play_item(f"p{i}", device_id="d1") for i in range(5)]
        store = InMemoryStore(tables={"plays": items}, page_size=2)
        request = QueryRequest(table="plays", partition_key="device_id", partition_value="d1")

        result = await walk_query(store, request)

        assert sorted(i["play_id"] for i in result) == ["p0", "p1", "p2", "p3", "p4"]
        assert len(store.queries) == 3
        assert store.queries[0].exclusive_start_key is None
        assert store.queries[1].exclusive_start_key == {"offset": 2}

    async def test_walk_query_overrun(self) -> None:
        items = [play_item(f"p{i}", device_id="d1") for i in range(5)]
        store = InMemoryStore(tables={"plays": items}, page_size=1)
        request = QueryRequest(table="plays", partition_key="device_id", partition_value="d1")

        with pytest.raises(PaginationOverrun):
            await walk_query(store, request, max_pages=3)

    async def test_walk_scan_with_projection(self) -> None:
        items = [{"id": str(i), "channel": f"ch{i % 2}"} for i in range(5)]
        store = InMemoryStore(tables={"labels": items}, page_size=2)

        result = await walk_scan(store, "labels", projection=["channel"])

        assert len(result) == 5
        assert all(set(item) == {"channel"} for item in result)
        assert len(store.scans) == 3
