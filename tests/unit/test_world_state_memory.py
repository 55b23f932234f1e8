"""
Unit tests for the in-memory world state and the record store.

Tests cover:
- Point reads and writes
- Range scans
- Rich queries and pagination completeness
- Failure injection
- RecordStore page size limits
"""

import math

import pytest

from chaincode.asset_registry import codec
from chaincode.asset_registry.config import QueryConfig
from chaincode.asset_registry.errors import (
    InvalidBookmarkError,
    NotFoundError,
    StoreUnavailableError,
    ValidationError,
)
from chaincode.asset_registry.query import Query, collect_results
from chaincode.asset_registry.state import InMemoryWorldState, RecordStore, WorldState


async def seed(state, count, doc_type="asset"):
    for i in range(count):
        record = {"id": f"a{i:03d}", "docType": doc_type, "n": i}
        await state.put_state(record["id"], codec.encode(record))


class TestInMemoryWorldState:
    """Tests for InMemoryWorldState."""

    def test_satisfies_protocol(self):
        """The backend implements the WorldState protocol."""
        assert isinstance(InMemoryWorldState(), WorldState)

    @pytest.mark.asyncio
    async def test_put_and_get(self, state):
        """Stored bytes come back unchanged."""
        await state.put_state("a1", b'{"id":"a1"}')

        assert await state.get_state("a1") == b'{"id":"a1"}'

    @pytest.mark.asyncio
    async def test_absent_key_is_empty(self, state):
        """Absent keys read as empty bytes."""
        assert await state.get_state("missing") == b""

    @pytest.mark.asyncio
    async def test_put_overwrites(self, state):
        """put_state is an unconditional upsert."""
        await state.put_state("a1", b"1")
        await state.put_state("a1", b"2")

        assert await state.get_state("a1") == b"2"
        assert len(state) == 1

    @pytest.mark.asyncio
    async def test_put_rejects_empty_value(self, state):
        """Empty values are rejected."""
        with pytest.raises(ValidationError):
            await state.put_state("a1", b"")

    @pytest.mark.asyncio
    async def test_delete(self, state):
        """Deleted keys read as absent; deleting twice is fine."""
        await state.put_state("a1", b"1")
        await state.delete_state("a1")
        await state.delete_state("a1")

        assert await state.get_state("a1") == b""

    @pytest.mark.asyncio
    async def test_range_scan_half_open(self, state):
        """Range scans cover [start, end) in key order."""
        await seed(state, 5)

        iterator = await state.get_state_by_range("a001", "a003")
        results = []
        async with iterator:
            async for result in iterator:
                results.append(result.key)

        assert results == ["a001", "a002"]

    @pytest.mark.asyncio
    async def test_range_scan_open_ends(self, state):
        """Empty bounds scan everything."""
        await seed(state, 3)

        values = await collect_results(await state.get_state_by_range("", ""))

        assert [v["id"] for v in values] == ["a000", "a001", "a002"]

    @pytest.mark.asyncio
    async def test_query_filters_by_selector(self, state):
        """Rich queries only yield matching records."""
        await seed(state, 3)
        await seed(state, 2, doc_type="paymentDetails")  # overwrites a000, a001

        values = await collect_results(await state.get_query_result(Query.build({"docType": "asset"})))

        assert [v["id"] for v in values] == ["a002"]

    @pytest.mark.asyncio
    async def test_not_connected(self):
        """Operations before connect() fail."""
        state = InMemoryWorldState()

        with pytest.raises(StoreUnavailableError):
            await state.get_state("a1")

    @pytest.mark.asyncio
    async def test_inject_failure_fires_once(self, state):
        """An injected failure affects exactly one operation."""
        state.inject_failure()

        with pytest.raises(StoreUnavailableError):
            await state.get_state("a1")

        assert await state.get_state("a1") == b""


class TestPagination:
    """Pagination over the in-memory backend."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("total,page_size", [(10, 3), (9, 3), (1, 5), (25, 25)])
    async def test_pages_cover_every_record_once(self, state, total, page_size):
        """Following bookmarks visits every match once in ceil(N/P) pages."""
        await seed(state, total)
        query = Query.build({"docType": "asset"})

        seen = []
        pages = 0
        bookmark = ""
        while True:
            iterator, metadata = await state.get_query_result_with_pagination(
                query, page_size, bookmark
            )
            values = await collect_results(iterator)
            assert metadata.fetched_records_count == len(values)
            if not values:
                break
            pages += 1
            seen.extend(v["id"] for v in values)
            bookmark = metadata.bookmark

        assert seen == sorted({f"a{i:03d}" for i in range(total)})
        assert pages == math.ceil(total / page_size)

    @pytest.mark.asyncio
    async def test_unmatched_records_do_not_fill_pages(self, state):
        """Only matching records count towards the page size."""
        for i in range(6):
            doc_type = "asset" if i % 2 == 0 else "paymentDetails"
            record = {"id": f"k{i}", "docType": doc_type}
            await state.put_state(record["id"], codec.encode(record))

        query = Query.build({"docType": "asset"})
        iterator, metadata = await state.get_query_result_with_pagination(query, 2)

        assert [v["id"] for v in await collect_results(iterator)] == ["k0", "k2"]
        assert metadata.fetched_records_count == 2

    @pytest.mark.asyncio
    async def test_foreign_bookmark_rejected(self, state):
        """A bookmark from another query fails the page request."""
        await seed(state, 4)
        _, metadata = await state.get_query_result_with_pagination(
            Query.build({"docType": "asset"}), 2
        )

        with pytest.raises(InvalidBookmarkError):
            await state.get_query_result_with_pagination(
                Query.build({"n": {"$gt": 0}}), 2, metadata.bookmark
            )


class TestRecordStore:
    """Tests for RecordStore over the in-memory backend."""

    @pytest.mark.asyncio
    async def test_get_missing_raises(self, store):
        """Absent keys surface as NotFoundError."""
        with pytest.raises(NotFoundError) as exc_info:
            await store.get("missing")

        assert str(exc_info.value) == "The asset missing does not exist"

    @pytest.mark.asyncio
    async def test_exists(self, store):
        """exists() reflects stored keys."""
        await store.put("a1", b'{"id":"a1"}')

        assert await store.exists("a1") is True
        assert await store.exists("a2") is False

    @pytest.mark.asyncio
    async def test_default_page_size(self, state):
        """A missing page size falls back to the configured default."""
        await seed(state, 5)
        store = RecordStore(state, QueryConfig(default_page_size=2, max_page_size=10))

        iterator, metadata = await store.query_paginated(Query.build({}))
        await iterator.close()

        assert metadata.fetched_records_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page_size", [0, -1, 11])
    async def test_page_size_out_of_range(self, state, page_size):
        """Page sizes outside 1..max are rejected."""
        store = RecordStore(state, QueryConfig(default_page_size=2, max_page_size=10))

        with pytest.raises(ValidationError):
            await store.query_paginated(Query.build({}), page_size)
