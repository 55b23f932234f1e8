"""
In-memory world state implementation for testing.

This module provides a dict-backed world state for:
- Unit tests
- Integration tests
- Local development without a ledger peer

Invariants:
    - All data is lost on process exit
    - Scans iterate over a snapshot taken when the query is issued
    - Scans are in key order, like the SQLite backend

How to change safely:
    - Keep interface compatible with the WorldState protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Dict, List, Optional, Tuple

from ..errors import StoreUnavailableError
from ..query import Query, QueryIterator, QueryResponseMetadata, fetch_page, resolve_start_key
from .base import check_put_args

logger = logging.getLogger(__name__)


class InMemoryWorldState:
    """In-memory implementation of WorldState for testing.

    Thread safety:
        Uses an asyncio lock around mutations. Safe to use from
        multiple coroutines.

    Example:
        >>> state = InMemoryWorldState()
        >>> await state.connect()
        >>> await state.put_state("a1", b'{"docType":"asset","id":"a1"}')
        >>> async with await state.get_query_result(Query.build({})) as results:
        ...     async for result in results:
        ...         print(result.key)
    """

    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}
        self._connected = False
        self._lock = asyncio.Lock()
        self._pending_failure: Optional[Exception] = None

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryWorldState connected")

    async def close(self) -> None:
        """Close and clear all data."""
        self._connected = False
        self._data.clear()
        logger.debug("InMemoryWorldState closed")

    def _check(self) -> None:
        if not self._connected:
            raise StoreUnavailableError("Not connected", backend="memory")
        if self._pending_failure is not None:
            failure, self._pending_failure = self._pending_failure, None
            raise failure

    async def get_state(self, key: str) -> bytes:
        self._check()
        return self._data.get(key, b"")

    async def put_state(self, key: str, value: bytes) -> None:
        self._check()
        check_put_args(key, value)
        async with self._lock:
            self._data[key] = bytes(value)

    async def delete_state(self, key: str) -> None:
        self._check()
        async with self._lock:
            self._data.pop(key, None)

    def _snapshot(self, start_after: Optional[str] = None) -> List[Tuple[str, bytes]]:
        return [
            (key, self._data[key])
            for key in sorted(self._data)
            if start_after is None or key > start_after
        ]

    async def _scan(self, entries: List[Tuple[str, bytes]]) -> AsyncIterator[Tuple[str, bytes]]:
        for entry in entries:
            yield entry

    async def get_state_by_range(self, start_key: str, end_key: str) -> QueryIterator:
        self._check()
        entries = [
            (key, value)
            for key, value in self._snapshot()
            if (not start_key or key >= start_key) and (not end_key or key < end_key)
        ]
        return QueryIterator(self._scan(entries))

    async def get_query_result(self, query: Query) -> QueryIterator:
        self._check()
        return QueryIterator(self._scan(self._snapshot()), query)

    async def get_query_result_with_pagination(
        self,
        query: Query,
        page_size: int,
        bookmark: Optional[str] = None,
    ) -> Tuple[QueryIterator, QueryResponseMetadata]:
        self._check()
        start_after = resolve_start_key(query, bookmark)
        return await fetch_page(self._scan(self._snapshot(start_after)), query, page_size, bookmark)

    # Testing helpers

    def inject_failure(self, exception: Optional[Exception] = None) -> None:
        """Make the next operation raise (StoreUnavailableError by default)."""
        self._pending_failure = exception or StoreUnavailableError(
            "Injected failure", backend="memory"
        )

    def keys(self) -> List[str]:
        """All stored keys in order (testing helper)."""
        return sorted(self._data)

    def raw(self, key: str) -> bytes:
        """Stored bytes for a key without going through the protocol."""
        return self._data.get(key, b"")

    def __len__(self) -> int:
        return len(self._data)
