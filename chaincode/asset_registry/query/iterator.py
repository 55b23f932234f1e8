"""
Single-pass query iterators over world state entries.

A QueryIterator wraps a backend scan (an async iterator of (key, bytes)
pairs), decodes each entry leniently, applies the query selector and the
projection, and hands back QueryResult objects.

Invariants:
    - Forward-only and single-pass; restart by issuing a new query
    - One malformed entry never aborts enumeration: its raw text is
      surfaced as the value
    - Consuming after close() raises IteratorClosedError
    - close() releases the backend scan (cursor/connection)

How to change safely:
    - Backends must hand over scans in key order; fetch_page() relies on it
      to make bookmarks resumable
    - Keep next() the only place that decodes entries
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from .. import codec
from ..errors import IteratorClosedError, ValidationError
from .bookmark import decode_bookmark, encode_bookmark
from .selector import Query

logger = logging.getLogger(__name__)

Entry = Tuple[str, bytes]


@dataclass(frozen=True)
class QueryResult:
    """One entry produced by a query.

    Attributes:
        key: World state key
        value: Decoded (and projected) record, or raw text if malformed
        raw: Stored bytes as read from the world state
        is_malformed: True when value is the raw text fallback
    """

    key: str
    value: Any
    raw: bytes = b""
    is_malformed: bool = False


@dataclass(frozen=True)
class QueryResponseMetadata:
    """Pagination metadata returned alongside a page.

    Attributes:
        fetched_records_count: Number of records in this page
        bookmark: Bookmark to pass for the next page
    """

    fetched_records_count: int
    bookmark: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "RecordsCount": self.fetched_records_count,
            "Bookmark": self.bookmark,
        }


class QueryIterator:
    """Cursor over query results with owned position state.

    Example:
        >>> async with await store.query(query) as results:
        ...     async for result in results:
        ...         print(result.key, result.value)
    """

    def __init__(self, source: AsyncIterator[Entry], query: Optional[Query] = None) -> None:
        """Initialize the iterator.

        Args:
            source: Backend scan yielding (key, bytes) in key order
            query: Optional query to filter and project with
        """
        self._source = source
        self._query = query
        self._closed = False
        self._exhausted = False
        self.fetched = 0
        self.last_key: Optional[str] = None

    @property
    def closed(self) -> bool:
        return self._closed

    async def next(self) -> QueryResult:
        """Advance to the next matching entry.

        Raises:
            StopAsyncIteration: When the scan is exhausted
            IteratorClosedError: If the iterator was closed
        """
        if self._closed:
            raise IteratorClosedError()
        if self._exhausted:
            raise StopAsyncIteration

        while True:
            try:
                key, raw = await self._source.__anext__()
            except StopAsyncIteration:
                self._exhausted = True
                raise

            decoded = codec.decode_lenient(raw)
            if self._query is not None and not self._query.matches(decoded.value):
                continue

            if decoded.malformed:
                logger.warning("Malformed record surfaced as raw text", extra={"key": key})
                value = decoded.value
            elif self._query is not None:
                value = self._query.project(decoded.value)
            else:
                value = decoded.value

            self.fetched += 1
            self.last_key = key
            return QueryResult(key=key, value=value, raw=bytes(raw), is_malformed=decoded.malformed)

    async def close(self) -> None:
        """Release the underlying scan. Closing twice is a no-op."""
        if self._closed:
            return
        self._closed = True
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            await aclose()

    def __aiter__(self) -> QueryIterator:
        return self

    async def __anext__(self) -> QueryResult:
        return await self.next()

    async def __aenter__(self) -> QueryIterator:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()


async def _replay(entries: List[Entry]) -> AsyncIterator[Entry]:
    for entry in entries:
        yield entry


async def collect_results(iterator: QueryIterator) -> List[Any]:
    """Drain an iterator into a list of values, always closing it."""
    async with iterator:
        return [result.value async for result in iterator]


async def fetch_page(
    source: AsyncIterator[Entry],
    query: Query,
    page_size: int,
    bookmark: Optional[str] = None,
) -> Tuple[QueryIterator, QueryResponseMetadata]:
    """Evaluate one page of a query over a key-ordered scan.

    The backend scan must already start after the key the bookmark
    resolves to (see resolve_start_key()).

    Args:
        source: Backend scan in key order, starting after the bookmark key
        query: Query to evaluate
        page_size: Maximum records in the page
        bookmark: Bookmark the scan was started from

    Returns:
        Tuple of (iterator over the page, pagination metadata)
    """
    if page_size <= 0:
        raise ValidationError("page_size must be a positive integer", field_name="page_size")

    scan = QueryIterator(source, query)
    page: List[Entry] = []
    async with scan:
        while len(page) < page_size:
            try:
                result = await scan.next()
            except StopAsyncIteration:
                break
            page.append((result.key, result.raw))

    if page:
        next_bookmark = encode_bookmark(page[-1][0], query)
    else:
        next_bookmark = bookmark or ""

    metadata = QueryResponseMetadata(fetched_records_count=len(page), bookmark=next_bookmark)
    return QueryIterator(_replay(page), query), metadata


def resolve_start_key(query: Query, bookmark: Optional[str]) -> Optional[str]:
    """Key a paginated scan must start after (None for the first page)."""
    return decode_bookmark(bookmark, query)
