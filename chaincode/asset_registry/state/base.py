"""
Base protocol and record store for the world state abstraction.

This module defines the WorldState protocol that all backends must
implement (the raw key-value collaborator), and RecordStore, the thin
layer the contract services talk to.

Invariants:
    - get_state() returns b"" for absent keys; RecordStore.get() turns that
      into NotFoundError
    - Scans are handed out in key order
    - Backend I/O failures surface as StoreUnavailableError

How to change safely:
    - Protocol changes require updating all implementations
    - Keep RecordStore free of record semantics (no docType knowledge)
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Optional, Protocol, Tuple, runtime_checkable
import logging

from ..config import QueryConfig, RegistryConfig, StateBackend
from ..errors import NotFoundError, ValidationError
from ..query import Query, QueryIterator, QueryResponseMetadata

logger = logging.getLogger(__name__)


@runtime_checkable
class WorldState(Protocol):
    """Protocol for world state backends.

    Consistency contract:
        - Reads observe every write already committed to the store
        - Conflicting concurrent writes are detected outside this core;
          a backend reports them by raising, which fails the operation

    Example:
        >>> state = InMemoryWorldState()
        >>> await state.connect()
        >>> await state.put_state("a1", b'{"id":"a1"}')
        >>> await state.get_state("a1")
        b'{"id":"a1"}'
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the backend. Must be called before any other operation.

        Raises:
            StoreUnavailableError: If the backend cannot be opened
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""
        ...

    @abstractmethod
    async def get_state(self, key: str) -> bytes:
        """Point lookup.

        Returns:
            Stored bytes, or b"" if the key is absent

        Raises:
            StoreUnavailableError: On backend failure
        """
        ...

    @abstractmethod
    async def put_state(self, key: str, value: bytes) -> None:
        """Unconditional upsert.

        Raises:
            ValidationError: If key or value is empty
            StoreUnavailableError: On backend failure
        """
        ...

    @abstractmethod
    async def delete_state(self, key: str) -> None:
        """Remove a key. Absent keys are ignored."""
        ...

    @abstractmethod
    async def get_state_by_range(self, start_key: str, end_key: str) -> QueryIterator:
        """Scan keys in [start_key, end_key); empty strings are open ends."""
        ...

    @abstractmethod
    async def get_query_result(self, query: Query) -> QueryIterator:
        """Evaluate a rich query over every record.

        Returns:
            Lazy single-pass iterator; the caller must close it
        """
        ...

    @abstractmethod
    async def get_query_result_with_pagination(
        self,
        query: Query,
        page_size: int,
        bookmark: Optional[str] = None,
    ) -> Tuple[QueryIterator, QueryResponseMetadata]:
        """Evaluate one page of a rich query.

        Raises:
            InvalidBookmarkError: If the bookmark does not resolve
        """
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the backend is open."""
        ...


def check_put_args(key: str, value: bytes) -> None:
    """Shared argument checks for put_state()."""
    if not key:
        raise ValidationError("Key must not be empty", field_name="key")
    if not value:
        raise ValidationError(f"Value for key {key} must not be empty", field_name="value")


class RecordStore:
    """Key-value operations the contract services are written against.

    Attributes:
        state: Underlying world state backend
        query_config: Page size defaults and limits
    """

    def __init__(self, state: WorldState, query_config: Optional[QueryConfig] = None) -> None:
        self.state = state
        self.query_config = query_config or QueryConfig()

    async def put(self, key: str, value: bytes) -> None:
        await self.state.put_state(key, value)
        logger.debug("State written", extra={"key": key, "size": len(value)})

    async def get(self, key: str) -> bytes:
        """Point lookup.

        Raises:
            NotFoundError: If the key is absent or its value is empty
        """
        value = await self.state.get_state(key)
        if not value:
            raise NotFoundError(key)
        return value

    async def exists(self, key: str) -> bool:
        value = await self.state.get_state(key)
        return bool(value)

    async def query(self, query: Query) -> QueryIterator:
        return await self.state.get_query_result(query)

    async def query_paginated(
        self,
        query: Query,
        page_size: Optional[int] = None,
        bookmark: Optional[str] = None,
    ) -> Tuple[QueryIterator, QueryResponseMetadata]:
        """Evaluate one page of a query.

        Args:
            query: Parsed query
            page_size: Records per page (configured default if None)
            bookmark: Bookmark from the previous page, empty to start

        Raises:
            ValidationError: If page_size is out of range
            InvalidBookmarkError: If the bookmark does not resolve
        """
        if page_size is None:
            page_size = self.query_config.default_page_size
        if page_size <= 0:
            raise ValidationError("page_size must be a positive integer", field_name="page_size")
        if page_size > self.query_config.max_page_size:
            raise ValidationError(
                f"page_size {page_size} exceeds the maximum of {self.query_config.max_page_size}",
                field_name="page_size",
            )
        return await self.state.get_query_result_with_pagination(query, page_size, bookmark)


def create_world_state(config: RegistryConfig) -> WorldState:
    """Factory function to create a world state from configuration.

    Raises:
        ValueError: If backend is not supported
    """
    from .memory import InMemoryWorldState
    from .sqlite import SqliteWorldState

    if config.state_backend == StateBackend.MEMORY:
        return InMemoryWorldState()
    elif config.state_backend == StateBackend.SQLITE:
        return SqliteWorldState(
            data_dir=config.storage.data_dir,
            channel_name=config.storage.channel_name,
            wal_mode=config.storage.wal_mode,
            busy_timeout_ms=config.storage.busy_timeout_ms,
            cache_size_pages=config.storage.cache_size_pages,
        )
    else:
        raise ValueError(f"Unsupported state backend: {config.state_backend}")
