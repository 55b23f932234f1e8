"""
SQLite world state for the asset registry.

This module keeps the key-value world state of one channel in a single
SQLite file, for local peers and development networks.

Invariants:
    - One SQLite file per channel
    - Values are stored exactly as given (canonical bytes from the codec)
    - Scans are in key order and read through one connection per scan
    - Any sqlite3 error surfaces as StoreUnavailableError

How to change safely:
    - Schema migrations must be backward compatible
    - Keep scans streaming (fetchmany); never load a whole channel at once

Table schema:
    world_state:
        - key TEXT PRIMARY KEY
        - value BLOB NOT NULL
        - updated_at INTEGER (Unix ms)
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import AsyncIterator, Optional, Tuple

from ..errors import StoreUnavailableError
from ..query import Query, QueryIterator, QueryResponseMetadata, fetch_page, resolve_start_key
from .base import check_put_args

logger = logging.getLogger(__name__)

# Rows pulled from a cursor per step of a scan
SCAN_BATCH_SIZE = 256


class SqliteWorldState:
    """SQLite-backed implementation of WorldState.

    Thread safety:
        Each operation opens its own connection. Writes are serialized
        with an asyncio lock; SQLite handles concurrent readers via WAL mode.

    Example:
        >>> state = SqliteWorldState("/var/lib/registry", "mychannel")
        >>> await state.connect()
        >>> await state.put_state("a1", b'{"docType":"asset","id":"a1"}')
    """

    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str,
        channel_name: str = "mychannel",
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
        cache_size_pages: int = -16000,
    ) -> None:
        """Initialize the world state.

        Args:
            data_dir: Directory for SQLite database files
            channel_name: Channel whose world state this file holds
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
            cache_size_pages: SQLite cache size (negative = KB)
        """
        self.data_dir = Path(data_dir)
        self.channel_name = channel_name
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self.cache_size_pages = cache_size_pages
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def db_path(self) -> Path:
        """Database file path for the channel."""
        # Sanitize channel name to prevent path traversal
        safe_name = "".join(c for c in self.channel_name if c.isalnum() or c in "-_")
        return self.data_dir / f"state_{safe_name}.db"

    @property
    def is_connected(self) -> bool:
        return self._connected

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection to the channel database.

        Raises:
            StoreUnavailableError: If not connected or SQLite fails
        """
        if not self._connected:
            raise StoreUnavailableError("Not connected", backend="sqlite")

        try:
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit by default, explicit transactions
            )
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Cannot open world state: {e}", backend="sqlite")

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            conn.execute(f"PRAGMA cache_size = {self.cache_size_pages}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")

            yield conn
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"World state operation failed: {e}", backend="sqlite")
        finally:
            conn.close()

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS world_state (
                key TEXT PRIMARY KEY,
                value BLOB NOT NULL,
                updated_at INTEGER NOT NULL
            );

            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    async def connect(self) -> None:
        """Create the database file and schema if they don't exist."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot create data directory: {e}", backend="sqlite")

        self._connected = True
        try:
            async with self._lock:
                with self._get_connection() as conn:
                    self._create_schema(conn)
        except StoreUnavailableError:
            self._connected = False
            raise
        logger.info(
            "SQLite world state opened",
            extra={"channel": self.channel_name, "path": str(self.db_path)},
        )

    async def close(self) -> None:
        self._connected = False

    async def get_state(self, key: str) -> bytes:
        with self._get_connection() as conn:
            row = conn.execute("SELECT value FROM world_state WHERE key = ?", (key,)).fetchone()
            return bytes(row[0]) if row else b""

    async def put_state(self, key: str, value: bytes) -> None:
        check_put_args(key, value)
        async with self._lock:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO world_state (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                                   updated_at = excluded.updated_at
                    """,
                    (key, sqlite3.Binary(value), int(time.time() * 1000)),
                )

    async def delete_state(self, key: str) -> None:
        async with self._lock:
            with self._get_connection() as conn:
                conn.execute("DELETE FROM world_state WHERE key = ?", (key,))

    async def _scan(
        self,
        start_after: Optional[str] = None,
        start_key: str = "",
        end_key: str = "",
    ) -> AsyncIterator[Tuple[str, bytes]]:
        """Stream rows in key order; the connection lives until the scan closes."""
        sql = "SELECT key, value FROM world_state WHERE 1 = 1"
        params: list = []
        if start_after is not None:
            sql += " AND key > ?"
            params.append(start_after)
        if start_key:
            sql += " AND key >= ?"
            params.append(start_key)
        if end_key:
            sql += " AND key < ?"
            params.append(end_key)
        sql += " ORDER BY key"

        with self._get_connection() as conn:
            cursor = conn.execute(sql, params)
            while True:
                rows = cursor.fetchmany(SCAN_BATCH_SIZE)
                if not rows:
                    break
                for row in rows:
                    yield row[0], bytes(row[1])

    async def get_state_by_range(self, start_key: str, end_key: str) -> QueryIterator:
        if not self._connected:
            raise StoreUnavailableError("Not connected", backend="sqlite")
        return QueryIterator(self._scan(start_key=start_key, end_key=end_key))

    async def get_query_result(self, query: Query) -> QueryIterator:
        if not self._connected:
            raise StoreUnavailableError("Not connected", backend="sqlite")
        return QueryIterator(self._scan(), query)

    async def get_query_result_with_pagination(
        self,
        query: Query,
        page_size: int,
        bookmark: Optional[str] = None,
    ) -> Tuple[QueryIterator, QueryResponseMetadata]:
        if not self._connected:
            raise StoreUnavailableError("Not connected", backend="sqlite")
        start_after = resolve_start_key(query, bookmark)
        return await fetch_page(self._scan(start_after=start_after), query, page_size, bookmark)

    async def count(self) -> int:
        """Number of stored keys."""
        with self._get_connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM world_state").fetchone()[0]
