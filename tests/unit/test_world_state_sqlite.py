"""
Unit tests for the SQLite world state.

Tests cover:
- Schema creation and per-channel files
- Point reads and upserts
- Key-ordered scans and pagination
- Persistence across reconnects
- Error mapping when not connected
"""

import math
import os

import pytest
import pytest_asyncio

from chaincode.asset_registry import codec
from chaincode.asset_registry.config import RegistryConfig, StateBackend, StorageConfig
from chaincode.asset_registry.errors import StoreUnavailableError, ValidationError
from chaincode.asset_registry.query import Query, collect_results
from chaincode.asset_registry.state import SqliteWorldState, WorldState, create_world_state


@pytest_asyncio.fixture
async def sqlite_state(data_dir):
    """Connected SQLite world state in a temp directory."""
    state = SqliteWorldState(data_dir, "testchannel", wal_mode=False)
    await state.connect()
    yield state
    await state.close()


async def seed(state, count):
    for i in range(count):
        record = {"id": f"a{i:03d}", "docType": "asset", "n": i}
        await state.put_state(record["id"], codec.encode(record))


class TestSqliteWorldState:
    """Tests for SqliteWorldState."""

    def test_satisfies_protocol(self, data_dir):
        """The backend implements the WorldState protocol."""
        assert isinstance(SqliteWorldState(data_dir), WorldState)

    def test_db_path_sanitized(self, data_dir):
        """Channel names cannot escape the data directory."""
        state = SqliteWorldState(data_dir, "../evil/chan")

        assert state.db_path.parent == state.data_dir
        assert state.db_path.name == "state_evilchan.db"

    @pytest.mark.asyncio
    async def test_connect_creates_file(self, sqlite_state):
        """connect() creates the channel database."""
        assert os.path.exists(sqlite_state.db_path)
        assert sqlite_state.is_connected

    @pytest.mark.asyncio
    async def test_put_get_upsert(self, sqlite_state):
        """Values round-trip and later writes replace earlier ones."""
        await sqlite_state.put_state("a1", b'{"v":1}')
        await sqlite_state.put_state("a1", b'{"v":2}')

        assert await sqlite_state.get_state("a1") == b'{"v":2}'
        assert await sqlite_state.count() == 1

    @pytest.mark.asyncio
    async def test_absent_key_is_empty(self, sqlite_state):
        """Absent keys read as empty bytes."""
        assert await sqlite_state.get_state("missing") == b""

    @pytest.mark.asyncio
    async def test_put_rejects_empty_key(self, sqlite_state):
        """Empty keys are rejected before touching SQLite."""
        with pytest.raises(ValidationError):
            await sqlite_state.put_state("", b"1")

    @pytest.mark.asyncio
    async def test_delete(self, sqlite_state):
        """Deleted keys read as absent."""
        await sqlite_state.put_state("a1", b"1")
        await sqlite_state.delete_state("a1")

        assert await sqlite_state.get_state("a1") == b""

    @pytest.mark.asyncio
    async def test_range_scan_in_key_order(self, sqlite_state):
        """Range scans are key ordered regardless of insertion order."""
        for key in ["c", "a", "d", "b"]:
            await sqlite_state.put_state(key, codec.encode({"id": key}))

        values = await collect_results(await sqlite_state.get_state_by_range("b", "d"))

        assert values == [{"id": "b"}, {"id": "c"}]

    @pytest.mark.asyncio
    async def test_query_surfaces_malformed_rows(self, sqlite_state):
        """Non-JSON rows come back as raw text from an open query."""
        await sqlite_state.put_state("a1", codec.encode({"id": "a1"}))
        await sqlite_state.put_state("a2", b"not json")

        values = await collect_results(await sqlite_state.get_query_result(Query.build({})))

        assert values == [{"id": "a1"}, "not json"]

    @pytest.mark.asyncio
    async def test_pagination_completeness(self, sqlite_state):
        """Bookmarks walk every match exactly once."""
        await seed(sqlite_state, 7)
        query = Query.build({"docType": "asset"})

        seen = []
        pages = 0
        bookmark = ""
        while True:
            iterator, metadata = await sqlite_state.get_query_result_with_pagination(
                query, 3, bookmark
            )
            values = await collect_results(iterator)
            if not values:
                break
            pages += 1
            seen.extend(v["id"] for v in values)
            bookmark = metadata.bookmark

        assert seen == [f"a{i:03d}" for i in range(7)]
        assert pages == math.ceil(7 / 3)

    @pytest.mark.asyncio
    async def test_data_survives_reconnect(self, data_dir):
        """Records persist in the channel file across connections."""
        first = SqliteWorldState(data_dir, "persist", wal_mode=False)
        await first.connect()
        await first.put_state("a1", b'{"id":"a1"}')
        await first.close()

        second = SqliteWorldState(data_dir, "persist", wal_mode=False)
        await second.connect()

        assert await second.get_state("a1") == b'{"id":"a1"}'

    @pytest.mark.asyncio
    async def test_channels_are_isolated(self, data_dir):
        """Each channel has its own world state."""
        one = SqliteWorldState(data_dir, "one", wal_mode=False)
        two = SqliteWorldState(data_dir, "two", wal_mode=False)
        await one.connect()
        await two.connect()

        await one.put_state("a1", b"1")

        assert await two.get_state("a1") == b""

    @pytest.mark.asyncio
    async def test_not_connected(self, data_dir):
        """Operations before connect() raise StoreUnavailableError."""
        state = SqliteWorldState(data_dir)

        with pytest.raises(StoreUnavailableError):
            await state.get_state("a1")
        with pytest.raises(StoreUnavailableError):
            await state.get_query_result(Query.build({}))


class TestCreateWorldState:
    """Tests for the backend factory."""

    def test_memory_backend(self):
        """The default backend is in-memory."""
        state = create_world_state(RegistryConfig())

        assert type(state).__name__ == "InMemoryWorldState"

    def test_sqlite_backend(self, data_dir):
        """SQLite settings flow from configuration."""
        config = RegistryConfig(
            state_backend=StateBackend.SQLITE,
            storage=StorageConfig(data_dir=data_dir, channel_name="ch1", busy_timeout_ms=100),
        )

        state = create_world_state(config)

        assert isinstance(state, SqliteWorldState)
        assert state.channel_name == "ch1"
        assert state.busy_timeout_ms == 100


class TestSqliteConnectFailure:
    """Connection state when the database cannot be opened."""

    @pytest.mark.asyncio
    async def test_failed_schema_leaves_disconnected(self, data_dir):
        """A failed connect() does not report the backend as connected."""
        state = SqliteWorldState(data_dir, "broken", wal_mode=False)
        os.makedirs(state.db_path)

        with pytest.raises(StoreUnavailableError):
            await state.connect()

        assert state.is_connected is False
