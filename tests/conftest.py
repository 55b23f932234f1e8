"""
Shared fixtures for the asset registry tests.
"""

import tempfile
from datetime import datetime, timezone

import pytest
import pytest_asyncio

from chaincode.asset_registry.contract import FixedClock, TransactionContext
from chaincode.asset_registry.state import InMemoryWorldState, RecordStore

# 2024-03-01 12:00:00 UTC
T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock():
    """Clock pinned to T0."""
    return FixedClock(T0)


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest_asyncio.fixture
async def state():
    """Connected in-memory world state."""
    world_state = InMemoryWorldState()
    await world_state.connect()
    yield world_state
    await world_state.close()


@pytest.fixture
def store(state):
    """Record store over the in-memory world state."""
    return RecordStore(state)


@pytest.fixture
def ctx(store, clock):
    """Transaction context with a pinned clock."""
    return TransactionContext(store=store, clock=clock)
