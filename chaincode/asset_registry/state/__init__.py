"""
World state abstraction for the asset registry.

This module provides a pluggable key-value backend interface supporting:
- SQLite (one file per channel, for local peers)
- In-memory (for testing)

The world state exclusively owns persisted bytes. Records read from it are
transient views rebuilt on every read.

Invariants:
    - put_state() is an unconditional upsert
    - get_state() reports absent keys as b""
    - Rich query scans are lazy, forward-only and must be closed

How to change safely:
    - New backends must implement the WorldState protocol
    - Keep scans in key order so bookmarks stay resumable
"""

from .base import RecordStore, WorldState, create_world_state
from .memory import InMemoryWorldState
from .sqlite import SqliteWorldState

__all__ = [
    # Protocol and store
    "WorldState",
    "RecordStore",
    # Factory
    "create_world_state",
    # Implementations
    "InMemoryWorldState",
    "SqliteWorldState",
]
