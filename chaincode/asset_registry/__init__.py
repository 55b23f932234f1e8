"""
Asset Registry - deterministic asset records over a key-value world state.

This package implements an asset registry contract built on:
- A canonical record codec (sorted keys, compact JSON) for replica-safe writes
- A pluggable world state (SQLite per channel, or in-memory)
- Rich selector queries with bookmark pagination
- Time-limited access grants gating reads of protected assets

Architecture:
    ┌──────────────┐     ┌────────────────────────┐
    │  Invocation  │────▶│ AssetTransferContract  │
    │ (peer / CLI) │     │   (JSON in / JSON out) │
    └──────────────┘     └───────────┬────────────┘
                                     │
                   ┌─────────────────┴─────────────────┐
                   ▼                                   ▼
            ┌──────────────┐                  ┌──────────────────┐
            │ AssetService │◀─────────────────│AccessGrantService│
            └──────┬───────┘                  └────────┬─────────┘
                   │          ┌──────────┐             │
                   └─────────▶│  codec   │◀────────────┘
                              └────┬─────┘
                                   ▼
                   ┌───────────────────────────────┐
                   │ RecordStore ─ query planner   │
                   │ WorldState (SQLite / memory)  │
                   └───────────────────────────────┘

Invariants:
    - Identical logical records encode to identical bytes
    - Record ids are unique; docType never changes after creation
    - Access denial is an empty result, not an error
    - Query iterators are single-pass and closed by their issuing operation

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
