"""
Contract layer for the asset registry.

This module handles:
- Asset create/read/update/query
- Time-limited access grants over assets
- The JSON-in/JSON-out function surface invoked per transaction

Invariants:
    - Records are written through the canonical codec only
    - Each invocation runs against its own TransactionContext
    - Query iterators never outlive the invocation that opened them
"""

from .asset_transfer import FUNCTIONS, AssetTransferContract
from .assets import AssetService
from .clock import Clock, FixedClock, SystemClock, format_created_at, format_epoch
from .context import TransactionContext
from .grants import AccessGrantService
from .records import DocType

__all__ = [
    "AssetTransferContract",
    "FUNCTIONS",
    "AssetService",
    "AccessGrantService",
    "TransactionContext",
    "DocType",
    "Clock",
    "SystemClock",
    "FixedClock",
    "format_created_at",
    "format_epoch",
]
