"""Per-transaction context handed to every contract function."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from ..state import RecordStore
from .clock import Clock


@dataclass
class TransactionContext:
    """What one invocation may touch.

    Attributes:
        store: Record store over the world state
        clock: Time source for created_at/expires_at stamps
        tx_id: Identifier used in log context
    """

    store: RecordStore
    clock: Clock
    tx_id: str = field(default_factory=lambda: uuid.uuid4().hex)
