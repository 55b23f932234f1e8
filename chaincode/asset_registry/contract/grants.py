"""
Access grant service: time-limited payment records gating asset reads.

A grant (docType "paymentDetails") links a requester (payeer_id) to a
protected asset (resume_id) until expires_at. Grants are never revoked;
expiry is evaluated at read time against the clock.

Invariants:
    - expires_at is created_at plus the configured window, in epoch seconds
    - Denial is a normal outcome (empty mapping), never an error
    - When several live grants exist, the one expiring last wins, ties
      broken by key; store iteration order is never relied on
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List

from .. import codec
from ..errors import AlreadyExistsError, ValidationError
from ..query import Query, QueryResult
from ..state import RecordStore
from .assets import AssetService
from .clock import Clock, format_created_at, format_epoch
from .records import DocType, ensure_valid

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 600


def _expiry(result: QueryResult) -> int:
    return int(result.value["expires_at"])


class AccessGrantService:
    """Creates grants and evaluates access against them.

    Attributes:
        store: Record store over the world state
        clock: Time source for stamps and expiry checks
        assets: Asset service used to read the protected record
        window_seconds: Validity window of new grants
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Clock,
        assets: AssetService,
        window_seconds: int = DEFAULT_WINDOW_SECONDS,
    ) -> None:
        self.store = store
        self.clock = clock
        self.assets = assets
        self.window_seconds = window_seconds

    async def create_payment_block(self, details: Dict[str, Any]) -> Dict[str, Any]:
        """Persist a grant valid for window_seconds from now.

        Raises:
            ValidationError: If id, payeer_id or resume_id is missing
            AlreadyExistsError: If the grant id is already in use
        """
        if not isinstance(details, dict):
            raise ValidationError("Payment details must be a JSON object")

        record = dict(details)
        record["docType"] = DocType.PAYMENT_DETAILS.value
        ensure_valid(record, DocType.PAYMENT_DETAILS)

        if await self.store.exists(record["id"]):
            raise AlreadyExistsError(record["id"])

        now = self.clock.now()
        record["created_at"] = format_created_at(now)
        record["expires_at"] = format_epoch(now + timedelta(seconds=self.window_seconds))

        data = codec.encode(record)
        await self.store.put(record["id"], data)
        logger.info(
            "Grant created",
            extra={
                "grant_id": record["id"],
                "payeer_id": record["payeer_id"],
                "resume_id": record["resume_id"],
                "expires_at": record["expires_at"],
            },
        )
        return codec.decode(data, key=record["id"])

    async def _live_grants(self, selector: Dict[str, Any]) -> List[QueryResult]:
        selector = dict(selector)
        selector["docType"] = DocType.PAYMENT_DETAILS.value
        selector["expires_at"] = {"$gt": format_epoch(self.clock.now())}

        live: List[QueryResult] = []
        async with await self.store.query(Query.build(selector)) as results:
            async for result in results:
                if result.is_malformed:
                    continue
                try:
                    _expiry(result)
                except (TypeError, ValueError):
                    logger.warning("Grant with non-numeric expiry skipped", extra={"key": result.key})
                    continue
                live.append(result)

        live.sort(key=lambda r: (_expiry(r), r.key), reverse=True)
        return live

    async def check_access(self, requester_id: str, resource_id: str) -> Dict[str, Any]:
        """Return the protected asset if a live grant links requester to it.

        Returns:
            The asset record, or an empty mapping when access is denied

        Raises:
            NotFoundError: If a live grant references an asset that is absent
        """
        live = await self._live_grants({"payeer_id": requester_id, "resume_id": resource_id})
        if not live:
            logger.info(
                "Access denied",
                extra={"payeer_id": requester_id, "resume_id": resource_id},
            )
            return {}

        grant = live[0].value
        logger.debug(
            "Access granted",
            extra={"grant_id": grant.get("id"), "payeer_id": requester_id},
        )
        return await self.assets.read_asset(grant["resume_id"])

    async def list_active_grants(self, requester_id: str) -> List[Dict[str, Any]]:
        """Live grants held by a requester, latest expiry first."""
        live = await self._live_grants({"payeer_id": requester_id})
        return [result.value for result in live]
