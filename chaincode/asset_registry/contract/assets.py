"""
Asset service: create, read, update and query asset records.

Every write goes through the canonical codec so that replicas executing the
same transaction produce byte-identical world state.

Invariants:
    - Asset ids are unique within the world state
    - id and docType never change after creation
    - UpdateAsset only overwrites keys already present on the stored asset
    - Listing queries always constrain docType to "asset"

How to change safely:
    - Adding a field to a projection exposes it to every caller of that
      listing; contact details only belong in PROFILE_FIELDS
    - Keep iterators inside collect_results() so they close on error paths
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from .. import codec
from ..errors import AlreadyExistsError, ValidationError
from ..query import Query, collect_results
from ..state import RecordStore
from .clock import Clock, format_created_at
from .records import (
    LIST_FIELDS,
    PROFILE_FIELDS,
    SEARCH_FIELDS,
    WALLET_FIELD,
    DocType,
    ensure_valid,
)

logger = logging.getLogger(__name__)

IMMUTABLE_FIELDS = ("id", "docType")


class AssetService:
    """Orchestrates the codec and record store for asset records.

    Attributes:
        store: Record store over the world state
        clock: Time source for created_at stamps

    Example:
        >>> assets = AssetService(store, SystemClock())
        >>> await assets.init_ledger([{"id": "p1", "first_name": "Ann"}])
        >>> (await assets.read_asset("p1"))["docType"]
        'asset'
    """

    def __init__(self, store: RecordStore, clock: Clock) -> None:
        self.store = store
        self.clock = clock

    async def _write(self, record: Dict[str, Any]) -> Dict[str, Any]:
        data = codec.encode(record)
        await self.store.put(record["id"], data)
        return codec.decode(data, key=record["id"])

    async def init_ledger(self, assets: Iterable[Dict[str, Any]]) -> int:
        """Seed the ledger with a batch of assets.

        Each asset is stamped with docType and created_at, then written. The
        first failure aborts the batch; writes already issued are left to the
        enclosing transaction boundary.

        Returns:
            Number of assets written
        """
        written = 0
        for asset in assets:
            if not isinstance(asset, dict):
                raise ValidationError("InitLedger expects a list of JSON objects")
            record = dict(asset)
            record["docType"] = DocType.ASSET.value
            record["created_at"] = format_created_at(self.clock.now())
            ensure_valid(record, DocType.ASSET)
            await self._write(record)
            written += 1

        logger.info("Ledger initialized", extra={"assets": written})
        return written

    async def create_asset(self, asset: Dict[str, Any]) -> Dict[str, Any]:
        """Issue a new asset.

        Raises:
            ValidationError: If the asset lacks an id or has another docType
            AlreadyExistsError: If the id is already in the world state
        """
        record = dict(asset)
        if record.get("docType") is None:
            record["docType"] = DocType.ASSET.value
        ensure_valid(record, DocType.ASSET)

        if await self.store.exists(record["id"]):
            raise AlreadyExistsError(record["id"])

        if record.get("created_at") is None:
            record["created_at"] = format_created_at(self.clock.now())
        created = await self._write(record)
        logger.debug("Asset created", extra={"asset_id": record["id"]})
        return created

    async def read_asset(self, asset_id: str) -> Dict[str, Any]:
        """Return the stored record for an id.

        Raises:
            NotFoundError: If the id is absent
            MalformedRecordError: If the stored bytes are not JSON
        """
        data = await self.store.get(asset_id)
        return codec.decode(data, key=asset_id)

    async def asset_exists(self, asset_id: str) -> bool:
        return await self.store.exists(asset_id)

    async def update_asset(self, asset_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Overwrite fields already present on the stored asset.

        Keys only present in updates are ignored, as are id and docType.

        Raises:
            NotFoundError: If the id is absent
        """
        if not isinstance(updates, dict):
            raise ValidationError("Update payload must be a JSON object")
        stored = await self.read_asset(asset_id)
        if not isinstance(stored, dict):
            raise ValidationError(f"Stored value for {asset_id} is not a record")

        ignored = []
        for name, value in updates.items():
            if name in stored and name not in IMMUTABLE_FIELDS:
                stored[name] = value
            else:
                ignored.append(name)

        if ignored:
            logger.debug(
                "Update ignored fields",
                extra={"asset_id": asset_id, "fields": sorted(ignored)},
            )
        return await self._write(stored)

    async def _select(self, selector: Dict[str, Any], fields: Iterable[str]) -> List[Any]:
        query = Query.build(selector, list(fields))
        return await collect_results(await self.store.query(query))

    async def get_all_assets(self) -> List[Any]:
        return await self._select({"docType": DocType.ASSET.value}, LIST_FIELDS)

    async def search_assets(self, criteria: Dict[str, Any]) -> List[Any]:
        """Assets matching caller criteria (field equality or predicates)."""
        if not isinstance(criteria, dict):
            raise ValidationError("Search criteria must be a JSON object")
        selector = dict(criteria)
        selector["docType"] = DocType.ASSET.value
        return await self._select(selector, SEARCH_FIELDS)

    async def get_profile_by_wallet_id(self, wallet_id: str) -> List[Any]:
        if not wallet_id:
            raise ValidationError("Wallet id must not be empty", field_name=WALLET_FIELD)
        selector = {WALLET_FIELD: wallet_id, "docType": DocType.ASSET.value}
        return await self._select(selector, PROFILE_FIELDS)

    async def query_assets_with_pagination(
        self,
        query: Union[Query, Dict[str, Any], str],
        page_size: Optional[int] = None,
        bookmark: Optional[str] = None,
    ) -> Dict[str, Any]:
        """One page of assets matching a caller query.

        Returns:
            {"results": [...], "ResponseMetadata": {"RecordsCount", "Bookmark"}}
        """
        if not isinstance(query, Query):
            query = Query.parse(query)

        selector = query.selector
        doc_type = selector.get("docType", DocType.ASSET.value)
        if isinstance(doc_type, dict) and list(doc_type) == ["$eq"]:
            doc_type = doc_type["$eq"]

        if isinstance(doc_type, dict):
            # Operator form: conjoin the discriminant instead of interpreting it
            selector = {"$and": [selector, {"docType": DocType.ASSET.value}]}
        elif doc_type != DocType.ASSET.value:
            raise ValidationError(
                "Paginated asset queries cannot select another docType", field_name="docType"
            )
        elif "docType" not in selector:
            selector = dict(selector, docType=DocType.ASSET.value)

        if selector is not query.selector:
            query = Query.build(selector, list(query.fields))

        iterator, metadata = await self.store.query_paginated(query, page_size, bookmark)
        results = await collect_results(iterator)
        return {"results": results, "ResponseMetadata": metadata.to_dict()}
