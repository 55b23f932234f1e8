"""
Asset transfer contract: the JSON-in/JSON-out function surface.

Each exposed function takes a TransactionContext plus string arguments (as
a ledger peer delivers them) and returns a JSON string. Results are
rendered canonically so that every endorsing replica returns identical
response bytes.

Exposed functions:
    InitLedger, CreateAsset, ReadAsset, AssetExists, GetAllAssets,
    SearchAsset, GetProfileByWalletId, QueryAssetsWithPagination,
    UpdateAsset, CreatePaymentBlock, CheckAccess

Invariants:
    - Every function either returns well-formed JSON or raises RegistryError
    - Names starting with an underscore are never invocable
"""

from __future__ import annotations

import inspect
import logging
from difflib import get_close_matches
from typing import Any, Optional

from .. import codec
from ..config import GrantConfig
from ..errors import RegistryError, UnknownFunctionError, ValidationError
from .assets import AssetService
from .context import TransactionContext
from .grants import AccessGrantService
from .records import parse_json, parse_json_object

logger = logging.getLogger(__name__)

FUNCTIONS = (
    "InitLedger",
    "CreateAsset",
    "ReadAsset",
    "AssetExists",
    "GetAllAssets",
    "SearchAsset",
    "GetProfileByWalletId",
    "QueryAssetsWithPagination",
    "UpdateAsset",
    "CreatePaymentBlock",
    "CheckAccess",
)

# Names used by existing client applications
ALIASES = {
    "updateAsset": "UpdateAsset",
    "searchAsset": "SearchAsset",
    "getProfileByWalletId": "GetProfileByWalletId",
    "createPaymentBlock": "CreatePaymentBlock",
    "checkAccess": "CheckAccess",
}


def _render(result: Any) -> str:
    return codec.encode(result).decode("utf-8")


def _parse_page_size(page_size: Any) -> Optional[int]:
    if page_size is None or page_size == "":
        return None
    try:
        return int(page_size)
    except (TypeError, ValueError):
        raise ValidationError(f"page_size {page_size!r} is not an integer", field_name="page_size")


class AssetTransferContract:
    """Contract exposing asset and access-grant functions.

    Example:
        >>> contract = AssetTransferContract()
        >>> ctx = TransactionContext(store=store, clock=SystemClock())
        >>> await contract.invoke(ctx, "CreateAsset", '{"id": "a1", "first_name": "Ann"}')
    """

    def __init__(self, grant_config: Optional[GrantConfig] = None) -> None:
        self.grant_config = grant_config or GrantConfig()

    def _assets(self, ctx: TransactionContext) -> AssetService:
        return AssetService(ctx.store, ctx.clock)

    def _grants(self, ctx: TransactionContext) -> AccessGrantService:
        return AccessGrantService(
            ctx.store,
            ctx.clock,
            self._assets(ctx),
            window_seconds=self.grant_config.window_seconds,
        )

    async def invoke(self, ctx: TransactionContext, function: str, *args: Any) -> str:
        """Dispatch an invocation by function name.

        Raises:
            UnknownFunctionError: If the name is not an exposed function
            RegistryError: Whatever the function raises
        """
        name = ALIASES.get(function, function)
        if name not in FUNCTIONS:
            raise UnknownFunctionError(function, get_close_matches(function, FUNCTIONS, n=3))

        handler = getattr(self, name)
        try:
            inspect.signature(handler).bind(ctx, *args)
        except TypeError as e:
            raise ValidationError(f"{name}: {e}")

        try:
            return await handler(ctx, *args)
        except RegistryError as e:
            logger.info(
                "Invocation failed",
                extra={"tx_id": ctx.tx_id, "function": name, "error_code": e.code},
            )
            raise

    async def InitLedger(self, ctx: TransactionContext, assets: str) -> str:
        records = parse_json(assets, "assets")
        if not isinstance(records, list):
            raise ValidationError("assets must be a JSON array", field_name="assets")
        count = await self._assets(ctx).init_ledger(records)
        return _render({"count": count})

    async def CreateAsset(self, ctx: TransactionContext, asset: str) -> str:
        created = await self._assets(ctx).create_asset(parse_json_object(asset, "asset"))
        return _render(created)

    async def ReadAsset(self, ctx: TransactionContext, asset_id: str) -> str:
        return _render(await self._assets(ctx).read_asset(asset_id))

    async def AssetExists(self, ctx: TransactionContext, asset_id: str) -> str:
        return _render(await self._assets(ctx).asset_exists(asset_id))

    async def GetAllAssets(self, ctx: TransactionContext) -> str:
        return _render(await self._assets(ctx).get_all_assets())

    async def SearchAsset(self, ctx: TransactionContext, search_options: str) -> str:
        criteria = parse_json_object(search_options, "searchOptions")
        return _render(await self._assets(ctx).search_assets(criteria))

    async def GetProfileByWalletId(self, ctx: TransactionContext, wallet_id: str) -> str:
        return _render(await self._assets(ctx).get_profile_by_wallet_id(wallet_id))

    async def QueryAssetsWithPagination(
        self,
        ctx: TransactionContext,
        query_string: str,
        page_size: Any = None,
        bookmark: str = "",
    ) -> str:
        query = parse_json_object(query_string, "queryString")
        page = await self._assets(ctx).query_assets_with_pagination(
            query, _parse_page_size(page_size), bookmark
        )
        return _render(page)

    async def UpdateAsset(self, ctx: TransactionContext, asset_id: str, updated_data: str) -> str:
        updates = parse_json_object(updated_data, "updatedData")
        return _render(await self._assets(ctx).update_asset(asset_id, updates))

    async def CreatePaymentBlock(self, ctx: TransactionContext, payment_details: str) -> str:
        details = parse_json_object(payment_details, "paymentDetails")
        return _render(await self._grants(ctx).create_payment_block(details))

    async def CheckAccess(self, ctx: TransactionContext, client_id: str, resume_id: str) -> str:
        return _render(await self._grants(ctx).check_access(client_id, resume_id))
