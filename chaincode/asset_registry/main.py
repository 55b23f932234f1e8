"""
Asset registry - local invocation entry point.

This module wires the registry together for a single process:
- World state backend selected from configuration
- Asset transfer contract
- Logging setup

The peer/network layer that normally delivers invocations is external;
this runner executes one function against the configured world state,
which is enough for development networks and scripted maintenance.

Usage:
    asset-registry CreateAsset '{"id": "a1", "first_name": "Ann"}'
    asset-registry ReadAsset a1

Configuration is entirely via environment variables.
See config.py for all available settings.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, List, Optional

import json_log_formatter

from .config import RegistryConfig
from .contract import AssetTransferContract, Clock, SystemClock, TransactionContext
from .errors import RegistryError
from .state import RecordStore, WorldState, create_world_state

logger = logging.getLogger(__name__)


def setup_logging(config: RegistryConfig) -> None:
    """Configure logging based on configuration."""
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


class Registry:
    """Registry process orchestrator.

    Attributes:
        config: Registry configuration
        state: World state backend
        store: Record store over the world state
        contract: Contract dispatched to by invoke()

    Example:
        >>> registry = Registry(RegistryConfig())
        >>> await registry.start()
        >>> await registry.invoke("ReadAsset", "a1")
        >>> await registry.stop()
    """

    def __init__(
        self,
        config: Optional[RegistryConfig] = None,
        clock: Optional[Clock] = None,
        state: Optional[WorldState] = None,
    ) -> None:
        self.config = config if config is not None else RegistryConfig.from_env()
        self.clock = clock if clock is not None else SystemClock()
        self.state = state if state is not None else create_world_state(self.config)
        self.store = RecordStore(self.state, self.config.query)
        self.contract = AssetTransferContract(self.config.grants)
        self._running = False

    async def start(self) -> None:
        if self._running:
            logger.warning("Registry already running")
            return
        self.config.log_config()
        await self.state.connect()
        self._running = True
        logger.info("Asset registry started")

    async def stop(self) -> None:
        if not self._running:
            return
        await self.state.close()
        self._running = False
        logger.info("Asset registry stopped")

    async def invoke(self, function: str, *args: Any) -> str:
        """Run one contract function in a fresh transaction context."""
        ctx = TransactionContext(store=self.store, clock=self.clock)
        logger.debug("Invoking", extra={"tx_id": ctx.tx_id, "function": function})
        return await self.contract.invoke(ctx, function, *args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="asset-registry",
        description="Invoke an asset registry contract function",
    )
    parser.add_argument("function", help="Contract function name, e.g. ReadAsset")
    parser.add_argument("args", nargs="*", help="Function arguments (JSON strings or ids)")
    return parser


async def run(config: RegistryConfig, function: str, args: List[str]) -> str:
    registry = Registry(config)
    await registry.start()
    try:
        return await registry.invoke(function, *args)
    finally:
        await registry.stop()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parsed = build_parser().parse_args(argv)

    try:
        config = RegistryConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(config)

    try:
        result = asyncio.run(run(config, parsed.function, parsed.args))
    except RegistryError as e:
        print(json.dumps(e.to_dict()), file=sys.stderr)
        return 1

    print(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
