"""
Process-wide clients, built once by the API lifespan or a CLI command.
"""

from dataclasses import dataclass

import structlog

from .btc_indexer import BtcIndexerConfig, BtcOnchainIndexer
from .chain_height import EvmChainHeightService
from .config import Settings
from .db import BridgeSwapStore
from .evm_indexer import EvmBridgeIndexer
from .fixers import FixerDeps, build_fix_swap_statuses
from .swap_status import SwapStatusService
from .syncer import BridgeSwapStatusSyncer

logger = structlog.get_logger()


@dataclass
class Services:
    store: BridgeSwapStore
    btc_indexer: BtcOnchainIndexer
    evm_indexer: EvmBridgeIndexer
    heights: EvmChainHeightService
    status_service: SwapStatusService
    syncer: BridgeSwapStatusSyncer

    @classmethod
    def from_settings(cls, settings: Settings) -> "Services":
        store = BridgeSwapStore(settings.database_url)
        btc_indexer = BtcOnchainIndexer(
            BtcIndexerConfig(base_url=settings.btc_indexer_url, timeout=settings.http_timeout)
        )
        evm_indexer = EvmBridgeIndexer(settings.evm_bridge_indexer_url, timeout=settings.http_timeout)
        heights = EvmChainHeightService(
            settings.evm_rpc_urls,
            cache_seconds=settings.block_height_cache_seconds,
        )
        status_service = SwapStatusService(
            settings.swap_status_url,
            chunk_size=settings.status_chunk_size,
            timeout=settings.http_timeout,
        )
        fix_swap_statuses = build_fix_swap_statuses(
            FixerDeps(btc_indexer=btc_indexer, evm_indexer=evm_indexer)
        )
        syncer = BridgeSwapStatusSyncer(store, status_service, fix_swap_statuses)

        if not settings.evm_rpc_urls:
            logger.warning("no_evm_rpc_configured", message="EVM refunds will not be classified")

        return cls(
            store=store,
            btc_indexer=btc_indexer,
            evm_indexer=evm_indexer,
            heights=heights,
            status_service=status_service,
            syncer=syncer,
        )

    async def close(self) -> None:
        await self.btc_indexer.close()
        await self.evm_indexer.close()
        await self.status_service.close()
        self.store.close()
