"""
Current block height per EVM chain.
"""

import time
from typing import Optional

import structlog
from web3 import AsyncHTTPProvider, AsyncWeb3

logger = structlog.get_logger()


class ChainNotConfiguredError(Exception):
    """No RPC endpoint is configured for the requested chain."""

    def __init__(self, chain_id: int):
        self.chain_id = chain_id
        super().__init__(f"No provider configured for EVM chain {chain_id}")


class EvmChainHeightService:
    """
    Block height lookups backed by one AsyncWeb3 instance per chain.

    Heights are cached for ``cache_seconds`` since every claim/refund request
    asks for the same few chains.
    """

    def __init__(
        self,
        rpc_urls: dict[int, str],
        cache_seconds: float = 5.0,
        web3_by_chain: Optional[dict[int, AsyncWeb3]] = None,
    ):
        self.cache_seconds = cache_seconds
        self._w3: dict[int, AsyncWeb3] = dict(web3_by_chain or {})
        for chain_id, url in rpc_urls.items():
            self._w3.setdefault(int(chain_id), AsyncWeb3(AsyncHTTPProvider(url)))
        self._cache: dict[int, tuple[float, int]] = {}

    @property
    def chain_ids(self) -> list[int]:
        return sorted(self._w3)

    async def get_block_height(self, chain_id: int) -> int:
        """Latest block number of ``chain_id``."""
        w3 = self._w3.get(chain_id)
        if w3 is None:
            logger.error("evm_chain_not_configured", chain_id=chain_id)
            raise ChainNotConfiguredError(chain_id)

        cached = self._cache.get(chain_id)
        now = time.monotonic()
        if cached and now - cached[0] < self.cache_seconds:
            return cached[1]

        height = int(await w3.eth.block_number)
        self._cache[chain_id] = (now, height)
        return height

    async def check_connectivity(self, chain_id: int) -> bool:
        """Check if the chain's RPC is reachable."""
        try:
            await self.get_block_height(chain_id)
            return True
        except Exception:
            return False
