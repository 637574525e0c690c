"""
Tests for the EVM block height service.
"""

import pytest

from bridgeswap_syncer.chain_height import ChainNotConfiguredError, EvmChainHeightService


class _FakeEth:
    def __init__(self, heights: list[int]):
        self._heights = heights
        self.calls = 0

    @property
    async def block_number(self) -> int:
        self.calls += 1
        return self._heights[min(self.calls, len(self._heights)) - 1]


class _FakeWeb3:
    def __init__(self, heights: list[int]):
        self.eth = _FakeEth(heights)


@pytest.mark.asyncio
async def test_block_height_is_cached() -> None:
    w3 = _FakeWeb3([100, 101])
    service = EvmChainHeightService({}, cache_seconds=60, web3_by_chain={4114: w3})

    assert await service.get_block_height(4114) == 100
    assert await service.get_block_height(4114) == 100
    assert w3.eth.calls == 1


@pytest.mark.asyncio
async def test_cache_disabled_refetches() -> None:
    w3 = _FakeWeb3([100, 101])
    service = EvmChainHeightService({}, cache_seconds=0, web3_by_chain={1: w3})

    assert await service.get_block_height(1) == 100
    assert await service.get_block_height(1) == 101


@pytest.mark.asyncio
async def test_unknown_chain_raises() -> None:
    service = EvmChainHeightService({})
    with pytest.raises(ChainNotConfiguredError) as exc_info:
        await service.get_block_height(5115)
    assert exc_info.value.chain_id == 5115
    assert await service.check_connectivity(5115) is False


def test_chain_ids_from_rpc_urls() -> None:
    service = EvmChainHeightService({137: "http://localhost:8545", 1: "http://localhost:8546"})
    assert service.chain_ids == [1, 137]
