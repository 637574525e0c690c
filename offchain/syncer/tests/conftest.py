"""
Shared fakes and factories for syncer tests.
"""

from typing import Any, Iterator, Optional

import httpx
import pytest

from bridgeswap_syncer.btc_indexer import BitcoinTransaction, TxInput, TxOutput
from bridgeswap_syncer.db import BridgeSwapStore
from bridgeswap_syncer.evm_indexer import ClaimableAndRefundable, EvmLockup, LockupPair
from bridgeswap_syncer.models import BridgeSwap
from bridgeswap_syncer.swap_status import SwapStatusInfo

USER = "0x1234567890abcdef1234567890abcdef12345678"
PREIMAGE_HASH = "0x" + "ab" * 32
CLAIM_LEAF = "82012088a914" + "11" * 20 + "88"
REFUND_LEAF = "20" + "22" * 32 + "ad03e8030bb1"
BTC_LOCKUP_ADDRESS = "bc1pqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqqslock"


def btc_details(
    lockup_address: str = BTC_LOCKUP_ADDRESS,
    claim_leaf: Optional[str] = CLAIM_LEAF,
    refund_leaf: Optional[str] = REFUND_LEAF,
    timeout_block_height: Optional[int] = 880000,
) -> dict[str, Any]:
    """Raw camelCase blob of a BTC taproot HTLC leg."""
    tree: dict[str, Any] = {}
    if claim_leaf:
        tree["claimLeaf"] = {"version": 192, "output": claim_leaf}
    if refund_leaf:
        tree["refundLeaf"] = {"version": 192, "output": refund_leaf}
    return {
        "swapTree": tree,
        "lockupAddress": lockup_address,
        "timeoutBlockHeight": timeout_block_height,
        "serverPublicKey": "02" + "33" * 32,
    }


def evm_details(lockup_address: str = "0x" + "44" * 20, timeout_block_height: int = 1000) -> dict[str, Any]:
    return {
        "lockupAddress": lockup_address,
        "claimAddress": USER,
        "timeoutBlockHeight": timeout_block_height,
    }


def make_swap(**overrides: Any) -> BridgeSwap:
    data: dict[str, Any] = {
        "id": "swap1",
        "user_id": USER,
        "type": "chain",
        "status": "swap.created",
        "asset_send": "cBTC",
        "asset_receive": "BTC",
        "send_amount": 100000,
        "receive_amount": 99000,
        "date": 1700000000,
        "preimage_hash": PREIMAGE_HASH,
    }
    data.update(overrides)
    return BridgeSwap(**data)


def make_lockup(**overrides: Any) -> EvmLockup:
    data: dict[str, Any] = {
        "id": f"4114:{PREIMAGE_HASH}",
        "preimage_hash": PREIMAGE_HASH,
        "chain_id": 4114,
        "amount": "100000000000000",
        "claim_address": USER,
        "refund_address": USER,
        "timelock": 1000,
    }
    data.update(overrides)
    return EvmLockup(**data)


def btc_tx(txid: str, witness: Optional[list[str]] = None) -> BitcoinTransaction:
    return BitcoinTransaction(
        txid=txid,
        confirmed=True,
        block_height=880000,
        vin=[TxInput(txid="00" * 32, vout=0, witness=witness or [])],
        vout=[TxOutput(value_sats=1000, address="bc1qdest")],
    )


class FakeBtcIndexer:
    def __init__(
        self,
        txs_by_address: Optional[dict[str, list[BitcoinTransaction]]] = None,
        tip_height: int = 880000,
        fail: bool = False,
    ):
        self.txs_by_address = txs_by_address or {}
        self.tip_height = tip_height
        self.fail = fail
        self.calls: list[str] = []

    async def get_transactions_by_address(self, address: str) -> list[BitcoinTransaction]:
        self.calls.append(address)
        if self.fail:
            raise httpx.ConnectError("indexer down")
        return list(self.txs_by_address.get(address, []))

    async def get_tip_height(self) -> int:
        if self.fail:
            raise httpx.ConnectError("indexer down")
        return self.tip_height

    async def close(self) -> None:
        pass


class FakeEvmIndexer:
    def __init__(
        self,
        lockups: Optional[list[EvmLockup]] = None,
        claimable: Optional[list[EvmLockup]] = None,
        refundable: Optional[list[EvmLockup]] = None,
        fail: bool = False,
    ):
        self.lockups = lockups or []
        self.claimable = claimable or []
        self.refundable = refundable or []
        self.fail = fail
        self.calls: list[tuple[str, Any]] = []

    def _find(self, preimage_hash: str, chain_id: int) -> list[EvmLockup]:
        return [
            lockup for lockup in self.lockups
            if lockup.preimage_hash == preimage_hash and lockup.chain_id == chain_id
        ]

    async def get_lockup(self, preimage_hash: str, chain_id: int) -> list[EvmLockup]:
        self.calls.append(("get_lockup", (preimage_hash, chain_id)))
        if self.fail:
            raise httpx.ConnectError("indexer down")
        return self._find(preimage_hash, chain_id)

    async def get_lockup_pair(
        self, preimage_hash: str, origin_chain_id: int, destination_chain_id: int
    ) -> LockupPair:
        self.calls.append(("get_lockup_pair", (preimage_hash, origin_chain_id, destination_chain_id)))
        if self.fail:
            raise httpx.ConnectError("indexer down")
        origin = self._find(preimage_hash, origin_chain_id)
        destination = self._find(preimage_hash, destination_chain_id)
        return LockupPair(
            origin_lockup=origin[0] if origin else None,
            destination_lockup=destination[0] if destination else None,
        )

    async def get_claimable_and_refundable_lockups(self, address: str) -> ClaimableAndRefundable:
        self.calls.append(("get_claimable_and_refundable_lockups", address))
        if self.fail:
            raise httpx.ConnectError("indexer down")
        return ClaimableAndRefundable(claimable=list(self.claimable), refundable=list(self.refundable))

    async def close(self) -> None:
        pass


class FakeHeights:
    def __init__(self, heights: Optional[dict[int, int]] = None, failing: Optional[set[int]] = None):
        self.heights = heights or {}
        self.failing = failing or set()
        self.calls: list[int] = []

    @property
    def chain_ids(self) -> list[int]:
        return sorted(self.heights)

    async def get_block_height(self, chain_id: int) -> int:
        self.calls.append(chain_id)
        if chain_id in self.failing:
            raise ConnectionError(f"rpc for {chain_id} unreachable")
        return self.heights[chain_id]

    async def check_connectivity(self, chain_id: int) -> bool:
        return chain_id not in self.failing


class FakeStatusService:
    def __init__(self, statuses: Optional[dict[str, str]] = None, fail: bool = False):
        self.statuses = statuses or {}
        self.fail = fail
        self.calls: list[list[str]] = []

    async def get_current_status(self, swap_ids: list[str]) -> dict[str, SwapStatusInfo]:
        self.calls.append(list(swap_ids))
        if self.fail:
            raise httpx.ConnectError("lds down")
        return {i: SwapStatusInfo(status=self.statuses[i]) for i in swap_ids if i in self.statuses}

    async def close(self) -> None:
        pass


@pytest.fixture
def store(tmp_path) -> Iterator[BridgeSwapStore]:
    db = BridgeSwapStore(f"sqlite:///{tmp_path / 'swaps.db'}")
    yield db
    db.close()
