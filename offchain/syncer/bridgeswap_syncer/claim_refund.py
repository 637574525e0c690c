"""
Which lockups and swaps a user can act on right now.

EVM side: claimable lockups need a preimage (from the indexer or the local
ledger), refundable lockups need their timelock to have elapsed on their own
chain. BTC side: BTC-funded chain swaps whose HTLC timeout has passed.

A timelock equal to the current height counts as elapsed: a refund sent now is
mined at ``height + 1`` at the earliest, past the timelock.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import structlog

from .assets import BridgeAsset
from .btc_indexer import BtcOnchainIndexer
from .db import BridgeSwapStore
from .evm_indexer import ClaimableAndRefundable, EvmBridgeIndexer, EvmLockup
from .hexutil import prefix_0x, unprefix_0x
from .models import BridgeSwap, SwapType
from .status import LOCAL_FINAL_STATUSES, PENDING_STATUSES, SUCCESS_STATUSES, SwapStatus

logger = structlog.get_logger()

# Statuses in which the BTC HTLC is not refundable by the user
_BTC_REFUND_EXCLUDED = (
    PENDING_STATUSES
    | LOCAL_FINAL_STATUSES
    | SUCCESS_STATUSES
    | {SwapStatus.SWAP_REFUNDED, SwapStatus.TRANSACTION_REFUNDED}
)


class BlockHeightSource(Protocol):
    async def get_block_height(self, chain_id: int) -> int: ...


@dataclass
class ClaimableLockup:
    """A lockup the user can claim together with the preimage to do it."""

    lockup: EvmLockup
    preimage: str

    def to_api(self) -> dict[str, Any]:
        data = self.lockup.to_api()
        data["preimage"] = self.preimage
        return data


@dataclass
class ClaimRefundResult:
    ready_to_claim: list[ClaimableLockup] = field(default_factory=list)
    ready_to_refund: list[EvmLockup] = field(default_factory=list)
    wait_unlock: list[EvmLockup] = field(default_factory=list)

    def to_api(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "readyToClaim": [c.to_api() for c in self.ready_to_claim],
            "readyToRefund": [lockup.to_api() for lockup in self.ready_to_refund],
            "waitUnlock": [lockup.to_api() for lockup in self.wait_unlock],
        }


@dataclass
class BtcRefundResult:
    ready_to_refund: list[BridgeSwap] = field(default_factory=list)
    wait_unlock: list[BridgeSwap] = field(default_factory=list)

    def to_api(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "readyToRefund": [swap.to_api() for swap in self.ready_to_refund],
            "waitUnlock": [swap.to_api() for swap in self.wait_unlock],
        }


def is_timelock_elapsed(timelock: int, height: int) -> bool:
    return timelock <= height


async def resolve_claimable(
    user_id: str,
    lockups: list[EvmLockup],
    store: BridgeSwapStore,
) -> list[ClaimableLockup]:
    """Pair claimable lockups with a preimage; lockups without one are dropped."""
    candidates = [lockup for lockup in lockups if not lockup.claimed and not lockup.refunded]

    missing = [
        lockup.preimage_hash
        for lockup in candidates
        if not (lockup.known_preimage and lockup.known_preimage.preimage)
    ]
    stored = await asyncio.to_thread(store.get_preimages, user_id, missing) if missing else {}

    claimable = []
    for lockup in candidates:
        if lockup.known_preimage and lockup.known_preimage.preimage:
            preimage = lockup.known_preimage.preimage
        else:
            preimage = stored.get(unprefix_0x(lockup.preimage_hash.lower()))
        if not preimage:
            continue
        claimable.append(ClaimableLockup(lockup=lockup, preimage=prefix_0x(preimage)))
    return claimable


async def partition_refundable(
    lockups: list[EvmLockup],
    heights: BlockHeightSource,
) -> tuple[list[EvmLockup], list[EvmLockup]]:
    """
    Split refund candidates into (ready_to_refund, wait_unlock).

    Heights are fetched once per chain, concurrently. Lockups on a chain whose
    height could not be fetched are left out of both lists.
    """
    candidates = [lockup for lockup in lockups if not lockup.claimed and not lockup.refunded]
    chain_ids = sorted({lockup.chain_id for lockup in candidates})

    results = await asyncio.gather(
        *(heights.get_block_height(chain_id) for chain_id in chain_ids),
        return_exceptions=True,
    )

    height_by_chain: dict[int, int] = {}
    for chain_id, result in zip(chain_ids, results):
        if isinstance(result, BaseException):
            logger.warning("block_height_fetch_failed", chain_id=chain_id, error=str(result))
            continue
        height_by_chain[chain_id] = result

    ready: list[EvmLockup] = []
    waiting: list[EvmLockup] = []
    for lockup in candidates:
        height = height_by_chain.get(lockup.chain_id)
        if height is None:
            continue
        if is_timelock_elapsed(lockup.timelock, height):
            ready.append(lockup)
        else:
            waiting.append(lockup)
    return ready, waiting


async def compute_claimable_and_refundable_evm_swaps(
    user_id: str,
    indexer: EvmBridgeIndexer,
    heights: BlockHeightSource,
    store: BridgeSwapStore,
) -> ClaimRefundResult:
    """EVM lockups of ``user_id`` that are ready to claim, ready to refund, or still locked."""
    try:
        lockups = await indexer.get_claimable_and_refundable_lockups(user_id)
    except Exception as e:
        logger.error("claimable_refundable_fetch_failed", user_id=user_id, error=str(e))
        lockups = ClaimableAndRefundable()

    ready_to_claim = await resolve_claimable(user_id, lockups.claimable, store)
    ready_to_refund, wait_unlock = await partition_refundable(lockups.refundable, heights)

    return ClaimRefundResult(
        ready_to_claim=ready_to_claim,
        ready_to_refund=ready_to_refund,
        wait_unlock=wait_unlock,
    )


def _btc_refund_target(swap: BridgeSwap) -> tuple[Optional[int], Optional[str]]:
    details = swap.btc_lockup_details
    timeout = swap.timeout_block_height
    address = swap.lockup_address
    if details is not None:
        timeout = timeout if timeout is not None else details.timeout_block_height
        address = address or details.lockup_address
    return timeout, address


async def compute_refundable_btc_chain_swaps(
    user_id: str,
    store: BridgeSwapStore,
    btc_indexer: BtcOnchainIndexer,
) -> BtcRefundResult:
    """BTC-funded chain swaps whose HTLC can be refunded now, or once unlocked."""
    swaps = await asyncio.to_thread(
        store.get_swaps,
        user_id,
        types=[SwapType.CHAIN],
        asset_send=BridgeAsset.BTC.value,
        unsettled=True,
        exclude_statuses=_BTC_REFUND_EXCLUDED,
    )

    candidates = []
    for swap in swaps:
        timeout, address = _btc_refund_target(swap)
        if timeout is not None and address:
            candidates.append((swap, timeout))

    if not candidates:
        return BtcRefundResult()

    try:
        tip_height = await btc_indexer.get_tip_height()
    except Exception as e:
        logger.warning("btc_tip_height_fetch_failed", user_id=user_id, error=str(e))
        return BtcRefundResult()

    result = BtcRefundResult()
    for swap, timeout in candidates:
        if is_timelock_elapsed(timeout, tip_height):
            result.ready_to_refund.append(swap)
        else:
            result.wait_unlock.append(swap)
    return result
