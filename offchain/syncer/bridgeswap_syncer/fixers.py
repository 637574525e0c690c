"""
Status fixers for bridge swaps whose upstream status is stale or ambiguous.

Each fixer looks at one swap and, when the swap matches the shape it knows
about, checks on-chain truth through the indexers. A fixer returns a corrected
copy of the swap, or None when it does not apply or has nothing to change.
Fixers are tried in order and the first corrected copy wins.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

import structlog

from .assets import SETTLEMENT_CHAIN_ID, BridgeAsset, chain_for_asset, is_evm_asset
from .btc_indexer import BtcOnchainIndexer, find_leaf_spend
from .evm_indexer import EvmBridgeIndexer, EvmLockup
from .models import BridgeSwap, SwapType
from .status import SwapStatus, is_transition_allowed

logger = structlog.get_logger()

BTC = BridgeAsset.BTC.value
CBTC = BridgeAsset.CBTC.value


@dataclass
class FixerDeps:
    """Clients the fixers read on-chain truth from."""

    btc_indexer: BtcOnchainIndexer
    evm_indexer: EvmBridgeIndexer
    settlement_chain_id: int = SETTLEMENT_CHAIN_ID


SwapFixer = Callable[[BridgeSwap, FixerDeps], Awaitable[Optional[BridgeSwap]]]


async def _first_lockup(deps: FixerDeps, preimage_hash: str, chain_id: int) -> Optional[EvmLockup]:
    lockups = await deps.evm_indexer.get_lockup(preimage_hash, chain_id)
    return lockups[0] if lockups else None


# cBTC -> BTC | transaction.claim.pending
async def fix_cbtc_to_btc_claim_pending(swap: BridgeSwap, deps: FixerDeps) -> Optional[BridgeSwap]:
    details = swap.btc_claim_details
    if (
        swap.asset_send != CBTC
        or swap.asset_receive != BTC
        or swap.status != SwapStatus.TRANSACTION_CLAIM_PENDING
        or details is None
        or not details.lockup_address
        or not details.claim_script
    ):
        return None

    txs = await deps.btc_indexer.get_transactions_by_address(details.lockup_address)
    if not txs:
        return swap.with_status(SwapStatus.USER_ABANDONED)

    claim_tx = find_leaf_spend(txs, details.claim_script)
    if claim_tx:
        return swap.with_status(SwapStatus.USER_CLAIMED, claim_tx=claim_tx.txid)

    return None


# cBTC -> BTC (chain) | swap.expired
async def fix_onchain_btc_expired(swap: BridgeSwap, deps: FixerDeps) -> Optional[BridgeSwap]:
    if (
        swap.type != SwapType.CHAIN
        or swap.asset_send != CBTC
        or swap.asset_receive != BTC
        or swap.status != SwapStatus.SWAP_EXPIRED
    ):
        return None

    lockup = await _first_lockup(deps, swap.preimage_hash, deps.settlement_chain_id)
    if lockup is None:
        return swap.with_status(SwapStatus.USER_ABANDONED)

    if lockup.refunded:
        return swap.with_status(SwapStatus.USER_REFUNDED, refund_tx=lockup.refund_tx_hash)

    details = swap.btc_claim_details
    if details and details.claim_script and details.lockup_address:
        txs = await deps.btc_indexer.get_transactions_by_address(details.lockup_address)
        claim_tx = find_leaf_spend(txs, details.claim_script)
        if claim_tx:
            return swap.with_status(SwapStatus.USER_CLAIMED, claim_tx=claim_tx.txid)

    return None


# BTC -> cBTC (chain) | transaction.lockupFailed, local.userRefundable
async def fix_transaction_lockup_failed(swap: BridgeSwap, deps: FixerDeps) -> Optional[BridgeSwap]:
    details = swap.btc_lockup_details
    if (
        swap.type != SwapType.CHAIN
        or swap.asset_send != BTC
        or swap.asset_receive != CBTC
        or swap.status not in (SwapStatus.TRANSACTION_LOCKUP_FAILED, SwapStatus.USER_REFUNDABLE)
        or details is None
        or not details.lockup_address
    ):
        return None

    txs = await deps.btc_indexer.get_transactions_by_address(details.lockup_address)
    if not txs:
        return swap.with_status(SwapStatus.USER_ABANDONED)

    if details.refund_script:
        refund_tx = find_leaf_spend(txs, details.refund_script)
        if refund_tx:
            return swap.with_status(SwapStatus.USER_REFUNDED, refund_tx=refund_tx.txid)

    lockup = await _first_lockup(deps, swap.preimage_hash, deps.settlement_chain_id)
    if lockup and lockup.claimed:
        return swap.with_status(SwapStatus.USER_CLAIMED, claim_tx=lockup.claim_tx_hash)

    # The user funded the BTC HTLC but the counter lockup never happened
    return swap.with_status(SwapStatus.USER_REFUNDABLE)


# BTC -> cBTC (chain) | swap.expired
async def fix_btc_onchain_lockup_expired(swap: BridgeSwap, deps: FixerDeps) -> Optional[BridgeSwap]:
    details = swap.btc_lockup_details
    if (
        swap.type != SwapType.CHAIN
        or swap.asset_send != BTC
        or swap.asset_receive != CBTC
        or swap.status != SwapStatus.SWAP_EXPIRED
        or details is None
        or not details.refund_script
        or not details.lockup_address
    ):
        return None

    txs = await deps.btc_indexer.get_transactions_by_address(details.lockup_address)
    if not txs:
        return swap.with_status(SwapStatus.USER_ABANDONED)

    refund_tx = find_leaf_spend(txs, details.refund_script)
    if refund_tx:
        return swap.with_status(SwapStatus.USER_REFUNDED, refund_tx=refund_tx.txid)

    if swap.preimage_hash:
        lockup = await _first_lockup(deps, swap.preimage_hash, deps.settlement_chain_id)
        if lockup and lockup.claimed:
            return swap.with_status(SwapStatus.USER_CLAIMED, claim_tx=lockup.claim_tx_hash)

    return None


# EVM -> EVM (chain) | swap.expired, local.userRefundable
async def fix_erc20_expired(swap: BridgeSwap, deps: FixerDeps) -> Optional[BridgeSwap]:
    if (
        swap.type != SwapType.CHAIN
        or swap.status not in (SwapStatus.SWAP_EXPIRED, SwapStatus.USER_REFUNDABLE)
        or not is_evm_asset(swap.asset_send)
        or not is_evm_asset(swap.asset_receive)
        or swap.lockup_details is None
        or swap.claim_details is None
    ):
        return None

    origin_chain = chain_for_asset(swap.asset_send)
    destination_chain = chain_for_asset(swap.asset_receive)
    if origin_chain is None or destination_chain is None:
        return None

    pair = await deps.evm_indexer.get_lockup_pair(swap.preimage_hash, origin_chain, destination_chain)
    origin, destination = pair.origin_lockup, pair.destination_lockup

    if origin is None:
        return swap.with_status(SwapStatus.USER_ABANDONED)

    if origin.refunded:
        return swap.with_status(SwapStatus.USER_REFUNDED, refund_tx=origin.refund_tx_hash)

    if destination and destination.claimed:
        return swap.with_status(SwapStatus.USER_CLAIMED, claim_tx=destination.claim_tx_hash)

    # Expired and the counter lockup never happened or was already refunded
    if not origin.claimed and (destination is None or destination.refunded):
        return swap.with_status(SwapStatus.USER_REFUNDABLE)

    return None


# cBTC -> BTC (submarine) | transaction.claim.pending
async def fix_submarine_claim_pending(swap: BridgeSwap, deps: FixerDeps) -> Optional[BridgeSwap]:
    if (
        swap.type == SwapType.SUBMARINE
        and swap.asset_send == CBTC
        and swap.asset_receive == BTC
        and swap.status == SwapStatus.TRANSACTION_CLAIM_PENDING
    ):
        # The invoice was paid; LDS claiming its side does not involve the user
        return swap.with_status(SwapStatus.USER_CLAIMED)
    return None


# EVM -> EVM (chain) | transaction.claim.pending
async def fix_evm_claim_pending(swap: BridgeSwap, deps: FixerDeps) -> Optional[BridgeSwap]:
    if (
        swap.type != SwapType.CHAIN
        or swap.status != SwapStatus.TRANSACTION_CLAIM_PENDING
        or swap.asset_send == BTC
        or swap.asset_receive == BTC
    ):
        return None

    destination_chain = chain_for_asset(swap.asset_receive)
    if destination_chain is None:
        return None

    lockup = await _first_lockup(deps, swap.preimage_hash, destination_chain)
    if lockup and lockup.claimed:
        return swap.with_status(SwapStatus.USER_CLAIMED, claim_tx=lockup.claim_tx_hash)
    return None


DEFAULT_FIXERS: tuple[SwapFixer, ...] = (
    fix_cbtc_to_btc_claim_pending,
    fix_onchain_btc_expired,
    fix_transaction_lockup_failed,
    fix_btc_onchain_lockup_expired,
    fix_erc20_expired,
    fix_submarine_claim_pending,
    fix_evm_claim_pending,
)


async def fix_swap_status(
    swap: BridgeSwap,
    deps: FixerDeps,
    fixers: Sequence[SwapFixer] = DEFAULT_FIXERS,
) -> BridgeSwap:
    """
    Run ``swap`` through ``fixers`` and return the first correction.

    A fixer that raises (indexer down, bad response) leaves the swap unchanged
    for this pass. Corrections that would move the swap backwards are dropped.
    """
    log = logger.bind(swap_id=swap.id, status=swap.status.value)
    for fixer in fixers:
        try:
            result = await fixer(swap, deps)
        except Exception as e:
            log.warning("swap_fixer_failed", fixer=fixer.__name__, error=str(e))
            return swap

        if result is None or not result.differs_from(swap):
            continue

        if not is_transition_allowed(swap.status, result.status):
            log.warning(
                "swap_fixer_transition_rejected",
                fixer=fixer.__name__,
                new_status=result.status.value,
            )
            continue

        log.info("swap_status_fixed", fixer=fixer.__name__, new_status=result.status.value)
        return result

    return swap


def build_fix_swap_statuses(
    deps: FixerDeps,
    fixers: Sequence[SwapFixer] = DEFAULT_FIXERS,
) -> Callable[[list[BridgeSwap]], Awaitable[list[BridgeSwap]]]:
    """Bind the fixer chain to its clients; swaps are reconciled concurrently."""

    async def fix_swap_statuses(swaps: list[BridgeSwap]) -> list[BridgeSwap]:
        return list(await asyncio.gather(*(fix_swap_status(swap, deps, fixers) for swap in swaps)))

    return fix_swap_statuses
