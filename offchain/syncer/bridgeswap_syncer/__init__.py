"""
Bridge Swap Syncer

Reconciles stored bridge swaps (Lightning <-> chain, BTC <-> EVM, EVM <-> EVM)
with the upstream swap service and with on-chain truth, and lists the lockups
a user can claim or refund.

Usage:
    # Sync one user's swaps
    bridgeswap-syncer sync 0x...

    # Show what the user can claim or refund
    bridgeswap-syncer claim-refund 0x...

    # Periodically sync WATCHED_USERS
    bridgeswap-syncer run
"""

__version__ = "0.1.0"

from .claim_refund import (
    ClaimRefundResult,
    compute_claimable_and_refundable_evm_swaps,
    compute_refundable_btc_chain_swaps,
)
from .fixers import FixerDeps, build_fix_swap_statuses
from .models import BridgeSwap, SwapType
from .status import SwapStatus
from .syncer import BridgeSwapStatusSyncer

__all__ = [
    "__version__",
    "BridgeSwap",
    "SwapType",
    "SwapStatus",
    "FixerDeps",
    "build_fix_swap_statuses",
    "ClaimRefundResult",
    "compute_claimable_and_refundable_evm_swaps",
    "compute_refundable_btc_chain_swaps",
    "BridgeSwapStatusSyncer",
]
