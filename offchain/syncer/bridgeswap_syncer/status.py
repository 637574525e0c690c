"""
Bridge swap status values and the buckets they fall into.

Upstream statuses come from the swap service (LDS). The ``local.*`` values are
only ever produced by reconciliation in this package.
"""

from enum import Enum
from typing import Optional


class SwapStatus(str, Enum):
    """Every status a bridge swap row may hold."""

    # Pending
    INVOICE_SET = "invoice.set"
    INVOICE_PENDING = "invoice.pending"
    SWAP_CREATED = "swap.created"
    TRANSACTION_CONFIRMED = "transaction.confirmed"
    TRANSACTION_MEMPOOL = "transaction.mempool"
    TRANSACTION_ZERO_CONF_REJECTED = "transaction.zeroconf.rejected"
    TRANSACTION_CLAIM_PENDING = "transaction.claim.pending"
    TRANSACTION_SERVER_MEMPOOL = "transaction.server.mempool"
    TRANSACTION_SERVER_CONFIRMED = "transaction.server.confirmed"

    # Failed
    SWAP_EXPIRED = "swap.expired"
    SWAP_REFUNDED = "swap.refunded"
    SWAP_WAITING_FOR_REFUND = "swap.waitingForRefund"
    INVOICE_EXPIRED = "invoice.expired"
    INVOICE_FAILED_TO_PAY = "invoice.failedToPay"
    TRANSACTION_FAILED = "transaction.failed"
    TRANSACTION_LOCKUP_FAILED = "transaction.lockupFailed"
    TRANSACTION_REFUNDED = "transaction.refunded"

    # Success
    INVOICE_SETTLED = "invoice.settled"
    TRANSACTION_CLAIMED = "transaction.claimed"

    # Local (never reported by LDS)
    USER_REFUNDED = "local.userRefunded"
    USER_CLAIMED = "local.userClaimed"
    USER_ABANDONED = "local.userAbandoned"
    USER_CLAIMABLE = "local.userClaimable"
    USER_REFUNDABLE = "local.userRefundable"


PENDING_STATUSES = frozenset({
    SwapStatus.INVOICE_SET,
    SwapStatus.INVOICE_PENDING,
    SwapStatus.SWAP_CREATED,
    SwapStatus.TRANSACTION_CONFIRMED,
    SwapStatus.TRANSACTION_MEMPOOL,
    SwapStatus.TRANSACTION_ZERO_CONF_REJECTED,
    SwapStatus.TRANSACTION_CLAIM_PENDING,
    SwapStatus.TRANSACTION_SERVER_MEMPOOL,
    SwapStatus.TRANSACTION_SERVER_CONFIRMED,
})

FAILED_STATUSES = frozenset({
    SwapStatus.SWAP_EXPIRED,
    SwapStatus.SWAP_REFUNDED,
    SwapStatus.SWAP_WAITING_FOR_REFUND,
    SwapStatus.INVOICE_EXPIRED,
    SwapStatus.INVOICE_FAILED_TO_PAY,
    SwapStatus.TRANSACTION_FAILED,
    SwapStatus.TRANSACTION_LOCKUP_FAILED,
    SwapStatus.TRANSACTION_REFUNDED,
})

SUCCESS_STATUSES = frozenset({
    SwapStatus.INVOICE_SETTLED,
    SwapStatus.TRANSACTION_CLAIMED,
    SwapStatus.USER_CLAIMED,
})

LOCAL_FINAL_STATUSES = frozenset({
    SwapStatus.USER_REFUNDED,
    SwapStatus.USER_CLAIMED,
    SwapStatus.USER_ABANDONED,
})

LOCAL_ACTIONABLE_STATUSES = frozenset({
    SwapStatus.USER_CLAIMABLE,
    SwapStatus.USER_REFUNDABLE,
})


def parse_status(value: object) -> Optional[SwapStatus]:
    """Return the enum member for a raw status string, or None if unknown."""
    if isinstance(value, SwapStatus):
        return value
    if not isinstance(value, str):
        return None
    try:
        return SwapStatus(value)
    except ValueError:
        return None


def is_transition_allowed(current: SwapStatus, new: SwapStatus) -> bool:
    """
    Check whether reconciliation may move a swap from ``current`` to ``new``.

    Statuses only flow forward: Pending may go anywhere, nothing goes back to
    Pending once it left it, local terminal statuses are frozen, and the
    actionable local statuses may only advance to another local status.
    """
    if current == new:
        return True
    if current in LOCAL_FINAL_STATUSES:
        return False
    if new in PENDING_STATUSES:
        return current in PENDING_STATUSES
    if current in LOCAL_ACTIONABLE_STATUSES:
        return new in LOCAL_FINAL_STATUSES or new in LOCAL_ACTIONABLE_STATUSES
    return True
