"""
Pydantic models for bridge swaps and API responses.
"""

from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .status import SwapStatus


class SwapType(str, Enum):
    SUBMARINE = "submarine"
    REVERSE = "reverse"
    CHAIN = "chain"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


# ============================================================================
# HTLC details
# ============================================================================

class TreeLeaf(_CamelModel):
    """One script-path leaf of a taproot swap tree."""

    version: Optional[int] = None
    output: str = Field(..., min_length=1, description="Leaf script (hex)")


class SwapTree(_CamelModel):
    claim_leaf: Optional[TreeLeaf] = None
    refund_leaf: Optional[TreeLeaf] = None


class BtcScriptDetails(_CamelModel):
    """Details of a Bitcoin taproot HTLC (one leg of a chain swap)."""

    swap_tree: SwapTree
    lockup_address: Optional[str] = None
    timeout_block_height: Optional[int] = None
    server_public_key: Optional[str] = None
    amount: Optional[int] = None
    bip21: Optional[str] = None

    @property
    def claim_script(self) -> Optional[str]:
        leaf = self.swap_tree.claim_leaf
        return leaf.output if leaf else None

    @property
    def refund_script(self) -> Optional[str]:
        leaf = self.swap_tree.refund_leaf
        return leaf.output if leaf else None


class EvmContractDetails(_CamelModel):
    """Details of an EVM HTLC leg (no script tree)."""

    lockup_address: Optional[str] = None
    claim_address: Optional[str] = None
    refund_address: Optional[str] = None
    timeout_block_height: Optional[int] = None
    amount: Optional[int] = None


HtlcDetails = Union[BtcScriptDetails, EvmContractDetails]


def parse_htlc_details(raw: Any) -> Optional[HtlcDetails]:
    """
    Parse a stored claim/lockup details blob.

    A blob carrying a ``swapTree`` is a Bitcoin script leg, any other object an
    EVM leg. Malformed blobs yield None so callers simply skip them.
    """
    if raw is None:
        return None
    if isinstance(raw, (BtcScriptDetails, EvmContractDetails)):
        return raw
    if not isinstance(raw, dict):
        return None
    try:
        if "swapTree" in raw or "swap_tree" in raw:
            return BtcScriptDetails.model_validate(raw)
        return EvmContractDetails.model_validate(raw)
    except ValidationError:
        return None


# ============================================================================
# Bridge swap
# ============================================================================

class BridgeSwap(_CamelModel):
    """A bridge swap row as stored in the local ledger."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    type: SwapType
    version: int = 1
    status: SwapStatus
    asset_send: str
    asset_receive: str
    send_amount: int = Field(..., ge=0)
    receive_amount: int = Field(..., ge=0)
    date: int
    preimage: Optional[str] = None
    preimage_hash: str
    preimage_seed: Optional[str] = None
    key_index: int = 0
    claim_private_key_index: Optional[int] = None
    refund_private_key_index: Optional[int] = None
    claim_address: Optional[str] = None
    address: Optional[str] = None
    refund_address: Optional[str] = None
    lockup_address: Optional[str] = None
    claim_tx: Optional[str] = None
    refund_tx: Optional[str] = None
    lockup_tx: Optional[str] = None
    invoice: Optional[str] = None
    accept_zero_conf: Optional[bool] = None
    expected_amount: Optional[int] = Field(None, ge=0)
    onchain_amount: Optional[int] = Field(None, ge=0)
    timeout_block_height: Optional[int] = None
    claim_details: Optional[HtlcDetails] = None
    lockup_details: Optional[HtlcDetails] = None
    referral_id: Optional[str] = None
    chain_id: Optional[int] = None

    @field_validator("user_id")
    @classmethod
    def _lower_user_id(cls, value: str) -> str:
        return value.lower()

    @field_validator("claim_details", "lockup_details", mode="before")
    @classmethod
    def _parse_details(cls, value: Any) -> Optional[HtlcDetails]:
        return parse_htlc_details(value)

    @property
    def btc_claim_details(self) -> Optional[BtcScriptDetails]:
        details = self.claim_details
        return details if isinstance(details, BtcScriptDetails) else None

    @property
    def btc_lockup_details(self) -> Optional[BtcScriptDetails]:
        details = self.lockup_details
        return details if isinstance(details, BtcScriptDetails) else None

    def with_status(
        self,
        status: SwapStatus,
        claim_tx: Optional[str] = None,
        refund_tx: Optional[str] = None,
    ) -> "BridgeSwap":
        """Copy of this swap with a new status and, if given, tx hashes."""
        update: dict[str, Any] = {"status": status}
        if claim_tx is not None:
            update["claim_tx"] = claim_tx
        if refund_tx is not None:
            update["refund_tx"] = refund_tx
        return self.model_copy(update=update)

    def differs_from(self, other: "BridgeSwap") -> bool:
        """True if any field reconciliation writes differs from ``other``."""
        return (
            self.status != other.status
            or self.claim_tx != other.claim_tx
            or self.refund_tx != other.refund_tx
        )

    def to_api(self) -> dict[str, Any]:
        """JSON-safe camelCase dict with big integers as strings."""
        data = self.model_dump(mode="json", by_alias=True)
        for key in ("sendAmount", "receiveAmount", "date", "expectedAmount", "onchainAmount"):
            if data.get(key) is not None:
                data[key] = str(data[key])
        return data


# ============================================================================
# API responses
# ============================================================================

class BridgeSwapSummary(BaseModel):
    """Per-user swap counters."""

    total: int = Field(..., description="Swaps matching the request filter")
    total_refundable: int = Field(..., description="Swaps in local.userRefundable")
    total_claimable: int = Field(..., description="Swaps in local.userClaimable")
    total_success: int = Field(..., description="Swaps in a success status")
    total_pending: int = Field(..., description="Swaps still in flight")
    total_expired: int = Field(0, description="Swaps still in swap.expired")


class BridgeSwapListResponse(BaseModel):
    summary: BridgeSwapSummary
    swaps: list[dict[str, Any]]
    total: int
    limit: int
    offset: int


class ClaimRefundResponse(BaseModel):
    """Actionable EVM lockups and BTC chain swaps for a user."""

    evm: dict[str, list[dict[str, Any]]]
    btc: dict[str, list[dict[str, Any]]]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="API version")
    database: bool = Field(..., description="Database connectivity")
    evm_chains: list[int] = Field(..., description="Chains with a configured RPC")
    evm_rpc: dict[int, bool] = Field(default_factory=dict, description="RPC reachability per chain")
