"""
GraphQL client for the EVM bridge lockup indexer.

The indexer tracks HTLC lockups of the EtherSwap/ERC20Swap contracts on every
supported EVM chain. Lockup ids are ``<chainId>:<preimageHash>``.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

logger = structlog.get_logger()


LOCKUP_FRAGMENT = """
  id
  preimageHash
  chainId
  amount
  claimAddress
  refundAddress
  timelock
  tokenAddress
  swapType
  claimed
  refunded
  claimTxHash
  refundTxHash
  lockupTxHash
  preimage
"""

GET_LOCKUP_QUERY = f"""
query GetLockup($preimageHash: String = "", $chainId: Int = 0) {{
  lockupss(where: {{ preimageHash: $preimageHash, chainId: $chainId }}) {{
    items {{
      {LOCKUP_FRAGMENT}
    }}
  }}
}}
"""

GET_LOCKUP_PAIR_QUERY = f"""
query EvmBridgeLockups($originLockup: String = "", $destinationLockup: String = "") {{
  originLockup: lockups(id: $originLockup) {{
    {LOCKUP_FRAGMENT}
  }}
  destinationLockup: lockups(id: $destinationLockup) {{
    {LOCKUP_FRAGMENT}
  }}
}}
"""

CLAIMABLE_AND_REFUNDABLE_QUERY = f"""
query ClaimableAndRefundable($address: String = "") {{
  refundable: lockupss(
    where: {{ refundAddress: $address, refundTxHash: null, claimed: false }}
    orderBy: "timelock"
    orderDirection: "asc"
    limit: 1000
  ) {{
    items {{
      {LOCKUP_FRAGMENT}
    }}
  }}
  claimable: lockupss(
    where: {{ claimAddress: $address, claimTxHash: null, claimed: false, refunded: false }}
    orderBy: "timelock"
    orderDirection: "asc"
    limit: 1000
  ) {{
    items {{
      {LOCKUP_FRAGMENT}
      knownPreimage {{
        preimage
      }}
    }}
  }}
}}
"""


class IndexerError(Exception):
    """Error reported by the lockup indexer."""

    def __init__(self, message: str, errors: Optional[list[Any]] = None):
        self.errors = errors or []
        super().__init__(message)


class KnownPreimage(BaseModel):
    preimage: Optional[str] = None


class EvmLockup(BaseModel):
    """An HTLC lockup as reported by the indexer."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )

    id: str
    preimage_hash: str
    chain_id: int
    amount: str = "0"
    claim_address: str
    refund_address: str
    timelock: int
    token_address: Optional[str] = None
    swap_type: Optional[str] = None
    claimed: bool = False
    refunded: bool = False
    claim_tx_hash: Optional[str] = None
    refund_tx_hash: Optional[str] = None
    lockup_tx_hash: Optional[str] = None
    preimage: Optional[str] = None
    known_preimage: Optional[KnownPreimage] = Field(default=None)

    def to_api(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


@dataclass
class LockupPair:
    """Origin and destination lockups of an EVM <-> EVM chain swap."""

    origin_lockup: Optional[EvmLockup] = None
    destination_lockup: Optional[EvmLockup] = None


@dataclass
class ClaimableAndRefundable:
    claimable: list[EvmLockup] = field(default_factory=list)
    refundable: list[EvmLockup] = field(default_factory=list)


def lockup_id(chain_id: int, preimage_hash: str) -> str:
    return f"{chain_id}:{preimage_hash}"


def _parse_items(container: Any) -> list[EvmLockup]:
    if not isinstance(container, dict):
        return []
    items = container.get("items")
    if not isinstance(items, list):
        return []
    return [EvmLockup.model_validate(item) for item in items if isinstance(item, dict)]


def _parse_one(item: Any) -> Optional[EvmLockup]:
    if not isinstance(item, dict):
        return None
    return EvmLockup.model_validate(item)


class EvmBridgeIndexer:
    """Async client for the lockup GraphQL endpoint."""

    def __init__(self, url: str, timeout: float = 20.0):
        self.url = url
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def query(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Run a GraphQL query and return its ``data`` object."""
        client = await self._get_client()
        response = await client.post(self.url, json={"query": query, "variables": variables})
        if response.is_error:
            logger.warning(
                "evm_bridge_indexer_query_failed",
                status_code=response.status_code,
                url=self.url,
            )
        response.raise_for_status()

        result = response.json()
        if not isinstance(result, dict):
            raise IndexerError("Invalid response from EVM bridge indexer")
        if result.get("errors"):
            raise IndexerError(f"GraphQL error: {result['errors']}", result["errors"])

        data = result.get("data")
        return data if isinstance(data, dict) else {}

    async def get_lockup(self, preimage_hash: str, chain_id: int) -> list[EvmLockup]:
        """Lockups for a preimage hash on one chain (usually zero or one)."""
        data = await self.query(
            GET_LOCKUP_QUERY,
            {"preimageHash": preimage_hash, "chainId": chain_id},
        )
        return _parse_items(data.get("lockupss"))

    async def get_lockup_pair(
        self,
        preimage_hash: str,
        origin_chain_id: int,
        destination_chain_id: int,
    ) -> LockupPair:
        data = await self.query(
            GET_LOCKUP_PAIR_QUERY,
            {
                "originLockup": lockup_id(origin_chain_id, preimage_hash),
                "destinationLockup": lockup_id(destination_chain_id, preimage_hash),
            },
        )
        return LockupPair(
            origin_lockup=_parse_one(data.get("originLockup")),
            destination_lockup=_parse_one(data.get("destinationLockup")),
        )

    async def get_claimable_and_refundable_lockups(self, address: str) -> ClaimableAndRefundable:
        """
        Lockups the address can still claim or refund.

        Claimable entries carry ``knownPreimage`` when the indexer saw the
        preimage revealed elsewhere.
        """
        if not address:
            return ClaimableAndRefundable()

        data = await self.query(CLAIMABLE_AND_REFUNDABLE_QUERY, {"address": address.lower()})
        return ClaimableAndRefundable(
            claimable=_parse_items(data.get("claimable")),
            refundable=_parse_items(data.get("refundable")),
        )
