"""
External Bitcoin indexer client (Esplora-compatible).

Used to read the history of HTLC lockup addresses, including input witness
stacks, so claim and refund spends can be told apart by their script leaf.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

import httpx
import structlog

logger = structlog.get_logger()

# Esplora returns address history in pages of 25 (latest first)
ESPLORA_PAGE_SIZE = 25


@dataclass
class BtcIndexerConfig:
    """Bitcoin indexer configuration."""

    base_url: str
    timeout: float = 20.0
    max_pages: int = 20


@dataclass
class TxInput:
    """Transaction input with its witness stack (hex items)."""

    txid: Optional[str]
    vout: Optional[int]
    witness: list[str] = field(default_factory=list)
    prevout_address: Optional[str] = None

    def has_witness_item(self, item: str) -> bool:
        return item.lower() in (w.lower() for w in self.witness)


@dataclass
class TxOutput:
    """Transaction output."""

    value_sats: int
    address: Optional[str]


@dataclass
class BitcoinTransaction:
    """Parsed Esplora transaction."""

    txid: str
    confirmed: bool
    block_height: Optional[int]
    vin: list[TxInput]
    vout: list[TxOutput]

    @classmethod
    def from_esplora(cls, data: dict[str, Any]) -> "BitcoinTransaction":
        status = data.get("status") if isinstance(data.get("status"), dict) else {}
        vin = []
        for entry in data.get("vin") or []:
            if not isinstance(entry, dict):
                continue
            witness = entry.get("witness")
            prevout = entry.get("prevout") if isinstance(entry.get("prevout"), dict) else {}
            vin.append(
                TxInput(
                    txid=entry.get("txid"),
                    vout=entry.get("vout"),
                    witness=[w for w in witness if isinstance(w, str)] if isinstance(witness, list) else [],
                    prevout_address=prevout.get("scriptpubkey_address"),
                )
            )
        vout = []
        for entry in data.get("vout") or []:
            if not isinstance(entry, dict):
                continue
            value = entry.get("value")
            vout.append(
                TxOutput(
                    value_sats=value if isinstance(value, int) else 0,
                    address=entry.get("scriptpubkey_address"),
                )
            )
        block_height = status.get("block_height")
        return cls(
            txid=data["txid"],
            confirmed=bool(status.get("confirmed")),
            block_height=block_height if isinstance(block_height, int) else None,
            vin=vin,
            vout=vout,
        )

    def spends_with_leaf(self, leaf_script: str) -> bool:
        """True if any input reveals ``leaf_script`` in its witness."""
        return any(tx_in.has_witness_item(leaf_script) for tx_in in self.vin)


def find_leaf_spend(
    txs: Iterable[BitcoinTransaction], leaf_script: str
) -> Optional[BitcoinTransaction]:
    """First transaction spending through the given script leaf, if any."""
    for tx in txs:
        if tx.spends_with_leaf(leaf_script):
            return tx
    return None


class BtcOnchainIndexer:
    """Async client for Esplora-compatible Bitcoin indexers."""

    def __init__(self, config: BtcIndexerConfig):
        self.config = config
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url.rstrip("/"),
                timeout=self.config.timeout,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_json(self, path: str) -> Any:
        client = await self._get_client()
        response = await client.get(path)
        response.raise_for_status()
        return response.json()

    async def get_tip_height(self) -> int:
        client = await self._get_client()
        response = await client.get("/blocks/tip/height")
        response.raise_for_status()
        return int(response.text)

    async def get_address_txs(self, address: str) -> list[dict[str, Any]]:
        """
        Get raw transactions for an address.

        Follows the `/txs/chain/<last_seen_txid>` pagination until a short
        page, so older spends of a long-lived lockup address are not missed.
        """
        base = f"/address/{address}/txs"
        txs: list[dict[str, Any]] = []
        cursor_txid: Optional[str] = None
        seen_cursors: set[str] = set()

        for _ in range(self.config.max_pages):
            if cursor_txid is None:
                path = base
            else:
                if cursor_txid in seen_cursors:
                    logger.warning("address_txs_cursor_loop", address=address, cursor_txid=cursor_txid)
                    break
                seen_cursors.add(cursor_txid)
                path = f"{base}/chain/{cursor_txid}"

            page = await self._get_json(path)
            if not isinstance(page, list):
                raise ValueError("Invalid response from indexer /address/txs endpoint")

            page = [x for x in page if isinstance(x, dict)]
            if not page:
                break
            txs.extend(page)

            if len(page) < ESPLORA_PAGE_SIZE:
                break

            last_txid = page[-1].get("txid")
            if not isinstance(last_txid, str) or not last_txid:
                break
            cursor_txid = last_txid
        else:
            logger.warning(
                "address_txs_truncated",
                address=address,
                max_pages=self.config.max_pages,
                fetched=len(txs),
            )

        return txs

    async def get_transactions_by_address(self, address: str) -> list[BitcoinTransaction]:
        """Parsed transaction history of an address (empty if never used)."""
        raw = await self.get_address_txs(address)
        return [BitcoinTransaction.from_esplora(tx) for tx in raw if isinstance(tx.get("txid"), str)]
