"""
Bridge assets and the EVM chain each one settles on.
"""

from enum import Enum
from typing import Optional


class ChainId:
    """EVM chain ids used by the bridge."""

    MAINNET = 1
    POLYGON = 137
    CITREA_MAINNET = 4114
    CITREA_TESTNET = 5115


class BridgeAsset(str, Enum):
    BTC = "BTC"
    CBTC = "cBTC"
    JUSD_CITREA = "JUSD_CITREA"
    USDT_POLYGON = "USDT_POLYGON"
    USDT_ETH = "USDT_ETH"
    USDC_ETH = "USDC_ETH"
    WBTC_ETH = "WBTC_ETH"
    WBTC_CITREA = "WBTC_CITREA"
    WBTCE_CITREA = "WBTCe_CITREA"


ERC20_ASSETS = frozenset({
    BridgeAsset.JUSD_CITREA,
    BridgeAsset.USDT_POLYGON,
    BridgeAsset.USDT_ETH,
    BridgeAsset.USDC_ETH,
    BridgeAsset.WBTC_ETH,
    BridgeAsset.WBTC_CITREA,
    BridgeAsset.WBTCE_CITREA,
})

EVM_ASSETS = frozenset({BridgeAsset.CBTC}) | ERC20_ASSETS

ASSET_TO_CHAIN: dict[BridgeAsset, int] = {
    BridgeAsset.CBTC: ChainId.CITREA_MAINNET,
    BridgeAsset.JUSD_CITREA: ChainId.CITREA_MAINNET,
    BridgeAsset.USDT_POLYGON: ChainId.POLYGON,
    BridgeAsset.USDT_ETH: ChainId.MAINNET,
    BridgeAsset.USDC_ETH: ChainId.MAINNET,
    BridgeAsset.WBTC_ETH: ChainId.MAINNET,
    BridgeAsset.WBTC_CITREA: ChainId.CITREA_MAINNET,
    BridgeAsset.WBTCE_CITREA: ChainId.CITREA_MAINNET,
}

# Chain holding the EVM leg of every BTC <-> cBTC swap
SETTLEMENT_CHAIN_ID = ChainId.CITREA_MAINNET


def is_evm_asset(asset: str) -> bool:
    return asset in {a.value for a in EVM_ASSETS}


def chain_for_asset(asset: str) -> Optional[int]:
    """Settlement chain id for an EVM asset tag, None for BTC or unknown tags."""
    try:
        return ASSET_TO_CHAIN.get(BridgeAsset(asset))
    except ValueError:
        return None
