"""Chain identifiers and defaults used by the swap scripts."""
from __future__ import annotations

from enum import IntEnum
from typing import Dict


class NetworkEnum(IntEnum):
    ETHEREUM = 1
    OPTIMISM = 10
    BINANCE = 56
    GNOSIS = 100
    UNICHAIN = 130
    POLYGON = 137
    SONIC = 146
    FANTOM = 250
    ZKSYNC = 324
    COINBASE = 8453
    ARBITRUM = 42161
    AVALANCHE = 43114
    LINEA = 59144


# Environment variable holding the RPC endpoint for each chain
RPC_ENV_NAMES: Dict[NetworkEnum, str] = {
    NetworkEnum.ETHEREUM: "RPC_URL_ETHEREUM",
    NetworkEnum.OPTIMISM: "RPC_URL_OPTIMISM",
    NetworkEnum.BINANCE: "RPC_URL_BINANCE",
    NetworkEnum.GNOSIS: "RPC_URL_GNOSIS",
    NetworkEnum.UNICHAIN: "RPC_URL_UNICHAIN",
    NetworkEnum.POLYGON: "RPC_URL_POLYGON",
    NetworkEnum.SONIC: "RPC_URL_SONIC",
    NetworkEnum.FANTOM: "RPC_URL_FANTOM",
    NetworkEnum.ZKSYNC: "RPC_URL_ZKSYNC",
    NetworkEnum.COINBASE: "RPC_URL_BASE",
    NetworkEnum.ARBITRUM: "RPC_URL_ARBITRUM",
    NetworkEnum.AVALANCHE: "RPC_URL_AVALANCHE",
    NetworkEnum.LINEA: "RPC_URL_LINEA",
}

# Aggregation router v6, the spender that needs an ERC-20 allowance
AGGREGATION_ROUTER_V6 = "0x111111125421ca6dc452d289314280a0f8842a65"

# Default pair: USDC on Base -> USDC on Arbitrum
DEFAULT_SRC_CHAIN = NetworkEnum.COINBASE
DEFAULT_DST_CHAIN = NetworkEnum.ARBITRUM
DEFAULT_SRC_TOKEN = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"
DEFAULT_DST_TOKEN = "0xaf88d065e77c8cC2239327C5EDb3A432268e5831"
DEFAULT_AMOUNT = "100000"


def rpc_env_name(chain_id: int) -> str:
    """Return the environment variable name for a chain's RPC URL."""
    try:
        return RPC_ENV_NAMES[NetworkEnum(int(chain_id))]
    except ValueError:
        return f"RPC_URL_{int(chain_id)}"
