"""Read clients for chains, the Omni Bridge API and Wormholescan."""
from __future__ import annotations

from .bridge_api import OmniBridgeAPI
from .evm import EvmClient
from .near import NearClient
from .solana import SolanaClient
from .wormhole import WormholeClient, WormholeQueryError

__all__ = [
    "EvmClient",
    "NearClient",
    "OmniBridgeAPI",
    "SolanaClient",
    "WormholeClient",
    "WormholeQueryError",
]
