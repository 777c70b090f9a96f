"""
Configuration management for omnibridge.

Provides configuration for:
- Network mode (testnet / mainnet) per orchestrator instance
- RPC and API endpoints
- Finality wait and attestation fetch policy
- Transfer status polling budget
- Preflight balance minimums
- Logging

There is no process-wide configuration object. A ``BridgeConfig`` is built
once and passed to every service, so concurrent workflows targeting
different networks never share a mutable network flag.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional

from .errors import ValidationError
from .models import ChainId

logger = logging.getLogger(__name__)

ENV_PREFIX = "OMNIBRIDGE_"


class NetworkMode(str, Enum):
    """Bridge deployment the orchestrator talks to."""
    TESTNET = "testnet"
    MAINNET = "mainnet"

    @property
    def attestation_tag(self) -> str:
        """Network tag understood by the attestation service."""
        return "Testnet" if self is NetworkMode.TESTNET else "Mainnet"


@dataclass(frozen=True)
class EndpointConfig:
    """HTTP endpoint settings."""
    url: str
    timeout_seconds: float = 30.0
    connect_timeout_seconds: float = 10.0


@dataclass(frozen=True)
class ChainSettings:
    """Per-chain settings."""
    chain: ChainId
    display_name: str
    rpc: EndpointConfig
    native_symbol: str
    native_decimals: int
    explorer_url: str = ""

    # Transfers from this chain need a Wormhole VAA before indexing
    requires_attestation: bool = False

    # Minimum native balance (smallest units) the signer must hold to pay
    # for an on-chain registration step on this chain
    min_registration_balance: int = 0

    # Seconds to wait for finality before fetching an attestation
    finality_wait_seconds: float = 80.0


@dataclass(frozen=True)
class AttestationConfig:
    """Attestation fetch policy."""
    endpoint: EndpointConfig
    default_finality_wait_seconds: float = 80.0

    # 1 = wait once then fetch once, never self-retry
    fetch_attempts: int = 1
    retry_interval_seconds: float = 15.0


@dataclass(frozen=True)
class PollingConfig:
    """Transfer status polling budget."""
    max_attempts: int = 20
    interval_seconds: float = 3.0


@dataclass(frozen=True)
class LoggingConfig:
    """Configuration for workflow logging."""
    step_level: str = "INFO"
    submission_level: str = "INFO"
    error_level: str = "ERROR"

    # Partial masking of addresses in log output
    mask_addresses: bool = False


@dataclass(frozen=True)
class BridgeConfig:
    """
    Master configuration for one orchestrator.

    Supports loading from environment variables with prefix OMNIBRIDGE_.
    """
    network: NetworkMode
    chains: Dict[ChainId, ChainSettings]
    bridge_api: EndpointConfig
    attestation: AttestationConfig
    polling: PollingConfig = field(default_factory=PollingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Limit on SPL token accounts inspected when listing a wallet
    max_listed_token_accounts: int = 30

    def get_chain(self, chain: ChainId) -> ChainSettings:
        """Get settings for a specific chain."""
        if chain not in self.chains:
            raise ValueError(f"Unknown chain: {chain}")
        return self.chains[chain]

    def finality_wait_for(self, chain: ChainId) -> float:
        """Finality wait for attestations emitted on ``chain``."""
        settings = self.chains.get(chain)
        if settings is None:
            return self.attestation.default_finality_wait_seconds
        return settings.finality_wait_seconds

    def requires_attestation(self, chain: ChainId) -> bool:
        settings = self.chains.get(chain)
        return bool(settings and settings.requires_attestation)


_DEFAULT_ENDPOINTS: Dict[NetworkMode, Dict[str, str]] = {
    NetworkMode.TESTNET: {
        "sol": "https://api.devnet.solana.com",
        "eth": "https://eth-sepolia.public.blastapi.io",
        "near": "https://rpc.testnet.near.org",
        "bridge_api": "https://testnet.api.bridge.nearone.org",
        "wormholescan": "https://api.testnet.wormholescan.io",
    },
    NetworkMode.MAINNET: {
        "sol": "https://api.mainnet-beta.solana.com",
        "eth": "https://eth.llamarpc.com",
        "near": "https://rpc.mainnet.near.org",
        "bridge_api": "https://mainnet.api.bridge.nearone.org",
        "wormholescan": "https://api.wormholescan.io",
    },
}

_EXPLORERS: Dict[NetworkMode, Dict[ChainId, str]] = {
    NetworkMode.TESTNET: {
        ChainId.SOL: "https://explorer.solana.com/?cluster=devnet",
        ChainId.ETH: "https://sepolia.etherscan.io",
        ChainId.NEAR: "https://testnet.nearblocks.io",
    },
    NetworkMode.MAINNET: {
        ChainId.SOL: "https://explorer.solana.com",
        ChainId.ETH: "https://etherscan.io",
        ChainId.NEAR: "https://nearblocks.io",
    },
}


def _get_env(key: str, default: Any = None, prefix: str = ENV_PREFIX) -> Any:
    """Get environment variable with prefix."""
    return os.getenv(f"{prefix}{key}", default)


def _get_env_float(key: str, default: float) -> float:
    value = _get_env(key)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring invalid {ENV_PREFIX}{key}={value!r}, using {default}")
        return default


def _get_env_int(key: str, default: int) -> int:
    value = _get_env(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring invalid {ENV_PREFIX}{key}={value!r}, using {default}")
        return default


def build_default_config(
    network: NetworkMode = NetworkMode.TESTNET,
    finality_wait_seconds: float = 80.0,
) -> BridgeConfig:
    """Build default configuration for a network without reading the environment."""
    urls = _DEFAULT_ENDPOINTS[network]
    explorers = _EXPLORERS[network]

    chains = {
        ChainId.SOL: ChainSettings(
            chain=ChainId.SOL,
            display_name="Solana",
            rpc=EndpointConfig(url=urls["sol"]),
            native_symbol="SOL",
            native_decimals=9,
            explorer_url=explorers[ChainId.SOL],
            requires_attestation=True,
            min_registration_balance=10_000_000,  # 0.01 SOL
            finality_wait_seconds=finality_wait_seconds,
        ),
        ChainId.ETH: ChainSettings(
            chain=ChainId.ETH,
            display_name="Ethereum",
            rpc=EndpointConfig(url=urls["eth"]),
            native_symbol="ETH",
            native_decimals=18,
            explorer_url=explorers[ChainId.ETH],
            requires_attestation=False,
            min_registration_balance=5 * 10**15,  # 0.005 ETH
            finality_wait_seconds=finality_wait_seconds,
        ),
        ChainId.NEAR: ChainSettings(
            chain=ChainId.NEAR,
            display_name="NEAR",
            rpc=EndpointConfig(url=urls["near"]),
            native_symbol="NEAR",
            native_decimals=24,
            explorer_url=explorers[ChainId.NEAR],
            min_registration_balance=10**24,  # 1 NEAR for deploy storage
            finality_wait_seconds=finality_wait_seconds,
        ),
    }

    return BridgeConfig(
        network=network,
        chains=chains,
        bridge_api=EndpointConfig(url=urls["bridge_api"]),
        attestation=AttestationConfig(
            endpoint=EndpointConfig(url=urls["wormholescan"]),
            default_finality_wait_seconds=finality_wait_seconds,
        ),
    )


def load_config(network: Optional[NetworkMode | str] = None) -> BridgeConfig:
    """Build configuration with OMNIBRIDGE_* environment overrides applied."""
    if network is None:
        value = _get_env("NETWORK", NetworkMode.TESTNET.value)
        try:
            network = NetworkMode(value)
        except ValueError:
            logger.warning(f"Ignoring invalid {ENV_PREFIX}NETWORK={value!r}, using testnet")
            network = NetworkMode.TESTNET
    else:
        try:
            network = NetworkMode(network)
        except ValueError as e:
            raise ValidationError(f"Unknown network {network!r}", field="network") from e

    finality_wait = _get_env_float("FINALITY_WAIT_SECONDS", 80.0)
    config = build_default_config(network, finality_wait_seconds=finality_wait)

    chains = {}
    for chain_id, settings in config.chains.items():
        key = chain_id.value.upper()
        custom_rpc = _get_env(f"{key}_RPC_URL")
        chains[chain_id] = replace(
            settings,
            rpc=replace(settings.rpc, url=custom_rpc) if custom_rpc else settings.rpc,
            min_registration_balance=_get_env_int(
                f"{key}_MIN_REGISTRATION_BALANCE", settings.min_registration_balance
            ),
            finality_wait_seconds=_get_env_float(
                f"{key}_FINALITY_WAIT_SECONDS", settings.finality_wait_seconds
            ),
        )

    bridge_api_url = _get_env("BRIDGE_API_URL")
    attestation_url = _get_env("ATTESTATION_API_URL")

    return replace(
        config,
        chains=chains,
        bridge_api=replace(config.bridge_api, url=bridge_api_url) if bridge_api_url else config.bridge_api,
        attestation=replace(
            config.attestation,
            endpoint=(
                replace(config.attestation.endpoint, url=attestation_url)
                if attestation_url else config.attestation.endpoint
            ),
            fetch_attempts=max(1, _get_env_int("ATTESTATION_FETCH_ATTEMPTS", config.attestation.fetch_attempts)),
            retry_interval_seconds=_get_env_float(
                "ATTESTATION_RETRY_INTERVAL_SECONDS", config.attestation.retry_interval_seconds
            ),
        ),
        polling=PollingConfig(
            max_attempts=max(1, _get_env_int("POLL_MAX_ATTEMPTS", config.polling.max_attempts)),
            interval_seconds=_get_env_float("POLL_INTERVAL_SECONDS", config.polling.interval_seconds),
        ),
        logging=replace(
            config.logging,
            mask_addresses=str(_get_env("MASK_ADDRESSES", "false")).lower() in ("1", "true", "yes"),
        ),
    )


__all__ = [
    "NetworkMode",
    "EndpointConfig",
    "ChainSettings",
    "AttestationConfig",
    "PollingConfig",
    "LoggingConfig",
    "BridgeConfig",
    "build_default_config",
    "load_config",
]
