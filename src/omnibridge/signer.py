"""
Chain write port used by the workflows.

Signing and wallet sessions live outside this package. Callers connect a
wallet and hand the orchestrator an object implementing ``BridgeSignerPort``.
Each method submits one irrevocable on-chain call and either returns its
result or raises; there are no partial submission states.
"""
from __future__ import annotations

import logging
import secrets
from abc import ABC, abstractmethod
from collections import Counter
from itertools import count
from typing import Dict

import base58

from .models import Address, Attestation, ChainId, EventSubmission, SubmissionResult, TransferIntent, TxSubmission

logger = logging.getLogger(__name__)


class BridgeSignerPort(ABC):
    """Abstract interface for bridge write clients."""

    @abstractmethod
    async def log_metadata(self, token: Address) -> str:
        """Emit the token's metadata on its source chain. Returns the tx id."""
        pass

    @abstractmethod
    async def deploy_token(self, source_chain: ChainId, attestation: Attestation) -> str:
        """Deploy the bridged token on the destination chain. Returns the tx id."""
        pass

    @abstractmethod
    async def submit_transfer(self, intent: TransferIntent) -> SubmissionResult:
        """Lock or burn funds on the source chain for ``intent``."""
        pass


def _fake_tx_id(chain: ChainId) -> str:
    if chain is ChainId.ETH:
        return "0x" + secrets.token_hex(32)
    if chain is ChainId.SOL:
        return base58.b58encode(secrets.token_bytes(64)).decode()
    return base58.b58encode(secrets.token_bytes(32)).decode()


class SimulatedBridgeSigner(BridgeSignerPort):
    """Simulated signer for development and dry runs.

    Returns random transaction ids shaped like the target chain's and counts
    every call in ``calls``. With ``emit_events=True`` transfers come back as
    structured events carrying an increasing origin nonce.
    """

    def __init__(self, emit_events: bool = False, start_nonce: int = 1):
        self.emit_events = emit_events
        self.calls: Counter = Counter()
        self.submitted: Dict[str, TransferIntent] = {}
        self._nonces = count(start_nonce)

    async def log_metadata(self, token: Address) -> str:
        self.calls["log_metadata"] += 1
        tx_id = _fake_tx_id(token.chain)
        logger.debug(f"Simulated log_metadata for {token.omni}: {tx_id}")
        return tx_id

    async def deploy_token(self, source_chain: ChainId, attestation: Attestation) -> str:
        self.calls["deploy_token"] += 1
        tx_id = _fake_tx_id(ChainId.NEAR)
        logger.debug(f"Simulated deploy_token from {source_chain.value}: {tx_id}")
        return tx_id

    async def submit_transfer(self, intent: TransferIntent) -> SubmissionResult:
        self.calls["submit_transfer"] += 1
        chain = intent.token.chain
        if self.emit_events:
            nonce = next(self._nonces)
            result: SubmissionResult = EventSubmission(
                chain=chain,
                origin_nonce=nonce,
                payload={"transfer_message": {"origin_nonce": nonce, **intent.to_dict()}},
            )
        else:
            result = TxSubmission(chain=chain, tx_id=_fake_tx_id(chain))
        self.submitted[result.reference] = intent
        return result


__all__ = [
    "BridgeSignerPort",
    "SimulatedBridgeSigner",
]
