"""
Bridge orchestrator facade.

Wires the read clients, the observation components and the two workflows
for one ``BridgeConfig``. Every operation is a coroutine that can be
cancelled, and accepts an optional ``timeout`` in seconds.

Example usage:
    ```python
    from omnibridge import Address, BridgeOrchestrator, ChainId, SignerContext

    async with BridgeOrchestrator() as bridge:
        token = await bridge.resolve_token(Address(ChainId.SOL, mint))
        status = await bridge.check_registration(sender, token.address, recipient)
        if status.is_registered:
            result = await bridge.run_transfer(token, 1_000_000, recipient, signer_context)
    ```
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, List, Optional, TypeVar, Union

import httpx

from .attestation import AttestationWaiter
from .clients.bridge_api import OmniBridgeAPI
from .clients.evm import EvmClient
from .clients.near import NearClient
from .clients.solana import SolanaClient
from .clients.wormhole import WormholeClient
from .config import BridgeConfig, load_config
from .fees import FeeEstimator
from .logging_utils import WorkflowLogger
from .models import (
    Address,
    Attestation,
    AttestationRequest,
    ChainId,
    FeeQuote,
    RegistrationResult,
    RegistrationStatus,
    SignerContext,
    SubmissionResult,
    TokenDescriptor,
    TransferIntent,
    TransferResult,
    TransferStatus,
)
from .registration_gate import RegistrationGate
from .resolver import TokenMetadataResolver
from .status_poller import TransferStatusPoller
from .waits import SleepFunc
from .workflows.registration import RegistrationWorkflow
from .workflows.transfer import TransferWorkflow

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BridgeOrchestrator:
    """
    Entry point for token resolution, registration and transfers.

    Args:
        config: Configuration; defaults to ``load_config()``
        http_client: Shared ``httpx.AsyncClient`` for every service. When
            omitted each client creates and owns its own.
        sleep: Suspension function used by waits and polling
        clock: Monotonic clock used to measure polling time
    """

    def __init__(
        self,
        config: Optional[BridgeConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or load_config()
        cfg = self.config
        self._wlog = WorkflowLogger(config=cfg.logging)

        self.solana = SolanaClient(cfg.get_chain(ChainId.SOL).rpc, http_client)
        self.evm = EvmClient(cfg.get_chain(ChainId.ETH).rpc, http_client)
        self.near = NearClient(cfg.get_chain(ChainId.NEAR).rpc, http_client)
        self.bridge_api = OmniBridgeAPI(cfg.bridge_api, http_client)
        self.wormhole = WormholeClient(cfg.attestation.endpoint, http_client)
        self._chain_clients = {
            ChainId.SOL: self.solana,
            ChainId.ETH: self.evm,
            ChainId.NEAR: self.near,
        }

        self.resolver = TokenMetadataResolver(
            cfg, self.solana, self.evm, self.near, http_client=http_client, workflow_logger=self._wlog
        )
        self.fee_estimator = FeeEstimator(self.bridge_api, self._wlog)
        self.registration_gate = RegistrationGate(self.fee_estimator)
        self.attestation_waiter = AttestationWaiter(cfg, self.wormhole, self._wlog, sleep=sleep)
        self.status_poller = TransferStatusPoller(cfg, self.bridge_api, self._wlog, sleep=sleep, clock=clock)
        self.registration = RegistrationWorkflow(
            cfg, self.attestation_waiter, self._chain_clients, self._wlog
        )
        self.transfer = TransferWorkflow(
            cfg, self.fee_estimator, self.attestation_waiter, self.status_poller, self._wlog
        )

    async def _bounded(self, call: Awaitable[T], timeout: Optional[float]) -> T:
        if timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout)

    # ==================== Read path ====================

    async def resolve_token(
        self,
        address: Address,
        owner: Optional[Address] = None,
        timeout: Optional[float] = None,
    ) -> TokenDescriptor:
        """Resolve a token's metadata and, if ``owner`` is given, its balance."""
        return await self._bounded(self.resolver.resolve(address, owner), timeout)

    async def list_tokens(self, owner: Address, timeout: Optional[float] = None) -> List[TokenDescriptor]:
        """Non-empty SPL token holdings of a Solana wallet."""
        return await self._bounded(self.resolver.list_tokens(owner), timeout)

    async def get_native_balance(self, address: Address, timeout: Optional[float] = None) -> int:
        """Native balance in smallest units (lamports, wei, yoctoNEAR)."""
        client = self._chain_clients[address.chain]
        return await self._bounded(client.get_native_balance(address.value), timeout)

    async def estimate_fee(
        self,
        sender: Address,
        recipient: Address,
        token: Address,
        timeout: Optional[float] = None,
    ) -> FeeQuote:
        return await self._bounded(self.fee_estimator.estimate(sender, recipient, token), timeout)

    async def check_registration(
        self,
        sender: Address,
        token: Address,
        recipient: Address,
        timeout: Optional[float] = None,
    ) -> RegistrationStatus:
        """Infer whether ``token`` is registered on NEAR. Never raises on query failure."""
        return await self._bounded(self.registration_gate.check(sender, token, recipient), timeout)

    async def get_attestation(self, tx_id: str, timeout: Optional[float] = None) -> Attestation:
        """Look up the attestation of a source transaction now, without waiting."""
        request = AttestationRequest(tx_id=tx_id, network=self.config.network.attestation_tag)
        return await self._bounded(self.attestation_waiter.fetch(request), timeout)

    async def get_transfer_status(
        self,
        origin_chain: ChainId,
        origin_nonce: int,
        timeout: Optional[float] = None,
    ) -> TransferStatus:
        return await self._bounded(self.bridge_api.get_transfer_status(origin_chain, origin_nonce), timeout)

    # ==================== Workflows ====================

    async def run_registration(
        self,
        token: Union[Address, TokenDescriptor],
        signer_context: SignerContext,
        cancel_event: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
    ) -> RegistrationResult:
        """Emit metadata, await its attestation and deploy the token on NEAR."""
        return await self._bounded(self.registration.run(token, signer_context, cancel_event), timeout)

    async def run_transfer(
        self,
        token: Union[Address, TokenDescriptor],
        amount: int,
        recipient: Union[Address, str],
        signer_context: SignerContext,
        cancel_event: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
    ) -> TransferResult:
        """Submit a transfer once and observe it until its status resolves."""
        return await self._bounded(
            self.transfer.run(token, amount, recipient, signer_context, cancel_event), timeout
        )

    async def observe_transfer(
        self,
        submission: SubmissionResult,
        intent: Optional[TransferIntent] = None,
        cancel_event: Optional[asyncio.Event] = None,
        timeout: Optional[float] = None,
    ) -> TransferResult:
        """Resume observation of a submitted transfer without resubmitting it."""
        return await self._bounded(self.transfer.observe(submission, intent, cancel_event), timeout)

    # ==================== Lifecycle ====================

    async def close(self) -> None:
        """Close every HTTP client this orchestrator created."""
        closers: List[Any] = [
            self.solana,
            self.evm,
            self.near,
            self.bridge_api,
            self.wormhole,
            self.resolver,
        ]
        errors: List[Exception] = []
        for client in closers:
            try:
                await client.close()
            except Exception as e:
                logger.warning(f"Closing {type(client).__name__} failed: {e}")
                errors.append(e)
        if errors:
            raise errors[0]

    async def __aenter__(self) -> "BridgeOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = ["BridgeOrchestrator"]
