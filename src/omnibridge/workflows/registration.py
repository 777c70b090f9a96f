"""
Token registration workflow.

PREFLIGHT_CHECK -> METADATA_EMITTED -> ATTESTATION_AWAITED -> DEPLOYED,
or FAILED from any state.

Two irrevocable submissions happen: the metadata emission on the source
chain and the deployment on NEAR. Neither is retried. Re-running the
workflow after a deployment failure emits the metadata again, so callers
should consult the registration gate first.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Mapping, Optional, Union

from ..attestation import AttestationWaiter
from ..config import BridgeConfig
from ..errors import BridgeError, ExternalQueryError, InsufficientBalance, ValidationError
from ..logging_utils import OperationType, WorkflowLogger
from ..models import (
    Address,
    AttestationRequest,
    ChainId,
    RegistrationResult,
    SignerContext,
    TokenDescriptor,
    TxSubmission,
)
from .base import WorkflowRun, submit_once

logger = logging.getLogger(__name__)


class RegistrationState(str, Enum):
    PREFLIGHT_CHECK = "preflight_check"
    METADATA_EMITTED = "metadata_emitted"
    ATTESTATION_AWAITED = "attestation_awaited"
    DEPLOYED = "deployed"
    FAILED = "failed"


class RegistrationWorkflow:
    """Registers a source-chain token on NEAR."""

    def __init__(
        self,
        config: BridgeConfig,
        waiter: AttestationWaiter,
        chain_clients: Mapping[ChainId, Any],
        workflow_logger: Optional[WorkflowLogger] = None,
    ):
        self._config = config
        self._waiter = waiter
        # Each client exposes ``get_native_balance(address) -> int``
        self._chain_clients = chain_clients
        self._wlog = workflow_logger or WorkflowLogger(config=config.logging)

    async def run(
        self,
        token: Union[Address, TokenDescriptor],
        signer_context: SignerContext,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RegistrationResult:
        token_address = token.address if isinstance(token, TokenDescriptor) else token
        self._validate(token_address, signer_context)
        source_chain = token_address.chain
        signer = signer_context.signer

        run = WorkflowRun("registration", self._wlog)
        source_tx_id: Optional[str] = None
        try:
            run.transition(RegistrationState.PREFLIGHT_CHECK, token_address.omni)
            await self._preflight(signer_context.source_address)
            await self._preflight(signer_context.destination_address)

            async with self._wlog.operation_context(
                OperationType.METADATA_EMISSION, source_chain.value, token=token_address.omni
            ):
                source_tx_id = await submit_once(
                    signer.log_metadata(token_address), source_chain.value, "log_metadata"
                )
            self._wlog.log_submission(OperationType.METADATA_EMISSION, source_chain.value, source_tx_id)
            run.transition(RegistrationState.METADATA_EMITTED, source_tx_id)

            attestation = await self._waiter.wait(
                AttestationRequest(tx_id=source_tx_id, network=self._config.network.attestation_tag),
                source_chain,
                cancel_event,
            )
            run.transition(RegistrationState.ATTESTATION_AWAITED)

            async with self._wlog.operation_context(
                OperationType.TOKEN_DEPLOYMENT, ChainId.NEAR.value, token=token_address.omni
            ):
                destination_tx_id = await submit_once(
                    signer.deploy_token(source_chain, attestation), ChainId.NEAR.value, "deploy_token"
                )
            self._wlog.log_submission(OperationType.TOKEN_DEPLOYMENT, ChainId.NEAR.value, destination_tx_id)
            run.transition(RegistrationState.DEPLOYED, destination_tx_id)

        except BaseException as e:
            run.fail(RegistrationState.FAILED, e)
            if isinstance(e, BridgeError) and source_tx_id is not None:
                e.submission = TxSubmission(chain=source_chain, tx_id=source_tx_id)
            raise

        return RegistrationResult(
            token=token_address,
            source_tx_id=source_tx_id,
            destination_tx_id=destination_tx_id,
            attestation=attestation,
            history=list(run.history),
        )

    def _validate(self, token: Address, signer_context: SignerContext) -> None:
        if not token.chain.is_source:
            raise ValidationError(f"Tokens on {token.chain.value} cannot be registered", field="token")
        if signer_context.source_address.chain is not token.chain:
            raise ValidationError(
                f"Signer source account is on {signer_context.source_address.chain.value}, "
                f"token is on {token.chain.value}",
                field="signer_context",
            )
        if not signer_context.destination_address.chain.is_destination:
            raise ValidationError("Signer destination account must be a NEAR account", field="signer_context")

    async def _preflight(self, account: Address) -> None:
        """Fail with InsufficientBalance before any submission."""
        settings = self._config.get_chain(account.chain)
        required = settings.min_registration_balance
        async with self._wlog.operation_context(
            OperationType.PREFLIGHT_CHECK,
            account.chain.value,
            account=self._wlog.address(account.value),
            required=str(required),
        ) as ctx:
            try:
                available = await self._chain_clients[account.chain].get_native_balance(account.value)
            except (BridgeError, KeyError, TypeError, ValueError) as e:
                message = e.message if isinstance(e, BridgeError) else f"malformed balance result ({e!r})"
                raise ExternalQueryError(
                    f"Balance check on {account.chain.value} failed: {message}",
                    step="preflight",
                    details={"chain": account.chain.value},
                ) from e
            ctx.metadata["available"] = str(available)
            if available < required:
                raise InsufficientBalance(account.chain.value, required, available, settings.native_symbol)


__all__ = ["RegistrationState", "RegistrationWorkflow"]
