"""
Token transfer workflow.

VALIDATED -> FEE_QUOTED -> SUBMITTED -> [ATTESTATION_AWAITED] -> INDEXED
-> STATUS_RESOLVED, or FAILED from any state.

The transfer is submitted exactly once. Everything after submission is
observation: when it fails, the raised error carries the submission in
``error.submission`` and ``observe()`` can resume from there without
touching the chain again.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional, Union

from ..attestation import AttestationWaiter
from ..config import BridgeConfig
from ..errors import BridgeError, InvalidTransferParameters, ValidationError
from ..fees import FeeEstimator
from ..logging_utils import OperationType, WorkflowLogger
from ..models import (
    Address,
    Attestation,
    AttestationRequest,
    ChainId,
    SignerContext,
    SubmissionKind,
    SubmissionResult,
    TokenDescriptor,
    TransferIntent,
    TransferResult,
)
from ..status_poller import TransferStatusPoller
from .base import WorkflowRun, submit_once

logger = logging.getLogger(__name__)


class TransferState(str, Enum):
    VALIDATED = "validated"
    FEE_QUOTED = "fee_quoted"
    SUBMITTED = "submitted"
    ATTESTATION_AWAITED = "attestation_awaited"
    INDEXED = "indexed"
    STATUS_RESOLVED = "status_resolved"
    FAILED = "failed"


class TransferWorkflow:
    """Moves tokens from a source chain to NEAR and observes delivery."""

    def __init__(
        self,
        config: BridgeConfig,
        estimator: FeeEstimator,
        waiter: AttestationWaiter,
        poller: TransferStatusPoller,
        workflow_logger: Optional[WorkflowLogger] = None,
    ):
        self._config = config
        self._estimator = estimator
        self._waiter = waiter
        self._poller = poller
        self._wlog = workflow_logger or WorkflowLogger(config=config.logging)

    async def run(
        self,
        token: Union[Address, TokenDescriptor],
        amount: int,
        recipient: Union[Address, str],
        signer_context: SignerContext,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TransferResult:
        """Quote, submit once, then observe the transfer until its status resolves.

        Args:
            token: Source-chain token
            amount: Amount in the token's smallest units
            recipient: NEAR account (an ``Address`` or a bare account id)
            signer_context: Connected signer and its accounts
            cancel_event: Stops observation when set

        Returns:
            TransferResult with the indexer record, status and attestation
        """
        token_address = token.address if isinstance(token, TokenDescriptor) else token
        recipient_address = self._validate(token_address, amount, recipient, signer_context)

        run = WorkflowRun("transfer", self._wlog)
        run.transition(TransferState.VALIDATED, f"{amount} {token_address.omni} -> {recipient_address.omni}")

        try:
            quote = await self._estimator.estimate(signer_context.source_address, recipient_address, token_address)
            run.transition(TransferState.FEE_QUOTED, f"fee={quote.token_fee} native_fee={quote.native_fee}")

            intent = TransferIntent(
                token=token_address,
                recipient=recipient_address,
                amount=amount,
                fee=quote.token_fee,
                native_fee=quote.native_fee,
            )
            chain = token_address.chain.value
            async with self._wlog.operation_context(
                OperationType.TRANSFER_SUBMISSION, chain, **intent.to_dict()
            ):
                submission = await submit_once(
                    signer_context.signer.submit_transfer(intent), chain, "submit_transfer"
                )
            self._wlog.log_submission(
                OperationType.TRANSFER_SUBMISSION,
                chain,
                submission.reference,
                kind=submission.kind,
                amount=str(amount),
            )
            run.transition(TransferState.SUBMITTED, submission.reference)
        except BaseException as e:
            run.fail(TransferState.FAILED, e)
            raise

        return await self._observe(run, submission, intent, cancel_event)

    async def observe(
        self,
        submission: SubmissionResult,
        intent: Optional[TransferIntent] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TransferResult:
        """Resume observation of an already submitted transfer."""
        run = WorkflowRun("transfer", self._wlog)
        run.transition(TransferState.SUBMITTED, f"resumed {submission.reference}")
        return await self._observe(run, submission, intent, cancel_event)

    async def _observe(
        self,
        run: WorkflowRun,
        submission: SubmissionResult,
        intent: Optional[TransferIntent],
        cancel_event: Optional[asyncio.Event],
    ) -> TransferResult:
        attestation: Optional[Attestation] = None
        try:
            if submission.kind is SubmissionKind.TX_ID and self._config.requires_attestation(submission.chain):
                attestation = await self._waiter.wait(
                    AttestationRequest(tx_id=submission.tx_id, network=self._config.network.attestation_tag),
                    submission.chain,
                    cancel_event,
                )
                run.transition(TransferState.ATTESTATION_AWAITED)

            record = await self._poller.poll(submission, cancel_event)
            run.transition(TransferState.INDEXED, f"{record.origin_chain.api_name}:{record.origin_nonce}")

            status = await self._poller.fetch_status(record)
            run.transition(TransferState.STATUS_RESOLVED, status.value)
        except BaseException as e:
            run.fail(TransferState.FAILED, e)
            if isinstance(e, BridgeError):
                e.submission = submission
            raise

        return TransferResult(
            submission=submission,
            record=record.model_copy(update={"status": status}),
            status=status,
            intent=intent,
            attestation=attestation,
            history=list(run.history),
        )

    def _validate(
        self,
        token: Address,
        amount: int,
        recipient: Union[Address, str],
        signer_context: SignerContext,
    ) -> Address:
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidTransferParameters(
                f"Amount must be an integer in smallest units, got {type(amount).__name__}",
                field="amount",
            )
        if amount <= 0:
            raise InvalidTransferParameters(f"Amount must be positive, got {amount}", field="amount")

        if isinstance(recipient, str):
            if not recipient.strip():
                raise InvalidTransferParameters("Recipient is required", field="recipient")
            try:
                recipient = (
                    Address.parse(recipient) if ":" in recipient else Address(ChainId.NEAR, recipient)
                )
            except ValidationError as e:
                raise InvalidTransferParameters(e.message, field="recipient") from e
        if not recipient.chain.is_destination:
            raise InvalidTransferParameters(
                f"Recipient must be a NEAR account, got {recipient.omni}", field="recipient"
            )

        if not token.chain.is_source:
            raise InvalidTransferParameters(
                f"Transfers from {token.chain.value} are not supported", field="token"
            )
        if signer_context.source_address.chain is not token.chain:
            raise InvalidTransferParameters(
                f"Signer source account is on {signer_context.source_address.chain.value}, "
                f"token is on {token.chain.value}",
                field="signer_context",
            )
        return recipient


__all__ = ["TransferState", "TransferWorkflow"]
