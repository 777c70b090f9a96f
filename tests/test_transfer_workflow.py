"""Tests for TransferWorkflow."""
from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from conftest import ETH_TOKEN, ETH_WALLET
from omnibridge.attestation import AttestationWaiter
from omnibridge.clients.bridge_api import OmniBridgeAPI
from omnibridge.clients.wormhole import WormholeClient
from omnibridge.errors import (
    AttestationUnavailable,
    FeeQueryFailed,
    IndexerQueryError,
    InvalidTransferParameters,
    SubmissionError,
    TransferNotIndexed,
)
from omnibridge.fees import FeeEstimator
from omnibridge.models import (
    Address,
    ChainId,
    EventSubmission,
    FeeQuote,
    SignerContext,
    TransferIntent,
    TransferRecord,
    TransferStatus,
    TxSubmission,
)
from omnibridge.status_poller import TransferStatusPoller
from omnibridge.workflows.transfer import TransferState, TransferWorkflow


def _record(chain: str = "Sol", nonce: int = 5) -> TransferRecord:
    return TransferRecord.model_validate({"id": {"origin_chain": chain, "origin_nonce": nonce}})


@pytest.fixture
def estimator():
    mock = AsyncMock(spec=FeeEstimator)
    mock.estimate.return_value = FeeQuote(token_fee=100, native_fee=0)
    return mock


@pytest.fixture
def wormhole():
    client = AsyncMock(spec=WormholeClient)
    client.get_vaa.return_value = "01000000"
    return client


@pytest.fixture
def api():
    mock = AsyncMock(spec=OmniBridgeAPI)
    record = _record()
    mock.find_transfers.return_value = [record]
    mock.get_transfer.return_value = record
    mock.get_transfer_status.return_value = TransferStatus.FINALISED
    return mock


@pytest.fixture
def workflow(config, estimator, wormhole, api, clock):
    waiter = AttestationWaiter(config, wormhole, sleep=clock.sleep)
    poller = TransferStatusPoller(config, api, sleep=clock.sleep, clock=clock)
    return TransferWorkflow(config, estimator, waiter, poller)


class TestValidation:
    """Tests for input validation before any external call."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -1, 1.5, "100", True])
    async def test_bad_amount(self, workflow, estimator, signer, signer_context, sol_token, near_recipient, amount):
        """Should reject non-positive or non-integer amounts without calling out."""
        with pytest.raises(InvalidTransferParameters) as exc_info:
            await workflow.run(sol_token, amount, near_recipient, signer_context)

        assert exc_info.value.field == "amount"
        estimator.estimate.assert_not_awaited()
        signer.submit_transfer.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("recipient", ["", "   ", "sol:9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM", "btc:abc"])
    async def test_bad_recipient(self, workflow, estimator, signer, signer_context, sol_token, recipient):
        """Should require a NEAR recipient."""
        with pytest.raises(InvalidTransferParameters) as exc_info:
            await workflow.run(sol_token, 1000, recipient, signer_context)

        assert exc_info.value.field == "recipient"
        estimator.estimate.assert_not_awaited()
        signer.submit_transfer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_signer_on_other_chain(self, workflow, signer, near_recipient, sol_token):
        """Should require the signer's source account on the token's chain."""
        context = SignerContext(
            signer=signer,
            source_address=Address(ChainId.ETH, ETH_WALLET),
            destination_address=near_recipient,
        )
        with pytest.raises(InvalidTransferParameters):
            await workflow.run(sol_token, 1000, near_recipient, context)
        signer.submit_transfer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_bare_account_recipient(self, workflow, signer, signer_context, sol_token):
        """Should accept a bare NEAR account id."""
        result = await workflow.run(sol_token, 1000, "bob.testnet", signer_context)
        assert result.intent.recipient == Address(ChainId.NEAR, "bob.testnet")


class TestRun:
    """Tests for submission and observation."""

    @pytest.mark.asyncio
    async def test_intent_carries_fee_unmodified(self, workflow, signer, signer_context, sol_token, near_recipient):
        """Should submit exactly one intent with the quoted fees."""
        await workflow.run(sol_token, 1_000_000, near_recipient, signer_context)

        signer.submit_transfer.assert_awaited_once_with(
            TransferIntent(token=sol_token, recipient=near_recipient, amount=1_000_000, fee=100, native_fee=0)
        )

    @pytest.mark.asyncio
    async def test_found_on_fifth_attempt(self, workflow, api, wormhole, signer_context, sol_token, near_recipient, clock):
        """Should wait for attestation, poll five times and fetch status once."""
        record = _record(nonce=77)
        api.find_transfers.side_effect = [[]] * 4 + [[record]]
        api.get_transfer.return_value = record
        api.get_transfer_status.return_value = TransferStatus.SIGNED

        result = await workflow.run(sol_token, 1_000_000, near_recipient, signer_context)

        assert result.record.origin_nonce == 77
        assert result.record.origin_chain is ChainId.SOL
        assert result.status is TransferStatus.SIGNED
        assert result.record.status is TransferStatus.SIGNED
        assert result.attestation.payload_hex == "01000000"
        assert result.source_tx_id == "transfer_tx"
        assert api.find_transfers.await_count == 5
        api.find_transfers.assert_awaited_with("transfer_tx")
        api.get_transfer_status.assert_awaited_once_with(ChainId.SOL, 77)
        wormhole.get_vaa.assert_awaited_once_with("transfer_tx")
        assert clock.sleeps == [80.0] + [3.0] * 5
        assert [step.state for step in result.history] == [
            TransferState.VALIDATED.value,
            TransferState.FEE_QUOTED.value,
            TransferState.SUBMITTED.value,
            TransferState.ATTESTATION_AWAITED.value,
            TransferState.INDEXED.value,
            TransferState.STATUS_RESOLVED.value,
        ]

    @pytest.mark.asyncio
    async def test_event_submission_skips_attestation(
        self, workflow, api, wormhole, signer, signer_context, sol_token, near_recipient
    ):
        """Should look the transfer up by nonce when the signer returns an event."""
        signer.submit_transfer.return_value = EventSubmission(chain=ChainId.SOL, origin_nonce=5)

        result = await workflow.run(sol_token, 10, near_recipient, signer_context)

        assert result.record.origin_nonce == 5
        assert result.attestation is None
        assert result.source_tx_id is None
        wormhole.get_vaa.assert_not_awaited()
        api.find_transfers.assert_not_awaited()
        api.get_transfer.assert_awaited_with(ChainId.SOL, 5)

    @pytest.mark.asyncio
    async def test_eth_source_needs_no_attestation(self, workflow, api, wormhole, signer, near_recipient, clock):
        """Should poll directly for chains without Wormhole attestation."""
        token = Address(ChainId.ETH, ETH_TOKEN)
        context = SignerContext(
            signer=signer,
            source_address=Address(ChainId.ETH, ETH_WALLET),
            destination_address=near_recipient,
        )
        signer.submit_transfer.return_value = TxSubmission(chain=ChainId.ETH, tx_id="0xabc")
        record = _record("Eth", 3)
        api.find_transfers.return_value = [record]
        api.get_transfer.return_value = record

        result = await workflow.run(token, 10, near_recipient, context)

        assert result.record.origin_chain is ChainId.ETH
        wormhole.get_vaa.assert_not_awaited()
        assert clock.sleeps == [3.0]

    @pytest.mark.asyncio
    async def test_fee_failure_stops_before_submission(
        self, workflow, estimator, signer, signer_context, sol_token, near_recipient
    ):
        """Should not submit when the fee quote fails."""
        estimator.estimate.side_effect = FeeQueryFailed("no route")

        with pytest.raises(FeeQueryFailed) as exc_info:
            await workflow.run(sol_token, 10, near_recipient, signer_context)

        assert exc_info.value.submission is None
        signer.submit_transfer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_submission_failure(self, workflow, api, signer, signer_context, sol_token, near_recipient):
        """Should raise SubmissionError and never observe."""
        signer.submit_transfer.side_effect = RuntimeError("rejected by wallet")

        with pytest.raises(SubmissionError) as exc_info:
            await workflow.run(sol_token, 10, near_recipient, signer_context)

        assert exc_info.value.operation == "submit_transfer"
        assert signer.submit_transfer.await_count == 1
        api.find_transfers.assert_not_awaited()


class TestObservationFailures:
    """Tests for failures after the irrevocable submission."""

    @pytest.mark.asyncio
    async def test_not_indexed_carries_submission(
        self, workflow, api, signer, signer_context, sol_token, near_recipient
    ):
        """Should report the submission when the poll budget runs out."""
        api.find_transfers.return_value = []

        with pytest.raises(TransferNotIndexed) as exc_info:
            await workflow.run(sol_token, 10, near_recipient, signer_context)

        assert exc_info.value.submission == TxSubmission(chain=ChainId.SOL, tx_id="transfer_tx")
        assert signer.submit_transfer.await_count == 1
        api.get_transfer_status.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_attestation_failure_carries_submission(
        self, workflow, wormhole, api, signer_context, sol_token, near_recipient
    ):
        """Should not poll when the attestation is unavailable."""
        wormhole.get_vaa.return_value = None

        with pytest.raises(AttestationUnavailable) as exc_info:
            await workflow.run(sol_token, 10, near_recipient, signer_context)

        assert exc_info.value.submission.tx_id == "transfer_tx"
        api.find_transfers.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_status_failure_carries_submission(self, workflow, api, signer_context, sol_token, near_recipient):
        """Should surface a failing status fetch with the submission."""
        api.get_transfer_status.side_effect = IndexerQueryError("down", status_code=503)

        with pytest.raises(IndexerQueryError) as exc_info:
            await workflow.run(sol_token, 10, near_recipient, signer_context)

        assert exc_info.value.submission.tx_id == "transfer_tx"

    @pytest.mark.asyncio
    async def test_resume_observation(self, workflow, api, signer, signer_context, sol_token, near_recipient):
        """Should resume from error.submission without submitting again."""
        record = _record()
        api.find_transfers.side_effect = [[]] * 20 + [[record]]

        with pytest.raises(TransferNotIndexed) as exc_info:
            await workflow.run(sol_token, 10, near_recipient, signer_context)

        result = await workflow.observe(exc_info.value.submission)

        assert result.status is TransferStatus.FINALISED
        assert result.history[0].state == TransferState.SUBMITTED.value
        assert signer.submit_transfer.await_count == 1
        assert api.find_transfers.await_count == 21
