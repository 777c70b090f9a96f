"""Tests for TransferStatusPoller."""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from omnibridge.clients.bridge_api import OmniBridgeAPI
from omnibridge.errors import IndexerQueryError, MalformedIndexerRequest, ObservationCancelled, TransferNotIndexed
from omnibridge.models import ChainId, EventSubmission, TransferRecord, TransferStatus, TxSubmission
from omnibridge.status_poller import TransferStatusPoller

SUBMISSION = TxSubmission(chain=ChainId.SOL, tx_id="transfer_tx")


def _record(nonce: int = 5) -> TransferRecord:
    return TransferRecord.model_validate({"id": {"origin_chain": "Sol", "origin_nonce": nonce}, "attempt": nonce})


@pytest.fixture
def api():
    return AsyncMock(spec=OmniBridgeAPI)


@pytest.fixture
def poller(config, api, clock):
    return TransferStatusPoller(config, api, sleep=clock.sleep, clock=clock)


class TestPoll:
    """Tests for the bounded polling loop."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("found_on", [1, 5, 20])
    async def test_exactly_n_queries(self, poller, api, clock, found_on):
        """Should stop after the attempt that finds the transfer."""
        record = _record()
        api.find_transfers.side_effect = [[]] * (found_on - 1) + [[record]]
        api.get_transfer.return_value = record

        result = await poller.poll(SUBMISSION)

        assert result == record
        assert api.find_transfers.await_count == found_on
        api.get_transfer.assert_awaited_once_with(ChainId.SOL, 5)
        assert clock.sleeps == [3.0] * found_on

    @pytest.mark.asyncio
    async def test_budget_exhausted(self, poller, api, clock):
        """Should raise TransferNotIndexed after max_attempts, having waited attempts x interval."""
        api.find_transfers.return_value = []

        with pytest.raises(TransferNotIndexed) as exc_info:
            await poller.poll(SUBMISSION)

        assert api.find_transfers.await_count == 20
        assert exc_info.value.attempts == 20
        assert exc_info.value.elapsed_seconds == pytest.approx(20 * 3.0)
        assert exc_info.value.reference == "transfer_tx"
        api.get_transfer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, poller, api):
        """Should treat indexer errors as not found yet."""
        record = _record()
        api.find_transfers.side_effect = [
            IndexerQueryError("502", status_code=502),
            IndexerQueryError("timeout"),
            [record],
        ]
        api.get_transfer.return_value = record

        assert await poller.poll(SUBMISSION) == record
        assert api.find_transfers.await_count == 3

    @pytest.mark.asyncio
    async def test_malformed_request_fails_fast(self, poller, api):
        """Should not retry a request the API rejects as malformed."""
        api.find_transfers.side_effect = MalformedIndexerRequest("bad tx id", status_code=422)

        with pytest.raises(MalformedIndexerRequest):
            await poller.poll(SUBMISSION)
        assert api.find_transfers.await_count == 1

    @pytest.mark.asyncio
    async def test_found_but_record_missing(self, poller, api):
        """Should keep polling when the full record is not available yet."""
        record = _record()
        api.find_transfers.return_value = [record]
        api.get_transfer.side_effect = [None, record]

        assert await poller.poll(SUBMISSION) == record
        assert api.get_transfer.await_count == 2

    @pytest.mark.asyncio
    async def test_event_submission(self, poller, api):
        """Should look up structured events by origin nonce directly."""
        record = _record(9)
        api.get_transfer.side_effect = [None, None, record]

        result = await poller.poll(EventSubmission(chain=ChainId.SOL, origin_nonce=9))

        assert result.origin_nonce == 9
        api.find_transfers.assert_not_awaited()
        assert api.get_transfer.await_count == 3
        api.get_transfer.assert_awaited_with(ChainId.SOL, 9)

    @pytest.mark.asyncio
    async def test_cancel_event(self, config, api):
        """Should stop polling when cancelled."""
        poller = TransferStatusPoller(config, api)
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(ObservationCancelled):
            await poller.poll(SUBMISSION, cancel_event=cancel)
        api.find_transfers.assert_not_awaited()


class TestObserve:
    """Tests for poll plus status fetch."""

    @pytest.mark.asyncio
    async def test_status_fetched_once(self, poller, api):
        """Should fetch the status exactly once after the record is found."""
        record = _record()
        api.find_transfers.side_effect = [[], [record]]
        api.get_transfer.return_value = record
        api.get_transfer_status.return_value = TransferStatus.SIGNED

        observed = await poller.observe(SUBMISSION)

        assert observed.status is TransferStatus.SIGNED
        assert observed.origin_nonce == record.origin_nonce
        assert observed.raw == record.raw
        api.get_transfer_status.assert_awaited_once_with(ChainId.SOL, 5)

    @pytest.mark.asyncio
    async def test_fetch_status_idempotent(self, poller, api):
        """Should return the same status for repeated fetches of one record."""
        api.get_transfer_status.return_value = TransferStatus.FINALISED
        record = _record()

        assert await poller.fetch_status(record) is await poller.fetch_status(record)

    @pytest.mark.asyncio
    async def test_status_error_propagates(self, poller, api):
        """Should surface a failing status fetch once."""
        record = _record()
        api.find_transfers.return_value = [record]
        api.get_transfer.return_value = record
        api.get_transfer_status.side_effect = IndexerQueryError("down")

        with pytest.raises(IndexerQueryError):
            await poller.observe(SUBMISSION)
        assert api.get_transfer_status.await_count == 1
