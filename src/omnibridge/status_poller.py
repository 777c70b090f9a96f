"""
Transfer status polling against the Omni Bridge indexer.

The indexer is eventually consistent: a transfer that succeeded on-chain
may take a while to appear. The poller sleeps ``interval_seconds`` before
each of at most ``max_attempts`` lookups. Transient query errors count as
"not indexed yet"; a request the API rejects as malformed (400/422) fails
immediately since repeating it cannot succeed.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from .clients.bridge_api import OmniBridgeAPI
from .config import BridgeConfig
from .errors import IndexerQueryError, MalformedIndexerRequest, TransferNotIndexed
from .logging_utils import OperationType, WorkflowLogger
from .models import SubmissionKind, SubmissionResult, TransferRecord, TransferStatus
from .waits import SleepFunc, cancellable_sleep

logger = logging.getLogger(__name__)


class TransferStatusPoller:
    """Finds the indexer record of a submitted transfer and its status."""

    def __init__(
        self,
        config: BridgeConfig,
        api: OmniBridgeAPI,
        workflow_logger: Optional[WorkflowLogger] = None,
        sleep: SleepFunc = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._policy = config.polling
        self._api = api
        self._wlog = workflow_logger or WorkflowLogger(config=config.logging)
        self._sleep = sleep
        self._clock = clock

    async def poll(
        self,
        submission: SubmissionResult,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TransferRecord:
        """Poll until the indexer reports the transfer.

        Raises:
            TransferNotIndexed: The attempt budget ran out. The transfer
                itself may still succeed.
            MalformedIndexerRequest: The API rejected the lookup request.
            ObservationCancelled: ``cancel_event`` was set during a wait.
        """
        max_attempts = self._policy.max_attempts
        started = self._clock()

        async with self._wlog.operation_context(
            OperationType.STATUS_POLL,
            submission.chain.value,
            reference=submission.reference,
            kind=submission.kind.value,
            max_attempts=max_attempts,
        ) as ctx:
            for attempt in range(1, max_attempts + 1):
                await cancellable_sleep(
                    self._policy.interval_seconds,
                    cancel_event,
                    step="status_poll",
                    sleep=self._sleep,
                )
                ctx.metadata["attempts"] = attempt
                try:
                    record = await self._lookup(submission)
                except MalformedIndexerRequest:
                    raise
                except IndexerQueryError as e:
                    logger.warning(
                        f"Failed to fetch transfer {submission.reference} "
                        f"(attempt {attempt}/{max_attempts}): {e}"
                    )
                    continue

                if record is not None:
                    logger.info(
                        f"Transfer {submission.reference} indexed as "
                        f"{record.origin_chain.api_name}:{record.origin_nonce} on attempt {attempt}"
                    )
                    return record
                logger.debug(f"Transfer {submission.reference} not indexed yet (attempt {attempt}/{max_attempts})")

            raise TransferNotIndexed(submission.reference, max_attempts, self._clock() - started)

    async def _lookup(self, submission: SubmissionResult) -> Optional[TransferRecord]:
        if submission.kind is SubmissionKind.TX_ID:
            transfers = await self._api.find_transfers(submission.tx_id)
            if not transfers:
                return None
            first = transfers[0]
            return await self._api.get_transfer(first.origin_chain, first.origin_nonce)
        return await self._api.get_transfer(submission.chain, submission.origin_nonce)

    async def fetch_status(self, record: TransferRecord) -> TransferStatus:
        """One status lookup for an indexed transfer. Errors propagate."""
        async with self._wlog.operation_context(
            OperationType.STATUS_FETCH,
            record.origin_chain.value,
            origin_nonce=record.origin_nonce,
        ) as ctx:
            status = await self._api.get_transfer_status(record.origin_chain, record.origin_nonce)
            ctx.metadata["status"] = status.value
            return status

    async def observe(
        self,
        submission: SubmissionResult,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> TransferRecord:
        """Poll for the record, then fetch its status exactly once."""
        record = await self.poll(submission, cancel_event)
        status = await self.fetch_status(record)
        return record.model_copy(update={"status": status})


__all__ = ["TransferStatusPoller"]
