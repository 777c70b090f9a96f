"""
Finality wait and attestation (VAA) retrieval.

An attestation only exists after the source chain reaches finality, so the
waiter sleeps one configured interval and then fetches. It does not poll:
with the default ``fetch_attempts=1`` a missing attestation fails the step
and the caller decides whether to rerun the whole wait-then-fetch cycle.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .clients.wormhole import WormholeClient, WormholeQueryError
from .config import BridgeConfig
from .errors import AttestationUnavailable
from .logging_utils import OperationType, WorkflowLogger
from .models import Attestation, AttestationRequest, ChainId
from .waits import SleepFunc, cancellable_sleep

logger = logging.getLogger(__name__)


class AttestationWaiter:
    """Waits for finality, then fetches the attestation of a source transaction."""

    def __init__(
        self,
        config: BridgeConfig,
        client: WormholeClient,
        workflow_logger: Optional[WorkflowLogger] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self._config = config
        self._client = client
        self._wlog = workflow_logger or WorkflowLogger(config=config.logging)
        self._sleep = sleep

    async def wait(
        self,
        request: AttestationRequest,
        source_chain: ChainId,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Attestation:
        """Sleep for the chain's finality interval, then fetch the attestation.

        Raises:
            AttestationUnavailable: Every fetch returned nothing or errored.
            ObservationCancelled: ``cancel_event`` was set during a wait.
        """
        policy = self._config.attestation
        finality_wait = self._config.finality_wait_for(source_chain)
        attempts = max(1, policy.fetch_attempts)

        async with self._wlog.operation_context(
            OperationType.ATTESTATION_WAIT,
            source_chain.value,
            tx_id=request.tx_id,
            network=request.network,
            finality_wait_seconds=finality_wait,
        ) as ctx:
            logger.info(
                f"Waiting {finality_wait:.0f}s for {source_chain.value} finality before "
                f"fetching attestation of {request.tx_id}"
            )
            await cancellable_sleep(finality_wait, cancel_event, step="attestation_wait", sleep=self._sleep)

            reason = ""
            for attempt in range(1, attempts + 1):
                if attempt > 1:
                    await cancellable_sleep(
                        policy.retry_interval_seconds,
                        cancel_event,
                        step="attestation_wait",
                        sleep=self._sleep,
                    )
                ctx.metadata["fetch_attempts"] = attempt
                try:
                    payload_hex = await self._client.get_vaa(request.tx_id)
                except WormholeQueryError as e:
                    reason = str(e)
                    logger.warning(f"Attestation fetch {attempt}/{attempts} for {request.tx_id} failed: {e}")
                    continue
                if payload_hex:
                    return Attestation(
                        tx_id=request.tx_id,
                        network=request.network,
                        payload_hex=payload_hex,
                    )
                reason = "attestation not signed yet"
                logger.info(f"Attestation fetch {attempt}/{attempts} for {request.tx_id} returned nothing")

            raise AttestationUnavailable(request.tx_id, request.network, reason)

    async def fetch(self, request: AttestationRequest) -> Attestation:
        """Fetch an attestation immediately, without the finality wait."""
        try:
            payload_hex = await self._client.get_vaa(request.tx_id)
        except WormholeQueryError as e:
            raise AttestationUnavailable(request.tx_id, request.network, str(e)) from e
        if not payload_hex:
            raise AttestationUnavailable(request.tx_id, request.network, "attestation not signed yet")
        return Attestation(tx_id=request.tx_id, network=request.network, payload_hex=payload_hex)


__all__ = ["AttestationWaiter"]
