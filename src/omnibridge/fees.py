"""Bridge fee estimation for a transfer route."""
from __future__ import annotations

import logging
from typing import Optional

from .clients.bridge_api import OmniBridgeAPI
from .errors import BridgeError, FeeQueryFailed
from .logging_utils import OperationType, WorkflowLogger
from .models import Address, FeeQuote

logger = logging.getLogger(__name__)


class FeeEstimator:
    """Quotes the bridge fee with a single API call.

    Missing fee fields count as zero. Any failure raises ``FeeQueryFailed``;
    the estimator never retries and never guesses a fee.
    """

    def __init__(self, api: OmniBridgeAPI, workflow_logger: Optional[WorkflowLogger] = None):
        self._api = api
        self._wlog = workflow_logger or WorkflowLogger()

    async def estimate(self, sender: Address, recipient: Address, token: Address) -> FeeQuote:
        async with self._wlog.operation_context(
            OperationType.FEE_QUOTE,
            sender.chain.value,
            token=token.omni,
            recipient=self._wlog.address(recipient.omni),
        ) as ctx:
            try:
                quote = await self._api.get_fee(sender, recipient, token)
            except FeeQueryFailed:
                raise
            except BridgeError as e:
                raise FeeQueryFailed(e.message, details=e.details) from e
            ctx.metadata["token_fee"] = str(quote.token_fee)
            ctx.metadata["native_fee"] = str(quote.native_fee)
            return quote


__all__ = ["FeeEstimator"]
