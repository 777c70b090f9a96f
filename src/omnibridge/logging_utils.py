"""
Structured logging for orchestration steps.

Every step of a workflow (fee quote, preflight check, submission, waits,
polling) runs inside ``WorkflowLogger.operation_context``, which logs one
line when the step finishes with its duration, outcome and the metadata the
step attached. Irrevocable on-chain calls are additionally logged through
``log_submission`` so they can be found in the logs even if observation
fails afterwards.

A ``WorkflowLogger`` keeps no history between operations, so a single
instance can be shared by concurrent workflow runs.
"""
from __future__ import annotations

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional

from .config import LoggingConfig

logger = logging.getLogger(__name__)


class OperationType(str, Enum):
    """Orchestration steps that get their own log record."""
    TOKEN_RESOLUTION = "token_resolution"
    FEE_QUOTE = "fee_quote"
    PREFLIGHT_CHECK = "preflight_check"
    METADATA_EMISSION = "metadata_emission"
    TOKEN_DEPLOYMENT = "token_deployment"
    TRANSFER_SUBMISSION = "transfer_submission"
    ATTESTATION_WAIT = "attestation_wait"
    STATUS_POLL = "status_poll"
    STATUS_FETCH = "status_fetch"


@dataclass
class OperationContext:
    """One running step. Steps add details to ``metadata`` as they learn them."""
    operation_type: OperationType
    chain: str
    operation_id: str = field(default_factory=lambda: f"op_{uuid.uuid4().hex[:12]}")
    metadata: Dict[str, Any] = field(default_factory=dict)
    success: bool = False
    error: Optional[str] = None
    duration_ms: Optional[float] = None
    _started: float = field(default_factory=time.perf_counter, repr=False)

    def finish(self, error: Optional[BaseException] = None) -> None:
        self.duration_ms = (time.perf_counter() - self._started) * 1000
        self.success = error is None
        if error is not None:
            self.error = str(error) or type(error).__name__

    def as_log_extra(self) -> Dict[str, Any]:
        return {
            "operation": {
                "id": self.operation_id,
                "type": self.operation_type.value,
                "chain": self.chain,
                "duration_ms": self.duration_ms,
                "success": self.success,
                "error": self.error,
                "metadata": self.metadata,
            }
        }


def mask_address(address: str) -> str:
    """Keep the first 6 and last 4 characters of long addresses."""
    if len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


class WorkflowLogger:
    """Logs workflow steps, submissions and state transitions."""

    def __init__(self, name: str = "omnibridge", config: Optional[LoggingConfig] = None):
        self._logger = logging.getLogger(name)
        self._config = config or LoggingConfig()

    def address(self, address: str) -> str:
        """Render an address according to the masking setting."""
        return mask_address(address) if self._config.mask_addresses else address

    @asynccontextmanager
    async def operation_context(
        self,
        operation_type: OperationType,
        chain: str,
        **metadata: Any,
    ) -> AsyncIterator[OperationContext]:
        """
        Track one step and log its outcome.

        Usage:
            async with wlog.operation_context(OperationType.FEE_QUOTE, "sol") as ctx:
                quote = await ...
                ctx.metadata["token_fee"] = str(quote.token_fee)

        Exceptions are logged at the configured error level and re-raised.
        """
        ctx = OperationContext(operation_type=operation_type, chain=chain, metadata=metadata)
        self._logger.debug(f"{operation_type.value} on {chain} started ({ctx.operation_id})")
        try:
            yield ctx
        except BaseException as e:
            ctx.finish(e)
            self._logger.log(
                _level(self._config.error_level),
                f"{operation_type.value} on {chain} failed after {ctx.duration_ms:.0f}ms: {ctx.error}",
                extra=ctx.as_log_extra(),
            )
            raise
        ctx.finish()
        self._logger.log(
            _level(self._config.step_level),
            f"{operation_type.value} on {chain} done in {ctx.duration_ms:.0f}ms",
            extra=ctx.as_log_extra(),
        )

    def log_submission(
        self,
        operation: OperationType,
        chain: str,
        reference: str,
        **data: Any,
    ) -> None:
        """Log an irrevocable on-chain submission."""
        details = json.dumps({k: getattr(v, "value", v) for k, v in data.items()}, default=str)
        self._logger.log(
            _level(self._config.submission_level),
            f"Submitted {operation.value} on {chain}: {reference} {details}",
            extra={"submission": {"operation": operation.value, "chain": chain, "reference": reference, **data}},
        )

    def log_transition(self, workflow: str, run_id: str, state: str, detail: Optional[str] = None) -> None:
        """Log a workflow state transition."""
        message = f"{workflow} {run_id} -> {state}"
        if detail:
            message = f"{message} ({detail})"
        self._logger.info(message, extra={"workflow": workflow, "run_id": run_id, "state": state})


__all__ = [
    "OperationType",
    "OperationContext",
    "WorkflowLogger",
    "mask_address",
]
