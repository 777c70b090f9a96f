"""Per-invocation run record shared by the workflows."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from ..errors import SubmissionError
from ..logging_utils import WorkflowLogger
from ..models import StepRecord

logger = logging.getLogger(__name__)


@dataclass
class WorkflowRun:
    """State and history of one workflow invocation.

    Created fresh for every call and never shared, so concurrent runs hold
    no common mutable state.
    """
    workflow: str
    wlog: WorkflowLogger = field(repr=False)
    run_id: str = field(default_factory=lambda: f"run_{uuid.uuid4().hex[:12]}")
    state: Optional[str] = None
    history: List[StepRecord] = field(default_factory=list)

    def transition(self, state: Enum, detail: Optional[str] = None) -> None:
        self.state = state.value
        self.history.append(StepRecord(state=state.value, detail=detail))
        self.wlog.log_transition(self.workflow, self.run_id, state.value, detail)

    def fail(self, failed_state: Enum, error: BaseException) -> None:
        detail = f"{type(error).__name__} after {self.state or 'start'}: {error}"
        self.transition(failed_state, detail)


async def submit_once(call, chain: str, operation: str):
    """Await one irrevocable submission, normalising failures to SubmissionError."""
    try:
        return await call
    except SubmissionError:
        raise
    except Exception as e:
        logger.error(f"{operation} on {chain} failed: {e}")
        raise SubmissionError(f"{operation} on {chain} failed: {e}", chain=chain, operation=operation) from e


__all__ = ["WorkflowRun", "submit_once"]
