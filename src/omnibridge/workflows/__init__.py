"""Registration and transfer state machines."""
from __future__ import annotations

from .base import WorkflowRun
from .registration import RegistrationState, RegistrationWorkflow
from .transfer import TransferState, TransferWorkflow

__all__ = [
    "RegistrationState",
    "RegistrationWorkflow",
    "TransferState",
    "TransferWorkflow",
    "WorkflowRun",
]
