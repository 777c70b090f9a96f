"""Omni Bridge transfer orchestration: Solana and Ethereum to NEAR."""

from .config import BridgeConfig, NetworkMode, build_default_config, load_config
from .errors import (
    AttestationUnavailable,
    BridgeError,
    ChainQueryError,
    ExternalQueryError,
    FeeQueryFailed,
    IndexerQueryError,
    InsufficientBalance,
    InvalidTransferParameters,
    MalformedIndexerRequest,
    ObservationCancelled,
    SubmissionError,
    TransferNotIndexed,
    UnknownTokenError,
    ValidationError,
)
from .models import (
    Address,
    Attestation,
    AttestationRequest,
    ChainId,
    EventSubmission,
    FeeQuote,
    RegistrationResult,
    RegistrationStatus,
    SignerContext,
    SubmissionKind,
    TokenDescriptor,
    TransferIntent,
    TransferRecord,
    TransferResult,
    TransferStatus,
    TxSubmission,
)
from .orchestrator import BridgeOrchestrator
from .signer import BridgeSignerPort, SimulatedBridgeSigner

__version__ = "0.1.0"

__all__ = [
    "BridgeOrchestrator",
    "BridgeConfig",
    "NetworkMode",
    "build_default_config",
    "load_config",
    "BridgeSignerPort",
    "SimulatedBridgeSigner",
    "Address",
    "Attestation",
    "AttestationRequest",
    "ChainId",
    "EventSubmission",
    "FeeQuote",
    "RegistrationResult",
    "RegistrationStatus",
    "SignerContext",
    "SubmissionKind",
    "TokenDescriptor",
    "TransferIntent",
    "TransferRecord",
    "TransferResult",
    "TransferStatus",
    "TxSubmission",
    "BridgeError",
    "ValidationError",
    "InvalidTransferParameters",
    "UnknownTokenError",
    "ExternalQueryError",
    "FeeQueryFailed",
    "ChainQueryError",
    "IndexerQueryError",
    "MalformedIndexerRequest",
    "AttestationUnavailable",
    "TransferNotIndexed",
    "ObservationCancelled",
    "InsufficientBalance",
    "SubmissionError",
]
