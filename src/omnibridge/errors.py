"""Error taxonomy for the bridge orchestrator."""
from __future__ import annotations

from typing import Any, Optional


class BridgeError(Exception):
    """Base exception for all orchestrator errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "BRIDGE_ERROR"
        self.details = details or {}
        # Set by the transfer workflow when raised after the irrevocable
        # submission, so callers can resume observation.
        self.submission = None

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }


# ---------------------------------------------------------------------------
# Input validation (raised before any external call)
# ---------------------------------------------------------------------------


class ValidationError(BridgeError):
    """Bad input."""

    def __init__(self, message: str, field: Optional[str] = None, code: str = "VALIDATION_ERROR"):
        super().__init__(message, code=code, details={"field": field})
        self.field = field


class InvalidTransferParameters(ValidationError):
    """Transfer amount or recipient is unusable."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, field=field, code="INVALID_TRANSFER_PARAMETERS")


class UnknownTokenError(ValidationError):
    """The token address does not resolve to an on-chain token account."""

    def __init__(self, chain: str, address: str):
        super().__init__(
            f"Token not found on {chain}: {address}",
            field="address",
            code="UNKNOWN_TOKEN",
        )
        self.chain = chain
        self.address = address


# ---------------------------------------------------------------------------
# Observation failures
# ---------------------------------------------------------------------------


class ExternalQueryError(BridgeError):
    """A lookup against an external service failed.

    ``step`` names the orchestration step that issued the query so callers
    can surface where the workflow stopped.
    """

    def __init__(
        self,
        message: str,
        step: str,
        code: str = "EXTERNAL_QUERY_FAILED",
        details: Optional[dict[str, Any]] = None,
    ):
        merged = {"step": step}
        merged.update(details or {})
        super().__init__(message, code=code, details=merged)
        self.step = step


class FeeQueryFailed(ExternalQueryError):
    """The bridge fee API call errored."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, step="fee_quote", code="FEE_QUERY_FAILED", details=details)


class ChainQueryError(ExternalQueryError):
    """A chain RPC read failed."""

    def __init__(
        self,
        message: str,
        chain: str,
        step: str = "chain_read",
        rpc_error: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            step=step,
            code="CHAIN_QUERY_FAILED",
            details={"chain": chain, "rpc_error": rpc_error},
        )
        self.chain = chain
        self.rpc_error = rpc_error or {}


class IndexerQueryError(ExternalQueryError):
    """Transient failure of the bridge indexing API.

    The indexer is eventually consistent, so the status poller treats this
    as "not indexed yet" and keeps polling.
    """

    def __init__(
        self,
        message: str,
        step: str = "indexer_query",
        status_code: Optional[int] = None,
        code: str = "INDEXER_QUERY_FAILED",
    ):
        super().__init__(message, step=step, code=code, details={"status_code": status_code})
        self.status_code = status_code


class MalformedIndexerRequest(IndexerQueryError):
    """The indexing API rejected the request itself (HTTP 400/422).

    Retrying the same request cannot succeed, so the poller fails fast.
    """

    def __init__(self, message: str, step: str = "indexer_query", status_code: Optional[int] = None):
        super().__init__(message, step=step, status_code=status_code, code="MALFORMED_INDEXER_REQUEST")


class AttestationUnavailable(BridgeError):
    """The finality wait elapsed without a usable attestation."""

    def __init__(self, tx_id: str, network: str, reason: str = ""):
        message = f"Attestation unavailable for {tx_id} on {network}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            code="ATTESTATION_UNAVAILABLE",
            details={"tx_id": tx_id, "network": network, "reason": reason},
        )
        self.tx_id = tx_id
        self.network = network


class TransferNotIndexed(BridgeError):
    """The poll budget was exhausted before the indexer reported the transfer.

    This does not mean the transfer failed; only observation timed out.
    """

    def __init__(self, reference: str, attempts: int, elapsed_seconds: float):
        super().__init__(
            f"Transfer {reference} not indexed after {attempts} attempts "
            f"({elapsed_seconds:.1f}s)",
            code="TRANSFER_NOT_INDEXED",
            details={
                "reference": reference,
                "attempts": attempts,
                "elapsed_seconds": elapsed_seconds,
            },
        )
        self.reference = reference
        self.attempts = attempts
        self.elapsed_seconds = elapsed_seconds


class ObservationCancelled(BridgeError):
    """A wait or poll loop observed its cancellation signal."""

    def __init__(self, step: str):
        super().__init__(f"Observation cancelled during {step}", code="OBSERVATION_CANCELLED", details={"step": step})
        self.step = step


# ---------------------------------------------------------------------------
# Preflight and submission
# ---------------------------------------------------------------------------


class InsufficientBalance(BridgeError):
    """Signer cannot pay the fees of an on-chain step."""

    def __init__(self, chain: str, required: int, available: int, symbol: str = ""):
        super().__init__(
            f"Insufficient balance on {chain}: requires {required}, available {available}"
            + (f" (smallest units of {symbol})" if symbol else ""),
            code="INSUFFICIENT_BALANCE",
            details={
                "chain": chain,
                "required": str(required),
                "available": str(available),
                "currency": symbol,
            },
        )
        self.chain = chain
        self.required = required
        self.available = available
        self.symbol = symbol


class SubmissionError(BridgeError):
    """The irrevocable on-chain call failed or was rejected.

    No further automatic action is safe after this error.
    """

    def __init__(self, message: str, chain: str, operation: str):
        super().__init__(
            message,
            code="SUBMISSION_FAILED",
            details={"chain": chain, "operation": operation},
        )
        self.chain = chain
        self.operation = operation


__all__ = [
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
