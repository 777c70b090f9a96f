"""Domain models shared by the orchestrator components."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import ValidationError
from .units import from_smallest_units

if TYPE_CHECKING:
    from .signer import BridgeSignerPort


class ChainId(str, Enum):
    """Chains participating in the bridge."""
    SOL = "sol"
    ETH = "eth"
    NEAR = "near"

    @property
    def api_name(self) -> str:
        """Chain kind name used by the Omni Bridge API."""
        return _API_NAMES[self]

    @property
    def is_source(self) -> bool:
        return self in (ChainId.SOL, ChainId.ETH)

    @property
    def is_destination(self) -> bool:
        return self is ChainId.NEAR

    @classmethod
    def from_api(cls, value: str) -> "ChainId":
        """Parse either an API chain kind (``Sol``) or an enum value (``sol``)."""
        normalized = str(value).strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unsupported chain kind: {value!r}") from None


_API_NAMES = {
    ChainId.SOL: "Sol",
    ChainId.ETH: "Eth",
    ChainId.NEAR: "Near",
}


@dataclass(frozen=True)
class Address:
    """Chain-scoped account or contract identifier."""
    chain: ChainId
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.chain, ChainId):
            object.__setattr__(self, "chain", ChainId.from_api(self.chain))
        if not self.value or not self.value.strip():
            raise ValidationError(f"Empty {self.chain.value} address", field="address")
        object.__setattr__(self, "value", self.value.strip())

    @property
    def omni(self) -> str:
        """Omni address form, e.g. ``sol:So1111...``."""
        return f"{self.chain.value}:{self.value}"

    @classmethod
    def parse(cls, omni_address: str) -> "Address":
        """Parse an Omni address (``<chain>:<address>``)."""
        chain, sep, value = omni_address.partition(":")
        if not sep:
            raise ValidationError(
                f"Address {omni_address!r} is missing a chain prefix", field="address"
            )
        try:
            return cls(ChainId.from_api(chain), value)
        except ValueError as e:
            raise ValidationError(str(e), field="address") from e

    def __str__(self) -> str:
        return self.omni


PLACEHOLDER_NAME = "Unknown Token"
PLACEHOLDER_SYMBOL = "UNKNOWN"


@dataclass(frozen=True)
class TokenDescriptor:
    """Descriptive metadata and balance of a token. Amounts in smallest units."""
    address: Address
    symbol: str
    name: str
    decimals: int
    balance: int = 0
    total_supply: Optional[int] = None
    image: Optional[str] = None

    @property
    def chain(self) -> ChainId:
        return self.address.chain

    @property
    def ui_balance(self) -> Decimal:
        return from_smallest_units(self.balance, self.decimals)

    @property
    def has_metadata(self) -> bool:
        return not (self.name == PLACEHOLDER_NAME and self.symbol == PLACEHOLDER_SYMBOL)

    def to_dict(self) -> dict:
        return {
            "address": self.address.omni,
            "symbol": self.symbol,
            "name": self.name,
            "decimals": self.decimals,
            "balance": str(self.balance),
            "total_supply": str(self.total_supply) if self.total_supply is not None else None,
            "image": self.image,
        }


class BridgeModel(BaseModel):
    """Base model for payloads parsed from bridge services."""

    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


def _to_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValueError("boolean is not an amount")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"non-integral amount {value}")
        return int(value)
    return int(str(value).strip())


class FeeQuote(BridgeModel):
    """Bridge fee for a route, in smallest units."""
    token_fee: int = Field(default=0, alias="transferred_token_fee")
    native_fee: int = Field(default=0, alias="native_token_fee")
    usd_fee: Optional[Decimal] = None

    @field_validator("token_fee", "native_fee", mode="before")
    @classmethod
    def _default_missing_to_zero(cls, value: Any) -> int:
        return _to_int(value)

    @field_validator("usd_fee", mode="before")
    @classmethod
    def _usd_fee(cls, value: Any) -> Optional[Decimal]:
        if value is None or value == "":
            return None
        return Decimal(str(value))


class TransferStatus(str, Enum):
    """Delivery status reported by the indexing API."""
    INITIALIZED = "Initialized"
    SIGNED = "Signed"
    FINALISED_ON_NEAR = "FinalisedOnNear"
    FINALISED = "Finalised"
    CLAIMED = "Claimed"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def _missing_(cls, value: object) -> "TransferStatus":
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.lower():
                    return member
        return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (TransferStatus.FINALISED, TransferStatus.CLAIMED, TransferStatus.FAILED)


class TransferRecord(BridgeModel):
    """A transfer as observed by the indexing service."""
    origin_chain: ChainId
    origin_nonce: int
    status: Optional[TransferStatus] = None
    raw: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _flatten_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and "id" in data and isinstance(data["id"], dict):
            flattened = {
                "origin_chain": data["id"].get("origin_chain"),
                "origin_nonce": data["id"].get("origin_nonce"),
                "raw": data,
            }
            if "status" in data:
                flattened["status"] = data["status"]
            return flattened
        return data

    @field_validator("origin_chain", mode="before")
    @classmethod
    def _chain(cls, value: Any) -> ChainId:
        if isinstance(value, ChainId):
            return value
        return ChainId.from_api(value)

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, value: Any) -> Optional[TransferStatus]:
        if value is None or isinstance(value, TransferStatus):
            return value
        return TransferStatus(value)

    @field_validator("origin_nonce", mode="before")
    @classmethod
    def _nonce(cls, value: Any) -> int:
        if value is None or value == "":
            raise ValueError("origin_nonce is required")
        return _to_int(value)


class RegistrationStatus(str, Enum):
    """Whether a token is deployed on the destination chain."""
    REGISTERED = "registered"
    NOT_REGISTERED = "not_registered"
    UNKNOWN_DUE_TO_QUERY_FAILURE = "unknown_due_to_query_failure"

    @property
    def is_registered(self) -> bool:
        return self is RegistrationStatus.REGISTERED


@dataclass(frozen=True)
class TransferIntent:
    """A transfer about to be submitted. Immutable once built."""
    token: Address
    recipient: Address
    amount: int
    fee: int
    native_fee: int

    def to_dict(self) -> dict:
        return {
            "token": self.token.omni,
            "recipient": self.recipient.omni,
            "amount": str(self.amount),
            "fee": str(self.fee),
            "native_fee": str(self.native_fee),
        }


@dataclass(frozen=True)
class AttestationRequest:
    """Lookup key for the attestation of a source-chain transaction."""
    tx_id: str
    network: str


@dataclass(frozen=True)
class Attestation:
    """Signed proof (VAA) that a source-chain event occurred."""
    tx_id: str
    network: str
    payload_hex: str

    @property
    def payload(self) -> bytes:
        return bytes.fromhex(self.payload_hex.removeprefix("0x"))


class SubmissionKind(str, Enum):
    """Discriminator of ``SubmissionResult``."""
    TX_ID = "tx_id"
    EVENT = "event"


@dataclass(frozen=True)
class TxSubmission:
    """Submission that returned a plain transaction identifier."""
    chain: ChainId
    tx_id: str
    kind: Literal[SubmissionKind.TX_ID] = field(default=SubmissionKind.TX_ID, init=False)

    @property
    def reference(self) -> str:
        return self.tx_id


@dataclass(frozen=True)
class EventSubmission:
    """Submission that returned a structured transfer event."""
    chain: ChainId
    origin_nonce: int
    payload: Dict[str, Any] = field(default_factory=dict)
    kind: Literal[SubmissionKind.EVENT] = field(default=SubmissionKind.EVENT, init=False)

    @property
    def reference(self) -> str:
        return f"{self.chain.api_name}:{self.origin_nonce}"


SubmissionResult = Union[TxSubmission, EventSubmission]


@dataclass(frozen=True)
class SignerContext:
    """Connected signer plus the accounts it controls on each side."""
    signer: "BridgeSignerPort"
    source_address: Address
    destination_address: Address


@dataclass(frozen=True)
class StepRecord:
    """One state transition of a workflow run."""
    state: str
    at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    detail: Optional[str] = None


@dataclass(frozen=True)
class RegistrationResult:
    """Outcome of a successful registration."""
    token: Address
    source_tx_id: str
    destination_tx_id: str
    attestation: Attestation
    history: List[StepRecord] = field(default_factory=list)


@dataclass(frozen=True)
class TransferResult:
    """Outcome of a successful transfer observation."""
    submission: SubmissionResult
    record: TransferRecord
    status: TransferStatus
    intent: Optional[TransferIntent] = None
    attestation: Optional[Attestation] = None
    history: List[StepRecord] = field(default_factory=list)

    @property
    def source_tx_id(self) -> Optional[str]:
        if self.submission.kind is SubmissionKind.TX_ID:
            return self.submission.tx_id
        return None


__all__ = [
    "ChainId",
    "Address",
    "TokenDescriptor",
    "PLACEHOLDER_NAME",
    "PLACEHOLDER_SYMBOL",
    "BridgeModel",
    "FeeQuote",
    "TransferStatus",
    "TransferRecord",
    "RegistrationStatus",
    "TransferIntent",
    "AttestationRequest",
    "Attestation",
    "SubmissionKind",
    "TxSubmission",
    "EventSubmission",
    "SubmissionResult",
    "SignerContext",
    "StepRecord",
    "RegistrationResult",
    "TransferResult",
]
