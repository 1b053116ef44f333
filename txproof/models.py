"""Shared data models for XMR transfer proof requests and their outcomes."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import time


class ProofServiceError(Exception):
    """Base error for the proof service client."""


class TransportError(ProofServiceError):
    """The request never produced a usable response body."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class CryptoNoteError(ProofServiceError):
    """Address is not a valid CryptoNote base58 string."""


class Tag(Enum):
    PENDING = "PENDING"  # keep polling
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"  # proof does not match the trade
    ERROR = "ERROR"  # service or transport problem, proof may still be valid


class DetailKind(Enum):
    # Pending
    TX_NOT_FOUND = "TX_NOT_FOUND"
    PENDING_CONFIRMATIONS = "PENDING_CONFIRMATIONS"

    # Error states
    CONNECTION_FAILURE = "CONNECTION_FAILURE"
    API_FAILURE = "API_FAILURE"
    API_INVALID = "API_INVALID"

    # Failure states
    TX_HASH_INVALID = "TX_HASH_INVALID"
    TX_KEY_INVALID = "TX_KEY_INVALID"
    ADDRESS_INVALID = "ADDRESS_INVALID"
    NO_MATCH_FOUND = "NO_MATCH_FOUND"
    AMOUNT_NOT_MATCHING = "AMOUNT_NOT_MATCHING"
    TRADE_DATE_NOT_MATCHING = "TRADE_DATE_NOT_MATCHING"
    NO_RESULTS_TIMEOUT = "NO_RESULTS_TIMEOUT"


@dataclass(frozen=True)
class Detail:
    kind: DetailKind
    num_confirmations: int = 0  # only for PENDING_CONFIRMATIONS
    error_msg: Optional[str] = None  # short human-readable summary

    @classmethod
    def confirmations(cls, count: int) -> "Detail":
        return cls(DetailKind.PENDING_CONFIRMATIONS, num_confirmations=count)

    def __str__(self) -> str:
        if self.kind is DetailKind.PENDING_CONFIRMATIONS:
            return f"{self.kind.value}({self.num_confirmations})"
        if self.error_msg:
            return f"{self.kind.value}: {self.error_msg}"
        return self.kind.value


@dataclass(frozen=True)
class Outcome:
    """One classified answer from the proof service.

    A fresh instance is built for every result so two requests never share
    (and never overwrite) each other's detail.
    """

    tag: Tag
    detail: Optional[Detail] = None

    @classmethod
    def pending(cls, detail: Detail) -> "Outcome":
        return cls(Tag.PENDING, detail)

    @classmethod
    def success(cls) -> "Outcome":
        return cls(Tag.SUCCESS)

    @classmethod
    def failed(cls, kind: DetailKind) -> "Outcome":
        return cls(Tag.FAILED, Detail(kind))

    @classmethod
    def error(cls, kind: DetailKind, message: Optional[str] = None) -> "Outcome":
        return cls(Tag.ERROR, Detail(kind, error_msg=message))

    @property
    def is_terminal(self) -> bool:
        return self.tag is not Tag.PENDING

    def __str__(self) -> str:
        if self.detail is None:
            return self.tag.value
        return f"{self.tag.value}/{self.detail}"


@dataclass(frozen=True)
class VerificationRequest:
    tx_hash: str
    recipient_address: str
    tx_key: str
    service_address: str
    trade_id: str
    amount: int  # piconero
    trade_date: float  # epoch seconds
    num_required_confirmations: int = 10
    first_request: float = field(default_factory=time.time)
