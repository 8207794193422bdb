"""Core type definitions for the Terra threshold-signature client."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any


class WalletState(Enum):
    """Lifecycle state of a wallet context."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"


class BroadcastMode(Enum):
    """How a signed transaction is handed to the network."""

    DRY_RUN = "dry_run"  # Log only, no network call
    SYNC_SEND = "block"  # Wait for inclusion in a block
    ASYNC_SEND = "sync"  # Acknowledge receipt by the node only


class ErrorCode(IntEnum):
    """Error codes for client operations."""

    INVALID_CONFIG = 1
    INVALID_ADDRESS = 2
    NOT_INITIALIZED = 3
    INSUFFICIENT_BALANCE = 4
    SIGNING_FAILED = 5
    KEYGEN_FAILED = 6
    STORAGE_ERROR = 7
    NETWORK_ERROR = 8
    TIMEOUT = 9
    BROADCAST_FAILED = 10
    UNKNOWN = 99


class ThreshSigError(Exception):
    """Base exception for the threshold-signature client."""

    def __init__(self, code: ErrorCode, message: str, cause: Exception | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.cause = cause


class InsufficientBalance(ThreshSigError):
    """Amount, fee and tax exceed the available balance."""

    def __init__(self, message: str, *, balance: int = 0, required: int = 0):
        super().__init__(ErrorCode.INSUFFICIENT_BALANCE, message)
        self.balance = balance
        self.required = required


class ProtocolFailure(ThreshSigError):
    """The two-party exchange aborted or the remote party is unreachable."""

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        code: ErrorCode = ErrorCode.SIGNING_FAILED,
    ):
        super().__init__(code, message, cause)


class ProtocolTimeout(ProtocolFailure):
    """The two-party exchange did not finish in time."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message, cause, ErrorCode.TIMEOUT)


class LedgerQueryFailure(ThreshSigError):
    """A balance, account, fee or tax lookup failed."""

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        code: ErrorCode = ErrorCode.NETWORK_ERROR,
    ):
        super().__init__(code, message, cause)


class LedgerTimeout(LedgerQueryFailure):
    """A ledger query did not answer in time."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message, cause, ErrorCode.TIMEOUT)


class PersistenceFailure(ThreshSigError):
    """The local store is unreadable, unwritable or inconsistent."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(ErrorCode.STORAGE_ERROR, message, cause)


class BroadcastFailure(ThreshSigError):
    """The node rejected the transaction."""

    def __init__(self, message: str, *, code: int | None = None, raw_log: str = ""):
        super().__init__(ErrorCode.BROADCAST_FAILED, message)
        self.tx_code = code
        self.raw_log = raw_log


class NotInitialized(ThreshSigError):
    """An operation was attempted before ``init()``."""

    def __init__(self, message: str = "Wallet is not initialized; call init() first"):
        super().__init__(ErrorCode.NOT_INITIALIZED, message)


class UnknownAddress(ThreshSigError):
    """No HD index is registered for the address."""

    def __init__(self, address: str):
        super().__init__(ErrorCode.INVALID_ADDRESS, f"Address not registered: {address}")
        self.address = address


@dataclass
class Signature:
    """ECDSA signature components returned by the two-party protocol."""

    r: str  # R component (hex string with 0x prefix)
    s: str  # S component (hex string with 0x prefix)
    recovery_id: int = 0

    def to_bytes(self) -> bytes:
        """Convert to the 64-byte ``r || s`` form the ledger expects."""
        r_bytes = bytes.fromhex(self.r.removeprefix("0x")).rjust(32, b"\x00")
        s_bytes = bytes.fromhex(self.s.removeprefix("0x")).rjust(32, b"\x00")
        return r_bytes + s_bytes


@dataclass(frozen=True)
class AccountInfo:
    """Account number and sequence, normalized from the ledger reply."""

    account_number: int
    sequence: int


@dataclass(frozen=True)
class TaxParameters:
    """Transfer tax rate and per-denomination cap."""

    rate: Decimal
    cap: int


@dataclass
class BroadcastResult:
    """Node reply to a broadcast."""

    txhash: str
    height: int = 0
    raw_log: str = ""
    code: int = 0
    logs: list[dict[str, Any]] = field(default_factory=list)

    @property
    def is_success(self) -> bool:
        return self.code == 0


@dataclass
class DryRunResult:
    """The would-be transaction of a dry run."""

    tx: dict[str, Any]
