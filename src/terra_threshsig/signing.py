"""Two-party signing of transaction envelopes."""

import hashlib
import logging
from dataclasses import dataclass

from .keys import AddressBook
from .mpc import Party2
from .timeouts import DEFAULT_SIGN_TIMEOUT, protocol_call
from .tx import StdSignature, StdSignMsg, StdTx
from .types import ProtocolFailure, Signature

logger = logging.getLogger("terra_threshsig.signing")

SIGNATURE_LENGTH = 64


@dataclass
class SigningConfig:
    """Configuration for signing."""

    coin_index: int = 0
    timeout_secs: float | None = DEFAULT_SIGN_TIMEOUT


@dataclass
class SigningResult:
    """Signed transaction plus the digest that was signed."""

    tx: StdTx
    message_hash: str  # hex
    address_index: int


def sign_bytes(envelope: StdSignMsg) -> bytes:
    """Canonical bytes the ledger verifies the signature against."""
    return envelope.to_json().encode()


def hash_envelope(envelope: StdSignMsg) -> bytes:
    """SHA-256 digest of the canonical sign bytes."""
    return hashlib.sha256(sign_bytes(envelope)).digest()


class SigningOrchestrator:
    """
    Drives the two-party signature over an envelope's digest.

    The participant round trip is the only cryptographic step of the
    pipeline. Failures are surfaced as ``ProtocolFailure`` and never retried
    here; no ``StdTx`` is assembled unless a well-formed signature came back.

    Example:
        >>> orchestrator = SigningOrchestrator(party2, address_book)
        >>> result = await orchestrator.sign(0, envelope)
        >>> result.tx.signatures[0].pub_key.hex()
    """

    def __init__(
        self,
        party2: Party2,
        address_book: AddressBook,
        config: SigningConfig | None = None,
    ) -> None:
        self._party2 = party2
        self._address_book = address_book
        self._config = config or SigningConfig()

    async def sign_envelope(self, address_index: int, envelope: StdSignMsg) -> StdTx:
        return (await self.sign(address_index, envelope)).tx

    async def sign(self, address_index: int, envelope: StdSignMsg) -> SigningResult:
        digest = hash_envelope(envelope)
        derived = self._address_book.derive(address_index)

        signature = await protocol_call(
            self._party2.sign(
                digest, derived.child_share, self._config.coin_index, address_index
            ),
            f"Two-party signing for index {address_index}",
            self._config.timeout_secs,
        )
        signature_bytes = _signature_bytes(signature)

        tx = envelope.to_std_tx(
            signatures=(StdSignature(signature=signature_bytes, pub_key=derived.public_key),)
        )
        logger.debug(f"Signed digest {digest.hex()} for {derived.address}")
        return SigningResult(tx=tx, message_hash=digest.hex(), address_index=address_index)


def _signature_bytes(signature: Signature | None) -> bytes:
    if not isinstance(signature, Signature):
        logger.error(f"Two-party signing returned {type(signature).__name__}, not a signature")
        raise ProtocolFailure("Two-party signing returned no signature")
    try:
        raw = signature.to_bytes()
    except ValueError as e:
        raise ProtocolFailure(f"Malformed signature: {e}", e) from e
    if len(raw) != SIGNATURE_LENGTH or not any(raw):
        logger.error(f"Two-party signing returned a {len(raw)}-byte empty or malformed signature")
        raise ProtocolFailure(f"Malformed signature of {len(raw)} bytes")
    return raw
