"""HD address derivation and the address-to-index book."""

import hashlib
import logging
from dataclasses import dataclass

from bech32 import bech32_decode, bech32_encode, convertbits
from Crypto.Hash import RIPEMD160

from .mpc import ChildShare, MasterKeyShare, Party2
from .storage import ADDRESSES_KEY, KeyValueStore
from .types import PersistenceFailure, UnknownAddress

logger = logging.getLogger("terra_threshsig.keys")

ACC_ADDRESS_PREFIX = "terra"


@dataclass(frozen=True)
class DerivedKey:
    """Child share, public key and address for one HD index."""

    child_share: ChildShare
    public_key: bytes
    address: str


@dataclass(frozen=True)
class AddressRecord:
    """Binding of an address to the HD index that signs for it."""

    acc_address: str
    index: int

    def to_dict(self) -> dict:
        return {"acc_address": self.acc_address, "index": self.index}


def public_key_to_address(public_key: bytes, hrp: str = ACC_ADDRESS_PREFIX) -> str:
    """Bech32 account address of a compressed secp256k1 public key."""
    sha = hashlib.sha256(public_key).digest()
    raw = RIPEMD160.new(sha).digest()
    return bech32_encode(hrp, convertbits(raw, 8, 5))


def is_valid_address(address: str, hrp: str = ACC_ADDRESS_PREFIX) -> bool:
    """Check checksum, prefix and a 20-byte payload."""
    decoded_hrp, data = bech32_decode(address)
    if decoded_hrp != hrp or data is None:
        return False
    raw = convertbits(data, 5, 8, False)
    return raw is not None and len(raw) == 20


def derive_child(
    party2: Party2,
    master_share: MasterKeyShare,
    coin_index: int,
    address_index: int,
) -> DerivedKey:
    """Derive the child share, public key and address for an HD index."""
    child = party2.get_child_share(master_share, coin_index, address_index)
    public_key = bytes(child.get_public_key())
    return DerivedKey(
        child_share=child,
        public_key=public_key,
        address=public_key_to_address(public_key),
    )


class AddressBook:
    """
    Append-only map from derived addresses to HD indices.

    Records are persisted under the ``addresses`` key so a transfer can
    recover which index signs for its sender.
    """

    def __init__(
        self,
        store: KeyValueStore,
        party2: Party2,
        master_share: MasterKeyShare,
        coin_index: int,
    ) -> None:
        self._store = store
        self._party2 = party2
        self._master_share = master_share
        self._coin_index = coin_index

    def derive(self, address_index: int) -> DerivedKey:
        return derive_child(self._party2, self._master_share, self._coin_index, address_index)

    def records(self) -> list[AddressRecord]:
        return [
            AddressRecord(acc_address=r["acc_address"], index=int(r["index"]))
            for r in self._store.get(ADDRESSES_KEY, [])
        ]

    def get_or_register_address(self, address_index: int) -> str:
        """Derive the address for ``address_index`` and record it once."""
        if address_index < 0:
            raise ValueError(f"Address index must be non-negative: {address_index}")

        address = self.derive(address_index).address
        registered = False

        def register(stored: list[dict]) -> list[dict]:
            nonlocal registered
            for record in stored:
                if record["acc_address"] != address:
                    continue
                if int(record["index"]) != address_index:
                    raise PersistenceFailure(
                        f"Address {address} already bound to index {record['index']}, "
                        f"refusing to rebind to {address_index}"
                    )
                return stored
            registered = True
            return stored + [AddressRecord(acc_address=address, index=address_index).to_dict()]

        # Lookup and append happen in one store step
        self._store.update(ADDRESSES_KEY, register, [])
        if registered:
            logger.info(f"Registered address {address} at index {address_index}")
        return address

    def index_of(self, address: str) -> int:
        """HD index that signs for ``address``."""
        for record in self.records():
            if record.acc_address == address:
                return record.index
        raise UnknownAddress(address)
