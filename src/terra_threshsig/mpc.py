"""Two-party (party 2) protocol participant interface.

The cryptographic protocol lives in an external participant library that
talks to the remote cosigner (party 1). This module only fixes the shape the
client consumes.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Protocol

from .types import Signature

HD_COIN_INDEX = 0


@dataclass(frozen=True)
class MasterKeyShare:
    """Party 2's half of the root key material (opaque payload)."""

    data: dict[str, Any]
    created_at: int = field(default_factory=lambda: int(time.time()))

    def to_dict(self) -> dict[str, Any]:
        return {"data": self.data, "created_at": self.created_at}

    @classmethod
    def from_dict(cls, value: dict[str, Any]) -> "MasterKeyShare":
        return cls(data=value["data"], created_at=int(value.get("created_at", 0)))


class ChildShare(Protocol):
    """Key share derived for one HD path."""

    def get_public_key(self) -> bytes:
        """Compressed secp256k1 public key (33 bytes)."""
        ...


class Party2(Protocol):
    """Protocol participant holding the local share."""

    async def generate_master_key(self) -> MasterKeyShare:
        """Run the one-time key generation ceremony with party 1."""
        ...

    def get_child_share(
        self, master_share: MasterKeyShare, coin_index: int, address_index: int
    ) -> ChildShare:
        """Derive the child share for an HD path. Local and deterministic."""
        ...

    async def sign(
        self,
        digest: bytes,
        child_share: ChildShare,
        coin_index: int,
        address_index: int,
    ) -> Signature:
        """Run the two-party signing exchange over a 32-byte digest."""
        ...
