"""Transaction messages, fees and envelopes.

``StdSignMsg.to_json`` produces the canonical sign bytes the ledger verifies
signatures against: keys sorted recursively, compact separators, integers
rendered as strings.
"""

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Union

from .coins import Coin, Coins

PUBKEY_TYPE = "tendermint/PubKeySecp256k1"


@dataclass(frozen=True)
class MsgSend:
    """Bank transfer message."""

    from_address: str
    to_address: str
    amount: Coins

    def to_data(self) -> dict[str, Any]:
        return {
            "type": "bank/MsgSend",
            "value": {
                "from_address": self.from_address,
                "to_address": self.to_address,
                "amount": self.amount.to_data(),
            },
        }


@dataclass(frozen=True)
class MsgSwap:
    """Market swap message."""

    trader: str
    offer_coin: Coin
    ask_denom: str

    def to_data(self) -> dict[str, Any]:
        return {
            "type": "market/MsgSwap",
            "value": {
                "trader": self.trader,
                "offer_coin": self.offer_coin.to_data(),
                "ask_denom": self.ask_denom,
            },
        }


Msg = Union[MsgSend, MsgSwap]


@dataclass(frozen=True)
class StdFee:
    """Gas limit plus the coins paid for it."""

    gas: int
    amount: Coins

    def to_data(self) -> dict[str, Any]:
        return {"gas": str(self.gas), "amount": self.amount.to_data()}

    @classmethod
    def from_data(cls, data: dict[str, Any]) -> "StdFee":
        return cls(gas=int(data["gas"]), amount=Coins.from_data(data.get("amount")))


@dataclass(frozen=True)
class StdSignature:
    """Signature plus the compressed public key that produced it."""

    signature: bytes
    pub_key: bytes

    def to_data(self) -> dict[str, Any]:
        return {
            "signature": base64.b64encode(self.signature).decode(),
            "pub_key": {
                "type": PUBKEY_TYPE,
                "value": base64.b64encode(self.pub_key).decode(),
            },
        }


@dataclass(frozen=True)
class StdTx:
    """A transaction ready for broadcast, or a placeholder for fee estimation."""

    msgs: tuple[Msg, ...]
    fee: StdFee
    signatures: tuple[StdSignature, ...] = ()
    memo: str = ""

    def to_data(self) -> dict[str, Any]:
        return {
            "type": "core/StdTx",
            "value": {
                "msg": [msg.to_data() for msg in self.msgs],
                "fee": self.fee.to_data(),
                "signatures": [sig.to_data() for sig in self.signatures],
                "memo": self.memo,
            },
        }

    def to_json(self) -> str:
        return json.dumps(self.to_data(), sort_keys=True, separators=(",", ":"))


@dataclass(frozen=True)
class StdSignMsg:
    """Unsigned transaction envelope."""

    chain_id: str
    account_number: int
    sequence: int
    fee: StdFee
    msgs: tuple[Msg, ...] = field(default_factory=tuple)
    memo: str = ""

    def to_data(self) -> dict[str, Any]:
        return {
            "chain_id": self.chain_id,
            "account_number": str(self.account_number),
            "sequence": str(self.sequence),
            "fee": self.fee.to_data(),
            "msgs": [msg.to_data() for msg in self.msgs],
            "memo": self.memo,
        }

    def to_json(self) -> str:
        """Canonical sign bytes as text."""
        return json.dumps(self.to_data(), sort_keys=True, separators=(",", ":"))

    def to_std_tx(self, signatures: tuple[StdSignature, ...] = ()) -> StdTx:
        return StdTx(msgs=self.msgs, fee=self.fee, signatures=signatures, memo=self.memo)
