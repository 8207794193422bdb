"""
Shared fakes for the ledger, participant and store collaborators.
"""

import asyncio
import hashlib
from dataclasses import dataclass
from decimal import Decimal

import pytest

from terra_threshsig.coins import Coin, Coins
from terra_threshsig.keys import public_key_to_address
from terra_threshsig.mpc import MasterKeyShare
from terra_threshsig.storage import MemoryStore
from terra_threshsig.tx import StdFee, StdTx
from terra_threshsig.types import AccountInfo, BroadcastResult, Signature
from terra_threshsig.wallet import ThreshSigWallet

CHAIN_ID = "soju-0014"
RECIPIENT = public_key_to_address(b"\x03" + b"\x11" * 32)


# ============================================================================
# PARTICIPANT
# ============================================================================

@dataclass(frozen=True)
class FakeChildShare:
    public_key: bytes

    def get_public_key(self) -> bytes:
        return self.public_key


class FakeParty2:
    """Deterministic stand-in for the two-party protocol participant."""

    def __init__(self, seed: str = "ab" * 32) -> None:
        self.seed = seed
        self.generate_calls = 0
        self.sign_calls: list[tuple[bytes, int, int]] = []
        self.generate_error: Exception | None = None
        self.sign_error: Exception | None = None
        self.sign_result: Signature | None = None
        self.sign_delay: float = 0.0

    async def generate_master_key(self) -> MasterKeyShare:
        self.generate_calls += 1
        if self.generate_error:
            raise self.generate_error
        return MasterKeyShare(data={"seed": self.seed}, created_at=1700000000)

    def get_child_share(
        self, master_share: MasterKeyShare, coin_index: int, address_index: int
    ) -> FakeChildShare:
        material = f"{master_share.data['seed']}:{coin_index}:{address_index}".encode()
        return FakeChildShare(public_key=b"\x02" + hashlib.sha256(material).digest())

    async def sign(
        self,
        digest: bytes,
        child_share: FakeChildShare,
        coin_index: int,
        address_index: int,
    ) -> Signature:
        self.sign_calls.append((digest, coin_index, address_index))
        if self.sign_delay:
            await asyncio.sleep(self.sign_delay)
        if self.sign_error:
            raise self.sign_error
        if self.sign_result is not None:
            return self.sign_result
        r = hashlib.sha256(b"r" + digest + child_share.public_key).digest()
        s = hashlib.sha256(b"s" + digest).digest()
        return Signature(r="0x" + r.hex(), s="0x" + s.hex(), recovery_id=0)


# ============================================================================
# LEDGER
# ============================================================================

class FakeLedger:
    """Scripted ledger that records every call it receives."""

    def __init__(
        self,
        balance: Coins | None = None,
        fee: StdFee | None = None,
        tax_rate: Decimal = Decimal("0.001"),
        tax_cap: int = 1_000_000,
    ) -> None:
        self.balance = balance or Coins([Coin("uluna", 1_000_000)])
        self.fee = fee or StdFee(gas=100_000, amount=Coins([Coin("uluna", 5_000)]))
        self.tax_rate = tax_rate
        self.tax_cap = tax_cap
        self.account = AccountInfo(account_number=42, sequence=7)
        self.calls: list[str] = []
        self.estimated: list[tuple[StdTx, dict, Decimal]] = []
        self.broadcasts: list[tuple[StdTx, str]] = []
        self.errors: dict[str, Exception] = {}
        self.broadcast_delay: float = 0.0

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.errors:
            raise self.errors[name]

    def count(self, name: str) -> int:
        return self.calls.count(name)

    async def get_balance(self, address: str) -> Coins:
        self._record("get_balance")
        return self.balance

    async def get_account_info(self, address: str) -> AccountInfo:
        self._record("get_account_info")
        return self.account

    async def estimate_fee(self, tx: StdTx, gas_prices: dict, gas_adjustment: Decimal) -> StdFee:
        self._record("estimate_fee")
        self.estimated.append((tx, gas_prices, gas_adjustment))
        return self.fee

    async def get_tax_rate(self) -> Decimal:
        self._record("get_tax_rate")
        return self.tax_rate

    async def get_tax_cap(self, denom: str) -> int:
        self._record("get_tax_cap")
        return self.tax_cap

    async def broadcast(self, tx: StdTx, mode: str) -> BroadcastResult:
        self._record("broadcast")
        if self.broadcast_delay:
            await asyncio.sleep(self.broadcast_delay)
        self.broadcasts.append((tx, mode))
        # Sequence advances once the transaction lands
        self.account = AccountInfo(self.account.account_number, self.account.sequence + 1)
        return BroadcastResult(txhash=f"TX{len(self.broadcasts)}", height=100)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def party2() -> FakeParty2:
    return FakeParty2()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def wallet(ledger, party2, store) -> ThreshSigWallet:
    """Wallet wired to fakes; tests call ``await wallet.init()``."""
    return ThreshSigWallet(
        ledger=ledger,
        party2=party2,
        store=store,
        chain_id=CHAIN_ID,
        ledger_timeout_secs=1.0,
        sign_timeout_secs=1.0,
    )
