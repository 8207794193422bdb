"""
Tests for terra_threshsig/wallet.py

End-to-end flows through the wallet context with fake collaborators.
"""

import asyncio

import pytest

from terra_threshsig.coins import Coin, Coins
from terra_threshsig.config import WalletConfig
from terra_threshsig.planner import SendOptions
from terra_threshsig.storage import ADDRESSES_KEY, MK_SHARE_KEY, MemoryStore
from terra_threshsig.tx import StdFee
from terra_threshsig.types import (
    BroadcastResult,
    DryRunResult,
    ErrorCode,
    InsufficientBalance,
    NotInitialized,
    ProtocolFailure,
    ThreshSigError,
    UnknownAddress,
    WalletState,
)
from terra_threshsig.wallet import ThreshSigWallet

from conftest import CHAIN_ID, RECIPIENT, FakeLedger, FakeParty2


def record_served_sequences(ledger: FakeLedger) -> list[int]:
    """Wrap ``get_account_info`` to record every sequence it hands out."""
    served: list[int] = []
    original = ledger.get_account_info

    async def get_account_info(address):
        info = await original(address)
        served.append(info.sequence)
        return info

    ledger.get_account_info = get_account_info
    return served


# ============================================================================
# LIFECYCLE
# ============================================================================

class TestWalletLifecycle:
    """Tests for init and address registration."""

    @pytest.mark.asyncio
    async def test_operations_require_init(self, wallet):
        assert wallet.state == WalletState.UNINITIALIZED
        with pytest.raises(NotInitialized):
            wallet.get_address(0)
        with pytest.raises(NotInitialized):
            await wallet.transfer("terra1a", RECIPIENT, 1)

    @pytest.mark.asyncio
    async def test_init_generates_once(self, wallet, party2, store):
        await wallet.init()
        await wallet.init()

        assert wallet.state == WalletState.READY
        assert party2.generate_calls == 1
        assert store.get(MK_SHARE_KEY) is not None

    @pytest.mark.asyncio
    async def test_init_restores_persisted_share(self, ledger, party2, store):
        first = ThreshSigWallet(ledger, party2, store, CHAIN_ID)
        await first.init()
        address = first.get_address(0)

        second = ThreshSigWallet(ledger, party2, store, CHAIN_ID)
        await second.init()

        assert party2.generate_calls == 1
        assert second.get_address(0) == address

    @pytest.mark.asyncio
    async def test_get_address_is_idempotent(self, wallet, store):
        await wallet.init()
        first = wallet.get_address(0)
        assert wallet.get_address(0) == first
        assert wallet.get_address(1) != first
        assert [r["index"] for r in store.get(ADDRESSES_KEY)] == [0, 1]

    @pytest.mark.asyncio
    async def test_get_info(self, wallet):
        await wallet.init()
        address = wallet.get_address(0)

        info = wallet.get_info()
        assert info["state"] == "ready"
        assert info["chain_id"] == CHAIN_ID
        assert info["native_denom"] == "uluna"
        assert info["addresses"] == [{"acc_address": address, "index": 0}]

    @pytest.mark.asyncio
    async def test_get_balance(self, wallet, ledger):
        await wallet.init()
        balance = await wallet.get_balance(wallet.get_address(0))
        assert balance.amount_of("uluna") == 1_000_000


# ============================================================================
# TRANSFERS
# ============================================================================

class TestWalletTransfer:
    """Tests for transfer."""

    @pytest.mark.asyncio
    async def test_fixed_transfer_async_send(self, wallet, ledger, party2):
        await wallet.init()
        sender = wallet.get_address(0)

        result = await wallet.transfer(sender, RECIPIENT, 100_000, "uluna")

        assert isinstance(result, BroadcastResult)
        assert result.txhash == "TX1"
        tx, mode = ledger.broadcasts[0]
        assert mode == "sync"
        assert tx.msgs[0].amount.amount_of("uluna") == 100_000
        assert tx.msgs[0].from_address == sender
        assert tx.fee.amount.amount_of("uluna") == 5_000
        assert tx.signatures[0].pub_key == party2.get_child_share(
            wallet._key_manager.share, 0, 0
        ).get_public_key()

    @pytest.mark.asyncio
    async def test_sync_send_waits_for_block(self, wallet, ledger):
        await wallet.init()
        await wallet.transfer(wallet.get_address(0), RECIPIENT, 100_000, sync_send=True)
        assert ledger.broadcasts[0][1] == "block"

    @pytest.mark.asyncio
    async def test_string_amount(self, wallet, ledger):
        await wallet.init()
        await wallet.transfer(wallet.get_address(0), RECIPIENT, "100000")
        assert ledger.broadcasts[0][0].msgs[0].amount.amount_of("uluna") == 100_000

    @pytest.mark.asyncio
    async def test_bad_amount(self, wallet, ledger):
        await wallet.init()
        for amount in ("1.5", "abc", True, None):
            with pytest.raises(ValueError):
                await wallet.transfer(wallet.get_address(0), RECIPIENT, amount)
        assert ledger.broadcasts == []

    @pytest.mark.asyncio
    async def test_send_all_native(self, wallet, ledger):
        await wallet.init()

        await wallet.transfer(wallet.get_address(0), RECIPIENT, None, "uluna", send_all=True)

        tx, _ = ledger.broadcasts[0]
        assert tx.msgs[0].amount.amount_of("uluna") == 995_000
        assert tx.fee.amount.amount_of("uluna") == 5_000
        assert ledger.count("estimate_fee") == 1
        assert ledger.count("get_tax_rate") == 0

    @pytest.mark.asyncio
    async def test_send_all_taxed_denom(self, party2, store):
        ledger = FakeLedger(
            balance=Coins([Coin("uusd", 1_000_000)]),
            fee=StdFee(gas=100_000, amount=Coins([Coin("uusd", 5_000)])),
        )
        wallet = ThreshSigWallet(ledger, party2, store, CHAIN_ID)
        await wallet.init()

        await wallet.transfer(wallet.get_address(0), RECIPIENT, None, "uusd", send_all=True)

        tx, _ = ledger.broadcasts[0]
        sent = tx.msgs[0].amount.amount_of("uusd")
        fee = tx.fee.amount.amount_of("uusd")
        assert fee == 5_000 + 995
        assert sent == 995_000 - 995
        assert sent + fee == 1_000_000

    @pytest.mark.asyncio
    async def test_dry_run_never_broadcasts(self, wallet, ledger, party2):
        await wallet.init()
        sender = wallet.get_address(0)

        for kwargs in ({}, {"sync_send": True}, {"send_all": True}):
            amount = None if kwargs.get("send_all") else 100_000
            result = await wallet.transfer(sender, RECIPIENT, amount, dry_run=True, **kwargs)
            assert isinstance(result, DryRunResult)
            assert result.tx["type"] == "core/StdTx"

        assert ledger.count("broadcast") == 0
        assert len(party2.sign_calls) == 3

    @pytest.mark.asyncio
    async def test_unknown_sender(self, wallet, ledger):
        await wallet.init()
        with pytest.raises(UnknownAddress):
            await wallet.transfer(RECIPIENT, wallet.get_address(0), 100_000)
        assert ledger.calls == []

    @pytest.mark.asyncio
    async def test_invalid_recipient(self, wallet, ledger):
        await wallet.init()
        with pytest.raises(ThreshSigError) as exc_info:
            await wallet.transfer(wallet.get_address(0), "terra1bogus", 100_000)
        assert exc_info.value.code == ErrorCode.INVALID_ADDRESS
        assert ledger.calls == []

    @pytest.mark.asyncio
    async def test_insufficient_balance_stops_before_signing(self, wallet, ledger, party2):
        await wallet.init()
        with pytest.raises(InsufficientBalance):
            await wallet.transfer(wallet.get_address(0), RECIPIENT, 1_000_000)
        assert party2.sign_calls == []
        assert ledger.count("broadcast") == 0

    @pytest.mark.asyncio
    async def test_signing_failure_stops_before_broadcast(self, wallet, ledger, party2):
        await wallet.init()
        party2.sign_error = ConnectionError("party 1 unreachable")

        with pytest.raises(ProtocolFailure):
            await wallet.transfer(wallet.get_address(0), RECIPIENT, 100_000)
        assert ledger.count("broadcast") == 0

    @pytest.mark.asyncio
    async def test_memo_is_carried(self, wallet, ledger):
        await wallet.init()
        await wallet.transfer(
            wallet.get_address(0), RECIPIENT, 100_000, options=SendOptions(memo="rent")
        )
        assert ledger.broadcasts[0][0].memo == "rent"


# ============================================================================
# SWAPS
# ============================================================================

class TestWalletSwap:
    """Tests for swap."""

    @pytest.mark.asyncio
    async def test_swap_waits_for_block(self, wallet, ledger):
        await wallet.init()
        trader = wallet.get_address(0)

        await wallet.swap(trader, 100_000, "uluna", "uusd")

        tx, mode = ledger.broadcasts[0]
        assert mode == "block"
        assert tx.msgs[0].trader == trader
        assert tx.msgs[0].offer_coin == Coin("uluna", 100_000)
        assert tx.msgs[0].ask_denom == "uusd"

    @pytest.mark.asyncio
    async def test_swap_dry_run(self, wallet, ledger):
        await wallet.init()
        result = await wallet.swap(wallet.get_address(0), 100_000, None, "uusd", dry_run=True)
        assert isinstance(result, DryRunResult)
        assert result.tx["value"]["msg"][0]["type"] == "market/MsgSwap"
        assert ledger.count("broadcast") == 0

    @pytest.mark.asyncio
    async def test_swap_into_same_denom(self, wallet):
        await wallet.init()
        with pytest.raises(ValueError):
            await wallet.swap(wallet.get_address(0), 100_000, "uluna", "uluna")


# ============================================================================
# CONCURRENCY
# ============================================================================

class TestWalletConcurrency:
    """Tests for per-address serialization."""

    @pytest.mark.asyncio
    async def test_same_address_is_serialized(self, wallet, ledger):
        await wallet.init()
        sender = wallet.get_address(0)
        served = record_served_sequences(ledger)
        ledger.broadcast_delay = 0.05

        await asyncio.gather(
            wallet.transfer(sender, RECIPIENT, 100_000),
            wallet.transfer(sender, RECIPIENT, 200_000),
        )

        # account_number then sequence per plan, each plan after the previous broadcast
        assert served == [7, 7, 8, 8]
        assert len(ledger.broadcasts) == 2

    @pytest.mark.asyncio
    async def test_different_addresses_run_concurrently(self, wallet, ledger, party2):
        await wallet.init()
        senders = [wallet.get_address(0), wallet.get_address(1)]

        in_flight = 0
        peak = 0
        original = party2.sign

        async def sign(*args):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            try:
                await asyncio.sleep(0.05)
                return await original(*args)
            finally:
                in_flight -= 1

        party2.sign = sign

        await asyncio.gather(*(wallet.transfer(s, RECIPIENT, 100_000) for s in senders))

        assert peak == 2
        assert len(ledger.broadcasts) == 2


# ============================================================================
# CONFIG
# ============================================================================

class TestWalletFromConfig:
    """Tests for ThreshSigWallet.from_config."""

    @pytest.mark.asyncio
    async def test_from_config_with_injected_collaborators(self, ledger):
        config = WalletConfig(password="hunter2")
        store = MemoryStore()
        wallet = ThreshSigWallet.from_config(config, FakeParty2(), store=store, ledger=ledger)

        await wallet.init()

        assert wallet.get_info()["chain_id"] == "soju-0014"
        # Password seals the share at rest
        assert "encrypted" in store.get(MK_SHARE_KEY)

    def test_from_config_builds_file_store(self, tmp_path, ledger):
        config = WalletConfig(db_path=tmp_path / "client_db")
        ThreshSigWallet.from_config(config, FakeParty2(), ledger=ledger)
        assert (tmp_path / "client_db" / "db.json").exists()

    def test_from_config_bounds_ledger_calls_across_endpoints(self, tmp_path):
        config = WalletConfig(db_path=tmp_path, ledger_timeout_secs=2.0)
        config.chain.lcd_urls = ["https://a.example", "https://b.example"]

        wallet = ThreshSigWallet.from_config(config, FakeParty2(), store=MemoryStore())

        assert wallet._ledger._timeout_secs == 2.0
        assert wallet._accounts._timeout_secs == 4.0
