"""Threshold-signature wallet context."""

import asyncio
import logging
from decimal import Decimal
from typing import Any

from .account import AccountStateReader
from .broadcast import Broadcaster
from .chains import NATIVE_DENOM, LedgerClient, TerraLcdClient
from .coins import Coins
from .config import WalletConfig
from .keygen import MasterKeyManager
from .keys import AddressBook, is_valid_address
from .mpc import HD_COIN_INDEX, Party2
from .planner import (
    DEFAULT_GAS_ADJUSTMENT,
    DEFAULT_GAS_PRICE,
    SendOptions,
    TransferPlanner,
)
from .signing import SigningConfig, SigningOrchestrator
from .storage import FileSystemStore, KeyValueStore
from .timeouts import DEFAULT_LEDGER_TIMEOUT, DEFAULT_SIGN_TIMEOUT
from .tx import StdSignMsg
from .types import (
    BroadcastMode,
    BroadcastResult,
    DryRunResult,
    ErrorCode,
    NotInitialized,
    ThreshSigError,
    WalletState,
)

logger = logging.getLogger("terra_threshsig.wallet")


class ThreshSigWallet:
    """
    Party 2 side of a two-party threshold wallet.

    One instance is one wallet session: it owns the master key share once
    ``init()`` has run and wires the planner, signer and broadcaster around
    the injected ledger, participant and store collaborators.

    Transfers and swaps from the same address are serialized by a
    per-address lock, so two of them never race on the account sequence.
    Requests from different addresses run concurrently.

    Example:
        >>> wallet = ThreshSigWallet.from_config(WalletConfig.from_env(), party2)
        >>> await wallet.init()
        >>> sender = wallet.get_address(0)
        >>> await wallet.transfer(sender, "terra1...", 100_000, "uluna", dry_run=True)
    """

    def __init__(
        self,
        ledger: LedgerClient,
        party2: Party2,
        store: KeyValueStore,
        chain_id: str,
        native_denom: str = NATIVE_DENOM,
        coin_index: int = HD_COIN_INDEX,
        gas_price: Decimal = DEFAULT_GAS_PRICE,
        gas_adjustment: Decimal = DEFAULT_GAS_ADJUSTMENT,
        ledger_timeout_secs: float | None = DEFAULT_LEDGER_TIMEOUT,
        sign_timeout_secs: float | None = DEFAULT_SIGN_TIMEOUT,
        password: str | None = None,
    ) -> None:
        self._ledger = ledger
        self._party2 = party2
        self._store = store
        self._chain_id = chain_id
        self._coin_index = coin_index
        self._sign_timeout_secs = sign_timeout_secs
        self._state = WalletState.UNINITIALIZED

        self._key_manager = MasterKeyManager(
            store, party2, password=password, timeout_secs=sign_timeout_secs
        )
        self._accounts = AccountStateReader(ledger, ledger_timeout_secs)
        self._planner = TransferPlanner(
            ledger,
            self._accounts,
            chain_id,
            native_denom=native_denom,
            gas_price=gas_price,
            gas_adjustment=gas_adjustment,
            timeout_secs=ledger_timeout_secs,
        )
        self._broadcaster = Broadcaster(ledger, ledger_timeout_secs)
        self._address_book: AddressBook | None = None
        self._signer: SigningOrchestrator | None = None
        self._address_locks: dict[str, asyncio.Lock] = {}

    @classmethod
    def from_config(
        cls,
        config: WalletConfig,
        party2: Party2,
        store: KeyValueStore | None = None,
        ledger: LedgerClient | None = None,
    ) -> "ThreshSigWallet":
        """Create a wallet with an LCD client and file store from ``config``."""
        config.validate()
        return cls(
            ledger=ledger or TerraLcdClient(config.chain, timeout_secs=config.ledger_timeout_secs),
            party2=party2,
            store=store or FileSystemStore(config.db_path),
            chain_id=config.chain.chain_id,
            native_denom=config.chain.native_denom,
            coin_index=config.coin_index,
            gas_price=config.gas_price,
            gas_adjustment=config.gas_adjustment,
            ledger_timeout_secs=config.ledger_call_timeout_secs,
            sign_timeout_secs=config.sign_timeout_secs,
            password=config.password,
        )

    # ============================================================================
    # Lifecycle
    # ============================================================================

    @property
    def state(self) -> WalletState:
        return self._state

    @property
    def native_denom(self) -> str:
        return self._planner.native_denom

    async def init(self) -> None:
        """Restore or generate the master key share and become READY."""
        if self._state == WalletState.READY:
            return

        share = await self._key_manager.restore_or_generate()
        self._address_book = AddressBook(self._store, self._party2, share, self._coin_index)
        self._signer = SigningOrchestrator(
            self._party2,
            self._address_book,
            SigningConfig(coin_index=self._coin_index, timeout_secs=self._sign_timeout_secs),
        )
        self._state = WalletState.READY
        logger.info(f"Wallet ready on {self._chain_id}")

    def _require_ready(self) -> tuple[AddressBook, SigningOrchestrator]:
        if self._state != WalletState.READY or self._address_book is None or self._signer is None:
            raise NotInitialized()
        return self._address_book, self._signer

    # ============================================================================
    # Addresses & balances
    # ============================================================================

    def get_address(self, address_index: int = 0) -> str:
        """Address of ``address_index``, registering it on first use."""
        address_book, _ = self._require_ready()
        return address_book.get_or_register_address(address_index)

    async def get_balance(self, address: str) -> Coins:
        self._require_ready()
        return await self._planner.get_balance(address)

    # ============================================================================
    # Transactions
    # ============================================================================

    async def transfer(
        self,
        from_address: str,
        to_address: str,
        amount: int | str | None,
        denom: str | None = None,
        options: SendOptions | None = None,
        send_all: bool = False,
        sync_send: bool = False,
        dry_run: bool = False,
    ) -> BroadcastResult | DryRunResult:
        """Transfer ``amount`` of ``denom`` (or everything, with ``send_all``).

        Amounts are in micro units (``uluna``, ``uusd``, ...). ``sync_send``
        waits for block inclusion; otherwise only node receipt is awaited.
        """
        address_book, signer = self._require_ready()
        _require_address(to_address)
        address_index = address_book.index_of(from_address)

        async with self._address_lock(from_address):
            envelope: StdSignMsg
            if send_all:
                envelope = await self._planner.plan_send_all_transfer(
                    from_address, to_address, denom, options
                )
            else:
                envelope = await self._planner.plan_fixed_transfer(
                    from_address, to_address, _parse_amount(amount), denom, options
                )

            signed = await signer.sign_envelope(address_index, envelope)

            if dry_run:
                mode = BroadcastMode.DRY_RUN
            elif sync_send:
                mode = BroadcastMode.SYNC_SEND
            else:
                mode = BroadcastMode.ASYNC_SEND
            return await self._broadcaster.submit(signed, mode)

    async def swap(
        self,
        from_address: str,
        amount: int | str,
        denom: str | None,
        ask_denom: str,
        options: SendOptions | None = None,
        dry_run: bool = False,
    ) -> BroadcastResult | DryRunResult:
        """Swap ``amount`` of ``denom`` for ``ask_denom`` on the market module."""
        address_book, signer = self._require_ready()
        address_index = address_book.index_of(from_address)

        async with self._address_lock(from_address):
            envelope = await self._planner.plan_swap(
                from_address, _parse_amount(amount), denom, ask_denom, options
            )
            signed = await signer.sign_envelope(address_index, envelope)
            mode = BroadcastMode.DRY_RUN if dry_run else BroadcastMode.SYNC_SEND
            return await self._broadcaster.submit(signed, mode)

    def _address_lock(self, address: str) -> asyncio.Lock:
        lock = self._address_locks.get(address)
        if lock is None:
            lock = self._address_locks[address] = asyncio.Lock()
        return lock

    # ============================================================================
    # Utilities
    # ============================================================================

    def get_info(self) -> dict[str, Any]:
        """Wallet summary (without secrets)."""
        return {
            "state": self._state.value,
            "chain_id": self._chain_id,
            "native_denom": self.native_denom,
            "addresses": [r.to_dict() for r in self._address_book.records()]
            if self._address_book
            else [],
        }


def _require_address(address: str) -> None:
    if not is_valid_address(address):
        raise ThreshSigError(ErrorCode.INVALID_ADDRESS, f"Invalid recipient address: {address}")


def _parse_amount(amount: int | str | None) -> int:
    if isinstance(amount, bool):
        raise ValueError(f"Invalid amount: {amount!r}")
    if isinstance(amount, int):
        return amount
    if isinstance(amount, str) and amount.strip().isdigit():
        return int(amount.strip())
    raise ValueError(f"Amount must be a whole number of micro units, got {amount!r}")
