"""Balance checks, fee estimation and send-all tax netting."""

import logging
from dataclasses import dataclass, replace
from decimal import ROUND_FLOOR, Decimal
from typing import Sequence

from .account import AccountStateReader
from .chains import NATIVE_DENOM, LedgerClient
from .coins import Coin, Coins
from .timeouts import DEFAULT_LEDGER_TIMEOUT, ledger_call
from .tx import Msg, MsgSend, MsgSwap, StdFee, StdSignMsg, StdTx
from .types import InsufficientBalance, LedgerQueryFailure, TaxParameters

logger = logging.getLogger("terra_threshsig.planner")

DEFAULT_GAS_PRICE = Decimal("0.15")
DEFAULT_GAS_ADJUSTMENT = Decimal("1.4")


@dataclass
class SendOptions:
    """Optional knobs for a transfer or swap."""

    memo: str = ""
    fee_denom: str | None = None  # Gas-price denom; defaults to the transfer denom
    gas_price: Decimal | None = None
    gas_adjustment: Decimal | None = None
    fee: StdFee | None = None  # Explicit fee; skips estimation


def compute_tax(amount_after_fee: int, tax_rate: Decimal, tax_cap: int) -> int:
    """``floor(min(tax_cap, tax_rate * amount_after_fee))``."""
    if amount_after_fee < 0:
        raise ValueError(f"Taxed amount cannot be negative: {amount_after_fee}")
    tax = min(Decimal(tax_cap), Decimal(tax_rate) * amount_after_fee)
    return int(tax.to_integral_value(rounding=ROUND_FLOOR))


class TransferPlanner:
    """
    Builds unsigned envelopes for transfers and swaps.

    Every balance, fee and tax figure comes from a live ledger read made
    during the planning call; nothing is cached between calls.

    Example:
        >>> planner = TransferPlanner(lcd, AccountStateReader(lcd), "soju-0014")
        >>> envelope = await planner.plan_send_all_transfer(sender, recipient, "uusd")
    """

    def __init__(
        self,
        ledger: LedgerClient,
        accounts: AccountStateReader,
        chain_id: str,
        native_denom: str = NATIVE_DENOM,
        gas_price: Decimal = DEFAULT_GAS_PRICE,
        gas_adjustment: Decimal = DEFAULT_GAS_ADJUSTMENT,
        timeout_secs: float | None = DEFAULT_LEDGER_TIMEOUT,
    ) -> None:
        self._ledger = ledger
        self._accounts = accounts
        self._chain_id = chain_id
        self._native_denom = native_denom
        self._gas_price = Decimal(gas_price)
        self._gas_adjustment = Decimal(gas_adjustment)
        self._timeout_secs = timeout_secs

    @property
    def native_denom(self) -> str:
        return self._native_denom

    # ============================================================================
    # Ledger reads
    # ============================================================================

    async def get_balance(self, address: str) -> Coins:
        return await ledger_call(
            self._ledger.get_balance(address), f"Balance query for {address}", self._timeout_secs
        )

    async def get_tax_parameters(self, denom: str) -> TaxParameters:
        rate = await ledger_call(self._ledger.get_tax_rate(), "Tax rate query", self._timeout_secs)
        cap = await ledger_call(
            self._ledger.get_tax_cap(denom), f"Tax cap query for {denom}", self._timeout_secs
        )
        if Decimal(rate) < 0 or int(cap) < 0:
            raise LedgerQueryFailure(f"Invalid tax parameters: rate={rate} cap={cap}")
        return TaxParameters(rate=Decimal(rate), cap=int(cap))

    async def check_enough_balance(self, address: str, amount: int, denom: str) -> Coins:
        """Require ``amount < balance[denom]``; return the full balance."""
        balance = await self.get_balance(address)
        held = balance.amount_of(denom)
        if not amount < held:
            raise InsufficientBalance(
                f"Not enough balance: {amount}{denom} requested, {held}{denom} available",
                balance=held,
                required=amount,
            )
        return balance

    # ============================================================================
    # Planning
    # ============================================================================

    async def plan_fixed_transfer(
        self,
        from_address: str,
        to_address: str,
        amount: int,
        denom: str | None = None,
        options: SendOptions | None = None,
    ) -> StdSignMsg:
        denom = denom or self._native_denom
        options = options or SendOptions()
        _require_positive(amount)

        balance = await self.check_enough_balance(from_address, amount, denom)
        send = MsgSend(from_address, to_address, Coins([Coin(denom, amount)]))
        tx = await self.create_tx(
            from_address, [send], options, self._gas_prices(denom, options), balance
        )
        _ensure_covered(tx.fee, amount, balance, denom)
        logger.debug(f"Planned transfer of {amount}{denom} with fee {tx.fee.amount}")
        return tx

    async def plan_send_all_transfer(
        self,
        from_address: str,
        to_address: str,
        denom: str | None = None,
        options: SendOptions | None = None,
    ) -> StdSignMsg:
        """Spend the entire ``denom`` balance, netting out fee and tax.

        The fee is estimated on a placeholder amount of 1, since gas does not
        depend on the amount. Tax parameters are read once, after the fee is
        known, and the final envelope carries the combined fee explicitly.
        """
        denom = denom or self._native_denom
        options = options or SendOptions()

        balance = await self.check_enough_balance(from_address, 1, denom)
        placeholder = MsgSend(from_address, to_address, Coins([Coin(denom, 1)]))
        fee = options.fee or await self.estimate_fee(
            [placeholder],
            options.memo,
            self._gas_prices(denom, options),
            options.gas_adjustment or self._gas_adjustment,
            balance,
        )
        _ensure_covered(fee, 1, balance, denom)

        held = balance.amount_of(denom)
        amount = held - fee.amount.amount_of(denom)
        if amount <= 0:
            raise InsufficientBalance(
                f"Balance {held}{denom} does not cover fee {fee.amount}",
                balance=held,
                required=fee.amount.amount_of(denom),
            )

        if denom != self._native_denom:
            params = await self.get_tax_parameters(denom)
            tax = compute_tax(amount, params.rate, params.cap)
            logger.debug(
                f"Send-all tax on {amount}{denom}: rate={params.rate} cap={params.cap} tax={tax}"
            )
            amount -= tax
            if tax > 0:
                fee = StdFee(fee.gas, fee.amount.add(Coin(denom, tax)))
            if amount <= 0:
                raise InsufficientBalance(
                    f"Balance {held}{denom} does not cover fee and tax {fee.amount}",
                    balance=held,
                    required=fee.amount.amount_of(denom),
                )

        send = MsgSend(from_address, to_address, Coins([Coin(denom, amount)]))
        tx = await self.create_tx(from_address, [send], replace(options, fee=fee), balance=balance)
        logger.debug(f"Planned send-all of {amount}{denom} with fee {fee.amount}")
        return tx

    async def plan_swap(
        self,
        trader: str,
        amount: int,
        denom: str | None,
        ask_denom: str,
        options: SendOptions | None = None,
    ) -> StdSignMsg:
        denom = denom or self._native_denom
        options = options or SendOptions()
        _require_positive(amount)
        if ask_denom == denom:
            raise ValueError(f"Cannot swap {denom} into itself")

        balance = await self.check_enough_balance(trader, amount, denom)
        swap = MsgSwap(trader, Coin(denom, amount), ask_denom)
        tx = await self.create_tx(trader, [swap], options, self._gas_prices(denom, options), balance)
        _ensure_covered(tx.fee, amount, balance, denom)
        logger.debug(f"Planned swap of {amount}{denom} to {ask_denom} with fee {tx.fee.amount}")
        return tx

    # ============================================================================
    # Envelope construction
    # ============================================================================

    async def estimate_fee(
        self,
        msgs: Sequence[Msg],
        memo: str,
        gas_prices: dict[str, Decimal],
        gas_adjustment: Decimal,
        balance: Coins,
    ) -> StdFee:
        """Simulate ``msgs`` with a placeholder fee of one unit per held denom."""
        draft = StdTx(msgs=tuple(msgs), fee=StdFee(0, balance.map_amount(1)), memo=memo)
        return await ledger_call(
            self._ledger.estimate_fee(draft, gas_prices, gas_adjustment),
            "Fee estimation",
            self._timeout_secs,
        )

    async def create_tx(
        self,
        from_address: str,
        msgs: Sequence[Msg],
        options: SendOptions,
        gas_prices: dict[str, Decimal] | None = None,
        balance: Coins | None = None,
    ) -> StdSignMsg:
        """Build an envelope, estimating the fee unless one is given.

        Account number and sequence are read last, right before returning.
        """
        fee = options.fee
        if fee is None:
            if balance is None:
                balance = await self.get_balance(from_address)
            fee = await self.estimate_fee(
                msgs,
                options.memo,
                gas_prices or {self._native_denom: self._gas_price},
                options.gas_adjustment or self._gas_adjustment,
                balance,
            )

        account_number = await self._accounts.account_number(from_address)
        sequence = await self._accounts.sequence(from_address)

        return StdSignMsg(
            chain_id=self._chain_id,
            account_number=account_number,
            sequence=sequence,
            fee=fee,
            msgs=tuple(msgs),
            memo=options.memo,
        )

    def _gas_prices(self, denom: str, options: SendOptions) -> dict[str, Decimal]:
        return {options.fee_denom or denom: Decimal(options.gas_price or self._gas_price)}


def _require_positive(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValueError(f"Amount must be a positive integer, got {amount!r}")


def _ensure_covered(fee: StdFee, amount: int, balance: Coins, denom: str) -> None:
    """Require ``fee[denom] + amount <= balance[denom]``."""
    held = balance.amount_of(denom)
    required = fee.amount.amount_of(denom) + amount
    if required > held:
        raise InsufficientBalance(
            f"Not enough balance to cover the fees: {required}{denom} needed, {held}{denom} available",
            balance=held,
            required=required,
        )
