"""Ledger adapters."""

from decimal import Decimal
from typing import Protocol

from ..coins import Coins
from ..tx import StdFee, StdTx
from ..types import AccountInfo, BroadcastResult
from .terra import NATIVE_DENOM, TerraChainConfig, TerraLcdClient, TerraNetworks


class LedgerClient(Protocol):
    """Ledger query and broadcast collaborator."""

    async def get_balance(self, address: str) -> Coins:
        ...

    async def get_account_info(self, address: str) -> AccountInfo:
        ...

    async def estimate_fee(
        self, tx: StdTx, gas_prices: dict[str, Decimal], gas_adjustment: Decimal
    ) -> StdFee:
        ...

    async def get_tax_rate(self) -> Decimal:
        ...

    async def get_tax_cap(self, denom: str) -> int:
        ...

    async def broadcast(self, tx: StdTx, mode: str) -> BroadcastResult:
        ...


__all__ = [
    "LedgerClient",
    "NATIVE_DENOM",
    "TerraChainConfig",
    "TerraLcdClient",
    "TerraNetworks",
]
