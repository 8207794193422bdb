"""Account number and sequence lookups."""

from .chains import LedgerClient
from .timeouts import DEFAULT_LEDGER_TIMEOUT, ledger_call


class AccountStateReader:
    """
    Reads account number and sequence at envelope-construction time.

    Nothing is cached: a concurrent transaction from the same address bumps
    the sequence, and a stale value gets the broadcast rejected.
    """

    def __init__(self, ledger: LedgerClient, timeout_secs: float | None = DEFAULT_LEDGER_TIMEOUT) -> None:
        self._ledger = ledger
        self._timeout_secs = timeout_secs

    async def account_number(self, address: str) -> int:
        info = await ledger_call(
            self._ledger.get_account_info(address),
            f"Account lookup for {address}",
            self._timeout_secs,
        )
        return info.account_number

    async def sequence(self, address: str) -> int:
        info = await ledger_call(
            self._ledger.get_account_info(address),
            f"Sequence lookup for {address}",
            self._timeout_secs,
        )
        return info.sequence
