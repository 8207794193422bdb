"""Coin and coin-set arithmetic.

Amounts are non-negative integers in the smallest unit of a denomination
(``uluna``, ``uusd``, ...). Arithmetic is only defined within a denomination
and subtraction below zero is an error.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Iterator


@dataclass(frozen=True)
class Coin:
    """A single (denomination, amount) pair."""

    denom: str
    amount: int

    def __post_init__(self) -> None:
        if not isinstance(self.amount, int) or isinstance(self.amount, bool):
            raise TypeError(f"Coin amount must be an int, got {type(self.amount).__name__}")
        if self.amount < 0:
            raise ValueError(f"Coin amount cannot be negative: {self.amount}{self.denom}")

    def to_data(self) -> dict[str, str]:
        return {"denom": self.denom, "amount": str(self.amount)}

    @classmethod
    def from_data(cls, data: dict[str, Any]) -> "Coin":
        return cls(denom=data["denom"], amount=int(data["amount"]))

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


class Coins:
    """
    A set of coins with at most one entry per denomination.

    Example:
        >>> balance = Coins([Coin("uluna", 1_000_000), Coin("uusd", 500)])
        >>> fee = Coins([Coin("uluna", 5_000)])
        >>> balance.sub(fee).amount_of("uluna")
        995000
    """

    def __init__(self, coins: Iterable[Coin] = ()) -> None:
        self._coins: dict[str, Coin] = {}
        for coin in coins:
            if coin.denom in self._coins:
                coin = Coin(coin.denom, self._coins[coin.denom].amount + coin.amount)
            self._coins[coin.denom] = coin

    @classmethod
    def from_data(cls, data: Iterable[dict[str, Any]] | None) -> "Coins":
        return cls(Coin.from_data(item) for item in data or [])

    def to_data(self) -> list[dict[str, str]]:
        return [coin.to_data() for coin in self]

    def get(self, denom: str) -> Coin | None:
        return self._coins.get(denom)

    def amount_of(self, denom: str) -> int:
        """Amount held in ``denom``; zero when absent."""
        coin = self._coins.get(denom)
        return coin.amount if coin else 0

    def filter(self, denom: str) -> "Coins":
        """Coins restricted to a single denomination."""
        coin = self._coins.get(denom)
        return Coins([coin] if coin else [])

    def map_amount(self, amount: int) -> "Coins":
        """Same denominations, each with ``amount``."""
        return Coins(Coin(denom, amount) for denom in self._coins)

    def add(self, other: "Coins | Coin") -> "Coins":
        other_coins = Coins([other]) if isinstance(other, Coin) else other
        return Coins([*self, *other_coins])

    def sub(self, other: "Coins | Coin") -> "Coins":
        """Subtract per denomination.

        Raises:
            ValueError: if any denomination would drop below zero.
        """
        other_coins = Coins([other]) if isinstance(other, Coin) else other
        result = dict(self._coins)
        for coin in other_coins:
            held = self.amount_of(coin.denom)
            if coin.amount > held:
                raise ValueError(
                    f"Cannot subtract {coin} from {held}{coin.denom}"
                )
            result[coin.denom] = Coin(coin.denom, held - coin.amount)
        return Coins(result.values())

    def is_empty(self) -> bool:
        return not self._coins

    def __iter__(self) -> Iterator[Coin]:
        return iter(self._coins[denom] for denom in sorted(self._coins))

    def __len__(self) -> int:
        return len(self._coins)

    def __contains__(self, denom: object) -> bool:
        return denom in self._coins

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Coins):
            return NotImplemented
        return list(self) == list(other)

    def __repr__(self) -> str:
        return f"Coins({','.join(str(c) for c in self)})"
