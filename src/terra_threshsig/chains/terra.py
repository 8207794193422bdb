"""Terra LCD (REST) ledger client."""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any
import asyncio
import logging

import httpx

from ..coins import Coins
from ..tx import StdFee, StdTx
from ..types import (
    AccountInfo,
    BroadcastFailure,
    BroadcastResult,
    LedgerQueryFailure,
    LedgerTimeout,
)

logger = logging.getLogger("terra_threshsig.chains.terra")

NATIVE_DENOM = "uluna"


@dataclass
class TerraChainConfig:
    """Terra network configuration."""

    chain_id: str
    name: str
    lcd_urls: list[str]
    native_denom: str = NATIVE_DENOM
    explorer_url: str | None = None


# Pre-configured networks
TerraNetworks = {
    "COLUMBUS": TerraChainConfig(
        chain_id="columbus-4",
        name="Terra Mainnet",
        lcd_urls=["https://lcd.terra.dev"],
        explorer_url="https://finder.terra.money/columbus-4",
    ),
    "TEQUILA": TerraChainConfig(
        chain_id="tequila-0004",
        name="Terra Tequila Testnet",
        lcd_urls=["https://tequila-lcd.terra.dev"],
        explorer_url="https://finder.terra.money/tequila-0004",
    ),
    "SOJU": TerraChainConfig(
        chain_id="soju-0014",
        name="Terra Soju Testnet",
        lcd_urls=["https://soju-lcd.terra.dev"],
    ),
}


def parse_account_info(result: Any) -> AccountInfo:
    """Normalize the account reply into ``AccountInfo``.

    Plain accounts carry the fields inline; vesting accounts nest them under
    ``BaseAccount`` or ``BaseVestingAccount.BaseAccount``.
    """
    value = result.get("value", result) if isinstance(result, dict) else None
    if not isinstance(value, dict):
        raise LedgerQueryFailure(f"Unexpected account reply: {result!r}")

    if "BaseVestingAccount" in value:
        value = value["BaseVestingAccount"]
    if "BaseAccount" in value:
        value = value["BaseAccount"]

    # A fresh account reports "0" or ""; an absent field is a bad reply
    missing = [name for name in ("account_number", "sequence") if name not in value]
    if missing:
        raise LedgerQueryFailure(f"Account reply is missing {', '.join(missing)}: {value!r}")

    try:
        return AccountInfo(
            account_number=int(value.get("account_number") or 0),
            sequence=int(value.get("sequence") or 0),
        )
    except (TypeError, ValueError) as e:
        raise LedgerQueryFailure(f"Malformed account fields: {value!r}", e) from e


class TerraLcdClient:
    """
    Ledger client over the LCD REST interface.

    Reads fail over across ``lcd_urls``; broadcast is a single attempt
    against the current endpoint. Each endpoint attempt is bounded by
    ``timeout_secs``, so a read can take up to ``total_timeout_secs``.

    Example:
        >>> lcd = TerraLcdClient(TerraNetworks["SOJU"])
        >>> balance = await lcd.get_balance("terra1...")
        >>> balance.amount_of("uluna")
    """

    def __init__(
        self,
        config: TerraChainConfig,
        timeout_secs: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not config.lcd_urls:
            raise ValueError("At least one LCD URL is required")
        self._config = config
        self._timeout_secs = timeout_secs
        self._client = client
        self._current_url_index = 0

    @property
    def chain_id(self) -> str:
        return self._config.chain_id

    @property
    def native_denom(self) -> str:
        return self._config.native_denom

    @property
    def total_timeout_secs(self) -> float:
        """Upper bound on a read that tries every endpoint."""
        return self._timeout_secs * len(self._config.lcd_urls)

    async def get_balance(self, address: str) -> Coins:
        result = await self._request("GET", f"/bank/balances/{address}")
        return Coins.from_data(result)

    async def get_account_info(self, address: str) -> AccountInfo:
        result = await self._request("GET", f"/auth/accounts/{address}")
        return parse_account_info(result)

    async def estimate_fee(
        self, tx: StdTx, gas_prices: dict[str, Decimal], gas_adjustment: Decimal
    ) -> StdFee:
        """Simulate ``tx`` and price its gas.

        ``gas_prices`` maps denom to a (fractional) price per gas unit.
        """
        result = await self._request(
            "POST",
            "/txs/estimate_fee",
            json={
                "tx": tx.to_data()["value"],
                "gas_prices": [
                    {"denom": denom, "amount": str(price)}
                    for denom, price in sorted(gas_prices.items())
                ],
                "gas_adjustment": str(gas_adjustment),
            },
        )
        try:
            return StdFee(gas=int(result["gas"]), amount=Coins.from_data(result.get("fees")))
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerQueryFailure(f"Malformed fee estimate: {result!r}", e) from e

    async def get_tax_rate(self) -> Decimal:
        result = await self._request("GET", "/treasury/tax_rate")
        try:
            return Decimal(str(result))
        except InvalidOperation as e:
            raise LedgerQueryFailure(f"Malformed tax rate: {result!r}", e) from e

    async def get_tax_cap(self, denom: str) -> int:
        result = await self._request("GET", f"/treasury/tax_cap/{denom}")
        try:
            return int(result)
        except (TypeError, ValueError) as e:
            raise LedgerQueryFailure(f"Malformed tax cap: {result!r}", e) from e

    async def broadcast(self, tx: StdTx, mode: str) -> BroadcastResult:
        """Submit ``tx``. ``mode`` is ``block`` or ``sync``."""
        url = self._config.lcd_urls[self._current_url_index] + "/txs"
        payload = {"tx": tx.to_data()["value"], "mode": mode}
        try:
            response = await self._send("POST", url, json=payload)
            data = response.json()
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise LedgerTimeout(f"Broadcast to {url} timed out", e) from e
        except (httpx.HTTPError, ValueError) as e:
            raise LedgerQueryFailure(f"Broadcast to {url} failed: {e}", e) from e

        if response.status_code >= 400 or "error" in data:
            raw_log = str(data.get("error", response.text))
            logger.error(f"Broadcast to {url} rejected with HTTP {response.status_code}")
            raise BroadcastFailure(f"Node rejected transaction: {raw_log}", raw_log=raw_log)

        result = BroadcastResult(
            txhash=data.get("txhash", ""),
            height=int(data.get("height") or 0),
            raw_log=data.get("raw_log", ""),
            code=int(data.get("code") or 0),
            logs=data.get("logs") or [],
        )
        if not result.is_success:
            logger.error(f"Transaction {result.txhash} rejected with code {result.code}")
            raise BroadcastFailure(
                f"Transaction {result.txhash} failed with code {result.code}: {result.raw_log}",
                code=result.code,
                raw_log=result.raw_log,
            )
        return result

    def get_explorer_tx_url(self, tx_hash: str) -> str | None:
        """Get explorer URL for a transaction."""
        if not self._config.explorer_url:
            return None
        return f"{self._config.explorer_url}/tx/{tx_hash}"

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        """Make an LCD call with failover; returns the ``result`` field."""
        errors: list[str] = []
        timed_out = False

        for _ in range(len(self._config.lcd_urls)):
            url = self._config.lcd_urls[self._current_url_index] + path
            try:
                response = await self._send(method, url, json=json)
                data = response.json()
                if response.status_code >= 400 or "error" in data:
                    raise LedgerQueryFailure(
                        f"{method} {path}: {data.get('error', response.status_code)}"
                    )
                return data["result"]

            except (
                httpx.HTTPError, asyncio.TimeoutError, LedgerQueryFailure, KeyError, ValueError
            ) as e:
                timed_out = timed_out or isinstance(
                    e, (httpx.TimeoutException, asyncio.TimeoutError)
                )
                errors.append(str(e) or type(e).__name__)
                logger.warning(f"LCD {url} failed: {errors[-1]}")
                self._current_url_index = (
                    self._current_url_index + 1
                ) % len(self._config.lcd_urls)

        message = f"All LCD endpoints failed for {method} {path}: {', '.join(errors)}"
        if timed_out:
            raise LedgerTimeout(message)
        raise LedgerQueryFailure(message)

    async def _send(self, method: str, url: str, json: Any = None) -> httpx.Response:
        """One attempt against ``url``, bounded by ``timeout_secs``."""
        if self._client is not None:
            return await asyncio.wait_for(
                self._client.request(method, url, json=json), self._timeout_secs
            )
        async with httpx.AsyncClient(timeout=self._timeout_secs) as client:
            return await asyncio.wait_for(
                client.request(method, url, json=json), self._timeout_secs
            )
