"""Submission of signed transactions."""

import json
import logging

from .chains import LedgerClient
from .timeouts import DEFAULT_LEDGER_TIMEOUT, ledger_call
from .tx import StdTx
from .types import BroadcastMode, BroadcastResult, DryRunResult

logger = logging.getLogger("terra_threshsig.broadcast")


class Broadcaster:
    """Hands signed transactions to the ledger, or only logs them on a dry run.

    There is no retry; network and node errors reach the caller unchanged.
    """

    def __init__(
        self, ledger: LedgerClient, timeout_secs: float | None = DEFAULT_LEDGER_TIMEOUT
    ) -> None:
        self._ledger = ledger
        self._timeout_secs = timeout_secs

    async def submit(
        self, signed: StdTx, mode: BroadcastMode = BroadcastMode.ASYNC_SEND
    ) -> BroadcastResult | DryRunResult:
        tx_data = signed.to_data()

        if mode == BroadcastMode.DRY_RUN:
            logger.info("------ Dry Run ------\n" + json.dumps(tx_data, indent=2))
            return DryRunResult(tx=tx_data)

        logger.info(f"===== Executing ({mode.value}) =====\n" + json.dumps(tx_data, indent=2))
        result = await ledger_call(
            self._ledger.broadcast(signed, mode.value), "Broadcast", self._timeout_secs
        )
        logger.info(f"Broadcast accepted: txhash={result.txhash} height={result.height}")
        return result
