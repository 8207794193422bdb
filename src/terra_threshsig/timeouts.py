"""Bounded calls into the ledger and MPC collaborators."""

import asyncio
from typing import Awaitable, TypeVar

from .types import (
    ErrorCode,
    ThreshSigError,
    LedgerQueryFailure,
    LedgerTimeout,
    ProtocolFailure,
    ProtocolTimeout,
)

T = TypeVar("T")

DEFAULT_LEDGER_TIMEOUT = 30.0
DEFAULT_SIGN_TIMEOUT = 60.0


async def ledger_call(awaitable: Awaitable[T], what: str, timeout: float | None) -> T:
    """Await a ledger query, mapping timeouts and foreign errors.

    Errors already in the client's taxonomy pass through unchanged.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as e:
        raise LedgerTimeout(f"{what} timed out after {timeout}s", e) from e
    except ThreshSigError:
        raise
    except Exception as e:
        raise LedgerQueryFailure(f"{what} failed: {e}", e) from e


async def protocol_call(
    awaitable: Awaitable[T],
    what: str,
    timeout: float | None,
    code: ErrorCode = ErrorCode.SIGNING_FAILED,
) -> T:
    """Await a two-party protocol round trip, mapping timeouts and errors."""
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as e:
        raise ProtocolTimeout(f"{what} timed out after {timeout}s", e) from e
    except ThreshSigError:
        raise
    except Exception as e:
        raise ProtocolFailure(f"{what} failed: {e}", e, code) from e
