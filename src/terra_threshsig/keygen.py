"""Master key share lifecycle: restore from the store or run the ceremony."""

import logging

from .mpc import MasterKeyShare, Party2
from .storage import MK_SHARE_KEY, KeyValueStore, is_sealed, seal, unseal
from .timeouts import protocol_call
from .types import (
    ErrorCode,
    NotInitialized,
    PersistenceFailure,
    ProtocolFailure,
    ThreshSigError,
    WalletState,
)

logger = logging.getLogger("terra_threshsig.keygen")


class MasterKeyManager:
    """
    Owns party 2's master key share.

    ``restore_or_generate`` either loads the persisted share (no network) or
    runs the two-party generation ceremony once and persists the result
    before reporting success. A store that cannot be read is fatal: it never
    falls through to generating a fresh, inconsistent share.

    Example:
        >>> manager = MasterKeyManager(FileSystemStore("client_db"), party2)
        >>> share = await manager.restore_or_generate()
        >>> manager.state
        <WalletState.READY: 'ready'>
    """

    def __init__(
        self,
        store: KeyValueStore,
        party2: Party2,
        password: str | None = None,
        timeout_secs: float | None = None,
    ) -> None:
        self._store = store
        self._party2 = party2
        self._password = password
        self._timeout_secs = timeout_secs
        self._state = WalletState.UNINITIALIZED
        self._share: MasterKeyShare | None = None

    @property
    def state(self) -> WalletState:
        return self._state

    @property
    def share(self) -> MasterKeyShare:
        if self._state != WalletState.READY or self._share is None:
            raise NotInitialized("Master key share is not loaded")
        return self._share

    async def restore_or_generate(self) -> MasterKeyShare:
        if self._state == WalletState.READY and self._share is not None:
            return self._share

        share = self._restore()
        if share is None:
            share = await self._generate()
        else:
            logger.info("Restored master key share from store")

        self._share = share
        self._state = WalletState.READY
        return share

    def _restore(self) -> MasterKeyShare | None:
        try:
            stored = self._store.get(MK_SHARE_KEY)
        except ThreshSigError:
            raise
        except Exception as e:
            raise PersistenceFailure(f"Cannot read master key share: {e}", e) from e

        if stored is None:
            return None

        if is_sealed(stored):
            if self._password is None:
                raise PersistenceFailure("Stored master key share is sealed; a password is required")
            stored = unseal(stored, self._password)

        try:
            return MasterKeyShare.from_dict(stored)
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceFailure(f"Corrupt master key share: {e}", e) from e

    async def _generate(self) -> MasterKeyShare:
        logger.info("No master key share found, running two-party key generation")
        share = await protocol_call(
            self._party2.generate_master_key(),
            "Master key generation",
            self._timeout_secs,
            ErrorCode.KEYGEN_FAILED,
        )
        if not isinstance(share, MasterKeyShare):
            raise ProtocolFailure("Key generation returned no share", code=ErrorCode.KEYGEN_FAILED)

        value = share.to_dict()
        if self._password is not None:
            value = seal(value, self._password)

        try:
            self._store.set(MK_SHARE_KEY, value)
        except ThreshSigError:
            raise
        except Exception as e:
            raise PersistenceFailure(f"Cannot persist master key share: {e}", e) from e

        logger.info("Generated and persisted new master key share")
        return share
