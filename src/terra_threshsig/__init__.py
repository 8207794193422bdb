"""
Terra threshold-signature client

Party 2 side of a two-party (MPC) wallet: no single party holds a complete
private key. Transfers and swaps are planned against live ledger state,
signed through the two-party protocol and broadcast.

Example:
    >>> from terra_threshsig import ThreshSigWallet, WalletConfig
    >>>
    >>> wallet = ThreshSigWallet.from_config(WalletConfig.from_env(), party2)
    >>> await wallet.init()
    >>> sender = wallet.get_address(0)
    >>>
    >>> # Send the whole uusd balance, net of gas fee and transfer tax
    >>> await wallet.transfer(sender, recipient, None, "uusd", send_all=True, dry_run=True)
"""

from .wallet import ThreshSigWallet
from .config import WalletConfig
from .coins import Coin, Coins
from .tx import MsgSend, MsgSwap, StdFee, StdSignMsg, StdSignature, StdTx
from .keys import AddressBook, AddressRecord, DerivedKey, derive_child, public_key_to_address
from .keygen import MasterKeyManager
from .mpc import HD_COIN_INDEX, ChildShare, MasterKeyShare, Party2
from .planner import SendOptions, TransferPlanner, compute_tax
from .account import AccountStateReader
from .signing import SigningConfig, SigningOrchestrator, SigningResult
from .broadcast import Broadcaster
from .chains import LedgerClient, TerraChainConfig, TerraLcdClient, TerraNetworks
from .storage import FileSystemStore, KeyValueStore, MemoryStore
from .types import (
    AccountInfo,
    BroadcastFailure,
    BroadcastMode,
    BroadcastResult,
    DryRunResult,
    ErrorCode,
    InsufficientBalance,
    LedgerQueryFailure,
    LedgerTimeout,
    NotInitialized,
    PersistenceFailure,
    ProtocolFailure,
    ProtocolTimeout,
    Signature,
    TaxParameters,
    ThreshSigError,
    UnknownAddress,
    WalletState,
)

__version__ = "0.1.0"
__all__ = [
    # Wallet
    "ThreshSigWallet",
    "WalletConfig",
    "WalletState",
    # Coins & transactions
    "Coin",
    "Coins",
    "MsgSend",
    "MsgSwap",
    "StdFee",
    "StdSignMsg",
    "StdSignature",
    "StdTx",
    # Keys
    "AddressBook",
    "AddressRecord",
    "DerivedKey",
    "derive_child",
    "public_key_to_address",
    "MasterKeyManager",
    "HD_COIN_INDEX",
    "ChildShare",
    "MasterKeyShare",
    "Party2",
    # Planning, signing, broadcast
    "SendOptions",
    "TransferPlanner",
    "compute_tax",
    "AccountStateReader",
    "SigningConfig",
    "SigningOrchestrator",
    "SigningResult",
    "Broadcaster",
    "BroadcastMode",
    "BroadcastResult",
    "DryRunResult",
    # Collaborators
    "LedgerClient",
    "TerraChainConfig",
    "TerraLcdClient",
    "TerraNetworks",
    "KeyValueStore",
    "MemoryStore",
    "FileSystemStore",
    # Types & errors
    "AccountInfo",
    "Signature",
    "TaxParameters",
    "ErrorCode",
    "ThreshSigError",
    "InsufficientBalance",
    "ProtocolFailure",
    "ProtocolTimeout",
    "LedgerQueryFailure",
    "LedgerTimeout",
    "PersistenceFailure",
    "BroadcastFailure",
    "NotInitialized",
    "UnknownAddress",
]
