"""Local key-value persistence for the master share and address records."""

import base64
import copy
import hashlib
import json
import logging
import os
import secrets
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from ..types import PersistenceFailure

logger = logging.getLogger("terra_threshsig.storage")

MK_SHARE_KEY = "mk_share"
ADDRESSES_KEY = "addresses"

DEFAULTS: dict[str, Any] = {MK_SHARE_KEY: None, ADDRESSES_KEY: []}


class KeyValueStore(Protocol):
    """Protocol for persistence backends."""

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value, or ``default`` when absent."""
        ...

    def set(self, key: str, value: Any) -> None:
        """Set a value durably."""
        ...

    def update(self, key: str, fn: Callable[[Any], Any], default: Any = None) -> Any:
        """Replace a value with ``fn(current)`` as one atomic step."""
        ...


class MemoryStore:
    """In-memory store for testing."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(DEFAULTS)
        self._data.update(copy.deepcopy(initial or {}))
        self._lock = threading.Lock()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            value = self._data.get(key)
            return default if value is None else copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def update(self, key: str, fn: Callable[[Any], Any], default: Any = None) -> Any:
        with self._lock:
            current = self._data.get(key)
            value = fn(copy.deepcopy(default if current is None else current))
            self._data[key] = copy.deepcopy(value)
            return value

    def clear(self) -> None:
        with self._lock:
            self._data = copy.deepcopy(DEFAULTS)


class FileSystemStore:
    """
    JSON document store on disk.

    Every ``set`` rewrites the document atomically (temp file, fsync,
    rename) before returning, under a lock shared by all writers of this
    instance.

    Example:
        >>> store = FileSystemStore("client_db")
        >>> store.set("addresses", [{"acc_address": "terra1...", "index": 0}])
    """

    def __init__(self, base_path: str | Path, filename: str = "db.json") -> None:
        self._base_path = Path(base_path)
        self._path = self._base_path / filename
        self._lock = threading.Lock()
        try:
            self._base_path.mkdir(parents=True, exist_ok=True)
            if not self._path.exists():
                self._write(copy.deepcopy(DEFAULTS))
                logger.info(f"Created client db at {self._path}")
        except OSError as e:
            raise PersistenceFailure(f"Cannot initialize store at {self._path}: {e}", e) from e

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            value = self._read().get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._save(data)

    def update(self, key: str, fn: Callable[[Any], Any], default: Any = None) -> Any:
        """Read, transform and write ``key`` under the store lock."""
        with self._lock:
            data = self._read()
            current = data.get(key)
            value = fn(copy.deepcopy(default if current is None else current))
            if value != current:
                data[key] = value
                self._save(data)
            return value

    def _save(self, data: dict[str, Any]) -> None:
        try:
            self._write(data)
        except OSError as e:
            raise PersistenceFailure(f"Cannot write {self._path}: {e}", e) from e

    def _read(self) -> dict[str, Any]:
        try:
            data = json.loads(self._path.read_text())
        except OSError as e:
            raise PersistenceFailure(f"Cannot read {self._path}: {e}", e) from e
        except json.JSONDecodeError as e:
            raise PersistenceFailure(f"Corrupt store {self._path}: {e}", e) from e
        if not isinstance(data, dict):
            raise PersistenceFailure(f"Corrupt store {self._path}: not a JSON object")
        return data

    def _write(self, data: dict[str, Any]) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=self._base_path, prefix=".db-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        # Set restrictive permissions
        try:
            self._path.chmod(0o600)
        except (OSError, AttributeError):
            pass  # Windows doesn't support chmod


def seal(value: dict[str, Any], password: str) -> dict[str, str]:
    """Encrypt a JSON value with a password."""
    salt = secrets.token_hex(32)
    return {"encrypted": _encrypt(json.dumps(value), password, salt), "salt": salt}


def unseal(sealed: dict[str, str], password: str) -> dict[str, Any]:
    """Decrypt a value produced by :func:`seal`."""
    try:
        return json.loads(_decrypt(sealed["encrypted"], password, sealed["salt"]))
    except (InvalidTag, KeyError, ValueError) as e:
        raise PersistenceFailure("Cannot unseal stored value (wrong password or corrupt data)", e) from e


def is_sealed(value: Any) -> bool:
    return isinstance(value, dict) and set(value) == {"encrypted", "salt"}


def _encrypt(data: str, password: str, salt: str) -> str:
    """Encrypt data with password."""
    salt_bytes = bytes.fromhex(salt)
    nonce = secrets.token_bytes(12)

    # Derive key
    key = hashlib.pbkdf2_hmac("sha256", password.encode(), salt_bytes, 100000, dklen=32)

    cipher = ChaCha20Poly1305(key)
    ciphertext = cipher.encrypt(nonce, data.encode(), None)

    return base64.b64encode(nonce + ciphertext).decode()


def _decrypt(encrypted: str, password: str, salt: str) -> str:
    """Decrypt data with password."""
    salt_bytes = bytes.fromhex(salt)
    data = base64.b64decode(encrypted)
    nonce = data[:12]
    ciphertext = data[12:]

    key = hashlib.pbkdf2_hmac("sha256", password.encode(), salt_bytes, 100000, dklen=32)

    cipher = ChaCha20Poly1305(key)
    return cipher.decrypt(nonce, ciphertext, None).decode()


__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "FileSystemStore",
    "MK_SHARE_KEY",
    "ADDRESSES_KEY",
    "seal",
    "unseal",
    "is_sealed",
]
