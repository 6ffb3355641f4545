"""
Persistent key-value storage backends.

Configuration and credentials are kept under independent keys so that
credentials are never swept up by an export of application data:
- JSON files for non-secret configuration
- Fernet-encrypted files for OAuth tokens
- In-memory storage for tests and ephemeral runs

Backends raise OSError on I/O failure; callers decide whether to log or
propagate.
"""

import base64
import hashlib
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract string key-value store that survives restarts."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read a value.

        Args:
            key: Storage key

        Returns:
            Stored value or None if absent
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Write a value, replacing any previous one.

        Args:
            key: Storage key
            value: Value to store
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a value. Removing an absent key is not an error."""
        pass


class MemoryKeyValueStore(KeyValueStore):
    """Dictionary-backed store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileKeyValueStore(KeyValueStore):
    """
    One file per key inside a directory.

    Writes go through a temporary file and an atomic rename so a crash never
    leaves a half-written record behind.
    """

    suffix = ".json"

    def __init__(self, storage_path: Path):
        """
        Initialize file store.

        Args:
            storage_path: Directory holding one file per key
        """
        self.storage_path = storage_path

    def _get_path(self, key: str) -> Path:
        safe_key = "".join(c for c in key if c.isalnum() or c in "_-")
        return self.storage_path / f"{safe_key}{self.suffix}"

    def _read(self, path: Path) -> bytes:
        return path.read_bytes()

    def _write(self, path: Path, data: bytes) -> None:
        self.storage_path.mkdir(parents=True, exist_ok=True)
        temp_path = path.with_suffix(path.suffix + ".tmp")
        temp_path.write_bytes(data)
        os.replace(temp_path, path)

    def get(self, key: str) -> Optional[str]:
        path = self._get_path(key)
        if not path.exists():
            return None
        return self._read(path).decode("utf-8")

    def set(self, key: str, value: str) -> None:
        self._write(self._get_path(key), value.encode("utf-8"))

    def delete(self, key: str) -> None:
        path = self._get_path(key)
        if path.exists():
            path.unlink()
            logger.debug(f"Deleted stored key {key}")


def build_fernet(key: Optional[str]) -> Fernet:
    """
    Create a Fernet cipher from a configured key.

    A value that is not a 44-char Fernet key is treated as a passphrase and
    stretched with SHA-256. Without a key an ephemeral one is generated.
    """
    if not key:
        logger.warning(
            "CLOUD_SYNC_TOKEN_ENCRYPTION_KEY not set. "
            "Using ephemeral key - stored tokens will be unreadable after restart."
        )
        return Fernet(Fernet.generate_key())

    if len(key) != 44:
        key = base64.urlsafe_b64encode(hashlib.sha256(key.encode()).digest()).decode()

    return Fernet(key.encode())


class EncryptedFileKeyValueStore(FileKeyValueStore):
    """
    File store whose values are encrypted at rest with Fernet.

    A file that cannot be decrypted (e.g. written under a different key) reads
    as garbage text rather than raising, so the caller's structural
    validation discards and deletes it.
    """

    suffix = ".token"

    def __init__(self, storage_path: Path, cipher: Fernet):
        """
        Initialize encrypted store.

        Args:
            storage_path: Directory for encrypted files
            cipher: Fernet cipher used for every value
        """
        super().__init__(storage_path)
        self._cipher = cipher

    def _read(self, path: Path) -> bytes:
        encrypted = path.read_bytes()
        try:
            return self._cipher.decrypt(encrypted)
        except InvalidToken:
            logger.error(f"Failed to decrypt {path.name}, treating as corrupt")
            return b""

    def _write(self, path: Path, data: bytes) -> None:
        super()._write(path, self._cipher.encrypt(data))
        path.chmod(0o600)
