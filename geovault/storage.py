"""
Persistence for the GeoVault core.

LEGAL NOTICE:
This module handles secure storage of secrets. All entries are encrypted
locally and never transmitted. Use only on devices you own or administer.

Two records live in a key-value store:
- settings record: JSON, holds the passphrase digest and the trusted zones
- vault record: binary header followed by the VaultCipher blob
"""

import json
import logging
import os
import shutil
import stat
import struct
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from . import config
from .crypto import VaultCipher
from .errors import StorageError
from .models import Settings, VaultEntry

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Raw persistence consumed by the core. Last write wins."""

    @abstractmethod
    def get(self, key: str) -> Optional[bytes]:
        """Return the stored bytes, or None when the key is absent."""

    @abstractmethod
    def set(self, key: str, data: bytes) -> None:
        """Store bytes under key. Raises StorageError on failure."""


class MemoryKeyValueStore(KeyValueStore):
    """In-process store, for tests and ephemeral sessions."""

    def __init__(self):
        self._records: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._records.get(key)

    def set(self, key: str, data: bytes) -> None:
        with self._lock:
            self._records[key] = bytes(data)


class FileKeyValueStore(KeyValueStore):
    """One file per key inside a private directory."""

    def __init__(self, directory: Optional[str] = None):
        """
        Initialize the file store.
        Args:
            directory: Directory holding the record files; defaults to ~/.geovault
        """
        if directory is None:
            directory = os.path.join(os.path.expanduser("~"), config.CONFIG_DIR_NAME)
        self.directory = directory
        self._lock = threading.Lock()

    def _path(self, key: str) -> str:
        if not key or os.sep in key or (os.altsep and os.altsep in key) or key.startswith('.'):
            raise StorageError(f"Invalid record key: {key!r}")
        return os.path.join(self.directory, key + config.RECORD_FILE_SUFFIX)

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        with self._lock:
            if not os.path.exists(path):
                return None
            try:
                with open(path, 'rb') as f:
                    return f.read()
            except OSError as e:
                logger.error(f"Error reading record {key} from {path}: {e}")
                raise StorageError(f"Failed to read record {key}: {e}") from e

    def set(self, key: str, data: bytes) -> None:
        path = self._path(key)
        tmp_path = path + '.tmp'
        with self._lock:
            try:
                os.makedirs(self.directory, exist_ok=True)
                with open(tmp_path, 'wb') as f:
                    f.write(data)
                # Atomic replace using shutil.move
                shutil.move(tmp_path, path)
                self._set_file_permissions(path)
            except OSError as e:
                logger.error(f"Error saving record {key} to {path}: {e}", exc_info=True)
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise StorageError(f"Failed to write record {key}: {e}") from e
        logger.debug(f"Wrote record {key} ({len(data)} bytes)")

    def _set_file_permissions(self, filepath: str) -> None:
        """Set file to be readable/writable by owner only."""
        os.chmod(filepath, stat.S_IRUSR | stat.S_IWUSR)  # 600


class SettingsStore:
    """Reads and writes the settings record."""

    def __init__(self, kv: KeyValueStore, key: str = config.SETTINGS_RECORD_KEY):
        self.kv = kv
        self.key = key

    def load(self) -> Optional[Settings]:
        """
        Load the settings record.
        Returns:
            Settings, or None if nothing has been stored yet
        Raises:
            StorageError: If the record exists but cannot be parsed
        """
        raw = self.kv.get(self.key)
        if raw is None:
            return None
        try:
            return Settings.from_dict(json.loads(raw.decode('utf-8')))
        except (UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Settings record {self.key} is unreadable: {e}")
            raise StorageError(f"Settings record is corrupted or was modified externally: {e}") from e

    def save(self, settings: Settings) -> None:
        payload = json.dumps(settings.to_dict(), indent=2).encode('utf-8')
        self.kv.set(self.key, payload)
        logger.info(f"Saved settings ({len(settings.trusted_locations)} trusted zone(s))")


class VaultStore:
    """Reads and writes the encrypted vault record.

    Layout: magic(4) | version(uint32 LE) | salt length(uint32 LE) | salt | blob
    where blob is nonce || ciphertext || tag from VaultCipher.
    """

    HEADER = struct.Struct('<4sII')

    def __init__(self, kv: KeyValueStore, cipher: VaultCipher, key: str = config.VAULT_RECORD_KEY):
        self.kv = kv
        self.cipher = cipher
        self.key = key

    def exists(self) -> bool:
        return self.kv.get(self.key) is not None

    def read_record(self) -> Tuple[bytes, bytes]:
        """
        Read and split the vault record.
        Returns:
            Tuple of (salt, blob)
        Raises:
            StorageError: If the record is missing or its header is malformed
        """
        raw = self.kv.get(self.key)
        if raw is None:
            raise StorageError("Vault record does not exist")
        if len(raw) < self.HEADER.size:
            raise StorageError("Vault record is truncated")
        magic, version, salt_size = self.HEADER.unpack_from(raw)
        if magic != config.VAULT_MAGIC_BYTES:
            logger.warning(f"Vault record magic bytes mismatch. Expected {config.VAULT_MAGIC_BYTES}, got {magic}")
            raise StorageError("Vault record has an unexpected format")
        if version != config.VAULT_FORMAT_VERSION:
            logger.warning(f"Vault record version mismatch. Expected {config.VAULT_FORMAT_VERSION}, got {version}")
            raise StorageError(f"Unsupported vault record version {version}")
        start = self.HEADER.size
        if len(raw) < start + salt_size:
            raise StorageError("Vault record is truncated")
        salt = raw[start:start + salt_size]
        return salt, raw[start + salt_size:]

    def read_salt(self) -> bytes:
        salt, _ = self.read_record()
        return salt

    def load_entries(self, key: bytes) -> List[VaultEntry]:
        """
        Decrypt the entry collection.
        Raises:
            DecryptionError: If the key is wrong or the blob was tampered with
            StorageError: If the record is missing, malformed, or decrypts to unexpected content
        """
        _, blob = self.read_record()
        plaintext = self.cipher.decrypt(blob, key)
        try:
            data = json.loads(plaintext.decode('utf-8'))
            return [VaultEntry.from_dict(e) for e in data['entries']]
        except (UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
            raise StorageError(f"Vault contents are not a valid entry collection: {e}") from e

    def save_entries(self, entries: List[VaultEntry], key: bytes, salt: bytes) -> None:
        """Encrypt and write the whole entry collection."""
        data = {
            'entries': [e.to_dict() for e in entries],
            'metadata': {'version': config.VAULT_FORMAT_VERSION},
        }
        plaintext = json.dumps(data).encode('utf-8')
        blob = self.cipher.encrypt(plaintext, key)
        header = self.HEADER.pack(config.VAULT_MAGIC_BYTES, config.VAULT_FORMAT_VERSION, len(salt))
        self.kv.set(self.key, header + salt + blob)
        logger.info(f"Saved vault ({len(entries)} entr{'y' if len(entries) == 1 else 'ies'})")
