"""
Cryptographic operations for the GeoVault core.

LEGAL NOTICE:
This module handles hashing of the master passphrase and encryption of the
stored secrets. Loss of the master passphrase is unrecoverable.

Two independent derivations are made from the same passphrase:
- CredentialManager: PBKDF2-HMAC-SHA512 digest, stored in the settings record
- VaultCipher: Argon2id key with its own salt, never stored
"""

import os

from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import constant_time, hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from . import config
from .errors import DecryptionError


class CredentialManager:
    """Hashes and verifies the master passphrase."""

    def __init__(self, iterations: int = config.PBKDF2_ITERATIONS):
        if iterations < config.PBKDF2_MIN_ITERATIONS:
            raise ValueError(
                f"PBKDF2 iterations must be at least {config.PBKDF2_MIN_ITERATIONS}, got {iterations}"
            )
        self.iterations = iterations
        self.backend = default_backend()

    def generate_salt(self) -> bytes:
        """Generate a cryptographically secure random salt."""
        return os.urandom(config.SALT_SIZE)

    def derive_hash(self, passphrase: str, salt: bytes) -> bytes:
        """
        Derive the passphrase digest with PBKDF2-HMAC-SHA512.

        Args:
            passphrase: The master passphrase
            salt: Per-installation salt from generate_salt()

        Returns:
            64-byte digest
        """
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA512(),
            length=config.HASH_SIZE,
            salt=salt,
            iterations=self.iterations,
            backend=self.backend
        )
        return kdf.derive(passphrase.encode('utf-8'))

    def verify(self, passphrase: str, salt: bytes, expected: bytes) -> bool:
        """
        Check a passphrase against a stored digest in constant time.

        Any failure, including malformed inputs, is reported as False.
        """
        try:
            candidate = self.derive_hash(passphrase, salt)
        except (AttributeError, TypeError, ValueError):
            return False
        return constant_time.bytes_eq(candidate, bytes(expected))


class VaultCipher:
    """Derives the vault key and seals the secret collection with AES-256-GCM."""

    def __init__(
        self,
        time_cost: int = config.ARGON2_TIME_COST,
        memory_cost: int = config.ARGON2_MEMORY_COST,
        parallelism: int = config.ARGON2_PARALLELISM,
    ):
        self.time_cost = time_cost
        self.memory_cost = memory_cost
        self.parallelism = parallelism
        self.backend = default_backend()

    def generate_salt(self) -> bytes:
        """Generate a salt for the vault key, independent of the passphrase salt."""
        return os.urandom(config.SALT_SIZE)

    def derive_key(self, passphrase: str, salt: bytes) -> bytearray:
        """
        Derive the vault encryption key using Argon2id.

        Args:
            passphrase: The master passphrase
            salt: Vault key salt, stored in the vault record header

        Returns:
            32-byte key as a mutable buffer so the session can zero it
        """
        key = hash_secret_raw(
            secret=passphrase.encode('utf-8'),
            salt=salt,
            time_cost=self.time_cost,
            memory_cost=self.memory_cost,
            parallelism=self.parallelism,
            hash_len=config.KEY_SIZE,
            type=Type.ID
        )
        return bytearray(key)

    def encrypt(self, plaintext: bytes, key: bytes) -> bytes:
        """
        Encrypt data using AES-256-GCM.

        Args:
            plaintext: Data to encrypt
            key: 32-byte encryption key

        Returns:
            nonce || ciphertext || tag
        """
        nonce = os.urandom(config.NONCE_SIZE)
        cipher = Cipher(
            algorithms.AES(bytes(key)),
            modes.GCM(nonce),
            backend=self.backend
        )
        encryptor = cipher.encryptor()
        ciphertext = encryptor.update(plaintext) + encryptor.finalize()
        return nonce + ciphertext + encryptor.tag

    def decrypt(self, blob: bytes, key: bytes) -> bytes:
        """
        Decrypt a blob produced by encrypt().

        Raises:
            DecryptionError: If the key is wrong or the blob is truncated or tampered
        """
        minimum = config.NONCE_SIZE + config.TAG_SIZE
        if len(blob) < minimum:
            raise DecryptionError(f"Ciphertext too short: {len(blob)} bytes (minimum {minimum})")
        nonce = blob[:config.NONCE_SIZE]
        tag = blob[-config.TAG_SIZE:]
        ciphertext = blob[config.NONCE_SIZE:-config.TAG_SIZE]
        try:
            cipher = Cipher(
                algorithms.AES(bytes(key)),
                modes.GCM(nonce, tag),
                backend=self.backend
            )
            decryptor = cipher.decryptor()
            return decryptor.update(ciphertext) + decryptor.finalize()
        except InvalidTag as e:
            raise DecryptionError("Vault integrity check failed") from e
        except ValueError as e:
            raise DecryptionError(f"Invalid vault key: {e}") from e
