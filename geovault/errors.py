"""
Error taxonomy for the GeoVault core.

Validation problems are resolved before any state changes; authentication and
decryption failures always reach the caller.
"""

from enum import IntEnum


class GeoVaultError(Exception):
    """Base class for every error raised by the core."""


class ValidationError(GeoVaultError, ValueError):
    """User-correctable input was rejected before mutating state."""


class AuthenticationError(GeoVaultError):
    """The master passphrase could not be verified.

    The message is deliberately generic; it never says which check failed.
    """

    def __init__(self, message: str = "Invalid master passphrase."):
        super().__init__(message)


class DecryptionError(GeoVaultError):
    """Wrong key, or the ciphertext was truncated or tampered with."""


class StorageError(GeoVaultError):
    """A persisted record could not be read, parsed or written."""


class VaultLockedError(GeoVaultError, RuntimeError):
    """A vault operation was attempted while the session is not unlocked."""

    def __init__(self, message: str = "Vault is locked"):
        super().__init__(message)


class LocationErrorKind(IntEnum):
    """Failure kinds reported by a location provider."""
    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3
    UNSUPPORTED = 4


_LOCATION_MESSAGES = {
    LocationErrorKind.PERMISSION_DENIED: "Location access denied by user.",
    LocationErrorKind.POSITION_UNAVAILABLE: "Location information is unavailable.",
    LocationErrorKind.TIMEOUT: "Location request timed out.",
    LocationErrorKind.UNSUPPORTED: "Geolocation is not supported on this platform.",
}


class LocationError(GeoVaultError):
    """A location request failed. Never fatal for the session."""

    def __init__(self, kind: LocationErrorKind, message: str = ""):
        self.kind = LocationErrorKind(kind)
        super().__init__(message or _LOCATION_MESSAGES[self.kind])

    @property
    def stops_sampling(self) -> bool:
        """True when retrying on the next tick cannot succeed."""
        return self.kind in (LocationErrorKind.PERMISSION_DENIED, LocationErrorKind.UNSUPPORTED)
