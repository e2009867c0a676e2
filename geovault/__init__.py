"""
GeoVault: a local secrets vault gated by a master passphrase and by
physical presence inside a trusted zone.

LEGAL NOTICE:
This tool is for personal use only. It must operate only on the device where
it is installed and only with the explicit consent of the device owner. Loss
of the master passphrase is unrecoverable.
"""

from .config import APP_VERSION as __version__
from .controller import AccessController
from .crypto import CredentialManager, VaultCipher
from .errors import (
    AuthenticationError,
    DecryptionError,
    GeoVaultError,
    LocationError,
    LocationErrorKind,
    StorageError,
    ValidationError,
    VaultLockedError,
)
from .geofence import GeofenceEngine
from .location import LocationProvider, LocationSampler
from .models import AccessState, Coordinate, GeoSample, TrustedZone, VaultEntry

__all__ = [
    "AccessController",
    "AccessState",
    "AuthenticationError",
    "Coordinate",
    "CredentialManager",
    "DecryptionError",
    "GeoSample",
    "GeofenceEngine",
    "GeoVaultError",
    "LocationError",
    "LocationErrorKind",
    "LocationProvider",
    "LocationSampler",
    "StorageError",
    "TrustedZone",
    "ValidationError",
    "VaultCipher",
    "VaultEntry",
    "VaultLockedError",
]
