"""
Data model shared by the GeoVault components.

LEGAL NOTICE:
Secrets held in VaultEntry objects are plaintext in process memory while the
vault is unlocked. They are only ever written to disk inside the encrypted
vault record.
"""

import datetime
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from .utils import clear_bytes


def utc_now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


@dataclass(frozen=True)
class Coordinate:
    """A point on the globe in decimal degrees."""
    latitude: float
    longitude: float


@dataclass
class TrustedZone:
    """A circular region inside which the vault may be opened."""
    id: str
    name: str
    center: Coordinate
    radius_meters: float
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted settings representation."""
        return {
            'id': self.id,
            'name': self.name,
            'center': {'latitude': self.center.latitude, 'longitude': self.center.longitude},
            'radiusMeters': self.radius_meters,
            'createdAt': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TrustedZone':
        """Create from the persisted settings representation."""
        center = data['center']
        return cls(
            id=str(data['id']),
            name=str(data['name']),
            center=Coordinate(float(center['latitude']), float(center['longitude'])),
            radius_meters=float(data['radiusMeters']),
            created_at=str(data.get('createdAt', '')),
        )


@dataclass(frozen=True)
class GeoSample:
    """One location fix. `captured_at` is in epoch seconds."""
    latitude: float
    longitude: float
    captured_at: float

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


@dataclass
class VaultEntry:
    """Represents a single stored secret."""
    id: str
    title: str
    username: str
    secret: str
    website: str = ""
    notes: str = ""
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'VaultEntry':
        """Create from dictionary."""
        return cls(**data)


@dataclass
class MasterCredential:
    """Salted passphrase digest. The passphrase itself is never stored."""
    salt: bytes
    passphrase_hash: bytes


@dataclass
class Settings:
    """The persisted settings record."""
    master_password_hash: bytes = b""
    encryption_salt: bytes = b""
    trusted_locations: List[TrustedZone] = field(default_factory=list)
    is_setup: bool = False

    @property
    def credential(self) -> MasterCredential:
        return MasterCredential(salt=self.encryption_salt, passphrase_hash=self.master_password_hash)

    def find_zone(self, zone_id: str) -> Optional[TrustedZone]:
        for zone in self.trusted_locations:
            if zone.id == zone_id:
                return zone
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'masterPasswordHash': self.master_password_hash.hex(),
            'encryptionSalt': self.encryption_salt.hex(),
            'trustedLocations': [z.to_dict() for z in self.trusted_locations],
            'isSetup': self.is_setup,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Settings':
        return cls(
            master_password_hash=bytes.fromhex(data['masterPasswordHash']),
            encryption_salt=bytes.fromhex(data['encryptionSalt']),
            trusted_locations=[TrustedZone.from_dict(z) for z in data['trustedLocations']],
            is_setup=bool(data['isSetup']),
        )


class AccessState(Enum):
    """States of the access-control state machine."""
    UNINITIALIZED = "uninitialized"
    LOCKED_NO_ZONE_CHECK = "locked_no_zone_check"
    LOCKED = "locked"
    OUTSIDE_ZONE = "outside_zone"
    UNLOCKED = "unlocked"


@dataclass
class AccessSession:
    """One login-to-logout cycle.

    `cached_key` holds the derived vault key only while the passphrase has
    been verified; it is zeroed in place when discarded.
    """
    state: AccessState = AccessState.UNINITIALIZED
    cached_key: Optional[bytearray] = None
    key_salt: Optional[bytes] = None
    latest_sample: Optional[GeoSample] = None
    failed_attempts: int = 0

    @property
    def has_key(self) -> bool:
        return self.cached_key is not None

    def discard_key(self) -> None:
        """Zero and drop the cached key material."""
        clear_bytes(self.cached_key)
        self.cached_key = None
        self.key_salt = None
