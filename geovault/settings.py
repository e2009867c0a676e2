"""
Settings management: first-run setup, trusted zone editing and master
credential rotation.
"""

import logging
import threading
import uuid
from typing import Iterable, List, Optional

from . import config
from .crypto import CredentialManager, VaultCipher
from .errors import ValidationError
from .geofence import GeofenceEngine
from .models import Coordinate, Settings, TrustedZone, utc_now_iso
from .storage import SettingsStore, VaultStore
from .utils import clear_bytes
from .validation import require, validate_new_passphrase, validate_zone

logger = logging.getLogger(__name__)


class SettingsManager:
    """Owns the settings record and enforces its invariants.

    At least one trusted zone exists at all times after setup, and every
    change is validated before anything is written.
    """

    def __init__(
        self,
        store: SettingsStore,
        vault_store: VaultStore,
        credentials: CredentialManager,
        cipher: VaultCipher,
        engine: Optional[GeofenceEngine] = None,
    ):
        self.store = store
        self.vault_store = vault_store
        self.credentials = credentials
        self.cipher = cipher
        self.engine = engine or GeofenceEngine()
        self._lock = threading.Lock()
        self._settings: Settings = store.load() or Settings()

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def is_setup(self) -> bool:
        return self._settings.is_setup

    @property
    def zones(self) -> List[TrustedZone]:
        return list(self._settings.trusted_locations)

    def reload(self) -> Settings:
        """Re-read the record; raises StorageError on unexpected content."""
        with self._lock:
            self._settings = self.store.load() or Settings()
            return self._settings

    def build_zone(
        self,
        name: str,
        latitude,
        longitude,
        radius=config.ZONE_RADIUS_DEFAULT_METERS,
        existing: Iterable[TrustedZone] = (),
    ) -> TrustedZone:
        """Validate form input and create a new zone object (not persisted)."""
        require(validate_zone(name, latitude, longitude, radius, existing, engine=self.engine))
        return TrustedZone(
            id=str(uuid.uuid4()),
            name=name.strip(),
            center=Coordinate(float(latitude), float(longitude)),
            radius_meters=float(radius),
            created_at=utc_now_iso(),
        )

    def complete_setup(self, passphrase: str, zones: List[TrustedZone], confirmation: Optional[str] = None) -> Settings:
        """
        Create the master credential, an empty vault and the settings record.

        Args:
            passphrase: The new master passphrase
            zones: At least one trusted zone
            confirmation: Optional repeated passphrase from the setup form

        Raises:
            ValidationError: If the passphrase or zones are rejected
            StorageError: If a record cannot be written
        """
        with self._lock:
            if self._settings.is_setup:
                raise ValidationError("The vault is already set up.")
            require(validate_new_passphrase(passphrase, confirmation))
            if not zones:
                raise ValidationError("Please add at least one trusted location")
            accepted: List[TrustedZone] = []
            for zone in zones:
                require(validate_zone(
                    zone.name, zone.center.latitude, zone.center.longitude,
                    zone.radius_meters, accepted, engine=self.engine,
                ))
                accepted.append(zone)

            salt = self.credentials.generate_salt()
            digest = self.credentials.derive_hash(passphrase, salt)
            vault_salt = self.cipher.generate_salt()
            key = self.cipher.derive_key(passphrase, vault_salt)
            try:
                self.vault_store.save_entries([], key, vault_salt)
            finally:
                clear_bytes(key)

            settings = Settings(
                master_password_hash=digest,
                encryption_salt=salt,
                trusted_locations=accepted,
                is_setup=True,
            )
            self.store.save(settings)
            self._settings = settings
        logger.info(f"Setup complete with {len(accepted)} trusted zone(s)")
        return settings

    def verify_passphrase(self, passphrase: str) -> bool:
        if not self._settings.is_setup:
            return False
        credential = self._settings.credential
        return self.credentials.verify(passphrase, credential.salt, credential.passphrase_hash)

    def add_zone(self, name: str, latitude, longitude, radius=config.ZONE_RADIUS_DEFAULT_METERS) -> TrustedZone:
        with self._lock:
            self._require_setup()
            zone = self.build_zone(name, latitude, longitude, radius, self._settings.trusted_locations)
            self._write_zones(self._settings.trusted_locations + [zone])
        logger.info(f"Added trusted zone {zone.id}")
        return zone

    def update_zone(self, zone_id: str, name: str, latitude, longitude, radius) -> TrustedZone:
        with self._lock:
            self._require_setup()
            current = self._settings.find_zone(zone_id)
            if current is None:
                raise ValidationError(f"Unknown trusted location {zone_id}")
            require(validate_zone(
                name, latitude, longitude, radius, self._settings.trusted_locations,
                engine=self.engine, ignore_id=zone_id,
            ))
            updated = TrustedZone(
                id=current.id,
                name=name.strip(),
                center=Coordinate(float(latitude), float(longitude)),
                radius_meters=float(radius),
                created_at=current.created_at,
            )
            self._write_zones([updated if z.id == zone_id else z for z in self._settings.trusted_locations])
        logger.info(f"Updated trusted zone {zone_id}")
        return updated

    def delete_zone(self, zone_id: str) -> None:
        """Remove a zone; the last remaining zone can never be deleted."""
        with self._lock:
            self._require_setup()
            if self._settings.find_zone(zone_id) is None:
                raise ValidationError(f"Unknown trusted location {zone_id}")
            if len(self._settings.trusted_locations) <= 1:
                logger.warning("Rejected deletion of the last trusted zone")
                raise ValidationError(
                    "Cannot delete the last trusted location. "
                    "You need at least one location to access your passwords."
                )
            self._write_zones([z for z in self._settings.trusted_locations if z.id != zone_id])
        logger.info(f"Deleted trusted zone {zone_id}")

    def rotate_credential(self, new_passphrase: str, confirmation: Optional[str] = None) -> Settings:
        """
        Replace salt and digest for a new passphrase. The caller re-encrypts the vault.

        Raises:
            ValidationError: If the new passphrase is rejected
        """
        with self._lock:
            self._require_setup()
            require(validate_new_passphrase(new_passphrase, confirmation))
            salt = self.credentials.generate_salt()
            settings = Settings(
                master_password_hash=self.credentials.derive_hash(new_passphrase, salt),
                encryption_salt=salt,
                trusted_locations=list(self._settings.trusted_locations),
                is_setup=True,
            )
            self.store.save(settings)
            self._settings = settings
        logger.info("Master credential rotated")
        return settings

    def _require_setup(self) -> None:
        if not self._settings.is_setup:
            raise ValidationError("The vault has not been set up yet.")

    def _write_zones(self, zones: List[TrustedZone]) -> None:
        settings = Settings(
            master_password_hash=self._settings.master_password_hash,
            encryption_salt=self._settings.encryption_salt,
            trusted_locations=zones,
            is_setup=self._settings.is_setup,
        )
        self.store.save(settings)
        self._settings = settings
