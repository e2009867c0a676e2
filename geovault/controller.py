"""
Access control for the GeoVault core.

LEGAL NOTICE:
The vault may only be opened by someone who knows the master passphrase and
is physically inside a trusted zone. Neither factor alone grants access.

The controller owns the AccessSession and is the only component allowed to
hand a vault key to VaultCipher. States:

    UNINITIALIZED         no settings record yet
    LOCKED_NO_ZONE_CHECK  set up, location not evaluated yet
    LOCKED                no verified passphrase
    OUTSIDE_ZONE          passphrase verified, location outside or unknown
    UNLOCKED              passphrase verified, inside a trusted zone
"""

import logging
import time
import uuid
from typing import Callable, List, Optional, Tuple

from PyQt5.QtCore import QObject, QTimer, pyqtSignal

from . import config
from .crypto import CredentialManager, VaultCipher
from .errors import AuthenticationError, GeoVaultError, LocationError, VaultLockedError
from .geofence import GeofenceEngine
from .location import LocationSampler
from .models import AccessSession, AccessState, GeoSample, TrustedZone, VaultEntry, utc_now_iso
from .settings import SettingsManager
from .storage import VaultStore
from .utils import clear_bytes
from .validation import require, validate_new_passphrase

logger = logging.getLogger(__name__)

# (key, vault salt) when the passphrase verified, None otherwise
AuthOutcome = Optional[Tuple[bytearray, bytes]]


class AccessController(QObject):
    """Combines passphrase verification and geofence membership."""

    state_changed = pyqtSignal(object)
    authentication_failed = pyqtSignal(str)

    def __init__(
        self,
        settings_manager: SettingsManager,
        vault_store: VaultStore,
        credentials: CredentialManager,
        cipher: VaultCipher,
        engine: Optional[GeofenceEngine] = None,
        sampler: Optional[LocationSampler] = None,
        staleness_ceiling: float = config.LOCATION_STALENESS_CEILING_SECONDS,
        clock: Callable[[], float] = time.time,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self.settings_manager = settings_manager
        self.vault_store = vault_store
        self.credentials = credentials
        self.cipher = cipher
        self.engine = engine or GeofenceEngine()
        self.sampler = sampler
        self.staleness_ceiling = staleness_ceiling
        self.clock = clock
        initial = AccessState.LOCKED_NO_ZONE_CHECK if settings_manager.is_setup else AccessState.UNINITIALIZED
        self.session = AccessSession(state=initial)
        # Fires when the latest sample crosses the staleness ceiling.
        self._staleness_timer = QTimer(self)
        self._staleness_timer.setSingleShot(True)
        self._staleness_timer.timeout.connect(self.refresh)
        if sampler is not None:
            sampler.sample_updated.connect(self.on_sample)
            sampler.sample_failed.connect(self.on_sample_error)

    @property
    def state(self) -> AccessState:
        return self.session.state

    @property
    def is_unlocked(self) -> bool:
        return self.session.state is AccessState.UNLOCKED

    # ------------------------------------------------------------------
    # Location
    # ------------------------------------------------------------------

    def location_known(self) -> bool:
        """True if the latest sample is younger than the staleness ceiling."""
        sample = self.session.latest_sample
        if sample is None:
            return False
        return self.clock() - sample.captured_at <= self.staleness_ceiling

    def inside_trusted_zone(self) -> bool:
        """Unknown or stale location counts as outside."""
        if not self.location_known():
            return False
        return self.engine.is_within_any_zone(
            self.session.latest_sample.coordinate, self.settings_manager.zones
        )

    def nearest_zone(self) -> Optional[Tuple[TrustedZone, float]]:
        if self.session.latest_sample is None:
            return None
        return self.engine.nearest_zone(self.session.latest_sample.coordinate, self.settings_manager.zones)

    def on_sample(self, sample: GeoSample) -> None:
        """Apply a new sample; samples older than the current one are ignored."""
        current = self.session.latest_sample
        if current is not None and sample.captured_at < current.captured_at:
            logger.debug("Ignoring out-of-order location sample")
            return
        self.session.latest_sample = sample
        self.refresh()

    def on_sample_error(self, error: LocationError) -> None:
        """Location failures never force a transition beyond the staleness rule."""
        logger.info(f"Keeping last known location after {error.kind.name}")
        self.refresh()

    def refresh(self) -> AccessState:
        """Re-evaluate the zone check against the latest sample and zones."""
        state = self.session.state
        if state is AccessState.LOCKED_NO_ZONE_CHECK:
            if self.session.latest_sample is not None:
                self._set_state(AccessState.LOCKED)
        elif state is AccessState.UNLOCKED:
            if not self.inside_trusted_zone():
                self._set_state(AccessState.OUTSIDE_ZONE)
        elif state is AccessState.OUTSIDE_ZONE:
            if self.inside_trusted_zone():
                if self.session.has_key:
                    self._set_state(AccessState.UNLOCKED)
                else:
                    # Verified while outside: no key was kept, ask again.
                    self._set_state(AccessState.LOCKED)
        self._schedule_staleness_check()
        return self.session.state

    # ------------------------------------------------------------------
    # Setup and authentication
    # ------------------------------------------------------------------

    def complete_setup(self, passphrase: str, zones: List[TrustedZone], confirmation: Optional[str] = None) -> AccessState:
        """Persist the credential and zones, then move to LOCKED."""
        if self.session.state is not AccessState.UNINITIALIZED:
            raise GeoVaultError("The vault is already set up.")
        self.settings_manager.complete_setup(passphrase, zones, confirmation)
        self._set_state(AccessState.LOCKED)
        return self.session.state

    def authenticate(self, passphrase: str) -> AuthOutcome:
        """
        Verify the passphrase and derive the vault key.

        This is the slow part of an unlock and touches no session state, so
        it may run on a worker thread.

        Returns:
            Tuple of (key, vault salt) on success, None if verification failed
        Raises:
            StorageError: If the vault record cannot be read
        """
        if not self.settings_manager.verify_passphrase(passphrase):
            return None
        salt = self.vault_store.read_salt()
        return self.cipher.derive_key(passphrase, salt), salt

    def complete_authentication(self, outcome: AuthOutcome) -> AccessState:
        """
        Apply the result of authenticate() to the session.

        Raises:
            AuthenticationError: If the passphrase was not verified
            DecryptionError: If the derived key cannot open the vault
        """
        self._require_unauthenticated()
        if outcome is None:
            self.session.failed_attempts += 1
            logger.warning(f"Authentication failed (attempt {self.session.failed_attempts})")
            self._set_state(AccessState.LOCKED)
            error = AuthenticationError()
            self.authentication_failed.emit(str(error))
            raise error

        key, salt = outcome
        self.session.failed_attempts = 0
        if not self.inside_trusted_zone():
            clear_bytes(key)
            logger.info("Passphrase verified outside every trusted zone")
            self._set_state(AccessState.OUTSIDE_ZONE)
            return self.session.state

        try:
            # Confirms the key opens the vault before caching it.
            self.vault_store.load_entries(key)
        except GeoVaultError:
            clear_bytes(key)
            self._set_state(AccessState.LOCKED)
            raise
        self.session.cached_key = key
        self.session.key_salt = salt
        self._set_state(AccessState.UNLOCKED)
        self._schedule_staleness_check()
        return self.session.state

    def attempt_unlock(self, passphrase: str) -> AccessState:
        """Verify the passphrase and unlock if inside a trusted zone."""
        self._require_unauthenticated()
        return self.complete_authentication(self.authenticate(passphrase))

    def logout(self) -> AccessState:
        """Discard the cached key and return to LOCKED."""
        self.session.discard_key()
        self._staleness_timer.stop()
        if self.session.state is AccessState.UNINITIALIZED:
            return self.session.state
        self._set_state(AccessState.LOCKED)
        logger.info("Session logged out")
        return self.session.state

    def shutdown(self) -> None:
        """Process teardown: stop sampling and zero the key."""
        if self.sampler is not None:
            self.sampler.stop()
        self.logout()

    def change_passphrase(self, old_passphrase: str, new_passphrase: str, confirmation: Optional[str] = None) -> None:
        """
        Rotate the master passphrase and re-encrypt the vault under a new key.

        Raises:
            VaultLockedError: If the session is not unlocked
            AuthenticationError: If the old passphrase is wrong
            ValidationError: If the new passphrase is rejected
        """
        self._require_unlocked()
        if not self.settings_manager.verify_passphrase(old_passphrase):
            raise AuthenticationError()
        require(validate_new_passphrase(new_passphrase, confirmation))

        entries = self.vault_store.load_entries(self.session.cached_key)
        new_salt = self.cipher.generate_salt()
        new_key = self.cipher.derive_key(new_passphrase, new_salt)
        self.vault_store.save_entries(entries, new_key, new_salt)
        try:
            self.settings_manager.rotate_credential(new_passphrase, confirmation)
        except GeoVaultError as e:
            # The settings record still verifies the old passphrase.
            logger.error(f"Credential update failed, restoring vault under the old passphrase: {e}")
            clear_bytes(new_key)
            self.vault_store.save_entries(entries, self.session.cached_key, self.session.key_salt)
            raise
        self.session.discard_key()
        self.session.cached_key = new_key
        self.session.key_salt = new_salt
        logger.info("Master passphrase changed and vault re-encrypted")

    # ------------------------------------------------------------------
    # Vault entries
    # ------------------------------------------------------------------

    def list_entries(self) -> List[VaultEntry]:
        self._require_unlocked()
        return self.vault_store.load_entries(self.session.cached_key)

    def add_entry(self, title: str, username: str, secret: str, website: str = "", notes: str = "") -> VaultEntry:
        self._require_unlocked()
        entries = self.vault_store.load_entries(self.session.cached_key)
        now = utc_now_iso()
        entry = VaultEntry(
            id=str(uuid.uuid4()),
            title=title,
            username=username,
            secret=secret,
            website=website,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        entries.append(entry)
        self._save(entries)
        return entry

    def update_entry(self, entry_id: str, **changes) -> Optional[VaultEntry]:
        """Update fields of an existing entry; returns None if it does not exist."""
        self._require_unlocked()
        entries = self.vault_store.load_entries(self.session.cached_key)
        for entry in entries:
            if entry.id == entry_id:
                for field_name in ('title', 'username', 'secret', 'website', 'notes'):
                    if field_name in changes:
                        setattr(entry, field_name, changes[field_name])
                entry.updated_at = utc_now_iso()
                self._save(entries)
                return entry
        return None

    def delete_entry(self, entry_id: str) -> bool:
        self._require_unlocked()
        entries = self.vault_store.load_entries(self.session.cached_key)
        remaining = [e for e in entries if e.id != entry_id]
        if len(remaining) == len(entries):
            return False
        self._save(remaining)
        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _save(self, entries: List[VaultEntry]) -> None:
        self.vault_store.save_entries(entries, self.session.cached_key, self.session.key_salt)

    def _require_unlocked(self) -> None:
        self.refresh()
        if self.session.state is not AccessState.UNLOCKED or not self.session.has_key:
            raise VaultLockedError()

    def _require_unauthenticated(self) -> None:
        if self.session.state is AccessState.UNINITIALIZED:
            raise GeoVaultError("The vault has not been set up yet.")
        if self.session.has_key:
            raise GeoVaultError("Session is already authenticated; log out first.")

    def _schedule_staleness_check(self) -> None:
        """Arm the timer for the moment the latest sample goes stale."""
        sample = self.session.latest_sample
        if self.session.state is not AccessState.UNLOCKED or sample is None:
            self._staleness_timer.stop()
            return
        remaining = sample.captured_at + self.staleness_ceiling - self.clock()
        self._staleness_timer.start(max(0, int(remaining * 1000)) + 1)

    def _set_state(self, new_state: AccessState) -> None:
        old_state = self.session.state
        self.session.state = new_state
        if old_state is not new_state:
            logger.info(f"Access state {old_state.name} -> {new_state.name}")
            self.state_changed.emit(new_state)
