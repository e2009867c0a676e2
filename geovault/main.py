"""
Composition root for the GeoVault core.

LEGAL NOTICE:
This tool is for personal use only. It must operate only on the device where
it is installed and only with the explicit consent of the device owner.

There is no command-line surface; a front end builds a GeoVaultApp around
its LocationProvider and drives the AccessController it exposes.
"""

import logging
from typing import Optional

from . import config
from .controller import AccessController
from .crypto import CredentialManager, VaultCipher
from .geofence import GeofenceEngine
from .location import LocationProvider, LocationSampler
from .settings import SettingsManager
from .storage import FileKeyValueStore, KeyValueStore, SettingsStore, VaultStore

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format=config.LOG_FORMAT)


class GeoVaultApp:
    """Wires storage, crypto, sampling and access control together."""

    def __init__(
        self,
        provider: LocationProvider,
        store: Optional[KeyValueStore] = None,
        credentials: Optional[CredentialManager] = None,
        cipher: Optional[VaultCipher] = None,
    ):
        """
        Initialize the application core.
        Args:
            provider: Source of device coordinates
            store: Raw persistence; defaults to files under ~/.geovault
            credentials: Passphrase hasher; defaults to the configured PBKDF2 cost
            cipher: Vault cipher; defaults to the configured Argon2id cost
        """
        self.store = store if store is not None else FileKeyValueStore()
        self.credentials = credentials or CredentialManager()
        self.cipher = cipher or VaultCipher()
        self.engine = GeofenceEngine()
        self.vault_store = VaultStore(self.store, self.cipher)
        self.settings_manager = SettingsManager(
            SettingsStore(self.store), self.vault_store, self.credentials, self.cipher, self.engine
        )
        self.sampler = LocationSampler(provider)
        self.controller = AccessController(
            self.settings_manager,
            self.vault_store,
            self.credentials,
            self.cipher,
            engine=self.engine,
            sampler=self.sampler,
        )
        logger.info(f"{config.APP_NAME} v{config.APP_VERSION} initialised in state {self.controller.state.name}")

    def start(self) -> None:
        """Begin location sampling."""
        self.sampler.start()

    def cleanup(self) -> None:
        """Clean up resources: stop timers and zero the session key."""
        self.controller.shutdown()
