"""
Shared fixtures for the GeoVault tests.

KDF costs are lowered through the constructors so the suite stays fast; the
algorithms are the production ones.
"""
import pytest
from PyQt5.QtCore import QCoreApplication

from geovault.controller import AccessController
from geovault.crypto import CredentialManager, VaultCipher
from geovault.errors import LocationError
from geovault.geofence import GeofenceEngine
from geovault.location import LocationProvider, LocationSampler
from geovault.models import Coordinate, TrustedZone
from geovault.settings import SettingsManager
from geovault.storage import MemoryKeyValueStore, SettingsStore, VaultStore

PASSPHRASE = "correct horse battery"
TIMES_SQUARE = Coordinate(40.7580, -73.9855)
NORTH_OF_ZONE = Coordinate(40.7675, -73.9855)


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider(LocationProvider):
    """Returns queued coordinates or raises queued LocationErrors."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def get_current_position(self, high_accuracy, timeout_ms, max_staleness_ms):
        self.calls.append((high_accuracy, timeout_ms, max_staleness_ms))
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, LocationError):
            raise result
        return result


@pytest.fixture(scope="session", autouse=True)
def qapp():
    """QTimer and cross-thread signals need a Qt application object."""
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def credentials():
    return CredentialManager(iterations=10000)


@pytest.fixture
def cipher():
    return VaultCipher(time_cost=1, memory_cost=1024, parallelism=1)


@pytest.fixture
def kv():
    return MemoryKeyValueStore()


@pytest.fixture
def vault_store(kv, cipher):
    return VaultStore(kv, cipher)


@pytest.fixture
def settings_manager(kv, vault_store, credentials, cipher):
    return SettingsManager(SettingsStore(kv), vault_store, credentials, cipher)


@pytest.fixture
def zone():
    return TrustedZone(id="office", name="Office", center=TIMES_SQUARE, radius_meters=100)


@pytest.fixture
def controller(settings_manager, vault_store, credentials, cipher, clock):
    return AccessController(
        settings_manager, vault_store, credentials, cipher,
        engine=GeofenceEngine(), clock=clock,
    )


@pytest.fixture
def set_up_controller(controller, zone):
    """Controller after setup with one 100 m zone around Times Square."""
    controller.complete_setup(PASSPHRASE, [zone], confirmation=PASSPHRASE)
    return controller


@pytest.fixture
def make_sampler(clock):
    def factory(provider, **kwargs):
        return LocationSampler(provider, clock=clock, **kwargs)
    return factory
