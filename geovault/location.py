"""
Location sampling: on-demand and recurring requests to a location provider.

Provider calls block for up to the request timeout, so recurring requests run
on a SampleWorker thread and report back through queued Qt signals. All
sampler state is touched on the thread that owns the sampler.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional, Set

from PyQt5.QtCore import QObject, QThread, QTimer, pyqtSignal

from . import config
from .errors import LocationError, LocationErrorKind
from .models import Coordinate, GeoSample

logger = logging.getLogger(__name__)


class LocationProvider(ABC):
    """Source of device coordinates, implemented outside the core."""

    @abstractmethod
    def get_current_position(self, high_accuracy: bool, timeout_ms: int, max_staleness_ms: int) -> Coordinate:
        """
        Return the current position.

        Raises:
            LocationError: With kind PERMISSION_DENIED, POSITION_UNAVAILABLE,
                TIMEOUT or UNSUPPORTED
        """


class SampleWorker(QThread):
    """Worker thread for one provider request."""

    sampled = pyqtSignal(int, object)
    failed = pyqtSignal(int, object)

    def __init__(self, sampler: 'LocationSampler', generation: int):
        super().__init__()
        self.sampler = sampler
        self.generation = generation

    def run(self):
        """Run the provider request."""
        try:
            sample = self.sampler.fetch_sample()
            self.sampled.emit(self.generation, sample)
        except LocationError as e:
            self.failed.emit(self.generation, e)
        except Exception as e:
            logger.error(f"Location provider raised an unexpected error: {e}", exc_info=True)
            self.failed.emit(self.generation, LocationError(LocationErrorKind.POSITION_UNAVAILABLE, str(e)))


class LocationSampler(QObject):
    """Keeps the most recent GeoSample from a LocationProvider.

    Recurring mode starts with one immediate request; the QTimer schedule
    begins once a request succeeds, which is taken as permission granted.
    Only one request is in flight at a time and ticks that fire meanwhile
    are skipped. stop() bumps the generation so late results are discarded.
    """

    sample_updated = pyqtSignal(object)
    sample_failed = pyqtSignal(object)

    def __init__(
        self,
        provider: LocationProvider,
        interval_ms: int = config.POLL_INTERVAL,
        timeout: float = config.LOCATION_TIMEOUT_SECONDS,
        max_staleness: float = config.LOCATION_MAX_AGE_SECONDS,
        high_accuracy: bool = config.LOCATION_HIGH_ACCURACY,
        clock: Callable[[], float] = time.time,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self.provider = provider
        self.timeout = timeout
        self.max_staleness = max_staleness
        self.high_accuracy = high_accuracy
        self.clock = clock
        self.latest: Optional[GeoSample] = None
        self.permission_granted = False
        self._active = False
        self._generation = 0
        self._worker: Optional[SampleWorker] = None
        self._retired: Set[SampleWorker] = set()
        self._dispatch_pending = False
        self._timer = QTimer(self)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self._on_tick)

    @property
    def is_running(self) -> bool:
        return self._active

    @property
    def in_flight(self) -> bool:
        return self._worker is not None

    @property
    def timer_active(self) -> bool:
        return self._timer.isActive()

    def fetch_sample(self, timeout: Optional[float] = None, max_staleness: Optional[float] = None) -> GeoSample:
        """
        Ask the provider for a position without touching sampler state.

        Returns:
            GeoSample stamped with the time the request was issued
        Raises:
            LocationError: If the provider fails
        """
        timeout = self.timeout if timeout is None else timeout
        max_staleness = self.max_staleness if max_staleness is None else max_staleness
        issued_at = self.clock()
        coordinate = self.provider.get_current_position(
            self.high_accuracy, int(timeout * 1000), int(max_staleness * 1000)
        )
        return GeoSample(coordinate.latitude, coordinate.longitude, issued_at)

    def request_sample(self, timeout: Optional[float] = None, max_staleness: Optional[float] = None) -> GeoSample:
        """
        Request a sample synchronously and make it the latest one.

        Raises:
            LocationError: If the provider fails
        """
        try:
            sample = self.fetch_sample(timeout, max_staleness)
        except LocationError as e:
            self._handle_failure(e)
            raise
        self._accept(sample)
        return sample

    def start(self) -> None:
        """Start recurring sampling with an immediate request."""
        if self._active:
            return
        self._active = True
        logger.info("Location sampling started")
        if self.permission_granted:
            self._timer.start()
        if self._retired:
            # A cancelled request is still running; dispatch once it returns.
            self._dispatch_pending = True
        else:
            self._dispatch()

    def stop(self) -> None:
        """Cancel the schedule. Results of requests still in flight are discarded."""
        was_active = self._active
        self._active = False
        self._dispatch_pending = False
        self._timer.stop()
        self._generation += 1
        self._release_worker()
        if was_active:
            logger.info("Location sampling stopped")

    def _on_tick(self) -> None:
        if not self._active:
            return
        if self.in_flight or self._retired:
            logger.debug("Location request still pending, skipping tick")
            return
        self._dispatch()

    def _dispatch(self) -> None:
        worker = SampleWorker(self, self._generation)
        worker.sampled.connect(self._on_worker_sample)
        worker.failed.connect(self._on_worker_failure)
        self._worker = worker
        worker.start()

    def _on_worker_sample(self, generation: int, sample: GeoSample) -> None:
        if generation != self._generation:
            logger.debug("Discarding location result from a cancelled schedule")
            return
        self._release_worker()
        self._accept(sample)

    def _on_worker_failure(self, generation: int, error: LocationError) -> None:
        if generation != self._generation:
            return
        self._release_worker()
        self._handle_failure(error)

    def _release_worker(self) -> None:
        # A QThread must stay referenced until run() has returned.
        worker, self._worker = self._worker, None
        if worker is None:
            return
        self._retired.add(worker)
        worker.finished.connect(lambda w=worker: self._on_retired_finished(w))
        if worker.isFinished():
            self._retired.discard(worker)

    def _on_retired_finished(self, worker: SampleWorker) -> None:
        self._retired.discard(worker)
        if self._dispatch_pending and not self._retired and self._active and not self.in_flight:
            self._dispatch_pending = False
            self._dispatch()

    def _accept(self, sample: GeoSample) -> None:
        if self.latest is not None and sample.captured_at < self.latest.captured_at:
            logger.debug("Ignoring location sample older than the current one")
            return
        self.latest = sample
        if not self.permission_granted:
            self.permission_granted = True
            if self._active:
                self._timer.start()
        self.sample_updated.emit(sample)

    def _handle_failure(self, error: LocationError) -> None:
        logger.warning(f"Location request failed ({error.kind.name}): {error}")
        if error.stops_sampling:
            self.permission_granted = False
            self.stop()
        self.sample_failed.emit(error)
