"""
Tests for LocationSampler and SampleWorker.

Most tests replace _dispatch with a recorder so that worker results can be
delivered deterministically; one test drives a real worker thread.
"""
import time

import pytest
from PyQt5.QtCore import QCoreApplication

from geovault.errors import LocationError, LocationErrorKind
from geovault.location import SampleWorker
from geovault.models import Coordinate, GeoSample

from conftest import FakeProvider, NORTH_OF_ZONE, TIMES_SQUARE


class _Signal:
    def __init__(self):
        self.slots = []

    def connect(self, slot):
        self.slots.append(slot)


class FakeWorker:
    """Stands in for a SampleWorker thread."""

    def __init__(self, generation):
        self.generation = generation
        self.running = False
        self.finished = _Signal()

    def isFinished(self):
        return not self.running

    def finish(self):
        self.running = False
        for slot in self.finished.slots:
            slot()


@pytest.fixture
def recorded(make_sampler, monkeypatch):
    """A sampler whose dispatches are recorded instead of started."""
    def factory(provider):
        sampler = make_sampler(provider)
        dispatched = []

        def fake_dispatch():
            worker = FakeWorker(sampler._generation)
            dispatched.append(worker)
            sampler._worker = worker

        monkeypatch.setattr(sampler, "_dispatch", fake_dispatch)
        return sampler, dispatched
    return factory


def _collect(signal):
    received = []
    signal.connect(received.append)
    return received


class TestRequestSample:
    """Tests for on-demand sampling."""

    def test_success_updates_latest(self, make_sampler, clock):
        provider = FakeProvider(TIMES_SQUARE)
        sampler = make_sampler(provider)
        updates = _collect(sampler.sample_updated)

        sample = sampler.request_sample()

        assert sample == GeoSample(TIMES_SQUARE.latitude, TIMES_SQUARE.longitude, clock.now)
        assert sampler.latest == sample
        assert updates == [sample]
        assert provider.calls == [(True, 10000, 60000)]

    def test_timeout_and_staleness_are_forwarded(self, make_sampler):
        provider = FakeProvider(TIMES_SQUARE)
        make_sampler(provider).request_sample(timeout=2.5, max_staleness=0)
        assert provider.calls == [(True, 2500, 0)]

    def test_failure_raises_and_keeps_last_sample(self, make_sampler):
        provider = FakeProvider(TIMES_SQUARE, LocationError(LocationErrorKind.POSITION_UNAVAILABLE))
        sampler = make_sampler(provider)
        failures = _collect(sampler.sample_failed)
        first = sampler.request_sample()

        with pytest.raises(LocationError) as exc_info:
            sampler.request_sample()

        assert exc_info.value.kind is LocationErrorKind.POSITION_UNAVAILABLE
        assert sampler.latest == first
        assert failures == [exc_info.value]

    def test_last_sample_wins(self, make_sampler, clock):
        sampler = make_sampler(FakeProvider(TIMES_SQUARE, NORTH_OF_ZONE))
        sampler.request_sample()
        clock.advance(30)
        second = sampler.request_sample()
        assert sampler.latest == second

    def test_older_sample_is_ignored(self, make_sampler, clock):
        sampler = make_sampler(FakeProvider(TIMES_SQUARE))
        newer = sampler.request_sample()
        updates = _collect(sampler.sample_updated)
        sampler._accept(GeoSample(1.0, 1.0, clock.now - 5))
        assert sampler.latest == newer
        assert updates == []

    def test_error_messages(self):
        assert str(LocationError(LocationErrorKind.TIMEOUT)) == "Location request timed out."
        assert str(LocationError(LocationErrorKind.UNSUPPORTED, "no GPS")) == "no GPS"


class TestRecurringSampling:
    """Tests for the QTimer schedule and in-flight handling."""

    def test_start_requests_immediately_and_waits_for_permission(self, recorded):
        sampler, dispatched = recorded(FakeProvider(TIMES_SQUARE))
        sampler.start()
        assert len(dispatched) == 1
        assert sampler.is_running
        assert not sampler.timer_active

    def test_first_success_starts_schedule(self, recorded, clock):
        sampler, dispatched = recorded(FakeProvider(TIMES_SQUARE))
        sampler.start()
        sample = GeoSample(40.7580, -73.9855, clock.now)
        sampler._on_worker_sample(dispatched[0].generation, sample)
        assert sampler.latest == sample
        assert sampler.permission_granted
        assert sampler.timer_active
        assert not sampler.in_flight
        sampler.stop()

    def test_tick_is_skipped_while_request_pending(self, recorded):
        sampler, dispatched = recorded(FakeProvider(TIMES_SQUARE))
        sampler.start()
        sampler._on_tick()
        sampler._on_tick()
        assert len(dispatched) == 1

    def test_tick_dispatches_when_idle(self, recorded, clock):
        sampler, dispatched = recorded(FakeProvider(TIMES_SQUARE))
        sampler.start()
        sampler._on_worker_sample(dispatched[0].generation, GeoSample(0, 0, clock.now))
        sampler._on_tick()
        assert len(dispatched) == 2
        sampler.stop()

    def test_stop_cancels_timer_and_discards_late_result(self, recorded, clock):
        sampler, dispatched = recorded(FakeProvider(TIMES_SQUARE))
        sampler.start()
        sampler._on_worker_sample(dispatched[0].generation, GeoSample(0, 0, clock.now))
        sampler._on_tick()
        updates = _collect(sampler.sample_updated)

        sampler.stop()
        sampler._on_worker_sample(dispatched[1].generation, GeoSample(5, 5, clock.now + 1))

        assert not sampler.timer_active
        assert not sampler.is_running
        assert sampler.latest == GeoSample(0, 0, clock.now)
        assert updates == []

    def test_ticks_after_stop_do_nothing(self, recorded):
        sampler, dispatched = recorded(FakeProvider(TIMES_SQUARE))
        sampler.start()
        sampler.stop()
        sampler._on_tick()
        assert len(dispatched) == 1

    def test_permission_denied_stops_schedule(self, recorded, clock):
        sampler, dispatched = recorded(FakeProvider(TIMES_SQUARE))
        failures = _collect(sampler.sample_failed)
        sampler.start()
        sampler._on_worker_sample(dispatched[0].generation, GeoSample(0, 0, clock.now))
        sampler._on_tick()

        sampler._on_worker_failure(dispatched[1].generation, LocationError(LocationErrorKind.PERMISSION_DENIED))

        assert not sampler.is_running
        assert not sampler.timer_active
        assert not sampler.permission_granted
        assert [f.kind for f in failures] == [LocationErrorKind.PERMISSION_DENIED]

    def test_timeout_keeps_schedule(self, recorded, clock):
        sampler, dispatched = recorded(FakeProvider(TIMES_SQUARE))
        sampler.start()
        sampler._on_worker_sample(dispatched[0].generation, GeoSample(0, 0, clock.now))
        sampler._on_tick()
        sampler._on_worker_failure(dispatched[1].generation, LocationError(LocationErrorKind.TIMEOUT))
        assert sampler.is_running
        assert sampler.timer_active
        assert not sampler.in_flight
        sampler.stop()

    def test_restart_waits_for_cancelled_request(self, recorded):
        sampler, dispatched = recorded(FakeProvider(TIMES_SQUARE))
        sampler.start()
        dispatched[0].running = True
        sampler.stop()

        sampler.start()
        sampler._on_tick()
        assert sampler.is_running
        assert len(dispatched) == 1

        dispatched[0].finish()
        assert len(dispatched) == 2
        assert sampler.in_flight
        sampler.stop()

    def test_cancelled_request_finishing_after_stop_does_not_dispatch(self, recorded):
        sampler, dispatched = recorded(FakeProvider(TIMES_SQUARE))
        sampler.start()
        dispatched[0].running = True
        sampler.stop()
        sampler.start()
        sampler.stop()

        dispatched[0].finish()
        assert len(dispatched) == 1
        assert not sampler.in_flight


class TestSampleWorker:
    """Tests for the worker thread body, run synchronously."""

    def test_run_emits_sample(self, make_sampler, clock):
        sampler = make_sampler(FakeProvider(TIMES_SQUARE))
        worker = SampleWorker(sampler, 7)
        results = []
        worker.sampled.connect(lambda generation, sample: results.append((generation, sample)))
        worker.run()
        assert results == [(7, GeoSample(TIMES_SQUARE.latitude, TIMES_SQUARE.longitude, clock.now))]

    def test_run_emits_location_error(self, make_sampler):
        sampler = make_sampler(FakeProvider(LocationError(LocationErrorKind.TIMEOUT)))
        worker = SampleWorker(sampler, 3)
        errors = []
        worker.failed.connect(lambda generation, error: errors.append((generation, error.kind)))
        worker.run()
        assert errors == [(3, LocationErrorKind.TIMEOUT)]

    def test_unexpected_provider_error_becomes_position_unavailable(self, make_sampler):
        class BrokenProvider(FakeProvider):
            def get_current_position(self, *args):
                raise RuntimeError("driver crashed")

        worker = SampleWorker(make_sampler(BrokenProvider(TIMES_SQUARE)), 1)
        errors = []
        worker.failed.connect(lambda generation, error: errors.append(error))
        worker.run()
        assert errors[0].kind is LocationErrorKind.POSITION_UNAVAILABLE
        assert "driver crashed" in str(errors[0])


def test_real_worker_thread_delivers_sample(make_sampler):
    sampler = make_sampler(FakeProvider(Coordinate(1.5, 2.5)))
    sampler.start()
    deadline = time.monotonic() + 5
    while sampler.latest is None and time.monotonic() < deadline:
        QCoreApplication.processEvents()
        time.sleep(0.01)
    sampler.stop()
    for worker in list(sampler._retired):
        worker.wait(1000)

    assert sampler.latest is not None
    assert sampler.latest.coordinate == Coordinate(1.5, 2.5)
    assert sampler.permission_granted
