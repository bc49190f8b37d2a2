import threading
import time

import pytest

from ping_sweep.errors import ConfigurationError, ProbeCancelled
from ping_sweep.models import ProbeOutcome, enumerate_addresses
from ping_sweep.pool import WorkerPool
from ping_sweep.sink import ResultSink

from .conftest import SimulatedProbe


@pytest.mark.parametrize("limit", [1, 5, 50, 254])
def test_in_flight_never_exceeds_limit(limit):
    probe = SimulatedProbe(delay=0.005)
    sink = ResultSink()

    stats = WorkerPool(limit).run(enumerate_addresses("10.0.0"), probe, sink)

    assert probe.peak <= limit
    assert stats.peak_in_flight <= limit
    assert stats.submitted == stats.completed == 254
    assert len(sink) == 254


def test_limit_one_serializes():
    probe = SimulatedProbe(reachable={10}, delay=0.001)
    sink = ResultSink()

    WorkerPool(1).run(enumerate_addresses("10.0.0"), probe, sink)

    assert probe.peak == 1
    reachable, unreachable = sink.snapshot()
    assert [str(a) for a in reachable] == ["10.0.0.10"]
    assert len(unreachable) == 253


def test_limit_one_admits_in_submission_order():
    order = []

    def work(address):
        order.append(address.suffix)
        return ProbeOutcome.unreachable(address)

    WorkerPool(1).run(enumerate_addresses("10.0.0"), work, lambda outcome: None)
    assert order == list(range(1, 255))


def test_invalid_limit():
    with pytest.raises(ConfigurationError):
        WorkerPool(0)


def test_no_admission_after_cancel():
    cancel = threading.Event()
    calls = []

    def work(address):
        calls.append(address.suffix)
        if len(calls) == 10:
            cancel.set()
        return ProbeOutcome.unreachable(address)

    stats = WorkerPool(1).run(enumerate_addresses("10.0.0"), work, lambda outcome: None, cancel)

    assert len(calls) == 10
    assert stats.cancelled
    assert stats.submitted == 10


def test_precancelled_token_admits_nothing():
    cancel = threading.Event()
    cancel.set()
    probe = SimulatedProbe()

    stats = WorkerPool(5).run(enumerate_addresses("10.0.0"), probe, lambda outcome: None, cancel)

    assert probe.calls == 0
    assert stats.submitted == 0


def test_cancelled_work_is_dropped():
    def work(address):
        if address.suffix % 2:
            raise ProbeCancelled(str(address))
        return ProbeOutcome.reachable(address)

    sink = ResultSink()
    stats = WorkerPool(4).run(enumerate_addresses("10.0.0"), work, sink)

    assert stats.dropped == 127
    assert stats.completed == 127
    assert len(sink) == 127


def test_first_error_is_raised_after_drain():
    def work(address):
        if address.suffix == 20:
            raise RuntimeError("boom")
        return ProbeOutcome.unreachable(address)

    sink = ResultSink()
    with pytest.raises(RuntimeError, match="boom"):
        WorkerPool(2).run(enumerate_addresses("10.0.0"), work, sink)

    assert len(sink) < 254


def test_grace_period_abandons_stuck_work():
    cancel = threading.Event()
    release = threading.Event()

    def work(address):
        cancel.set()
        release.wait(timeout=5)
        return ProbeOutcome.unreachable(address)

    pool = WorkerPool(3, grace_period=0.2)
    started = time.monotonic()
    try:
        stats = pool.run(enumerate_addresses("10.0.0"), work, lambda outcome: None, cancel)
    finally:
        release.set()

    assert time.monotonic() - started < 3
    assert stats.abandoned >= 1
    assert stats.cancelled


@pytest.mark.parametrize("limit", [1, 4, 50])
def test_instant_work_never_loses_results(limit):
    # zero-delay work frees gate slots before executor threads go idle
    for _ in range(5):
        sink = ResultSink()
        stats = WorkerPool(limit).run(enumerate_addresses("10.0.0"), SimulatedProbe(), sink)

        assert len(sink) == 254
        assert stats.completed == 254
        assert stats.abandoned == 0
        assert not stats.cancelled
