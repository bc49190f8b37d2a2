import subprocess
import threading
import time

import pytest

from ping_sweep import probe as probe_module
from ping_sweep.errors import ProbeCancelled
from ping_sweep.models import ProbeOutcome


class SimulatedProbe:
    """Deterministic probe: reachable iff the suffix is in `reachable`"""

    def __init__(self, reachable=(), delay=0.0):
        self.reachable = set(reachable)
        self.delay = delay
        self.calls = 0
        self.in_flight = 0
        self.peak = 0
        self._lock = threading.Lock()

    def __call__(self, address):
        with self._lock:
            self.calls += 1
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if address.suffix in self.reachable:
                return ProbeOutcome.reachable(address)
            return ProbeOutcome.unreachable(address)
        finally:
            with self._lock:
                self.in_flight -= 1


class BlockingProbe:
    """Blocks every call until abort() is called"""

    def __init__(self):
        self.started = threading.Semaphore(0)
        self.aborted = threading.Event()
        self.calls = 0
        self._lock = threading.Lock()

    def __call__(self, address):
        with self._lock:
            self.calls += 1
        self.started.release()
        self.aborted.wait(timeout=10)
        raise ProbeCancelled(str(address))

    def wait_started(self, count, timeout=5.0):
        for _ in range(count):
            assert self.started.acquire(timeout=timeout)

    def abort(self):
        self.aborted.set()


@pytest.fixture
def simulated_probe():
    return SimulatedProbe(reachable={1, 2, 3})


@pytest.fixture
def blocking_probe():
    probe = BlockingProbe()
    yield probe
    probe.abort()


class FakePopen:
    """Stands in for a ping child process"""

    returncode_to_use = 0
    time_out = False
    block = False
    instances = []

    def __init__(self, cmd, stdout=None, stderr=None):
        self.cmd = cmd
        self.pid = 4242
        self.returncode = None
        self.killed = threading.Event()
        self.started = threading.Event()
        self._timed_out = False
        type(self).instances.append(self)

    def communicate(self, timeout=None):
        self.started.set()
        if self.time_out and not self._timed_out:
            self._timed_out = True
            raise subprocess.TimeoutExpired(self.cmd, timeout)
        if self.block:
            self.killed.wait(timeout=5)
        if self.returncode is None:
            self.returncode = self.returncode_to_use
        return None, b"ping: some diagnostic"

    def kill(self):
        self.returncode = -9
        self.killed.set()


@pytest.fixture
def fake_popen(monkeypatch):
    class Popen(FakePopen):
        instances = []

    monkeypatch.setattr(probe_module.subprocess, "Popen", Popen)
    return Popen
