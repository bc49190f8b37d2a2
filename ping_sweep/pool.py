"""
Bounded pool of probe workers
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, Future, wait
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Set

from .errors import ConfigurationError, ProbeCancelled
from .models import Address, ProbeOutcome

logger = logging.getLogger(__name__)

Work = Callable[[Address], ProbeOutcome]
Sink = Callable[[ProbeOutcome], object]


@dataclass
class PoolStats:
    """Counters of one pool run"""
    submitted: int = 0
    completed: int = 0
    dropped: int = 0
    abandoned: int = 0
    peak_in_flight: int = 0
    cancelled: bool = False


class WorkerPool:
    """
    Runs work items with at most `limit` of them in flight.

    Admission blocks on a counting semaphore; every finished item releases
    one slot, so exactly one new item is admitted per completion. The
    cancellation token is checked before each admission.
    """

    def __init__(self, limit: int, grace_period: float = 5.0, admission_poll: float = 0.1):
        if limit < 1:
            raise ConfigurationError(f"worker limit must be >= 1, got {limit}")
        self.limit = limit
        self.grace_period = grace_period
        self.admission_poll = admission_poll

        self._lock = threading.Lock()
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    def run(self, addresses: Iterable[Address], work: Work, sink: Sink,
            cancel_token: Optional[threading.Event] = None) -> PoolStats:
        """
        Run `work` for every address and pass each outcome to `sink`

        Args:
            addresses: Addresses to process, admitted in order
            work: Callable producing one outcome per address
            sink: Receiver of outcomes
            cancel_token: Event that stops admission when set

        Returns:
            Run statistics

        Raises:
            Exception: the first error raised by `work` or `sink`, after drain
        """
        cancel = cancel_token if cancel_token is not None else threading.Event()
        stop = threading.Event()
        gate = threading.BoundedSemaphore(self.limit)
        stats = PoolStats()
        errors: List[BaseException] = []
        futures: List[Future] = []

        def should_stop() -> bool:
            return cancel.is_set() or stop.is_set()

        def task(address: Address):
            try:
                if should_stop():
                    self._count(stats, dropped=1)
                    return
                outcome = work(address)
                sink(outcome)
                self._count(stats, completed=1)
            except ProbeCancelled:
                self._count(stats, dropped=1)
            except Exception as e:
                logger.debug(f"Worker failed on {address}: {e}")
                with self._lock:
                    errors.append(e)
                stop.set()
            finally:
                with self._lock:
                    self._in_flight -= 1
                gate.release()

        # Workers release their gate slot in task()'s finally, slightly before
        # the worker thread is idle again, so the next admitted task may wait
        # briefly in the executor queue. It still runs: the executor is only
        # shut down after the drain, and never with cancel_futures, so every
        # submitted future reaches a finished state.
        executor = ThreadPoolExecutor(max_workers=self.limit, thread_name_prefix="probe")
        try:
            for address in addresses:
                if not self._admit(gate, should_stop):
                    break
                # cancellation may have arrived while we were blocked on the gate
                if should_stop():
                    gate.release()
                    break

                with self._lock:
                    self._in_flight += 1
                    stats.peak_in_flight = max(stats.peak_in_flight, self._in_flight)
                stats.submitted += 1
                futures.append(executor.submit(task, address))

            pending = self._drain(futures, cancel)
        finally:
            # abandoned workers keep running until their ping returns
            executor.shutdown(wait=False)

        stats.abandoned = len(pending)
        stats.cancelled = cancel.is_set()

        if pending:
            logger.warning(f"{len(pending)} probes did not finish within "
                           f"{self.grace_period:.1f}s grace period, abandoned")

        if errors:
            raise errors[0]

        return stats

    def _admit(self, gate: threading.BoundedSemaphore, should_stop: Callable[[], bool]) -> bool:
        """Block until a slot is free, False if the run must stop"""
        while not gate.acquire(timeout=self.admission_poll):
            if should_stop():
                return False
        return True

    def _drain(self, futures: List[Future], cancel: threading.Event) -> Set[Future]:
        """Wait for submitted work, at most grace_period once cancelled"""
        pending = set(futures)
        deadline = None

        while pending:
            # a future cancelled before it started is never reported by wait()
            pending = {future for future in pending if not future.cancelled()}
            if not pending:
                break

            # the grace period starts when cancellation is first seen here,
            # which may be after admission already finished
            if deadline is None and cancel.is_set():
                deadline = time.monotonic() + self.grace_period

            if deadline is None:
                timeout = self.admission_poll
            else:
                timeout = max(0.0, deadline - time.monotonic())

            _, pending = wait(pending, timeout=timeout)

            if deadline is not None and time.monotonic() >= deadline:
                break

        return pending

    def _count(self, stats: PoolStats, completed: int = 0, dropped: int = 0):
        with self._lock:
            stats.completed += completed
            stats.dropped += dropped
