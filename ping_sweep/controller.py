"""
Scan orchestration: enumeration, worker pool, results and cancellation
"""

import logging
import threading
from typing import Callable, Optional

from .config import ScanConfig
from .errors import (
    ConfigurationError,
    ProbeCancelled,
    ProbeEnvironmentError,
    ScanStateError,
    SystemicProbeFailure,
)
from .models import (
    Address,
    ProbeOutcome,
    ScanState,
    ScanSummary,
    Timer,
    enumerate_addresses,
)
from .pool import PoolStats, WorkerPool
from .probe import ReachabilityProbe
from .sink import ResultSink

logger = logging.getLogger(__name__)

Probe = Callable[[Address], ProbeOutcome]

_TRANSITIONS = {
    ScanState.IDLE: {ScanState.RUNNING},
    ScanState.RUNNING: {ScanState.COMPLETED, ScanState.CANCELLED, ScanState.FAILED},
}


class ScanSession:
    """State of one scan: results, cancellation token, lifecycle and timing"""

    def __init__(self, config: ScanConfig):
        self.config = config
        self.sink = ResultSink()
        self.cancel_token = threading.Event()
        self.timer = Timer()
        self.stats: Optional[PoolStats] = None
        self.error: Optional[Exception] = None
        self._state = ScanState.IDLE

    @property
    def state(self) -> ScanState:
        return self._state

    def transition(self, new_state: ScanState):
        """Move to a new state, terminal states are final"""
        if new_state not in _TRANSITIONS.get(self._state, set()):
            raise ScanStateError(
                f"cannot move scan from {self._state.value} to {new_state.value}"
            )
        logger.debug(f"Scan {self.config.prefix}: {self._state.value} -> {new_state.value}")
        self._state = new_state

    @property
    def is_cancelled(self) -> bool:
        return self.cancel_token.is_set()

    def summary(self) -> ScanSummary:
        reachable, unreachable = self.sink.counts()
        return ScanSummary(
            reachable_count=reachable,
            unreachable_count=unreachable,
            elapsed=self.timer.elapsed,
            state=self._state,
        )


class _FailureTracker:
    """Counts consecutive probe environment errors"""

    def __init__(self, threshold: int):
        self.threshold = threshold
        self._lock = threading.Lock()
        self._consecutive = 0

    def failure(self) -> int:
        with self._lock:
            self._consecutive += 1
            return self._consecutive

    def success(self):
        with self._lock:
            self._consecutive = 0


class ScanController:
    """Runs one scan at a time over prefix.1 .. prefix.254"""

    def __init__(self, probe: Optional[Probe] = None,
                 on_outcome: Optional[Callable[[ProbeOutcome], None]] = None,
                 failure_threshold: int = 5,
                 grace_period: float = 5.0):
        """
        Args:
            probe: Callable checking one address, a ReachabilityProbe
                built from the scan config when omitted
            on_outcome: Called once per recorded outcome, from worker threads
            failure_threshold: Consecutive ping environment errors that abort the scan
            grace_period: Seconds in-flight probes get to finish after cancel()
        """
        if failure_threshold < 1:
            raise ConfigurationError("failure_threshold must be >= 1")
        self._probe = probe
        self.on_outcome = on_outcome
        self.failure_threshold = failure_threshold
        self.grace_period = grace_period

        self.session: Optional[ScanSession] = None
        self._active_probe: Optional[Probe] = None

    def start(self, config: ScanConfig) -> ScanSession:
        """
        Scan every host of config.prefix and wait for the results

        Args:
            config: Scan configuration

        Returns:
            Finished session: COMPLETED, CANCELLED, or FAILED if some
            hosts produced no result without a cancel()

        Raises:
            ConfigurationError: invalid configuration, nothing was probed
            SystemicProbeFailure: ping keeps failing for every host
        """
        if self.session is not None and self.session.state is ScanState.RUNNING:
            raise ScanStateError("a scan is already running")

        config.validate()
        addresses = enumerate_addresses(config.prefix)

        session = ScanSession(config)
        probe = self._probe or ReachabilityProbe(config.probe_count, config.probe_timeout)
        tracker = _FailureTracker(self.failure_threshold)
        pool = WorkerPool(config.concurrency_limit, grace_period=self.grace_period)

        # a checker shared across scans stays aborted after an earlier cancel()
        reset = getattr(probe, "reset", None)
        if callable(reset):
            reset()

        self.session = session
        self._active_probe = probe

        def work(address: Address) -> ProbeOutcome:
            return self._probe_address(session, probe, tracker, address)

        def route(outcome: ProbeOutcome):
            if session.sink.record(outcome) and self.on_outcome is not None:
                self.on_outcome(outcome)

        logger.info(f"Scanning {config.prefix}.1-254 with {config.concurrency_limit} workers, "
                    f"{config.probe_count} packets, {config.probe_timeout:g}s timeout")

        session.timer.start()
        session.transition(ScanState.RUNNING)
        try:
            session.stats = pool.run(addresses, work, route, session.cancel_token)
        except KeyboardInterrupt:
            # second interrupt from the signal handler: stop now, keep partial results
            self.cancel()
            session.timer.stop()
            session.transition(ScanState.CANCELLED)
            raise
        except Exception as e:
            session.error = e
            session.timer.stop()
            session.transition(ScanState.FAILED)
            logger.error(f"Scan of {config.prefix} failed: {e}")
            raise
        finally:
            self._active_probe = None

        session.timer.stop()
        recorded = len(session.sink)
        if session.is_cancelled:
            session.transition(ScanState.CANCELLED)
            logger.warning(f"Scan of {config.prefix} cancelled after "
                           f"{recorded} of {len(addresses)} hosts")
        elif recorded != len(addresses):
            # work was dropped without a cancel(), the result sets are not a partition
            session.error = ScanStateError(
                f"only {recorded} of {len(addresses)} hosts produced a result"
            )
            session.transition(ScanState.FAILED)
            logger.error(f"Scan of {config.prefix} incomplete: {session.error}")
        else:
            session.transition(ScanState.COMPLETED)
            logger.info(f"Scan of {config.prefix} completed in {session.timer.elapsed:.1f}s")

        return session

    def cancel(self):
        """
        Stop the running scan: no new probes start, running ones are aborted.

        Safe to call from a signal handler or another thread.
        """
        session = self.session
        if session is None or session.state.is_terminal:
            logger.debug("cancel() with no running scan ignored")
            return

        first = not session.cancel_token.is_set()
        session.cancel_token.set()

        abort = getattr(self._active_probe, "abort", None)
        if callable(abort):
            abort()

        if first:
            logger.info("Cancellation requested")

    def summary(self) -> ScanSummary:
        """Counts and elapsed time of the last scan"""
        if self.session is None:
            raise ScanStateError("no scan has been started")
        return self.session.summary()

    def _probe_address(self, session: ScanSession, probe: Probe,
                       tracker: _FailureTracker, address: Address) -> ProbeOutcome:
        if session.cancel_token.is_set():
            raise ProbeCancelled(str(address))

        try:
            outcome = probe(address)
        except ProbeEnvironmentError as e:
            failures = tracker.failure()
            if failures >= tracker.threshold:
                raise SystemicProbeFailure(failures, e) from e
            logger.error(f"{address}: {e}, classified as unreachable")
            return ProbeOutcome.unreachable(address)

        if outcome.address != address:
            raise ValueError(f"probe for {address} returned outcome for {outcome.address}")

        tracker.success()
        return outcome
