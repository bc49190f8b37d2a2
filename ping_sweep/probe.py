"""
Reachability check built on the system ping command
"""

import logging
import math
import platform
import subprocess
import threading
from typing import List, Set

from .errors import ProbeCancelled, ProbeEnvironmentError
from .models import Address, ProbeOutcome

logger = logging.getLogger(__name__)

# Time allowed for ping to start and exit on top of its own packet budget
LAUNCH_SLACK = 0.5

# ping sends one packet per second unless told otherwise
PACKET_INTERVAL = 1.0


class ReachabilityProbe:
    """Checks one address with ping, bounded by its packet budget"""

    def __init__(self, probe_count: int, probe_timeout: float, system: str = None):
        self.probe_count = probe_count
        self.probe_timeout = probe_timeout
        self.system = (system or platform.system()).lower()
        self._lock = threading.Lock()
        self._processes: Set[subprocess.Popen] = set()
        self._aborted = threading.Event()

    @property
    def effective_timeout(self) -> float:
        """Per-packet wait actually passed to ping"""
        if self.system == 'windows':
            return self.probe_timeout
        # -W only takes whole seconds here
        return max(1, math.ceil(self.probe_timeout))

    @property
    def deadline(self) -> float:
        """
        Wall time after which a ping child is killed.

        The last packet leaves (probe_count - 1) intervals after the first and
        is then waited on for effective_timeout, so each packet is budgeted
        the larger of the two.
        """
        per_packet = max(PACKET_INTERVAL, self.effective_timeout)
        return self.probe_count * per_packet + LAUNCH_SLACK

    def build_command(self, ip: str) -> List[str]:
        """Build the ping command line for the current OS"""
        if self.system == 'windows':
            return [
                'ping', '-n', str(self.probe_count),
                '-w', str(int(self.effective_timeout * 1000)),
                ip
            ]
        if self.system == 'linux':
            # -M do: forbid fragmentation
            return [
                'ping', '-c', str(self.probe_count),
                '-W', str(self.effective_timeout),
                '-M', 'do',
                ip
            ]
        return [
            'ping', '-c', str(self.probe_count),
            '-W', str(self.effective_timeout),
            ip
        ]

    def probe(self, address: Address) -> ProbeOutcome:
        """
        Ping one address

        Args:
            address: Address to check

        Returns:
            Outcome, unreachable on any network failure or timeout

        Raises:
            ProbeEnvironmentError: ping cannot be started
            ProbeCancelled: the probe was aborted
        """
        if self._aborted.is_set():
            raise ProbeCancelled(str(address))

        cmd = self.build_command(str(address))

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as e:
            raise ProbeEnvironmentError(f"cannot run {cmd[0]!r}: {e}") from e

        with self._lock:
            self._processes.add(process)

        try:
            # abort() may have raced with the launch above
            if self._aborted.is_set():
                self._kill(process)

            try:
                _, stderr = process.communicate(timeout=self.deadline)
            except subprocess.TimeoutExpired:
                self._kill(process)
                process.communicate()
                logger.debug(f"{address}: no answer within {self.deadline:.1f}s, abandoned")
                return ProbeOutcome.unreachable(address)
        finally:
            with self._lock:
                self._processes.discard(process)

        if self._aborted.is_set() and process.returncode != 0:
            raise ProbeCancelled(str(address))

        if process.returncode == 0:
            return ProbeOutcome.reachable(address)

        if stderr:
            logger.debug(f"{address}: ping exit {process.returncode}: "
                         f"{stderr.decode('utf-8', errors='ignore').strip()}")
        return ProbeOutcome.unreachable(address)

    __call__ = probe

    def abort(self):
        """Terminate every running ping and refuse new probes"""
        self._aborted.set()
        with self._lock:
            processes = list(self._processes)

        for process in processes:
            self._kill(process)

        if processes:
            logger.info(f"Terminated {len(processes)} running ping processes")

    def reset(self):
        """Accept probes again after abort()"""
        self._aborted.clear()

    @staticmethod
    def _kill(process: subprocess.Popen):
        try:
            process.kill()
        except OSError as e:
            logger.debug(f"Failed to kill ping process {process.pid}: {e}")


def check_ping_available(system: str = None) -> bool:
    """
    Check that the ping command can be run

    Returns:
        True if ping is present
    """
    system = (system or platform.system()).lower()
    probe_flag = '/?' if system == 'windows' else '-V'

    try:
        result = subprocess.run(
            ['ping', probe_flag],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            timeout=2
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.error(f"ping is not available: {e}")
        return False

    # some systems return 1 for the help output
    if result.returncode not in (0, 1):
        logger.error(f"ping returned {result.returncode} on self-check")
        return False

    return True
