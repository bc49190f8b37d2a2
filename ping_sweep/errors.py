"""
Exceptions raised by the scanner
"""


class PingSweepError(Exception):
    """Base class for scanner errors"""


class ConfigurationError(PingSweepError):
    """Invalid scan configuration, the scan never starts"""


class ProbeEnvironmentError(PingSweepError):
    """The ping primitive itself cannot be run"""


class SystemicProbeFailure(ProbeEnvironmentError):
    """Environment errors repeated for too many probes in a row"""

    def __init__(self, failures: int, last_error: Exception):
        super().__init__(
            f"ping failed {failures} times in a row, last error: {last_error}"
        )
        self.failures = failures
        self.last_error = last_error


class ProbeCancelled(PingSweepError):
    """Probe was aborted by cancellation and produced no outcome"""


class ScanStateError(PingSweepError):
    """Illegal scan state transition"""
