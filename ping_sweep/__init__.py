"""
Parallel ping sweep of a /24 network
"""

__version__ = "1.1.0"

from .config import ScanConfig, AppSettings, ConfigLoader
from .controller import ScanController, ScanSession
from .errors import (
    PingSweepError,
    ConfigurationError,
    ProbeEnvironmentError,
    SystemicProbeFailure,
)
from .models import Address, ProbeOutcome, Reachability, ScanState, ScanSummary
from .pool import WorkerPool
from .probe import ReachabilityProbe
from .sink import ResultSink
