"""
Data models for the scanner
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

FIRST_SUFFIX = 1
LAST_SUFFIX = 254


class Reachability(Enum):
    """Result of a reachability check"""
    REACHABLE = "reachable"
    UNREACHABLE = "unreachable"


class ScanState(Enum):
    """Lifecycle of one scan session"""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanState.COMPLETED, ScanState.CANCELLED, ScanState.FAILED)


@dataclass(frozen=True)
class Address:
    """Host address built from a network prefix and a host suffix"""
    prefix: str
    suffix: int

    @classmethod
    def from_parts(cls, prefix: str, suffix: int) -> "Address":
        """
        Build an address, rejecting suffixes outside the host range

        Args:
            prefix: Network prefix, e.g. "192.168.1"
            suffix: Host number in [1, 254]

        Returns:
            Address
        """
        if not FIRST_SUFFIX <= suffix <= LAST_SUFFIX:
            raise ValueError(
                f"host suffix must be in [{FIRST_SUFFIX}, {LAST_SUFFIX}], got {suffix}"
            )
        return cls(prefix=prefix, suffix=suffix)

    def __str__(self) -> str:
        return f"{self.prefix}.{self.suffix}"


@dataclass(frozen=True)
class ProbeOutcome:
    """Classification of one address"""
    address: Address
    status: Reachability

    @property
    def is_reachable(self) -> bool:
        return self.status is Reachability.REACHABLE

    @classmethod
    def reachable(cls, address: Address) -> "ProbeOutcome":
        return cls(address, Reachability.REACHABLE)

    @classmethod
    def unreachable(cls, address: Address) -> "ProbeOutcome":
        return cls(address, Reachability.UNREACHABLE)


ResultSet = Tuple[Address, ...]


@dataclass
class ScanSummary:
    """Summary of a finished (or interrupted) scan"""
    reachable_count: int = 0
    unreachable_count: int = 0
    elapsed: float = 0.0
    state: ScanState = ScanState.IDLE

    @property
    def total_hosts(self) -> int:
        return self.reachable_count + self.unreachable_count

    @property
    def reachable_percent(self) -> float:
        """Share of reachable hosts"""
        if self.total_hosts == 0:
            return 0.0
        return (self.reachable_count / self.total_hosts) * 100

    @property
    def unreachable_percent(self) -> float:
        """Share of unreachable hosts"""
        if self.total_hosts == 0:
            return 0.0
        return (self.unreachable_count / self.total_hosts) * 100

    def to_dict(self) -> dict:
        return {
            "reachable": self.reachable_count,
            "unreachable": self.unreachable_count,
            "total": self.total_hosts,
            "reachable_percent": round(self.reachable_percent, 1),
            "unreachable_percent": round(self.unreachable_percent, 1),
            "elapsed_seconds": round(self.elapsed, 2),
            "state": self.state.value,
        }


def enumerate_addresses(prefix: str) -> Tuple[Address, ...]:
    """All host addresses of a /24 prefix, suffixes 1..254"""
    return tuple(
        Address.from_parts(prefix, suffix)
        for suffix in range(FIRST_SUFFIX, LAST_SUFFIX + 1)
    )


class Timer:
    """Wall-clock span of a scan"""

    def __init__(self):
        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None
        self._start_mono = 0.0
        self._stop_mono: Optional[float] = None

    def start(self):
        self.started_at = time.time()
        self._start_mono = time.monotonic()
        self._stop_mono = None

    def stop(self):
        self.finished_at = time.time()
        self._stop_mono = time.monotonic()

    @property
    def elapsed(self) -> float:
        """Seconds since start, frozen once stopped"""
        if self.started_at is None:
            return 0.0
        end = self._stop_mono if self._stop_mono is not None else time.monotonic()
        return end - self._start_mono
