"""
Thread-safe storage of scan results
"""

import logging
import threading
from typing import List, Set, Tuple

from .models import Address, ProbeOutcome, ResultSet

logger = logging.getLogger(__name__)


class ResultSink:
    """Append-only reachable/unreachable result sets shared by the workers"""

    def __init__(self):
        self._lock = threading.Lock()
        self._reachable: List[Address] = []
        self._unreachable: List[Address] = []
        self._seen: Set[Address] = set()

    def record(self, outcome: ProbeOutcome) -> bool:
        """
        Append the address to the set matching its outcome

        Args:
            outcome: Probe outcome

        Returns:
            False if the address was already recorded
        """
        with self._lock:
            if outcome.address in self._seen:
                logger.warning(f"Duplicate outcome for {outcome.address} ignored")
                return False
            self._seen.add(outcome.address)

            if outcome.is_reachable:
                self._reachable.append(outcome.address)
            else:
                self._unreachable.append(outcome.address)
        return True

    __call__ = record

    def snapshot(self) -> Tuple[ResultSet, ResultSet]:
        """Current contents as (reachable, unreachable), in arrival order"""
        with self._lock:
            return tuple(self._reachable), tuple(self._unreachable)

    def counts(self) -> Tuple[int, int]:
        with self._lock:
            return len(self._reachable), len(self._unreachable)

    def clear(self):
        with self._lock:
            self._reachable.clear()
            self._unreachable.clear()
            self._seen.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._seen)
