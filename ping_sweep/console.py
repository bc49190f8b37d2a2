"""
Colored terminal output
"""

import platform
import sys
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO

from colorama import Fore, Style, init as colorama_init

from .config import ScanConfig
from .models import ProbeOutcome, ScanState, ScanSummary
from .utils import format_duration


class Console:
    """Scan progress printer, safe to call from worker threads"""

    def __init__(self, quiet: bool = False, stream: Optional[TextIO] = None):
        self.quiet = quiet
        self.stream = stream or sys.stdout
        self._lock = threading.Lock()
        if platform.system() == "Windows":
            colorama_init()

    def _isatty(self) -> bool:
        isatty = getattr(self.stream, "isatty", None)
        return bool(isatty and isatty())

    def _print(self, text: str, color: str = ""):
        line = f"{color}{text}{Style.RESET_ALL}" if color and self._isatty() else text
        with self._lock:
            print(line, file=self.stream, flush=True)

    @staticmethod
    def _now() -> str:
        return datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    def scan_started(self, config: ScanConfig, ok_file: str, false_file: str):
        if self.quiet:
            return
        self._print(f"{self._now()} - scanning {config.prefix}.1-254 ...", Fore.BLUE)
        self._print(f"threads={config.concurrency_limit}, packets={config.probe_count}, "
                    f"timeout={config.probe_timeout:g}s", Fore.YELLOW)
        self._print(f"results go to {ok_file} and {false_file}", Fore.YELLOW)
        self._print("press Ctrl+C to stop", Fore.YELLOW)
        self._print("-" * 30, Fore.CYAN)

    def outcome(self, outcome: ProbeOutcome):
        if self.quiet:
            return
        if outcome.is_reachable:
            self._print(f"✅ {outcome.address} reachable", Fore.GREEN)
        else:
            self._print(f"❌ {outcome.address} unreachable", Fore.RED)

    def interrupted(self):
        if self.quiet:
            return
        self._print("\nscan interrupted, stopping running probes...", Fore.YELLOW)

    def error(self, message: str):
        with self._lock:
            print(f"error: {message}", file=sys.stderr, flush=True)

    def summary(self, summary: ScanSummary, ok_path: Optional[Path] = None,
                false_path: Optional[Path] = None):
        """Final block, printed even in quiet mode"""
        titles = {
            ScanState.COMPLETED: "scan finished",
            ScanState.CANCELLED: "scan cancelled",
            ScanState.FAILED: "scan failed",
        }
        title = titles.get(summary.state, summary.state.value)

        self._print("\n" + "=" * 36, Fore.BLUE)
        self._print(f"{self._now()} - {title}", Fore.BLUE)
        self._print(f"reachable hosts: {summary.reachable_count}", Fore.GREEN)
        self._print(f"unreachable hosts: {summary.unreachable_count}", Fore.RED)
        self._print(f"elapsed: {format_duration(summary.elapsed)}", Fore.YELLOW)
        self._print("=" * 36, Fore.BLUE)

        if ok_path is not None:
            self._print(f"reachable list: {ok_path.resolve()}", Fore.YELLOW)
        if false_path is not None:
            self._print(f"unreachable list: {false_path.resolve()}", Fore.YELLOW)
