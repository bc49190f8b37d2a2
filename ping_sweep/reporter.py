"""
Result files and summary reports
"""

import csv
import io
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .config import AppSettings, ReportFormat
from .models import Address, ResultSet, ScanSummary
from .utils import ip_sort_key

logger = logging.getLogger(__name__)


class ResultWriter:
    """Writes reachable and unreachable addresses to two text files"""

    def __init__(self, ok_file: str, false_file: str):
        self.ok_path = Path(ok_file)
        self.false_path = Path(false_file)

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "ResultWriter":
        return cls(settings.ok_file, settings.false_file)

    def reset(self):
        """Truncate both files before a scan"""
        for path in (self.ok_path, self.false_path):
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("", encoding="utf-8")

    def write(self, snapshot: Tuple[ResultSet, ResultSet], sort: bool = False) -> Tuple[Path, Path]:
        """
        Save a result snapshot, one address per line

        Args:
            snapshot: (reachable, unreachable) from ResultSink.snapshot()
            sort: Order addresses numerically instead of by arrival

        Returns:
            Paths of the two files
        """
        reachable, unreachable = snapshot
        self._write_list(self.ok_path, reachable, sort)
        self._write_list(self.false_path, unreachable, sort)
        logger.info(f"Saved {len(reachable)} reachable hosts to {self.ok_path} and "
                    f"{len(unreachable)} unreachable hosts to {self.false_path}")
        return self.ok_path, self.false_path

    @staticmethod
    def _write_list(path: Path, addresses: Iterable[Address], sort: bool):
        lines = [str(address) for address in addresses]
        if sort:
            lines.sort(key=ip_sort_key)

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            for line in lines:
                f.write(line + "\n")


class ReportGenerator:
    """Summary report renderer"""

    def __init__(self, report_format: ReportFormat = ReportFormat.TEXT):
        self.report_format = report_format

    def generate(self, summary: ScanSummary, snapshot: Tuple[ResultSet, ResultSet]) -> str:
        """
        Render the report

        Args:
            summary: Scan summary
            snapshot: (reachable, unreachable) result sets

        Returns:
            Report text
        """
        format_methods = {
            ReportFormat.TEXT: self._generate_text,
            ReportFormat.JSON: self._generate_json,
            ReportFormat.CSV: self._generate_csv,
        }

        reachable, unreachable = snapshot
        method = format_methods.get(self.report_format, self._generate_text)
        return method(summary, self._sorted(reachable), self._sorted(unreachable))

    def _generate_text(self, summary: ScanSummary, reachable: List[str], unreachable: List[str]) -> str:
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        report_lines = [
            "=" * 70,
            "PING SWEEP REPORT",
            f"Generated: {timestamp}",
            "=" * 70,
            "",
            f"  State: {summary.state.value}",
            f"  Hosts checked: {summary.total_hosts}",
            f"  Reachable: {summary.reachable_count} ({summary.reachable_percent:.1f}%)",
            f"  Unreachable: {summary.unreachable_count} ({summary.unreachable_percent:.1f}%)",
            f"  Elapsed: {summary.elapsed:.1f} s",
            "",
        ]

        if reachable:
            report_lines.extend(["REACHABLE HOSTS:", "-" * 50])
            report_lines.extend(f"  {ip}" for ip in reachable)
        else:
            report_lines.append("No reachable hosts")

        if unreachable:
            report_lines.extend(["", "UNREACHABLE HOSTS:", "-" * 50])
            report_lines.extend(f"  {ip}" for ip in unreachable)

        report_lines.extend(["", "=" * 70])
        return "\n".join(report_lines)

    def _generate_json(self, summary: ScanSummary, reachable: List[str], unreachable: List[str]) -> str:
        full_report = {
            "metadata": {
                "generated_at": datetime.now().isoformat(),
            },
            "summary": summary.to_dict(),
            "reachable_hosts": reachable,
            "unreachable_hosts": unreachable,
        }
        return json.dumps(full_report, indent=2, ensure_ascii=False)

    def _generate_csv(self, summary: ScanSummary, reachable: List[str], unreachable: List[str]) -> str:
        output = io.StringIO()
        writer = csv.writer(output)

        writer.writerow(["IP Address", "Status"])
        for ip in reachable:
            writer.writerow([ip, "reachable"])
        for ip in unreachable:
            writer.writerow([ip, "unreachable"])

        return output.getvalue()

    @staticmethod
    def _sorted(addresses: Iterable[Address]) -> List[str]:
        return sorted((str(address) for address in addresses), key=ip_sort_key)

    def save_report(self, report: str, filepath: str) -> Optional[Path]:
        """
        Save the report

        Returns:
            Path written, None on failure
        """
        path = Path(filepath)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                f.write(report)
        except OSError as e:
            logger.error(f"Failed to save report to {filepath}: {e}")
            return None

        logger.info(f"Report saved to {filepath}")
        return path
