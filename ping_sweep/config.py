"""
Configuration and settings loading
"""

import json
import logging
import re
from dataclasses import dataclass, asdict, fields
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

PREFIX_PATTERN = re.compile(r"^[0-9]+\.[0-9]+\.[0-9]+$")

MAX_CONCURRENCY = 200
MAX_PROBE_COUNT = 20
MAX_PROBE_TIMEOUT = 10.0


class ReportFormat(Enum):
    """Summary report format"""
    TEXT = "text"
    JSON = "json"
    CSV = "csv"


@dataclass(frozen=True)
class ScanConfig:
    """Parameters of one scan, fixed before it starts"""

    prefix: str
    concurrency_limit: int = 50
    probe_count: int = 3
    probe_timeout: float = 2.0

    def __post_init__(self):
        self.validate()

    def validate(self):
        """Defensive bounds, anything stricter belongs to the settings layer"""
        if not isinstance(self.concurrency_limit, int) or self.concurrency_limit < 1:
            raise ConfigurationError(
                f"concurrency_limit must be >= 1, got {self.concurrency_limit!r}"
            )
        if not isinstance(self.probe_count, int) or self.probe_count < 1:
            raise ConfigurationError(
                f"probe_count must be >= 1, got {self.probe_count!r}"
            )
        if not isinstance(self.probe_timeout, (int, float)) or self.probe_timeout <= 0:
            raise ConfigurationError(
                f"probe_timeout must be > 0, got {self.probe_timeout!r}"
            )
        if not self.prefix:
            raise ConfigurationError("prefix must not be empty")


@dataclass
class AppSettings:
    """Scan parameters plus output, logging and presentation settings"""

    # Scan parameters
    prefix: str = "156.238.236"
    concurrency_limit: int = 50
    probe_count: int = 3
    probe_timeout: float = 2.0

    # Result files
    ok_file: str = "./ping_ok.txt"
    false_file: str = "./ping_false.txt"
    sort_results: bool = False

    # Report
    report_file: Optional[str] = None
    report_format: ReportFormat = ReportFormat.TEXT

    # Logging and output
    log_level: str = "WARNING"
    log_file: Optional[str] = None
    quiet: bool = False

    def validate(self):
        """
        Range checks applied to user input

        Raises:
            ConfigurationError: if any value is out of range
        """
        if not PREFIX_PATTERN.match(str(self.prefix)):
            raise ConfigurationError(
                f"invalid network prefix {self.prefix!r}, expected xxx.xxx.xxx"
            )
        if not isinstance(self.concurrency_limit, int) or not 1 <= self.concurrency_limit <= MAX_CONCURRENCY:
            raise ConfigurationError(
                f"thread count must be an integer between 1 and {MAX_CONCURRENCY}"
            )
        if not isinstance(self.probe_count, int) or not 1 <= self.probe_count <= MAX_PROBE_COUNT:
            raise ConfigurationError(
                f"ping count must be an integer between 1 and {MAX_PROBE_COUNT}"
            )
        if not isinstance(self.probe_timeout, (int, float)) or not 0 < self.probe_timeout <= MAX_PROBE_TIMEOUT:
            raise ConfigurationError(
                f"timeout must be a number in (0, {MAX_PROBE_TIMEOUT:g}]"
            )

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if str(self.log_level).upper() not in valid_log_levels:
            raise ConfigurationError(f"log_level must be one of: {valid_log_levels}")

    def scan_config(self) -> ScanConfig:
        """Build the immutable scan configuration"""
        self.validate()
        return ScanConfig(
            prefix=self.prefix,
            concurrency_limit=self.concurrency_limit,
            probe_count=self.probe_count,
            probe_timeout=float(self.probe_timeout),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        data = asdict(self)
        data["report_format"] = self.report_format.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppSettings":
        """Create from dictionary, unknown keys are ignored"""
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown settings: {', '.join(sorted(unknown))}")

        values = {key: value for key, value in data.items() if key in known}

        if isinstance(values.get("report_format"), str):
            try:
                values["report_format"] = ReportFormat(values["report_format"].lower())
            except ValueError:
                raise ConfigurationError(
                    f"unknown report format {values['report_format']!r}"
                ) from None

        return cls(**values)


class ConfigLoader:
    """Settings loader: defaults merged with an optional YAML/JSON file"""

    CONFIG_FILES = [
        "ping_sweep.yaml",
        "config/ping_sweep.yaml",
        "ping_sweep.json",
    ]

    DEFAULT_CONFIG = {
        "prefix": "156.238.236",
        "concurrency_limit": 50,
        "probe_count": 3,
        "probe_timeout": 2.0,
        "ok_file": "./ping_ok.txt",
        "false_file": "./ping_false.txt",
        "sort_results": False,
        "report_file": None,
        "report_format": "text",
        "log_level": "WARNING",
        "log_file": None,
        "quiet": False,
    }

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> AppSettings:
        """
        Load settings

        Args:
            config_path: Path to a settings file (optional)

        Returns:
            Settings object

        Raises:
            ConfigurationError: if the file is missing or cannot be parsed
        """
        config_dict = cls.DEFAULT_CONFIG.copy()

        found_config = cls._find_config_file(config_path)

        if found_config:
            config_dict.update(cls._load_config_file(found_config))
            logger.info(f"Loaded settings from {found_config}")
        else:
            logger.debug("No settings file found, using defaults")

        return AppSettings.from_dict(config_dict)

    @classmethod
    def _find_config_file(cls, config_path: Optional[str] = None) -> Optional[Path]:
        """Locate the settings file"""
        if config_path:
            path = Path(config_path)
            if not path.exists():
                raise ConfigurationError(f"settings file not found: {config_path}")
            return path

        for config_file in cls.CONFIG_FILES:
            path = Path(config_file)
            if path.exists():
                return path

        return None

    @staticmethod
    def _load_config_file(filepath: Path) -> Dict[str, Any]:
        """Parse a YAML or JSON settings file"""
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                if filepath.suffix.lower() == ".json":
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f) or {}
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"cannot read settings file {filepath}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"settings file {filepath} must contain a mapping")
        return data
