"""
Helper utilities
"""

import ipaddress
import logging
import sys
from typing import Optional


def setup_logging(log_level: str = "WARNING", log_file: Optional[str] = None):
    """
    Configure the root logger

    Args:
        log_level: Level name
        log_file: Optional file receiving the same records
    """
    level = getattr(logging, str(log_level).upper(), logging.INFO)

    log_format = '%(asctime)s - %(levelname)s - %(message)s'
    date_format = '%Y-%m-%d %H:%M:%S'

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    formatter = logging.Formatter(log_format, date_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        root_logger.addHandler(file_handler)


def ip_sort_key(ip_str: str) -> tuple:
    """
    Numeric sort key for addresses

    Args:
        ip_str: Address string

    Returns:
        Tuple usable as sort key
    """
    try:
        ip = ipaddress.ip_address(ip_str)
        return (0, ip) if ip.version == 4 else (1, ip)
    except ValueError:
        pass

    # dotted numbers that are not a valid address, e.g. 300.1.1.10
    parts = ip_str.split('.')
    if all(part.isdigit() for part in parts):
        return (2, tuple(int(part) for part in parts))

    # anything else last
    return (3, ip_str)


def format_duration(seconds: float) -> str:
    """Elapsed time as minutes and seconds"""
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs}s"
