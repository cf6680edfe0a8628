from __future__ import annotations

"""
Logging Configuration Models.

Settings consumed by configure_logging(): severity, sinks, rotation policy
and formats, plus the names of chatty loggers that are capped at WARNING.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

_LEVEL_MAP: Dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


@dataclass(frozen=True)
class LoggingConfig:
    """
    Immutable description of the logging setup.

    Attributes:
        level: Minimum severity captured by the root logger.
        console: Write records to stderr.
        log_file: Optional path of a rotating log file.
        max_bytes: Size of one log segment before rotation.
        backup_count: Number of rotated segments kept.
        quiet_loggers: Logger names held at WARNING whatever the level.
        console_fmt: Format of stderr records.
        file_fmt: Format of file records.
        datefmt: Timestamp format of file records.
    """
    level: str = "INFO"
    console: bool = True
    log_file: Optional[str] = None

    max_bytes: int = 1024 * 1024
    backup_count: int = 3
    quiet_loggers: Tuple[str, ...] = ("treesync.core.render.scheduler",)

    console_fmt: str = "%(levelname)s | %(message)s"
    file_fmt: str = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    datefmt: str = "%Y-%m-%d %H:%M:%S"

    @classmethod
    def for_cli(cls, debug: bool = False, log_file: Optional[str] = None) -> "LoggingConfig":
        """Console at WARNING (DEBUG with --debug), optional file sink."""
        return cls(level="DEBUG" if debug else "WARNING", log_file=log_file, quiet_loggers=())
