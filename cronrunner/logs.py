"""
Logging setup for the crontab runner.

Log output goes nowhere, to a file, or to a file and the console. The
log file cycles after a fixed number of entries rather than a size.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

from cronrunner.config import IO_BOTH, IO_FILE, IO_NONE, IO_TARGETS

CONSOLE_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'
FILE_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Handlers installed by setup_logging, replaced on the next call
_installed: List[logging.Handler] = []


class EntryCountRotatingFileHandler(RotatingFileHandler):
    """Rotating file handler that cycles after max_entries records."""

    def __init__(self, filename, max_entries: int = 10000, backup_count: int = 1,
                 encoding: Optional[str] = 'utf-8'):
        super().__init__(filename, maxBytes=0, backupCount=backup_count,
                         encoding=encoding, delay=True)
        self.max_entries = max_entries
        self.entries = 0

    def shouldRollover(self, record):
        return self.max_entries > 0 and self.entries >= self.max_entries

    def doRollover(self):
        super().doRollover()
        self.entries = 0

    def emit(self, record):
        super().emit(record)
        self.entries += 1


def setup_logging(
    level: str = "INFO",
    io: str = IO_BOTH,
    log_file: Optional[str] = None,
    max_entries: int = 10000,
    verbose: bool = False
) -> List[logging.Handler]:
    """
    Setup logging configuration.

    Args:
        level: Log level name
        io: 'none', 'file' or 'both' (file and console)
        log_file: Log file path, required for 'file'; 'both' without one logs to the console only
        max_entries: Entries after which the log file cycles
        verbose: Force DEBUG level

    Returns:
        The handlers installed on the root logger
    """
    if io not in IO_TARGETS:
        raise ValueError(f"Unknown log io target '{io}', expected one of {', '.join(IO_TARGETS)}")
    if io == IO_FILE and not log_file:
        raise ValueError("Log io target 'file' needs a log file")

    log_level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in _installed:
        root_logger.removeHandler(handler)
        handler.close()
    _installed.clear()

    handlers: List[logging.Handler] = []

    if io == IO_BOTH:
        # Console handler
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
        handlers.append(console_handler)

    if io in (IO_FILE, IO_BOTH) and log_file:
        # File handler
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = EntryCountRotatingFileHandler(log_path, max_entries=max_entries)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(file_handler)

    if io == IO_NONE:
        handlers.append(logging.NullHandler())

    root_logger.setLevel(log_level)
    for handler in handlers:
        root_logger.addHandler(handler)
    _installed.extend(handlers)
    return handlers
