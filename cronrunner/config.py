"""
Runner configuration management.

Handles loading, saving, and validating the crontab runner configuration.
Crontab files themselves hold the jobs; this file only holds how the
runner behaves (logging, execution limits, reload polling).
"""

import json
import logging
import os
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Optional, List

from dotenv import load_dotenv

# Load .env file
load_dotenv()

logger = logging.getLogger(__name__)

IO_NONE = "none"
IO_FILE = "file"
IO_BOTH = "both"
IO_TARGETS = (IO_NONE, IO_FILE, IO_BOTH)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _get_default_log_file() -> str:
    """Get default log file path from environment or default."""
    if os.environ.get('CRONRUNNER_LOG_DIR'):
        return str(Path(os.environ['CRONRUNNER_LOG_DIR']).expanduser() / "cronrunner.log")
    return "~/.cron/logs/cronrunner.log"


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    io: str = IO_FILE  # 'none', 'file' or 'both' (file and console)
    file: str = None  # Set dynamically in __post_init__
    max_entries: int = 10000  # Cycle the log file after this many entries

    def __post_init__(self):
        if self.file is None:
            self.file = _get_default_log_file()


@dataclass
class ExecutionConfig:
    """Command execution configuration."""
    timeout: Optional[int] = None  # Command timeout in seconds (None = no limit)
    max_workers: int = 4  # Concurrent trigger dispatches


@dataclass
class WatchConfig:
    """Crontab reload configuration."""
    poll_interval: float = 2.0  # Seconds between modification checks


class RunnerConfig:
    """
    Runner configuration manager.

    Loads and manages configuration from a JSON file,
    with support for validation and defaults.

    Configuration path priority:
    1. Explicit config_path argument
    2. CRONRUNNER_CONFIG_PATH environment variable
    3. Default: ~/.cron/cronrunner.json
    """

    DEFAULT_CONFIG_PATH = Path.home() / ".cron" / "cronrunner.json"

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize runner configuration.

        Args:
            config_path: Path to configuration file. If None, uses env var or default.
        """
        if config_path:
            self.config_path = Path(config_path).expanduser()
        elif os.environ.get('CRONRUNNER_CONFIG_PATH'):
            self.config_path = Path(os.environ['CRONRUNNER_CONFIG_PATH']).expanduser()
        else:
            self.config_path = self.DEFAULT_CONFIG_PATH
        self.crontabs: List[str] = []
        self.logging: LoggingConfig = LoggingConfig()
        self.execution: ExecutionConfig = ExecutionConfig()
        self.watch: WatchConfig = WatchConfig()

        if self.config_path.exists():
            self.load()
        else:
            logger.debug(f"No config found at {self.config_path}, using defaults")

    def load(self):
        """Load configuration from JSON file."""
        try:
            with open(self.config_path, 'r') as f:
                data = json.load(f)

            self.crontabs = list(data.get('crontabs', []))

            if 'logging' in data:
                self.logging = LoggingConfig(**data['logging'])

            if 'execution' in data:
                self.execution = ExecutionConfig(**data['execution'])

            if 'watch' in data:
                self.watch = WatchConfig(**data['watch'])

            logger.info(f"Loaded configuration from {self.config_path}")

        except Exception as e:
            logger.error(f"Failed to load config from {self.config_path}: {e}")
            raise

    def save(self):
        """Save configuration to JSON file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            'crontabs': self.crontabs,
            'logging': asdict(self.logging),
            'execution': asdict(self.execution),
            'watch': asdict(self.watch)
        }

        with open(self.config_path, 'w') as f:
            json.dump(data, f, indent=2)

        logger.info(f"Saved configuration to {self.config_path}")

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if self.logging.level.upper() not in LOG_LEVELS:
            errors.append(f"logging: unknown level '{self.logging.level}'")
        if self.logging.io not in IO_TARGETS:
            errors.append(f"logging: 'io' must be one of {', '.join(IO_TARGETS)}")
        if self.logging.max_entries <= 0:
            errors.append("logging: 'max_entries' must be positive")

        if self.execution.timeout is not None and self.execution.timeout <= 0:
            errors.append("execution: 'timeout' must be positive")
        if self.execution.max_workers <= 0:
            errors.append("execution: 'max_workers' must be positive")

        if self.watch.poll_interval <= 0:
            errors.append("watch: 'poll_interval' must be positive")

        for crontab in self.crontabs:
            if not str(crontab).strip():
                errors.append("crontabs: empty path")

        return errors

    def __repr__(self):
        return f"RunnerConfig(crontabs={len(self.crontabs)}, path={self.config_path})"
