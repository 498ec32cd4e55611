"""
Command execution for crontab jobs.

A CommandAction runs one executable with its arguments each time its
schedule fires. The process is launched directly (no shell), its output
is streamed into the log, and failures are logged rather than raised
into the scheduler.
"""

import logging
import os
import subprocess
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional, List

logger = logging.getLogger(__name__)


class JobExecutionError(Exception):
    """Raised when job execution fails."""
    pass


class NotExecutableError(Exception):
    """Raised when a command does not point at an executable file."""

    def __init__(self, path: str):
        super().__init__(f"Executable {path} is NOT executable!")
        self.path = path


def command_argv(command: str) -> List[str]:
    """
    Split crontab command text into argv.

    Arguments are separated by whitespace only; quotes have no special
    meaning. Backslashes doubled by the crontab parser are undone.
    """
    return command.replace("\\\\", "\\").split()


def command_path(command: str) -> str:
    """Return the executable path of a command."""
    argv = command_argv(command)
    return argv[0] if argv else ""


def validate_executable(command: str) -> Path:
    """
    Check that a command starts with an executable file.

    Args:
        command: Command text, executable path first

    Returns:
        Path of the executable

    Raises:
        NotExecutableError: If the path is missing, not a file or not executable
    """
    path = command_path(command)
    if not path:
        raise NotExecutableError(path)
    executable = Path(path).expanduser()
    if not executable.is_file() or not os.access(executable, os.X_OK):
        raise NotExecutableError(path)
    return executable


class CommandAction:
    """
    Runs a system executable when triggered.

    Each trigger runs the command exactly once in its own thread. A
    trigger arriving while the previous run is still alive is skipped,
    so runs of the same action never overlap.
    """

    def __init__(
        self,
        command: str,
        timeout: Optional[int] = None,
        working_dir: Optional[str] = None,
        env: Optional[Dict[str, str]] = None
    ):
        """
        Initialize command action.

        Args:
            command: Executable path followed by its arguments
            timeout: Timeout in seconds (None = no limit)
            working_dir: Working directory for the process
            env: Environment for the process (None = inherit)
        """
        self.command = command
        self.argv: List[str] = command_argv(command)
        self.timeout = timeout
        self.working_dir = working_dir
        self.env = env
        self.last_result: Dict[str, Any] = {}
        self._name = f"command[{command}]"
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    def title(self) -> str:
        return self._name

    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def trigger(self) -> bool:
        """
        Start one run in the background.

        Returns:
            True if a run was started, False if the previous one is still going
        """
        with self._lock:
            if self.is_running():
                logger.warning(f"{self._name} is still running, skipping this trigger")
                return False
            logger.info(f"{self._name} is executing")
            self._thread = threading.Thread(
                target=self._run_logged,
                name=f"cron-{os.path.basename(self.argv[0]) if self.argv else 'job'}",
                daemon=True
            )
            self._thread.start()
            return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for a triggered run to finish. Returns False on timeout."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _run_logged(self):
        try:
            self.run()
        except JobExecutionError as e:
            logger.error(f"{self._name} failed: {e}")
        except Exception as e:
            logger.error(f"{self._name} caught exception: {e}", exc_info=True)

    def run(self) -> Dict[str, Any]:
        """
        Run the command to completion.

        Returns:
            Dict with stdout, stderr, returncode, run_id and duration_seconds

        Raises:
            JobExecutionError: If the command cannot start, times out or exits non-zero
        """
        run_id = str(uuid.uuid4())[:8]
        log_prefix = f"[{self._name}:{run_id}] "
        start_time = datetime.now()

        if not self.argv:
            raise JobExecutionError("Empty command")

        try:
            process = subprocess.Popen(
                self.argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                cwd=self.working_dir,
                env=self.env
            )
        except OSError as e:
            self._record(run_id, start_time, 'failed', None, str(e))
            raise JobExecutionError(f"Command could not be started: {e}") from e

        stdout_lines: List[str] = []
        stderr_lines: List[str] = []

        def read_stream(stream, output_list):
            for line in stream:
                line = line.rstrip('\n')
                output_list.append(line)
                logger.info(f"{log_prefix}{line}")

        readers = [
            threading.Thread(target=read_stream, args=(process.stdout, stdout_lines), daemon=True),
            threading.Thread(target=read_stream, args=(process.stderr, stderr_lines), daemon=True),
        ]
        for reader in readers:
            reader.start()

        try:
            process.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired as e:
            process.kill()
            process.wait()
            for reader in readers:
                reader.join()
            self._record(run_id, start_time, 'failed', process.returncode,
                         f"timed out after {self.timeout}s")
            logger.error(f"{log_prefix}Command timed out after {self.timeout}s")
            raise JobExecutionError(f"Command timed out after {self.timeout}s") from e

        for reader in readers:
            reader.join()

        stdout = '\n'.join(stdout_lines)
        stderr = '\n'.join(stderr_lines)
        logger.info(f"{log_prefix}Executed. Exit value was: {process.returncode}")

        if process.returncode != 0:
            self._record(run_id, start_time, 'failed', process.returncode, stderr)
            raise JobExecutionError(
                f"Command failed with exit code {process.returncode}: {stderr}"
            )

        stats = self._record(run_id, start_time, 'success', process.returncode, None)
        return {
            'stdout': stdout,
            'stderr': stderr,
            'returncode': process.returncode,
            'run_id': run_id,
            'duration_seconds': stats['duration_seconds'],
        }

    def _record(self, run_id, start_time, status, returncode, error) -> Dict[str, Any]:
        end_time = datetime.now()
        self.last_result = {
            'command': self.command,
            'run_id': run_id,
            'status': status,
            'returncode': returncode,
            'error': error,
            'duration_seconds': (end_time - start_time).total_seconds(),
            'timestamp': end_time.isoformat()
        }
        return self.last_result

    def __repr__(self):
        return f"CommandAction({self.command!r})"
