"""
Command-line interface for the crontab runner.

Provides CLI commands for:
- Running crontab files (with hot reload on change)
- Checking crontab files without running them
- Running a single command immediately
- Viewing logs
- Managing configuration
"""

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from cronrunner.config import RunnerConfig, IO_TARGETS
from cronrunner.jobs import CommandAction, JobExecutionError, NotExecutableError, validate_executable
from cronrunner.logs import setup_logging
from cronrunner.parser import DEFAULT_CRONTAB, parse_crontab_file, split_job_line
from cronrunner.service import ScheduleManager
from cronrunner.supervisor import CrontabSupervisor

logger = logging.getLogger(__name__)


def get_log_file(config: RunnerConfig, override: Optional[str] = None) -> Path:
    """Get the runner log file path."""
    return Path(override or config.logging.file).expanduser()


def resolve_crontabs(paths: List[str], config: RunnerConfig) -> List[Path]:
    """Crontabs from the command line, else from config, else the default crontab."""
    if paths:
        return [Path(p).expanduser() for p in paths]
    if config.crontabs:
        return [Path(p).expanduser() for p in config.crontabs]
    return [DEFAULT_CRONTAB]


def cmd_run(args):
    """Run crontab files until interrupted."""
    config = RunnerConfig(args.config)
    setup_logging(
        level=config.logging.level,
        io=args.io or config.logging.io,
        log_file=str(get_log_file(config, args.log_file)),
        max_entries=config.logging.max_entries,
        verbose=args.verbose
    )

    errors = config.validate()
    if errors:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"  - {error}")
        sys.exit(1)

    manager = ScheduleManager(
        job_timeout=config.execution.timeout,
        max_workers=config.execution.max_workers
    )
    supervisor = CrontabSupervisor(manager, poll_interval=config.watch.poll_interval)

    crontabs = resolve_crontabs(args.crontabs, config)
    loaded = supervisor.load(crontabs)
    if not loaded:
        logger.warning("No crontab could be loaded; watching nothing")

    supervisor.start()

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        supervisor.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info(f"Running {len(loaded)} crontab(s). Press Ctrl+C to stop.")
    try:
        while not supervisor.wait(1.0):
            pass
    except (KeyboardInterrupt, SystemExit):
        logger.info("Shutting down...")
        supervisor.stop()


def cmd_check(args):
    """Parse crontab files and report what would be scheduled."""
    config = RunnerConfig(args.config)
    setup_logging(io='none', verbose=args.verbose)

    failed = False
    for crontab in resolve_crontabs(args.crontabs, config):
        print(f"\n=== {crontab} ===")
        try:
            entries = parse_crontab_file(crontab)
            with open(crontab, 'r', encoding='utf-8', errors='replace') as f:
                lines = f.read().splitlines()
        except FileNotFoundError as e:
            print(f"  ✗ {e}")
            failed = True
            continue

        parsed = {entry.line_number for entry in entries}
        for entry in entries:
            try:
                validate_executable(entry.command)
                status = "✓"
                note = ""
            except NotExecutableError as e:
                status = "✗"
                note = f"  ({e})"
            print(f"  {status} {entry.line_number:>4}: {entry.schedule}  {entry.command}{note}")

        for number, line in enumerate(lines, start=1):
            if number not in parsed and split_job_line(line) is not None:
                print(f"  - {number:>4}: skipped: {line.strip()}")

        if not entries:
            print("  No jobs found")

    if failed:
        sys.exit(1)


def cmd_run_once(args):
    """Run a command immediately in the foreground."""
    setup_logging(io='both' if args.verbose else 'none', verbose=args.verbose)

    try:
        validate_executable(args.command_line)
        action = CommandAction(args.command_line, timeout=args.timeout)
        result = action.run()
    except (NotExecutableError, JobExecutionError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if result['stdout']:
        print(result['stdout'])
    if result['stderr']:
        print(result['stderr'], file=sys.stderr)
    print(f"\n--- Completed in {result['duration_seconds']:.1f}s (exit {result['returncode']}) ---")


def cmd_logs(args):
    """View the runner log file."""
    config = RunnerConfig(args.config)
    log_file = get_log_file(config)

    if not log_file.exists():
        print(f"No log file found at: {log_file}")
        print("Logs are created when the runner is started.")
        return

    try:
        with open(log_file, 'r', encoding='utf-8', errors='replace') as f:
            lines = f.readlines()
    except OSError as e:
        print(f"Error reading logs: {e}")
        sys.exit(1)

    if args.job:
        lines = [line for line in lines if args.job in line]

    if args.level:
        level_upper = args.level.upper()
        lines = [line for line in lines if f'[{level_upper}]' in line]

    if not args.show_all and args.tail:
        lines = lines[-args.tail:]

    if not lines:
        print("No matching log entries found.")
        return

    for line in lines:
        if args.color:
            if '[ERROR]' in line:
                print(f"\033[91m{line.rstrip()}\033[0m")
            elif '[WARNING]' in line:
                print(f"\033[93m{line.rstrip()}\033[0m")
            elif '[INFO]' in line:
                print(f"\033[92m{line.rstrip()}\033[0m")
            else:
                print(line.rstrip())
        else:
            print(line.rstrip())

    print(f"\n--- Showing {len(lines)} log entries from {log_file} ---")


def cmd_init(args):
    """Write a default configuration file."""
    config = RunnerConfig(args.config)
    if config.config_path.exists() and not args.force:
        print(f"Configuration already exists at: {config.config_path} (use --force to overwrite)")
        return
    config.save()
    print(f"Initialized configuration at: {config.config_path}")


def cmd_show_config(args):
    """Show the effective configuration."""
    config = RunnerConfig(args.config)

    print(f"\nConfiguration file: {config.config_path}")
    crontabs = resolve_crontabs([], config)
    print(f"Crontabs: {', '.join(str(c) for c in crontabs)}")
    print(f"Logging level: {config.logging.level}")
    print(f"Log output: {config.logging.io}")
    print(f"Log file: {config.logging.file}")
    print(f"Log cycles after: {config.logging.max_entries} entries")
    print(f"Command timeout: {config.execution.timeout or 'none'}")
    print(f"Poll interval: {config.watch.poll_interval}s")

    errors = config.validate()
    for error in errors:
        print(f"  ! {error}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='cronrunner',
        description="Crontab runner - run crontab files in-process, reloading them when they change",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    parser.add_argument(
        '-c', '--config',
        type=str,
        help='Path to runner configuration file'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # Run command
    run_parser = subparsers.add_parser('run', help='Run crontab files')
    run_parser.add_argument('crontabs', nargs='*',
                            help=f'Crontab files (default: {DEFAULT_CRONTAB})')
    run_parser.add_argument('--log-file', type=str, help='Log file path')
    run_parser.add_argument('--io', choices=IO_TARGETS,
                            help='Log output: none, file, or both (file and console)')
    run_parser.set_defaults(func=cmd_run)

    # Check command
    check_parser = subparsers.add_parser('check', help='Check crontab files without running them')
    check_parser.add_argument('crontabs', nargs='*',
                              help=f'Crontab files (default: {DEFAULT_CRONTAB})')
    check_parser.set_defaults(func=cmd_check)

    # Run-once command
    run_once_parser = subparsers.add_parser('run-once', help='Run a command immediately')
    run_once_parser.add_argument('command_line', metavar='COMMAND',
                                 help='Executable path and arguments, quoted')
    run_once_parser.add_argument('--timeout', type=int, default=None,
                                 help='Command timeout in seconds')
    run_once_parser.set_defaults(func=cmd_run_once)

    # Logs command
    logs_parser = subparsers.add_parser('logs', help='View runner logs')
    logs_parser.add_argument('--job', type=str, help='Filter logs by command text')
    logs_parser.add_argument('--level', type=str, choices=['info', 'warning', 'error', 'debug'],
                             help='Filter by log level')
    logs_parser.add_argument('--tail', '-n', type=int, default=50, help='Show last N lines (default: 50)')
    logs_parser.add_argument('--all', '-a', dest='show_all', action='store_true',
                             help='Show all logs (not just last N)')
    logs_parser.add_argument('--color', action='store_true', help='Colorize output')
    logs_parser.set_defaults(func=cmd_logs)

    # Init command
    init_parser = subparsers.add_parser('init', help='Write a default configuration file')
    init_parser.add_argument('--force', action='store_true', help='Overwrite an existing file')
    init_parser.set_defaults(func=cmd_init)

    # Show config command
    show_config_parser = subparsers.add_parser('show-config', help='Show configuration')
    show_config_parser.set_defaults(func=cmd_show_config)

    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == '__main__':
    main()
