"""
Crontab Runner

An in-process, crontab-compatible job scheduler. Parses UNIX cron
schedules, checks them against the wall clock once a minute, and runs
the matching jobs.

Features:
- Classic five-field cron syntax (numbers, comma lists and '*')
- Jobs from code (any object with trigger() and title()) or from crontab files
- Add and remove jobs while the scheduler runs
- Crontab files reloaded automatically when they change on disk
"""

from cronrunner.core import SchedulerCore, matches
from cronrunner.jobs import CommandAction, JobExecutionError, NotExecutableError
from cronrunner.models import EVERY, Job, TimeSpec
from cronrunner.parser import DEFAULT_CRONTAB, ParseError, parse_crontab_file, parse_expression
from cronrunner.service import ScheduleManager
from cronrunner.supervisor import CrontabSupervisor

__version__ = "0.1.0"
__all__ = [
    "CommandAction",
    "CrontabSupervisor",
    "DEFAULT_CRONTAB",
    "EVERY",
    "Job",
    "JobExecutionError",
    "NotExecutableError",
    "ParseError",
    "ScheduleManager",
    "SchedulerCore",
    "TimeSpec",
    "matches",
    "parse_crontab_file",
    "parse_expression",
]
