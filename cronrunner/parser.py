"""
Crontab parsing.

Turns UNIX cron schedule text into TimeSpec values, and crontab files
into (schedule, command) entries. The syntax for one job line is::

    [ m  h  dm  m  dw  <path and args to executable> ]
      |  |  |   |  |
      |  |  |   |  +----- day of week (0 - 6) (Sunday=0)
      |  |  |   +-------- month (1 - 12)
      |  |  +------------ day of month (1 - 31)
      |  +--------------- hour (0 - 23)
      +------------------ minute (0 - 59)

Each field is an integer, a comma separated list of integers, or '*'.
"""

import logging
import re
import string
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from cronrunner.models import EVERY, TimeSpec

logger = logging.getLogger(__name__)

DEFAULT_CRONTAB = Path.home() / ".cron" / "crontab"

EVERY_TOKEN = "*"
FIELD_SEPARATOR = " "
VALUE_SEPARATOR = ","
FIELD_COUNT = 5

# Lines of this length or shorter are never job lines
MIN_LINE_LENGTH = 11

_WHITESPACE = re.compile(r"\s+")
_INTEGER = re.compile(r"[+-]?[0-9]+")


class ParseError(ValueError):
    """Raised when schedule text is not valid cron syntax."""

    def __init__(self, message: str, text: str = ""):
        super().__init__(f"Cron syntax error: {message}" + (f" in '{text}'" if text else ""))
        self.reason = message
        self.text = text


@dataclass(frozen=True)
class CrontabEntry:
    """One job line recovered from a crontab file."""
    schedule: str
    command: str
    spec: TimeSpec
    line_number: int


def normalize_whitespace(text: str) -> str:
    """Trim and collapse every run of whitespace to a single space."""
    return _WHITESPACE.sub(" ", text.strip())


def escape_backslashes(text: str) -> str:
    return text.replace("\\", "\\\\")


def _parse_field(field: str, text: str):
    tokens = field.split(VALUE_SEPARATOR)
    if EVERY_TOKEN in tokens:
        if len(tokens) != 1:
            raise ParseError("invalid token", text)
        return EVERY

    values = set()
    for token in tokens:
        if not _INTEGER.fullmatch(token):
            raise ParseError("invalid token", text)
        values.add(int(token))
    return values


def parse_expression(text: str) -> TimeSpec:
    """
    Parse a five field cron schedule into a TimeSpec.

    Args:
        text: Schedule such as "0,10,20,30,40,50 * * 9 0"

    Returns:
        The parsed TimeSpec

    Raises:
        ParseError: If the field count is wrong or a token is not an integer
    """
    fields = normalize_whitespace(text).split(FIELD_SEPARATOR)
    if len(fields) != FIELD_COUNT:
        raise ParseError("wrong field count", text)

    minutes, hours, days_of_month, months, days_of_week = (
        _parse_field(field, text) for field in fields
    )
    return TimeSpec(
        minutes=minutes,
        hours=hours,
        days_of_month=days_of_month,
        months=months,
        days_of_week=days_of_week,
    )


def _is_schedule_char(line: str, index: int) -> bool:
    char = line[index]
    if char == " " and index > 0:
        return True
    return char == EVERY_TOKEN or char == VALUE_SEPARATOR or char in string.digits


def split_job_line(line: str):
    """
    Split a crontab line into its schedule prefix and command text.

    Returns:
        (schedule, command) tuple, or None if the line is not a job line.
        The command is whitespace-normalized and backslash-escaped; it is
        empty when the whole line consists of schedule characters.
    """
    if len(line) <= MIN_LINE_LENGTH or not _is_schedule_char(line, 0):
        return None

    end = 1
    while end < len(line) and _is_schedule_char(line, end):
        end += 1

    command = escape_backslashes(normalize_whitespace(line[end:]))
    return line[:end], command


def parse_crontab_file(path: Union[str, Path]) -> List[CrontabEntry]:
    """
    Read job entries from a crontab file.

    Identical schedule and command pairs collapse to one entry. Lines
    with an unparsable schedule are logged and skipped.

    Args:
        path: Crontab file path

    Returns:
        List of entries in file order (empty if no jobs were found)

    Raises:
        FileNotFoundError: If the file cannot be opened
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            lines = f.read().splitlines()
    except FileNotFoundError:
        raise
    except OSError as e:
        raise FileNotFoundError(f"Cannot open crontab {path}: {e}") from e

    entries: List[CrontabEntry] = []
    seen = set()

    for line_number, line in enumerate(lines, start=1):
        parts = split_job_line(line)
        if parts is None:
            continue

        schedule, command = parts
        key = (normalize_whitespace(schedule), command)
        if key in seen:
            logger.debug(f"{path}:{line_number}: duplicate job skipped")
            continue
        seen.add(key)

        if not command:
            logger.error(f"{path}:{line_number}: no command after schedule - skipping job")
            continue

        try:
            spec = parse_expression(schedule)
        except ParseError as e:
            logger.error(f"{path}:{line_number}: {e} - skipping job, bad format: {schedule.strip()}")
            continue

        entries.append(CrontabEntry(
            schedule=key[0],
            command=command,
            spec=spec,
            line_number=line_number,
        ))

    if not entries and not seen:
        logger.info(f"No jobs found in {path}")

    return entries
