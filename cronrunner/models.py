"""
Data models for cron schedules and scheduled jobs.
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Protocol, Union


class _Every:
    """The cron wildcard, matching every legal value of a time unit."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "EVERY"

    def __str__(self):
        return "*"


EVERY = _Every()

Field = Union[FrozenSet[int], _Every]


def make_field(values: Union[Iterable[int], _Every]) -> Field:
    """Build a TimeSpec field from EVERY or an iterable of integers."""
    if values is EVERY:
        return EVERY
    field = frozenset(int(v) for v in values)
    if not field:
        raise ValueError("A schedule field needs at least one value or EVERY")
    return field


def _render(field: Field) -> str:
    if field is EVERY:
        return "*"
    return ",".join(str(v) for v in sorted(field))


@dataclass(frozen=True)
class TimeSpec:
    """
    When a job is eligible to run.

    Each field is either EVERY or a non-empty frozenset of integers:
    minutes (0-59), hours (0-23), days_of_month (1-31), months (1-12)
    and days_of_week (0-6, Sunday=0). Values are not range checked;
    out-of-range numbers simply never match.
    """
    minutes: Field
    hours: Field
    days_of_month: Field
    months: Field
    days_of_week: Field

    def __post_init__(self):
        for name in ("minutes", "hours", "days_of_month", "months", "days_of_week"):
            object.__setattr__(self, name, make_field(getattr(self, name)))

    def expression(self) -> str:
        """Render as single-spaced cron text, e.g. '0,30 * * 9 0'."""
        return " ".join(_render(f) for f in (
            self.minutes, self.hours, self.days_of_month, self.months, self.days_of_week
        ))

    def __str__(self):
        return self.expression()


class Action(Protocol):
    """The unit of work a job triggers when its schedule matches."""

    def trigger(self) -> None:
        """Start the work. Must return quickly."""

    def title(self) -> str:
        """Stable, human-readable name used in logs."""


class Job:
    """
    A TimeSpec paired with the action it triggers.

    Two jobs are the same job when they hold the very same action
    instance and value-equal schedules.
    """

    __slots__ = ("spec", "action")

    def __init__(self, spec: TimeSpec, action: Action):
        self.spec = spec
        self.action = action

    @property
    def title(self) -> str:
        return self.action.title()

    def __eq__(self, other):
        if not isinstance(other, Job):
            return NotImplemented
        return self.action is other.action and self.spec == other.spec

    def __hash__(self):
        return hash((id(self.action), self.spec))

    def __repr__(self):
        return f"Job({self.spec.expression()!r}, {self.title!r})"
