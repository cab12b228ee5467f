"""
Cron evaluation for the lifecycle jobs.

Contract:
    ``parse_cron``, ``matches_cron`` and ``next_cron_match`` are pure.  The
    scheduler passes in the time from its injected clock; nothing here
    reads the system clock.

Supported syntax per field: ``*``, ``N``, ``N-M``, ``*/S``, ``N-M/S``,
``N/S`` and comma-separated lists of those.  Fields are
``minute hour day_of_month month day_of_week`` with 0 = Sunday.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

# (name, lowest, highest) for each of the five fields, in order.
_FIELDS = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day_of_month", 1, 31),
    ("month", 1, 12),
    ("day_of_week", 0, 6),
)

_SEARCH_LIMIT_MINUTES = 366 * 24 * 60


@dataclass(frozen=True)
class CronSpec:
    """A parsed cron expression: the allowed values of each field."""

    expression: str
    minutes: frozenset[int]
    hours: frozenset[int]
    days_of_month: frozenset[int]
    months: frozenset[int]
    days_of_week: frozenset[int]


def _bounds(term: str, low: int, high: int) -> tuple[int, int]:
    if term == "*":
        return low, high
    if "-" in term:
        first, last = (int(x) for x in term.split("-", 1))
        if first > last:
            raise ValueError(f"Range start > end: {term}")
        return first, last
    value = int(term)
    return value, value


def _expand(field_expr: str, name: str, low: int, high: int) -> frozenset[int]:
    """
    Expand one cron field into the set of values it allows.

    Raises:
        ValueError: malformed term, non-positive step, or value outside
            ``[low, high]``.
    """
    allowed: set[int] = set()
    for term in field_expr.split(","):
        term = term.strip()
        step = 1
        if "/" in term:
            term, step_text = term.split("/", 1)
            step = int(step_text)
            if step < 1:
                raise ValueError(f"Step must be positive in {name}: {step}")
            if term != "*" and "-" not in term:
                # "N/S" runs from N to the top of the field.
                term = f"{term}-{high}"

        first, last = _bounds(term, low, high)
        if first < low or last > high:
            raise ValueError(f"{name} value outside range [{low}, {high}]: {term}")
        allowed.update(range(first, last + 1, step))
    return frozenset(allowed)


def parse_cron(expression: str) -> CronSpec:
    """
    Parse a five-field cron expression.

    Raises:
        ValueError: wrong field count or an invalid field.
    """
    parts = expression.split()
    if len(parts) != len(_FIELDS):
        raise ValueError(
            f"Cron expression must have 5 fields, got {len(parts)}: '{expression}'"
        )
    minutes, hours, dom, months, dow = (
        _expand(part, name, low, high)
        for part, (name, low, high) in zip(parts, _FIELDS)
    )
    return CronSpec(
        expression=expression,
        minutes=minutes,
        hours=hours,
        days_of_month=dom,
        months=months,
        days_of_week=dow,
    )


def matches_cron(spec: CronSpec, moment: datetime) -> bool:
    """True when ``moment`` falls in a minute the spec allows."""
    # datetime.weekday() is 0 = Monday; cron is 0 = Sunday.
    weekday = (moment.weekday() + 1) % 7
    return (
        moment.minute in spec.minutes
        and moment.hour in spec.hours
        and moment.day in spec.days_of_month
        and moment.month in spec.months
        and weekday in spec.days_of_week
    )


def next_cron_match(spec: CronSpec, after: datetime) -> datetime:
    """
    First whole minute strictly after ``after`` that matches ``spec``.

    Raises:
        ValueError: nothing matches within a year (e.g. "0 0 31 2 *").
    """
    candidate = after.replace(second=0, microsecond=0) + timedelta(minutes=1)
    for _ in range(_SEARCH_LIMIT_MINUTES):
        if matches_cron(spec, candidate):
            return candidate
        candidate += timedelta(minutes=1)
    raise ValueError(f"No match for '{spec.expression}' within 366 days after {after}")
