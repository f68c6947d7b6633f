# src/omniflow/scheduling/cron.py

"""
Five-field cron expressions: minute hour day-of-month month day-of-week.

Supported per field: "*", numbers, ranges "a-b", steps "*/n" and "a-b/n",
comma lists, month names (jan..dec) and weekday names (sun..sat).
Day-of-week accepts 0-7 where both 0 and 7 mean Sunday.

Like classic cron, when both day-of-month and day-of-week are restricted a
day matches if either of them matches.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from ..errors import SchedulingError

_MONTH_NAMES = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_DOW_NAMES = {"sun": 0, "mon": 1, "tue": 2, "wed": 3, "thu": 4, "fri": 5, "sat": 6}

# (name, min, max, aliases)
_FIELDS = (
    ("minute", 0, 59, {}),
    ("hour", 0, 23, {}),
    ("day-of-month", 1, 31, {}),
    ("month", 1, 12, _MONTH_NAMES),
    ("day-of-week", 0, 7, _DOW_NAMES),
)

# Upper bound for next_after(): Feb 29 on a given weekday recurs within 28 years.
_MAX_SEARCH = timedelta(days=366 * 28)


def _parse_value(token: str, name: str, lo: int, hi: int, aliases: dict[str, int]) -> int:
    t = token.strip().lower()
    if t in aliases:
        return aliases[t]
    if not t.isdigit():
        raise SchedulingError(f"Invalid {name} value: {token!r}")
    v = int(t)
    if v < lo or v > hi:
        raise SchedulingError(f"{name} value {v} out of range {lo}-{hi}")
    return v


def _parse_field(raw: str, name: str, lo: int, hi: int, aliases: dict[str, int]) -> frozenset[int]:
    values: set[int] = set()
    for part in raw.split(","):
        part = part.strip()
        if not part:
            raise SchedulingError(f"Empty item in {name} field")

        step = 1
        if "/" in part:
            base, _, step_s = part.partition("/")
            if not step_s.isdigit() or int(step_s) == 0:
                raise SchedulingError(f"Invalid step in {name} field: {part!r}")
            step = int(step_s)
        else:
            base = part

        if base == "*":
            start, end = lo, hi
        elif "-" in base:
            a, _, b = base.partition("-")
            start = _parse_value(a, name, lo, hi, aliases)
            end = _parse_value(b, name, lo, hi, aliases)
            if start > end:
                raise SchedulingError(f"Invalid range in {name} field: {part!r}")
        else:
            start = _parse_value(base, name, lo, hi, aliases)
            # "5/15" means "from 5 to the end, every 15"
            end = hi if "/" in part else start

        values.update(range(start, end + 1, step))
    return frozenset(values)


@dataclass(frozen=True, slots=True)
class CronExpression:
    expression: str
    minutes: frozenset[int]
    hours: frozenset[int]
    days: frozenset[int]
    months: frozenset[int]
    weekdays: frozenset[int]  # 0 = Sunday
    dom_restricted: bool
    dow_restricted: bool

    @classmethod
    def parse(cls, expression: str) -> CronExpression:
        if not isinstance(expression, str):
            raise SchedulingError("Cron expression must be a string")
        parts = expression.split()
        if len(parts) != 5:
            raise SchedulingError(
                f"Cron expression must have 5 fields (minute hour day month weekday): {expression!r}"
            )

        parsed = [
            _parse_field(raw, name, lo, hi, aliases)
            for raw, (name, lo, hi, aliases) in zip(parts, _FIELDS)
        ]
        weekdays = frozenset(0 if d == 7 else d for d in parsed[4])

        return cls(
            expression=" ".join(parts),
            minutes=parsed[0],
            hours=parsed[1],
            days=parsed[2],
            months=parsed[3],
            weekdays=weekdays,
            dom_restricted=parts[2] != "*",
            dow_restricted=parts[4] != "*",
        )

    def _day_matches(self, dt: datetime) -> bool:
        dom_ok = dt.day in self.days
        # datetime.weekday(): Monday=0 .. Sunday=6 -> cron: Sunday=0 .. Saturday=6
        dow_ok = (dt.weekday() + 1) % 7 in self.weekdays
        if self.dom_restricted and self.dow_restricted:
            return dom_ok or dow_ok
        return dom_ok and dow_ok

    def matches(self, dt: datetime) -> bool:
        return (
            dt.minute in self.minutes
            and dt.hour in self.hours
            and dt.month in self.months
            and self._day_matches(dt)
        )

    def next_after(self, dt: datetime) -> datetime:
        """First matching minute strictly after dt (keeps dt's tzinfo)."""
        cur = dt.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit = dt + _MAX_SEARCH

        while cur <= limit:
            if cur.month not in self.months:
                # Jump to the first minute of the next month.
                year, month = (cur.year + 1, 1) if cur.month == 12 else (cur.year, cur.month + 1)
                cur = cur.replace(year=year, month=month, day=1, hour=0, minute=0)
                continue
            if not self._day_matches(cur):
                cur = cur.replace(hour=0, minute=0) + timedelta(days=1)
                continue
            if cur.hour not in self.hours:
                cur = cur.replace(minute=0) + timedelta(hours=1)
                continue
            if cur.minute not in self.minutes:
                cur += timedelta(minutes=1)
                continue
            return cur

        raise SchedulingError(f"Cron expression never fires: {self.expression!r}")


def validate_cron(expression: str) -> CronExpression:
    """Parse or raise SchedulingError; used at registration time."""
    return CronExpression.parse(expression)
