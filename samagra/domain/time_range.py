"""Calendar date + half-open clock interval used for every slot decision.

Dates are ``YYYY-MM-DD`` strings and times are ``HH:MM`` 24-hour strings.
Both formats are fixed-width and zero-padded, so plain string comparison
orders them correctly ("09:05" < "09:30") and no timezone or duration
arithmetic is needed.
"""
import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..exceptions import ValidationError

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^\d{2}:\d{2}$")


def is_valid_date(value) -> bool:
    if not isinstance(value, str) or not _DATE_RE.match(value):
        return False
    try:
        datetime.strptime(value, DATE_FORMAT)
    except ValueError:
        return False
    return True


def is_valid_time(value) -> bool:
    if not isinstance(value, str) or not _TIME_RE.match(value):
        return False
    try:
        datetime.strptime(value, TIME_FORMAT)
    except ValueError:
        return False
    return True


def validate_date(value) -> str:
    if not is_valid_date(value):
        raise ValidationError("Invalid date. Use YYYY-MM-DD")
    return value


def validate_time(value) -> str:
    if not is_valid_time(value):
        raise ValidationError("Invalid time. Use HH:MM (24-hour)")
    return value


def next_weekly_date(value: str) -> str:
    """Same weekday one week later; rolls over month and year boundaries."""
    day = datetime.strptime(validate_date(value), DATE_FORMAT).date()
    return (day + timedelta(days=7)).strftime(DATE_FORMAT)


@dataclass(frozen=True)
class TimeRange:
    date: str
    start: str
    end: str

    @classmethod
    def parse(cls, date: str, start: str, end: str) -> "TimeRange":
        validate_date(date)
        validate_time(start)
        validate_time(end)
        if not start < end:
            raise ValidationError("Start time must be before end time")
        return cls(date=date, start=start, end=end)

    def overlaps(self, start: str, end: str) -> bool:
        # [s1, e1) and [s2, e2) are disjoint iff e1 <= s2 or s1 >= e2
        return not (self.end <= start or self.start >= end)
