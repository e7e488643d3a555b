# flightlog/intervals.py
"""
Same-day time spans for flight records.

All arithmetic runs on integer minutes-of-day; outputs that humans read are
rendered as HH:MM. Flights never cross midnight, so an interval is always a
sub-range of [00:00, 24:00) on the record's civil date.
"""

from typing import Any, NamedTuple, Optional
import datetime
import re

from dateutil import parser as _du_parser

# Precompiled clock formats: "09:30", "9:30", "930", "0930"
_TIME_HHMM = re.compile(r'^\s*(\d{1,2}):(\d{2})(?::\d{2})?\s*$')
_TIME_DIGITS = re.compile(r'^\s*(\d{3,4})\s*$')


class Interval(NamedTuple):
    start: int
    end: int

    @classmethod
    def from_times(cls, start: datetime.time, end: datetime.time) -> "Interval":
        return cls(to_minutes(start), to_minutes(end))

    @property
    def minutes(self) -> int:
        return self.end - self.start


def overlaps(a: Interval, b: Interval) -> bool:
    """
    Strict overlap test. Back-to-back spans (a.end == b.start) do not overlap.
    Callers reject empty or inverted intervals before they get here.
    """
    return a.start < b.end and b.start < a.end


def to_minutes(value: datetime.time) -> int:
    return value.hour * 60 + value.minute


def minutes_to_hhmm(minutes: Optional[int]) -> Optional[str]:
    """
    Convert integer minutes to HH:MM string.
    - Negative values get a '-' prefix
    - Returns None if input is None
    """
    if minutes is None:
        return None
    m = int(minutes)
    sign = "-" if m < 0 else ""
    m = abs(m)
    return f"{sign}{m // 60:02d}:{m % 60:02d}"


def format_slot(start: datetime.time, end: datetime.time) -> str:
    return f"{start.strftime('%H:%M')}-{end.strftime('%H:%M')}"


def parse_clock(value: Any) -> datetime.time:
    """
    Parse a time-of-day the way the logbook forms accept it.

    Accepts datetime.time, "HH:MM", "H:MM", "HH:MM:SS" (seconds dropped) and
    bare digits ("930" -> 09:30, "1415" -> 14:15). Raises ValueError otherwise.
    """
    if isinstance(value, datetime.datetime):
        return value.time().replace(second=0, microsecond=0)
    if isinstance(value, datetime.time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    s = str(value)
    m = _TIME_HHMM.match(s)
    if m:
        h, mm = int(m.group(1)), int(m.group(2))
    else:
        m = _TIME_DIGITS.match(s)
        if not m:
            raise ValueError(f"invalid time of day: {value!r}")
        digits = m.group(1).zfill(4)
        h, mm = int(digits[:2]), int(digits[2:])
    if h > 23 or mm > 59:
        raise ValueError(f"time of day out of range: {value!r}")
    return datetime.time(h, mm)


def parse_day(value: Any) -> datetime.date:
    """
    Parse a civil date. ISO strings are tried first; anything else is read
    day-first, since club paperwork writes dates as dd/mm/yyyy.
    """
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    s = str(value).strip()
    if not s:
        raise ValueError("empty date")
    try:
        return _du_parser.isoparse(s).date()
    except ValueError:
        pass
    try:
        return _du_parser.parse(s, dayfirst=True).date()
    except (ValueError, OverflowError) as e:
        raise ValueError(f"invalid date: {value!r}") from e
