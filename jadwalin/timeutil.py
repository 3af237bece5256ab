"""
Time normalization.

All absolute instants are epoch milliseconds (UTC). Civil (wall-clock) values
are interpreted in one fixed timezone, Asia/Jakarta by default (UTC+7, no DST).

Clock strings use the 24h "HH:mm" format and map to minutes since midnight:

    parse_clock("09:40") == 580
    format_clock(580) == "09:40"
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from jadwalin.clock import SystemClock
from jadwalin.config import DEFAULT_TIMEZONE
from jadwalin.errors import ParseError
from jadwalin.model import MINUTES_PER_DAY, TimeInterval

TIMEZONE = ZoneInfo(DEFAULT_TIMEZONE)

MS_PER_MINUTE = 60_000
MS_PER_DAY = 86_400_000
MS_PER_WEEK = 7 * MS_PER_DAY

_CLOCK_RE = re.compile(r"^(\d{2}):(\d{2})$")


def _tz(tz: Optional[tzinfo]) -> tzinfo:
    return tz if tz is not None else TIMEZONE


def to_absolute(civil: datetime, tz: Optional[tzinfo] = None) -> int:
    """
    Convert a civil datetime to epoch milliseconds.

    Naive datetimes are read as wall-clock time in the app timezone;
    aware datetimes keep their own offset.
    """
    if civil.tzinfo is None:
        civil = civil.replace(tzinfo=_tz(tz))
    return int(civil.timestamp() * 1000)


def to_civil(instant_ms: int, tz: Optional[tzinfo] = None) -> datetime:
    """Convert epoch milliseconds to an aware datetime in the app timezone."""
    utc = datetime.fromtimestamp(instant_ms / 1000, tz=timezone.utc)
    return utc.astimezone(_tz(tz))


def parse_clock(text: str) -> int:
    """
    Parse 'HH:mm' into minutes since midnight.

    Raises ParseError for a wrong separator, non-numeric or mis-sized fields,
    an hour outside 0-23 or a minute outside 0-59.
    """
    if not isinstance(text, str):
        raise ParseError(f"Clock value must be a string: {text!r}")
    m = _CLOCK_RE.match(text.strip())
    if not m:
        raise ParseError(f"Invalid time format: {text!r} (expected HH:mm)")
    hour, minute = int(m.group(1)), int(m.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ParseError(f"Invalid time value: {text!r}")
    return hour * 60 + minute


def format_clock(minutes: int) -> str:
    """Format minutes since midnight as zero-padded 'HH:mm'."""
    if not (0 <= minutes < MINUTES_PER_DAY):
        raise ValueError(f"Minutes out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_clock_range(text: str) -> tuple[int, int]:
    """
    Parse 'HH:mm-HH:mm' into (start, end) minutes.

    '24:00' is accepted as the end of the day.
    """
    parts = text.split("-")
    if len(parts) != 2:
        raise ParseError(f"Invalid time range: {text!r} (expected HH:mm-HH:mm)")
    start = parse_clock(parts[0])
    end_s = parts[1].strip()
    end = MINUTES_PER_DAY if end_s == "24:00" else parse_clock(end_s)
    return start, end


def fmt_time(instant_ms: int, tz: Optional[tzinfo] = None) -> str:
    return to_civil(instant_ms, tz).strftime("%H:%M")


def fmt_date(instant_ms: int, tz: Optional[tzinfo] = None) -> str:
    return to_civil(instant_ms, tz).strftime("%d/%m/%Y")


def fmt_datetime(instant_ms: int, tz: Optional[tzinfo] = None) -> str:
    return to_civil(instant_ms, tz).strftime("%d/%m/%Y %H:%M")


_DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y")
_DATETIME_FORMATS = ("%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M", "%d/%m/%Y %H:%M")


def parse_date(text: str, tz: Optional[tzinfo] = None) -> int:
    """Parse a civil date (midnight in the app timezone) into epoch ms."""
    for fmt in _DATE_FORMATS:
        try:
            return to_absolute(datetime.strptime(text.strip(), fmt), tz)
        except ValueError:
            continue
    raise ParseError(f"Invalid date: {text!r} (expected YYYY-MM-DD or DD/MM/YYYY)")


def parse_datetime(text: str, tz: Optional[tzinfo] = None) -> int:
    """Parse a civil date-time like '2026-02-19 10:15' into epoch ms."""
    for fmt in _DATETIME_FORMATS:
        try:
            return to_absolute(datetime.strptime(text.strip(), fmt), tz)
        except ValueError:
            continue
    raise ParseError(f"Invalid date-time: {text!r} (expected YYYY-MM-DD HH:mm)")


def weekday_of(instant_ms: int, tz: Optional[tzinfo] = None) -> int:
    """Day of week in the web app numbering (Sunday = 0)."""
    return (to_civil(instant_ms, tz).weekday() + 1) % 7


def next_occurrence(interval: TimeInterval, now_ms: int, tz: Optional[tzinfo] = None) -> int:
    """
    Next instant at which a weekly interval starts, strictly after now.

    A class that already started today is pushed to the same weekday next week.
    """
    civil_now = to_civil(now_ms, tz)
    midnight = civil_now.replace(hour=0, minute=0, second=0, microsecond=0)
    days_until = (int(interval.day) - weekday_of(now_ms, tz)) % 7
    candidate = midnight + timedelta(days=days_until, minutes=interval.start_minute)
    if to_absolute(candidate) <= now_ms:
        candidate += timedelta(days=7)
    return to_absolute(candidate)


def now_ms(clock=None) -> int:
    """Current instant from `clock`, or from the system clock when none is given."""
    if clock is None:
        clock = SystemClock()
    return clock.now_ms()


def minute_of_week(day: int, minute: int) -> int:
    """Position within the week (Sunday 00:00 = 0), used to order weekly slots."""
    return int(day) * MINUTES_PER_DAY + minute
