"""
iCalendar (.ics) export.

We convert a weekly schedule into a calendar file that can be imported into:
- Google Calendar
- Outlook
- Apple Calendar

Each class becomes one VEVENT per week for a semester (16 weeks by default),
starting at its next occurrence. Times are written in UTC, and every event
carries display alarms 10, 5 and 1 minutes before it starts.
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Iterable, Optional

from jadwalin.model import TimeInterval
from jadwalin.timeutil import MS_PER_MINUTE, MS_PER_WEEK, next_occurrence

SEMESTER_WEEKS = 16
ALARM_MINUTES = (10, 5, 1)


def _ics_escape(text: str) -> str:
    """
    Escape text for ICS fields (very small subset, sufficient for our use).
    """
    return (
        text.replace("\\", "\\\\").replace("\r\n", "\\n").replace("\n", "\\n").replace(";", "\\;").replace(",", "\\,")
    )


def _dt_utc(instant_ms: int) -> str:
    """
    Convert epoch ms to ICS UTC datetime string 'YYYYMMDDTHHMMSSZ'.
    """
    return datetime.fromtimestamp(instant_ms / 1000, tz=timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def build_ics(
    intervals: Iterable[TimeInterval],
    now_ms: int,
    weeks: int = SEMESTER_WEEKS,
    tz: Optional[tzinfo] = None,
) -> tuple[str, int]:
    """
    Build calendar text. Returns (text, number of VEVENTs).
    """
    lines: list[str] = []
    lines.append("BEGIN:VCALENDAR")
    lines.append("VERSION:2.0")
    lines.append("PRODID:-//jadwalin//Schedule//EN")
    lines.append("CALSCALE:GREGORIAN")
    lines.append("METHOD:PUBLISH")

    dtstamp = _dt_utc(now_ms)
    count = 0
    for iv in intervals:
        first = next_occurrence(iv, now_ms, tz)
        summary = iv.title.strip() or "Jadwal Pribadi"
        slot = f"{int(iv.day)}-{iv.start_minute}-{iv.end_minute}"

        for week in range(weeks):
            start = first + week * MS_PER_WEEK
            end = start + iv.duration * MS_PER_MINUTE

            lines.append("BEGIN:VEVENT")
            lines.append(f"UID:{slot}-{week}@jadwalin")
            lines.append(f"DTSTAMP:{dtstamp}")
            lines.append(f"DTSTART:{_dt_utc(start)}")
            lines.append(f"DTEND:{_dt_utc(end)}")
            lines.append(f"SUMMARY:{_ics_escape(summary)}")
            if iv.location.strip():
                lines.append(f"LOCATION:{_ics_escape(iv.location.strip())}")
            for minutes in ALARM_MINUTES:
                lines.append("BEGIN:VALARM")
                lines.append(f"TRIGGER:-PT{minutes}M")
                lines.append("ACTION:DISPLAY")
                lines.append(f"DESCRIPTION:{_ics_escape(summary)} dimulai dalam {minutes} menit")
                lines.append("END:VALARM")
            lines.append("END:VEVENT")
            count += 1

    lines.append("END:VCALENDAR")

    # ICS standard uses CRLF
    return "\r\n".join(lines) + "\r\n", count


def export_schedule_to_ics(
    intervals: Iterable[TimeInterval],
    out_path: str | Path,
    now_ms: int,
    weeks: int = SEMESTER_WEEKS,
    tz: Optional[tzinfo] = None,
) -> int:
    """
    Export a weekly schedule to an .ics file. Returns number of exported events.
    """
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    text, count = build_ics(intervals, now_ms, weeks=weeks, tz=tz)
    out.write_text(text, encoding="utf-8")
    return count
