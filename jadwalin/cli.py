"""
CLI (Command Line Interface).

This module provides quick terminal commands, e.g.:

    jadwalin class add Mon 08:00-09:40 --title "Kalkulus" --location "R.301"
    jadwalin class conflicts Mon 09:00-10:00
    jadwalin remind add "Tugas 3" "2026-02-19 23:59" --priority high
    jadwalin remind list
    jadwalin countdown
    jadwalin watch
    jadwalin export jadwal.ics

Data is kept per owner in the data directory (see jadwalin.config), or in the
web app when --api-url is given.
"""

from __future__ import annotations

import argparse
import logging
import os
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from jadwalin.clock import SystemClock
from jadwalin.config import load_settings
from jadwalin.conflicts import describe, find_schedule_conflicts
from jadwalin.countdown import format_snapshot
from jadwalin.errors import ParseError, StorageError
from jadwalin.export_ics import SEMESTER_WEEKS, export_schedule_to_ics
from jadwalin.model import DayOfWeek, Identity, Priority, TimeInterval
from jadwalin.presenter import Notification
from jadwalin.remote import ApiBackend
from jadwalin.session import Session
from jadwalin.storage import JsonFileBackend
from jadwalin.timers import ThreadTimers
from jadwalin.timeutil import fmt_datetime, format_clock, parse_clock_range, parse_datetime

console = Console()

DEFAULT_OWNER = "local"


def _interval_from_args(args: argparse.Namespace) -> TimeInterval:
    start, end = parse_clock_range(args.time)
    return TimeInterval(
        day=DayOfWeek.parse(args.day),
        start_minute=start,
        end_minute=end,
        title=getattr(args, "title", "") or "",
        location=getattr(args, "location", "") or "",
    )


def _end_label(minute: int) -> str:
    return "24:00" if minute == 1440 else format_clock(minute)


# ---------------------------------------------------------------------------
# Schedule commands
# ---------------------------------------------------------------------------


def _cmd_class_add(args: argparse.Namespace, session: Session) -> int:
    interval = _interval_from_args(args)
    rejected = session.add_class(interval)
    if rejected:
        console.print(f"[red]Not added:[/red] {escape(rejected.message())}")
        return 1
    console.print(f"Added: {describe(interval)} (classes: {len(session.schedule)})")
    return 0


def _cmd_class_remove(args: argparse.Namespace, session: Session) -> int:
    interval = _interval_from_args(args)
    if not session.remove_class(interval):
        console.print(f"Not scheduled: {describe(interval)}")
        return 0
    console.print(f"Removed: {describe(interval)} (classes: {len(session.schedule)})")
    return 0


def _cmd_class_conflicts(args: argparse.Namespace, session: Session) -> int:
    """
    Report conflicts of a candidate slot without adding it.
    """
    interval = _interval_from_args(args)
    conflicts = session.schedule.check(interval)
    if not conflicts:
        console.print(f"No conflicts for {describe(interval)}.")
        return 0
    console.print(f"Conflicts found: {len(conflicts)}")
    for iv in conflicts:
        console.print(f"- {describe(iv)}")
    return 0


def _cmd_class_list(args: argparse.Namespace, session: Session) -> int:
    intervals = session.schedule.ordered()
    if not intervals:
        console.print("No classes scheduled.")
        return 0

    table = Table(title="Jadwal")
    table.add_column("Day")
    table.add_column("Time")
    table.add_column("Title")
    table.add_column("Location")
    for iv in intervals:
        table.add_row(
            iv.day.short,
            f"{format_clock(iv.start_minute)}-{_end_label(iv.end_minute)}",
            iv.title,
            iv.location,
        )
    console.print(table)

    # stored schedules are conflict-free, but files edited by hand may not be
    pairs = find_schedule_conflicts(intervals)
    if pairs:
        console.print(f"[red]Conflicts found: {len(pairs)}[/red]")
        for a, b in pairs:
            console.print(f"- {describe(a)}  <->  {describe(b)}")
    return 0


# ---------------------------------------------------------------------------
# Reminder commands
# ---------------------------------------------------------------------------


def _cmd_remind_add(args: argparse.Namespace, session: Session) -> int:
    title = (args.title or "").strip()
    if not title:
        console.print("Please provide a reminder title.")
        return 1
    due = parse_datetime(args.due, session.tz)
    reminder = session.add_reminder(title, due, priority=Priority.parse(args.priority))
    console.print(f"Added reminder {reminder.id}: {title} @ {fmt_datetime(due, session.tz)}")
    return 0


def _cmd_remind_list(args: argparse.Namespace, session: Session) -> int:
    reminders = session.reminders.list_by_owner(session.identity.owner_id)
    if not args.all:
        reminders = [r for r in reminders if not r.completed]
    if not reminders:
        console.print("No reminders.")
        return 0

    # malformed reminders (no due time) go last but stay visible so they can be fixed
    reminders.sort(key=lambda r: (r.due_ms is None, r.due_ms or 0, r.id))
    table = Table(title="Pengingat")
    table.add_column("ID")
    table.add_column("Due")
    table.add_column("Priority")
    table.add_column("Title")
    table.add_column("Done")
    for r in reminders:
        due = fmt_datetime(r.due_ms, session.tz) if r.due_ms is not None else "[red]invalid[/red]"
        table.add_row(r.id, due, r.priority.label, r.title, "yes" if r.completed else "")
    console.print(table)
    return 0


def _cmd_remind_complete(args: argparse.Namespace, session: Session) -> int:
    try:
        reminder = session.complete(args.reminder_id)
    except KeyError:
        console.print(f"Unknown reminder: {args.reminder_id}")
        return 1
    console.print(f"Completed: {reminder.title}")
    return 0


def _cmd_remind_remove(args: argparse.Namespace, session: Session) -> int:
    if not session.reminders.remove(args.reminder_id):
        console.print(f"Unknown reminder: {args.reminder_id}")
        return 1
    console.print(f"Removed: {args.reminder_id}")
    return 0


# ---------------------------------------------------------------------------
# Other commands
# ---------------------------------------------------------------------------


def _cmd_activity(args: argparse.Namespace, session: Session) -> int:
    records = session.activity.list_by_owner(session.identity.owner_id, limit=args.limit)
    if not records:
        console.print("No activity yet.")
        return 0
    for rec in records:
        console.print(f"{fmt_datetime(rec.timestamp_ms, session.tz)}  ({rec.category.value}) {rec.title}")
    return 0


def _cmd_countdown(args: argparse.Namespace, session: Session) -> int:
    now = session.clock.now_ms()
    if args.reminder:
        reminder = session.reminders.get(args.reminder)
        if reminder is None or reminder.due_ms is None:
            console.print(f"Unknown reminder or no due time: {args.reminder}")
            return 1
        label, target = reminder.title, reminder.due_ms
    else:
        upcoming = session.schedule.next_upcoming(now)
        if upcoming is None:
            console.print("No upcoming classes.")
            return 0
        label, target = describe(upcoming[0]), upcoming[1]

    snap = session.countdown_for(target).sample()
    if snap is None:
        console.print("Clock unavailable.")
        return 1
    console.print(f"{escape(label)}: {format_snapshot(snap)} ({fmt_datetime(target, session.tz)})")
    return 0


def _print_notification(kind: str, notification: Notification) -> None:
    if kind != "show":
        return
    event = notification.event
    style = {Priority.HIGH: "bold red", Priority.MEDIUM: "yellow", Priority.LOW: "dim"}[event.priority]
    console.print(f"[{style}]Pengingat[/{style}] {escape(event.title)} ({event.priority.label})")


def _cmd_watch(args: argparse.Namespace, session: Session) -> int:
    """
    Run the reminder scan in the foreground and print notifications as they fire.
    """
    session.presenter.subscribe(_print_notification)
    session.scheduler.start(session.timers)
    try:
        if args.ticks is None:
            console.print(f"Watching reminders every {session.settings.scan_period}s (Ctrl+C to stop)")
            while True:
                session.clock.sleep(1.0)
        else:
            session.clock.sleep(args.ticks * session.settings.scan_period)
    except KeyboardInterrupt:
        console.print("Stopped.")
    return 0


def _cmd_export(args: argparse.Namespace, session: Session) -> int:
    intervals = session.schedule.ordered()
    if not intervals:
        console.print("No classes to export.")
        return 0

    out_path = (args.out or "").strip()
    if not out_path:
        console.print("Please provide output .ics path.")
        return 1

    n = export_schedule_to_ics(intervals, out_path, session.clock.now_ms(), weeks=args.weeks, tz=session.tz)
    console.print(f"Exported {n} events to: {out_path}")
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    parser = argparse.ArgumentParser(prog="jadwalin", description="Jadwalin schedule and reminder CLI")
    parser.add_argument("--data-dir", type=str, default=None, help="Directory for per-user data files")
    parser.add_argument("--owner", type=str, default=None, help="User id (default: $JADWALIN_OWNER or 'local')")
    parser.add_argument("--api-url", type=str, default=None, help="Use the web app API instead of local files")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_class = sub.add_parser("class", help="Weekly class schedule")
    class_sub = p_class.add_subparsers(dest="action", required=True)
    for name, help_text in (("add", "Add a class"), ("remove", "Remove a class"), ("conflicts", "Check a slot for conflicts")):
        p = class_sub.add_parser(name, help=help_text)
        p.add_argument("day", type=str, help="Day (e.g. Mon, Senin, 1)")
        p.add_argument("time", type=str, help="Time range HH:mm-HH:mm")
        if name == "add":
            p.add_argument("--title", type=str, default="")
            p.add_argument("--location", type=str, default="")
    class_sub.add_parser("list", help="Show the weekly schedule")

    p_remind = sub.add_parser("remind", help="Reminders and deadlines")
    remind_sub = p_remind.add_subparsers(dest="action", required=True)
    p_radd = remind_sub.add_parser("add", help="Add a reminder")
    p_radd.add_argument("title", type=str)
    p_radd.add_argument("due", type=str, help="Due date-time, e.g. '2026-02-19 23:59'")
    p_radd.add_argument("--priority", type=str, default="medium", choices=[p.label for p in Priority])
    p_rlist = remind_sub.add_parser("list", help="List reminders")
    p_rlist.add_argument("--all", action="store_true", help="Include completed reminders")
    p_rdone = remind_sub.add_parser("complete", help="Mark a reminder as done")
    p_rdone.add_argument("reminder_id", type=str)
    p_rrm = remind_sub.add_parser("remove", help="Delete a reminder")
    p_rrm.add_argument("reminder_id", type=str)

    p_act = sub.add_parser("activity", help="Recent activity")
    p_act.add_argument("--limit", type=int, default=10)

    p_cd = sub.add_parser("countdown", help="Time left until the next class or a reminder")
    p_cd.add_argument("--reminder", type=str, default=None, help="Reminder id")

    p_watch = sub.add_parser("watch", help="Show reminder notifications as they become due")
    p_watch.add_argument("--ticks", type=int, default=None, help="Stop after N scan periods")

    p_export = sub.add_parser("export", help="Export the weekly schedule to .ics")
    p_export.add_argument("out", type=str, help="Output file path (e.g. jadwal.ics)")
    p_export.add_argument("--weeks", type=int, default=SEMESTER_WEEKS)

    return parser


COMMANDS = {
    ("class", "add"): _cmd_class_add,
    ("class", "remove"): _cmd_class_remove,
    ("class", "conflicts"): _cmd_class_conflicts,
    ("class", "list"): _cmd_class_list,
    ("remind", "add"): _cmd_remind_add,
    ("remind", "list"): _cmd_remind_list,
    ("remind", "complete"): _cmd_remind_complete,
    ("remind", "remove"): _cmd_remind_remove,
    ("activity", None): _cmd_activity,
    ("countdown", None): _cmd_countdown,
    ("watch", None): _cmd_watch,
    ("export", None): _cmd_export,
}


def _open_session(args: argparse.Namespace) -> Session:
    settings = load_settings(data_dir=args.data_dir, api_url=args.api_url)
    if settings.api_url:
        backend = ApiBackend(settings.api_url, activity_limit=settings.activity_limit)
    else:
        backend = JsonFileBackend(settings.data_dir, activity_limit=settings.activity_limit)
    owner = (args.owner or os.environ.get("JADWALIN_OWNER", "") or DEFAULT_OWNER).strip()
    session = Session(backend, clock=SystemClock(), timers=ThreadTimers(), settings=settings)
    return session.init(Identity(owner_id=owner), start=False)


def main(argv: Optional[list[str]] = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    handler = COMMANDS.get((args.command, getattr(args, "action", None)))
    if handler is None:
        raise SystemExit(2)

    try:
        session = _open_session(args)
    except StorageError as exc:
        console.print(f"[red]Could not load data:[/red] {exc}")
        raise SystemExit(1)
    except ValueError as exc:
        console.print(f"[red]Invalid settings:[/red] {escape(str(exc))}")
        raise SystemExit(1)

    try:
        code = handler(args, session)
    except (ParseError, ValueError) as exc:
        console.print(f"[red]Invalid input:[/red] {exc}")
        code = 1
    except StorageError as exc:
        console.print(f"[red]Could not save:[/red] {exc}")
        code = 1
    finally:
        session.dispose()
        session.timers.shutdown()
    raise SystemExit(code)
