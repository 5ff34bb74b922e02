#!/usr/bin/env python3
"""
org_clock.py

Clock entries and duration arithmetic.

  CLOCK: [2024-01-15 Mon 10:00]--[2024-01-15 Mon 11:30] =>  1:30
  CLOCK: [2024-01-15 Mon 10:00]                      (running)

Durations are handled as whole minutes.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from org_elements import ClockEntry, Document, Headline
from org_timestamps import parse_timestamp, timestamp_from_date, timestamp_to_date

_CLOCK_LINE_RE = re.compile(
    r"^(\s*)CLOCK:\s*(\[[^\[\]\n]*\])(?:--(\[[^\[\]\n]*\]))?(?:\s*=>\s*(-?\d+:\d{2}))?\s*$"
)
_DURATION_RE = re.compile(r"^\s*(-?)(\d+):(\d{2})\s*$")

_EFFORT_HM_RE = re.compile(r"^(\d+):(\d{2})$")
_EFFORT_HOURS_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*h(?:ours?)?$", re.IGNORECASE)
_EFFORT_MINUTES_RE = re.compile(r"^(\d+)\s*m(?:in(?:utes?)?)?$", re.IGNORECASE)
_EFFORT_DAYS_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*d(?:ays?)?$", re.IGNORECASE)

# Effort days are working days
EFFORT_DAY_MINUTES = 8 * 60
LONG_ENTRY_MINUTES = 12 * 60


# ---------------- Durations --------------------------------------------------

def format_duration(minutes: int) -> str:
    """90 -> '1:30', 5 -> '0:05'. Hours are not padded."""
    sign = "-" if minutes < 0 else ""
    minutes = abs(int(minutes))
    return f"{sign}{minutes // 60}:{minutes % 60:02d}"


def format_duration_long(minutes: int) -> str:
    """1500 -> '1d 1h 0m', 90 -> '1h 30m', 45 -> '45m'."""
    minutes = int(minutes)
    days, rest = divmod(minutes, 24 * 60)
    hours, mins = divmod(rest, 60)
    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0 or days > 0:
        parts.append(f"{hours}h")
    parts.append(f"{mins}m")
    return " ".join(parts)


def parse_duration(text: Optional[str]) -> Optional[int]:
    """'1:30' -> 90. None when `text` is not H:MM."""
    if text is None:
        return None
    match = _DURATION_RE.match(text)
    if not match:
        return None
    minutes = int(match.group(2)) * 60 + int(match.group(3))
    return -minutes if match.group(1) else minutes


def parse_effort(effort: Optional[str]) -> int:
    """
    Effort estimate in minutes.

      '1:30' -> 90    '1.5h' / '2 hours' -> hours
      '30m' / '90min' / '45 minutes'     -> minutes
      '1d' / '2days' -> working days of 8h
      '30'  -> minutes

    Anything else is 0.
    """
    effort = (effort or "").strip()

    match = _EFFORT_HM_RE.match(effort)
    if match:
        return int(match.group(1)) * 60 + int(match.group(2))

    match = _EFFORT_HOURS_RE.match(effort)
    if match:
        return round(float(match.group(1)) * 60)

    match = _EFFORT_MINUTES_RE.match(effort)
    if match:
        return int(match.group(1))

    match = _EFFORT_DAYS_RE.match(effort)
    if match:
        return round(float(match.group(1)) * EFFORT_DAY_MINUTES)

    if effort.isdigit():
        return int(effort)

    return 0


def format_effort(minutes: int, style: str = "short") -> str:
    if style == "short":
        return format_duration(minutes)
    return format_duration_long(minutes)


# ---------------- Clock lines ------------------------------------------------

def parse_clock_line(line: str) -> Optional[ClockEntry]:
    """
    Parse one CLOCK: line. Returns None for anything that is not a clock
    line with well-formed inactive timestamps.
    """
    match = _CLOCK_LINE_RE.match(line)
    if not match:
        return None

    start = parse_timestamp(match.group(2))
    if start is None:
        return None

    end = None
    if match.group(3):
        end = parse_timestamp(match.group(3))
        if end is None:
            return None

    return ClockEntry(
        start=start,
        end=end,
        duration=match.group(4),
        indent=match.group(1),
    )


def entry_minutes(entry: ClockEntry) -> Optional[int]:
    """
    Minutes logged by `entry`: the '=>' field when present, otherwise the
    difference between end and start. A running clock has no duration.
    """
    minutes = parse_duration(entry.duration)
    if minutes is not None:
        return minutes
    if entry.end is None:
        return None
    delta = timestamp_to_date(entry.end) - timestamp_to_date(entry.start)
    return round(delta.total_seconds() / 60)


def format_clock_line(entry: ClockEntry) -> str:
    """
    Render a ClockEntry in Org's own layout:

      CLOCK: [start]--[end] =>  1:30
    """
    line = f"{entry.indent}CLOCK: {entry.start.raw_value}"
    if entry.end is not None:
        line += f"--{entry.end.raw_value}"
        minutes = entry_minutes(entry)
        if minutes is not None:
            line += f" => {format_duration(minutes):>5}"
    return line


def _now_stamp(now: Optional[datetime]):
    if now is None:
        now = datetime.now()
    return timestamp_from_date(now, include_time=True, active=False, with_day_name=True)


def clock_in(headline: Headline, now: Optional[datetime] = None) -> ClockEntry:
    """Start a running clock on `headline` (newest entry first)."""
    entry = ClockEntry(start=_now_stamp(now))
    headline.clock.insert(0, entry)
    return entry


def clock_out(entry: ClockEntry, now: Optional[datetime] = None) -> ClockEntry:
    """Stop a running clock and record its duration."""
    if entry.end is None:
        entry.end = _now_stamp(now)
        entry.duration = None
        entry.duration = format_duration(entry_minutes(entry) or 0)
    return entry


# ---------------- Collecting entries -----------------------------------------

def get_clock_entries(headline: Headline) -> list[ClockEntry]:
    """
    Direct clock entries of `headline`: its clock log followed by CLOCK
    lines kept inside drawers of its body (LOGBOOK). Children are not
    included.
    """
    entries = list(headline.clock)
    for element in headline.body:
        if element.type != "drawer":
            continue
        for line in element.lines:
            entry = parse_clock_line(line)
            if entry is not None:
                entries.append(entry)
    return entries


def _walk(nodes: list[Headline]):
    for node in nodes:
        yield node
        yield from _walk(node.children)


def get_all_clock_entries(root: Union[Document, Headline]) -> list[tuple[Headline, ClockEntry]]:
    """(headline, entry) pairs for the whole tree below `root`, in document order."""
    nodes = _walk([root]) if isinstance(root, Headline) else _walk(root.children)
    records = []
    for headline in nodes:
        for entry in get_clock_entries(headline):
            records.append((headline, entry))
    return records


def get_total_clock_time(headline: Headline, recursive: bool = True) -> int:
    """
    Logged minutes of `headline`. With recursive=True the whole subtree
    is summed. Running clocks count as 0.
    """
    total = sum(entry_minutes(entry) or 0 for entry in get_clock_entries(headline))
    if recursive:
        for child in headline.children:
            total += get_total_clock_time(child, recursive=True)
    return total


def get_running_clock(root: Union[Document, Headline]) -> Optional[tuple[Headline, ClockEntry]]:
    """The first clock without an end time, or None."""
    for headline, entry in get_all_clock_entries(root):
        if entry.is_running:
            return headline, entry
    return None


def _effort_property(headline: Headline) -> Optional[str]:
    for key, value in (headline.properties_drawer or {}).items():
        if key.upper() == "EFFORT":
            return value
    return None


def compare_effort(headline: Headline) -> Optional[dict]:
    """
    Compare the EFFORT property with the clocked time of the subtree.

    Returns None when there is no EFFORT property.
    """
    effort = _effort_property(headline)
    if not effort:
        return None
    estimated = parse_effort(effort)
    actual = get_total_clock_time(headline, recursive=True)
    return {
        "estimated": estimated,
        "actual": actual,
        "difference": actual - estimated,
        "percentage": (actual / estimated) * 100 if estimated > 0 else 0,
    }


# ---------------- Consistency ------------------------------------------------

@dataclass
class ClockIssue:
    type: str  # running | future | negative | long | overlap
    message: str
    entry: ClockEntry
    related_entry: Optional[ClockEntry] = None


def check_clock_consistency(entries: list[ClockEntry], now: Optional[datetime] = None) -> list[ClockIssue]:
    """
    Report running clocks, entries in the future, entries that end before
    they start, entries longer than 12 hours and overlapping entries.
    """
    if now is None:
        now = datetime.now()

    issues: list[ClockIssue] = []
    ordered = sorted(entries, key=lambda e: timestamp_to_date(e.start))

    for i, entry in enumerate(ordered):
        start = timestamp_to_date(entry.start)
        end = timestamp_to_date(entry.end) if entry.end is not None else None

        if end is None:
            issues.append(ClockIssue("running", f"Clock is still running since {entry.start.raw_value}", entry))

        if start > now:
            issues.append(ClockIssue("future", f"Clock starts in the future: {entry.start.raw_value}", entry))

        if end is not None and end < start:
            issues.append(ClockIssue("negative", "End time is before start time", entry))

        minutes = entry_minutes(entry)
        if minutes is not None and minutes > LONG_ENTRY_MINUTES:
            issues.append(
                ClockIssue("long", f"Clock entry is longer than 12 hours ({format_duration(minutes)})", entry)
            )

        if end is not None and i + 1 < len(ordered):
            following = ordered[i + 1]
            if end > timestamp_to_date(following.start):
                issues.append(ClockIssue("overlap", "Clock entries overlap", entry, following))

    return issues
