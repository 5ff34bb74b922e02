#!/usr/bin/env python3
"""
org_timestamps.py

Parse, build and convert Org timestamps.

  <2024-03-15>                  active date
  [2024-03-15 Fri 14:30]        inactive date + time
  <2024-03-15 Fri 10:00-12:00>  same-day time range
  <2024-03-15>--<2024-03-17>    date range
  <2024-03-15 Fri +1w -2d>      repeater and warning delay
"""
from __future__ import annotations

import calendar
import dataclasses
import re
from datetime import date, datetime, timedelta
from typing import Optional, Union

from org_elements import Timestamp

DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
REPEATER_TYPES = ("++", ".+", "+")
WARNING_TYPES = ("--", "-")
TIME_UNITS = "hdwmy"

_SINGLE_RE = re.compile(
    r"^([<\[])"
    r"(\d{4})-(\d{2})-(\d{2})"
    r"(?:\s+([^\W\d_]+\.?))?"
    r"(?:\s+(\d{1,2}):(\d{2})(?:-(\d{1,2}):(\d{2}))?)?"
    r"((?:\s+(?:\+\+|\.\+|\+|--|-)\d+[hdwmy])*)"
    r"\s*([>\]])$"
)
_COOKIE_RE = re.compile(r"(\+\+|\.\+|\+|--|-)(\d+)([hdwmy])")
_REPEATER_RE = re.compile(r"^(\+\+|\.\+|\+)(\d+)([hdwmy])$")

# Used by the inline scanner to find candidate spans in running text.
TIMESTAMP_SCAN_RE = re.compile(
    r"<\d{4}-\d{2}-\d{2}[^<>\n]*>(?:--<\d{4}-\d{2}-\d{2}[^<>\n]*>)?"
    r"|\[\d{4}-\d{2}-\d{2}[^\[\]\n]*\](?:--\[\d{4}-\d{2}-\d{2}[^\[\]\n]*\])?"
)

DateLike = Union[date, datetime]


def day_name(value: DateLike) -> str:
    """English three-letter day name, independent of the locale."""
    return DAY_NAMES[value.weekday()]


def _valid_date(year: int, month: int, day: int) -> bool:
    try:
        date(year, month, day)
    except ValueError:
        return False
    return True


def _valid_time(hour: int, minute: int) -> bool:
    return 0 <= hour <= 23 and 0 <= minute <= 59


def _parse_single(text: str) -> Optional[dict]:
    match = _SINGLE_RE.match(text)
    if not match:
        return None

    opening, closing = match.group(1), match.group(11)
    if (opening, closing) not in (("<", ">"), ("[", "]")):
        return None

    year, month, day = int(match.group(2)), int(match.group(3)), int(match.group(4))
    if not _valid_date(year, month, day):
        return None

    for hour, minute in ((match.group(6), match.group(7)), (match.group(8), match.group(9))):
        if hour and not _valid_time(int(hour), int(minute)):
            return None

    fields: dict = {
        "year": year,
        "month": month,
        "day": day,
        "day_name": match.group(5),
        "hour": int(match.group(6)) if match.group(6) else None,
        "minute": int(match.group(7)) if match.group(7) else None,
        "hour_end": int(match.group(8)) if match.group(8) else None,
        "minute_end": int(match.group(9)) if match.group(9) else None,
        "active": opening == "<",
        "cookies": _COOKIE_RE.findall(match.group(10) or ""),
    }
    return fields


def parse_timestamp(text: str) -> Optional[Timestamp]:
    """
    Parse one timestamp (or range). Returns None when `text` is not a
    well-formed timestamp.
    """
    text = text.strip()
    if not text:
        return None

    end_fields = None
    start_text = text
    for sep in (">--<", "]--["):
        idx = text.find(sep)
        if idx != -1:
            start_text = text[: idx + 1]
            end_fields = _parse_single(text[idx + 3 :])
            if end_fields is None:
                return None
            break

    start = _parse_single(start_text)
    if start is None:
        return None
    if end_fields is not None and end_fields["active"] != start["active"]:
        return None

    ts = Timestamp(
        year_start=start["year"],
        month_start=start["month"],
        day_start=start["day"],
        hour_start=start["hour"],
        minute_start=start["minute"],
        timestamp_type="active" if start["active"] else "inactive",
        day_name=start["day_name"],
    )

    if start["hour_end"] is not None:
        ts.year_end, ts.month_end, ts.day_end = ts.year_start, ts.month_start, ts.day_start
        ts.hour_end, ts.minute_end = start["hour_end"], start["minute_end"]
        ts.day_name_end = ts.day_name
    elif end_fields is not None:
        ts.year_end = end_fields["year"]
        ts.month_end = end_fields["month"]
        ts.day_end = end_fields["day"]
        ts.hour_end = end_fields["hour"]
        ts.minute_end = end_fields["minute"]
        ts.day_name_end = end_fields["day_name"]

    for kind, value, unit in start["cookies"]:
        if kind in REPEATER_TYPES and ts.repeater_type is None:
            ts.repeater_type, ts.repeater_value, ts.repeater_unit = kind, int(value), unit
        elif kind in WARNING_TYPES and ts.warning_type is None:
            ts.warning_type, ts.warning_value, ts.warning_unit = kind, int(value), unit

    return ts


def parse_repeater(text: str) -> Optional[tuple[str, int, str]]:
    """
    Split a repeater such as '.+2d' into ('.+', 2, 'd').
    """
    match = _REPEATER_RE.match(text.strip())
    if not match:
        return None
    return match.group(1), int(match.group(2)), match.group(3)


def create_timestamp(
    year: int,
    month: int,
    day: int,
    hour: Optional[int] = None,
    minute: Optional[int] = None,
    *,
    active: bool = True,
    repeater_type: Optional[str] = None,
    repeater_value: Optional[int] = None,
    repeater_unit: Optional[str] = None,
    day_name: Optional[str] = None,
) -> Timestamp:
    """
    Build a Timestamp from calendar fields (month is 1-indexed).

    Raises ValueError for an impossible date or an unknown repeater.
    """
    if not _valid_date(year, month, day):
        raise ValueError(f"Invalid date: {year}-{month}-{day}")
    if hour is not None and not 0 <= hour <= 23:
        raise ValueError(f"Invalid hour: {hour}")
    if minute is not None and not 0 <= minute <= 59:
        raise ValueError(f"Invalid minute: {minute}")
    if repeater_type is not None and repeater_type not in REPEATER_TYPES:
        raise ValueError(f"Invalid repeater type: {repeater_type}")
    if repeater_unit is not None and repeater_unit not in TIME_UNITS:
        raise ValueError(f"Invalid repeater unit: {repeater_unit}")

    return Timestamp(
        year_start=year,
        month_start=month,
        day_start=day,
        hour_start=hour,
        minute_start=(minute if minute is not None else (0 if hour is not None else None)),
        timestamp_type="active" if active else "inactive",
        day_name=day_name,
        repeater_type=repeater_type,
        repeater_value=repeater_value,
        repeater_unit=repeater_unit,
    )


def timestamp_from_date(
    value: DateLike,
    include_time: bool = False,
    active: bool = True,
    with_day_name: bool = False,
) -> Timestamp:
    """
    Convert a date/datetime into a Timestamp.
    """
    hour = minute = None
    if include_time and isinstance(value, datetime):
        hour, minute = value.hour, value.minute
    return create_timestamp(
        value.year,
        value.month,
        value.day,
        hour,
        minute,
        active=active,
        day_name=day_name(value) if with_day_name else None,
    )


def timestamp_to_date(ts: Timestamp) -> datetime:
    """
    Start of `ts` as a naive datetime (midnight when there is no time).
    """
    return datetime(
        ts.year_start,
        ts.month_start,
        ts.day_start,
        ts.hour_start or 0,
        ts.minute_start or 0,
    )


def timestamp_end_to_date(ts: Timestamp) -> Optional[datetime]:
    """End of a range as a datetime, or None for a single timestamp."""
    if not ts.is_range:
        return None
    return datetime(
        ts.year_end,
        ts.month_end,
        ts.day_end,
        ts.hour_end or 0,
        ts.minute_end or 0,
    )


# ---------------- Repeaters --------------------------------------------------


def _add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def shift_date(value: datetime, amount: int, unit: str) -> datetime:
    """
    Move `value` by `amount` units (h d w m y). Month and year shifts clamp
    the day to the end of the target month.
    """
    if unit == "h":
        return value + timedelta(hours=amount)
    if unit == "d":
        return value + timedelta(days=amount)
    if unit == "w":
        return value + timedelta(weeks=amount)
    if unit == "m":
        return _add_months(value, amount)
    if unit == "y":
        return _add_months(value, 12 * amount)
    raise ValueError(f"Unknown time unit: {unit}")


def advance_timestamp(ts: Timestamp, today: Optional[DateLike] = None) -> Timestamp:
    """
    Return the next occurrence of a repeating timestamp.

      +N   shift once from the current date
      .+N  shift from today
      ++N  shift until the date is after today

    A timestamp without repeater is returned unchanged.
    """
    if ts.repeater is None:
        return ts

    if today is None:
        today = datetime.now()
    if not isinstance(today, datetime):
        today = datetime(today.year, today.month, today.day)

    current = timestamp_to_date(ts)
    amount, unit = ts.repeater_value, ts.repeater_unit

    if ts.repeater_type == ".+":
        base = today.replace(
            hour=current.hour, minute=current.minute, second=0, microsecond=0
        )
        new_start = shift_date(base, amount, unit)
    else:
        new_start = shift_date(current, amount, unit)
        if ts.repeater_type == "++":
            limit = today if ts.has_time else today.replace(hour=0, minute=0, second=0, microsecond=0)
            while new_start <= limit:
                new_start = shift_date(new_start, amount, unit)

    delta = new_start - current
    advanced = dataclasses.replace(
        ts,
        year_start=new_start.year,
        month_start=new_start.month,
        day_start=new_start.day,
        hour_start=new_start.hour if ts.has_time else None,
        minute_start=new_start.minute if ts.has_time else None,
        day_name=day_name(new_start) if ts.day_name else None,
        span=None,
    )

    end = timestamp_end_to_date(ts)
    if end is not None:
        new_end = end + delta
        advanced.year_end, advanced.month_end, advanced.day_end = new_end.year, new_end.month, new_end.day
        if ts.hour_end is not None:
            advanced.hour_end, advanced.minute_end = new_end.hour, new_end.minute
        advanced.day_name_end = day_name(new_end) if ts.day_name_end else None

    return advanced
