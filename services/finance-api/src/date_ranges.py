"""
Infer a calendar window from a free-text chat message.

Phrases are checked in a fixed priority order; the first one that matches wins.
When nothing is recognized the caller receives `NO_RANGE`, which carries neither
bound so downstream queries stay unrestricted.
"""

from __future__ import annotations

import calendar
import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Callable, List, Optional, Tuple

END_OF_DAY = time(23, 59, 59, 999000)

_EXPLICIT_DATE_PATTERN = re.compile(
    r"(\b\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}\b|\b\d{4}[\-/]\d{1,2}[\-/]\d{1,2}\b)"
)
_ISO_DATE_PATTERN = re.compile(r"^(\d{4})[\-/](\d{1,2})[\-/](\d{1,2})$")


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive window; `start`, `end` and `kind` are either all set or all None."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    kind: Optional[str] = None

    @property
    def is_bounded(self) -> bool:
        return self.start is not None and self.end is not None

    @property
    def label(self) -> str:
        """Human wording used in chat replies ("last week", "all time")."""
        if not self.kind:
            return "all time"
        return self.kind.replace("_", " ")


NO_RANGE = DateRange()


def start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min)


def end_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), END_OF_DAY)


def start_of_month(moment: datetime) -> datetime:
    return datetime(moment.year, moment.month, 1)


def end_of_month(moment: datetime) -> datetime:
    last_day = calendar.monthrange(moment.year, moment.month)[1]
    return datetime.combine(moment.date().replace(day=last_day), END_OF_DAY)


def days_in_month(moment: datetime) -> int:
    return calendar.monthrange(moment.year, moment.month)[1]


def _today(now: datetime) -> Tuple[datetime, datetime]:
    return start_of_day(now), end_of_day(now)


def _yesterday(now: datetime) -> Tuple[datetime, datetime]:
    yesterday = now - timedelta(days=1)
    return start_of_day(yesterday), end_of_day(yesterday)


def _last_week(now: datetime) -> Tuple[datetime, datetime]:
    # Rolling seven days; the start keeps the current time of day.
    return now - timedelta(days=7), end_of_day(now)


def _this_month(now: datetime) -> Tuple[datetime, datetime]:
    return start_of_month(now), end_of_day(now)


def _last_month(now: datetime) -> Tuple[datetime, datetime]:
    previous = start_of_month(now) - timedelta(days=1)
    return start_of_month(previous), end_of_month(previous)


def _year_bounds(year: int) -> Tuple[datetime, datetime]:
    return datetime(year, 1, 1), datetime.combine(datetime(year, 12, 31).date(), END_OF_DAY)


def _this_year(now: datetime) -> Tuple[datetime, datetime]:
    return _year_bounds(now.year)


def _last_year(now: datetime) -> Tuple[datetime, datetime]:
    return _year_bounds(now.year - 1)


RELATIVE_RULES: List[Tuple[re.Pattern[str], str, Callable[[datetime], Tuple[datetime, datetime]]]] = [
    (re.compile(r"(today|todays|to\s*day)", re.IGNORECASE), "today", _today),
    (re.compile(r"(yesterday|yester\s*day)", re.IGNORECASE), "yesterday", _yesterday),
    (re.compile(r"last\s*week", re.IGNORECASE), "last_week", _last_week),
    (re.compile(r"(this\s*month|current\s*month)", re.IGNORECASE), "this_month", _this_month),
    (re.compile(r"last\s*month", re.IGNORECASE), "last_month", _last_month),
    (re.compile(r"(this\s*year|current\s*year)", re.IGNORECASE), "this_year", _this_year),
    (re.compile(r"last\s*year", re.IGNORECASE), "last_year", _last_year),
]


def infer_date_range(message: str, now: datetime) -> DateRange:
    """Return the first recognized window in `message`, or `NO_RANGE`."""

    text = message or ""
    for pattern, kind, resolver in RELATIVE_RULES:
        if pattern.search(text):
            start, end = resolver(now)
            return DateRange(start=start, end=end, kind=kind)

    match = _EXPLICIT_DATE_PATTERN.search(text)
    if match:
        day = parse_explicit_date(match.group(0))
        if day is not None:
            return DateRange(start=start_of_day(day), end=end_of_day(day), kind="specific_day")

    return NO_RANGE


def parse_explicit_date(token: str) -> Optional[datetime]:
    """
    Interpret a single date token.

    `YYYY-M-D` / `YYYY/M/D` are read as-is. `A/B/C` and `A-B-C` need a year of
    at least three digits and are day-first only when the first number cannot
    be a month (> 12); otherwise they are month-first. Impossible calendar
    dates return None.
    """

    iso_match = _ISO_DATE_PATTERN.match(token)
    if iso_match:
        year, month, day = (int(part) for part in iso_match.groups())
        return _safe_date(year, month, day)

    parts = re.split(r"[/\-]", token)
    if len(parts) != 3:
        return None
    try:
        first, second, year = (int(part) for part in parts)
    except ValueError:
        return None
    if year < 100:
        return None

    if first > 12:
        day, month = first, second
    else:
        month, day = first, second
    return _safe_date(year, month, day)


def _safe_date(year: int, month: int, day: int) -> Optional[datetime]:
    try:
        return datetime(year, month, day)
    except ValueError:
        return None
