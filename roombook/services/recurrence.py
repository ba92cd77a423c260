"""Service for expanding weekly recurrence groups into concrete occurrence
dates and instants."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator

from dateutil.rrule import WEEKLY, rrule

from roombook.domain.models import RecurrenceGroup

_TIME_FORMAT = "%H:%M"


def expand_weekly(anchor_date: date, end_date: date, weekday: int) -> list[date]:
    """Return every ``weekday`` (0 = Monday) from ``anchor_date`` through
    ``end_date`` inclusive.

    The first element is the first matching day on or after the anchor;
    consecutive elements are exactly seven days apart. Returns an empty list
    when that first match already falls after ``end_date``.
    """
    if not 0 <= weekday <= 6:
        raise ValueError(f"weekday must be in 0..6, got {weekday}")
    if end_date < anchor_date:
        return []

    rule = rrule(
        WEEKLY,
        byweekday=weekday,
        dtstart=datetime.combine(anchor_date, time.min),
        until=datetime.combine(end_date, time.min),
    )
    return [dt.date() for dt in rule]


def format_time_of_day(instant: datetime) -> str:
    """Wall-clock ``HH:MM`` of an instant, in the instant's own zone."""
    return instant.strftime(_TIME_FORMAT)


def parse_time_of_day(value: str) -> time:
    return datetime.strptime(value, _TIME_FORMAT).time()


def combine_date_and_time(day: date, time_of_day: str, utc_offset: timedelta) -> datetime:
    """Attach an ``HH:MM`` wall-clock time and a fixed UTC offset to a date.

    No zone conversion happens: 09:30 on a date stays 09:30 in the offset the
    series was created with.
    """
    return datetime.combine(day, parse_time_of_day(time_of_day), tzinfo=timezone(utc_offset))


def occurrence_intervals(group: RecurrenceGroup) -> Iterator[tuple[date, datetime, datetime]]:
    """Yield ``(date, start, end)`` for each occurrence implied by a group."""
    for day in expand_weekly(group.start_date, group.end_date, group.day_of_week):
        yield (
            day,
            combine_date_and_time(day, group.base_start_time, group.utc_offset),
            combine_date_and_time(day, group.base_end_time, group.utc_offset),
        )
