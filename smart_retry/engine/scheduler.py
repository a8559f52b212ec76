"""
Date Scheduler

Pure date arithmetic for collection attempts. All inputs and outputs are
timezone-aware UTC datetimes.

Semi-monthly (quincena) dates are the 15th and the 30th of each month, the
30th clamped to the last day of shorter months. Scheduled dates are normalized
to the start of the day so decisions are deterministic.
"""
import calendar
from datetime import datetime, time, timedelta, timezone
from typing import Optional

IMMEDIATE_RETRY_OFFSET = timedelta(hours=1)
STANDARD_RETRY_INTERVAL = timedelta(days=4)

FIRST_QUINCENA_DAY = 15
SECOND_QUINCENA_DAY = 30

LATEST_DATE = datetime.max.replace(tzinfo=timezone.utc)


def start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min, tzinfo=timezone.utc)


def _day(year: int, month: int, day: int) -> datetime:
    last_day = calendar.monthrange(year, month)[1]
    return datetime(year, month, min(day, last_day), tzinfo=timezone.utc)


def next_semimonthly_date(moment: datetime) -> datetime:
    """
    Next semi-monthly collection date for a moment.

    - Day 1-15:  the 15th of the same month
    - Day 16-30: the 30th of the same month (last day if the month is shorter)
    - Day 31:    the 15th of the next month

    Example:
        >>> next_semimonthly_date(datetime(2025, 2, 20, tzinfo=timezone.utc))
        datetime.datetime(2025, 2, 28, 0, 0, tzinfo=datetime.timezone.utc)
    """
    year, month, day = moment.year, moment.month, moment.day

    if day <= FIRST_QUINCENA_DAY:
        return _day(year, month, FIRST_QUINCENA_DAY)
    if day <= SECOND_QUINCENA_DAY:
        return _day(year, month, SECOND_QUINCENA_DAY)

    if month == 12:
        return _day(year + 1, 1, FIRST_QUINCENA_DAY)
    return _day(year, month + 1, FIRST_QUINCENA_DAY)


def immediate_retry(moment: datetime) -> datetime:
    """Retry right away: one hour after the decision moment."""
    return moment + IMMEDIATE_RETRY_OFFSET


def standard_retry(moment: datetime) -> datetime:
    """Retry on the standard 4-day interval, at the start of that day."""
    return start_of_day(moment + STANDARD_RETRY_INTERVAL)


def next_day(moment: datetime) -> datetime:
    """Start of the following day."""
    return start_of_day(moment + timedelta(days=1))


def enforce_min_gap(
    proposed: datetime,
    last_attempt: Optional[datetime],
    now: datetime,
    min_days: int,
) -> datetime:
    """
    Keep a proposed attempt date clear of the previous attempt.

    A date earlier than last_attempt + min_days is pushed to exactly that
    floor. A date that is still not strictly after now moves to the next
    semi-monthly date following now + 1 day.
    """
    if last_attempt is not None and min_days > 0:
        try:
            floor = last_attempt + timedelta(days=min_days)
        except OverflowError:
            floor = LATEST_DATE
        if proposed < floor:
            proposed = floor

    if proposed <= now:
        proposed = next_semimonthly_date(now + timedelta(days=1))
    return proposed
