from __future__ import annotations

from datetime import date, datetime

from birthday_engine.partial_date import PartialDate, is_leap_year


def _as_date(now: datetime | date) -> date:
    if isinstance(now, datetime):
        return now.date()
    return now


def occurrence_in_year(partial: PartialDate, year: int) -> date:
    # Feb 29 overflows to Mar 1 outside leap years.
    if partial.month == 2 and partial.day == 29 and not is_leap_year(year):
        return date(year, 3, 1)
    return date(year, partial.month, partial.day)


def next_occurrence(partial: PartialDate, now: datetime | date) -> date:
    today = _as_date(now)
    this_year = occurrence_in_year(partial, today.year)
    if this_year >= today:
        return this_year
    return occurrence_in_year(partial, today.year + 1)


def days_until(partial: PartialDate, now: datetime | date) -> int:
    today = _as_date(now)
    return (next_occurrence(partial, today) - today).days


def is_today(partial: PartialDate, now: datetime | date) -> bool:
    today = _as_date(now)
    return today.month == partial.month and today.day == partial.day


def current_age(partial: PartialDate, now: datetime | date) -> int | None:
    if partial.year is None:
        return None

    today = _as_date(now)
    age = today.year - partial.year
    if (today.month, today.day) < (partial.month, partial.day):
        age -= 1
    return age


def upcoming_age(partial: PartialDate, now: datetime | date) -> int | None:
    if partial.year is None:
        return None
    return next_occurrence(partial, now).year - partial.year
