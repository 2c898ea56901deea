from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

UNKNOWN_YEAR_TEXT = "0000"

_PARTIAL_DATE_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")


class InvalidBirthdayError(ValueError):
    pass


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def validate_month_day(month: int, day: int, *, year: int | None = None) -> None:
    if month < 1 or month > 12:
        raise InvalidBirthdayError(f"Invalid month: {month}")

    if day < 1 or day > 31:
        raise InvalidBirthdayError(f"Invalid day: {day}")

    # Unknown years are checked against a leap year so Feb 29 is accepted.
    reference_year = 2000 if year is None else year
    try:
        date(reference_year, month, day)
    except ValueError as exc:
        if year is None:
            raise InvalidBirthdayError(f"Invalid month/day combination: {month:02d}-{day:02d}") from exc
        raise InvalidBirthdayError(f"Invalid date: {year:04d}-{month:02d}-{day:02d}") from exc


@dataclass(frozen=True)
class PartialDate:
    """A birth date whose year may be unknown (``year is None``)."""

    month: int
    day: int
    year: int | None = None

    def __post_init__(self) -> None:
        if self.year is not None and (self.year < 1 or self.year > 9999):
            raise InvalidBirthdayError(f"Invalid year: {self.year}")
        validate_month_day(self.month, self.day, year=self.year)

    @property
    def has_known_year(self) -> bool:
        return self.year is not None

    def with_year(self, year: int | None) -> PartialDate:
        return PartialDate(month=self.month, day=self.day, year=year)

    def __str__(self) -> str:
        return format_partial_date(self)


def parse_partial_date(value: str) -> PartialDate:
    match = _PARTIAL_DATE_RE.fullmatch(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise InvalidBirthdayError(f"Date must use YYYY-MM-DD, got {value!r}")

    year_text, month_text, day_text = match.groups()
    year = None if year_text == UNKNOWN_YEAR_TEXT else int(year_text)
    return PartialDate(month=int(month_text), day=int(day_text), year=year)


def format_partial_date(partial: PartialDate) -> str:
    year_text = UNKNOWN_YEAR_TEXT if partial.year is None else f"{partial.year:04d}"
    return f"{year_text}-{partial.month:02d}-{partial.day:02d}"
