from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from enum import Enum

LOGGER = logging.getLogger(__name__)


class Timing(str, Enum):
    ON_THE_DAY = "on-the-day"
    ONE_DAY = "1-day"
    THREE_DAYS = "3-days"
    ONE_WEEK = "1-week"
    TWO_WEEKS = "2-weeks"


TIMING_TO_DAYS: dict[Timing, int] = {
    Timing.ON_THE_DAY: 0,
    Timing.ONE_DAY: 1,
    Timing.THREE_DAYS: 3,
    Timing.ONE_WEEK: 7,
    Timing.TWO_WEEKS: 14,
}

TIMING_LABELS: dict[Timing, str] = {
    Timing.ON_THE_DAY: "today",
    Timing.ONE_DAY: "tomorrow",
    Timing.THREE_DAYS: "in 3 days",
    Timing.ONE_WEEK: "in 1 week",
    Timing.TWO_WEEKS: "in 2 weeks",
}

DEFAULT_TIMINGS: tuple[Timing, ...] = (Timing.ON_THE_DAY, Timing.ONE_DAY, Timing.ONE_WEEK)


def timing_label(timing: Timing) -> str:
    return TIMING_LABELS[timing]


def parse_timings(values: Iterable[object] | None) -> tuple[Timing, ...]:
    if values is None:
        return ()

    parsed: list[Timing] = []
    for value in values:
        try:
            timing = Timing(value)
        except ValueError:
            LOGGER.warning("Ignoring unknown notification timing %r", value)
            continue
        if timing not in parsed:
            parsed.append(timing)
    return tuple(parsed)


def match_timings(
    days_until: int,
    timings: Iterable[Timing],
    *,
    table: Mapping[Timing, int] = TIMING_TO_DAYS,
) -> list[Timing]:
    wanted = set(timings)
    return [timing for timing, days_before in table.items() if timing in wanted and days_before == days_until]
