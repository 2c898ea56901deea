from birthday_engine.timing import (
    DEFAULT_TIMINGS,
    TIMING_TO_DAYS,
    Timing,
    match_timings,
    parse_timings,
    timing_label,
)


def test_only_matching_timing_is_due() -> None:
    assert match_timings(1, {Timing.ON_THE_DAY, Timing.ONE_DAY}) == [Timing.ONE_DAY]


def test_no_timing_matches() -> None:
    assert match_timings(5, set(Timing)) == []


def test_empty_timings_never_match() -> None:
    assert match_timings(0, []) == []


def test_each_timing_maps_to_its_day() -> None:
    for timing, days_before in TIMING_TO_DAYS.items():
        assert match_timings(days_before, list(Timing)) == [timing]


def test_extended_table_yields_every_simultaneous_match() -> None:
    table = {**TIMING_TO_DAYS, Timing.ONE_WEEK: 3}

    assert match_timings(3, [Timing.THREE_DAYS, Timing.ONE_WEEK], table=table) == [
        Timing.THREE_DAYS,
        Timing.ONE_WEEK,
    ]


def test_timing_labels() -> None:
    assert [timing_label(timing) for timing in Timing] == [
        "today",
        "tomorrow",
        "in 3 days",
        "in 1 week",
        "in 2 weeks",
    ]


def test_parse_timings_drops_unknown_and_duplicates() -> None:
    assert parse_timings(["1-day", "someday", "1-day", "2-weeks"]) == (Timing.ONE_DAY, Timing.TWO_WEEKS)


def test_parse_timings_none_is_empty() -> None:
    assert parse_timings(None) == ()


def test_default_timings_are_known_values() -> None:
    assert set(DEFAULT_TIMINGS) <= set(Timing)
