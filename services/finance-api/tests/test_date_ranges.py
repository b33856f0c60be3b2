from datetime import datetime

import pytest

from date_ranges import NO_RANGE, DateRange, end_of_month, infer_date_range, parse_explicit_date

NOW = datetime(2025, 7, 15, 14, 30)


def test_today_covers_whole_calendar_day() -> None:
    result = infer_date_range("How much did I spend today?", NOW)

    assert result.kind == "today"
    assert result.start == datetime(2025, 7, 15, 0, 0, 0)
    assert result.end == datetime(2025, 7, 15, 23, 59, 59, 999000)


def test_yesterday_is_previous_calendar_day() -> None:
    result = infer_date_range("what about yesterday", NOW)

    assert result.kind == "yesterday"
    assert result.start == datetime(2025, 7, 14)
    assert result.end == datetime(2025, 7, 14, 23, 59, 59, 999000)


def test_last_week_is_rolling_seven_days() -> None:
    result = infer_date_range("Show my spending last week", NOW)

    assert result.kind == "last_week"
    assert result.start == datetime(2025, 7, 8, 14, 30)
    assert result.end == datetime(2025, 7, 15, 23, 59, 59, 999000)
    assert result.label == "last week"


def test_this_month_runs_to_end_of_today() -> None:
    result = infer_date_range("Spending this month", NOW)

    assert result.kind == "this_month"
    assert result.start == datetime(2025, 7, 1)
    assert result.end == datetime(2025, 7, 15, 23, 59, 59, 999000)


def test_last_month_wraps_into_previous_year() -> None:
    result = infer_date_range("What did I buy last month?", datetime(2025, 1, 10, 9, 0))

    assert result.kind == "last_month"
    assert result.start == datetime(2024, 12, 1)
    assert result.end == datetime(2024, 12, 31, 23, 59, 59, 999000)


@pytest.mark.parametrize(
    ("message", "kind", "year"),
    [
        ("totals for this year", "this_year", 2025),
        ("totals for the current year", "this_year", 2025),
        ("and last year?", "last_year", 2024),
    ],
)
def test_year_windows(message: str, kind: str, year: int) -> None:
    result = infer_date_range(message, NOW)

    assert result.kind == kind
    assert result.start == datetime(year, 1, 1)
    assert result.end == datetime(year, 12, 31, 23, 59, 59, 999000)


def test_first_matching_phrase_wins() -> None:
    result = infer_date_range("compare today with last week", NOW)

    assert result.kind == "today"


def test_explicit_month_first_date() -> None:
    result = infer_date_range("What did I spend on 7/10/2025?", NOW)

    assert result.kind == "specific_day"
    assert result.start == datetime(2025, 7, 10)
    assert result.end == datetime(2025, 7, 10, 23, 59, 59, 999000)
    assert result.label == "specific day"


def test_explicit_day_first_when_first_number_exceeds_twelve() -> None:
    result = infer_date_range("purchases on 13/10/2025", NOW)

    assert result.start == datetime(2025, 10, 13)


def test_explicit_iso_date() -> None:
    result = infer_date_range("anything on 2025-03-04?", NOW)

    assert result.start == datetime(2025, 3, 4)


@pytest.mark.parametrize("message", ["on 31/02/2025", "on 7/10/25", "on 2025-13-01"])
def test_unusable_explicit_dates_give_no_range(message: str) -> None:
    assert infer_date_range(message, NOW) == NO_RANGE


def test_no_phrase_means_unbounded_range() -> None:
    result = infer_date_range("How much did I spend on dining?", NOW)

    assert result == NO_RANGE
    assert not result.is_bounded
    assert result.label == "all time"


def test_parse_explicit_date_rejects_two_digit_years() -> None:
    assert parse_explicit_date("1-2-99") is None
    assert parse_explicit_date("2024/2/29") == datetime(2024, 2, 29)


def test_end_of_month_handles_leap_february() -> None:
    assert end_of_month(datetime(2024, 2, 3)) == datetime(2024, 2, 29, 23, 59, 59, 999000)


def test_date_range_is_immutable() -> None:
    window = DateRange(start=NOW, end=NOW, kind="today")

    with pytest.raises(AttributeError):
        window.kind = "yesterday"  # type: ignore[misc]
