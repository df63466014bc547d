"""Unit tests for calendar helpers."""
from datetime import datetime

from agency_billing.utils.dates import add_months, end_of_month, start_of_month, utcnow


def test_add_months_keeps_day_and_time() -> None:
    """Adding a month moves only the month."""
    value = datetime(2026, 3, 15, 10, 30, 5)
    assert add_months(value, 1) == datetime(2026, 4, 15, 10, 30, 5)


def test_add_months_clamps_to_month_end() -> None:
    """Jan 31 + 1 month lands on the last day of February."""
    assert add_months(datetime(2026, 1, 31), 1) == datetime(2026, 2, 28)
    assert add_months(datetime(2028, 1, 31), 1) == datetime(2028, 2, 29)


def test_add_months_rolls_over_year() -> None:
    """December + 1 is January of the next year; 12 months is one year."""
    assert add_months(datetime(2026, 12, 10), 1) == datetime(2027, 1, 10)
    assert add_months(datetime(2026, 5, 1), 12) == datetime(2027, 5, 1)


def test_add_months_negative() -> None:
    """Negative offsets go back in time."""
    assert add_months(datetime(2026, 1, 15), -1) == datetime(2025, 12, 15)


def test_month_bounds() -> None:
    """Month bounds cover the whole calendar month."""
    value = datetime(2026, 2, 14, 13, 45)
    assert start_of_month(value) == datetime(2026, 2, 1)
    assert end_of_month(value) == datetime(2026, 2, 28, 23, 59, 59, 999999)


def test_utcnow_is_naive() -> None:
    """Timestamps are stored naive."""
    assert utcnow().tzinfo is None
