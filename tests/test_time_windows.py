"""Tests for inverter time window helpers."""
from __future__ import annotations

from datetime import datetime, time, timezone

import pytest

from custom_components.solis_manager.utils.time_window import (
    format_time_pair,
    is_window_equivalent,
    parse_time,
    parse_time_pair,
    to_real_dates,
)


@pytest.mark.unit
def test_format_time_pair_uses_local_times() -> None:
    start = datetime(2024, 3, 1, 23, 0, tzinfo=timezone.utc)
    end = datetime(2024, 3, 2, 0, 30, tzinfo=timezone.utc)

    assert format_time_pair(start, end) == "23:00-00:30"


@pytest.mark.unit
def test_format_time_pair_missing_bound_clears() -> None:
    assert format_time_pair(None, None) == "00:00-00:00"


@pytest.mark.unit
def test_parse_time_wraps_hours_past_midnight() -> None:
    assert parse_time("25:30") == time(1, 30)
    assert parse_time_pair("24:00-26:15") == (time(0, 0), time(2, 15))


@pytest.mark.unit
def test_parse_time_rejects_garbage() -> None:
    with pytest.raises(ValueError):
        parse_time("ab:cd")
    with pytest.raises(ValueError):
        parse_time_pair("01:00")


@pytest.mark.unit
def test_to_real_dates_rolls_end_over_midnight() -> None:
    now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

    start, end = to_real_dates("22:00-02:00", now)

    assert start == datetime(2024, 3, 1, 22, 0, tzinfo=timezone.utc)
    assert end == datetime(2024, 3, 2, 2, 0, tzinfo=timezone.utc)


@pytest.mark.unit
@pytest.mark.parametrize(
    "now",
    [
        datetime(2024, 3, 1, 23, 10, tzinfo=timezone.utc),
        datetime(2024, 3, 2, 0, 10, tzinfo=timezone.utc),
    ],
)
def test_day_wrap_window_is_equivalent(now: datetime) -> None:
    assert is_window_equivalent("23:00-00:30", 50, "23:00-00:30", 50, now)


@pytest.mark.unit
def test_desired_start_inside_current_window_is_equivalent() -> None:
    now = datetime(2024, 3, 1, 23, 40, tzinfo=timezone.utc)

    assert is_window_equivalent("23:30-00:30", 50, "23:00-00:30", 50, now)


@pytest.mark.unit
def test_window_end_or_current_mismatch_is_not_equivalent() -> None:
    now = datetime(2024, 3, 1, 1, 10, tzinfo=timezone.utc)

    assert not is_window_equivalent("01:00-02:30", 50, "01:00-02:00", 50, now)
    assert not is_window_equivalent("01:00-02:30", 50, "01:00-02:30", 40, now)


@pytest.mark.unit
def test_cleared_windows_are_equivalent() -> None:
    now = datetime(2024, 3, 1, 14, 5, tzinfo=timezone.utc)

    assert is_window_equivalent("00:00-00:00", 0, "00:00-00:00", 0, now)
