"""Time window helpers for inverter `HH:MM-HH:MM` slot values."""
from __future__ import annotations

from datetime import datetime, time, timedelta
import logging

from homeassistant.util import dt as dt_util

from ..const import CLEAR_TIME_PAIR

_LOGGER = logging.getLogger(__name__)


def format_time_pair(start: datetime | None, end: datetime | None) -> str:
    """Return a local `HH:MM-HH:MM` window; a missing bound clears the slot."""
    if start is None or end is None:
        return CLEAR_TIME_PAIR
    local_start = dt_util.as_local(start)
    local_end = dt_util.as_local(end)
    return f"{local_start:%H:%M}-{local_end:%H:%M}"


def parse_time(value: str) -> time:
    """Parse `HH:MM`; hours reported past midnight wrap modulo 24."""
    hours_text, _, minutes_text = value.strip().partition(":")
    try:
        hours = int(hours_text)
        minutes = int(minutes_text[:2])
    except ValueError as err:
        raise ValueError(f"Invalid time {value!r}") from err

    if hours >= 24:
        _LOGGER.warning("Time returned from inverter was %s hrs - wrapping", hours)
        hours %= 24

    return time(hours, minutes)


def parse_time_pair(value: str) -> tuple[time, time]:
    """Parse an `HH:MM-HH:MM` window into start and end times."""
    start_text, separator, end_text = value.partition("-")
    if not separator:
        raise ValueError(f"Invalid time pair {value!r}")
    return parse_time(start_text), parse_time(end_text)


def to_real_dates(value: str, now: datetime) -> tuple[datetime, datetime]:
    """Map a time-of-day window onto concrete date-times relative to now.

    A window starting before now is taken as tomorrow's, and an end before
    the start rolls over midnight.
    """
    start_time, end_time = parse_time_pair(value)
    start = datetime.combine(now.date(), start_time, tzinfo=now.tzinfo)
    end = datetime.combine(now.date(), end_time, tzinfo=now.tzinfo)

    if start_time < now.time().replace(tzinfo=None):
        start += timedelta(days=1)
        end += timedelta(days=1)

    if end_time < start_time:
        end += timedelta(days=1)

    return start, end


def is_window_equivalent(
    desired: str,
    desired_amps: int,
    current: str,
    current_amps: int,
    now: datetime,
) -> bool:
    """Return True when the current window already covers the desired one.

    The desired start must fall inside the current window, the ends must
    match and the currents must be equal.
    """
    desired_start, desired_end = to_real_dates(desired, now)
    current_start, current_end = to_real_dates(current, now)
    return (
        current_start <= desired_start <= current_end
        and desired_end == current_end
        and desired_amps == current_amps
    )
