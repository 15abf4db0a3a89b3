"""Pytest configuration for tests."""
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
import socket as _socket_module

import pytest
from homeassistant.util import dt as dt_util

from custom_components.solis_manager.decision_engine.common import Slot

# Save the real socket.socket before pytest-socket replaces it
_original_socket = _socket_module.socket

SLOT_START = datetime(2024, 3, 1, 0, 0, tzinfo=timezone.utc)


def pytest_load_initial_conftests(early_config, parser, args):
    """Restore socket before plugins initialize."""
    _socket_module.socket = _original_socket


def pytest_configure(config):
    """Configure pytest."""
    _socket_module.socket = _original_socket
    config.addinivalue_line("markers", "unit: Simple unit tests without async/network requirements")


@pytest.fixture(autouse=True)
def utc_time_zone(monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test with local time equal to UTC."""
    monkeypatch.setattr(dt_util, "DEFAULT_TIME_ZONE", timezone.utc)


@pytest.fixture
def make_slots() -> Callable[..., list[Slot]]:
    """Return a factory building contiguous half-hour slots from prices."""

    def _make(
        prices: Sequence[float],
        *,
        start: datetime = SLOT_START,
        forecasts: Sequence[float | None] | None = None,
    ) -> list[Slot]:
        slots = []
        for index, price in enumerate(prices):
            slot_start = start + timedelta(minutes=30 * index)
            slots.append(
                Slot(
                    start=slot_start,
                    end=slot_start + timedelta(minutes=30),
                    price=price,
                    forecast_kwh=forecasts[index] if forecasts else None,
                )
            )
        return slots

    return _make
