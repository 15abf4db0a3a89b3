"""Tests for typed inverter control commands."""
from __future__ import annotations

import pytest

from custom_components.solis_manager.controllers.commands import (
    ClockCommand,
    CommandId,
    CurrentCommand,
    DeviceChargeWindow,
    LegacyChargeCommand,
    SwitchCommand,
    TimeWindowCommand,
)

LEGACY_VALUE = (
    "50,0,01:00-03:00,00:00-00:00,0,0,00:00-00:00,00:00-00:00,"
    "0,0,00:00-00:00,00:00-00:00"
)


@pytest.mark.unit
def test_device_charge_window_from_legacy() -> None:
    state = DeviceChargeWindow.from_legacy(LEGACY_VALUE)

    assert state == DeviceChargeWindow(
        charge_amps=50,
        discharge_amps=0,
        charge_window="01:00-03:00",
        discharge_window="00:00-00:00",
    )
    assert state.to_legacy() == LEGACY_VALUE


@pytest.mark.unit
def test_device_charge_window_rejects_short_value() -> None:
    with pytest.raises(ValueError):
        DeviceChargeWindow.from_legacy("50,0")


@pytest.mark.unit
def test_legacy_command_matches_readback() -> None:
    command = LegacyChargeCommand(DeviceChargeWindow.from_legacy(LEGACY_VALUE))

    assert command.cid is CommandId.SET_CHARGE
    assert command.matches(LEGACY_VALUE)
    assert not command.matches(LEGACY_VALUE.replace("50,", "40,", 1))
    assert not command.matches(None)
    assert not command.matches("garbage")


@pytest.mark.unit
def test_time_window_command_tolerates_wrapped_hours() -> None:
    command = TimeWindowCommand(CommandId.CHARGE_SLOT1_TIME, "01:00-02:30")

    assert command.matches("25:00-26:30")
    assert not command.matches("01:00-03:00")
    assert not command.matches(None)


@pytest.mark.unit
def test_numeric_commands_compare_values() -> None:
    current = CurrentCommand(CommandId.CHARGE_SLOT1_AMPS, 50)
    switch = SwitchCommand(CommandId.CHARGE_SLOT1_SWITCH, True)

    assert current.value == "50"
    assert current.matches(" 50 ")
    assert not current.matches("x")
    assert switch.value == "1"
    assert switch.matches("1")
    assert not switch.matches("0")


@pytest.mark.unit
def test_clock_command_is_unverified() -> None:
    command = ClockCommand("2024-03-01 12:00:00")

    assert command.cid is CommandId.SET_INVERTER_TIME
    assert command.verify is False
