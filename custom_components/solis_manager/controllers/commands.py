"""Device command identifiers and typed control commands."""
from __future__ import annotations

import dataclasses
from enum import IntEnum
import logging

from ..const import CLEAR_TIME_PAIR
from ..utils.time_window import parse_time_pair

_LOGGER = logging.getLogger(__name__)


class CommandId(IntEnum):
    """SolisCloud control command ids (CIDs)."""

    SET_INVERTER_TIME = 56
    SET_CHARGE = 103
    READ_CHARGE_STATE = 4643
    CHARGE_SLOT1_SWITCH = 5916
    DISCHARGE_SLOT1_SWITCH = 5922
    CHARGE_SLOT1_SOC = 5928
    CHARGE_SLOT1_TIME = 5946
    CHARGE_SLOT1_AMPS = 5948
    DISCHARGE_SLOT1_TIME = 5964
    DISCHARGE_SLOT1_SOC = 5965
    DISCHARGE_SLOT1_AMPS = 5967
    CHECK_FIRMWARE = 6798


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def _same_window(expected: str, value: str | None) -> bool:
    if value is None:
        return False
    try:
        return parse_time_pair(expected) == parse_time_pair(value)
    except ValueError:
        return False


@dataclasses.dataclass(frozen=True, slots=True)
class DeviceChargeWindow:
    """Charge and discharge settings resident on the inverter."""

    charge_amps: int
    discharge_amps: int
    charge_window: str = CLEAR_TIME_PAIR
    discharge_window: str = CLEAR_TIME_PAIR

    @classmethod
    def from_legacy(cls, value: str) -> DeviceChargeWindow:
        """Parse the combined legacy charge state string."""
        parts = [part.strip() for part in value.split(",")]
        if len(parts) < 4:
            raise ValueError(f"Invalid charge state {value!r}")
        return cls(
            charge_amps=int(parts[0]),
            discharge_amps=int(parts[1]),
            charge_window=parts[2],
            discharge_window=parts[3],
        )

    def to_legacy(self) -> str:
        """Return the combined legacy command value, unused slots cleared."""
        return (
            f"{self.charge_amps},{self.discharge_amps},"
            f"{self.charge_window},{self.discharge_window},"
            f"0,0,{CLEAR_TIME_PAIR},{CLEAR_TIME_PAIR},"
            f"0,0,{CLEAR_TIME_PAIR},{CLEAR_TIME_PAIR}"
        )


@dataclasses.dataclass(frozen=True, slots=True)
class TimeWindowCommand:
    """Set a charge or discharge time window."""

    cid: CommandId
    window: str
    verify: bool = True

    @property
    def value(self) -> str:
        return self.window

    def matches(self, readback: str | None) -> bool:
        return _same_window(self.window, readback)


@dataclasses.dataclass(frozen=True, slots=True)
class CurrentCommand:
    """Set a charge or discharge current in amps."""

    cid: CommandId
    amps: int
    verify: bool = True

    @property
    def value(self) -> str:
        return str(self.amps)

    def matches(self, readback: str | None) -> bool:
        return _parse_int(readback) == self.amps


@dataclasses.dataclass(frozen=True, slots=True)
class SocCommand:
    """Set a slot target state of charge in percent."""

    cid: CommandId
    percent: int
    verify: bool = True

    @property
    def value(self) -> str:
        return str(self.percent)

    def matches(self, readback: str | None) -> bool:
        return _parse_int(readback) == self.percent


@dataclasses.dataclass(frozen=True, slots=True)
class SwitchCommand:
    """Turn a slot enable switch on or off."""

    cid: CommandId
    enabled: bool
    verify: bool = True

    @property
    def value(self) -> str:
        return "1" if self.enabled else "0"

    def matches(self, readback: str | None) -> bool:
        return _parse_int(readback) == int(self.enabled)


@dataclasses.dataclass(frozen=True, slots=True)
class LegacyChargeCommand:
    """Combined charge command used by legacy firmware."""

    state: DeviceChargeWindow
    cid: CommandId = CommandId.SET_CHARGE
    verify: bool = True

    @property
    def value(self) -> str:
        return self.state.to_legacy()

    def matches(self, readback: str | None) -> bool:
        if readback is None:
            return False
        try:
            current = DeviceChargeWindow.from_legacy(readback)
        except ValueError:
            return False
        return (
            current.charge_amps == self.state.charge_amps
            and current.discharge_amps == self.state.discharge_amps
            and _same_window(self.state.charge_window, current.charge_window)
            and _same_window(self.state.discharge_window, current.discharge_window)
        )


@dataclasses.dataclass(frozen=True, slots=True)
class ClockCommand:
    """Set the inverter clock; the read-back always differs so it is unverified."""

    timestamp: str
    cid: CommandId = CommandId.SET_INVERTER_TIME
    verify: bool = False

    @property
    def value(self) -> str:
        return self.timestamp

    def matches(self, readback: str | None) -> bool:
        return True


ControlCommand = (
    TimeWindowCommand
    | CurrentCommand
    | SocCommand
    | SwitchCommand
    | LegacyChargeCommand
    | ClockCommand
)
