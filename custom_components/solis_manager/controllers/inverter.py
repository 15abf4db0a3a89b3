"""Inverter controller that keeps the device in step with the slot plan."""
from __future__ import annotations

import asyncio
from collections.abc import Sequence
import dataclasses
from datetime import datetime
from enum import StrEnum
import logging
from typing import Protocol

from homeassistant.util import dt as dt_util

from ..const import (
    FIRMWARE_NEW_SENTINEL,
    NEW_FIRMWARE_CHARGE_SOC,
    NEW_FIRMWARE_DISCHARGE_SOC,
)
from ..decision_engine.common import Slot, SlotAction
from ..utils.time_window import format_time_pair, is_window_equivalent
from .backoff import BackoffPolicy, SleepFn, attempt_until_confirmed
from .commands import (
    ClockCommand,
    CommandId,
    ControlCommand,
    CurrentCommand,
    DeviceChargeWindow,
    LegacyChargeCommand,
    SocCommand,
    SwitchCommand,
    TimeWindowCommand,
)
from .soliscloud import SolisCloudError

_LOGGER = logging.getLogger(__name__)


class InverterDevice(Protocol):
    """Read/write access to inverter control values."""

    async def async_read(self, cid: int) -> str | None:
        ...

    async def async_write(self, cid: int, value: str) -> None:
        ...


class FirmwareVariant(StrEnum):
    """Control command set exposed by the inverter firmware."""

    LEGACY = "legacy"
    DISCRETE = "discrete"


@dataclasses.dataclass(frozen=True, slots=True)
class DeviceSession:
    """Facts about the connected device that do not change while it runs."""

    firmware: FirmwareVariant = FirmwareVariant.LEGACY


@dataclasses.dataclass(frozen=True, slots=True)
class ChargeRequest:
    """Desired device state for a conflated run of slots."""

    action: SlotAction
    start: datetime | None
    end: datetime | None
    state: DeviceChargeWindow


@dataclasses.dataclass(frozen=True, slots=True)
class ActuationResult:
    """Outcome of one synchronization step."""

    success: bool
    request: ChargeRequest | None = None
    written: bool = False
    simulated: bool = False
    firmware: FirmwareVariant | None = None
    message: str = ""


def conflate(slots: Sequence[Slot], now: datetime) -> list[Slot]:
    """Return the run of slots from the one containing now with the same action."""
    first = next(
        (index for index, slot in enumerate(slots) if slot.start <= now < slot.end),
        None,
    )
    if first is None:
        return []

    action = slots[first].resolved_action
    run = [slots[first]]
    for slot in slots[first + 1 :]:
        if slot.resolved_action is not action:
            break
        run.append(slot)
    return run


def build_charge_request(
    action: SlotAction,
    start: datetime | None,
    end: datetime | None,
    max_charge_amps: int,
    override_amps: int | None = None,
) -> ChargeRequest:
    """Translate an action over a span into charge and discharge windows."""
    amps = override_amps if override_amps is not None else max_charge_amps
    span = format_time_pair(start, end)

    if action is SlotAction.CHARGE:
        state = DeviceChargeWindow(
            charge_amps=amps, discharge_amps=0, charge_window=span
        )
    elif action is SlotAction.DISCHARGE:
        state = DeviceChargeWindow(
            charge_amps=0, discharge_amps=amps, discharge_window=span
        )
    elif action is SlotAction.HOLD:
        state = DeviceChargeWindow(charge_amps=0, discharge_amps=0, discharge_window=span)
    else:
        state = DeviceChargeWindow(charge_amps=0, discharge_amps=0)

    return ChargeRequest(action=action, start=start, end=end, state=state)


def is_state_equivalent(
    desired: DeviceChargeWindow, current: DeviceChargeWindow, now: datetime
) -> bool:
    """Return True when writing `desired` would not change device behaviour."""
    try:
        return _is_state_equivalent(desired, current, now)
    except ValueError as err:
        _LOGGER.warning("Unable to compare inverter state: %s", err)
        return False


def _is_state_equivalent(
    desired: DeviceChargeWindow, current: DeviceChargeWindow, now: datetime
) -> bool:
    return is_window_equivalent(
        desired.charge_window,
        desired.charge_amps,
        current.charge_window,
        current.charge_amps,
        now,
    ) and is_window_equivalent(
        desired.discharge_window,
        desired.discharge_amps,
        current.discharge_window,
        current.discharge_amps,
        now,
    )


class ChargeActuator:
    """Drive the inverter to match the resolved plan, writing only on change."""

    def __init__(
        self,
        device: InverterDevice,
        *,
        max_charge_amps: int,
        policy: BackoffPolicy | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        """Initialize the actuator."""
        self.device = device
        self.max_charge_amps = max_charge_amps
        self.policy = policy or BackoffPolicy()
        self._sleep = sleep

    async def async_probe_firmware(self) -> DeviceSession:
        """Detect the firmware variant; failures fall back to legacy."""
        try:
            value = await self.device.async_read(CommandId.CHECK_FIRMWARE)
        except SolisCloudError as err:
            _LOGGER.warning("Firmware probe failed, assuming legacy firmware: %s", err)
            return DeviceSession(FirmwareVariant.LEGACY)

        try:
            discrete = value is not None and int(value) == FIRMWARE_NEW_SENTINEL
        except ValueError:
            discrete = False

        if discrete:
            _LOGGER.info("Detected new firmware version: %s (%X)", value, int(value))
            return DeviceSession(FirmwareVariant.DISCRETE)
        return DeviceSession(FirmwareVariant.LEGACY)

    async def async_sync(
        self,
        slots: Sequence[Slot],
        now: datetime,
        session: DeviceSession,
        *,
        simulate_only: bool = False,
    ) -> ActuationResult:
        """Bring the device in line with the slot containing now."""
        run = conflate(slots, now)
        if not run:
            return ActuationResult(success=False, message="No slot covers now")

        request = build_charge_request(
            run[0].resolved_action, run[0].start, run[-1].end, self.max_charge_amps
        )
        return await self.async_apply(
            request, session, simulate_only=simulate_only, now=now
        )

    async def async_apply(
        self,
        request: ChargeRequest,
        session: DeviceSession,
        *,
        simulate_only: bool = False,
        now: datetime | None = None,
    ) -> ActuationResult:
        """Check equivalence and write the request if the device differs."""
        state = request.state
        if simulate_only:
            _LOGGER.info(
                "Simulated charge instruction: %s, %s, %s, %s",
                state.charge_amps,
                state.discharge_amps,
                state.charge_window,
                state.discharge_window,
            )
            return ActuationResult(
                success=True, request=request, simulated=True, message="Simulated"
            )

        try:
            current = await self.async_read_state(session)
        except SolisCloudError as err:
            _LOGGER.warning("Unable to read inverter charge state: %s", err)
            current = None

        local_now = dt_util.as_local(now) if now is not None else dt_util.now()
        if current is not None and is_state_equivalent(state, current, local_now):
            _LOGGER.info(
                "Inverter already in correct state (%s, %s, %s, %s) - no write needed",
                state.charge_amps,
                state.discharge_amps,
                state.charge_window,
                state.discharge_window,
            )
            return ActuationResult(
                success=True,
                request=request,
                firmware=session.firmware,
                message="Already in state",
            )

        _LOGGER.info(
            "Sending new charge instruction (%s firmware): %s, %s, %s, %s",
            session.firmware,
            state.charge_amps,
            state.discharge_amps,
            state.charge_window,
            state.discharge_window,
        )

        if session.firmware is FirmwareVariant.DISCRETE:
            confirmed = await self._async_write_discrete(state)
        else:
            confirmed = await self.async_send(LegacyChargeCommand(state))

        return ActuationResult(
            success=confirmed,
            request=request,
            written=True,
            firmware=session.firmware,
            message="Written" if confirmed else "Write did not persist",
        )

    async def async_read_state(
        self, session: DeviceSession
    ) -> DeviceChargeWindow | None:
        """Read the device-resident charge state; None when unreadable."""
        if session.firmware is FirmwareVariant.DISCRETE:
            charge_amps = await self.device.async_read(CommandId.CHARGE_SLOT1_AMPS)
            charge_window = await self.device.async_read(CommandId.CHARGE_SLOT1_TIME)
            discharge_amps = await self.device.async_read(
                CommandId.DISCHARGE_SLOT1_AMPS
            )
            discharge_window = await self.device.async_read(
                CommandId.DISCHARGE_SLOT1_TIME
            )
            if None in (charge_amps, charge_window, discharge_amps, discharge_window):
                return None
            try:
                return DeviceChargeWindow(
                    charge_amps=int(charge_amps),
                    discharge_amps=int(discharge_amps),
                    charge_window=charge_window,
                    discharge_window=discharge_window,
                )
            except ValueError:
                _LOGGER.warning("Error reading inverter charge slot state")
                return None

        value = await self.device.async_read(CommandId.READ_CHARGE_STATE)
        if not value:
            return None
        try:
            return DeviceChargeWindow.from_legacy(value)
        except ValueError:
            _LOGGER.warning("Error reading inverter charge slot state: %r", value)
            return None

    async def async_send(self, command: ControlCommand) -> bool:
        """Write a command and, where it can be verified, confirm it persisted."""

        async def _write() -> None:
            await self.device.async_write(command.cid, command.value)

        async def _confirm() -> bool:
            readback = await self.device.async_read(command.cid)
            return command.matches(readback)

        if not command.verify:
            try:
                await _write()
            except SolisCloudError as err:
                _LOGGER.warning("Control request CID %s failed: %s", command.cid, err)
                return False
            return True

        return await attempt_until_confirmed(
            _write,
            _confirm,
            self.policy,
            sleep=self._sleep,
            retry_on=(SolisCloudError,),
            description=f"Control request (CID: {int(command.cid)}, Value: {command.value})",
        )

    async def _async_enable_slot(self, cid: CommandId) -> bool:
        try:
            flag = await self.device.async_read(cid)
        except SolisCloudError as err:
            _LOGGER.warning("Unable to read %s enable state: %s", cid.name, err)
            flag = None

        if flag is not None and flag.strip() == "1":
            return True

        _LOGGER.warning("Slot %s was not enabled - sending enable command", cid.name)
        return await self.async_send(SwitchCommand(cid, True))

    async def _async_write_discrete(self, state: DeviceChargeWindow) -> bool:
        results = [
            await self._async_enable_slot(CommandId.CHARGE_SLOT1_SWITCH),
            await self._async_enable_slot(CommandId.DISCHARGE_SLOT1_SWITCH),
        ]

        # Discharging requires a charge target below the current SOC
        charge_soc = (
            NEW_FIRMWARE_DISCHARGE_SOC
            if state.discharge_amps > 0
            else NEW_FIRMWARE_CHARGE_SOC
        )
        commands: list[ControlCommand] = [
            SocCommand(CommandId.CHARGE_SLOT1_SOC, charge_soc),
            SocCommand(CommandId.DISCHARGE_SLOT1_SOC, NEW_FIRMWARE_DISCHARGE_SOC),
            CurrentCommand(CommandId.CHARGE_SLOT1_AMPS, state.charge_amps),
            TimeWindowCommand(CommandId.CHARGE_SLOT1_TIME, state.charge_window),
            CurrentCommand(CommandId.DISCHARGE_SLOT1_AMPS, state.discharge_amps),
            TimeWindowCommand(CommandId.DISCHARGE_SLOT1_TIME, state.discharge_window),
        ]
        for command in commands:
            results.append(await self.async_send(command))
        return all(results)

    async def async_set_clock(
        self, now: datetime, *, simulate_only: bool = False
    ) -> bool:
        """Set the inverter clock to the given local time."""
        command = ClockCommand(dt_util.as_local(now).strftime("%Y-%m-%d %H:%M:%S"))
        _LOGGER.info("Updating inverter time to %s to avoid drift", command.value)
        if simulate_only:
            return True
        return await self.async_send(command)

