"""Manual, scheduled and dispatch overrides layered onto the slot plan."""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
import logging
import math

from .common import (
    BatteryState,
    OverrideType,
    Slot,
    SlotAction,
    UtilityDispatch,
    apply_override,
)

_LOGGER = logging.getLogger(__name__)


class OverrideManager:
    """Keep manual overrides across cycles and apply them to fresh plans.

    Manual overrides are keyed by slot start. Every other override kind is
    recomputed each cycle.
    """

    def __init__(self, full_charge_slots: int) -> None:
        """Initialize the override manager."""
        self.full_charge_slots = full_charge_slots
        self._manual: dict[datetime, SlotAction] = {}

    @property
    def manual_overrides(self) -> dict[datetime, SlotAction]:
        """Return a copy of the stored manual overrides."""
        return dict(self._manual)

    def apply(
        self,
        slots: Sequence[Slot],
        dispatches: Iterable[UtilityDispatch] = (),
    ) -> list[Slot]:
        """Apply dispatch overrides and reapply stored manual overrides."""
        result = list(slots)
        if not result:
            return result

        for dispatch in dispatches:
            for index, slot in enumerate(result):
                if slot.start < dispatch.end and slot.end > dispatch.start:
                    result[index] = apply_override(
                        slot, SlotAction.CHARGE, OverrideType.UTILITY_DISPATCH
                    )

        first_start = result[0].start
        for start in [start for start in self._manual if start < first_start]:
            del self._manual[start]

        for index, slot in enumerate(result):
            action = self._manual.get(slot.start)
            if action is not None:
                result[index] = slot.with_override(action, OverrideType.MANUAL)
            elif slot.override_type is OverrideType.MANUAL:
                result[index] = slot.with_override(None, OverrideType.NONE)

        return result

    def set_manual_override(
        self, slots: Sequence[Slot], start: datetime, action: SlotAction
    ) -> bool:
        """Request a manual override for the slot starting at `start`.

        Requesting the slot's planned action clears the override instead.
        Returns False when no slot starts at `start`.
        """
        slot = next((slot for slot in slots if slot.start == start), None)
        if slot is None:
            _LOGGER.warning("No slot starts at %s - manual override ignored", start)
            return False

        if slot.plan_action is action:
            self._manual.pop(start, None)
            _LOGGER.info("Cleared manual override for %s", start)
        else:
            self._manual[start] = action
            _LOGGER.info("Set manual override for %s to %s", start, action)
        return True

    def restore_manual_overrides(self, overrides: dict[datetime, SlotAction]) -> None:
        """Adopt manual overrides kept from a previous manager."""
        self._manual.update(overrides)
        if overrides:
            _LOGGER.info("Restored %d manual overrides", len(overrides))

    def clear_manual_overrides(self) -> None:
        """Drop every stored manual override."""
        _LOGGER.info("Clearing %d manual overrides", len(self._manual))
        self._manual.clear()

    def charge_battery(self, slots: Sequence[Slot], battery: BatteryState) -> int:
        """Charge from now for long enough to fill the battery."""
        count = self._slots_for_fraction(battery, charging=True)
        self._set_run(slots[:count], SlotAction.CHARGE)
        return count

    def discharge_battery(self, slots: Sequence[Slot], battery: BatteryState) -> int:
        """Discharge from now for long enough to empty the battery."""
        count = self._slots_for_fraction(battery, charging=False)
        self._set_run(slots[:count], SlotAction.DISCHARGE)
        return count

    def dump_and_charge(self, slots: Sequence[Slot], battery: BatteryState) -> int:
        """Discharge the battery and then charge it back to full."""
        count = self._slots_for_fraction(battery, charging=False)
        self._set_run(slots[:count], SlotAction.DISCHARGE)
        self._set_run(
            slots[count : count + self.full_charge_slots], SlotAction.CHARGE
        )
        return min(len(slots), count + self.full_charge_slots)

    def _slots_for_fraction(self, battery: BatteryState, *, charging: bool) -> int:
        if not battery.is_valid:
            return self.full_charge_slots
        fraction = (100 - battery.soc_percent) if charging else battery.soc_percent
        return max(0, math.ceil(self.full_charge_slots * fraction / 100))

    def _set_run(self, slots: Sequence[Slot], action: SlotAction) -> None:
        for slot in slots:
            self._manual[slot.start] = action
        if slots:
            _LOGGER.info(
                "Manual %s from %s to %s", action, slots[0].start, slots[-1].end
            )
