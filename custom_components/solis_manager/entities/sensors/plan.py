"""Plan snapshot sensors for Solis Manager."""
from __future__ import annotations

from typing import Any

from homeassistant.components.sensor import SensorDeviceClass

from ...decision_engine.common import SlotAction
from ..base import SolisManagerSensor


class CurrentActionSensor(SolisManagerSensor):
    """Resolved battery action for the current slot."""

    _attr_name = "Current Action"
    _attr_unique_id = "current_action"
    _attr_icon = "mdi:battery-sync"
    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = [str(action) for action in SlotAction]

    @property
    def native_value(self) -> str | None:
        slot = self.current_slot
        return str(slot.resolved_action) if slot else None

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        slot = self.current_slot
        if slot is None:
            return {}
        return {
            "slot_start": slot.start.isoformat(),
            "slot_end": slot.end.isoformat(),
            "price": slot.price,
            "price_type": str(slot.price_type),
            "plan_action": str(slot.plan_action),
            "override_type": str(slot.override_type),
            "reason": slot.reason,
        }


class CurrentPriceSensor(SolisManagerSensor):
    """Unit price of the current slot."""

    _attr_name = "Current Price"
    _attr_unique_id = "current_price"
    _attr_icon = "mdi:currency-gbp"
    _attr_native_unit_of_measurement = "p/kWh"

    @property
    def native_value(self) -> float | None:
        slot = self.current_slot
        return slot.price if slot else None


class PlanSensor(SolisManagerSensor):
    """Number of planned slots, with the full plan in attributes."""

    _attr_name = "Charge Plan"
    _attr_unique_id = "charge_plan"
    _attr_icon = "mdi:calendar-clock"

    @property
    def native_value(self) -> int | None:
        if self.coordinator.data is None:
            return None
        return len(self.coordinator.data.slots)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        data = self.coordinator.data
        if data is None:
            return {}
        return {
            "battery_soc": data.battery.soc_percent,
            "forecast_today_kwh": data.forecast.today_kwh,
            "forecast_tomorrow_kwh": data.forecast.tomorrow_kwh,
            "slots": [slot.as_dict() for slot in data.slots],
        }
