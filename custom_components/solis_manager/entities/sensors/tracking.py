"""Tracking and diagnostic sensors for Solis Manager."""
from __future__ import annotations

from datetime import datetime
import logging
from typing import Any

from homeassistant.components.sensor import RestoreSensor, SensorDeviceClass
from homeassistant.const import EntityCategory
from homeassistant.core import callback
from homeassistant.util import dt as dt_util

from ..base import SolisManagerSensor

_LOGGER = logging.getLogger(__name__)


class LastActuationSensor(SolisManagerSensor, RestoreSensor):
    """Sensor tracking the last inverter synchronization."""

    _attr_name = "Last Actuation"
    _attr_unique_id = "last_actuation"
    _attr_device_class = SensorDeviceClass.TIMESTAMP
    _attr_entity_category = EntityCategory.DIAGNOSTIC
    _attr_icon = "mdi:transmission-tower-import"
    _attr_native_value: datetime | None = None
    _attr_extra_state_attributes: dict[str, Any] = {}

    async def async_added_to_hass(self) -> None:
        """Restore last state on startup."""
        await super().async_added_to_hass()

        if (last_state := await self.async_get_last_state()) is not None:
            if last_state.state not in ("unknown", "unavailable"):
                self._attr_native_value = dt_util.parse_datetime(last_state.state)
            self._attr_extra_state_attributes = dict(last_state.attributes or {})
            _LOGGER.info("Restored LastActuationSensor: %s", last_state.state)

    @property
    def native_value(self) -> datetime | None:
        """Return the last actuation timestamp."""
        return self._attr_native_value

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return details of the last actuation."""
        return self._attr_extra_state_attributes

    @callback
    def _handle_coordinator_update(self) -> None:
        data = self.coordinator.data
        if data is None or data.last_actuation is None:
            return

        result = data.last_actuation
        attributes: dict[str, Any] = {
            "success": result.success,
            "written": result.written,
            "simulated": result.simulated,
            "firmware": str(result.firmware) if result.firmware else None,
            "message": result.message,
        }
        if result.request is not None:
            state = result.request.state
            attributes.update(
                {
                    "action": str(result.request.action),
                    "charge_window": state.charge_window,
                    "charge_amps": state.charge_amps,
                    "discharge_window": state.discharge_window,
                    "discharge_amps": state.discharge_amps,
                }
            )

        self._attr_native_value = data.updated
        self._attr_extra_state_attributes = attributes
        self.async_write_ha_state()
