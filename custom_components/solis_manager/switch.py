"""Switch platform for Solis Manager integration."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.components.switch import SwitchDeviceClass, SwitchEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import EntityCategory
from homeassistant.helpers.restore_state import RestoreEntity

from .const import CONF_SIMULATE_ONLY, DEFAULT_SIMULATE_ONLY
from .entities.base import build_device_info
from .helpers import get_entry_data

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Solis Manager switches from a config entry."""
    simulate_only_switch = SimulateOnlySwitch(config_entry)
    async_add_entities([simulate_only_switch])

    get_entry_data(hass, config_entry)["simulate_only_switch"] = simulate_only_switch


class SimulateOnlySwitch(SwitchEntity, RestoreEntity):
    """Switch that logs inverter commands instead of sending them."""

    _attr_has_entity_name = True
    _attr_name = "Simulate Only"
    _attr_icon = "mdi:test-tube"
    _attr_entity_category = EntityCategory.CONFIG
    _attr_device_class = SwitchDeviceClass.SWITCH

    def __init__(self, config_entry: ConfigEntry) -> None:
        """Initialize the simulate-only switch."""
        self._attr_is_on = bool(
            config_entry.data.get(CONF_SIMULATE_ONLY, DEFAULT_SIMULATE_ONLY)
        )
        self._attr_unique_id = f"{config_entry.entry_id}_simulate_only_switch"
        self._attr_device_info = build_device_info(config_entry)

    async def async_added_to_hass(self) -> None:
        """Restore last state when added to hass."""
        if (last_state := await self.async_get_last_state()) is not None:
            self._attr_is_on = last_state.state == "on"

    async def async_turn_on(self, **kwargs: Any) -> None:
        """Turn simulate-only mode on."""
        self._attr_is_on = True
        self.async_write_ha_state()

    async def async_turn_off(self, **kwargs: Any) -> None:
        """Turn simulate-only mode off."""
        self._attr_is_on = False
        self.async_write_ha_state()
