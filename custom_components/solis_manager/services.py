"""Service handlers for Solis Manager integration."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import voluptuous as vol
from homeassistant.core import ServiceCall
from homeassistant.helpers import config_validation as cv

from .const import (
    DOMAIN,
    SERVICE_CHARGE_BATTERY,
    SERVICE_CLEAR_MANUAL_OVERRIDES,
    SERVICE_DISCHARGE_BATTERY,
    SERVICE_DUMP_AND_CHARGE,
    SERVICE_SET_MANUAL_OVERRIDE,
    SERVICE_SYNC_INVERTER_TIME,
    SERVICE_TEST_CHARGE,
)
from .decision_engine.common import SlotAction

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

    from .coordinator import SolisManagerCoordinator

_LOGGER = logging.getLogger(__name__)

ATTR_ENTRY_ID = "entry_id"
ATTR_START = "start"
ATTR_ACTION = "action"

ENTRY_SCHEMA = vol.Schema({vol.Optional(ATTR_ENTRY_ID): cv.string})

MANUAL_OVERRIDE_SCHEMA = ENTRY_SCHEMA.extend(
    {
        vol.Required(ATTR_START): cv.datetime,
        vol.Required(ATTR_ACTION): vol.In([str(action) for action in SlotAction]),
    }
)


def get_coordinator(
    hass: HomeAssistant, call: ServiceCall
) -> SolisManagerCoordinator | None:
    """Resolve the coordinator targeted by a service call."""
    entry_id = call.data.get(ATTR_ENTRY_ID)
    if entry_id:
        entry = hass.config_entries.async_get_entry(entry_id)
        if entry is None or entry.domain != DOMAIN:
            _LOGGER.error("Invalid entry_id '%s' for %s", entry_id, DOMAIN)
            return None
    else:
        entries = hass.config_entries.async_entries(DOMAIN)
        if not entries:
            _LOGGER.error("No Solis Manager configuration found")
            return None
        if len(entries) > 1:
            _LOGGER.error(
                "Multiple %s config entries exist; service call must include entry_id",
                DOMAIN,
            )
            return None
        entry = entries[0]

    entry_data = hass.data.get(DOMAIN, {}).get(entry.entry_id)
    if not isinstance(entry_data, dict) or "coordinator" not in entry_data:
        _LOGGER.error("Solis Manager entry %s is not loaded", entry.entry_id)
        return None
    return entry_data["coordinator"]


async def async_register_services(hass: HomeAssistant) -> None:
    """Register all services for the Solis Manager integration.

    Args:
        hass: Home Assistant instance
    """

    async def handle_set_manual_override(call: ServiceCall) -> None:
        """Toggle a manual override on one slot."""
        if (coordinator := get_coordinator(hass, call)) is None:
            return
        await coordinator.async_set_manual_override(
            call.data[ATTR_START], SlotAction(call.data[ATTR_ACTION])
        )

    async def handle_clear_manual_overrides(call: ServiceCall) -> None:
        """Clear all manual overrides."""
        if (coordinator := get_coordinator(hass, call)) is None:
            return
        await coordinator.async_clear_manual_overrides()

    async def handle_charge_battery(call: ServiceCall) -> None:
        """Charge the battery to full starting now."""
        if (coordinator := get_coordinator(hass, call)) is None:
            return
        await coordinator.async_charge_battery()

    async def handle_discharge_battery(call: ServiceCall) -> None:
        """Discharge the battery starting now."""
        if (coordinator := get_coordinator(hass, call)) is None:
            return
        await coordinator.async_discharge_battery()

    async def handle_dump_and_charge(call: ServiceCall) -> None:
        """Discharge then fully recharge the battery."""
        if (coordinator := get_coordinator(hass, call)) is None:
            return
        await coordinator.async_dump_and_charge()

    async def handle_test_charge(call: ServiceCall) -> None:
        """Send a five minute charge window to the inverter."""
        if (coordinator := get_coordinator(hass, call)) is None:
            return
        result = await coordinator.async_test_charge()
        _LOGGER.info("Test charge finished: %s", result.message)

    async def handle_sync_inverter_time(call: ServiceCall) -> None:
        """Set the inverter clock to the current time."""
        if (coordinator := get_coordinator(hass, call)) is None:
            return
        await coordinator.async_sync_inverter_time()

    hass.services.async_register(
        DOMAIN,
        SERVICE_SET_MANUAL_OVERRIDE,
        handle_set_manual_override,
        schema=MANUAL_OVERRIDE_SCHEMA,
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_CLEAR_MANUAL_OVERRIDES,
        handle_clear_manual_overrides,
        schema=ENTRY_SCHEMA,
    )
    hass.services.async_register(
        DOMAIN, SERVICE_CHARGE_BATTERY, handle_charge_battery, schema=ENTRY_SCHEMA
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_DISCHARGE_BATTERY,
        handle_discharge_battery,
        schema=ENTRY_SCHEMA,
    )
    hass.services.async_register(
        DOMAIN, SERVICE_DUMP_AND_CHARGE, handle_dump_and_charge, schema=ENTRY_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_TEST_CHARGE, handle_test_charge, schema=ENTRY_SCHEMA
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_SYNC_INVERTER_TIME,
        handle_sync_inverter_time,
        schema=ENTRY_SCHEMA,
    )

    _LOGGER.info("Solis Manager services registered")
