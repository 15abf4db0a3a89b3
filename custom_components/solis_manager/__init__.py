"""The Solis Manager integration."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.event import async_track_time_change

from .const import (
    CONF_INVERTER_SERIAL,
    CONF_SOLIS_API_KEY,
    CONF_SOLIS_API_SECRET,
    DOMAIN,
    INVERTER_TIME_SYNC_HOUR,
    SERVICE_SET_MANUAL_OVERRIDE,
)
from .controllers.soliscloud import SolisCloudClient
from .coordinator import SolisManagerCoordinator
from .helpers import get_entry_data
from .services import async_register_services

if TYPE_CHECKING:
    from homeassistant.helpers.typing import ConfigType

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[Platform] = [Platform.SENSOR, Platform.SWITCH]


async def async_setup(hass: HomeAssistant, config: ConfigType) -> bool:
    """Set up the Solis Manager component."""
    hass.data.setdefault(DOMAIN, {})
    return True


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Solis Manager from a config entry."""
    entry_data = get_entry_data(hass, entry)

    session = async_get_clientsession(hass)
    client = SolisCloudClient(
        session,
        entry.data.get(CONF_SOLIS_API_KEY, ""),
        entry.data.get(CONF_SOLIS_API_SECRET, ""),
        entry.data.get(CONF_INVERTER_SERIAL, ""),
    )
    coordinator = SolisManagerCoordinator(hass, entry, client, session)
    await coordinator.history.async_load()
    coordinator.overrides.restore_manual_overrides(
        entry_data.pop("manual_overrides", {})
    )
    entry_data["coordinator"] = coordinator

    # Until the switch restores its state, the first cycle uses entry data
    await coordinator.async_config_entry_first_refresh()
    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    # Register services (only once, not per config entry)
    if not hass.services.has_service(DOMAIN, SERVICE_SET_MANUAL_OVERRIDE):
        await async_register_services(hass)

    async def _refresh_at_slot_boundary(now):
        """Recompute as each half-hour slot starts."""
        await coordinator.async_request_refresh()

    async def _sync_inverter_time(now):
        """Keep the inverter clock from drifting."""
        await coordinator.async_sync_inverter_time()

    entry_data.setdefault("listeners", []).extend(
        [
            async_track_time_change(
                hass, _refresh_at_slot_boundary, minute=[0, 30], second=10
            ),
            async_track_time_change(
                hass,
                _sync_inverter_time,
                hour=INVERTER_TIME_SYNC_HOUR,
                minute=0,
                second=0,
            ),
        ]
    )

    entry.async_on_unload(entry.add_update_listener(async_reload_entry))

    _LOGGER.info("Solis Manager: slot planning enabled for %s", entry.title)
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)

    if unload_ok:
        entry_data = hass.data[DOMAIN].get(entry.entry_id, {})
        for remove_listener in entry_data.get("listeners", []):
            remove_listener()

        hass.data[DOMAIN].pop(entry.entry_id)

    return unload_ok


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Reload config entry, keeping manual overrides."""
    coordinator = hass.data.get(DOMAIN, {}).get(entry.entry_id, {}).get("coordinator")
    manual_overrides = (
        coordinator.overrides.manual_overrides if coordinator is not None else {}
    )

    await async_unload_entry(hass, entry)
    if manual_overrides:
        get_entry_data(hass, entry)["manual_overrides"] = manual_overrides
    await async_setup_entry(hass, entry)
