"""Sensor platform for Solis Manager integration."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from homeassistant.components.sensor import SensorEntity
from homeassistant.config_entries import ConfigEntry

from .const import DOMAIN
from .entities.sensors import (
    CurrentActionSensor,
    CurrentPriceSensor,
    LastActuationSensor,
    PlanSensor,
)

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up Solis Manager sensors from a config entry."""
    coordinator = hass.data[DOMAIN][config_entry.entry_id]["coordinator"]

    sensors: list[SensorEntity] = [
        CurrentActionSensor(coordinator, config_entry),
        CurrentPriceSensor(coordinator, config_entry),
        PlanSensor(coordinator, config_entry),
        LastActuationSensor(coordinator, config_entry),
    ]

    async_add_entities(sensors)
    _LOGGER.debug("Added %d Solis Manager sensors", len(sensors))
