"""Helper utilities for Solis Manager integration."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from .const import CONF_SIMULATE_ONLY, DEFAULT_SIMULATE_ONLY, DOMAIN

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

_LOGGER = logging.getLogger(__name__)

INVALID_STATES = ("unknown", "unavailable", "")


def safe_float(value: Any, default: float = 0.0) -> float:
    """Safely convert value to float with None handling.

    Args:
        value: Value to convert
        default: Default value if conversion fails

    Returns:
        Float value or default
    """
    if value is None:
        return default
    try:
        return float(value)
    except (ValueError, TypeError):
        return default


def get_float_state(hass: HomeAssistant, entity_id: str | None) -> float | None:
    """Return the numeric state of an entity, or None when unavailable."""
    if not entity_id:
        return None
    state = hass.states.get(entity_id)
    if state is None or state.state in INVALID_STATES:
        _LOGGER.debug("Entity %s has no usable state", entity_id)
        return None
    try:
        return float(state.state)
    except (ValueError, TypeError):
        _LOGGER.warning("Entity %s has non-numeric state: %s", entity_id, state.state)
        return None


def get_entry_data(hass: HomeAssistant, entry: ConfigEntry) -> dict[str, Any]:
    """Return the per-entry runtime dictionary."""
    return hass.data.setdefault(DOMAIN, {}).setdefault(entry.entry_id, {})


def is_simulate_only(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Return True when device writes should only be logged.

    The simulate-only switch wins; entry data is the fallback before the
    switch has been set up.
    """
    entry_data = hass.data.get(DOMAIN, {}).get(entry.entry_id)
    if isinstance(entry_data, dict):
        simulate_switch = entry_data.get("simulate_only_switch")
        if simulate_switch is not None:
            return bool(simulate_switch.is_on)

    return bool(entry.data.get(CONF_SIMULATE_ONLY, DEFAULT_SIMULATE_ONLY))
