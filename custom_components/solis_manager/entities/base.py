"""Base entity classes for Solis Manager."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.components.sensor import SensorEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from ..const import DOMAIN

if TYPE_CHECKING:
    from ..coordinator import SolisManagerCoordinator
    from ..decision_engine.common import Slot


def build_device_info(config_entry: ConfigEntry) -> dict[str, Any]:
    """Return the device registry info shared by all entities."""
    return {
        "identifiers": {(DOMAIN, config_entry.entry_id)},
        "name": "Solis Manager",
        "manufacturer": "Solis Manager",
        "model": "Agile Battery Planner",
    }


class SolisManagerEntity(CoordinatorEntity):
    """Base coordinator entity for Solis Manager."""

    _attr_has_entity_name = True
    _attr_should_poll = False

    def __init__(
        self,
        coordinator: SolisManagerCoordinator,
        config_entry: ConfigEntry,
    ) -> None:
        """Initialize the entity."""
        super().__init__(coordinator)
        self.config_entry = config_entry
        self._attr_device_info = build_device_info(config_entry)

        base_unique_id = getattr(self, "_attr_unique_id", None)
        if base_unique_id and isinstance(base_unique_id, str):
            prefix = f"{config_entry.entry_id}_"
            if not base_unique_id.startswith(prefix):
                self._attr_unique_id = f"{prefix}{base_unique_id}"

    @property
    def current_slot(self) -> Slot | None:
        """Return the slot containing now from the latest snapshot."""
        if self.coordinator.data is None:
            return None
        return self.coordinator.data.current_slot


class SolisManagerSensor(SolisManagerEntity, SensorEntity):
    """Base sensor class for Solis Manager."""

    pass
