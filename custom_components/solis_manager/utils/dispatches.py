"""Intelligent Octopus planned dispatch helpers."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from homeassistant.util import dt as dt_util

from ..decision_engine.common import UtilityDispatch

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

_LOGGER = logging.getLogger(__name__)

SMART_CHARGE_SOURCE = "smart-charge"


def get_planned_dispatches(
    hass: HomeAssistant, entity_id: str | None
) -> list[UtilityDispatch]:
    """Return smart-charge dispatches from the dispatch entity attributes."""
    if not entity_id:
        return []
    state = hass.states.get(entity_id)
    if state is None:
        _LOGGER.warning("Dispatch entity %s unavailable", entity_id)
        return []

    planned = state.attributes.get("planned_dispatches")
    if not isinstance(planned, list):
        return []

    dispatches: list[UtilityDispatch] = []
    for item in planned:
        if not isinstance(item, dict):
            continue
        source = item.get("source")
        if source and str(source).lower() != SMART_CHARGE_SOURCE:
            continue
        start = dt_util.parse_datetime(str(item.get("start") or ""))
        end = dt_util.parse_datetime(str(item.get("end") or ""))
        if start is None or end is None or end <= start:
            continue
        dispatches.append(
            UtilityDispatch(start=dt_util.as_utc(start), end=dt_util.as_utc(end))
        )

    if dispatches:
        _LOGGER.debug("Found %d smart-charge dispatches", len(dispatches))
    return dispatches
