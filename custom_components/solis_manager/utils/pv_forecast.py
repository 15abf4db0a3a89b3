"""PV forecast utilities."""
from __future__ import annotations

import dataclasses
from datetime import datetime
import logging
from typing import TYPE_CHECKING, Any

from homeassistant.util import dt as dt_util

from ..const import CONF_PV_FORECAST_TODAY, CONF_PV_FORECAST_TOMORROW, SLOT_MINUTES
from ..decision_engine.common import ForecastSummary, Slot
from ..helpers import get_float_state

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

_LOGGER = logging.getLogger(__name__)


def get_forecast_summary(
    hass: HomeAssistant, config: dict[str, Any]
) -> ForecastSummary:
    """Return today's and tomorrow's PV forecast totals."""
    today = get_float_state(hass, config.get(CONF_PV_FORECAST_TODAY))
    tomorrow = get_float_state(hass, config.get(CONF_PV_FORECAST_TOMORROW))
    return ForecastSummary(today_kwh=today or 0.0, tomorrow_kwh=tomorrow or 0.0)


def get_slot_forecasts(
    hass: HomeAssistant, config: dict[str, Any]
) -> dict[datetime, float]:
    """Return forecast energy per half-hour period start (UTC)."""
    forecasts: dict[datetime, float] = {}
    for key, label in (
        (CONF_PV_FORECAST_TODAY, "today"),
        (CONF_PV_FORECAST_TOMORROW, "tomorrow"),
    ):
        detailed = _get_detailed_forecast(hass, config.get(key), label)
        if not detailed:
            continue
        for item in detailed:
            if not isinstance(item, dict):
                continue
            period_start = item.get("period_start")
            pv_estimate = item.get("pv_estimate")
            if period_start is None or pv_estimate is None:
                continue
            dt_value = (
                period_start
                if isinstance(period_start, datetime)
                else dt_util.parse_datetime(str(period_start))
            )
            if dt_value is None:
                continue
            try:
                # pv_estimate is average kW over the period
                kwh = float(pv_estimate) * SLOT_MINUTES / 60
            except (ValueError, TypeError):
                continue
            forecasts[dt_util.as_utc(dt_value)] = kwh

    return forecasts


def apply_slot_forecasts(
    slots: list[Slot], forecasts: dict[datetime, float]
) -> list[Slot]:
    """Attach forecast energy to slots; slots without an estimate keep None."""
    return [
        dataclasses.replace(slot, forecast_kwh=forecasts.get(slot.start))
        for slot in slots
    ]


def _get_detailed_forecast(
    hass: HomeAssistant, sensor: str | None, label: str
) -> list[dict] | None:
    if not sensor:
        _LOGGER.debug("PV forecast %s sensor not configured", label)
        return None
    pv_state = hass.states.get(sensor)
    if pv_state is None:
        _LOGGER.warning("PV forecast %s sensor %s unavailable", label, sensor)
        return None
    detailed = pv_state.attributes.get("detailedForecast")
    if not isinstance(detailed, list):
        _LOGGER.warning(
            "PV forecast %s sensor has no detailedForecast: %s", label, sensor
        )
        return None
    return detailed
