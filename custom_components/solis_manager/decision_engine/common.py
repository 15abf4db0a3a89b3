"""Shared data model for the slot planning pipeline."""
from __future__ import annotations

import dataclasses
from datetime import datetime, time, timedelta
from enum import StrEnum
import logging
from typing import Any

from ..const import (
    CONF_ALWAYS_CHARGE_BELOW_PRICE,
    CONF_ALWAYS_CHARGE_BELOW_SOC,
    CONF_FORECAST_DAMP_FACTOR,
    CONF_FORECAST_THRESHOLD,
    CONF_FULL_CHARGE_SLOTS,
    CONF_INVERTER_SERIAL,
    CONF_LOW_BATTERY_PERCENT,
    CONF_MAX_CHARGE_AMPS,
    CONF_PEAK_PERIOD_BATTERY_USE,
    CONF_PRODUCT_CODE,
    CONF_SCHEDULED_ACTIONS,
    CONF_SIMULATE_ONLY,
    CONF_SKIP_OVERNIGHT_CHARGE,
    CONF_SOLIS_API_KEY,
    CONF_SOLIS_API_SECRET,
    CONF_TARIFF_CODE,
    DEFAULT_ALWAYS_CHARGE_BELOW_PRICE,
    DEFAULT_ALWAYS_CHARGE_BELOW_SOC,
    DEFAULT_FORECAST_DAMP_FACTOR,
    DEFAULT_FORECAST_THRESHOLD,
    DEFAULT_FULL_CHARGE_SLOTS,
    DEFAULT_LOW_BATTERY_PERCENT,
    DEFAULT_MAX_CHARGE_AMPS,
    DEFAULT_PEAK_PERIOD_BATTERY_USE,
    DEFAULT_SIMULATE_ONLY,
    DEFAULT_SKIP_OVERNIGHT_CHARGE,
    SLOT_MINUTES,
)

_LOGGER = logging.getLogger(__name__)

SLOT_DURATION = timedelta(minutes=SLOT_MINUTES)


class PriceType(StrEnum):
    """Price classification of a slot."""

    AVERAGE = "Average"
    CHEAPEST = "Cheapest"
    MOST_EXPENSIVE = "MostExpensive"
    BELOW_AVERAGE = "BelowAverage"
    BELOW_THRESHOLD = "BelowThreshold"
    NEGATIVE = "Negative"
    DROPPING = "Dropping"


class SlotAction(StrEnum):
    """Battery action for a slot."""

    DO_NOTHING = "DoNothing"
    CHARGE = "Charge"
    CHARGE_IF_LOW_BATTERY = "ChargeIfLowBattery"
    DISCHARGE = "Discharge"
    HOLD = "Hold"


class OverrideType(StrEnum):
    """Origin of an override action, highest precedence first."""

    NONE = "None"
    MANUAL = "Manual"
    SCHEDULED = "Scheduled"
    UTILITY_DISPATCH = "UtilityDispatch"
    NEGATIVE_PRICE_DUMP = "NegativePriceDump"


OVERRIDE_PRECEDENCE: dict[OverrideType, int] = {
    OverrideType.MANUAL: 4,
    OverrideType.SCHEDULED: 3,
    OverrideType.UTILITY_DISPATCH: 2,
    OverrideType.NEGATIVE_PRICE_DUMP: 1,
    OverrideType.NONE: 0,
}


@dataclasses.dataclass(frozen=True, slots=True)
class Slot:
    """One 30 minute pricing interval and its plan annotations."""

    start: datetime
    end: datetime
    price: float
    forecast_kwh: float | None = None
    price_type: PriceType = PriceType.AVERAGE
    plan_action: SlotAction = SlotAction.DO_NOTHING
    override_action: SlotAction | None = None
    override_type: OverrideType = OverrideType.NONE
    reason: str = ""

    @property
    def resolved_action(self) -> SlotAction:
        """Return the override action when present, else the planned action."""
        if self.override_action is not None:
            return self.override_action
        return self.plan_action

    def with_plan(
        self, price_type: PriceType, plan_action: SlotAction, reason: str
    ) -> Slot:
        """Return a copy with a new classification."""
        return dataclasses.replace(
            self, price_type=price_type, plan_action=plan_action, reason=reason
        )

    def with_override(
        self, action: SlotAction | None, override_type: OverrideType
    ) -> Slot:
        """Return a copy carrying the given override (None clears it)."""
        if action is None or override_type is OverrideType.NONE:
            return dataclasses.replace(
                self, override_action=None, override_type=OverrideType.NONE
            )
        return dataclasses.replace(
            self, override_action=action, override_type=override_type
        )

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON friendly representation for entity attributes."""
        return {
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "price": self.price,
            "forecast_kwh": self.forecast_kwh,
            "price_type": str(self.price_type),
            "plan_action": str(self.plan_action),
            "override_action": str(self.override_action)
            if self.override_action is not None
            else None,
            "override_type": str(self.override_type),
            "action": str(self.resolved_action),
            "reason": self.reason,
        }


def apply_override(
    slot: Slot, action: SlotAction, override_type: OverrideType
) -> Slot:
    """Set an override unless the slot already holds a higher-precedence one."""
    if OVERRIDE_PRECEDENCE[slot.override_type] > OVERRIDE_PRECEDENCE[override_type]:
        return slot
    return slot.with_override(action, override_type)


@dataclasses.dataclass(frozen=True, slots=True)
class BatteryState:
    """Battery telemetry; a SOC of 0 means the reading is invalid."""

    soc_percent: float
    timestamp: datetime | None = None

    @property
    def is_valid(self) -> bool:
        """Return True when the SOC is a usable reading."""
        return self.soc_percent > 0


@dataclasses.dataclass(frozen=True, slots=True)
class ForecastSummary:
    """Aggregated PV forecast for today and tomorrow."""

    today_kwh: float = 0.0
    tomorrow_kwh: float = 0.0


@dataclasses.dataclass(frozen=True, slots=True)
class ScheduledAction:
    """Action applied every day to the slot starting at a time of day."""

    start_time: time
    action: SlotAction


@dataclasses.dataclass(frozen=True, slots=True)
class UtilityDispatch:
    """Supplier-issued charge window."""

    start: datetime
    end: datetime


@dataclasses.dataclass(frozen=True, slots=True)
class PlannerConfig:
    """Planning and actuation settings extracted from config entry data."""

    full_charge_slots: int = DEFAULT_FULL_CHARGE_SLOTS
    peak_period_battery_use: float = DEFAULT_PEAK_PERIOD_BATTERY_USE
    low_battery_percent: float = DEFAULT_LOW_BATTERY_PERCENT
    always_charge_below_soc: float = DEFAULT_ALWAYS_CHARGE_BELOW_SOC
    always_charge_below_price: float = DEFAULT_ALWAYS_CHARGE_BELOW_PRICE
    forecast_threshold_kwh: float = DEFAULT_FORECAST_THRESHOLD
    forecast_damp_factor: float = DEFAULT_FORECAST_DAMP_FACTOR
    skip_overnight_charge: bool = DEFAULT_SKIP_OVERNIGHT_CHARGE
    max_charge_amps: int = DEFAULT_MAX_CHARGE_AMPS
    scheduled_actions: tuple[ScheduledAction, ...] = ()
    simulate_only: bool = DEFAULT_SIMULATE_ONLY
    api_key: str = ""
    api_secret: str = ""
    inverter_serial: str = ""
    product_code: str = ""
    tariff_code: str = ""

    def is_valid(self) -> bool:
        """Return True when credentials and planning values are usable."""
        return bool(
            self.api_key
            and self.api_secret
            and self.inverter_serial
            and self.product_code
            and self.tariff_code
            and self.full_charge_slots >= 1
        )


def parse_scheduled_actions(raw: Any) -> tuple[ScheduledAction, ...]:
    """Parse scheduled actions from `HH:MM=Action` lines or a list of dicts."""
    if not raw:
        return ()

    if isinstance(raw, str):
        items: list[Any] = [line for line in raw.splitlines() if line.strip()]
    else:
        items = list(raw)

    actions: list[ScheduledAction] = []
    for item in items:
        try:
            if isinstance(item, dict):
                time_text = str(item["time"])
                action_text = str(item["action"])
            else:
                time_text, action_text = str(item).split("=", 1)
            start_time = time.fromisoformat(time_text.strip())
            action = SlotAction(action_text.strip())
        except (KeyError, ValueError) as err:
            _LOGGER.warning("Ignoring invalid scheduled action %r: %s", item, err)
            continue
        actions.append(ScheduledAction(start_time=start_time, action=action))

    return tuple(actions)


def get_planner_config(config: dict[str, Any]) -> PlannerConfig:
    """Build planner configuration from config entry data."""
    return PlannerConfig(
        full_charge_slots=int(
            config.get(CONF_FULL_CHARGE_SLOTS, DEFAULT_FULL_CHARGE_SLOTS)
        ),
        peak_period_battery_use=float(
            config.get(CONF_PEAK_PERIOD_BATTERY_USE, DEFAULT_PEAK_PERIOD_BATTERY_USE)
        ),
        low_battery_percent=float(
            config.get(CONF_LOW_BATTERY_PERCENT, DEFAULT_LOW_BATTERY_PERCENT)
        ),
        always_charge_below_soc=float(
            config.get(CONF_ALWAYS_CHARGE_BELOW_SOC, DEFAULT_ALWAYS_CHARGE_BELOW_SOC)
        ),
        always_charge_below_price=float(
            config.get(
                CONF_ALWAYS_CHARGE_BELOW_PRICE, DEFAULT_ALWAYS_CHARGE_BELOW_PRICE
            )
        ),
        forecast_threshold_kwh=float(
            config.get(CONF_FORECAST_THRESHOLD, DEFAULT_FORECAST_THRESHOLD)
        ),
        forecast_damp_factor=float(
            config.get(CONF_FORECAST_DAMP_FACTOR, DEFAULT_FORECAST_DAMP_FACTOR)
        ),
        skip_overnight_charge=bool(
            config.get(CONF_SKIP_OVERNIGHT_CHARGE, DEFAULT_SKIP_OVERNIGHT_CHARGE)
        ),
        max_charge_amps=int(config.get(CONF_MAX_CHARGE_AMPS, DEFAULT_MAX_CHARGE_AMPS)),
        scheduled_actions=parse_scheduled_actions(config.get(CONF_SCHEDULED_ACTIONS)),
        simulate_only=bool(config.get(CONF_SIMULATE_ONLY, DEFAULT_SIMULATE_ONLY)),
        api_key=str(config.get(CONF_SOLIS_API_KEY) or ""),
        api_secret=str(config.get(CONF_SOLIS_API_SECRET) or ""),
        inverter_serial=str(config.get(CONF_INVERTER_SERIAL) or ""),
        product_code=str(config.get(CONF_PRODUCT_CODE) or ""),
        tariff_code=str(config.get(CONF_TARIFF_CODE) or ""),
    )
