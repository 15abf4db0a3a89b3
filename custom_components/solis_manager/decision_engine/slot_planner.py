"""Rule cascade that classifies price slots and plans battery actions."""
from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
import logging
import math

from homeassistant.util import dt as dt_util

from ..const import BELOW_AVERAGE_FACTOR, PEAK_WINDOW_SLOTS
from .common import (
    BatteryState,
    ForecastSummary,
    OverrideType,
    PlannerConfig,
    PriceType,
    Slot,
    SlotAction,
    apply_override,
)

_LOGGER = logging.getLogger(__name__)

PRICE_QUANTUM = Decimal("0.01")


def _decimal_price(slot: Slot) -> Decimal:
    """Return the slot price as an exact decimal, so equal totals compare equal."""
    return Decimal(str(slot.price))


def find_price_window(
    slots: Sequence[Slot], size: int, *, highest: bool = False
) -> list[int]:
    """Return indices of the contiguous window with the lowest (or highest) total.

    The first window wins on ties. When the sequence is shorter than the
    window the whole sequence is returned.
    """
    if not slots or size <= 0:
        return []

    size = min(size, len(slots))
    prices = [_decimal_price(slot) for slot in slots]
    best_start = 0
    best_total = sum(prices[:size])

    for start in range(1, len(slots) - size + 1):
        total = sum(prices[start : start + size])
        if (highest and total > best_total) or (not highest and total < best_total):
            best_start = start
            best_total = total

    return list(range(best_start, best_start + size))


def cheapest_indices(slots: Sequence[Slot], indices: Sequence[int], count: int) -> list[int]:
    """Return up to `count` indices ordered by price; earlier slots win ties."""
    ordered = sorted(indices, key=lambda index: slots[index].price)
    return ordered[:count]


class SlotPlanner:
    """Turn an ordered slot sequence into an annotated action plan.

    Each rule returns a new list; the input slots are never mutated.
    """

    def __init__(self, config: PlannerConfig) -> None:
        """Initialize the planner."""
        self.config = config

    @property
    def full_charge_slots(self) -> int:
        """Return L, the number of slots to charge an empty battery."""
        return self.config.full_charge_slots

    @property
    def charge_slots_needed_now(self) -> int:
        """Return K, the slots needed to reach the peak period usage target."""
        return math.ceil(self.full_charge_slots * self.config.peak_period_battery_use)

    def plan(
        self,
        slots: Sequence[Slot],
        battery: BatteryState,
        forecast: ForecastSummary,
    ) -> list[Slot]:
        """Run the full rule cascade."""
        if not slots:
            return []

        planned = self._reset(slots)

        cheapest = find_price_window(planned, self.full_charge_slots)
        if cheapest and cheapest[0] == 0:
            cheapest = cheapest_indices(
                planned, cheapest, self.charge_slots_needed_now
            )
        peak = find_price_window(planned, PEAK_WINDOW_SLOTS, highest=True)

        planned = self._mark_peak(planned, peak)
        planned = self._mark_cheapest(planned, cheapest)
        planned = self._mark_below_average(planned)
        planned = self._mark_dropping(planned, min(cheapest) if cheapest else 0)
        planned = self._top_up_before_peak(planned, peak[0] if peak else 0)
        planned = self._skip_overnight_charge(planned, forecast)
        planned = self._charge_below_price_threshold(planned)
        planned = self._charge_negative_prices(planned)
        planned = self._top_up_low_battery(planned, battery)
        planned = self._apply_scheduled_actions(planned)
        planned = self._maintain_minimum_charge(planned, battery)
        planned = self._dump_negative_runs(planned)

        _LOGGER.debug(
            "Planned %d slots: %d charge, %d discharge",
            len(planned),
            sum(1 for slot in planned if slot.resolved_action is SlotAction.CHARGE),
            sum(1 for slot in planned if slot.resolved_action is SlotAction.DISCHARGE),
        )
        return planned

    def _reset(self, slots: Sequence[Slot]) -> list[Slot]:
        return [
            slot.with_plan(
                PriceType.AVERAGE, SlotAction.DO_NOTHING, "Average price - no action"
            ).with_override(None, OverrideType.NONE)
            for slot in slots
        ]

    def _mark_peak(self, slots: list[Slot], peak: list[int]) -> list[Slot]:
        result = list(slots)
        for index in peak:
            result[index] = result[index].with_plan(
                PriceType.MOST_EXPENSIVE,
                result[index].plan_action,
                "Peak price slot - avoid charging",
            )
        return result

    def _mark_cheapest(self, slots: list[Slot], cheapest: list[int]) -> list[Slot]:
        result = list(slots)
        for index in cheapest:
            if result[index].price_type is PriceType.MOST_EXPENSIVE:
                continue
            result[index] = result[index].with_plan(
                PriceType.CHEAPEST,
                SlotAction.CHARGE,
                "Cheapest slot to charge the battery",
            )
        return result

    def _mark_below_average(self, slots: list[Slot]) -> list[Slot]:
        average_prices = [
            _decimal_price(slot)
            for slot in slots
            if slot.price_type is PriceType.AVERAGE
        ]
        if not average_prices:
            return slots

        mean_price = (sum(average_prices) / len(average_prices)).quantize(
            PRICE_QUANTUM
        )
        threshold = mean_price * Decimal(str(BELOW_AVERAGE_FACTOR))
        _LOGGER.debug(
            "Average price %s, below-average threshold %s", mean_price, threshold
        )

        return [
            slot.with_plan(
                PriceType.BELOW_AVERAGE,
                SlotAction.CHARGE_IF_LOW_BATTERY,
                "Below average price - charge if battery is low",
            )
            if slot.price_type is PriceType.AVERAGE
            and _decimal_price(slot) < threshold
            else slot
            for slot in slots
        ]

    def _mark_dropping(self, slots: list[Slot], cheapest_start: int) -> list[Slot]:
        result = list(slots)
        remaining = self.full_charge_slots
        index = cheapest_start - 1

        while index >= 0 and remaining > 0:
            if result[index].price_type is not PriceType.BELOW_AVERAGE:
                break
            result[index] = result[index].with_plan(
                PriceType.DROPPING,
                SlotAction.DO_NOTHING,
                "Prices are dropping - wait for the cheapest slots",
            )
            remaining -= 1
            index -= 1

        return result

    def _top_up_before_peak(self, slots: list[Slot], peak_start: int) -> list[Slot]:
        if peak_start <= 0:
            return slots

        window = range(max(0, peak_start - (self.full_charge_slots + 2)), peak_start)
        result = list(slots)
        for index in cheapest_indices(result, window, self.full_charge_slots):
            result[index] = result[index].with_plan(
                result[index].price_type,
                SlotAction.CHARGE,
                "Charge before the peak price period",
            )
        return result

    def _skip_overnight_charge(
        self, slots: list[Slot], forecast: ForecastSummary
    ) -> list[Slot]:
        config = self.config
        if not config.skip_overnight_charge:
            return slots

        damped = config.forecast_damp_factor * forecast.tomorrow_kwh
        if damped <= config.forecast_threshold_kwh:
            return slots

        night_start = next(
            (
                index
                for index, slot in enumerate(slots)
                if slot.forecast_kwh is not None and slot.forecast_kwh == 0
            ),
            None,
        )
        if night_start is None:
            return slots

        night_end = next(
            (
                index
                for index in range(night_start + 1, len(slots))
                if slots[index].forecast_kwh
            ),
            None,
        )
        if night_end is None:
            _LOGGER.debug(
                "No solar forecast after %s - night end unknown",
                slots[night_start].start,
            )
            return slots

        _LOGGER.debug(
            "Damped forecast %.1f kWh above %.1f kWh - skipping charge %s to %s",
            damped,
            config.forecast_threshold_kwh,
            slots[night_start].start,
            slots[night_end - 1].end,
        )

        return [
            slot.with_plan(
                slot.price_type,
                SlotAction.DO_NOTHING,
                "Good solar forecast tomorrow - skip overnight charge",
            )
            if night_start <= index < night_end
            and slot.plan_action is SlotAction.CHARGE
            else slot
            for index, slot in enumerate(slots)
        ]

    def _charge_below_price_threshold(self, slots: list[Slot]) -> list[Slot]:
        threshold = self.config.always_charge_below_price
        return [
            slot.with_plan(
                PriceType.BELOW_THRESHOLD,
                SlotAction.CHARGE,
                f"Price below {threshold} - always charge",
            )
            if slot.price < threshold
            else slot
            for slot in slots
        ]

    def _charge_negative_prices(self, slots: list[Slot]) -> list[Slot]:
        return [
            slot.with_plan(
                PriceType.NEGATIVE, SlotAction.CHARGE, "Negative price - charge"
            )
            if slot.price < 0
            else slot
            for slot in slots
        ]

    def _top_up_low_battery(
        self, slots: list[Slot], battery: BatteryState
    ) -> list[Slot]:
        if not battery.is_valid:
            _LOGGER.warning("Battery SOC reported as zero - skipping low battery rule")
            return slots
        if battery.soc_percent >= self.config.low_battery_percent:
            return slots

        result = list(slots)
        promoted = 0
        for index, slot in enumerate(result):
            if promoted >= self.full_charge_slots:
                break
            if slot.plan_action is SlotAction.CHARGE_IF_LOW_BATTERY:
                result[index] = slot.with_plan(
                    slot.price_type,
                    SlotAction.CHARGE,
                    f"Battery at {battery.soc_percent:.0f}% - charge",
                )
                promoted += 1
        return result

    def _apply_scheduled_actions(self, slots: list[Slot]) -> list[Slot]:
        if not self.config.scheduled_actions:
            return slots

        result = list(slots)
        for scheduled in self.config.scheduled_actions:
            for index, slot in enumerate(result):
                local_start = dt_util.as_local(slot.start).time()
                if (local_start.hour, local_start.minute) == (
                    scheduled.start_time.hour,
                    scheduled.start_time.minute,
                ):
                    result[index] = apply_override(
                        slot, scheduled.action, OverrideType.SCHEDULED
                    )
        return result

    def _maintain_minimum_charge(
        self, slots: list[Slot], battery: BatteryState
    ) -> list[Slot]:
        if not battery.is_valid:
            return slots
        if battery.soc_percent >= self.config.always_charge_below_soc:
            return slots

        result = list(slots)
        result[0] = result[0].with_plan(
            result[0].price_type,
            SlotAction.CHARGE,
            f"Battery below {self.config.always_charge_below_soc:.0f}% - maintain charge",
        )
        return result

    def _dump_negative_runs(self, slots: list[Slot]) -> list[Slot]:
        result = list(slots)
        run: list[int] = []

        for index in range(len(result) + 1):
            if index < len(result) and result[index].price_type is PriceType.NEGATIVE:
                run.append(index)
                continue

            if len(run) > self.full_charge_slots:
                for dump_index in run[: len(run) - self.full_charge_slots]:
                    result[dump_index] = apply_override(
                        result[dump_index],
                        SlotAction.DISCHARGE,
                        OverrideType.NEGATIVE_PRICE_DUMP,
                    )
                _LOGGER.debug(
                    "Negative price run of %d slots - discharging the first %d",
                    len(run),
                    len(run) - self.full_charge_slots,
                )
            run = []

        return result
