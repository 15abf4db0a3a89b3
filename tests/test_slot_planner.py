"""Tests for the slot planning rule cascade."""
from __future__ import annotations

from datetime import time

import pytest

from custom_components.solis_manager.decision_engine.common import (
    BatteryState,
    ForecastSummary,
    OverrideType,
    PlannerConfig,
    PriceType,
    ScheduledAction,
    SlotAction,
)
from custom_components.solis_manager.decision_engine.slot_planner import (
    SlotPlanner,
    cheapest_indices,
    find_price_window,
)

BATTERY_OK = BatteryState(soc_percent=50)
NO_FORECAST = ForecastSummary()


def _flat_with_cheap_block() -> list[float]:
    prices = [20.0] * 48
    for index in range(2, 8):
        prices[index] = 5.0
    return prices


@pytest.mark.unit
def test_find_price_window_ties_resolve_to_first(make_slots) -> None:
    slots = make_slots([1.0, 1.0, 1.0, 1.0])

    assert find_price_window(slots, 2) == [0, 1]
    assert find_price_window(slots, 2, highest=True) == [0, 1]


@pytest.mark.unit
def test_find_price_window_covers_configured_size(make_slots) -> None:
    slots = make_slots([9.0, 3.0, 2.0, 8.0, 1.0, 7.0])

    assert find_price_window(slots, 3) == [2, 3, 4]
    assert find_price_window(slots, 3, highest=True) == [3, 4, 5]


@pytest.mark.unit
def test_find_price_window_shorter_sequence_uses_all(make_slots) -> None:
    slots = make_slots([4.0, 5.0, 6.0])

    assert find_price_window(slots, 7, highest=True) == [0, 1, 2]
    assert find_price_window([], 7) == []


@pytest.mark.unit
def test_find_price_window_decimal_ties_resolve_to_first(make_slots) -> None:
    slots = make_slots([0.1, 0.2, 0.3, 0.3, 0.2, 0.1, 9.0])

    assert find_price_window(slots, 3) == [0, 1, 2]


@pytest.mark.unit
def test_find_price_window_agile_prices_tie_on_highest(make_slots) -> None:
    slots = make_slots([0.3, 0.2, 0.1, 0.1, 0.2, 0.3])
    agile = make_slots([15.435, 16.905, 17.64, 17.64, 16.905, 15.435, 30.03])

    assert find_price_window(slots, 3, highest=True) == [0, 1, 2]
    assert find_price_window(agile, 3) == [0, 1, 2]


@pytest.mark.unit
def test_below_average_compares_against_rounded_mean(make_slots) -> None:
    planner = SlotPlanner(PlannerConfig())
    slots = planner._reset(
        make_slots([13.886, 13.887, 15.435, 16.905, 17.037])
    )

    marked = planner._mark_below_average(slots)

    # Mean 15.43, threshold 13.887
    assert marked[0].price_type is PriceType.BELOW_AVERAGE
    assert marked[1].price_type is PriceType.AVERAGE
    assert all(slot.price_type is PriceType.AVERAGE for slot in marked[2:])


@pytest.mark.unit
def test_cheapest_indices_stable_on_ties(make_slots) -> None:
    slots = make_slots([5.0, 4.0, 6.0, 4.0])

    assert cheapest_indices(slots, range(4), 2) == [1, 3]


@pytest.mark.unit
def test_flat_prices_charge_in_cheap_block(make_slots) -> None:
    planner = SlotPlanner(PlannerConfig(full_charge_slots=6))

    planned = planner.plan(make_slots(_flat_with_cheap_block()), BATTERY_OK, NO_FORECAST)

    for index in range(2, 8):
        assert planned[index].price_type is PriceType.CHEAPEST
        assert planned[index].plan_action is SlotAction.CHARGE
    assert planned[0].plan_action is SlotAction.DO_NOTHING
    assert planned[1].plan_action is SlotAction.DO_NOTHING
    assert [slot.price_type for slot in planned[8:15]] == [PriceType.MOST_EXPENSIVE] * 7


@pytest.mark.unit
def test_cheapest_window_at_start_shrinks_to_needed_slots(make_slots) -> None:
    prices = [5.0, 4.0, 6.0, 3.0, 5.0, 7.0] + [20.0] * 42
    planner = SlotPlanner(
        PlannerConfig(full_charge_slots=6, peak_period_battery_use=0.5)
    )

    planned = planner.plan(make_slots(prices), BATTERY_OK, NO_FORECAST)

    cheapest = [
        index
        for index, slot in enumerate(planned)
        if slot.price_type is PriceType.CHEAPEST
    ]
    assert cheapest == [0, 1, 3]


@pytest.mark.unit
def test_negative_run_dumps_leading_slots(make_slots) -> None:
    prices = [20.0] * 48
    for index in range(10, 19):
        prices[index] = -1.0
    planner = SlotPlanner(PlannerConfig(full_charge_slots=6))

    planned = planner.plan(make_slots(prices), BATTERY_OK, NO_FORECAST)

    for index in range(10, 13):
        assert planned[index].override_action is SlotAction.DISCHARGE
        assert planned[index].override_type is OverrideType.NEGATIVE_PRICE_DUMP
        assert planned[index].resolved_action is SlotAction.DISCHARGE
    for index in range(13, 19):
        assert planned[index].price_type is PriceType.NEGATIVE
        assert planned[index].override_type is OverrideType.NONE
        assert planned[index].resolved_action is SlotAction.CHARGE


@pytest.mark.unit
def test_short_negative_run_is_not_dumped(make_slots) -> None:
    prices = [20.0] * 48
    for index in range(10, 14):
        prices[index] = -1.0
    planner = SlotPlanner(PlannerConfig(full_charge_slots=6))

    planned = planner.plan(make_slots(prices), BATTERY_OK, NO_FORECAST)

    assert all(slot.override_action is None for slot in planned)


@pytest.mark.unit
def test_low_soc_forces_first_slot_to_charge(make_slots) -> None:
    planner = SlotPlanner(PlannerConfig(always_charge_below_soc=20))

    planned = planner.plan(
        make_slots([20.0] * 48), BatteryState(soc_percent=10), NO_FORECAST
    )

    assert planned[0].plan_action is SlotAction.CHARGE
    assert planned[0].price_type is PriceType.MOST_EXPENSIVE


@pytest.mark.unit
def test_zero_soc_is_treated_as_no_data(make_slots) -> None:
    planner = SlotPlanner(PlannerConfig(always_charge_below_soc=20))

    planned = planner.plan(
        make_slots([20.0] * 48), BatteryState(soc_percent=0), NO_FORECAST
    )

    assert planned[0].plan_action is SlotAction.DO_NOTHING


def _prices_with_below_average_block() -> list[float]:
    prices = [20.0] * 48
    for index in range(30, 34):
        prices[index] = 15.0
    for index in range(40, 46):
        prices[index] = 5.0
    return prices


@pytest.mark.unit
def test_low_battery_promotes_below_average_slots(make_slots) -> None:
    planner = SlotPlanner(PlannerConfig(low_battery_percent=25))
    slots = make_slots(_prices_with_below_average_block())

    low = planner.plan(slots, BatteryState(soc_percent=15), NO_FORECAST)
    healthy = planner.plan(slots, BATTERY_OK, NO_FORECAST)

    for index in range(30, 34):
        assert low[index].price_type is PriceType.BELOW_AVERAGE
        assert low[index].plan_action is SlotAction.CHARGE
        assert healthy[index].plan_action is SlotAction.CHARGE_IF_LOW_BATTERY


@pytest.mark.unit
def test_dropping_prices_defer_charge(make_slots) -> None:
    prices = [20.0] * 48
    for index in range(36, 40):
        prices[index] = 16.0
    for index in range(40, 46):
        prices[index] = 5.0
    planner = SlotPlanner(PlannerConfig(full_charge_slots=6))

    planned = planner.plan(make_slots(prices), BATTERY_OK, NO_FORECAST)

    for index in range(36, 40):
        assert planned[index].price_type is PriceType.DROPPING
        assert planned[index].plan_action is SlotAction.DO_NOTHING
    assert planned[35].price_type is PriceType.AVERAGE


@pytest.mark.unit
def test_dropping_stops_after_full_charge_slots(make_slots) -> None:
    prices = [20.0] * 48
    for index in range(36, 40):
        prices[index] = 16.0
    for index in range(40, 46):
        prices[index] = 5.0
    planner = SlotPlanner(PlannerConfig(full_charge_slots=2))

    planned = planner.plan(make_slots(prices), BATTERY_OK, NO_FORECAST)

    assert [slot.price_type for slot in planned[36:40]] == [
        PriceType.BELOW_AVERAGE,
        PriceType.BELOW_AVERAGE,
        PriceType.DROPPING,
        PriceType.DROPPING,
    ]


@pytest.mark.unit
def test_pre_peak_top_up_charges_cheapest_preceding_slots(make_slots) -> None:
    prices = (
        [20.0] * 20
        + [30.0, 25.0, 30.0, 25.0, 30.0, 25.0, 30.0, 25.0]
        + [40.0] * 7
        + [20.0] * 5
        + [5.0] * 6
        + [20.0] * 2
    )
    planner = SlotPlanner(PlannerConfig(full_charge_slots=6))

    planned = planner.plan(make_slots(prices), BATTERY_OK, NO_FORECAST)

    charged = [
        index
        for index in range(20, 28)
        if planned[index].plan_action is SlotAction.CHARGE
    ]
    assert charged == [20, 21, 22, 23, 25, 27]
    assert planned[21].price_type is PriceType.AVERAGE
    assert planned[24].plan_action is SlotAction.DO_NOTHING
    assert [slot.price_type for slot in planned[28:35]] == [
        PriceType.MOST_EXPENSIVE
    ] * 7



@pytest.mark.unit
def test_good_forecast_skips_overnight_charge(make_slots) -> None:
    forecasts = [0.0] * 10 + [0.5] * 38
    slots = make_slots(_flat_with_cheap_block(), forecasts=forecasts)
    planner = SlotPlanner(
        PlannerConfig(
            skip_overnight_charge=True,
            forecast_threshold_kwh=20,
            forecast_damp_factor=0.9,
        )
    )

    sunny = planner.plan(slots, BATTERY_OK, ForecastSummary(tomorrow_kwh=30))
    dull = planner.plan(slots, BATTERY_OK, ForecastSummary(tomorrow_kwh=20))

    assert all(slot.plan_action is SlotAction.DO_NOTHING for slot in sunny[2:8])
    assert all(slot.plan_action is SlotAction.CHARGE for slot in dull[2:8])


@pytest.mark.unit
def test_missing_forecast_is_not_night(make_slots) -> None:
    slots = make_slots(_flat_with_cheap_block())
    planner = SlotPlanner(PlannerConfig(skip_overnight_charge=True))

    planned = planner.plan(slots, BATTERY_OK, ForecastSummary(tomorrow_kwh=100))

    assert all(slot.plan_action is SlotAction.CHARGE for slot in planned[2:8])


@pytest.mark.unit
def test_night_without_end_keeps_charge(make_slots) -> None:
    forecasts = [0.5] * 2 + [0.0] * 2 + [None] * 44
    slots = make_slots(_flat_with_cheap_block(), forecasts=forecasts)
    planner = SlotPlanner(
        PlannerConfig(skip_overnight_charge=True, forecast_threshold_kwh=20)
    )

    planned = planner.plan(slots, BATTERY_OK, ForecastSummary(tomorrow_kwh=100))

    assert all(slot.plan_action is SlotAction.CHARGE for slot in planned[2:8])


@pytest.mark.unit
def test_negative_rule_overwrites_price_threshold(make_slots) -> None:
    prices = _flat_with_cheap_block()
    prices[20] = -2.0
    planner = SlotPlanner(PlannerConfig(always_charge_below_price=6))

    planned = planner.plan(make_slots(prices), BATTERY_OK, NO_FORECAST)

    assert planned[3].price_type is PriceType.BELOW_THRESHOLD
    assert planned[3].plan_action is SlotAction.CHARGE
    assert planned[20].price_type is PriceType.NEGATIVE
    assert planned[20].plan_action is SlotAction.CHARGE


@pytest.mark.unit
def test_scheduled_action_sets_override_only(make_slots) -> None:
    planner = SlotPlanner(
        PlannerConfig(
            scheduled_actions=(ScheduledAction(time(1, 30), SlotAction.HOLD),)
        )
    )

    planned = planner.plan(make_slots(_flat_with_cheap_block()), BATTERY_OK, NO_FORECAST)

    assert planned[3].override_action is SlotAction.HOLD
    assert planned[3].override_type is OverrideType.SCHEDULED
    assert planned[3].plan_action is SlotAction.CHARGE
    assert planned[3].resolved_action is SlotAction.HOLD


@pytest.mark.unit
def test_resolved_action_prefers_override(make_slots) -> None:
    prices = [20.0] * 48
    for index in range(10, 19):
        prices[index] = -1.0
    planner = SlotPlanner(
        PlannerConfig(
            scheduled_actions=(ScheduledAction(time(3, 0), SlotAction.HOLD),)
        )
    )

    planned = planner.plan(make_slots(prices), BATTERY_OK, NO_FORECAST)

    for slot in planned:
        expected = slot.override_action or slot.plan_action
        assert slot.resolved_action is expected
        assert (slot.override_type is OverrideType.NONE) == (
            slot.override_action is None
        )


@pytest.mark.unit
def test_plan_clears_previous_overrides(make_slots) -> None:
    planner = SlotPlanner(PlannerConfig())
    stale = [
        slot.with_override(SlotAction.DISCHARGE, OverrideType.MANUAL)
        for slot in make_slots([20.0] * 48)
    ]

    planned = planner.plan(stale, BATTERY_OK, NO_FORECAST)

    assert all(slot.override_action is None for slot in planned)
