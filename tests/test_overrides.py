"""Tests for manual, dispatch and command overrides."""
from __future__ import annotations

from datetime import timedelta

import pytest

from custom_components.solis_manager.decision_engine.common import (
    BatteryState,
    OverrideType,
    PriceType,
    SlotAction,
    UtilityDispatch,
    apply_override,
)
from custom_components.solis_manager.decision_engine.overrides import OverrideManager


def _planned(make_slots, count: int = 12):
    return [
        slot.with_plan(PriceType.AVERAGE, SlotAction.DO_NOTHING, "")
        for slot in make_slots([20.0] * count)
    ]


@pytest.mark.unit
def test_manual_override_equal_to_plan_clears(make_slots) -> None:
    manager = OverrideManager(full_charge_slots=6)
    slots = _planned(make_slots)
    start = slots[3].start

    assert manager.set_manual_override(slots, start, SlotAction.DISCHARGE) is True
    applied = manager.apply(slots)
    assert applied[3].override_action is SlotAction.DISCHARGE
    assert applied[3].override_type is OverrideType.MANUAL

    manager.set_manual_override(applied, start, SlotAction.DO_NOTHING)
    cleared = manager.apply(applied)

    assert manager.manual_overrides == {}
    assert cleared[3].override_type is OverrideType.NONE
    assert cleared[3].resolved_action is SlotAction.DO_NOTHING


@pytest.mark.unit
def test_manual_override_survives_recompute(make_slots) -> None:
    manager = OverrideManager(full_charge_slots=6)
    slots = _planned(make_slots)
    manager.set_manual_override(slots, slots[5].start, SlotAction.HOLD)

    fresh = manager.apply(_planned(make_slots))

    assert fresh[5].resolved_action is SlotAction.HOLD
    assert all(slot.override_action is None for slot in fresh[:5])


@pytest.mark.unit
def test_restored_overrides_apply_on_new_manager(make_slots) -> None:
    previous = OverrideManager(full_charge_slots=6)
    slots = _planned(make_slots)
    previous.set_manual_override(slots, slots[2].start, SlotAction.CHARGE)

    manager = OverrideManager(full_charge_slots=4)
    manager.restore_manual_overrides(previous.manual_overrides)
    applied = manager.apply(_planned(make_slots))

    assert applied[2].resolved_action is SlotAction.CHARGE
    assert applied[2].override_type is OverrideType.MANUAL


@pytest.mark.unit
def test_manual_override_unknown_start_is_ignored(make_slots) -> None:
    manager = OverrideManager(full_charge_slots=6)
    slots = _planned(make_slots)

    applied = manager.set_manual_override(
        slots, slots[-1].start + timedelta(hours=1), SlotAction.CHARGE
    )

    assert applied is False
    assert manager.manual_overrides == {}


@pytest.mark.unit
def test_manual_overrides_for_past_slots_are_pruned(make_slots) -> None:
    manager = OverrideManager(full_charge_slots=6)
    slots = _planned(make_slots)
    manager.set_manual_override(slots, slots[0].start, SlotAction.CHARGE)
    manager.set_manual_override(slots, slots[4].start, SlotAction.CHARGE)

    manager.apply(slots[1:])

    assert list(manager.manual_overrides) == [slots[4].start]


@pytest.mark.unit
def test_stale_manual_override_is_cleared(make_slots) -> None:
    manager = OverrideManager(full_charge_slots=6)
    slots = _planned(make_slots)
    slots[2] = slots[2].with_override(SlotAction.CHARGE, OverrideType.MANUAL)

    applied = manager.apply(slots)

    assert applied[2].override_action is None
    assert applied[2].override_type is OverrideType.NONE


@pytest.mark.unit
def test_manual_beats_scheduled(make_slots) -> None:
    manager = OverrideManager(full_charge_slots=6)
    slots = _planned(make_slots)
    slots[1] = slots[1].with_override(SlotAction.HOLD, OverrideType.SCHEDULED)
    manager.set_manual_override(slots, slots[1].start, SlotAction.DISCHARGE)

    applied = manager.apply(slots)

    assert applied[1].override_action is SlotAction.DISCHARGE
    assert applied[1].override_type is OverrideType.MANUAL


@pytest.mark.unit
def test_dispatch_respects_precedence(make_slots) -> None:
    manager = OverrideManager(full_charge_slots=6)
    slots = _planned(make_slots)
    slots[2] = slots[2].with_override(SlotAction.HOLD, OverrideType.SCHEDULED)
    slots[3] = slots[3].with_override(
        SlotAction.DISCHARGE, OverrideType.NEGATIVE_PRICE_DUMP
    )
    dispatch = UtilityDispatch(
        start=slots[1].start + timedelta(minutes=15), end=slots[3].end
    )

    applied = manager.apply(slots, [dispatch])

    assert applied[0].override_action is None
    assert applied[1].override_type is OverrideType.UTILITY_DISPATCH
    assert applied[1].resolved_action is SlotAction.CHARGE
    assert applied[2].override_type is OverrideType.SCHEDULED
    assert applied[2].resolved_action is SlotAction.HOLD
    assert applied[3].override_type is OverrideType.UTILITY_DISPATCH
    assert applied[3].resolved_action is SlotAction.CHARGE
    assert applied[4].override_action is None


@pytest.mark.unit
def test_apply_override_keeps_higher_precedence(make_slots) -> None:
    slot = make_slots([1.0])[0].with_override(SlotAction.HOLD, OverrideType.MANUAL)

    assert apply_override(slot, SlotAction.CHARGE, OverrideType.SCHEDULED) is slot


@pytest.mark.unit
def test_charge_battery_covers_missing_charge(make_slots) -> None:
    manager = OverrideManager(full_charge_slots=6)
    slots = _planned(make_slots)

    count = manager.charge_battery(slots, BatteryState(soc_percent=50))

    assert count == 3
    assert manager.manual_overrides == {
        slot.start: SlotAction.CHARGE for slot in slots[:3]
    }


@pytest.mark.unit
def test_discharge_battery_covers_current_charge(make_slots) -> None:
    manager = OverrideManager(full_charge_slots=6)
    slots = _planned(make_slots)

    count = manager.discharge_battery(slots, BatteryState(soc_percent=80))

    assert count == 5
    assert set(manager.manual_overrides.values()) == {SlotAction.DISCHARGE}


@pytest.mark.unit
def test_dump_and_charge_discharges_then_charges(make_slots) -> None:
    manager = OverrideManager(full_charge_slots=6)
    slots = _planned(make_slots)

    count = manager.dump_and_charge(slots, BatteryState(soc_percent=50))

    overrides = manager.manual_overrides
    assert count == 9
    assert [overrides[slot.start] for slot in slots[:3]] == [SlotAction.DISCHARGE] * 3
    assert [overrides[slot.start] for slot in slots[3:9]] == [SlotAction.CHARGE] * 6
    assert slots[9].start not in overrides


@pytest.mark.unit
def test_commands_use_full_charge_slots_when_soc_invalid(make_slots) -> None:
    manager = OverrideManager(full_charge_slots=4)
    slots = _planned(make_slots)

    assert manager.charge_battery(slots, BatteryState(soc_percent=0)) == 4


@pytest.mark.unit
def test_clear_manual_overrides(make_slots) -> None:
    manager = OverrideManager(full_charge_slots=6)
    slots = _planned(make_slots)
    manager.charge_battery(slots, BatteryState(soc_percent=10))

    manager.clear_manual_overrides()

    assert manager.manual_overrides == {}
    assert all(slot.override_action is None for slot in manager.apply(slots))
