"""Slot execution history with energy enrichment."""
from __future__ import annotations

import dataclasses
from datetime import datetime
import logging
from typing import TYPE_CHECKING, Any

from homeassistant.helpers.storage import Store
from homeassistant.util import dt as dt_util

from ..const import HISTORY_MAX_ENTRIES, STORAGE_KEY_HISTORY, STORAGE_VERSION_HISTORY
from ..decision_engine.common import BatteryState, Slot, SlotAction
from ..helpers import safe_float

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant

_LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True, slots=True)
class EnergyTotals:
    """Cumulative day energy counters reported by the inverter."""

    import_kwh: float
    export_kwh: float
    house_load_kwh: float
    pv_kwh: float

    @classmethod
    def from_inverter_detail(cls, detail: dict[str, Any]) -> EnergyTotals:
        """Build totals from a SolisCloud inverter detail record."""
        return cls(
            import_kwh=safe_float(detail.get("gridPurchasedEnergy")),
            export_kwh=safe_float(detail.get("gridSellEnergy")),
            house_load_kwh=safe_float(detail.get("homeLoadTodayEnergy")),
            pv_kwh=safe_float(detail.get("eToday")),
        )


@dataclasses.dataclass(frozen=True, slots=True)
class HistoryEntry:
    """One executed slot."""

    slot_start: datetime
    slot_end: datetime
    action: SlotAction
    soc_percent: float
    import_kwh: float = 0.0
    export_kwh: float = 0.0
    house_load_kwh: float = 0.0
    pv_yield_kwh: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        return {
            "slot_start": self.slot_start.isoformat(),
            "slot_end": self.slot_end.isoformat(),
            "action": str(self.action),
            "soc_percent": self.soc_percent,
            "import_kwh": self.import_kwh,
            "export_kwh": self.export_kwh,
            "house_load_kwh": self.house_load_kwh,
            "pv_yield_kwh": self.pv_yield_kwh,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryEntry | None:
        start = dt_util.parse_datetime(str(data.get("slot_start") or ""))
        end = dt_util.parse_datetime(str(data.get("slot_end") or ""))
        if start is None or end is None:
            return None
        try:
            action = SlotAction(data.get("action"))
        except ValueError:
            return None
        return cls(
            slot_start=start,
            slot_end=end,
            action=action,
            soc_percent=safe_float(data.get("soc_percent")),
            import_kwh=safe_float(data.get("import_kwh")),
            export_kwh=safe_float(data.get("export_kwh")),
            house_load_kwh=safe_float(data.get("house_load_kwh")),
            pv_yield_kwh=safe_float(data.get("pv_yield_kwh")),
        )


class HistoryRecorder:
    """Append one record each time the leading slot changes.

    Energy for a slot is known only once the next slot starts, so each
    transition fills in the previous record with the counter deltas since
    it was written.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        entry_id: str,
        *,
        max_entries: int = HISTORY_MAX_ENTRIES,
    ) -> None:
        """Initialize the recorder."""
        self._store = Store(
            hass, STORAGE_VERSION_HISTORY, f"{STORAGE_KEY_HISTORY}.{entry_id}"
        )
        self._max_entries = max_entries
        self._entries: list[HistoryEntry] = []
        self._last_totals: EnergyTotals | None = None

    @property
    def entries(self) -> list[HistoryEntry]:
        return list(self._entries)

    async def async_load(self) -> None:
        """Load persisted history."""
        data = await self._store.async_load()
        if not isinstance(data, dict):
            return
        entries = [
            entry
            for item in data.get("entries", [])
            if isinstance(item, dict)
            and (entry := HistoryEntry.from_dict(item)) is not None
        ]
        self._entries = entries[-self._max_entries :]
        _LOGGER.debug("Loaded %d history entries", len(self._entries))

    async def async_record(
        self,
        slot: Slot,
        battery: BatteryState,
        totals: EnergyTotals | None = None,
    ) -> HistoryEntry | None:
        """Record the leading slot if it differs from the last record."""
        if self._entries and self._entries[-1].slot_start == slot.start:
            return None

        if totals is not None and totals.house_load_kwh < 0:
            _LOGGER.warning(
                "Negative house load total %.2f kWh - ignoring energy reading",
                totals.house_load_kwh,
            )
            totals = None

        previous = self._last_totals
        if self._entries and previous is not None and totals is not None:
            self._entries[-1] = dataclasses.replace(
                self._entries[-1],
                import_kwh=_counter_delta(totals.import_kwh, previous.import_kwh),
                export_kwh=_counter_delta(totals.export_kwh, previous.export_kwh),
                house_load_kwh=_counter_delta(
                    totals.house_load_kwh, previous.house_load_kwh
                ),
                pv_yield_kwh=_counter_delta(totals.pv_kwh, previous.pv_kwh),
            )
        self._last_totals = totals

        entry = HistoryEntry(
            slot_start=slot.start,
            slot_end=slot.end,
            action=slot.resolved_action,
            soc_percent=battery.soc_percent,
        )
        self._entries.append(entry)
        del self._entries[: -self._max_entries]

        await self._store.async_save(
            {"entries": [item.as_dict() for item in self._entries]}
        )
        return entry


def _counter_delta(current: float, previous: float) -> float:
    """Return the growth of a daily counter; a drop means it reset at midnight."""
    if current < previous:
        _LOGGER.debug(
            "Energy counter reset from %.2f to %.2f kWh", previous, current
        )
        return max(0.0, current)
    return current - previous
