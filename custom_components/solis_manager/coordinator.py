"""DataUpdateCoordinator for Solis Manager integration."""
from __future__ import annotations

import asyncio
import dataclasses
from datetime import datetime, timedelta
import logging
from typing import TYPE_CHECKING, Any

from homeassistant.helpers.update_coordinator import (
    DataUpdateCoordinator,
    UpdateFailed,
)
from homeassistant.util import dt as dt_util

from .const import (
    CONF_BATTERY_SOC_SENSOR,
    CONF_DISPATCH_ENTITY,
    DOMAIN,
    TEST_CHARGE_MINUTES,
    UPDATE_INTERVAL_MINUTES,
)
from .controllers.inverter import (
    ActuationResult,
    ChargeActuator,
    DeviceSession,
    build_charge_request,
)
from .controllers.soliscloud import SolisCloudError
from .decision_engine.common import (
    BatteryState,
    ForecastSummary,
    Slot,
    SlotAction,
    get_planner_config,
)
from .decision_engine.overrides import OverrideManager
from .decision_engine.slot_planner import SlotPlanner
from .helpers import get_float_state, is_simulate_only, safe_float
from .utils.dispatches import get_planned_dispatches
from .utils.history import EnergyTotals, HistoryRecorder
from .utils.prices import PriceFeedError, async_fetch_agile_slots
from .utils.pv_forecast import (
    apply_slot_forecasts,
    get_forecast_summary,
    get_slot_forecasts,
)

if TYPE_CHECKING:
    import aiohttp
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant

    from .controllers.soliscloud import SolisCloudClient

_LOGGER = logging.getLogger(__name__)

UPDATE_INTERVAL = timedelta(minutes=UPDATE_INTERVAL_MINUTES)


@dataclasses.dataclass(frozen=True, slots=True)
class SolisManagerData:
    """Read-only snapshot published after each cycle."""

    slots: tuple[Slot, ...] = ()
    battery: BatteryState = BatteryState(soc_percent=0)
    forecast: ForecastSummary = ForecastSummary()
    last_actuation: ActuationResult | None = None
    updated: datetime | None = None

    @property
    def current_slot(self) -> Slot | None:
        return self.slots[0] if self.slots else None


class SolisManagerCoordinator(DataUpdateCoordinator[SolisManagerData]):
    """Run the plan, override, actuate and record cycle.

    Cycles are serialized by a lock; service calls change overrides and
    then run a fresh cycle.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        entry: ConfigEntry,
        client: SolisCloudClient,
        session: aiohttp.ClientSession,
    ) -> None:
        """Initialize the coordinator."""
        super().__init__(
            hass,
            _LOGGER,
            config_entry=entry,
            name=DOMAIN,
            update_interval=UPDATE_INTERVAL,
        )
        self.hass = hass
        self.entry = entry
        self.config = get_planner_config(dict(entry.data))
        self.client = client
        self._session = session
        self.planner = SlotPlanner(self.config)
        self.overrides = OverrideManager(self.config.full_charge_slots)
        self.actuator = ChargeActuator(
            client, max_charge_amps=self.config.max_charge_amps
        )
        self.history = HistoryRecorder(hass, entry.entry_id)
        self.device_session: DeviceSession | None = None
        self._cycle_lock = asyncio.Lock()
        self._price_slots: list[Slot] = []

    @property
    def simulate_only(self) -> bool:
        return is_simulate_only(self.hass, self.entry)

    async def _async_update_data(self) -> SolisManagerData:
        """Run one recompute cycle; faults resolve to the previous snapshot."""
        async with self._cycle_lock:
            previous = self.data
            now = dt_util.utcnow()

            if not self.config.is_valid():
                _LOGGER.warning("Configuration incomplete - skipping cycle")
                return previous or SolisManagerData(updated=now)

            try:
                return await self._async_run_cycle(now, previous)
            except UpdateFailed:
                raise
            except Exception as err:
                _LOGGER.exception("Error in recompute cycle - no change this cycle")
                if previous is None:
                    raise UpdateFailed(f"Error running recompute cycle: {err}") from err
                return previous

    async def _async_run_cycle(
        self, now: datetime, previous: SolisManagerData | None
    ) -> SolisManagerData:
        slots = await self._async_get_price_slots(now)
        if not slots:
            if previous is None:
                raise UpdateFailed("No price data available")
            _LOGGER.warning("No price slots available - no change this cycle")
            return previous

        slots = apply_slot_forecasts(slots, get_slot_forecasts(self.hass, self.entry.data))
        forecast = get_forecast_summary(self.hass, self.entry.data)

        detail = await self._async_get_inverter_detail()
        battery = self._get_battery_state(detail, now, previous)

        planned = self.planner.plan(slots, battery, forecast)
        planned = self.overrides.apply(
            planned,
            get_planned_dispatches(self.hass, self.entry.data.get(CONF_DISPATCH_ENTITY)),
        )

        simulate_only = self.simulate_only
        session = await self._async_get_device_session(simulate_only)
        actuation = await self.actuator.async_sync(
            planned, now, session, simulate_only=simulate_only
        )

        # Only executed slots are history
        if not simulate_only:
            totals = EnergyTotals.from_inverter_detail(detail) if detail else None
            await self.history.async_record(planned[0], battery, totals)

        return SolisManagerData(
            slots=tuple(planned),
            battery=battery,
            forecast=forecast,
            last_actuation=actuation,
            updated=now,
        )

    async def _async_get_price_slots(self, now: datetime) -> list[Slot]:
        try:
            self._price_slots = await async_fetch_agile_slots(
                self._session, self.config.product_code, self.config.tariff_code, now
            )
        except PriceFeedError as err:
            _LOGGER.warning("Using last known prices: %s", err)
        return [slot for slot in self._price_slots if slot.end > now]

    async def _async_get_inverter_detail(self) -> dict[str, Any] | None:
        try:
            return await self.client.async_inverter_detail()
        except SolisCloudError as err:
            _LOGGER.warning("Unable to read inverter detail: %s", err)
            return None

    def _get_battery_state(
        self,
        detail: dict[str, Any] | None,
        now: datetime,
        previous: SolisManagerData | None,
    ) -> BatteryState:
        soc = get_float_state(self.hass, self.entry.data.get(CONF_BATTERY_SOC_SENSOR))
        if soc is None and detail:
            soc = safe_float(detail.get("batteryCapacitySoc"))

        if soc:
            return BatteryState(soc_percent=soc, timestamp=now)

        _LOGGER.info("Battery SOC returned as zero - invalid battery state data")
        if previous is not None and previous.battery.is_valid:
            return previous.battery
        return BatteryState(soc_percent=0, timestamp=now)

    async def _async_get_device_session(self, simulate_only: bool) -> DeviceSession:
        if simulate_only:
            return self.device_session or DeviceSession()
        if self.device_session is None:
            self.device_session = await self.actuator.async_probe_firmware()
        return self.device_session

    async def async_set_manual_override(
        self, start: datetime, action: SlotAction
    ) -> bool:
        """Request a manual override and recompute."""
        if self.data is None:
            return False
        applied = self.overrides.set_manual_override(
            self.data.slots, dt_util.as_utc(start), action
        )
        await self.async_refresh()
        return applied

    async def async_clear_manual_overrides(self) -> None:
        """Clear manual overrides and recompute."""
        self.overrides.clear_manual_overrides()
        await self.async_refresh()

    async def async_charge_battery(self) -> None:
        """Charge the battery to full from now and recompute."""
        if self.data is None:
            return
        self.overrides.charge_battery(self.data.slots, self.data.battery)
        await self.async_refresh()

    async def async_discharge_battery(self) -> None:
        """Discharge the battery from now and recompute."""
        if self.data is None:
            return
        self.overrides.discharge_battery(self.data.slots, self.data.battery)
        await self.async_refresh()

    async def async_dump_and_charge(self) -> None:
        """Empty then refill the battery from now and recompute."""
        if self.data is None:
            return
        self.overrides.dump_and_charge(self.data.slots, self.data.battery)
        await self.async_refresh()

    async def async_test_charge(self) -> ActuationResult:
        """Send a short charge window starting now."""
        async with self._cycle_lock:
            now = dt_util.utcnow()
            simulate_only = self.simulate_only
            request = build_charge_request(
                SlotAction.CHARGE,
                now,
                now + timedelta(minutes=TEST_CHARGE_MINUTES),
                self.config.max_charge_amps,
            )
            session = await self._async_get_device_session(simulate_only)
            return await self.actuator.async_apply(
                request, session, simulate_only=simulate_only, now=now
            )

    async def async_sync_inverter_time(self) -> bool:
        """Write the current local time to the inverter clock."""
        async with self._cycle_lock:
            return await self.actuator.async_set_clock(
                dt_util.now(), simulate_only=self.simulate_only
            )
