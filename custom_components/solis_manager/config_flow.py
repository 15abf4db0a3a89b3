"""Config flow for Solis Manager integration."""
from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.core import callback
from homeassistant.helpers import selector

from .const import (
    CONF_ALWAYS_CHARGE_BELOW_PRICE,
    CONF_ALWAYS_CHARGE_BELOW_SOC,
    CONF_BATTERY_SOC_SENSOR,
    CONF_DISPATCH_ENTITY,
    CONF_FORECAST_DAMP_FACTOR,
    CONF_FORECAST_THRESHOLD,
    CONF_FULL_CHARGE_SLOTS,
    CONF_INVERTER_SERIAL,
    CONF_LOW_BATTERY_PERCENT,
    CONF_MAX_CHARGE_AMPS,
    CONF_PEAK_PERIOD_BATTERY_USE,
    CONF_PRODUCT_CODE,
    CONF_PV_FORECAST_TODAY,
    CONF_PV_FORECAST_TOMORROW,
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
    DOMAIN,
)
from .decision_engine.common import parse_scheduled_actions

_LOGGER = logging.getLogger(__name__)


def planning_schema(defaults: dict[str, Any]) -> vol.Schema:
    """Build the planning threshold schema using the given defaults."""
    return vol.Schema(
        {
            vol.Required(
                CONF_FULL_CHARGE_SLOTS,
                default=defaults.get(CONF_FULL_CHARGE_SLOTS, DEFAULT_FULL_CHARGE_SLOTS),
            ): vol.All(vol.Coerce(int), vol.Range(min=1, max=48)),
            vol.Required(
                CONF_PEAK_PERIOD_BATTERY_USE,
                default=defaults.get(
                    CONF_PEAK_PERIOD_BATTERY_USE, DEFAULT_PEAK_PERIOD_BATTERY_USE
                ),
            ): vol.All(vol.Coerce(float), vol.Range(min=0, max=1)),
            vol.Required(
                CONF_LOW_BATTERY_PERCENT,
                default=defaults.get(
                    CONF_LOW_BATTERY_PERCENT, DEFAULT_LOW_BATTERY_PERCENT
                ),
            ): vol.All(vol.Coerce(float), vol.Range(min=0, max=100)),
            vol.Required(
                CONF_ALWAYS_CHARGE_BELOW_SOC,
                default=defaults.get(
                    CONF_ALWAYS_CHARGE_BELOW_SOC, DEFAULT_ALWAYS_CHARGE_BELOW_SOC
                ),
            ): vol.All(vol.Coerce(float), vol.Range(min=0, max=100)),
            vol.Required(
                CONF_ALWAYS_CHARGE_BELOW_PRICE,
                default=defaults.get(
                    CONF_ALWAYS_CHARGE_BELOW_PRICE, DEFAULT_ALWAYS_CHARGE_BELOW_PRICE
                ),
            ): vol.Coerce(float),
            vol.Required(
                CONF_FORECAST_THRESHOLD,
                default=defaults.get(CONF_FORECAST_THRESHOLD, DEFAULT_FORECAST_THRESHOLD),
            ): vol.All(vol.Coerce(float), vol.Range(min=0)),
            vol.Required(
                CONF_FORECAST_DAMP_FACTOR,
                default=defaults.get(
                    CONF_FORECAST_DAMP_FACTOR, DEFAULT_FORECAST_DAMP_FACTOR
                ),
            ): vol.All(vol.Coerce(float), vol.Range(min=0, max=1)),
            vol.Required(
                CONF_SKIP_OVERNIGHT_CHARGE,
                default=defaults.get(
                    CONF_SKIP_OVERNIGHT_CHARGE, DEFAULT_SKIP_OVERNIGHT_CHARGE
                ),
            ): selector.BooleanSelector(),
            vol.Required(
                CONF_MAX_CHARGE_AMPS,
                default=defaults.get(CONF_MAX_CHARGE_AMPS, DEFAULT_MAX_CHARGE_AMPS),
            ): vol.All(vol.Coerce(int), vol.Range(min=1, max=200)),
            vol.Optional(
                CONF_SCHEDULED_ACTIONS,
                default=defaults.get(CONF_SCHEDULED_ACTIONS, ""),
            ): selector.TextSelector(selector.TextSelectorConfig(multiline=True)),
            vol.Required(
                CONF_SIMULATE_ONLY,
                default=defaults.get(CONF_SIMULATE_ONLY, DEFAULT_SIMULATE_ONLY),
            ): selector.BooleanSelector(),
        }
    )


def validate_planning(user_input: dict[str, Any]) -> dict[str, str]:
    """Validate planning threshold configuration."""
    errors: dict[str, str] = {}

    raw = user_input.get(CONF_SCHEDULED_ACTIONS) or ""
    lines = [line for line in raw.splitlines() if line.strip()]
    if len(parse_scheduled_actions(raw)) != len(lines):
        errors[CONF_SCHEDULED_ACTIONS] = "invalid_scheduled_actions"

    return errors


class SolisManagerConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Solis Manager."""

    VERSION = 1

    def __init__(self) -> None:
        """Initialize config flow."""
        self._data: dict[str, Any] = {}

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Handle the initial step."""
        if user_input is not None:
            return await self.async_step_soliscloud()

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema({}),
            description_placeholders={
                "docs": "Solis Manager plans battery charging on the Octopus Agile "
                "tariff and programs a Solis inverter through SolisCloud.\n\n"
                "**Recommended Integrations** (install from HACS):\n"
                "- Solcast Solar: PV forecasting\n"
                "- Octopus Energy: Intelligent dispatches (optional)"
            },
        )

    async def async_step_soliscloud(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Handle SolisCloud credentials."""
        errors: dict[str, str] = {}

        if user_input is not None:
            for key in (CONF_SOLIS_API_KEY, CONF_SOLIS_API_SECRET, CONF_INVERTER_SERIAL):
                if not str(user_input.get(key, "")).strip():
                    errors[key] = "required"
            if not errors:
                await self.async_set_unique_id(user_input[CONF_INVERTER_SERIAL].strip())
                self._abort_if_unique_id_configured()
                self._data.update(user_input)
                return await self.async_step_tariff()

        schema = vol.Schema(
            {
                vol.Required(CONF_SOLIS_API_KEY): str,
                vol.Required(CONF_SOLIS_API_SECRET): selector.TextSelector(
                    selector.TextSelectorConfig(type=selector.TextSelectorType.PASSWORD)
                ),
                vol.Required(CONF_INVERTER_SERIAL): str,
            }
        )

        return self.async_show_form(
            step_id="soliscloud", data_schema=schema, errors=errors
        )

    async def async_step_tariff(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Handle Octopus tariff configuration."""
        errors: dict[str, str] = {}

        if user_input is not None:
            product = str(user_input.get(CONF_PRODUCT_CODE, "")).strip()
            tariff = str(user_input.get(CONF_TARIFF_CODE, "")).strip()
            if not product:
                errors[CONF_PRODUCT_CODE] = "required"
            if not tariff:
                errors[CONF_TARIFF_CODE] = "required"
            elif product and product not in tariff:
                errors[CONF_TARIFF_CODE] = "tariff_product_mismatch"
            if not errors:
                self._data.update(
                    {CONF_PRODUCT_CODE: product, CONF_TARIFF_CODE: tariff}
                )
                return await self.async_step_sensors()

        schema = vol.Schema(
            {
                vol.Required(CONF_PRODUCT_CODE): str,
                vol.Required(CONF_TARIFF_CODE): str,
            }
        )

        return self.async_show_form(step_id="tariff", data_schema=schema, errors=errors)

    async def async_step_sensors(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Handle battery, forecast and dispatch entities."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = await self._validate_sensors(user_input)
            if not errors:
                self._data.update(user_input)
                return await self.async_step_planning()

        schema = vol.Schema(
            {
                vol.Optional(CONF_BATTERY_SOC_SENSOR): selector.EntitySelector(
                    selector.EntitySelectorConfig(
                        domain="sensor",
                        device_class="battery",
                    )
                ),
                vol.Optional(CONF_PV_FORECAST_TODAY): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain="sensor")
                ),
                vol.Optional(CONF_PV_FORECAST_TOMORROW): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain="sensor")
                ),
                vol.Optional(CONF_DISPATCH_ENTITY): selector.EntitySelector(
                    selector.EntitySelectorConfig(domain="binary_sensor")
                ),
            }
        )

        return self.async_show_form(
            step_id="sensors", data_schema=schema, errors=errors
        )

    async def async_step_planning(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Handle planning thresholds and create the entry."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = validate_planning(user_input)
            if not errors:
                self._data.update(user_input)
                return self.async_create_entry(
                    title=f"Solis {self._data[CONF_INVERTER_SERIAL]}",
                    data=self._data,
                )

        return self.async_show_form(
            step_id="planning",
            data_schema=planning_schema(user_input or {}),
            errors=errors,
        )

    async def _validate_sensors(self, user_input: dict[str, Any]) -> dict[str, str]:
        """Validate configured entities exist and report numbers."""
        errors = {}

        soc_entity = user_input.get(CONF_BATTERY_SOC_SENSOR)
        if soc_entity:
            soc_state = self.hass.states.get(soc_entity)
            if not soc_state:
                errors[CONF_BATTERY_SOC_SENSOR] = "entity_not_found"
            elif not self._is_numeric_state(soc_state.state):
                errors[CONF_BATTERY_SOC_SENSOR] = "not_numeric"

        for key in (CONF_PV_FORECAST_TODAY, CONF_PV_FORECAST_TOMORROW):
            entity_id = user_input.get(key)
            if entity_id and not self.hass.states.get(entity_id):
                errors[key] = "entity_not_found"

        return errors

    def _is_numeric_state(self, state: str) -> bool:
        """Check if state is numeric."""
        try:
            float(state)
            return True
        except (ValueError, TypeError):
            return False

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> config_entries.OptionsFlow:
        """Get the options flow for this handler."""
        return SolisManagerOptionsFlow(config_entry)


class SolisManagerOptionsFlow(config_entries.OptionsFlow):
    """Handle options flow for Solis Manager."""

    def __init__(self, config_entry: config_entries.ConfigEntry) -> None:
        """Initialize options flow."""
        self._entry = config_entry

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.FlowResult:
        """Adjust planning thresholds."""
        errors: dict[str, str] = {}

        if user_input is not None:
            errors = validate_planning(user_input)
            if not errors:
                # Entry data is the single source read by the coordinator
                self.hass.config_entries.async_update_entry(
                    self._entry, data={**self._entry.data, **user_input}
                )
                return self.async_create_entry(title="", data={})

        return self.async_show_form(
            step_id="init",
            data_schema=planning_schema(user_input or dict(self._entry.data)),
            errors=errors,
        )
