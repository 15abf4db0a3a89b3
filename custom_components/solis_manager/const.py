"""Constants for the Solis Manager integration."""

DOMAIN = "solis_manager"

# SolisCloud credentials
CONF_SOLIS_API_KEY = "solis_api_key"
CONF_SOLIS_API_SECRET = "solis_api_secret"
CONF_INVERTER_SERIAL = "inverter_serial"

# Octopus tariff
CONF_PRODUCT_CODE = "product_code"
CONF_TARIFF_CODE = "tariff_code"

# Sensors
CONF_BATTERY_SOC_SENSOR = "battery_soc_sensor"
CONF_PV_FORECAST_TODAY = "pv_forecast_today"
CONF_PV_FORECAST_TOMORROW = "pv_forecast_tomorrow"
CONF_DISPATCH_ENTITY = "dispatch_entity"

# Planning thresholds
CONF_FULL_CHARGE_SLOTS = "full_charge_slots"
CONF_PEAK_PERIOD_BATTERY_USE = "peak_period_battery_use"
CONF_LOW_BATTERY_PERCENT = "low_battery_percent"
CONF_ALWAYS_CHARGE_BELOW_SOC = "always_charge_below_soc"
CONF_ALWAYS_CHARGE_BELOW_PRICE = "always_charge_below_price"
CONF_FORECAST_THRESHOLD = "forecast_threshold_kwh"
CONF_FORECAST_DAMP_FACTOR = "forecast_damp_factor"
CONF_SKIP_OVERNIGHT_CHARGE = "skip_overnight_charge"
CONF_MAX_CHARGE_AMPS = "max_charge_amps"
CONF_SCHEDULED_ACTIONS = "scheduled_actions"
CONF_SIMULATE_ONLY = "simulate_only"

# Default values
DEFAULT_FULL_CHARGE_SLOTS = 6
DEFAULT_PEAK_PERIOD_BATTERY_USE = 0.5
DEFAULT_LOW_BATTERY_PERCENT = 25
DEFAULT_ALWAYS_CHARGE_BELOW_SOC = 10
DEFAULT_ALWAYS_CHARGE_BELOW_PRICE = 0.0
DEFAULT_FORECAST_THRESHOLD = 20.0
DEFAULT_FORECAST_DAMP_FACTOR = 0.9
DEFAULT_SKIP_OVERNIGHT_CHARGE = False
DEFAULT_MAX_CHARGE_AMPS = 50
DEFAULT_SIMULATE_ONLY = True

# Planning
SLOT_MINUTES = 30
PEAK_WINDOW_SLOTS = 7
BELOW_AVERAGE_FACTOR = 0.9
TEST_CHARGE_MINUTES = 5

# Device protocol
SOLISCLOUD_URL = "https://www.soliscloud.com:13333"
OCTOPUS_URL = "https://api.octopus.energy"
FIRMWARE_NEW_SENTINEL = 0xAA55
CLEAR_TIME_PAIR = "00:00-00:00"
NEW_FIRMWARE_DISCHARGE_SOC = 15
NEW_FIRMWARE_CHARGE_SOC = 100
BACKOFF_DELAYS_MS = (50, 200, 500, 1000, 5000)
REQUEST_TIMEOUT = 30

# History
STORAGE_KEY_HISTORY = f"{DOMAIN}.history"
STORAGE_VERSION_HISTORY = 1
HISTORY_MAX_ENTRIES = 180 * 48

# Services
SERVICE_SET_MANUAL_OVERRIDE = "set_manual_override"
SERVICE_CLEAR_MANUAL_OVERRIDES = "clear_manual_overrides"
SERVICE_CHARGE_BATTERY = "charge_battery"
SERVICE_DISCHARGE_BATTERY = "discharge_battery"
SERVICE_DUMP_AND_CHARGE = "dump_and_charge"
SERVICE_TEST_CHARGE = "test_charge"
SERVICE_SYNC_INVERTER_TIME = "sync_inverter_time"

# Update intervals
UPDATE_INTERVAL_MINUTES = 5
INVERTER_TIME_SYNC_HOUR = 3
