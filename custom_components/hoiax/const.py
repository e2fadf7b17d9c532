"""Constants for the Høiax Connected integration."""

from __future__ import annotations

from datetime import timedelta
from typing import Final

# Domain
DOMAIN: Final = "hoiax"
MANUFACTURER: Final = "Høiax"

# HTTP base & paths (myUplink cloud)
API_BASE: Final = "https://api.myuplink.com"
TOKEN_PATH: Final = "/oauth/token"
SYSTEMS_PATH: Final = "/v2/systems/me"
POINTS_PATH_FMT: Final = "/v2/devices/{device_id}/points"
TOKEN_SCOPE: Final = "READSYSTEM WRITESYSTEM"

ACCEPT_LANGUAGE: Final = "en-US,en;q=0.8"
USER_AGENT: Final = "HomeAssistant Hoiax Integration"

# Config entry keys
CONF_CLIENT_ID: Final = "client_id"
CONF_CLIENT_SECRET: Final = "client_secret"
CONF_DEVICE_ID: Final = "device_id"
CONF_SYSTEM_ID: Final = "system_id"
CONF_DEVICE_NAME: Final = "device_name"

# Timing
POLL_INTERVAL: Final = timedelta(minutes=5)
RETRY_INTERVAL: Final = 10.0  # seconds
SYNC_RETRY_DELAY: Final = 10.0  # seconds
PERSIST_INTERVAL: Final = timedelta(days=1)
LEAK_RELATION_PERIOD: Final = timedelta(days=1)

# Device defaults before the first full fetch
DEFAULT_OUTSIDE_TEMPERATURE: Final = 24.0
DEFAULT_TANK_VOLUME: Final = 178.0

# Heater modes (parameter 500)
HEATER_MODE_EXTERNAL: Final = "8"
HEATER_MODE_PRICE_CONTROL: Final = "6"

# Store
STORAGE_VERSION: Final = 1
STORE_PREV_ACCUM_TIME: Final = "prevAccumTime"
STORE_ACCUMULATED_LEAKAGE: Final = "accumulatedLeakage"
STORE_LEAKAGE_CONSTANT: Final = "leakageConstant"
STORE_DEVICE_TYPE: Final = "deviceType"
STORE_IS_FIRST_TIME: Final = "isFirstTime"
STORE_SETTINGS: Final = "settings"

# Events & services
EVENT_MAX_POWER_CHANGED: Final = f"{DOMAIN}_max_power_changed"
SERVICE_SET_MAX_POWER: Final = "set_max_power"
SERVICE_SET_AMBIENT_TEMPERATURE: Final = "set_ambient_temperature"
SERVICE_SET_PARAMETER: Final = "set_parameter"
SERVICE_RESET_LEAKAGE: Final = "reset_leakage"

# Published value names
PUBLISHED_ONOFF: Final = "onoff"
PUBLISHED_MAX_POWER: Final = "max_power"
PUBLISHED_TARGET_TEMPERATURE: Final = "target_temperature"
PUBLISHED_MEASURED_TEMPERATURE: Final = "measured_temperature"
PUBLISHED_ENERGY_STORED: Final = "energy_stored"
PUBLISHED_ENERGY_TOTAL: Final = "energy_total"
PUBLISHED_ESTIMATED_POWER: Final = "estimated_power"
PUBLISHED_FILL_LEVEL: Final = "fill_level"
PUBLISHED_LEAKAGE_POWER: Final = "leakage_power"
PUBLISHED_LEAKAGE_ACCUMULATED: Final = "leakage_accumulated"
PUBLISHED_LEAKAGE_CONSTANT: Final = "leakage_constant"
PUBLISHED_LEAK_RELATION: Final = "leak_relation"
PUBLISHED_LEAKAGE_STATUS: Final = "leakage_status"


def signal_device_update(entry_id: str) -> str:
    """Signal name for published value updates dispatched to platforms."""

    return f"{DOMAIN}_{entry_id}_update"


def signal_availability(entry_id: str) -> str:
    """Signal name for availability changes."""

    return f"{DOMAIN}_{entry_id}_availability"
