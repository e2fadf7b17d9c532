"""Home Assistant entry point for the Høiax Connected integration."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Final

from aiohttp import ClientError
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, ServiceCall, callback
from homeassistant.exceptions import (
    ConfigEntryAuthFailed,
    ConfigEntryError,
    ConfigEntryNotReady,
    HomeAssistantError,
)
from homeassistant.helpers import aiohttp_client
import homeassistant.helpers.config_validation as cv
from homeassistant.helpers.dispatcher import async_dispatcher_send
import voluptuous as vol

from .api import RESTClient
from .const import (
    CONF_CLIENT_ID,
    CONF_CLIENT_SECRET,
    CONF_DEVICE_ID,
    CONF_DEVICE_NAME,
    DOMAIN,
    EVENT_MAX_POWER_CHANGED,
    SERVICE_RESET_LEAKAGE,
    SERVICE_SET_AMBIENT_TEMPERATURE,
    SERVICE_SET_MAX_POWER,
    SERVICE_SET_PARAMETER,
    signal_availability,
    signal_device_update,
)
from .device import HoiaxDevice
from .domain.hardware import POWER_OPTIONS, PowerLevel
from .domain.ids import PARAMETER_IDS
from .exceptions import BackendAuthError, ConfigurationError, TransientNetworkError
from .runtime import EntryRuntime, iter_runtimes
from .store import DeviceStore, create_store_backend
from .utils import async_get_integration_version, mask_identifier

_LOGGER = logging.getLogger(__name__)

PLATFORMS: Final = ["water_heater", "select", "sensor"]

ATTR_ENTRY_ID: Final = "entry_id"
ATTR_MAX_POWER: Final = "max_power"
ATTR_TEMPERATURE: Final = "temperature"
ATTR_NAME: Final = "name"
ATTR_VALUE: Final = "value"

SET_MAX_POWER_SCHEMA: Final = vol.Schema(
    {
        vol.Optional(ATTR_ENTRY_ID): cv.string,
        vol.Required(ATTR_MAX_POWER): vol.In(POWER_OPTIONS),
    }
)
SET_AMBIENT_TEMPERATURE_SCHEMA: Final = vol.Schema(
    {
        vol.Optional(ATTR_ENTRY_ID): cv.string,
        vol.Required(ATTR_TEMPERATURE): vol.Coerce(float),
    }
)
SET_PARAMETER_SCHEMA: Final = vol.Schema(
    {
        vol.Optional(ATTR_ENTRY_ID): cv.string,
        vol.Required(ATTR_NAME): vol.In(sorted(PARAMETER_IDS)),
        vol.Required(ATTR_VALUE): vol.Any(int, float, cv.string),
    }
)
RESET_LEAKAGE_SCHEMA: Final = vol.Schema({vol.Optional(ATTR_ENTRY_ID): cv.string})


def create_rest_client(
    hass: HomeAssistant, client_id: str, client_secret: str
) -> RESTClient:
    """Return a REST client bound to the shared aiohttp session."""

    session = aiohttp_client.async_get_clientsession(hass)
    return RESTClient(session, client_id, client_secret)


async def async_list_devices(client: RESTClient) -> list[dict[str, str]]:
    """Return the devices reachable with ``client``."""

    return await client.list_devices()


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up one water heater from a config entry."""

    version = await async_get_integration_version(hass)
    device_id = str(entry.data.get(CONF_DEVICE_ID) or "")
    if not device_id:
        raise ConfigEntryError("No myUplink device id in config entry")

    client = create_rest_client(
        hass, entry.data[CONF_CLIENT_ID], entry.data[CONF_CLIENT_SECRET]
    )
    try:
        await client.authed_headers()
    except BackendAuthError as err:
        raise ConfigEntryAuthFailed(str(err)) from err
    except (ClientError, asyncio.TimeoutError, TransientNetworkError) as err:
        raise ConfigEntryNotReady(f"myUplink unreachable: {err}") from err

    store = DeviceStore(create_store_backend(hass, device_id), device_id)
    await store.async_load()

    device = HoiaxDevice(
        client,
        device_id,
        store,
        name=str(entry.data.get(CONF_DEVICE_NAME) or entry.title or device_id),
        hass=hass,
    )
    runtime = EntryRuntime(
        client=client,
        device=device,
        store=store,
        config_entry=entry,
        version=version,
    )

    update_signal = signal_device_update(entry.entry_id)
    availability_signal = signal_availability(entry.entry_id)

    @callback
    def _on_publish(name: str, value: Any) -> None:
        async_dispatcher_send(hass, update_signal, {name: value})

    @callback
    def _on_availability(available: bool, reason: str | None) -> None:
        async_dispatcher_send(hass, availability_signal, available, reason)

    @callback
    def _on_max_power(watts: int) -> None:
        hass.bus.async_fire(
            EVENT_MAX_POWER_CHANGED,
            {"device_id": device_id, ATTR_MAX_POWER: watts},
        )

    runtime.unsubscribers.extend(
        [
            device.add_publish_listener(_on_publish),
            device.add_availability_listener(_on_availability),
            device.add_max_power_listener(_on_max_power),
        ]
    )

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = runtime

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    device.async_start()
    async_register_services(hass)

    _LOGGER.info(
        "Høiax setup complete for %s (v%s)", mask_identifier(device_id), version
    )
    return True


def _target_devices(hass: HomeAssistant, call: ServiceCall) -> list[HoiaxDevice]:
    entry_id = call.data.get(ATTR_ENTRY_ID)
    devices = [
        runtime.device
        for runtime in iter_runtimes(hass)
        if entry_id is None or runtime.config_entry.entry_id == entry_id
    ]
    if not devices:
        raise HomeAssistantError("No matching Høiax water heater is loaded")
    return devices


@callback
def async_register_services(hass: HomeAssistant) -> None:
    """Register integration services once."""

    if hass.services.has_service(DOMAIN, SERVICE_SET_MAX_POWER):
        return

    async def _async_set_max_power(call: ServiceCall) -> None:
        level = PowerLevel.from_option(call.data[ATTR_MAX_POWER])
        for device in _target_devices(hass, call):
            await device.async_set_max_power(level)

    async def _async_set_ambient_temperature(call: ServiceCall) -> None:
        for device in _target_devices(hass, call):
            await device.dispatcher.apply_ambient_temperature(call.data[ATTR_TEMPERATURE])

    async def _async_set_parameter(call: ServiceCall) -> None:
        changes = {call.data[ATTR_NAME]: call.data[ATTR_VALUE]}
        for device in _target_devices(hass, call):
            try:
                await device.dispatcher.apply_settings(changes)
            except (KeyError, ConfigurationError) as err:
                raise HomeAssistantError(str(err)) from err

    async def _async_reset_leakage(call: ServiceCall) -> None:
        for device in _target_devices(hass, call):
            try:
                device.reset_leakage()
            except ConfigurationError as err:
                raise HomeAssistantError(str(err)) from err

    hass.services.async_register(
        DOMAIN, SERVICE_SET_MAX_POWER, _async_set_max_power, SET_MAX_POWER_SCHEMA
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_SET_AMBIENT_TEMPERATURE,
        _async_set_ambient_temperature,
        SET_AMBIENT_TEMPERATURE_SCHEMA,
    )
    hass.services.async_register(
        DOMAIN, SERVICE_SET_PARAMETER, _async_set_parameter, SET_PARAMETER_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_RESET_LEAKAGE, _async_reset_leakage, RESET_LEAKAGE_SCHEMA
    )


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry for Høiax."""

    domain_data = hass.data.get(DOMAIN)
    runtime = domain_data.get(entry.entry_id) if domain_data else None
    if isinstance(runtime, EntryRuntime):
        await runtime.async_shutdown()

    ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if ok and domain_data:
        domain_data.pop(entry.entry_id, None)

    if ok and not iter_runtimes(hass):
        for service in (
            SERVICE_SET_MAX_POWER,
            SERVICE_SET_AMBIENT_TEMPERATURE,
            SERVICE_SET_PARAMETER,
            SERVICE_RESET_LEAKAGE,
        ):
            hass.services.async_remove(DOMAIN, service)
    return ok
