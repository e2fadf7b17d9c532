"""Water heater platform for Høiax Connected tanks."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.components.water_heater import (
    STATE_ELECTRIC,
    WaterHeaterEntity,
    WaterHeaterEntityFeature,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import ATTR_TEMPERATURE, STATE_OFF, UnitOfTemperature
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import (
    PUBLISHED_MAX_POWER,
    PUBLISHED_MEASURED_TEMPERATURE,
    PUBLISHED_ONOFF,
    PUBLISHED_TARGET_TEMPERATURE,
)
from .device import HoiaxDevice
from .entity import HoiaxEntity
from .runtime import require_runtime

_LOGGER = logging.getLogger(__name__)

MIN_TEMPERATURE = 20.0
MAX_TEMPERATURE = 85.0


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    """Set up the water heater entity."""

    device = require_runtime(hass, entry.entry_id).device
    async_add_entities([HoiaxWaterHeater(device, entry.entry_id)])


class HoiaxWaterHeater(HoiaxEntity, WaterHeaterEntity):
    """On/off switch and setpoint of the tank."""

    _attr_name = None
    _attr_temperature_unit = UnitOfTemperature.CELSIUS
    _attr_min_temp = MIN_TEMPERATURE
    _attr_max_temp = MAX_TEMPERATURE
    _attr_operation_list = [STATE_ELECTRIC, STATE_OFF]
    _attr_supported_features = (
        WaterHeaterEntityFeature.TARGET_TEMPERATURE
        | WaterHeaterEntityFeature.OPERATION_MODE
        | WaterHeaterEntityFeature.ON_OFF
    )
    _watched = frozenset(
        {
            PUBLISHED_ONOFF,
            PUBLISHED_MAX_POWER,
            PUBLISHED_TARGET_TEMPERATURE,
            PUBLISHED_MEASURED_TEMPERATURE,
        }
    )

    def __init__(self, device: HoiaxDevice, entry_id: str) -> None:
        """Initialise the entity."""

        super().__init__(device, entry_id, "water_heater")

    @property
    def current_operation(self) -> str:
        """Return electric while the heater is on."""

        return STATE_ELECTRIC if self.published(PUBLISHED_ONOFF, True) else STATE_OFF

    @property
    def current_temperature(self) -> float | None:
        """Return the measured tank temperature."""

        return self.published(PUBLISHED_MEASURED_TEMPERATURE)

    @property
    def target_temperature(self) -> float | None:
        """Return the requested tank temperature."""

        return self.published(PUBLISHED_TARGET_TEMPERATURE)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Expose the selected element power level."""

        return {PUBLISHED_MAX_POWER: self.published(PUBLISHED_MAX_POWER)}

    async def async_set_temperature(self, **kwargs: Any) -> None:
        """Write a new setpoint."""

        temperature = kwargs.get(ATTR_TEMPERATURE)
        if temperature is None:
            return
        await self._device.dispatcher.apply_setpoint(float(temperature))

    async def async_set_operation_mode(self, operation_mode: str) -> None:
        """Switch the heater on (electric) or off."""

        await self._device.async_set_on(operation_mode != STATE_OFF)

    async def async_turn_on(self, **kwargs: Any) -> None:
        """Switch the heater on."""

        await self._device.async_set_on(True)

    async def async_turn_off(self, **kwargs: Any) -> None:
        """Switch the heater off."""

        await self._device.async_set_on(False)
