"""Select platform for the Høiax heating element power level."""

from __future__ import annotations

from homeassistant.components.select import SelectEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import PUBLISHED_MAX_POWER
from .device import HoiaxDevice
from .domain.hardware import POWER_OPTIONS, PowerLevel
from .entity import HoiaxEntity
from .runtime import require_runtime


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    """Set up the max power selector."""

    device = require_runtime(hass, entry.entry_id).device
    async_add_entities([MaxPowerSelect(device, entry.entry_id)])


class MaxPowerSelect(HoiaxEntity, SelectEntity):
    """Choose which heating elements may be used."""

    _attr_translation_key = "max_power"
    _attr_icon = "mdi:lightning-bolt"
    _attr_options = list(POWER_OPTIONS)
    _watched = frozenset({PUBLISHED_MAX_POWER})

    def __init__(self, device: HoiaxDevice, entry_id: str) -> None:
        """Initialise the selector."""

        super().__init__(device, entry_id, PUBLISHED_MAX_POWER)

    @property
    def current_option(self) -> str | None:
        """Return the cached power level."""

        return self.published(PUBLISHED_MAX_POWER)

    async def async_select_option(self, option: str) -> None:
        """Write the new power level, keeping the on/off state."""

        await self._device.async_set_max_power(PowerLevel.from_option(option))
