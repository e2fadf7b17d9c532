"""Entity base shared across Høiax platforms."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.core import callback
from homeassistant.helpers.dispatcher import async_dispatcher_connect
from homeassistant.helpers.entity import Entity

from .const import signal_availability, signal_device_update
from .device import HoiaxDevice
from .utils import build_device_info

_LOGGER = logging.getLogger(__name__)


class HoiaxEntity(Entity):
    """Entity rendering published values of one water heater.

    Subclasses list the published names they render in ``_watched``; any
    dispatcher update touching one of them triggers a state write.
    """

    _attr_has_entity_name = True
    _attr_should_poll = False
    _watched: frozenset[str] = frozenset()

    def __init__(self, device: HoiaxDevice, entry_id: str, key: str) -> None:
        """Initialise the entity for ``device``."""

        self._device = device
        self._entry_id = entry_id
        self._attr_unique_id = f"{device.device_id}_{key}"
        model = device.state.model
        self._attr_device_info = build_device_info(
            device.device_id,
            device.name,
            model=model.name if model is not None else None,
            serial_number=device.serial_number,
        )

    @property
    def available(self) -> bool:
        """Return True when the heater answered the last cloud call."""

        return self._device.available

    def published(self, name: str, default: Any = None) -> Any:
        """Return the last published value for ``name``."""

        return self._device.published.get(name, default)

    async def async_added_to_hass(self) -> None:
        """Subscribe to dispatcher updates when the entity is added."""

        await super().async_added_to_hass()
        self.async_on_remove(
            async_dispatcher_connect(
                self.hass,
                signal_device_update(self._entry_id),
                self._handle_update,
            )
        )
        self.async_on_remove(
            async_dispatcher_connect(
                self.hass,
                signal_availability(self._entry_id),
                self._handle_availability,
            )
        )

    @callback
    def _handle_update(self, payload: dict[str, Any]) -> None:
        if self._watched.intersection(payload):
            self.async_write_ha_state()

    @callback
    def _handle_availability(self, _available: bool, _reason: str | None) -> None:
        self.async_write_ha_state()
