"""User commands sent to the water heater."""

from __future__ import annotations

from collections.abc import Callable, Mapping
import logging
from typing import Any

from .const import (
    PUBLISHED_MAX_POWER,
    PUBLISHED_ONOFF,
    PUBLISHED_TARGET_TEMPERATURE,
    STORE_SETTINGS,
)
from .domain.hardware import REFERENCE_MODEL, PowerLevel, encode_heater_state
from .domain.ids import (
    AMBIENT_TEMPERATURE,
    REQUESTED_POWER,
    TARGET_TEMPERATURE,
    is_price_region,
    parameter_id_for,
)
from .domain.state import (
    DeviceState,
    coerce_number,
    with_heater_state,
    with_outside_temperature,
    with_settings,
    with_target_temperature,
)
from .exceptions import ConfigurationError, DeviceTornDownError
from .retry import RetryGate
from .store import DeviceStore
from .utils import mask_identifier

_LOGGER = logging.getLogger(__name__)

PublishCallback = Callable[[str, Any], None]
MaxPowerCallback = Callable[[int], None]


class CommandDispatcher:
    """Write user commands through the retry gate and update local state.

    Writes are retried until the cloud acknowledges them. State only changes
    after acknowledgment, and never once the device has been torn down.
    """

    def __init__(
        self,
        client: Any,
        device_id: str,
        gate: RetryGate,
        *,
        get_state: Callable[[], DeviceState],
        set_state: Callable[[DeviceState], None],
        publish: PublishCallback,
        on_max_power_changed: MaxPowerCallback | None = None,
        store: DeviceStore | None = None,
        is_torn_down: Callable[[], bool] = lambda: False,
    ) -> None:
        self._client = client
        self._device_id = device_id
        self._gate = gate
        self._get_state = get_state
        self._set_state = set_state
        self._publish = publish
        self._on_max_power_changed = on_max_power_changed
        self._store = store
        self._is_torn_down = is_torn_down

    async def apply_heater_state(self, on: bool, level: PowerLevel) -> None:
        """Switch the heater on/off and select the element power level."""

        value = encode_heater_state(on, level)
        await self._write({REQUESTED_POWER: value}, "Heater state write")

        previous = self._get_state()
        state = with_heater_state(previous, on, level)
        self._set_state(state)
        self._publish(PUBLISHED_ONOFF, state.is_on)
        self._publish(PUBLISHED_MAX_POWER, state.power_level.option)
        _LOGGER.debug(
            "Heater %s now %s at %s",
            mask_identifier(self._device_id),
            "on" if state.is_on else "off",
            state.power_level.option,
        )

        if state.power_level != previous.power_level:
            model = state.model or REFERENCE_MODEL
            wattage = model.wattage(state.power_level)
            if self._on_max_power_changed is not None:
                self._on_max_power_changed(wattage)

    async def apply_setpoint(self, temperature: float) -> None:
        """Set the target water temperature (°C)."""

        await self._write({TARGET_TEMPERATURE: temperature}, "Target temperature write")
        self._set_state(with_target_temperature(self._get_state(), temperature))
        self._publish(PUBLISHED_TARGET_TEMPERATURE, temperature)
        _LOGGER.debug(
            "Target temperature of %s set to %s",
            mask_identifier(self._device_id),
            temperature,
        )

    async def apply_ambient_temperature(self, temperature: Any) -> bool:
        """Report the ambient temperature around the tank.

        Non-numeric input is ignored. Returns True when a write was made.
        """

        value = coerce_number(temperature)
        if value is None:
            _LOGGER.debug("Ignoring non-numeric ambient temperature %r", temperature)
            return False
        _LOGGER.info("New ambient temperature: %s", value)
        await self._write({AMBIENT_TEMPERATURE: value}, "Ambient temperature write")
        state = with_outside_temperature(self._get_state(), value)
        state = with_settings(state, {"ambient_temperature": value})
        self._set_state(state)
        self._persist_settings(state)
        return True

    async def apply_settings(self, changes: Mapping[str, Any]) -> None:
        """Write changed settings in a single request.

        Raises ``KeyError`` for unknown names and ``ConfigurationError`` for
        price region settings on firmware without price control.
        """

        if not changes:
            return
        state = self._get_state()
        payload: dict[int, Any] = {}
        for name, value in changes.items():
            parameter_id = parameter_id_for(name)
            if is_price_region(name) and state.price_control_supported is False:
                raise ConfigurationError(
                    f"{name} requires price control support in the heater firmware"
                )
            payload[parameter_id] = value

        _LOGGER.info(
            "Writing settings %s to %s", sorted(changes), mask_identifier(self._device_id)
        )
        await self._write(payload, "Settings write")
        state = with_settings(self._get_state(), changes)
        self._set_state(state)
        self._persist_settings(state)

    async def _write(self, values: Mapping[int, Any], description: str) -> None:
        await self._gate.execute(
            lambda: self._client.write_points(self._device_id, values),
            description=description,
        )
        if self._is_torn_down():
            raise DeviceTornDownError(f"{description} completed after device removal")

    def _persist_settings(self, state: DeviceState) -> None:
        if self._store is not None:
            self._store.set(STORE_SETTINGS, dict(state.settings))
