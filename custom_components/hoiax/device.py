"""Per-device lifetime: wiring of gate, synchronizer, dispatcher and poller."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress
from datetime import datetime
import logging
from typing import Any

from homeassistant.core import HomeAssistant
from homeassistant.util import dt as dt_util

from .const import (
    PUBLISHED_LEAK_RELATION,
    PUBLISHED_LEAKAGE_ACCUMULATED,
    PUBLISHED_LEAKAGE_CONSTANT,
    PUBLISHED_LEAKAGE_POWER,
    PUBLISHED_LEAKAGE_STATUS,
    PUBLISHED_MAX_POWER,
    PUBLISHED_ONOFF,
    RETRY_INTERVAL,
    STORE_DEVICE_TYPE,
    STORE_LEAKAGE_CONSTANT,
    STORE_SETTINGS,
    SYNC_RETRY_DELAY,
)
from .dispatcher import CommandDispatcher
from .domain.hardware import HeaterModel, PowerLevel
from .domain.leakage import LeakageEstimator, LeakageModel, LeakageUpdate, create_strategy
from .domain.state import DeviceState, initial_state
from .exceptions import ConfigurationError, DeviceTornDownError
from .poller import TelemetryPoller
from .retry import RetryGate
from .store import DeviceStore
from .synchronizer import StateSynchronizer, SyncResult
from .utils import mask_identifier, update_device_registry

_LOGGER = logging.getLogger(__name__)

PublishListener = Callable[[str, Any], None]
AvailabilityListener = Callable[[bool, str | None], None]
MaxPowerListener = Callable[[int], None]


class HoiaxDevice:
    """One Høiax water heater bound to a config entry.

    The device starts unavailable, synchronizes its state in a background
    task, then polls telemetry. ``async_teardown`` stops every loop; pending
    cloud operations finish with ``DeviceTornDownError`` and never touch state.
    """

    def __init__(
        self,
        client: Any,
        device_id: str,
        store: DeviceStore,
        *,
        name: str = "",
        hass: HomeAssistant | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        retry_interval: float = RETRY_INTERVAL,
        sync_retry_delay: float = SYNC_RETRY_DELAY,
        now: Callable[[], datetime] = dt_util.utcnow,
    ) -> None:
        self.device_id = device_id
        self.name = name or device_id
        self.client = client
        self.store = store
        self._hass = hass
        self._state = initial_state(store.get(STORE_SETTINGS))
        self.published: dict[str, Any] = {
            PUBLISHED_ONOFF: self._state.is_on,
            PUBLISHED_MAX_POWER: self._state.power_level.option,
        }
        self.available = False
        self.unavailable_reason: str | None = "Initializing device."
        self.setup_error: ConfigurationError | None = None
        self.sync_result: SyncResult | None = None
        self.estimator: LeakageEstimator | None = None
        self._torn_down = False
        self._sync_task: asyncio.Task[None] | None = None
        self._publish_listeners: list[PublishListener] = []
        self._availability_listeners: list[AvailabilityListener] = []
        self._max_power_listeners: list[MaxPowerListener] = []

        self.gate = RetryGate(
            on_availability=self._set_availability,
            sleep=sleep,
            interval=retry_interval,
            is_torn_down=self.is_torn_down,
        )
        self.dispatcher = CommandDispatcher(
            client,
            device_id,
            self.gate,
            get_state=self._get_state,
            set_state=self._set_state,
            publish=self.publish,
            on_max_power_changed=self._emit_max_power,
            store=store,
            is_torn_down=self.is_torn_down,
        )
        self.synchronizer = StateSynchronizer(
            client,
            device_id,
            self.gate,
            store,
            get_state=self._get_state,
            set_state=self._set_state,
            sleep=sleep,
            retry_delay=sync_retry_delay,
            is_torn_down=self.is_torn_down,
        )
        self.poller = TelemetryPoller(
            client,
            device_id,
            self.gate,
            self.dispatcher,
            get_state=self._get_state,
            set_state=self._set_state,
            publish=self.publish,
            on_availability=self._set_availability,
            on_leakage=self._handle_leakage,
            is_torn_down=self.is_torn_down,
            now=now,
        )

    # ----------------- State -----------------

    @property
    def state(self) -> DeviceState:
        """Return the current device state."""

        return self._state

    def _get_state(self) -> DeviceState:
        return self._state

    def _set_state(self, state: DeviceState) -> None:
        if self._torn_down:
            raise DeviceTornDownError("State change after device removal")
        self._state = state

    def is_torn_down(self) -> bool:
        """Return True once the device has been removed."""

        return self._torn_down

    @property
    def serial_number(self) -> str | None:
        """Return the serial number reported by the heater, if known."""

        value = self._state.settings.get("SerialNo")
        if value in (None, ""):
            return None
        return str(value)

    # ----------------- Listeners -----------------

    def add_publish_listener(self, listener: PublishListener) -> Callable[[], None]:
        """Call ``listener(name, value)`` whenever a published value changes."""

        return _add_listener(self._publish_listeners, listener)

    def add_availability_listener(
        self, listener: AvailabilityListener
    ) -> Callable[[], None]:
        """Call ``listener(available, reason)`` on availability transitions."""

        return _add_listener(self._availability_listeners, listener)

    def add_max_power_listener(self, listener: MaxPowerListener) -> Callable[[], None]:
        """Call ``listener(watts)`` when the power level changes."""

        return _add_listener(self._max_power_listeners, listener)

    def publish(self, name: str, value: Any) -> None:
        """Record a published value and notify listeners when it changed."""

        if self._torn_down:
            return
        if name in self.published and self.published[name] == value:
            return
        self.published[name] = value
        for listener in list(self._publish_listeners):
            try:
                listener(name, value)
            except Exception:  # noqa: BLE001 - publishing is best effort
                _LOGGER.exception("Failed to publish %s for %s", name, self.name)

    def _set_availability(self, available: bool, reason: str | None) -> None:
        if self._torn_down:
            return
        changed = available != self.available or reason != self.unavailable_reason
        self.available = available
        self.unavailable_reason = None if available else reason
        if not changed:
            return
        if available:
            _LOGGER.info("Heater %s is available", mask_identifier(self.device_id))
        for listener in list(self._availability_listeners):
            try:
                listener(available, self.unavailable_reason)
            except Exception:  # noqa: BLE001 - publishing is best effort
                _LOGGER.exception("Availability listener failed for %s", self.name)

    def _emit_max_power(self, watts: int) -> None:
        _LOGGER.debug("Max power of %s changed to %d W", self.name, watts)
        for listener in list(self._max_power_listeners):
            try:
                listener(watts)
            except Exception:  # noqa: BLE001 - publishing is best effort
                _LOGGER.exception("Max power listener failed for %s", self.name)

    # ----------------- Lifetime -----------------

    def async_start(self) -> asyncio.Task[None]:
        """Start synchronization in a device-owned task."""

        if self._sync_task is None:
            self._sync_task = asyncio.get_running_loop().create_task(
                self.async_initialise()
            )
        return self._sync_task

    async def async_initialise(self) -> None:
        """Prepare and synchronize the device, then start polling."""

        try:
            await self.synchronizer.async_prepare()
            result = await self.synchronizer.async_run()
        except DeviceTornDownError:
            _LOGGER.debug("Initialisation of %s abandoned", self.name)
            return
        except ConfigurationError as err:
            self.setup_error = err
            _LOGGER.error("Heater %s cannot be driven: %s", self.name, err)
            self._set_availability(False, str(err))
            return

        self.sync_result = result
        self.estimator = self._seed_estimator(result.model)
        self.poller.estimator = self.estimator
        if self._hass is not None:
            update_device_registry(
                self._hass,
                self.device_id,
                model=result.model.name,
                serial_number=self.serial_number,
            )
            self.poller.start(self._hass)

    def _seed_estimator(self, model: HeaterModel) -> LeakageEstimator:
        """Create the leakage estimator from stored figures or model defaults."""

        stored = dict(self.store.data)
        previous_type = stored.get(STORE_DEVICE_TYPE)
        if previous_type and previous_type != model.name:
            _LOGGER.info(
                "Heater %s changed from %s to %s; resetting leakage constant",
                self.name,
                previous_type,
                model.name,
            )
            stored.pop(STORE_LEAKAGE_CONSTANT, None)
        leakage_model = LeakageModel.from_store(stored, model)
        estimator = LeakageEstimator(
            create_strategy(model),
            leakage_model,
            tank_volume=self._state.tank_volume,
            outside_temperature=self._state.outside_temperature,
        )
        self.store.set(STORE_DEVICE_TYPE, model.name)
        self.publish(PUBLISHED_LEAKAGE_CONSTANT, estimator.leakage_constant)
        self.publish(PUBLISHED_LEAKAGE_ACCUMULATED, estimator.accumulated_energy)
        self.publish(PUBLISHED_LEAKAGE_STATUS, estimator.status.value)
        _LOGGER.debug(
            "Leakage estimator for %s seeded with k=%.3f (%s)",
            self.name,
            estimator.leakage_constant,
            estimator.strategy.kind.value,
        )
        return estimator

    def _handle_leakage(self, update: LeakageUpdate) -> None:
        self.publish(PUBLISHED_LEAKAGE_POWER, update.loss)
        self.publish(PUBLISHED_LEAKAGE_ACCUMULATED, update.accumulated_energy)
        self.publish(PUBLISHED_LEAKAGE_CONSTANT, update.leakage_constant)
        self.publish(PUBLISHED_LEAKAGE_STATUS, update.status.value)
        if update.leak_relation is not None:
            self.publish(PUBLISHED_LEAK_RELATION, update.leak_relation)
        if update.persist is not None:
            self.store.set_many(update.persist)

    def reset_leakage(self) -> None:
        """Zero the accumulated leaked energy and persist the change."""

        estimator = self.estimator
        if estimator is None:
            raise ConfigurationError(
                f"Leakage estimation for {self.name} has not started yet"
            )
        estimator.reset_accumulated()
        _LOGGER.info("Accumulated leakage of %s reset", self.name)
        self.publish(PUBLISHED_LEAKAGE_ACCUMULATED, estimator.accumulated_energy)
        self.store.set_many(estimator.model.to_store())

    async def async_set_max_power(self, level: PowerLevel) -> None:
        """Keep the on/off flag and change the power level."""

        await self.dispatcher.apply_heater_state(self._state.is_on, level)

    async def async_set_on(self, on: bool) -> None:
        """Switch the heater on or off at the cached power level."""

        await self.dispatcher.apply_heater_state(on, self._state.power_level)

    async def async_teardown(self) -> None:
        """Stop every loop owned by the device."""

        if self._torn_down:
            return
        self._torn_down = True
        _LOGGER.debug("Tearing down heater %s", mask_identifier(self.device_id))
        await self.poller.async_stop()
        task = self._sync_task
        self._sync_task = None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        await self.synchronizer.async_cancel_diagnostics()
        self._publish_listeners.clear()
        self._availability_listeners.clear()
        self._max_power_listeners.clear()


def _add_listener(listeners: list[Any], listener: Any) -> Callable[[], None]:
    listeners.append(listener)

    def _remove() -> None:
        with suppress(ValueError):
            listeners.remove(listener)

    return _remove
