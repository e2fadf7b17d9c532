"""Periodic telemetry poll of the water heater."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import Any, Final

from homeassistant.core import HomeAssistant
from homeassistant.helpers.event import async_track_time_interval
from homeassistant.util import dt as dt_util

from .const import (
    POLL_INTERVAL,
    PUBLISHED_ENERGY_STORED,
    PUBLISHED_ENERGY_TOTAL,
    PUBLISHED_ESTIMATED_POWER,
    PUBLISHED_FILL_LEVEL,
    PUBLISHED_MEASURED_TEMPERATURE,
    PUBLISHED_TARGET_TEMPERATURE,
)
from .dispatcher import CommandDispatcher
from .domain.hardware import PowerLevel, encode_heater_state
from .domain.ids import (
    ENERGY_STORED,
    ENERGY_TOTAL,
    ESTIMATED_POWER,
    FILL_LEVEL,
    MEASURED_TEMPERATURE,
    REQUESTED_POWER,
    TARGET_TEMPERATURE,
    TELEMETRY_IDS,
)
from .domain.leakage import LeakageEstimator, LeakageUpdate
from .domain.state import DeviceState, coerce_number, observed_heater_state, with_telemetry
from .exceptions import DataCorruptionError, DeviceTornDownError
from .retry import RetryGate
from .utils import mask_identifier

_LOGGER = logging.getLogger(__name__)

PUBLISHED_BY_ID: Final[dict[int, str]] = {
    ENERGY_STORED: PUBLISHED_ENERGY_STORED,
    ENERGY_TOTAL: PUBLISHED_ENERGY_TOTAL,
    ESTIMATED_POWER: PUBLISHED_ESTIMATED_POWER,
    FILL_LEVEL: PUBLISHED_FILL_LEVEL,
    TARGET_TEMPERATURE: PUBLISHED_TARGET_TEMPERATURE,
    MEASURED_TEMPERATURE: PUBLISHED_MEASURED_TEMPERATURE,
}


@dataclass(slots=True)
class PollResult:
    """What one poll tick observed and did."""

    published: dict[str, float] = field(default_factory=dict)
    feedback: tuple[bool, PowerLevel] | None = None
    leakage: LeakageUpdate | None = None
    error: DataCorruptionError | None = None


class TelemetryPoller:
    """Read telemetry every few minutes and reconcile the heater state."""

    def __init__(
        self,
        client: Any,
        device_id: str,
        gate: RetryGate,
        dispatcher: CommandDispatcher,
        *,
        get_state: Callable[[], DeviceState],
        set_state: Callable[[DeviceState], None],
        publish: Callable[[str, Any], None],
        on_availability: Callable[[bool, str | None], None],
        on_leakage: Callable[[LeakageUpdate], None] | None = None,
        is_torn_down: Callable[[], bool] = lambda: False,
        now: Callable[[], datetime] = dt_util.utcnow,
    ) -> None:
        self._client = client
        self._device_id = device_id
        self._gate = gate
        self._dispatcher = dispatcher
        self._get_state = get_state
        self._set_state = set_state
        self._publish = publish
        self._on_availability = on_availability
        self._on_leakage = on_leakage
        self._is_torn_down = is_torn_down
        self._now = now
        self.estimator: LeakageEstimator | None = None
        self.ticks = 0
        self.last_result: PollResult | None = None
        self._remove_listener: Callable[[], None] | None = None
        self._active_task: asyncio.Task[PollResult] | None = None

    @property
    def running(self) -> bool:
        """Return True while the interval listener is registered."""

        return self._remove_listener is not None

    def start(self, hass: HomeAssistant, interval: timedelta = POLL_INTERVAL) -> None:
        """Register the interval listener and run one tick immediately."""

        if self._remove_listener is not None:
            return
        self._remove_listener = async_track_time_interval(
            hass, self._on_interval, interval
        )
        _LOGGER.debug(
            "Telemetry polling of %s started every %s",
            mask_identifier(self._device_id),
            interval,
        )
        self._schedule_tick()

    async def async_stop(self) -> None:
        """Cancel the interval listener and any running tick."""

        remove = self._remove_listener
        self._remove_listener = None
        if remove is not None:
            remove()

        task = self._active_task
        self._active_task = None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError, DeviceTornDownError):
                await task

    def _on_interval(self, _now: datetime) -> None:
        self._schedule_tick()

    def _schedule_tick(self) -> None:
        if self._active_task is not None and not self._active_task.done():
            _LOGGER.debug("Telemetry poll still running; skipping trigger")
            return
        task = asyncio.get_running_loop().create_task(self.async_poll())
        self._active_task = task

        def _finalise(finished: asyncio.Task[PollResult]) -> None:
            if self._active_task is finished:
                self._active_task = None
            if finished.cancelled():
                return
            exception = finished.exception()
            if isinstance(exception, DeviceTornDownError):
                _LOGGER.debug("Telemetry poll abandoned: %s", exception)
            elif exception is not None:
                _LOGGER.error(
                    "Telemetry poll raised an exception", exc_info=exception
                )

        task.add_done_callback(_finalise)

    async def async_poll(self) -> PollResult:
        """Run one telemetry tick."""

        points = await self._gate.execute(
            lambda: self._client.read_points(self._device_id, TELEMETRY_IDS),
            description="Telemetry read",
        )
        if self._is_torn_down():
            raise DeviceTornDownError("Telemetry poll completed after device removal")

        result = PollResult()
        raw: dict[int, Any] = {}
        for point in points:
            if point.id in TELEMETRY_IDS:
                raw[point.id] = point.value

        for parameter_id, name in PUBLISHED_BY_ID.items():
            if parameter_id not in raw:
                continue
            number = coerce_number(raw[parameter_id])
            if number is None:
                _LOGGER.debug("Skipping non-numeric %s: %r", name, raw[parameter_id])
                continue
            result.published[name] = number

        if result.published:
            self._set_state(with_telemetry(self._get_state(), result.published))
            for name, value in result.published.items():
                self._publish(name, value)

        if REQUESTED_POWER in raw:
            result.feedback = await self._reconcile_heater_state(raw[REQUESTED_POWER])

        result.leakage, result.error = self._feed_estimator(raw)

        self.ticks += 1
        self.last_result = result
        self._on_availability(True, None)
        return result

    async def _reconcile_heater_state(
        self, observed: Any
    ) -> tuple[bool, PowerLevel] | None:
        """Push the observed heater state through the dispatcher when it differs."""

        value = coerce_number(observed)
        state = self._get_state()
        try:
            if value is None:
                raise ValueError(observed)
            on, level = observed_heater_state(state, value)
        except ValueError:
            _LOGGER.warning("Ignoring unexpected requested power %r", observed)
            return None
        if encode_heater_state(on, level) == state.encoded_power:
            return None
        _LOGGER.debug(
            "Requested power %s differs from cached %s; reconciling",
            int(value),
            state.encoded_power,
        )
        await self._dispatcher.apply_heater_state(on, level)
        return on, level

    def _feed_estimator(
        self, raw: dict[int, Any]
    ) -> tuple[LeakageUpdate | None, DataCorruptionError | None]:
        estimator = self.estimator
        if estimator is None:
            return None, None
        if not all(pid in raw for pid in (ENERGY_TOTAL, MEASURED_TEMPERATURE, ENERGY_STORED)):
            return None, None

        state = self._get_state()
        estimator.outside_temperature = state.outside_temperature
        try:
            update = estimator.update(
                raw[ENERGY_TOTAL],
                raw[MEASURED_TEMPERATURE],
                raw[ENERGY_STORED],
                self._now(),
            )
        except DataCorruptionError as err:
            _LOGGER.error(
                "Leakage update for %s skipped: %s", mask_identifier(self._device_id), err
            )
            return None, err
        if update is not None and self._on_leakage is not None:
            self._on_leakage(update)
        return update, None
