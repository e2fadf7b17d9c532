"""Initial full-state fetch of the device twin."""

from __future__ import annotations

import asyncio
from collections import Counter
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any

from .const import (
    HEATER_MODE_EXTERNAL,
    HEATER_MODE_PRICE_CONTROL,
    STORE_IS_FIRST_TIME,
    STORE_SETTINGS,
    SYNC_RETRY_DELAY,
)
from .domain.hardware import HeaterModel, detect_model
from .domain.ids import HEATER_MODE, PARAMETER_NAMES
from .domain.models import ParameterPoint
from .domain.state import DeviceState, apply_points, coerce_number, with_model
from .exceptions import DeviceTornDownError
from .retry import RetryGate
from .store import DeviceStore
from .utils import mask_identifier

_LOGGER = logging.getLogger(__name__)


class SyncPhase(str, Enum):
    """Progress of the initial fetch."""

    INIT = "init"
    FETCHING = "fetching"
    PARTIAL = "partial"
    COMPLETE = "complete"


@dataclass(frozen=True, slots=True)
class SyncResult:
    """Outcome of a completed synchronization."""

    state: DeviceState
    model: HeaterModel
    price_control_supported: bool
    rounds: int


def _mode_value(point: ParameterPoint | None) -> str | None:
    """Return the heater mode as a normalized string."""

    if point is None:
        return None
    number = coerce_number(point.value)
    if number is not None and number.is_integer():
        return str(int(number))
    return None if point.value is None else str(point.value)


class StateSynchronizer:
    """Fetch every known parameter until each one has been resolved.

    The cloud often answers with only part of the requested ids. Each round
    re-requests only the ids still missing, so every id resolves exactly once.
    Transport failures are retried by the ``RetryGate``.
    """

    def __init__(
        self,
        client: Any,
        device_id: str,
        gate: RetryGate,
        store: DeviceStore,
        *,
        get_state: Callable[[], DeviceState],
        set_state: Callable[[DeviceState], None],
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        retry_delay: float = SYNC_RETRY_DELAY,
        is_torn_down: Callable[[], bool] = lambda: False,
    ) -> None:
        self._client = client
        self._device_id = device_id
        self._gate = gate
        self._store = store
        self._get_state = get_state
        self._set_state = set_state
        self._sleep = sleep
        self._retry_delay = retry_delay
        self._is_torn_down = is_torn_down
        self.phase = SyncPhase.INIT
        self.rounds = 0
        self.resolved_counts: Counter[int] = Counter()
        self.diagnostic_points: list[dict[str, Any]] | None = None
        self.diagnostics_task: asyncio.Task[None] | None = None

    @property
    def unresolved(self) -> frozenset[int]:
        """Return ids that have not been resolved yet."""

        return frozenset(PARAMETER_NAMES) - frozenset(self.resolved_counts)

    async def async_prepare(self) -> None:
        """Put the heater in external-control mode on the very first run."""

        if self._store.get(STORE_IS_FIRST_TIME) is False:
            return

        points = await self._gate.execute(
            lambda: self._client.read_points(self._device_id, [HEATER_MODE]),
            description="Heater mode read",
            is_ok=lambda result: any(point.id == HEATER_MODE for point in result),
        )
        self._ensure_alive()
        current = _mode_value(next(p for p in points if p.id == HEATER_MODE))
        if current != HEATER_MODE_EXTERNAL:
            _LOGGER.info(
                "Switching heater %s from mode %s to external control",
                mask_identifier(self._device_id),
                current,
            )
            await self._gate.execute(
                lambda: self._client.write_points(
                    self._device_id, {HEATER_MODE: HEATER_MODE_EXTERNAL}
                ),
                description="Heater mode write",
            )
            self._ensure_alive()
        self._store.set(STORE_IS_FIRST_TIME, False)

    async def async_run(self) -> SyncResult:
        """Fetch until every id is resolved and detect the hardware model.

        Raises ``ConfigurationError`` when the reported hardware is unknown and
        ``DeviceTornDownError`` when the device goes away mid-way.
        """

        self.phase = SyncPhase.FETCHING
        while True:
            requested = self.unresolved
            points = await self._gate.execute(
                lambda: self._client.read_points(self._device_id, sorted(requested)),
                description="State fetch",
            )
            self._ensure_alive()
            state, resolved = apply_points(self._get_state(), points, requested)
            self._set_state(state)
            self.resolved_counts.update(resolved)
            self.rounds += 1
            self._store.set(STORE_SETTINGS, dict(state.settings))

            missing = self.unresolved
            if not missing:
                break
            self.phase = SyncPhase.PARTIAL
            _LOGGER.info(
                "State fetch for %s incomplete (%d of %d ids missing); retrying in %.0fs",
                mask_identifier(self._device_id),
                len(missing),
                len(PARAMETER_NAMES),
                self._retry_delay,
            )
            if self.diagnostics_task is None:
                self.diagnostics_task = asyncio.get_running_loop().create_task(
                    self._async_fetch_diagnostics()
                )
            await self._sleep(self._retry_delay)
            self._ensure_alive()

        return self._complete()

    def _complete(self) -> SyncResult:
        state = self._get_state()
        model = detect_model(state.tank_volume, state.nominal_power, state.nominal_power2)
        price_control = HEATER_MODE_PRICE_CONTROL in state.heater_mode_values
        if not price_control:
            _LOGGER.warning(
                "Heater %s does not offer price control mode; "
                "price region settings are disabled",
                mask_identifier(self._device_id),
            )
        state = with_model(state, model, price_control)
        self._set_state(state)
        self.phase = SyncPhase.COMPLETE
        _LOGGER.info(
            "State of %s synchronized after %d round(s); model %s",
            mask_identifier(self._device_id),
            self.rounds,
            model.name,
        )
        return SyncResult(
            state=state,
            model=model,
            price_control_supported=price_control,
            rounds=self.rounds,
        )

    async def _async_fetch_diagnostics(self) -> None:
        """Read every point once, unfiltered, for diagnostics."""

        try:
            points = await self._client.read_points(self._device_id, None)
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001 - diagnostics are best effort
            _LOGGER.exception(
                "Diagnostic point dump for %s failed", mask_identifier(self._device_id)
            )
            return
        self.diagnostic_points = [
            point.model_dump(by_alias=True, exclude_none=True) for point in points
        ]
        _LOGGER.debug(
            "Diagnostic point dump for %s: %d points",
            mask_identifier(self._device_id),
            len(points),
        )

    async def async_cancel_diagnostics(self) -> None:
        """Cancel the diagnostic point dump if it is still running."""

        task = self.diagnostics_task
        if task is None or task.done():
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    def _ensure_alive(self) -> None:
        if self._is_torn_down():
            raise DeviceTornDownError("State synchronization abandoned; device removed")
