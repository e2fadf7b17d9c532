"""Device state value and its transition functions."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
import math
from typing import Any

from ..const import DEFAULT_OUTSIDE_TEMPERATURE, DEFAULT_TANK_VOLUME
from .hardware import HeaterModel, PowerLevel, encode_heater_state
from .ids import (
    AMBIENT_TEMPERATURE,
    HEATER_MODE,
    HEATER_NOM_POWER,
    HEATER_NOM_POWER2,
    NUMERIC_SEED_IDS,
    TANK_VOLUME,
    parameter_name_for,
)
from .models import ParameterPoint


def coerce_number(value: Any) -> float | None:
    """Return ``value`` as a finite float when possible."""

    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(str(value).strip())
        except (TypeError, ValueError):
            return None
    return number if math.isfinite(number) else None


@dataclass(frozen=True, slots=True)
class DeviceState:
    """Local model of one water heater."""

    settings: Mapping[str, Any] = field(default_factory=dict)
    is_on: bool = True
    power_level: PowerLevel = PowerLevel.HIGH
    target_temperature: float | None = None
    measured_temperature: float | None = None
    outside_temperature: float = DEFAULT_OUTSIDE_TEMPERATURE
    tank_volume: float = DEFAULT_TANK_VOLUME
    nominal_power: float | None = None
    nominal_power2: float | None = None
    model: HeaterModel | None = None
    heater_mode_values: tuple[str, ...] = ()
    price_control_supported: bool | None = None
    telemetry: Mapping[str, float] = field(default_factory=dict)

    @property
    def encoded_power(self) -> int:
        """Return the ``requested_power`` value matching the cached state."""

        return encode_heater_state(self.is_on, self.power_level)


def initial_state(settings: Mapping[str, Any] | None = None) -> DeviceState:
    """Return the state used before the first full fetch."""

    return DeviceState(settings=dict(settings or {}))


def apply_points(
    state: DeviceState,
    points: Iterable[ParameterPoint],
    requested: Iterable[int],
) -> tuple[DeviceState, frozenset[int]]:
    """Merge fetched ``points`` and return the new state and resolved ids.

    Points outside ``requested`` are ignored so each id resolves once.
    """

    wanted = frozenset(requested)
    settings = dict(state.settings)
    seeds: dict[int, float] = {}
    mode_values = state.heater_mode_values
    resolved: set[int] = set()

    for point in points:
        if point.id not in wanted:
            continue
        name = parameter_name_for(point.id)
        if name is None:
            continue
        if point.writable:
            settings[name] = point.value
        else:
            settings[name] = point.display
        if point.id in NUMERIC_SEED_IDS:
            number = coerce_number(point.value)
            if number is not None:
                seeds[point.id] = number
        if point.id == HEATER_MODE and point.enum_values:
            mode_values = tuple(point.legal_values)
        resolved.add(point.id)

    new_state = replace(
        state,
        settings=settings,
        heater_mode_values=mode_values,
        outside_temperature=seeds.get(AMBIENT_TEMPERATURE, state.outside_temperature),
        tank_volume=seeds.get(TANK_VOLUME, state.tank_volume),
        nominal_power=seeds.get(HEATER_NOM_POWER, state.nominal_power),
        nominal_power2=seeds.get(HEATER_NOM_POWER2, state.nominal_power2),
    )
    return new_state, frozenset(resolved)


def with_heater_state(state: DeviceState, on: bool, level: PowerLevel) -> DeviceState:
    """Return ``state`` with the acknowledged on/off flag and level."""

    if level is PowerLevel.OFF:
        return replace(state, is_on=False)
    return replace(state, is_on=on, power_level=level)


def with_target_temperature(state: DeviceState, value: float) -> DeviceState:
    """Return ``state`` with a new acknowledged setpoint."""

    return replace(state, target_temperature=value)


def with_outside_temperature(state: DeviceState, value: float) -> DeviceState:
    """Return ``state`` with a new ambient temperature."""

    return replace(state, outside_temperature=value)


def with_settings(state: DeviceState, changes: Mapping[str, Any]) -> DeviceState:
    """Return ``state`` with acknowledged setting changes merged."""

    settings = dict(state.settings)
    settings.update(changes)
    return replace(state, settings=settings)


def with_model(
    state: DeviceState, model: HeaterModel, price_control_supported: bool
) -> DeviceState:
    """Return ``state`` with the detected hardware model."""

    return replace(
        state, model=model, price_control_supported=price_control_supported
    )


def with_telemetry(state: DeviceState, values: Mapping[str, float]) -> DeviceState:
    """Return ``state`` with published telemetry merged.

    Names missing from ``values`` keep their previous value.
    """

    telemetry = dict(state.telemetry)
    telemetry.update(values)
    return replace(
        state,
        telemetry=telemetry,
        target_temperature=values.get(
            "target_temperature", state.target_temperature
        ),
        measured_temperature=values.get(
            "measured_temperature", state.measured_temperature
        ),
    )


def observed_heater_state(
    state: DeviceState, requested_power: float
) -> tuple[bool, PowerLevel]:
    """Translate an observed ``requested_power`` value to ``(on, level)``.

    A zero value turns the heater off while keeping the cached level.
    Fractional values are rejected with ``ValueError``.
    """

    if not float(requested_power).is_integer():
        raise ValueError(f"Requested power {requested_power!r} is not a whole number")
    value = int(requested_power)
    if value == PowerLevel.OFF:
        return False, state.power_level
    return True, PowerLevel(value)
