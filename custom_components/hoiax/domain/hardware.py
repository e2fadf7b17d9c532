"""Hardware models and power-level encoding for Høiax Connected heaters."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Final

from ..exceptions import ConfigurationError


class PowerLevel(IntEnum):
    """Encoded value of the ``requested_power`` parameter."""

    OFF = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3  # both heating elements combined

    @property
    def option(self) -> str:
        """Return the option label used by services and the select entity."""

        return _LEVEL_OPTIONS[self]

    @classmethod
    def from_option(cls, option: str) -> PowerLevel:
        """Return the level for a ``low_power``/``medium_power``/``high_power`` label."""

        for level, label in _LEVEL_OPTIONS.items():
            if label == option:
                return level
        raise ValueError(f"Unknown power option: {option}")


_LEVEL_OPTIONS: Final = {
    PowerLevel.OFF: "off",
    PowerLevel.LOW: "low_power",
    PowerLevel.MEDIUM: "medium_power",
    PowerLevel.HIGH: "high_power",
}

POWER_OPTIONS: Final = [
    PowerLevel.LOW.option,
    PowerLevel.MEDIUM.option,
    PowerLevel.HIGH.option,
]


class LeakageStrategyKind(str, Enum):
    """Leakage estimation strategy chosen at model detection."""

    STATIC = "static"
    ADAPTIVE = "adaptive"


@dataclass(frozen=True, slots=True)
class HeaterModel:
    """Static description of one heater model."""

    name: str
    tank_volume: float
    element1_power: int
    element2_power: int
    leakage_constant: float | None
    strategy: LeakageStrategyKind

    def wattage(self, level: PowerLevel) -> int:
        """Return the element wattage for ``level``."""

        if level is PowerLevel.LOW:
            return self.element1_power
        if level is PowerLevel.MEDIUM:
            return self.element2_power
        if level is PowerLevel.HIGH:
            return self.element1_power + self.element2_power
        return 0


CONNECTED_200: Final = HeaterModel(
    name="Connected 200",
    tank_volume=178.0,
    element1_power=700,
    element2_power=1300,
    leakage_constant=12.696,
    strategy=LeakageStrategyKind.ADAPTIVE,
)

CONNECTED_300: Final = HeaterModel(
    name="Connected 300",
    tank_volume=271.0,
    element1_power=1250,
    element2_power=1750,
    leakage_constant=None,
    strategy=LeakageStrategyKind.STATIC,
)

REFERENCE_MODEL: Final = CONNECTED_200

HEATER_MODELS: Final[dict[str, HeaterModel]] = {
    model.name: model for model in (CONNECTED_200, CONNECTED_300)
}

_VOLUME_TOLERANCE = 2.0


def default_leakage_constant(model: HeaterModel) -> float:
    """Return the leakage constant (W/°C) for ``model``.

    Unmeasured models scale the reference model's constant by tank size.
    """

    if model.leakage_constant is not None:
        return model.leakage_constant
    reference = REFERENCE_MODEL.leakage_constant
    assert reference is not None
    return reference * model.tank_volume / REFERENCE_MODEL.tank_volume


def detect_model(
    tank_volume: float | None,
    nominal_power: float | None,
    nominal_power2: float | None,
) -> HeaterModel:
    """Return the model matching the reported volume and element powers."""

    if nominal_power is not None and nominal_power2 is not None:
        for model in HEATER_MODELS.values():
            if (
                int(nominal_power) == model.element1_power
                and int(nominal_power2) == model.element2_power
            ):
                return model
    if tank_volume is not None:
        for model in HEATER_MODELS.values():
            if abs(tank_volume - model.tank_volume) <= _VOLUME_TOLERANCE:
                return model
    raise ConfigurationError(
        "Unrecognised heater model "
        f"(volume={tank_volume}, element powers={nominal_power}/{nominal_power2})"
    )


def encode_heater_state(on: bool, level: PowerLevel) -> int:
    """Return the ``requested_power`` command value for ``(on, level)``."""

    if not on or level is PowerLevel.OFF:
        return int(PowerLevel.OFF)
    return int(level)
