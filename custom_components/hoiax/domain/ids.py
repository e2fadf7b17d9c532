"""Parameter identifiers on the myUplink device twin."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Final

AMBIENT_TEMPERATURE: Final = 100
INLET_TEMPERATURE: Final = 101
ENERGY_STORED: Final = 302
ENERGY_TOTAL: Final = 303
ESTIMATED_POWER: Final = 400
FILL_LEVEL: Final = 404
HEATER_MODE: Final = 500
HEATER_NOM_POWER: Final = 503
HEATER_NOM_POWER2: Final = 504
LEGIONELLA_FREQUENCY: Final = 511
MAX_WATER_FLOW: Final = 512
REGULATION_DIFF: Final = 516
REQUESTED_POWER: Final = 517
SERIAL_NO: Final = 518
TANK_VOLUME: Final = 526
TARGET_TEMPERATURE: Final = 527
MEASURED_TEMPERATURE: Final = 528
NORDPOOL_PRICE_REGION_FIRST: Final = 544
NORDPOOL_PRICE_REGION_LAST: Final = 548

PRICE_REGION_PREFIX: Final = "nordpool_price_region_"

PARAMETER_IDS: Final[Mapping[str, int]] = {
    "ambient_temperature": AMBIENT_TEMPERATURE,
    "inlet_temperature": INLET_TEMPERATURE,
    "heater_mode": HEATER_MODE,
    "max_water_flow": MAX_WATER_FLOW,
    "legionella_frequency": LEGIONELLA_FREQUENCY,
    "regulation_diff": REGULATION_DIFF,
    "requested_power": REQUESTED_POWER,
    "TankVolume": TANK_VOLUME,
    "target_temperature": TARGET_TEMPERATURE,
    "measured_temperature": MEASURED_TEMPERATURE,
    "SerialNo": SERIAL_NO,
    "HeaterNomPower": HEATER_NOM_POWER,
    "HeaterNomPower2": HEATER_NOM_POWER2,
    "EnergyStored": ENERGY_STORED,
    "EnergyTotal": ENERGY_TOTAL,
    "EstimatedPower": ESTIMATED_POWER,
    "FillLevel": FILL_LEVEL,
    **{
        f"{PRICE_REGION_PREFIX}{index}": parameter_id
        for index, parameter_id in enumerate(
            range(NORDPOOL_PRICE_REGION_FIRST, NORDPOOL_PRICE_REGION_LAST + 1),
            start=1,
        )
    },
}

PARAMETER_NAMES: Final[Mapping[int, str]] = {
    parameter_id: name for name, parameter_id in PARAMETER_IDS.items()
}

if len(PARAMETER_NAMES) != len(PARAMETER_IDS):  # pragma: no cover - import guard
    raise RuntimeError("Parameter id table must be a bijection")

# Points that seed DeviceState numerically during the first full fetch.
NUMERIC_SEED_IDS: Final = frozenset(
    {AMBIENT_TEMPERATURE, HEATER_NOM_POWER, HEATER_NOM_POWER2, TANK_VOLUME}
)

TELEMETRY_IDS: Final[tuple[int, ...]] = (
    ENERGY_STORED,
    ENERGY_TOTAL,
    ESTIMATED_POWER,
    FILL_LEVEL,
    REQUESTED_POWER,
    TARGET_TEMPERATURE,
    MEASURED_TEMPERATURE,
)

PRICE_REGION_IDS: Final = frozenset(
    range(NORDPOOL_PRICE_REGION_FIRST, NORDPOOL_PRICE_REGION_LAST + 1)
)


def parameter_id_for(name: str) -> int:
    """Return the parameter id mapped to setting ``name``."""

    try:
        return PARAMETER_IDS[name]
    except KeyError:
        raise KeyError(f"Unknown setting name: {name}") from None


def parameter_name_for(parameter_id: int) -> str | None:
    """Return the setting name for ``parameter_id`` or ``None``."""

    return PARAMETER_NAMES.get(parameter_id)


def is_price_region(name: str) -> bool:
    """Return True when ``name`` is one of the price-region settings."""

    return PARAMETER_IDS.get(name) in PRICE_REGION_IDS


def format_parameter_query(parameter_ids: Iterable[int]) -> str:
    """Return the comma separated ``parameters`` query value."""

    return ",".join(str(parameter_id) for parameter_id in sorted(set(parameter_ids)))
