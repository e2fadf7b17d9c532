"""Sensor platform for Høiax telemetry and leakage figures."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import PERCENTAGE, UnitOfEnergy, UnitOfPower, UnitOfTemperature
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import EntityCategory
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import (
    PUBLISHED_ENERGY_STORED,
    PUBLISHED_ENERGY_TOTAL,
    PUBLISHED_ESTIMATED_POWER,
    PUBLISHED_FILL_LEVEL,
    PUBLISHED_LEAK_RELATION,
    PUBLISHED_LEAKAGE_ACCUMULATED,
    PUBLISHED_LEAKAGE_CONSTANT,
    PUBLISHED_LEAKAGE_POWER,
    PUBLISHED_LEAKAGE_STATUS,
    PUBLISHED_MEASURED_TEMPERATURE,
)
from .device import HoiaxDevice
from .domain.leakage import EstimateStatus
from .entity import HoiaxEntity
from .runtime import require_runtime

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    """Set up telemetry and leakage sensors for the entry's heater."""

    device = require_runtime(hass, entry.entry_id).device
    entities: list[HoiaxSensor] = [
        sensor_cls(device, entry.entry_id) for sensor_cls in SENSOR_CLASSES
    ]
    _LOGGER.debug("Adding %d Høiax sensors", len(entities))
    async_add_entities(entities)


class HoiaxSensor(HoiaxEntity, SensorEntity):
    """Sensor rendering one published value."""

    _published_name: str

    def __init__(self, device: HoiaxDevice, entry_id: str) -> None:
        """Initialise the sensor keyed by its published name."""

        super().__init__(device, entry_id, self._published_name)
        self._watched = frozenset({self._published_name})
        self._attr_translation_key = self._published_name

    @property
    def native_value(self) -> Any:
        """Return the last published value."""

        return self.published(self._published_name)


class MeasuredTemperatureSensor(HoiaxSensor):
    """Water temperature in the tank."""

    _published_name = PUBLISHED_MEASURED_TEMPERATURE
    _attr_device_class = SensorDeviceClass.TEMPERATURE
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = UnitOfTemperature.CELSIUS


class EnergyStoredSensor(HoiaxSensor):
    """Energy currently stored as hot water."""

    _published_name = PUBLISHED_ENERGY_STORED
    _attr_device_class = SensorDeviceClass.ENERGY_STORAGE
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = UnitOfEnergy.KILO_WATT_HOUR


class EnergyTotalSensor(HoiaxSensor):
    """Lifetime energy consumed by the heating elements."""

    _published_name = PUBLISHED_ENERGY_TOTAL
    _attr_device_class = SensorDeviceClass.ENERGY
    _attr_state_class = SensorStateClass.TOTAL_INCREASING
    _attr_native_unit_of_measurement = UnitOfEnergy.KILO_WATT_HOUR


class EstimatedPowerSensor(HoiaxSensor):
    """Power drawn by the heating elements."""

    _published_name = PUBLISHED_ESTIMATED_POWER
    _attr_device_class = SensorDeviceClass.POWER
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = UnitOfPower.WATT


class FillLevelSensor(HoiaxSensor):
    """Share of the tank filled with hot water."""

    _published_name = PUBLISHED_FILL_LEVEL
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = PERCENTAGE
    _attr_icon = "mdi:water-percent"


class LeakagePowerSensor(HoiaxSensor):
    """Current standby heat loss."""

    _published_name = PUBLISHED_LEAKAGE_POWER
    _attr_device_class = SensorDeviceClass.POWER
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = UnitOfPower.WATT
    _attr_suggested_display_precision = 1


class LeakageAccumulatedSensor(HoiaxSensor):
    """Heat lost to the surroundings since installation."""

    _published_name = PUBLISHED_LEAKAGE_ACCUMULATED
    _attr_device_class = SensorDeviceClass.ENERGY
    _attr_state_class = SensorStateClass.TOTAL_INCREASING
    _attr_native_unit_of_measurement = UnitOfEnergy.KILO_WATT_HOUR
    _attr_suggested_display_precision = 3


class LeakRelationSensor(HoiaxSensor):
    """Leaked energy as a share of consumed energy over the last day."""

    _published_name = PUBLISHED_LEAK_RELATION
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = PERCENTAGE
    _attr_suggested_display_precision = 1
    _attr_icon = "mdi:heat-wave"


class LeakageConstantSensor(HoiaxSensor):
    """Heat transfer coefficient of the tank insulation (W/°C)."""

    _published_name = PUBLISHED_LEAKAGE_CONSTANT
    _attr_entity_category = EntityCategory.DIAGNOSTIC
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = "W/°C"
    _attr_suggested_display_precision = 3


class LeakageStatusSensor(HoiaxSensor):
    """Confidence of the leakage constant estimate."""

    _published_name = PUBLISHED_LEAKAGE_STATUS
    _attr_entity_category = EntityCategory.DIAGNOSTIC
    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = [status.value for status in EstimateStatus]


SENSOR_CLASSES: tuple[type[HoiaxSensor], ...] = (
    MeasuredTemperatureSensor,
    EnergyStoredSensor,
    EnergyTotalSensor,
    EstimatedPowerSensor,
    FillLevelSensor,
    LeakagePowerSensor,
    LeakageAccumulatedSensor,
    LeakRelationSensor,
    LeakageConstantSensor,
    LeakageStatusSensor,
)
