from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from homeassistant.components.water_heater import STATE_ELECTRIC
from homeassistant.const import STATE_OFF

from custom_components.hoiax.device import HoiaxDevice
from custom_components.hoiax.domain.hardware import PowerLevel
from custom_components.hoiax.select import MaxPowerSelect
from custom_components.hoiax.sensor import (
    SENSOR_CLASSES,
    LeakageStatusSensor,
    MeasuredTemperatureSensor,
)
from custom_components.hoiax.water_heater import HoiaxWaterHeater

ENTRY_ID = "entry-1"


async def _device(fake_client, make_store, sleep) -> HoiaxDevice:
    store = await make_store({"isFirstTime": False})
    device = HoiaxDevice(fake_client, "device-1234567890", store, name="Tank", sleep=sleep)
    await device.async_initialise()
    return device


@pytest.mark.asyncio
async def test_sensors_render_published_values(fake_client, make_store, sleep) -> None:
    device = await _device(fake_client, make_store, sleep)
    await device.poller.async_poll()

    sensors = [cls(device, ENTRY_ID) for cls in SENSOR_CLASSES]

    assert len({sensor.unique_id for sensor in sensors}) == len(SENSOR_CLASSES)
    temperature = MeasuredTemperatureSensor(device, ENTRY_ID)
    assert temperature.unique_id == "device-1234567890_measured_temperature"
    assert temperature.native_value == 70.2
    assert temperature.available is True
    assert temperature.device_info["model"] == "Connected 200"
    assert temperature.device_info["serial_number"] == "12345678"
    status = LeakageStatusSensor(device, ENTRY_ID)
    assert status.native_value == "seeded"
    assert "confident" in status.options


@pytest.mark.asyncio
async def test_dispatcher_update_writes_state_for_watched_names_only(
    fake_client, make_store, sleep
) -> None:
    device = await _device(fake_client, make_store, sleep)
    sensor = MeasuredTemperatureSensor(device, ENTRY_ID)
    sensor.async_write_ha_state = MagicMock()

    sensor._handle_update({"fill_level": 40.0})
    sensor.async_write_ha_state.assert_not_called()

    sensor._handle_update({"measured_temperature": 60.0, "fill_level": 40.0})
    sensor.async_write_ha_state.assert_called_once_with()


@pytest.mark.asyncio
async def test_select_writes_power_level(fake_client, make_store, sleep) -> None:
    device = await _device(fake_client, make_store, sleep)
    select = MaxPowerSelect(device, ENTRY_ID)

    assert select.current_option == "high_power"
    await select.async_select_option("medium_power")

    assert fake_client.written[-1] == {517: 2}
    assert device.state.power_level is PowerLevel.MEDIUM
    assert select.current_option == "medium_power"


@pytest.mark.asyncio
async def test_water_heater_operations(fake_client, make_store, sleep) -> None:
    device = await _device(fake_client, make_store, sleep)
    heater = HoiaxWaterHeater(device, ENTRY_ID)

    assert heater.current_operation == STATE_ELECTRIC
    await heater.async_set_operation_mode(STATE_OFF)
    assert heater.current_operation == STATE_OFF
    await heater.async_turn_on()
    await heater.async_set_temperature(temperature=62)
    await heater.async_set_temperature()

    assert fake_client.written[-3:] == [{517: 0}, {517: 3}, {527: 62.0}]
    assert heater.target_temperature == 62.0
    assert heater.extra_state_attributes == {"max_power": "high_power"}
