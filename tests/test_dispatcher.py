from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from custom_components.hoiax.dispatcher import CommandDispatcher
from custom_components.hoiax.domain.hardware import CONNECTED_300, PowerLevel
from custom_components.hoiax.domain.models import WriteResult
from custom_components.hoiax.domain.state import DeviceState, initial_state, with_model
from custom_components.hoiax.exceptions import ConfigurationError, DeviceTornDownError
from custom_components.hoiax.retry import RetryGate


class _Harness:
    def __init__(self, client, sleep, store=None, state: DeviceState | None = None):
        self.state = state or initial_state()
        self.published: list[tuple[str, object]] = []
        self.events: list[int] = []
        self.torn_down = False
        self.gate = RetryGate(on_availability=MagicMock(), sleep=sleep)
        self.dispatcher = CommandDispatcher(
            client,
            "device-1234567890",
            self.gate,
            get_state=lambda: self.state,
            set_state=self._set,
            publish=lambda name, value: self.published.append((name, value)),
            on_max_power_changed=self.events.append,
            store=store,
            is_torn_down=lambda: self.torn_down,
        )

    def _set(self, state: DeviceState) -> None:
        self.state = state


@pytest.mark.asyncio
async def test_heater_state_writes_encoded_value(fake_client, sleep) -> None:
    harness = _Harness(fake_client, sleep)

    await harness.dispatcher.apply_heater_state(True, PowerLevel.MEDIUM)
    await harness.dispatcher.apply_heater_state(False, PowerLevel.MEDIUM)

    assert fake_client.written == [{517: 2}, {517: 0}]
    assert harness.state.is_on is False
    assert harness.state.power_level is PowerLevel.MEDIUM
    assert harness.published[-2:] == [("onoff", False), ("max_power", "medium_power")]


@pytest.mark.asyncio
async def test_max_power_event_only_on_level_change(fake_client, sleep) -> None:
    harness = _Harness(fake_client, sleep)

    await harness.dispatcher.apply_heater_state(True, PowerLevel.HIGH)
    await harness.dispatcher.apply_heater_state(False, PowerLevel.HIGH)
    await harness.dispatcher.apply_heater_state(True, PowerLevel.LOW)
    await harness.dispatcher.apply_heater_state(True, PowerLevel.LOW)
    await harness.dispatcher.apply_heater_state(True, PowerLevel.MEDIUM)

    assert harness.events == [700, 1300]


@pytest.mark.asyncio
async def test_max_power_event_uses_detected_model(fake_client, sleep) -> None:
    state = with_model(initial_state(), CONNECTED_300, True)
    harness = _Harness(fake_client, sleep, state=state)

    await harness.dispatcher.apply_heater_state(True, PowerLevel.LOW)

    assert harness.events == [1250]


@pytest.mark.asyncio
async def test_heater_state_retried_until_acknowledged(fake_client, sleep) -> None:
    fake_client.write_points = AsyncMock(
        side_effect=[
            WriteResult(ok=False, status=409),
            WriteResult(ok=False, status=409),
            WriteResult(ok=True, status=200),
        ]
    )
    harness = _Harness(fake_client, sleep)

    await harness.dispatcher.apply_heater_state(True, PowerLevel.LOW)

    assert fake_client.write_points.await_count == 3
    assert harness.state.power_level is PowerLevel.LOW
    assert harness.events == [700]


@pytest.mark.asyncio
async def test_setpoint_updates_target_without_event(fake_client, sleep) -> None:
    harness = _Harness(fake_client, sleep)

    await harness.dispatcher.apply_setpoint(65.0)

    assert fake_client.written == [{527: 65.0}]
    assert harness.state.target_temperature == 65.0
    assert harness.published == [("target_temperature", 65.0)]
    assert harness.events == []


@pytest.mark.asyncio
async def test_ambient_temperature(fake_client, make_store, sleep) -> None:
    store = await make_store()
    harness = _Harness(fake_client, sleep, store=store)

    assert await harness.dispatcher.apply_ambient_temperature("18.5") is True
    assert await harness.dispatcher.apply_ambient_temperature("warm") is False
    assert await harness.dispatcher.apply_ambient_temperature(float("nan")) is False

    assert fake_client.written == [{100: 18.5}]
    assert harness.state.outside_temperature == 18.5
    assert store.get("settings") == {"ambient_temperature": 18.5}


@pytest.mark.asyncio
async def test_settings_written_in_one_request(fake_client, make_store, sleep) -> None:
    store = await make_store()
    harness = _Harness(fake_client, sleep, store=store)

    await harness.dispatcher.apply_settings(
        {"regulation_diff": 4, "legionella_frequency": 14}
    )

    assert fake_client.written == [{516: 4, 511: 14}]
    assert harness.state.settings == {"regulation_diff": 4, "legionella_frequency": 14}
    assert store.get("settings") == harness.state.settings


@pytest.mark.asyncio
async def test_settings_reject_unknown_names(fake_client, sleep) -> None:
    harness = _Harness(fake_client, sleep)

    with pytest.raises(KeyError):
        await harness.dispatcher.apply_settings({"turbo": 1})
    fake_client.write_points.assert_not_awaited()


@pytest.mark.asyncio
async def test_price_regions_require_price_control(fake_client, sleep) -> None:
    state = with_model(initial_state(), CONNECTED_300, False)
    harness = _Harness(fake_client, sleep, state=state)

    with pytest.raises(ConfigurationError):
        await harness.dispatcher.apply_settings({"nordpool_price_region_2": 1})
    fake_client.write_points.assert_not_awaited()

    supported = _Harness(
        fake_client, sleep, state=with_model(initial_state(), CONNECTED_300, True)
    )
    await supported.dispatcher.apply_settings({"nordpool_price_region_2": 1})
    assert fake_client.written == [{545: 1}]


@pytest.mark.asyncio
async def test_completion_after_teardown_leaves_state_alone(fake_client, sleep) -> None:
    harness = _Harness(fake_client, sleep)

    async def _write(device_id, values):
        harness.torn_down = True
        return WriteResult(ok=True, status=200)

    fake_client.write_points = AsyncMock(side_effect=_write)

    with pytest.raises(DeviceTornDownError):
        await harness.dispatcher.apply_heater_state(True, PowerLevel.LOW)

    assert harness.state.power_level is PowerLevel.HIGH
    assert harness.published == []
    assert harness.events == []
