from __future__ import annotations

import pytest

from conftest import device_points, make_point

from custom_components.hoiax.domain.hardware import CONNECTED_200, PowerLevel
from custom_components.hoiax.domain.ids import PARAMETER_NAMES
from custom_components.hoiax.domain.state import (
    DeviceState,
    apply_points,
    coerce_number,
    initial_state,
    observed_heater_state,
    with_heater_state,
    with_model,
    with_settings,
    with_telemetry,
)


def test_initial_state_defaults() -> None:
    state = initial_state({"regulation_diff": 5})

    assert state.is_on is True
    assert state.power_level is PowerLevel.HIGH
    assert state.outside_temperature == 24.0
    assert state.tank_volume == 178.0
    assert state.settings == {"regulation_diff": 5}
    assert state.encoded_power == 3


def test_apply_points_stores_raw_or_display_values() -> None:
    state, resolved = apply_points(
        initial_state(), device_points(PARAMETER_NAMES), PARAMETER_NAMES
    )

    assert resolved == frozenset(PARAMETER_NAMES)
    assert state.settings["regulation_diff"] == 5
    assert state.settings["TankVolume"] == "178 l"
    assert state.settings["HeaterNomPower"] == "700 W"
    assert state.tank_volume == 178.0
    assert state.nominal_power == 700.0
    assert state.nominal_power2 == 1300.0
    assert state.outside_temperature == 21.0
    assert state.heater_mode_values == ("6", "8")


def test_apply_points_ignores_ids_outside_request() -> None:
    points = [make_point(100, 18.0, writable=True), make_point(516, 4, writable=True)]

    state, resolved = apply_points(initial_state(), points, [516])

    assert resolved == {516}
    assert "ambient_temperature" not in state.settings
    assert state.outside_temperature == 24.0


def test_apply_points_keeps_defaults_for_non_numeric_seeds() -> None:
    state, resolved = apply_points(
        initial_state(), [make_point(526, "n/a", strVal="n/a")], [526]
    )

    assert resolved == {526}
    assert state.tank_volume == 178.0
    assert state.settings["TankVolume"] == "n/a"


def test_heater_state_transitions() -> None:
    state = initial_state()

    low = with_heater_state(state, True, PowerLevel.LOW)
    assert (low.is_on, low.power_level, low.encoded_power) == (True, PowerLevel.LOW, 1)

    off = with_heater_state(low, False, PowerLevel.LOW)
    assert (off.is_on, off.power_level, off.encoded_power) == (
        False,
        PowerLevel.LOW,
        0,
    )

    # Off level keeps the cached element choice.
    off_again = with_heater_state(low, True, PowerLevel.OFF)
    assert off_again.is_on is False
    assert off_again.power_level is PowerLevel.LOW
    assert state.power_level is PowerLevel.HIGH


def test_observed_heater_state() -> None:
    state = with_heater_state(initial_state(), True, PowerLevel.MEDIUM)

    assert observed_heater_state(state, 0) == (False, PowerLevel.MEDIUM)
    assert observed_heater_state(state, 1.0) == (True, PowerLevel.LOW)
    with pytest.raises(ValueError):
        observed_heater_state(state, 7)
    with pytest.raises(ValueError):
        observed_heater_state(state, 1.5)


def test_with_telemetry_merges_and_tracks_temperatures() -> None:
    state = with_telemetry(
        initial_state(), {"target_temperature": 70.0, "energy_stored": 4.0}
    )
    state = with_telemetry(state, {"measured_temperature": 65.5})

    assert state.telemetry == {
        "target_temperature": 70.0,
        "energy_stored": 4.0,
        "measured_temperature": 65.5,
    }
    assert state.target_temperature == 70.0
    assert state.measured_temperature == 65.5


def test_with_settings_and_model_are_pure() -> None:
    state = DeviceState()
    changed = with_model(with_settings(state, {"heater_mode": "8"}), CONNECTED_200, True)

    assert state.settings == {}
    assert state.model is None
    assert changed.settings == {"heater_mode": "8"}
    assert changed.model is CONNECTED_200
    assert changed.price_control_supported is True


@pytest.mark.parametrize(
    "value, expected",
    [(1, 1.0), ("2.5", 2.5), (True, None), (None, None), ("x", None), (float("nan"), None)],
)
def test_coerce_number(value, expected) -> None:
    assert coerce_number(value) == expected
