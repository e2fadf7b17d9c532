"""Diagnostics support for the Høiax integration."""

from __future__ import annotations

from collections.abc import Mapping
import logging
import platform
from typing import Any, Final

from homeassistant.components.diagnostics import async_redact_data
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .const import DOMAIN
from .runtime import require_runtime
from .utils import async_get_integration_version

_LOGGER = logging.getLogger(__name__)

SENSITIVE_FIELDS: Final = {
    "access_token",
    "authorization",
    "client_id",
    "client_secret",
    "device_id",
    "SerialNo",
    "system_id",
    "token",
}


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: ConfigEntry
) -> Mapping[str, Any]:
    """Return a diagnostics payload for ``entry``."""

    runtime = require_runtime(hass, entry.entry_id)
    device = runtime.device
    state = device.state
    synchronizer = device.synchronizer

    version = runtime.version or await async_get_integration_version(hass)
    estimator = device.estimator

    diagnostics: dict[str, Any] = {
        "integration": {"domain": DOMAIN, "version": version},
        "home_assistant": {
            "version": str(getattr(hass, "version", "unknown")),
            "python_version": platform.python_version(),
        },
        "entry": dict(entry.data),
        "device": {
            "device_id": device.device_id,
            "available": device.available,
            "unavailable_reason": device.unavailable_reason,
            "setup_error": str(device.setup_error) if device.setup_error else None,
            "model": state.model.name if state.model else None,
            "price_control_supported": state.price_control_supported,
            "heater_mode_values": list(state.heater_mode_values),
            "settings": dict(state.settings),
            "published": dict(device.published),
        },
        "sync": {
            "phase": synchronizer.phase.value,
            "rounds": synchronizer.rounds,
            "unresolved": sorted(synchronizer.unresolved),
            "points": synchronizer.diagnostic_points,
        },
        "retry": {
            "failures": device.gate.failures,
            "last_error": device.gate.last_error,
        },
        "poller": {"ticks": device.poller.ticks, "running": device.poller.running},
        "store": {"failures": runtime.store.failures, "last_error": None},
    }
    last_store_error = runtime.store.last_error
    if last_store_error is not None:
        diagnostics["store"]["last_error"] = str(last_store_error)
    if estimator is not None:
        diagnostics["leakage"] = {
            "strategy": estimator.strategy.kind.value,
            "status": estimator.status.value,
            "constant": estimator.leakage_constant,
            "accumulated_energy": estimator.accumulated_energy,
            "samples": len(estimator.window),
            "leak_relation": estimator.leak_relation,
        }

    _LOGGER.debug("Diagnostics collected for %s", entry.entry_id)
    return async_redact_data(diagnostics, SENSITIVE_FIELDS)
