from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

import custom_components.hoiax.config_flow as config_flow
from custom_components.hoiax.exceptions import BackendAuthError, BackendRateLimitError

DEVICES = [
    {"device_id": "dev-1", "system_id": "sys-1", "name": "Høiax Connected 200"},
    {"device_id": "dev-2", "system_id": "sys-1", "name": "Cabin"},
]


def _create_flow(monkeypatch: pytest.MonkeyPatch, list_devices: Any) -> config_flow.HoiaxConfigFlow:
    monkeypatch.setattr(
        config_flow, "async_get_integration_version", AsyncMock(return_value="1.0.0")
    )
    monkeypatch.setattr(config_flow, "create_rest_client", MagicMock())
    monkeypatch.setattr(config_flow, "async_list_devices", list_devices)
    flow = config_flow.HoiaxConfigFlow()
    flow.hass = SimpleNamespace(data={})
    flow.context = {"source": "user"}
    return flow


def test_user_step_shows_form(monkeypatch: pytest.MonkeyPatch) -> None:
    flow = _create_flow(monkeypatch, AsyncMock())

    result = asyncio.run(flow.async_step_user())

    assert result["type"] == "form"
    assert result["step_id"] == "user"
    assert result["description_placeholders"] == {"version": "1.0.0"}


def test_user_step_creates_entry_for_first_device(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    flow = _create_flow(monkeypatch, AsyncMock(return_value=DEVICES))
    flow.async_set_unique_id = AsyncMock()
    flow._abort_if_unique_id_configured = MagicMock()

    result = asyncio.run(
        flow.async_step_user({"client_id": "  app-id ", "client_secret": "secret"})
    )

    assert result["type"] == "create_entry"
    assert result["title"] == "Høiax Connected 200"
    assert result["data"] == {
        "client_id": "app-id",
        "client_secret": "secret",
        "device_id": "dev-1",
        "system_id": "sys-1",
        "device_name": "Høiax Connected 200",
    }
    flow.async_set_unique_id.assert_awaited_once_with("dev-1")
    config_flow.create_rest_client.assert_called_once_with(flow.hass, "app-id", "secret")


@pytest.mark.parametrize(
    "side_effect, error",
    [
        (BackendAuthError("bad"), "invalid_auth"),
        (BackendRateLimitError("slow down"), "rate_limited"),
        (aiohttp.ClientError("offline"), "cannot_connect"),
        (asyncio.TimeoutError(), "cannot_connect"),
        (RuntimeError("bug"), "unknown"),
    ],
)
def test_user_step_errors(
    monkeypatch: pytest.MonkeyPatch, side_effect: Exception, error: str
) -> None:
    flow = _create_flow(monkeypatch, AsyncMock(side_effect=side_effect))

    result = asyncio.run(
        flow.async_step_user({"client_id": "app-id", "client_secret": "secret"})
    )

    assert result["type"] == "form"
    assert result["errors"] == {"base": error}


def test_user_step_without_devices(monkeypatch: pytest.MonkeyPatch) -> None:
    flow = _create_flow(monkeypatch, AsyncMock(return_value=[]))

    result = asyncio.run(
        flow.async_step_user({"client_id": "app-id", "client_secret": "secret"})
    )

    assert result["errors"] == {"base": "no_devices"}
