from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from custom_components.hoiax.const import DOMAIN
from custom_components.hoiax.utils import (
    build_device_info,
    mask_identifier,
    redact_text,
    update_device_registry,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, ""),
        ("   ", ""),
        ("abcd", "***"),
        ("abcdefgh", "ab...gh"),
        ("0123456789abcdef", "012345...cdef"),
    ],
)
def test_mask_identifier(value, expected) -> None:
    assert mask_identifier(value) == expected


def test_redact_text_strips_secrets() -> None:
    text = (
        "Authorization: Bearer eyJhbGciOi.abc-123 "
        "url?client_secret=s3cr3t&access_token=zzz owner me@example.com"
    )

    redacted = redact_text(text)

    assert "eyJhbGciOi" not in redacted
    assert "s3cr3t" not in redacted
    assert "zzz" not in redacted
    assert "me@example.com" not in redacted
    assert "client_secret=***" in redacted
    assert redact_text(None) == ""


def test_build_device_info() -> None:
    info = build_device_info(
        "dev-1", "Bathroom", model="Connected 200", serial_number="12345678"
    )

    assert info["identifiers"] == {(DOMAIN, "dev-1")}
    assert info["manufacturer"] == "Høiax"
    assert info["model"] == "Connected 200"
    assert info["serial_number"] == "12345678"
    assert "sw_version" not in info


def _registry(entry):
    registry = MagicMock()
    registry.async_get_device.return_value = entry
    return registry


def test_update_device_registry_fills_model_and_serial(monkeypatch) -> None:
    entry = SimpleNamespace(id="reg-1", model="Connected", serial_number=None)
    registry = _registry(entry)
    monkeypatch.setattr(
        "custom_components.hoiax.utils.dr.async_get", lambda hass: registry
    )

    updated = update_device_registry(
        object(), "dev-1", model="Connected 300", serial_number="12345678"
    )

    assert updated is True
    registry.async_get_device.assert_called_once_with(identifiers={(DOMAIN, "dev-1")})
    registry.async_update_device.assert_called_once_with(
        "reg-1", model="Connected 300", serial_number="12345678"
    )


def test_update_device_registry_skips_unchanged_or_missing(monkeypatch) -> None:
    entry = SimpleNamespace(id="reg-1", model="Connected 200", serial_number="1234")
    registry = _registry(entry)
    monkeypatch.setattr(
        "custom_components.hoiax.utils.dr.async_get", lambda hass: registry
    )

    assert (
        update_device_registry(
            object(), "dev-1", model="Connected 200", serial_number="1234"
        )
        is False
    )
    registry.async_get_device.return_value = None
    assert update_device_registry(object(), "dev-1", model="Connected 300") is False
    registry.async_update_device.assert_not_called()
