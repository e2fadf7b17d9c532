"""Utility helpers shared across the Høiax integration."""

from __future__ import annotations

import re
from typing import Any

from homeassistant.core import HomeAssistant
from homeassistant.helpers import device_registry as dr
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.loader import async_get_integration as loader_async_get_integration

from .const import DOMAIN, MANUFACTURER

_BEARER_RE = re.compile(r"Bearer\s+[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE)
_TOKEN_QUERY_RE = re.compile(
    r"(?i)(token|refresh_token|access_token|client_secret)=([^&\s]+)"
)
_EMAIL_RE = re.compile(r"[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}")


async def async_get_integration_version(hass: HomeAssistant) -> str:
    """Return the installed integration version string."""

    integration = await loader_async_get_integration(hass, DOMAIN)
    return integration.version or "unknown"


def redact_text(value: str | None) -> str:
    """Return ``value`` with bearer tokens, emails and query secrets removed."""

    if not value:
        return ""
    redacted = _BEARER_RE.sub("Bearer ***", str(value))
    redacted = _TOKEN_QUERY_RE.sub(lambda match: f"{match.group(1)}=***", redacted)
    return _EMAIL_RE.sub("***@***", redacted)


def mask_identifier(value: str | None) -> str:
    """Return a masked identifier suitable for log output."""

    if value is None:
        return ""
    trimmed = str(value).strip()
    if not trimmed:
        return ""
    if len(trimmed) <= 4:
        return "***"
    if len(trimmed) <= 8:
        return f"{trimmed[:2]}...{trimmed[-2:]}"
    return f"{trimmed[:6]}...{trimmed[-4:]}"


def build_device_info(
    device_id: str,
    name: str,
    *,
    model: str | None = None,
    serial_number: str | None = None,
    sw_version: str | None = None,
) -> DeviceInfo:
    """Return canonical ``DeviceInfo`` for a water heater."""

    info = DeviceInfo(
        identifiers={(DOMAIN, str(device_id))},
        manufacturer=MANUFACTURER,
        name=name,
        model=model or "Connected",
        configuration_url="https://myuplink.com",
    )
    if serial_number:
        info["serial_number"] = serial_number
    if sw_version:
        info["sw_version"] = sw_version
    return info


def update_device_registry(
    hass: HomeAssistant,
    device_id: str,
    *,
    model: str | None = None,
    serial_number: str | None = None,
) -> bool:
    """Refresh model and serial of a registered heater; return True on update."""

    dev_reg = dr.async_get(hass)
    entry = dev_reg.async_get_device(identifiers={(DOMAIN, str(device_id))})
    if entry is None:
        return False
    changes: dict[str, Any] = {}
    if model and entry.model != model:
        changes["model"] = model
    if serial_number and entry.serial_number != serial_number:
        changes["serial_number"] = serial_number
    if not changes:
        return False
    dev_reg.async_update_device(entry.id, **changes)
    return True
