"""Config flow handlers for the Høiax integration."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from aiohttp import ClientError
from homeassistant import config_entries
from homeassistant.data_entry_flow import FlowResult
import voluptuous as vol

from . import async_list_devices, create_rest_client
from .const import (
    CONF_CLIENT_ID,
    CONF_CLIENT_SECRET,
    CONF_DEVICE_ID,
    CONF_DEVICE_NAME,
    CONF_SYSTEM_ID,
    DOMAIN,
)
from .exceptions import BackendAuthError, BackendRateLimitError
from .utils import async_get_integration_version, mask_identifier

_LOGGER = logging.getLogger(__name__)


def _credentials_schema(default_client_id: str = "") -> vol.Schema:
    """Build the credentials form schema with provided defaults."""
    return vol.Schema(
        {
            vol.Required(CONF_CLIENT_ID, default=default_client_id): str,
            vol.Required(CONF_CLIENT_SECRET): str,
        }
    )


class HoiaxConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Collect myUplink application credentials and pick the water heater."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Validate credentials by listing devices and create the entry."""
        version = await async_get_integration_version(self.hass)

        if user_input is None:
            _LOGGER.info("Høiax config flow started (v%s)", version)
            return self.async_show_form(
                step_id="user",
                data_schema=_credentials_schema(),
                description_placeholders={"version": version},
            )

        client_id = (user_input.get(CONF_CLIENT_ID) or "").strip()
        client_secret = user_input.get(CONF_CLIENT_SECRET) or ""

        errors: dict[str, str] = {}
        devices: list[dict[str, str]] = []
        try:
            client = create_rest_client(self.hass, client_id, client_secret)
            devices = await async_list_devices(client)
        except BackendAuthError:
            errors["base"] = "invalid_auth"
        except BackendRateLimitError:
            errors["base"] = "rate_limited"
        except (ClientError, asyncio.TimeoutError):
            errors["base"] = "cannot_connect"
        except Exception:
            _LOGGER.exception("Unexpected error during user step")
            errors["base"] = "unknown"
        else:
            if not devices:
                errors["base"] = "no_devices"

        if errors:
            return self.async_show_form(
                step_id="user",
                data_schema=_credentials_schema(client_id),
                errors=errors,
                description_placeholders={"version": version},
            )

        device = devices[0]
        if len(devices) > 1:
            _LOGGER.info(
                "Found %d devices; using the first (%s)",
                len(devices),
                mask_identifier(device["device_id"]),
            )
        await self.async_set_unique_id(device["device_id"])
        self._abort_if_unique_id_configured()

        return self.async_create_entry(
            title=device["name"],
            data={
                CONF_CLIENT_ID: client_id,
                CONF_CLIENT_SECRET: client_secret,
                CONF_DEVICE_ID: device["device_id"],
                CONF_SYSTEM_ID: device["system_id"],
                CONF_DEVICE_NAME: device["name"],
            },
        )
