"""Async REST client for the myUplink device-twin API."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
import logging
from time import monotonic as time_mod
from typing import Any

import aiohttp
from pydantic import ValidationError

from .const import (
    ACCEPT_LANGUAGE,
    API_BASE,
    POINTS_PATH_FMT,
    SYSTEMS_PATH,
    TOKEN_PATH,
    TOKEN_SCOPE,
    USER_AGENT,
)
from .domain.ids import format_parameter_query
from .domain.models import ParameterPoint, TokenResponse, WriteResult, parse_points
from .exceptions import BackendAuthError, BackendRateLimitError
from .utils import mask_identifier, redact_text

_LOGGER = logging.getLogger(__name__)

# Toggle to preview bodies in debug logs (redacted). Leave False by default.
API_LOG_PREVIEW = False

_TOKEN_REFRESH_MARGIN = 60.0


class RESTClient:
    """Thin async client for the myUplink cloud (HA-safe)."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        client_id: str,
        client_secret: str,
        *,
        api_base: str = API_BASE,
    ) -> None:
        """Initialise the REST client with authentication context."""
        self._session = session
        self._client_id = client_id
        self._client_secret = client_secret
        self._api_base = api_base.rstrip("/") if api_base else API_BASE
        self._access_token: str | None = None
        self._token_expiry_monotonic: float = 0.0
        self._lock = asyncio.Lock()

    @property
    def api_base(self) -> str:
        """Expose the API base URL."""

        return self._api_base

    async def _request(
        self,
        method: str,
        path: str,
        *,
        ignore_statuses: Iterable[int] = (),
        **kwargs: Any,
    ) -> tuple[int, Any | None]:
        """Perform an authenticated HTTP request.

        Return the status together with JSON when possible, otherwise text.
        HTTP statuses listed in ``ignore_statuses`` are logged and returned
        instead of raising. Errors are logged WITHOUT secrets.
        """
        ignore_statuses = set(ignore_statuses)
        headers = await self.authed_headers()
        timeout = kwargs.pop("timeout", aiohttp.ClientTimeout(total=25))
        url = f"{self._api_base}{path}"
        _LOGGER.debug("HTTP %s %s", method, url)

        for attempt in range(2):
            async with self._session.request(
                method, url, headers=headers, timeout=timeout, **kwargs
            ) as resp:
                ctype = resp.headers.get("Content-Type", "")
                try:
                    body_text = await resp.text()
                except (aiohttp.ClientError, UnicodeDecodeError):
                    body_text = ""

                if resp.status >= 400:
                    log_fn = (
                        _LOGGER.debug if resp.status in ignore_statuses else _LOGGER.error
                    )
                    log_fn(
                        "HTTP error %s %s -> %s; body=%s",
                        method,
                        url,
                        resp.status,
                        redact_text(body_text),
                    )
                elif API_LOG_PREVIEW:
                    _LOGGER.debug(
                        "HTTP %s -> %s, ctype=%s, body[0:200]=%r",
                        url,
                        resp.status,
                        ctype,
                        (redact_text(body_text) or "")[:200],
                    )

                if resp.status == 401:
                    if attempt == 0:
                        self._access_token = None
                        self._token_expiry_monotonic = 0.0
                        headers = await self.authed_headers()
                        continue
                    raise BackendAuthError("Unauthorized")
                if resp.status == 429:
                    raise BackendRateLimitError("Rate limited")
                if resp.status in ignore_statuses:
                    return resp.status, None
                if resp.status >= 400:
                    raise aiohttp.ClientResponseError(
                        resp.request_info,
                        resp.history,
                        status=resp.status,
                        message=redact_text(body_text),
                        headers=resp.headers,
                    )

                if "application/json" in ctype or (
                    body_text and body_text[:1] in ("{", "[")
                ):
                    try:
                        return resp.status, await resp.json(content_type=None)
                    except ValueError:
                        return resp.status, body_text
                return resp.status, body_text or None
        raise BackendAuthError("Unauthorized")

    async def _ensure_token(self) -> str:
        """Ensure a bearer token is present; fetch if missing or expiring."""
        if self._access_token and time_mod() < self._token_expiry_monotonic:
            return self._access_token

        async with self._lock:
            if self._access_token and time_mod() < self._token_expiry_monotonic:
                return self._access_token

            data = {
                "grant_type": "client_credentials",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "scope": TOKEN_SCOPE,
            }
            headers = {
                "Content-Type": "application/x-www-form-urlencoded; charset=UTF-8",
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            }
            url = f"{self._api_base}{TOKEN_PATH}"
            _LOGGER.debug("Token POST %s for client %s", url, mask_identifier(self._client_id))
            async with self._session.post(
                url, data=data, headers=headers, timeout=aiohttp.ClientTimeout(total=25)
            ) as resp:
                _LOGGER.debug("Token resp status=%s", resp.status)
                if resp.status in (400, 401):
                    raise BackendAuthError(
                        f"Invalid client credentials (status {resp.status})"
                    )
                if resp.status == 429:
                    raise BackendRateLimitError("Rate limited on token endpoint")
                if resp.status >= 400:
                    text = await resp.text()
                    raise aiohttp.ClientResponseError(
                        resp.request_info,
                        resp.history,
                        status=resp.status,
                        message=redact_text(text),
                        headers=resp.headers,
                    )
                js = await resp.json(content_type=None)

            try:
                token = TokenResponse.model_validate(js)
            except ValidationError as err:
                _LOGGER.error("No access_token in response JSON")
                raise BackendAuthError("No access_token in response") from err

            ttl = 3600.0
            if isinstance(token.expires_in, (int, float)):
                ttl = max(float(token.expires_in), 0.0)
            self._access_token = token.access_token
            self._token_expiry_monotonic = time_mod() + max(
                ttl - _TOKEN_REFRESH_MARGIN, 0.0
            )
            return token.access_token

    # ----------------- Public API -----------------

    async def authed_headers(self) -> dict[str, str]:
        """Return HTTP headers including a valid bearer token."""

        token = await self._ensure_token()
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
            "Accept-Language": ACCEPT_LANGUAGE,
        }

    async def list_devices(self) -> list[dict[str, str]]:
        """Return normalized devices: [{'device_id', 'system_id', 'name'}, ...]."""

        _status, data = await self._request("GET", SYSTEMS_PATH)
        systems: list[Any] = []
        if isinstance(data, Mapping):
            systems = list(data.get("systems") or [])
        elif isinstance(data, list):
            systems = data

        devices: list[dict[str, str]] = []
        for system in systems:
            if not isinstance(system, Mapping):
                continue
            system_id = str(system.get("systemId") or "")
            for device in system.get("devices") or []:
                if not isinstance(device, Mapping) or not device.get("id"):
                    continue
                product = device.get("product") or {}
                name = ""
                if isinstance(product, Mapping):
                    name = str(product.get("name") or "")
                devices.append(
                    {
                        "device_id": str(device["id"]),
                        "system_id": system_id,
                        "name": name or str(system.get("name") or device["id"]),
                    }
                )
        return devices

    async def read_points(
        self, device_id: str, parameter_ids: Iterable[int] | None = None
    ) -> list[ParameterPoint]:
        """Return points for ``parameter_ids``; ``None`` or empty reads all."""

        params: dict[str, str] = {}
        ids = list(parameter_ids or [])
        if ids:
            params["parameters"] = format_parameter_query(ids)
        path = POINTS_PATH_FMT.format(device_id=device_id)
        _status, data = await self._request("GET", path, params=params)
        points = parse_points(data)
        _LOGGER.debug(
            "read_points %s: requested=%s received=%d",
            mask_identifier(device_id),
            params.get("parameters", "all"),
            len(points),
        )
        return points

    async def write_points(
        self, device_id: str, values: Mapping[int, Any]
    ) -> WriteResult:
        """Write ``values`` and report whether the cloud acknowledged them."""

        body = {str(parameter_id): value for parameter_id, value in values.items()}
        path = POINTS_PATH_FMT.format(device_id=device_id)
        status, data = await self._request(
            "PATCH", path, json=body, ignore_statuses=(400, 403, 404, 409)
        )
        ok = status < 300
        if ok and isinstance(data, list):
            ok = all(
                str(item.get("status", "ok")).lower() in ("ok", "modified", "success")
                for item in data
                if isinstance(item, Mapping)
            )
        _LOGGER.debug(
            "write_points %s %s -> status=%s ok=%s",
            mask_identifier(device_id),
            sorted(body),
            status,
            ok,
        )
        return WriteResult(ok=ok, status=status, payload=data)
