"""Per-device persistent key/value store."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
import logging
from typing import Any, Protocol

from homeassistant.core import HomeAssistant
from homeassistant.helpers.storage import Store

from .const import DOMAIN, STORAGE_VERSION
from .exceptions import PersistenceFailure
from .utils import mask_identifier

_LOGGER = logging.getLogger(__name__)


class StoreBackend(Protocol):
    """Subset of ``homeassistant.helpers.storage.Store`` used here."""

    async def async_load(self) -> Any:
        """Return the stored payload or ``None``."""

    async def async_save(self, data: Any) -> None:
        """Persist ``data``."""


def create_store_backend(hass: HomeAssistant, device_id: str) -> Store:
    """Return the Home Assistant store holding one device's values."""

    return Store(hass, STORAGE_VERSION, f"{DOMAIN}.{device_id}")


class DeviceStore:
    """Best-effort persistence of device values.

    Reads come from an in-memory copy loaded once at setup. Writes update the
    copy immediately and are flushed in background tasks; a failed flush is
    logged and never retried.
    """

    def __init__(self, backend: StoreBackend, device_id: str = "") -> None:
        self._backend = backend
        self._device_id = device_id
        self._data: dict[str, Any] = {}
        self._pending: set[asyncio.Task[None]] = set()
        self.failures = 0
        self.last_error: PersistenceFailure | None = None

    @property
    def data(self) -> Mapping[str, Any]:
        """Return a read-only view of the cached values."""

        return dict(self._data)

    async def async_load(self) -> Mapping[str, Any]:
        """Load stored values; a broken store yields an empty mapping."""

        try:
            loaded = await self._backend.async_load()
        except asyncio.CancelledError:
            raise
        except Exception:  # noqa: BLE001 - persistence is best effort
            _LOGGER.exception(
                "Failed to load stored values for %s", mask_identifier(self._device_id)
            )
            loaded = None
        self._data = dict(loaded) if isinstance(loaded, Mapping) else {}
        return self.data

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value for ``key``."""

        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Store one value."""

        self.set_many({key: value})

    def set_many(self, values: Mapping[str, Any]) -> None:
        """Store several values in one flush."""

        if not values:
            return
        self._data.update(values)
        snapshot = dict(self._data)
        task = asyncio.get_running_loop().create_task(self._async_flush(snapshot))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def async_wait_pending(self) -> None:
        """Wait for scheduled flushes to finish."""

        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _async_flush(self, snapshot: dict[str, Any]) -> None:
        try:
            await self._backend.async_save(snapshot)
        except asyncio.CancelledError:
            raise
        except Exception as err:  # noqa: BLE001 - persistence is best effort
            self.failures += 1
            self.last_error = PersistenceFailure(str(err) or type(err).__name__)
            _LOGGER.error(
                "Failed to persist values for %s: %s",
                mask_identifier(self._device_id),
                self.last_error,
                exc_info=err,
            )
