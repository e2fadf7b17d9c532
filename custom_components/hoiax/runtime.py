"""Runtime container helpers for Høiax config entries."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .const import DOMAIN

if TYPE_CHECKING:
    from .api import RESTClient
    from .device import HoiaxDevice
    from .store import DeviceStore


@dataclass(slots=True)
class EntryRuntime:
    """Runtime container for a configured Høiax entry."""

    client: RESTClient
    device: HoiaxDevice
    store: DeviceStore
    config_entry: ConfigEntry
    version: str = ""
    unsubscribers: list[Callable[[], None]] = field(default_factory=list)
    _shutdown_complete: bool = False

    @property
    def device_id(self) -> str:
        """Return the myUplink device id handled by this entry."""

        return self.device.device_id

    async def async_shutdown(self) -> None:
        """Tear the device down once and drain its pending writes."""

        if self._shutdown_complete:
            return
        self._shutdown_complete = True
        while self.unsubscribers:
            self.unsubscribers.pop()()
        await self.device.async_teardown()
        await self.store.async_wait_pending()


def require_runtime(hass: HomeAssistant, entry_id: str) -> EntryRuntime:
    """Return the runtime container stored for ``entry_id``."""

    domain_data = hass.data.get(DOMAIN)
    if not isinstance(domain_data, dict):
        raise LookupError("Høiax runtime data is unavailable")  # noqa: TRY004
    runtime = domain_data.get(entry_id)
    if isinstance(runtime, EntryRuntime):
        return runtime
    raise LookupError("Høiax runtime data is unavailable")


def iter_runtimes(hass: HomeAssistant) -> list[EntryRuntime]:
    """Return every loaded runtime container."""

    domain_data = hass.data.get(DOMAIN)
    if not isinstance(domain_data, dict):
        return []
    return [item for item in domain_data.values() if isinstance(item, EntryRuntime)]


__all__ = ["EntryRuntime", "iter_runtimes", "require_runtime"]
