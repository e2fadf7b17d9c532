"""Shared fixtures for the Høiax test-suite."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from typing import Any
from unittest.mock import AsyncMock

import pytest

from custom_components.hoiax.domain.ids import PARAMETER_NAMES
from custom_components.hoiax.domain.models import ParameterPoint, WriteResult
from custom_components.hoiax.store import DeviceStore

# Values a Connected 200 reports for a full fetch.
CONNECTED_200_POINTS: dict[int, dict[str, Any]] = {
    100: {"value": 21.0, "writable": True},
    101: {"value": 10.0, "writable": True},
    302: {"value": 8.1, "strVal": "8.1 kWh"},
    303: {"value": 1520.4, "strVal": "1520.4 kWh"},
    400: {"value": 0, "strVal": "0 W"},
    404: {"value": 91, "strVal": "91 %"},
    500: {
        "value": 8,
        "writable": True,
        "enumValues": [
            {"value": "6", "text": "Price"},
            {"value": "8", "text": "External"},
        ],
    },
    503: {"value": 700, "strVal": "700 W"},
    504: {"value": 1300, "strVal": "1300 W"},
    511: {"value": 7, "writable": True},
    512: {"value": 20, "writable": True},
    516: {"value": 5, "writable": True},
    517: {"value": 3, "writable": True},
    518: {"value": 12345678, "strVal": "12345678"},
    526: {"value": 178, "strVal": "178 l"},
    527: {"value": 75, "writable": True},
    528: {"value": 70.2, "strVal": "70.2 °C"},
    544: {"value": 0, "writable": True},
    545: {"value": 0, "writable": True},
    546: {"value": 0, "writable": True},
    547: {"value": 0, "writable": True},
    548: {"value": 0, "writable": True},
}


def make_point(parameter_id: int, value: Any = None, **extra: Any) -> ParameterPoint:
    """Return a ``ParameterPoint`` built from myUplink style keys."""

    payload: dict[str, Any] = {"parameterId": parameter_id, "value": value}
    payload.update(extra)
    return ParameterPoint.model_validate(payload)


def device_points(
    ids: Iterable[int], overrides: Mapping[int, Mapping[str, Any]] | None = None
) -> list[ParameterPoint]:
    """Return Connected 200 points for ``ids``."""

    points = []
    for parameter_id in ids:
        spec = dict(CONNECTED_200_POINTS[parameter_id])
        if overrides and parameter_id in overrides:
            spec.update(overrides[parameter_id])
        points.append(make_point(parameter_id, **spec))
    return points


class FakeClient:
    """Device twin double recording reads and writes."""

    def __init__(self) -> None:
        self.read_points = AsyncMock(side_effect=self._read)
        self.write_points = AsyncMock(return_value=WriteResult(ok=True, status=200))
        self.overrides: dict[int, dict[str, Any]] = {}

    async def _read(
        self, device_id: str, parameter_ids: Iterable[int] | None = None
    ) -> list[ParameterPoint]:
        ids = list(parameter_ids or PARAMETER_NAMES)
        return device_points(ids, self.overrides)

    @property
    def written(self) -> list[dict[int, Any]]:
        """Return the payload of every write, in order."""

        return [dict(call.args[1]) for call in self.write_points.await_args_list]


class MemoryStoreBackend:
    """In-memory stand-in for ``homeassistant.helpers.storage.Store``."""

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self.data = data
        self.saves: list[dict[str, Any]] = []
        self.fail_saves = False

    async def async_load(self) -> dict[str, Any] | None:
        return self.data

    async def async_save(self, data: dict[str, Any]) -> None:
        if self.fail_saves:
            raise OSError("disk full")
        self.saves.append(dict(data))
        self.data = dict(data)


@pytest.fixture
def fake_client() -> FakeClient:
    """Return a device twin double answering with a Connected 200."""

    return FakeClient()


@pytest.fixture
def store_backend() -> MemoryStoreBackend:
    """Return an empty in-memory store backend."""

    return MemoryStoreBackend()


@pytest.fixture
def make_store(
    store_backend: MemoryStoreBackend,
) -> Callable[..., Any]:
    """Return a coroutine factory for loaded ``DeviceStore`` objects."""

    async def _make(data: dict[str, Any] | None = None) -> DeviceStore:
        if data is not None:
            store_backend.data = dict(data)
        store = DeviceStore(store_backend, "device-1234567890")
        await store.async_load()
        return store

    return _make


@pytest.fixture
def sleep() -> AsyncMock:
    """Return a sleep double that returns immediately."""

    return AsyncMock(return_value=None)
