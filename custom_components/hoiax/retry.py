"""Retry-until-success wrapper shared by every cloud operation."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
import logging
from typing import Any, TypeVar

from .const import RETRY_INTERVAL
from .exceptions import DeviceTornDownError

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")

SleepCallable = Callable[[float], Awaitable[Any]]
AvailabilityCallback = Callable[[bool, str | None], None]


def _result_ok(result: Any) -> bool:
    """Return False for results explicitly flagged ``ok=False``."""

    ok = getattr(result, "ok", None)
    if ok is None and isinstance(result, dict):
        ok = result.get("ok")
    return ok is not False


@dataclass(slots=True)
class RetryGate:
    """Retry an operation at a fixed interval until it succeeds.

    There is no attempt limit: the heater is assumed to become reachable
    again eventually. Each failure flips availability off and each success
    flips it back on. The loop stops with ``DeviceTornDownError`` once the
    owning device is torn down.
    """

    on_availability: AvailabilityCallback
    sleep: SleepCallable = asyncio.sleep
    interval: float = RETRY_INTERVAL
    is_torn_down: Callable[[], bool] = lambda: False
    failures: int = 0
    last_error: str | None = field(default=None)

    async def execute(
        self,
        op: Callable[[], Awaitable[_T]],
        *,
        description: str = "operation",
        is_ok: Callable[[Any], bool] = _result_ok,
    ) -> _T:
        """Run ``op`` until it returns an acceptable result."""

        while True:
            if self.is_torn_down():
                raise DeviceTornDownError(f"{description} abandoned; device removed")
            try:
                result = await op()
            except asyncio.CancelledError:
                raise
            except Exception as err:  # noqa: BLE001 - every failure is retried
                reason = f"Network problem: {err}"
            else:
                if is_ok(result):
                    self.on_availability(True, None)
                    return result
                reason = f"Network problem: {description} not acknowledged"

            self.failures += 1
            self.last_error = reason
            _LOGGER.warning(
                "%s failed (%s); retrying in %.0fs", description, reason, self.interval
            )
            self.on_availability(False, reason)
            await self.sleep(self.interval)
