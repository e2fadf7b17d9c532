"""Standby heat-loss ("leakage") estimation from periodic telemetry.

Heat transfer from the tank is linear in the tank-to-ambient difference::

    loss = k * (T_tank - T_outside)

The temperature drop seen while the tank is neither heated nor drawn from is
equivalent to ``4.187 * dT * litres`` kJ, which lets ``k`` (W/°C) be inferred
from the telemetry alone. Temperatures are only reported with one decimal, so
the adaptive strategy works on a histogram of rounded deltas and only trusts
the dominant bin(s).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import Counter, deque
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
import logging
from typing import Any, Final

from ..const import (
    LEAK_RELATION_PERIOD,
    PERSIST_INTERVAL,
    STORE_ACCUMULATED_LEAKAGE,
    STORE_LEAKAGE_CONSTANT,
    STORE_PREV_ACCUM_TIME,
)
from ..exceptions import DataCorruptionError
from .hardware import HeaterModel, LeakageStrategyKind, default_leakage_constant
from .state import coerce_number

_LOGGER = logging.getLogger(__name__)

SAMPLE_CAPACITY: Final = 200
MIN_QUALIFYING_SAMPLES: Final = 10
NON_ADJACENT_DOMINANCE: Final = 3
ADJACENT_DOMINANCE: Final = 2
SMOOTHING: Final = 0.99
HEAT_CAPACITY: Final = 4.187  # kJ/(L·°C)
UNIT: Final = 1_000_000.0
MS_PER_HOUR_TO_KW: Final = 3.6e9  # ms -> h and W -> kW
MAX_LEAK_RELATION: Final = 100.0


class EstimateStatus(str, Enum):
    """Confidence of the current leakage constant."""

    SEEDED = "seeded"
    CONFIDENT = "confident"
    INSUFFICIENT_SAMPLES = "insufficient_samples"
    NOISY = "noisy"
    STATIC = "static"


@dataclass(frozen=True, slots=True)
class LeakageSample:
    """Deltas between two consecutive telemetry readings."""

    power_delta: float
    temp_delta: float
    stored_energy_delta: float
    elapsed_ms: float
    outside_temp_diff: float

    @property
    def qualifies(self) -> bool:
        """Return True for a no-draw observation (not heated, not warming)."""

        return self.power_delta == 0 and self.temp_delta <= 0


class SampleWindow:
    """Fixed-capacity ring buffer of samples, oldest evicted first."""

    def __init__(self, capacity: int = SAMPLE_CAPACITY) -> None:
        self._samples: deque[LeakageSample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._samples.maxlen or 0

    def append(self, sample: LeakageSample) -> None:
        self._samples.append(sample)

    def extend(self, samples: Iterable[LeakageSample]) -> None:
        self._samples.extend(samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[LeakageSample]:
        return iter(self._samples)


@dataclass(slots=True)
class LeakageModel:
    """Persisted leakage figures for one device."""

    leakage_constant: float
    accumulated_energy: float = 0.0
    last_accum_timestamp: datetime | None = None

    def to_store(self) -> dict[str, Any]:
        """Return the store payload for this model."""

        return {
            STORE_LEAKAGE_CONSTANT: self.leakage_constant,
            STORE_ACCUMULATED_LEAKAGE: self.accumulated_energy,
            STORE_PREV_ACCUM_TIME: (
                self.last_accum_timestamp.isoformat()
                if self.last_accum_timestamp is not None
                else None
            ),
        }

    @classmethod
    def from_store(
        cls, stored: Mapping[str, Any], model: HeaterModel
    ) -> LeakageModel:
        """Return the model loaded from ``stored`` or defaulted by hardware."""

        constant = coerce_number(stored.get(STORE_LEAKAGE_CONSTANT))
        if constant is None or constant <= 0:
            constant = default_leakage_constant(model)
        accumulated = coerce_number(stored.get(STORE_ACCUMULATED_LEAKAGE)) or 0.0
        timestamp: datetime | None = None
        raw_time = stored.get(STORE_PREV_ACCUM_TIME)
        if isinstance(raw_time, datetime):
            timestamp = raw_time
        elif isinstance(raw_time, str) and raw_time:
            try:
                timestamp = datetime.fromisoformat(raw_time)
            except ValueError:
                _LOGGER.debug("Ignoring malformed prevAccumTime %r", raw_time)
        return cls(
            leakage_constant=constant,
            accumulated_energy=max(accumulated, 0.0),
            last_accum_timestamp=timestamp,
        )


@dataclass(frozen=True, slots=True)
class Estimate:
    """Result of one strategy run."""

    constant: float
    status: EstimateStatus
    trusted_bins: tuple[float, ...] = ()


class LeakageStrategy(ABC):
    """Derive the leakage constant from the sample window."""

    kind: LeakageStrategyKind

    @abstractmethod
    def estimate(
        self, current: float, window: SampleWindow, tank_volume: float
    ) -> Estimate:
        """Return the constant to use for this tick."""


class StaticConstantStrategy(LeakageStrategy):
    """Use the constant from the hardware table."""

    kind = LeakageStrategyKind.STATIC

    def __init__(self, constant: float) -> None:
        if constant <= 0:
            raise ValueError("Leakage constant must be positive")
        self._constant = constant

    def estimate(
        self, current: float, window: SampleWindow, tank_volume: float
    ) -> Estimate:
        return Estimate(self._constant, EstimateStatus.STATIC)


def _adjacent(first: float, second: float) -> bool:
    """Return True when two rounded bins are 0.1 apart."""

    return abs(round((second - first) * 10)) == 1


class AdaptiveHistogramStrategy(LeakageStrategy):
    """Learn the constant from the dominant temperature-drop bins."""

    kind = LeakageStrategyKind.ADAPTIVE

    def histogram(self, window: SampleWindow) -> tuple[Counter[float], int]:
        """Return rounded ``temp_delta`` bins and the qualifying sample count."""

        bins: Counter[float] = Counter()
        qualifying = 0
        for sample in window:
            if sample.qualifies:
                qualifying += 1
                bins[round(sample.temp_delta, 1) + 0.0] += 1
        return bins, qualifying

    def select_bins(
        self, bins: Mapping[float, int], qualifying: int
    ) -> tuple[tuple[float, ...], EstimateStatus]:
        """Return the trusted bins, or an empty tuple and the rejection reason.

        When two bins hold the same count the one closest to zero (the smaller
        leakage) ranks first. This is deterministic and does not depend on the
        order samples arrived in, so it can pick a different dominant bin than
        a ranking that keeps the first or most recently seen delta.
        """

        if qualifying < MIN_QUALIFYING_SAMPLES or not bins:
            return (), EstimateStatus.INSUFFICIENT_SAMPLES
        ordered = sorted(bins.items(), key=lambda item: (-item[1], -item[0]))
        key0, count0 = ordered[0]
        if count0 < MIN_QUALIFYING_SAMPLES:
            return (), EstimateStatus.INSUFFICIENT_SAMPLES

        if len(ordered) > 1:
            key1, count1 = ordered[1]
            if not _adjacent(key0, key1):
                if count0 > NON_ADJACENT_DOMINANCE * count1:
                    return (key0,), EstimateStatus.CONFIDENT
                return (), EstimateStatus.NOISY

        lower = round(key0 - 0.1, 1)
        upper = round(key0 + 0.1, 1)
        lower_count = bins.get(lower)
        upper_count = bins.get(upper)
        if lower_count is None and upper_count is None:
            return (key0,), EstimateStatus.CONFIDENT
        if lower_count is None:
            return (key0, upper), EstimateStatus.CONFIDENT
        if upper_count is None:
            return (key0, lower), EstimateStatus.CONFIDENT
        if lower_count >= upper_count:
            if lower_count > ADJACENT_DOMINANCE * upper_count:
                return (key0, lower), EstimateStatus.CONFIDENT
            return (), EstimateStatus.NOISY
        if upper_count > ADJACENT_DOMINANCE * lower_count:
            return (key0, upper), EstimateStatus.CONFIDENT
        return (), EstimateStatus.NOISY

    def implied_constant(
        self,
        window: SampleWindow,
        keys: Iterable[float],
        tank_volume: float,
    ) -> float | None:
        """Return the constant implied by samples in the trusted ``keys``."""

        trusted = set(keys)
        values: list[float] = []
        for sample in window:
            if not sample.qualifies:
                continue
            if round(sample.temp_delta, 1) not in trusted:
                continue
            if sample.outside_temp_diff <= 0 or sample.elapsed_ms <= 0:
                continue
            values.append(
                -sample.temp_delta
                * UNIT
                / (sample.outside_temp_diff * sample.elapsed_ms)
            )
        if not values:
            return None
        return HEAT_CAPACITY * tank_volume * sum(values) / len(values)

    def estimate(
        self, current: float, window: SampleWindow, tank_volume: float
    ) -> Estimate:
        bins, qualifying = self.histogram(window)
        keys, status = self.select_bins(bins, qualifying)
        if not keys:
            _LOGGER.debug(
                "Leakage estimate kept at %.3f (%s, %d qualifying samples)",
                current,
                status.value,
                qualifying,
            )
            return Estimate(current, status)
        implied = self.implied_constant(window, keys, tank_volume)
        if implied is None:
            return Estimate(current, EstimateStatus.INSUFFICIENT_SAMPLES)
        blended = SMOOTHING * current + (1 - SMOOTHING) * implied
        return Estimate(blended, EstimateStatus.CONFIDENT, keys)


def create_strategy(model: HeaterModel) -> LeakageStrategy:
    """Return the leakage strategy for a detected hardware model."""

    if model.strategy is LeakageStrategyKind.ADAPTIVE:
        return AdaptiveHistogramStrategy()
    return StaticConstantStrategy(default_leakage_constant(model))


def leak_relation(leaked: float, added: float) -> float:
    """Return leaked energy as a percentage of added energy, saturating at 100."""

    if added <= 0:
        return MAX_LEAK_RELATION if leaked > 0 else 0.0
    return min(MAX_LEAK_RELATION, max(0.0, 100.0 * leaked / added))


@dataclass(frozen=True, slots=True)
class LeakageUpdate:
    """Outcome of one estimator update."""

    loss: float
    accumulated_energy: float
    leakage_constant: float
    status: EstimateStatus
    sample: LeakageSample
    leak_relation: float | None = None
    persist: Mapping[str, Any] | None = None


def _require_number(value: Any, label: str) -> float:
    """Return ``value`` as a float or raise ``DataCorruptionError``."""

    number = coerce_number(value)
    if number is None:
        raise DataCorruptionError(f"Invalid {label} read from water heater: {value!r}")
    return number


class LeakageEstimator:
    """Accumulate samples, refine the constant and integrate leaked energy."""

    def __init__(
        self,
        strategy: LeakageStrategy,
        model: LeakageModel,
        *,
        tank_volume: float,
        outside_temperature: float,
        capacity: int = SAMPLE_CAPACITY,
        persist_interval: timedelta = PERSIST_INTERVAL,
        relation_period: timedelta = LEAK_RELATION_PERIOD,
    ) -> None:
        if model.leakage_constant <= 0:
            raise ValueError("Leakage constant must be positive")
        self.strategy = strategy
        self.model = model
        self.tank_volume = tank_volume
        self.outside_temperature = outside_temperature
        self.window = SampleWindow(capacity)
        self.status = EstimateStatus.SEEDED
        self.current_loss = 0.0
        self.leak_relation: float | None = None
        self._persist_interval = persist_interval
        self._relation_period = relation_period
        self._prev: tuple[float, float, float, datetime] | None = None
        self._last_persist: datetime | None = None
        self._period_start: tuple[datetime, float, float] | None = None

    @property
    def leakage_constant(self) -> float:
        return self.model.leakage_constant

    @property
    def accumulated_energy(self) -> float:
        return self.model.accumulated_energy

    def update(
        self, total: Any, temperature: Any, stored: Any, now: datetime
    ) -> LeakageUpdate | None:
        """Feed one telemetry reading.

        Returns ``None`` for the first reading, which only sets the baseline.
        Raises ``DataCorruptionError`` without touching any state when a value
        is not numeric.
        """

        total_kwh = _require_number(total, "energy total")
        tank_temp = _require_number(temperature, "temperature")
        stored_kwh = _require_number(stored, "stored energy")

        previous = self._prev
        self._prev = (total_kwh, tank_temp, stored_kwh, now)
        if previous is None:
            return None

        prev_total, prev_temp, prev_stored, prev_time = previous
        outside_diff = tank_temp - self.outside_temperature
        sample = LeakageSample(
            power_delta=round(total_kwh - prev_total, 1) + 0.0,
            temp_delta=round(tank_temp - prev_temp, 1) + 0.0,
            stored_energy_delta=round(stored_kwh - prev_stored, 2),
            elapsed_ms=(now - prev_time).total_seconds() * 1000.0,
            outside_temp_diff=round(outside_diff, 1),
        )
        self.window.append(sample)

        estimate = self.strategy.estimate(
            self.model.leakage_constant, self.window, self.tank_volume
        )
        self.model.leakage_constant = estimate.constant
        self.status = estimate.status

        last_accum = self.model.last_accum_timestamp
        elapsed_ms = (
            max((now - last_accum).total_seconds() * 1000.0, 0.0)
            if last_accum is not None
            else 0.0
        )
        self.model.last_accum_timestamp = now
        # Tank colder than ambient gains heat; count no negative leakage.
        self.current_loss = max(self.model.leakage_constant * outside_diff, 0.0)
        self.model.accumulated_energy += (
            self.current_loss * elapsed_ms / MS_PER_HOUR_TO_KW
        )

        relation = self._update_relation(total_kwh, now)
        return LeakageUpdate(
            loss=self.current_loss,
            accumulated_energy=self.model.accumulated_energy,
            leakage_constant=self.model.leakage_constant,
            status=self.status,
            sample=sample,
            leak_relation=relation,
            persist=self._persist_payload(now),
        )

    def reset_accumulated(self) -> None:
        """Reset lifetime leaked energy."""

        self.model.accumulated_energy = 0.0
        self._period_start = None

    def _update_relation(self, total_kwh: float, now: datetime) -> float | None:
        """Recompute the daily leak relation when a period has elapsed."""

        if self._period_start is None:
            self._period_start = (now, self.model.accumulated_energy, total_kwh)
            return None
        started, leak_start, energy_start = self._period_start
        if now - started < self._relation_period:
            return None
        self.leak_relation = leak_relation(
            self.model.accumulated_energy - leak_start, total_kwh - energy_start
        )
        self._period_start = (now, self.model.accumulated_energy, total_kwh)
        _LOGGER.debug("Leak relation recomputed: %.1f%%", self.leak_relation)
        return self.leak_relation

    def _persist_payload(self, now: datetime) -> Mapping[str, Any] | None:
        """Return the store payload at most once per persist interval."""

        if (
            self._last_persist is not None
            and now - self._last_persist < self._persist_interval
        ):
            return None
        self._last_persist = now
        return self.model.to_store()
