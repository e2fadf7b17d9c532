"""Domain-layer primitives for the Høiax integration."""

from .hardware import HeaterModel, LeakageStrategyKind, PowerLevel, detect_model
from .ids import PARAMETER_IDS, PARAMETER_NAMES, parameter_id_for, parameter_name_for
from .leakage import (
    AdaptiveHistogramStrategy,
    EstimateStatus,
    LeakageEstimator,
    LeakageModel,
    LeakageStrategy,
    StaticConstantStrategy,
)
from .models import ParameterPoint, WriteResult
from .state import DeviceState, initial_state

__all__ = [
    "PARAMETER_IDS",
    "PARAMETER_NAMES",
    "AdaptiveHistogramStrategy",
    "DeviceState",
    "EstimateStatus",
    "HeaterModel",
    "LeakageEstimator",
    "LeakageModel",
    "LeakageStrategy",
    "LeakageStrategyKind",
    "ParameterPoint",
    "PowerLevel",
    "StaticConstantStrategy",
    "WriteResult",
    "detect_model",
    "initial_state",
    "parameter_id_for",
    "parameter_name_for",
]
