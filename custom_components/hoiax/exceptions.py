"""Exception hierarchy for the Høiax integration."""

from __future__ import annotations


class HoiaxError(Exception):
    """Base exception for the Høiax integration."""


class TransientNetworkError(HoiaxError):
    """The cloud call failed in a way that a later retry may fix."""


class BackendAuthError(HoiaxError):
    """Authentication with myUplink failed."""


class BackendRateLimitError(TransientNetworkError):
    """Server rate-limited the client (HTTP 429)."""


class DataCorruptionError(HoiaxError):
    """A mandatory telemetry value was not a valid number."""


class ConfigurationError(HoiaxError):
    """The device cannot be driven with its current configuration."""


class DeviceTornDownError(HoiaxError):
    """The device was removed while an operation was pending."""


class PersistenceFailure(HoiaxError):
    """Writing to the device store failed; the value stays cached in memory."""
