"""Pydantic models for myUplink device-twin payloads."""

from __future__ import annotations

from collections.abc import Iterable
import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

_LOGGER = logging.getLogger(__name__)


class TokenResponse(BaseModel):
    """Bearer token payload returned by the client-credentials grant."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    token_type: str | None = None
    expires_in: int | float | None = None
    scope: str | None = None


class EnumValue(BaseModel):
    """One legal value of an enumerated parameter."""

    model_config = ConfigDict(extra="ignore")

    value: str
    text: str | None = None

    @field_validator("value", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        """Enum values are compared as strings."""

        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if isinstance(value, float) and value.is_integer():
                return str(int(value))
            return str(value)
        return value


class ParameterPoint(BaseModel):
    """Single integer-addressed register on the device twin."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int = Field(alias="parameterId")
    value: float | int | str | None = None
    writable: bool = False
    str_val: str | None = Field(default=None, alias="strVal")
    unit_text: str | None = Field(default=None, alias="parameterUnit")
    enum_values: list[EnumValue] = Field(default_factory=list, alias="enumValues")

    @field_validator("enum_values", mode="before")
    @classmethod
    def _default_enum_values(cls, value: Any) -> Any:
        """Treat a null enum list as empty."""

        return [] if value is None else value

    @property
    def display(self) -> str:
        """Return the value with its unit for display purposes."""

        if self.str_val:
            return self.str_val
        if self.unit_text:
            return f"{self.value} {self.unit_text}".strip()
        return "" if self.value is None else str(self.value)

    @property
    def legal_values(self) -> list[str]:
        """Return the enumerated legal values as strings."""

        return [item.value for item in self.enum_values]


class WriteResult(BaseModel):
    """Outcome of a point write."""

    model_config = ConfigDict(extra="ignore")

    ok: bool
    status: int | None = None
    payload: Any | None = None


def parse_points(payload: Any) -> list[ParameterPoint]:
    """Return the valid parameter points contained in ``payload``.

    Entries without a ``parameterId`` appear when connectivity is poor; they
    are skipped rather than failing the whole response.
    """

    if isinstance(payload, dict):
        payload = payload.get("points") or payload.get("parameters") or []
    if not isinstance(payload, Iterable) or isinstance(payload, (str, bytes)):
        return []

    points: list[ParameterPoint] = []
    for item in payload:
        if not isinstance(item, dict) or "parameterId" not in item:
            continue
        try:
            points.append(ParameterPoint.model_validate(item))
        except ValidationError as err:
            _LOGGER.debug("Skipping malformed point %s: %s", item.get("parameterId"), err)
    return points
