"""Base model and shared field types for fleettrack models.

Every inbound model inherits from :class:`FleetBaseModel` which provides:

* ``alias_generator=to_camel`` so camelCase feed keys (``vehicleId``,
  ``distanceFromStart``) map automatically to snake_case fields.
* ``frozen=True``: samples and derived state are values, updates go
  through ``model_copy``.

Timestamps use :data:`UtcTimestamp`, which accepts datetimes, ISO-8601
strings and epoch seconds/milliseconds and always yields an aware UTC
datetime.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, FiniteFloat
from pydantic.alias_generators import to_camel

from fleettrack.ingestion.normalize import parse_timestamp, safe_float


def _coerce_timestamp(value: Any) -> Any:
    parsed = parse_timestamp(value)
    # Leave unparseable input untouched so pydantic reports it.
    return value if parsed is None else parsed


def _coerce_float(value: Any) -> Any:
    parsed = safe_float(value)
    return value if parsed is None else parsed


UtcTimestamp = Annotated[datetime, BeforeValidator(_coerce_timestamp)]
"""Annotated type that coerces feed timestamps to aware UTC datetimes."""

LenientFloat = Annotated[FiniteFloat, BeforeValidator(_coerce_float)]
"""Finite float that also accepts numeric strings (``"42.5"``)."""


class FleetBaseModel(BaseModel):
    """Base for fleettrack value models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )
