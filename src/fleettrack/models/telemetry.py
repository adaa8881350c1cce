"""Telemetry sample and tracked-vehicle models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import AliasChoices, Field, field_validator

from fleettrack.ingestion.normalize import normalize_heading
from fleettrack.models._base import FleetBaseModel, LenientFloat, UtcTimestamp


class ConnectionStatus(StrEnum):
    """Freshness of a vehicle's telemetry. Derived, never set directly."""

    ONLINE = "online"
    TEMPORARY_LOSS = "temporary_loss"
    DISCONNECTED = "disconnected"


class MovementStatus(StrEnum):
    """Motion classification derived from the current speed."""

    MOVING = "moving"
    STOPPED = "stopped"


class TelemetrySample(FleetBaseModel):
    """One positional reading for a vehicle.

    Parameters
    ----------
    vehicle_id : str
        Vehicle identifier (non-empty, whitespace stripped).
    latitude : float
        Latitude in degrees, ``[-90, 90]``.
    longitude : float
        Longitude in degrees, ``[-180, 180]``.
    speed : float
        Speed in km/h, ``>= 0``.
    heading : float
        Heading in degrees, folded into ``[0, 360)``.
    timestamp : datetime
        When the reading was taken (aware, UTC).
    altitude : float or None
        Altitude in metres, when the device reports it.
    accuracy : float or None
        GPS accuracy in metres, when the device reports it.
    """

    vehicle_id: str = Field(validation_alias=AliasChoices("vehicleId", "vehicle_id", "id"))
    latitude: LenientFloat = Field(ge=-90.0, le=90.0, validation_alias=AliasChoices("latitude", "lat"))
    longitude: LenientFloat = Field(
        ge=-180.0,
        le=180.0,
        validation_alias=AliasChoices("longitude", "lng", "lon"),
    )
    speed: LenientFloat = Field(default=0.0, ge=0.0)
    heading: LenientFloat = Field(default=0.0, validation_alias=AliasChoices("heading", "direction", "course"))
    timestamp: UtcTimestamp
    altitude: LenientFloat | None = None
    accuracy: LenientFloat | None = Field(default=None, ge=0.0)

    @field_validator("vehicle_id")
    @classmethod
    def _normalize_vehicle_id(cls, value: str) -> str:
        vehicle_id = value.strip()
        if not vehicle_id:
            raise ValueError("vehicle_id must be non-empty")
        return vehicle_id

    @field_validator("heading")
    @classmethod
    def _fold_heading(cls, value: float) -> float:
        return normalize_heading(value)


class VehicleInfo(FleetBaseModel):
    """Static metadata a caller may attach to a vehicle ID."""

    plate: str | None = None
    active_order_id: str | None = None
    company_name: str | None = None
    driver_name: str | None = None


class TrackedVehicle(FleetBaseModel):
    """Latest classified state of a vehicle.

    Connection and movement status are always derived from ``sample``;
    see :mod:`fleettrack.state.classifier`.
    """

    vehicle_id: str
    plate: str
    sample: TelemetrySample
    connection_status: ConnectionStatus
    movement_status: MovementStatus
    stopped_since: datetime | None = None
    """Set when the vehicle transitions into ``stopped``, cleared on leaving it."""
    active_order_id: str | None = None
    company_name: str | None = None
    driver_name: str | None = None

    @property
    def position(self) -> tuple[float, float]:
        """``(latitude, longitude)`` of the latest sample."""
        return (self.sample.latitude, self.sample.longitude)

    @property
    def speed(self) -> float:
        return self.sample.speed

    @property
    def last_update(self) -> datetime:
        return self.sample.timestamp

    @property
    def has_active_order(self) -> bool:
        return bool(self.active_order_id)
