"""Historical route models."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, Field

from fleettrack.models._base import FleetBaseModel, LenientFloat, UtcTimestamp


class RouteEventType(StrEnum):
    GEOFENCE_ENTER = "geofence_enter"
    GEOFENCE_EXIT = "geofence_exit"
    STOP_START = "stop_start"
    STOP_END = "stop_end"
    SPEED_ALERT = "speed_alert"
    IGNITION_ON = "ignition_on"
    IGNITION_OFF = "ignition_off"


class RouteEvent(FleetBaseModel):
    """Discrete event attached to a route point."""

    type: RouteEventType
    description: str = ""
    data: dict[str, Any] = Field(default_factory=dict)


class HistoricalRoutePoint(FleetBaseModel):
    """One point of a recorded route.

    ``index`` is 0-based and contiguous within a route;
    ``distance_from_start`` is cumulative, in km.
    """

    index: int = Field(ge=0)
    latitude: LenientFloat = Field(ge=-90.0, le=90.0, validation_alias=AliasChoices("latitude", "lat"))
    longitude: LenientFloat = Field(ge=-180.0, le=180.0, validation_alias=AliasChoices("longitude", "lng", "lon"))
    speed: LenientFloat = Field(default=0.0, ge=0.0)
    heading: LenientFloat = 0.0
    timestamp: UtcTimestamp
    distance_from_start: LenientFloat = Field(default=0.0, ge=0.0)
    is_stopped: bool = False
    stop_duration: float | None = Field(default=None, ge=0.0)
    """Seconds spent stopped at this point, when ``is_stopped``."""
    event: RouteEvent | None = None
    altitude: LenientFloat | None = None


class HistoricalRouteStats(FleetBaseModel):
    total_distance_km: float = 0.0
    max_speed_kmh: float = 0.0
    avg_speed_kmh: float = 0.0
    moving_time_seconds: float = 0.0
    stopped_time_seconds: float = 0.0
    total_time_seconds: float = 0.0
    total_points: int = 0
    total_stops: int = 0
    start_point: tuple[float, float] | None = None
    end_point: tuple[float, float] | None = None
