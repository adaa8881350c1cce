"""Order milestone and ETA models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import AliasChoices, Field

from fleettrack.models._base import FleetBaseModel, LenientFloat, UtcTimestamp


class MilestoneTrackingStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class MilestoneType(StrEnum):
    ORIGIN = "origin"
    WAYPOINT = "waypoint"
    DESTINATION = "destination"


class Milestone(FleetBaseModel):
    """A planned stop of an order.

    ``sequence`` is unique and ascending within an order. The current
    milestone is the first one that is not ``completed``.
    """

    id: str
    name: str = ""
    sequence: int = Field(ge=0)
    latitude: LenientFloat = Field(ge=-90.0, le=90.0, validation_alias=AliasChoices("latitude", "lat"))
    longitude: LenientFloat = Field(ge=-180.0, le=180.0, validation_alias=AliasChoices("longitude", "lng", "lon"))
    tracking_status: MilestoneTrackingStatus = MilestoneTrackingStatus.PENDING
    type: MilestoneType = MilestoneType.WAYPOINT
    estimated_arrival: UtcTimestamp | None = None
    actual_arrival: UtcTimestamp | None = None

    @property
    def is_open(self) -> bool:
        """Whether the milestone still has to be reached."""
        return self.tracking_status != MilestoneTrackingStatus.COMPLETED


class EtaResult(FleetBaseModel):
    """Dynamic ETA towards the next pending milestone.

    ``delay_minutes`` is ``0`` unless ``is_delayed`` is true.
    """

    milestone: Milestone
    distance_km: float = Field(ge=0.0)
    eta_minutes: int = Field(ge=0)
    estimated_arrival: datetime
    effective_speed_kmh: float = Field(gt=0.0)
    used_fallback_speed: bool = False
    is_delayed: bool = False
    delay_minutes: int = Field(default=0, ge=0)
    calculated_at: datetime


class OrderProgress(FleetBaseModel):
    completed: int = Field(ge=0)
    total: int = Field(ge=0)
    percent: int = Field(ge=0, le=100)
    current: Milestone | None = None
