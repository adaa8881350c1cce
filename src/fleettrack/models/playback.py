"""Route playback state model."""

from __future__ import annotations

from datetime import timedelta
from enum import StrEnum

from pydantic import Field

from fleettrack.models._base import FleetBaseModel
from fleettrack.models.route import HistoricalRoutePoint


class PlaybackMode(StrEnum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"


class PlaybackState(FleetBaseModel):
    """Snapshot of a :class:`fleettrack.playback.PlaybackController`."""

    current_index: int = Field(ge=0)
    mode: PlaybackMode
    speed: int
    progress: int = Field(ge=0, le=100)
    """Percentage of the route played, ``0`` for routes of one point or less."""
    elapsed: timedelta = timedelta(0)
    """Recorded time between the first point and the current one."""
    total_points: int = Field(ge=0)
    current_point: HistoricalRoutePoint | None = None
    is_complete: bool = False
