"""Data models for fleet tracking and playback."""

from fleettrack.models._base import FleetBaseModel, LenientFloat, UtcTimestamp
from fleettrack.models.milestone import (
    EtaResult,
    Milestone,
    MilestoneTrackingStatus,
    MilestoneType,
    OrderProgress,
)
from fleettrack.models.panel import (
    GRID_DIMENSIONS,
    AddPanelsResult,
    GridConfig,
    GridLayout,
    Panel,
    PanelPosition,
    PanelRequest,
)
from fleettrack.models.playback import PlaybackMode, PlaybackState
from fleettrack.models.retransmission import (
    PriorityLevel,
    RetransmissionFilter,
    RetransmissionRecord,
    RetransmissionStats,
)
from fleettrack.models.route import HistoricalRoutePoint, HistoricalRouteStats, RouteEvent, RouteEventType
from fleettrack.models.telemetry import (
    ConnectionStatus,
    MovementStatus,
    TelemetrySample,
    TrackedVehicle,
    VehicleInfo,
)

__all__ = [
    "AddPanelsResult",
    "ConnectionStatus",
    "EtaResult",
    "FleetBaseModel",
    "GRID_DIMENSIONS",
    "GridConfig",
    "GridLayout",
    "HistoricalRoutePoint",
    "HistoricalRouteStats",
    "LenientFloat",
    "Milestone",
    "MilestoneTrackingStatus",
    "MilestoneType",
    "MovementStatus",
    "OrderProgress",
    "Panel",
    "PanelPosition",
    "PanelRequest",
    "PlaybackMode",
    "PlaybackState",
    "PriorityLevel",
    "RetransmissionFilter",
    "RetransmissionRecord",
    "RetransmissionStats",
    "RouteEvent",
    "RouteEventType",
    "TelemetrySample",
    "TrackedVehicle",
    "UtcTimestamp",
    "VehicleInfo",
]
