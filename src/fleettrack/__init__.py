"""fleettrack - Vehicle tracking and route playback core for fleet dashboards."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fleettrack")
except PackageNotFoundError:
    __version__ = "0+local"
from fleettrack.config import PriorityThresholds, TrackingConfig
from fleettrack.eta import estimate_eta, next_pending_milestone, order_progress
from fleettrack.exceptions import (
    FeedError,
    FleetTrackConfigError,
    FleetTrackError,
    TelemetryValidationError,
)
from fleettrack.geo import bearing_deg, haversine_km, path_length_km
from fleettrack.ingestion.telemetry import parse_milestones, parse_route_points, parse_sample
from fleettrack.models import (
    AddPanelsResult,
    ConnectionStatus,
    EtaResult,
    GridConfig,
    GridLayout,
    HistoricalRoutePoint,
    HistoricalRouteStats,
    Milestone,
    MilestoneTrackingStatus,
    MilestoneType,
    MovementStatus,
    OrderProgress,
    Panel,
    PanelPosition,
    PanelRequest,
    PlaybackMode,
    PlaybackState,
    PriorityLevel,
    RetransmissionFilter,
    RetransmissionRecord,
    RetransmissionStats,
    RouteEvent,
    RouteEventType,
    TelemetrySample,
    TrackedVehicle,
    VehicleInfo,
)
from fleettrack.panels import PanelGrid
from fleettrack.playback import AsyncioScheduler, PlaybackController, Scheduler
from fleettrack.priority import (
    build_retransmission_record,
    classify_priority,
    filter_records,
    retransmission_stats,
    sort_by_priority,
)
from fleettrack.registry import SubscriptionRegistry
from fleettrack.route import build_route_points, compute_route_stats, retransmission_rows, route_rows
from fleettrack.state.classifier import classify_connection, classify_movement, classify_sample, reclassify
from fleettrack.tracker import FleetTracker

__all__ = [
    "AddPanelsResult",
    "AsyncioScheduler",
    "ConnectionStatus",
    "EtaResult",
    "FeedError",
    "FleetTrackConfigError",
    "FleetTrackError",
    "FleetTracker",
    "GridConfig",
    "GridLayout",
    "HistoricalRoutePoint",
    "HistoricalRouteStats",
    "Milestone",
    "MilestoneTrackingStatus",
    "MilestoneType",
    "MovementStatus",
    "OrderProgress",
    "Panel",
    "PanelGrid",
    "PanelPosition",
    "PanelRequest",
    "PlaybackController",
    "PlaybackMode",
    "PlaybackState",
    "PriorityLevel",
    "PriorityThresholds",
    "RetransmissionFilter",
    "RetransmissionRecord",
    "RetransmissionStats",
    "RouteEvent",
    "RouteEventType",
    "Scheduler",
    "SubscriptionRegistry",
    "TelemetrySample",
    "TelemetryValidationError",
    "TrackedVehicle",
    "TrackingConfig",
    "VehicleInfo",
    "__version__",
    "bearing_deg",
    "build_retransmission_record",
    "build_route_points",
    "classify_connection",
    "classify_movement",
    "classify_priority",
    "classify_sample",
    "compute_route_stats",
    "estimate_eta",
    "filter_records",
    "haversine_km",
    "next_pending_milestone",
    "order_progress",
    "parse_milestones",
    "parse_route_points",
    "parse_sample",
    "path_length_km",
    "reclassify",
    "retransmission_rows",
    "retransmission_stats",
    "route_rows",
    "sort_by_priority",
]
