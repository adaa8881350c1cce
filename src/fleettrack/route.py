"""Historical route analysis and export rows.

Exporters (CSV, JSON, GPX, printable reports) live outside this package;
they consume the flat row dicts produced here.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from typing import Any

from fleettrack._constants import round_half_up
from fleettrack.geo import haversine_km
from fleettrack.models.retransmission import RetransmissionRecord
from fleettrack.models.route import HistoricalRoutePoint, HistoricalRouteStats, RouteEvent, RouteEventType
from fleettrack.models.telemetry import TelemetrySample


def compute_route_stats(points: Sequence[HistoricalRoutePoint]) -> HistoricalRouteStats:
    """Summary statistics of a recorded route.

    Speeds are taken over moving points only. Total distance is the last
    point's ``distance_from_start``; stopped time is the sum of
    ``stop_duration`` and moving time is the remainder of the route's span.
    Distance is rounded to 10 m, speeds and durations to whole units.
    """
    if not points:
        return HistoricalRouteStats()

    start, end = points[0], points[-1]
    speeds = [point.speed for point in points if not point.is_stopped]
    max_speed = max(speeds, default=0.0)
    avg_speed = sum(speeds) / len(speeds) if speeds else 0.0

    total_seconds = (end.timestamp - start.timestamp).total_seconds()
    stopped_seconds = sum(point.stop_duration or 0.0 for point in points if point.is_stopped)
    moving_seconds = max(0.0, total_seconds - stopped_seconds)

    stops = 0
    previous_stopped = False
    for point in points:
        if point.is_stopped and not previous_stopped:
            stops += 1
        previous_stopped = point.is_stopped

    return HistoricalRouteStats(
        total_distance_km=round(end.distance_from_start, 2),
        max_speed_kmh=float(round_half_up(max_speed)),
        avg_speed_kmh=float(round_half_up(avg_speed)),
        moving_time_seconds=float(round_half_up(moving_seconds)),
        stopped_time_seconds=float(round_half_up(stopped_seconds)),
        total_time_seconds=float(round_half_up(total_seconds)),
        total_points=len(points),
        total_stops=stops,
        start_point=(start.latitude, start.longitude),
        end_point=(end.latitude, end.longitude),
    )


def build_route_points(
    samples: Iterable[TelemetrySample],
    *,
    stop_speed_kmh: float = 0.0,
) -> list[HistoricalRoutePoint]:
    """Index an ordered telemetry sequence into route points.

    A point is stopped when its speed is at or below *stop_speed_kmh*. Each
    stopped point carries the seconds until the next point as its
    ``stop_duration``, so summing them gives the total time stopped. The
    first point of a stop gets a ``stop_start`` event and the point that
    resumes moving a ``stop_end`` event.
    """
    ordered = list(samples)
    points: list[HistoricalRoutePoint] = []
    distance = 0.0
    previous: TelemetrySample | None = None
    previous_stopped = False
    for index, sample in enumerate(ordered):
        if previous is not None:
            distance += haversine_km(previous.latitude, previous.longitude, sample.latitude, sample.longitude)
        is_stopped = sample.speed <= stop_speed_kmh

        stop_duration: float | None = None
        if is_stopped:
            following = ordered[index + 1] if index + 1 < len(ordered) else None
            stop_duration = (
                max(0.0, (following.timestamp - sample.timestamp).total_seconds()) if following is not None else 0.0
            )

        event: RouteEvent | None = None
        if is_stopped and not previous_stopped:
            event = RouteEvent(type=RouteEventType.STOP_START, description="Vehicle stopped")
        elif previous_stopped and not is_stopped:
            event = RouteEvent(type=RouteEventType.STOP_END, description="Vehicle resumed")

        points.append(
            HistoricalRoutePoint(
                index=index,
                latitude=sample.latitude,
                longitude=sample.longitude,
                speed=sample.speed,
                heading=sample.heading,
                timestamp=sample.timestamp,
                distance_from_start=distance,
                is_stopped=is_stopped,
                stop_duration=stop_duration,
                event=event,
                altitude=sample.altitude,
            )
        )
        previous = sample
        previous_stopped = is_stopped
    return points


def route_rows(points: Iterable[HistoricalRoutePoint]) -> Iterator[dict[str, Any]]:
    """Flat rows for route exporters, one per point."""
    for point in points:
        yield {
            "index": point.index,
            "timestamp": point.timestamp.isoformat(),
            "latitude": point.latitude,
            "longitude": point.longitude,
            "speed_kmh": point.speed,
            "heading": point.heading,
            "distance_km": round(point.distance_from_start, 3),
            "is_stopped": point.is_stopped,
            "stop_duration_seconds": point.stop_duration,
            "event": point.event.type.value if point.event is not None else None,
            "altitude": point.altitude,
        }


def retransmission_rows(records: Iterable[RetransmissionRecord]) -> Iterator[dict[str, Any]]:
    """Flat rows for retransmission report exporters."""
    for record in records:
        yield {
            "vehicle_id": record.vehicle_id,
            "plate": record.plate,
            "company": record.company or "",
            "last_connection": record.last_connection.isoformat(),
            "movement_status": record.movement_status.value,
            "connection_status": record.connection_status.value,
            "disconnected_seconds": round_half_up(record.disconnected_duration),
            "priority": record.priority.value,
            "has_active_order": record.has_active_order,
            "comment": record.comment or "",
        }
