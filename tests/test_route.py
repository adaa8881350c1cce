from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from fleettrack.models.retransmission import RetransmissionRecord
from fleettrack.models.route import HistoricalRoutePoint, RouteEventType
from fleettrack.models.telemetry import ConnectionStatus, MovementStatus, TelemetrySample
from fleettrack.route import build_route_points, compute_route_stats, retransmission_rows, route_rows

START = datetime(2026, 1, 1, 8, 0, tzinfo=UTC)


def _samples(speeds: list[float], step_seconds: int = 60) -> list[TelemetrySample]:
    return [
        TelemetrySample(
            vehicle_id="V1",
            latitude=0.0,
            longitude=0.01 * i,
            speed=speed,
            timestamp=START + timedelta(seconds=step_seconds * i),
        )
        for i, speed in enumerate(speeds)
    ]


class TestBuildRoutePoints:
    def test_indexes_and_cumulative_distance(self) -> None:
        points = build_route_points(_samples([30, 30, 30]))

        assert [p.index for p in points] == [0, 1, 2]
        assert points[0].distance_from_start == 0.0
        # 0.01 degree of longitude on the equator is about 1.112 km.
        assert points[1].distance_from_start == pytest.approx(1.112, abs=0.001)
        assert points[2].distance_from_start == pytest.approx(2.224, abs=0.001)

    def test_stops_get_duration_and_events(self) -> None:
        points = build_route_points(_samples([30, 0, 0, 25]))

        assert [p.is_stopped for p in points] == [False, True, True, False]
        assert [p.stop_duration for p in points] == [None, 60.0, 60.0, None]
        assert points[1].event is not None
        assert points[1].event.type == RouteEventType.STOP_START
        assert points[2].event is None
        assert points[3].event is not None
        assert points[3].event.type == RouteEventType.STOP_END

    def test_stop_threshold(self) -> None:
        points = build_route_points(_samples([3, 10]), stop_speed_kmh=5.0)
        assert [p.is_stopped for p in points] == [True, False]

    def test_empty(self) -> None:
        assert build_route_points([]) == []


class TestRouteStats:
    def test_empty_route(self) -> None:
        stats = compute_route_stats([])
        assert stats.total_points == 0
        assert stats.start_point is None

    def test_summary(self) -> None:
        points = build_route_points(_samples([30, 0, 0, 50, 0, 40]))
        stats = compute_route_stats(points)

        assert stats.total_points == 6
        assert stats.total_stops == 2
        assert stats.total_distance_km == pytest.approx(5.56, abs=0.01)
        assert stats.max_speed_kmh == 50.0
        assert stats.avg_speed_kmh == 40.0
        assert stats.total_time_seconds == 300.0
        assert stats.stopped_time_seconds == 180.0
        assert stats.moving_time_seconds == 120.0
        assert stats.start_point == (0.0, 0.0)
        assert stats.end_point == pytest.approx((0.0, 0.05))

    def test_all_stopped(self) -> None:
        stats = compute_route_stats(build_route_points(_samples([0, 0])))
        assert stats.max_speed_kmh == 0.0
        assert stats.avg_speed_kmh == 0.0
        assert stats.total_stops == 1

    def test_speeds_round_half_up(self) -> None:
        stats = compute_route_stats(build_route_points(_samples([30, 45, 0])))
        assert stats.avg_speed_kmh == 38.0

    def test_uses_recorded_distance(self) -> None:
        points = [
            HistoricalRoutePoint(index=0, latitude=0, longitude=0, timestamp=START),
            HistoricalRoutePoint(
                index=1,
                latitude=0,
                longitude=0,
                timestamp=START + timedelta(minutes=1),
                distance_from_start=12.3456,
            ),
        ]
        assert compute_route_stats(points).total_distance_km == 12.35


def test_route_rows() -> None:
    rows = list(route_rows(build_route_points(_samples([30, 0]))))

    assert len(rows) == 2
    assert rows[0]["timestamp"] == "2026-01-01T08:00:00+00:00"
    assert rows[0]["event"] is None
    assert rows[1]["event"] == "stop_start"
    assert rows[1]["is_stopped"] is True
    assert rows[1]["stop_duration_seconds"] == 0.0
    assert rows[1]["distance_km"] == pytest.approx(1.112, abs=0.001)


def test_retransmission_rows() -> None:
    record = RetransmissionRecord(
        vehicle_id="V1",
        plate="ABC-123",
        last_connection=START,
        disconnected_duration=1234.4,
        connection_status=ConnectionStatus.DISCONNECTED,
        movement_status=MovementStatus.STOPPED,
    )

    (row,) = retransmission_rows([record])

    assert row["plate"] == "ABC-123"
    assert row["company"] == ""
    assert row["disconnected_seconds"] == 1234
    assert row["priority"] == "medium"
    assert row["connection_status"] == "disconnected"
    assert row["comment"] == ""
