from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest

from fleettrack.exceptions import TelemetryValidationError
from fleettrack.ingestion.normalize import (
    normalize_heading,
    normalize_timestamp_seconds,
    parse_timestamp,
    safe_float,
    safe_str,
)
from fleettrack.ingestion.telemetry import (
    is_position_message,
    parse_milestones,
    parse_route_points,
    parse_sample,
)
from fleettrack.models.milestone import MilestoneTrackingStatus

NEW_YEAR = datetime(2026, 1, 1, tzinfo=UTC)
NEW_YEAR_EPOCH = 1767225600


class TestParseSample:
    def test_flat_payload(self) -> None:
        sample = parse_sample(
            {
                "vehicleId": " V1 ",
                "lat": "4.6",
                "lng": -74.1,
                "speed": 42.5,
                "heading": 370,
                "timestamp": "2026-01-01T00:00:00Z",
            }
        )

        assert sample.vehicle_id == "V1"
        assert sample.latitude == 4.6
        assert sample.longitude == -74.1
        assert sample.speed == 42.5
        assert sample.heading == 10.0
        assert sample.timestamp == NEW_YEAR

    def test_position_update_envelope(self) -> None:
        sample = parse_sample(
            {
                "type": "position_update",
                "vehicleId": "V2",
                "position": {
                    "latitude": 1.5,
                    "longitude": 2.5,
                    "speed": 0,
                    "heading": -90,
                    "timestamp": NEW_YEAR_EPOCH * 1000,
                },
                "timestamp": NEW_YEAR_EPOCH + 60,
            }
        )

        assert sample.vehicle_id == "V2"
        assert (sample.latitude, sample.longitude) == (1.5, 2.5)
        assert sample.heading == 270.0
        # The position timestamp wins over the envelope one.
        assert sample.timestamp == NEW_YEAR

    def test_epoch_seconds_timestamp(self) -> None:
        sample = parse_sample({"id": "V3", "lat": 0, "lng": 0, "timestamp": NEW_YEAR_EPOCH})
        assert sample.timestamp == NEW_YEAR
        assert sample.speed == 0.0

    def test_offset_timestamp_converted_to_utc(self) -> None:
        sample = parse_sample({"vehicleId": "V1", "lat": 0, "lng": 0, "timestamp": "2026-01-01T05:00:00+05:00"})
        assert sample.timestamp == NEW_YEAR
        assert sample.timestamp.tzinfo is not None

    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("lat", 91.0),
            ("lat", -90.5),
            ("lng", 181.0),
            ("speed", -1.0),
            ("timestamp", "not-a-date"),
            ("timestamp", None),
            ("timestamp", 1e300),
            ("timestamp", "1e300"),
            ("heading", float("nan")),
            ("heading", float("inf")),
            ("heading", "nan"),
            ("speed", float("inf")),
            ("vehicleId", "   "),
        ],
    )
    def test_invalid_fields_rejected(self, field: str, value: object) -> None:
        payload: dict[str, object] = {
            "vehicleId": "V1",
            "lat": 4.6,
            "lng": -74.1,
            "speed": 10,
            "timestamp": "2026-01-01T00:00:00Z",
        }
        payload[field] = value

        with pytest.raises(TelemetryValidationError) as excinfo:
            parse_sample(payload)

        assert excinfo.value.errors

    def test_missing_coordinates_rejected(self) -> None:
        with pytest.raises(TelemetryValidationError) as excinfo:
            parse_sample({"vehicleId": "V1", "timestamp": NEW_YEAR_EPOCH})
        assert excinfo.value.vehicle_id == "V1"
        assert len(excinfo.value.errors) == 2

    def test_non_object_rejected(self) -> None:
        with pytest.raises(TelemetryValidationError):
            parse_sample(["V1", 1, 2])


def test_is_position_message() -> None:
    assert is_position_message({"vehicleId": "V1"})
    assert is_position_message({"type": "position_update"})
    assert not is_position_message({"type": "alert"})
    assert not is_position_message("position_update")


class TestMilestones:
    def test_sorted_by_sequence(self) -> None:
        milestones = parse_milestones(
            [
                {"id": "b", "sequence": 2, "lat": 1, "lng": 1},
                {"id": "a", "sequence": 1, "lat": 0, "lng": 0, "trackingStatus": "completed"},
            ]
        )
        assert [m.id for m in milestones] == ["a", "b"]
        assert milestones[0].tracking_status == MilestoneTrackingStatus.COMPLETED
        assert milestones[1].is_open

    def test_duplicate_sequence_rejected(self) -> None:
        with pytest.raises(ValueError, match="duplicate"):
            parse_milestones(
                [
                    {"id": "a", "sequence": 1, "lat": 0, "lng": 0},
                    {"id": "b", "sequence": 1, "lat": 1, "lng": 1},
                ]
            )

    def test_estimated_arrival_parsed(self) -> None:
        (milestone,) = parse_milestones(
            [{"id": "a", "sequence": 0, "lat": 0, "lng": 0, "estimatedArrival": "2026-01-01T00:00:00Z"}]
        )
        assert milestone.estimated_arrival == NEW_YEAR


class TestRoutePoints:
    def _point(self, index: int) -> dict[str, object]:
        return {
            "index": index,
            "lat": 4.6,
            "lng": -74.1,
            "timestamp": (NEW_YEAR + timedelta(seconds=index)).isoformat(),
            "distanceFromStart": index * 0.1,
        }

    def test_contiguous_indexes(self) -> None:
        points = parse_route_points([self._point(0), self._point(1), self._point(2)])
        assert [p.index for p in points] == [0, 1, 2]
        assert points[2].distance_from_start == pytest.approx(0.2)

    def test_gap_rejected(self) -> None:
        with pytest.raises(ValueError, match="contiguous"):
            parse_route_points([self._point(0), self._point(2)])

    def test_must_start_at_zero(self) -> None:
        with pytest.raises(ValueError):
            parse_route_points([self._point(1)])


class TestNormalize:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [("1.5", 1.5), (2, 2.0), ("", None), ("--", None), (None, None), (True, None), ("abc", None), ("nan", None)],
    )
    def test_safe_float(self, value: object, expected: float | None) -> None:
        assert safe_float(value) == expected

    def test_safe_str(self) -> None:
        assert safe_str("  x ") == "x"
        assert safe_str("   ") is None
        assert safe_str(None) is None

    def test_normalize_timestamp_seconds(self) -> None:
        assert normalize_timestamp_seconds(NEW_YEAR_EPOCH * 1000) == NEW_YEAR_EPOCH
        assert normalize_timestamp_seconds(NEW_YEAR_EPOCH) == NEW_YEAR_EPOCH
        assert normalize_timestamp_seconds(0) is None
        assert normalize_timestamp_seconds(-5) is None

    def test_parse_timestamp(self) -> None:
        assert parse_timestamp(datetime(2026, 1, 1)) == NEW_YEAR
        assert parse_timestamp(datetime(2026, 1, 1, 1, tzinfo=timezone(timedelta(hours=1)))) == NEW_YEAR
        assert parse_timestamp(str(NEW_YEAR_EPOCH)) == NEW_YEAR
        assert parse_timestamp("") is None
        assert parse_timestamp("garbage") is None
        assert parse_timestamp(1e300) is None
        assert parse_timestamp("-1e300") is None

    @pytest.mark.parametrize(("value", "expected"), [(0, 0), (360, 0), (370, 10), (-90, 270), (359.5, 359.5)])
    def test_normalize_heading(self, value: float, expected: float) -> None:
        assert normalize_heading(value) == expected
