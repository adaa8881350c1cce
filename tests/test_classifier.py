from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from fleettrack.models.telemetry import (
    ConnectionStatus,
    MovementStatus,
    TelemetrySample,
    TrackedVehicle,
    VehicleInfo,
)
from fleettrack.state.classifier import (
    apply_info,
    classify_connection,
    classify_movement,
    classify_sample,
    reclassify,
    sample_age_seconds,
)

TEMP_LOSS = 120.0
DISCONNECTED = 300.0


def _dt() -> datetime:
    return datetime(2026, 1, 1, tzinfo=UTC)


def _sample(*, speed: float = 0.0, age: float = 0.0, vehicle_id: str = "V1") -> TelemetrySample:
    return TelemetrySample(
        vehicle_id=vehicle_id,
        latitude=4.6,
        longitude=-74.1,
        speed=speed,
        heading=90.0,
        timestamp=_dt() - timedelta(seconds=age),
    )


def _classify(sample: TelemetrySample, previous: TrackedVehicle | None = None, *, now: datetime | None = None):
    return classify_sample(
        sample,
        previous,
        now=now or _dt(),
        temporary_loss_seconds=TEMP_LOSS,
        disconnected_seconds=DISCONNECTED,
    )


@pytest.mark.parametrize(
    ("age", "expected"),
    [
        (0.0, ConnectionStatus.ONLINE),
        (119.999, ConnectionStatus.ONLINE),
        (120.0, ConnectionStatus.TEMPORARY_LOSS),
        (299.999, ConnectionStatus.TEMPORARY_LOSS),
        (300.0, ConnectionStatus.DISCONNECTED),
        (3600.0, ConnectionStatus.DISCONNECTED),
    ],
)
def test_classify_connection_boundaries(age: float, expected: ConnectionStatus) -> None:
    assert (
        classify_connection(age, temporary_loss_seconds=TEMP_LOSS, disconnected_seconds=DISCONNECTED) == expected
    )


def test_ten_minutes_without_update_is_disconnected() -> None:
    vehicle = _classify(_sample(age=600.0))
    assert vehicle.connection_status == ConnectionStatus.DISCONNECTED


def test_future_timestamp_clamps_age_to_zero() -> None:
    sample = _sample(age=-45.0)
    assert sample_age_seconds(sample, _dt()) == 0.0
    assert _classify(sample).connection_status == ConnectionStatus.ONLINE


def test_classify_movement() -> None:
    assert classify_movement(0.0) == MovementStatus.STOPPED
    assert classify_movement(0.1) == MovementStatus.MOVING


def test_first_sample_has_no_stopped_since() -> None:
    vehicle = _classify(_sample(speed=0.0))
    assert vehicle.movement_status == MovementStatus.STOPPED
    assert vehicle.stopped_since is None
    assert vehicle.plate == "V1"


def test_moving_to_stopped_sets_stopped_since() -> None:
    moving = _classify(_sample(speed=50.0))
    later = _dt() + timedelta(seconds=30)
    stopped = _classify(_sample(speed=0.0), moving, now=later)

    assert stopped.movement_status == MovementStatus.STOPPED
    assert stopped.stopped_since == later


def test_stopped_since_kept_while_still_stopped() -> None:
    moving = _classify(_sample(speed=50.0))
    first_stop = _dt() + timedelta(seconds=30)
    stopped = _classify(_sample(speed=0.0), moving, now=first_stop)
    still = _classify(_sample(speed=0.0), stopped, now=first_stop + timedelta(minutes=5))

    assert still.stopped_since == first_stop


def test_stopped_to_moving_clears_stopped_since() -> None:
    moving = _classify(_sample(speed=50.0))
    stopped = _classify(_sample(speed=0.0), moving, now=_dt() + timedelta(seconds=30))
    resumed = _classify(_sample(speed=12.0), stopped, now=_dt() + timedelta(seconds=60))

    assert resumed.movement_status == MovementStatus.MOVING
    assert resumed.stopped_since is None


def test_classify_does_not_mutate_previous() -> None:
    moving = _classify(_sample(speed=50.0))
    _classify(_sample(speed=0.0), moving)
    assert moving.movement_status == MovementStatus.MOVING


def test_first_sample_uses_registered_info() -> None:
    info = VehicleInfo(plate="ABC-123", active_order_id="ORD-1", company_name="Acme")
    vehicle = classify_sample(
        _sample(),
        None,
        now=_dt(),
        temporary_loss_seconds=TEMP_LOSS,
        disconnected_seconds=DISCONNECTED,
        info=info,
    )
    assert vehicle.plate == "ABC-123"
    assert vehicle.has_active_order
    assert vehicle.company_name == "Acme"


def test_reclassify_degrades_silent_vehicle() -> None:
    vehicle = _classify(_sample())
    assert vehicle.connection_status == ConnectionStatus.ONLINE

    same = reclassify(
        vehicle,
        now=_dt() + timedelta(seconds=60),
        temporary_loss_seconds=TEMP_LOSS,
        disconnected_seconds=DISCONNECTED,
    )
    assert same is vehicle

    lost = reclassify(
        vehicle,
        now=_dt() + timedelta(seconds=150),
        temporary_loss_seconds=TEMP_LOSS,
        disconnected_seconds=DISCONNECTED,
    )
    assert lost.connection_status == ConnectionStatus.TEMPORARY_LOSS
    assert lost.sample == vehicle.sample


def test_apply_info_only_overwrites_provided_fields() -> None:
    vehicle = classify_sample(
        _sample(),
        None,
        now=_dt(),
        temporary_loss_seconds=TEMP_LOSS,
        disconnected_seconds=DISCONNECTED,
        info=VehicleInfo(plate="ABC-123", company_name="Acme"),
    )
    updated = apply_info(vehicle, VehicleInfo(active_order_id="ORD-9"))

    assert updated.plate == "ABC-123"
    assert updated.company_name == "Acme"
    assert updated.active_order_id == "ORD-9"
