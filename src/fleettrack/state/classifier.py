"""Telemetry state classification.

Pure functions: given a sample, the previous tracked state and an explicit
``now``, produce the next :class:`TrackedVehicle`. No clock reads, no I/O.
Input is assumed valid; validation happens in :mod:`fleettrack.ingestion`.
"""

from __future__ import annotations

from datetime import datetime

from fleettrack.models.telemetry import (
    ConnectionStatus,
    MovementStatus,
    TelemetrySample,
    TrackedVehicle,
    VehicleInfo,
)


def sample_age_seconds(sample: TelemetrySample, now: datetime) -> float:
    """Seconds since *sample* was taken, clamped at zero for future timestamps."""
    return max(0.0, (now - sample.timestamp).total_seconds())


def classify_connection(
    age_seconds: float,
    *,
    temporary_loss_seconds: float,
    disconnected_seconds: float,
) -> ConnectionStatus:
    """Map a sample age to a connection status.

    ``online`` below the temporary-loss window, ``temporary_loss`` from it
    up to (excluding) the disconnected window, ``disconnected`` from there.
    """
    if age_seconds < temporary_loss_seconds:
        return ConnectionStatus.ONLINE
    if age_seconds < disconnected_seconds:
        return ConnectionStatus.TEMPORARY_LOSS
    return ConnectionStatus.DISCONNECTED


def classify_movement(speed: float) -> MovementStatus:
    return MovementStatus.MOVING if speed > 0 else MovementStatus.STOPPED


def _stopped_since(
    previous: TrackedVehicle,
    movement: MovementStatus,
    now: datetime,
) -> datetime | None:
    if movement == previous.movement_status:
        return previous.stopped_since
    if movement == MovementStatus.STOPPED:
        return now
    return None


def classify_sample(
    sample: TelemetrySample,
    previous: TrackedVehicle | None,
    *,
    now: datetime,
    temporary_loss_seconds: float,
    disconnected_seconds: float,
    info: VehicleInfo | None = None,
) -> TrackedVehicle:
    """Build the tracked state for *sample*.

    On the first sample for a vehicle no transition bookkeeping is applied
    and ``stopped_since`` stays unset. Afterwards, ``moving -> stopped``
    stamps ``stopped_since = now`` and ``stopped -> moving`` clears it.

    *info* overrides the plate/order metadata carried over from *previous*.
    """
    connection = classify_connection(
        sample_age_seconds(sample, now),
        temporary_loss_seconds=temporary_loss_seconds,
        disconnected_seconds=disconnected_seconds,
    )
    movement = classify_movement(sample.speed)

    if previous is None:
        return TrackedVehicle(
            vehicle_id=sample.vehicle_id,
            plate=(info.plate if info is not None and info.plate else sample.vehicle_id),
            sample=sample,
            connection_status=connection,
            movement_status=movement,
            stopped_since=None,
            active_order_id=info.active_order_id if info is not None else None,
            company_name=info.company_name if info is not None else None,
            driver_name=info.driver_name if info is not None else None,
        )

    update: dict[str, object] = {
        "sample": sample,
        "connection_status": connection,
        "movement_status": movement,
        "stopped_since": _stopped_since(previous, movement, now),
    }
    if info is not None:
        update.update(_info_patch(info))
    return previous.model_copy(update=update)


def reclassify(
    vehicle: TrackedVehicle,
    *,
    now: datetime,
    temporary_loss_seconds: float,
    disconnected_seconds: float,
) -> TrackedVehicle:
    """Recompute the connection status of *vehicle* as time passes without samples.

    Returns *vehicle* itself when nothing changed.
    """
    connection = classify_connection(
        sample_age_seconds(vehicle.sample, now),
        temporary_loss_seconds=temporary_loss_seconds,
        disconnected_seconds=disconnected_seconds,
    )
    if connection == vehicle.connection_status:
        return vehicle
    return vehicle.model_copy(update={"connection_status": connection})


def apply_info(vehicle: TrackedVehicle, info: VehicleInfo) -> TrackedVehicle:
    """Overlay metadata on an already tracked vehicle."""
    patch = _info_patch(info)
    if not patch:
        return vehicle
    return vehicle.model_copy(update=patch)


def merge_info(base: VehicleInfo | None, overlay: VehicleInfo) -> VehicleInfo:
    """Combine registered metadata, *overlay* winning for the fields it provides."""
    if base is None:
        return overlay
    return VehicleInfo.model_validate({**base.model_dump(), **_info_patch(overlay)})


def _info_patch(info: VehicleInfo) -> dict[str, object]:
    # Only explicitly provided metadata overwrites what is already known.
    patch: dict[str, object] = {}
    if info.plate:
        patch["plate"] = info.plate
    for field_name in ("active_order_id", "company_name", "driver_name"):
        if field_name in info.model_fields_set:
            patch[field_name] = getattr(info, field_name)
    return patch
