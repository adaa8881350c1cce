"""In-memory store of tracked vehicles.

The store merges classified samples per vehicle and keeps the bookkeeping
the registry needs for retention-window eviction. It does no locking of
its own; callers serialize access per vehicle ID.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict

from fleettrack.models.telemetry import TelemetrySample, TrackedVehicle, VehicleInfo
from fleettrack.state.classifier import apply_info, classify_sample, merge_info, reclassify

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class VehicleEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    vehicle: TrackedVehicle | None = None
    info: VehicleInfo | None = None
    received_at: datetime | None = None
    """Registry clock time at which the latest sample was stored."""
    unwanted_since: datetime | None = None
    """When the last view lost interest; ``None`` while wanted or never wanted."""


class VehicleStore:
    """Per-vehicle state keyed by vehicle ID.

    Samples older than the one already stored for a vehicle are dropped so
    that status always reflects the latest reading.
    """

    def __init__(
        self,
        *,
        temporary_loss_seconds: float,
        disconnected_seconds: float,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._temporary_loss_seconds = temporary_loss_seconds
        self._disconnected_seconds = disconnected_seconds
        self._clock = clock
        self._vehicles: dict[str, VehicleEntry] = {}

    def _vehicle(self, vehicle_id: str) -> VehicleEntry:
        entry = self._vehicles.get(vehicle_id)
        if entry is None:
            entry = VehicleEntry()
            self._vehicles[vehicle_id] = entry
        return entry

    def now(self) -> datetime:
        return self._clock()

    def apply(self, sample: TelemetrySample) -> TrackedVehicle | None:
        """Classify and store *sample*.

        Returns the updated vehicle, or ``None`` when the sample was older
        than the stored one and therefore ignored.
        """
        entry = self._vehicle(sample.vehicle_id)
        previous = entry.vehicle
        if previous is not None and sample.timestamp < previous.sample.timestamp:
            _logger.debug(
                "Dropping out-of-order sample vehicle=%s ts=%s stored_ts=%s",
                sample.vehicle_id,
                sample.timestamp.isoformat(),
                previous.sample.timestamp.isoformat(),
            )
            return None

        now = self._clock()
        vehicle = classify_sample(
            sample,
            previous,
            now=now,
            temporary_loss_seconds=self._temporary_loss_seconds,
            disconnected_seconds=self._disconnected_seconds,
            info=entry.info if previous is None else None,
        )
        entry.vehicle = vehicle
        entry.received_at = now
        return vehicle

    def get(self, vehicle_id: str) -> TrackedVehicle | None:
        entry = self._vehicles.get(vehicle_id)
        return entry.vehicle if entry is not None else None

    def set_info(self, vehicle_id: str, info: VehicleInfo) -> TrackedVehicle | None:
        """Attach metadata; returns the updated vehicle when one is tracked."""
        entry = self._vehicle(vehicle_id)
        entry.info = merge_info(entry.info, info)
        if entry.vehicle is None:
            return None
        entry.vehicle = apply_info(entry.vehicle, info)
        return entry.vehicle

    def refresh(self, vehicle_id: str, now: datetime) -> TrackedVehicle | None:
        """Reclassify a stored vehicle; returns it only if its connection status changed."""
        entry = self._vehicles.get(vehicle_id)
        if entry is None or entry.vehicle is None:
            return None
        updated = reclassify(
            entry.vehicle,
            now=now,
            temporary_loss_seconds=self._temporary_loss_seconds,
            disconnected_seconds=self._disconnected_seconds,
        )
        if updated is entry.vehicle:
            return None
        entry.vehicle = updated
        return updated

    def mark_wanted(self, vehicle_id: str) -> None:
        entry = self._vehicles.get(vehicle_id)
        if entry is not None:
            entry.unwanted_since = None

    def mark_unwanted(self, vehicle_id: str, now: datetime) -> None:
        entry = self._vehicles.get(vehicle_id)
        if entry is not None and entry.vehicle is not None:
            entry.unwanted_since = now

    def is_stale(self, vehicle_id: str, now: datetime, retention: timedelta) -> bool:
        """Whether an unwanted vehicle is past the retention window.

        Both the last sample arrival and the last loss of interest must be
        older than *retention*.
        """
        entry = self._vehicles.get(vehicle_id)
        if entry is None or entry.vehicle is None or entry.received_at is None:
            return False
        if now - entry.received_at < retention:
            return False
        return entry.unwanted_since is None or now - entry.unwanted_since >= retention

    def remove(self, vehicle_id: str) -> bool:
        """Forget the tracked state of a vehicle, keeping registered metadata."""
        entry = self._vehicles.get(vehicle_id)
        if entry is None or entry.vehicle is None:
            return False
        if entry.info is None:
            del self._vehicles[vehicle_id]
        else:
            entry.vehicle = None
            entry.received_at = None
            entry.unwanted_since = None
        return True

    def vehicle_ids(self) -> list[str]:
        """IDs of every vehicle with tracked state."""
        return [vehicle_id for vehicle_id, entry in list(self._vehicles.items()) if entry.vehicle is not None]

    def vehicles(self) -> list[TrackedVehicle]:
        return [entry.vehicle for entry in list(self._vehicles.values()) if entry.vehicle is not None]

    def __len__(self) -> int:
        return len(self.vehicle_ids())

    def __contains__(self, vehicle_id: object) -> bool:
        return isinstance(vehicle_id, str) and self.get(vehicle_id) is not None
