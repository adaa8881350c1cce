"""Live vehicle subscriptions shared by any number of views.

The registry owns the latest :class:`TrackedVehicle` for every vehicle it
has seen and the want-set of every open view. Each incoming sample is
classified once and fanned out to every view that wants its vehicle.

Locking
-------
A single view lock guards the want-sets, listeners and the global union.
Per-vehicle work (classification, storage, delivery) runs under one of
several sharded re-entrant locks picked from the vehicle ID. A shard lock
is always taken before the view lock, never the other way round.

Listeners run synchronously while the vehicle's shard lock is held, which
keeps deliveries for one vehicle in order. A listener may read the
registry (:meth:`SubscriptionRegistry.get`,
:meth:`SubscriptionRegistry.view_snapshot`) and may act on the vehicle it
was handed. It must not call a mutating method (``subscribe``,
``unsubscribe``, ``register_vehicle``, ``on_sample``) for other vehicles:
that takes a second shard lock and can deadlock against another thread
delivering in the opposite direction. Hand such work off to a queue or
an event loop instead.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from fleettrack.config import TrackingConfig
from fleettrack.models.retransmission import RetransmissionRecord
from fleettrack.models.telemetry import ConnectionStatus, TelemetrySample, TrackedVehicle, VehicleInfo
from fleettrack.priority import build_retransmission_record, sort_by_priority
from fleettrack.state.classifier import reclassify
from fleettrack.state.store import VehicleStore

_logger = logging.getLogger(__name__)

ViewListener = Callable[[TrackedVehicle], None]
"""Called with every update of a wanted vehicle, under that vehicle's lock."""

_DEFAULT_SHARDS = 16


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SubscriptionRegistry:
    """Owned registry of tracked vehicles and per-view interest.

    Parameters
    ----------
    config : TrackingConfig or None
        Classification thresholds and retention window.
    clock : callable
        Returns the current aware UTC time; injected for tests.
    shards : int
        Number of per-vehicle lock shards.
    """

    def __init__(
        self,
        config: TrackingConfig | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
        shards: int = _DEFAULT_SHARDS,
    ) -> None:
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._config = config or TrackingConfig()
        self._clock = clock
        self._store = VehicleStore(
            temporary_loss_seconds=self._config.temporary_loss_seconds,
            disconnected_seconds=self._config.disconnected_seconds,
            clock=clock,
        )
        self._retention = timedelta(seconds=self._config.retention_seconds)
        self._view_lock = threading.Lock()
        self._shards = [threading.RLock() for _ in range(shards)]
        self._wants: dict[str, set[str]] = {}
        self._listeners: dict[str, ViewListener | None] = {}
        # vehicle_id -> views wanting it; the keys are the global union.
        self._interest: dict[str, set[str]] = {}

    @property
    def config(self) -> TrackingConfig:
        return self._config

    def _shard(self, vehicle_id: str) -> threading.RLock:
        return self._shards[hash(vehicle_id) % len(self._shards)]

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def open_view(self, view_id: str, listener: ViewListener | None = None) -> None:
        """Register a view, or replace the listener of an existing one."""
        with self._view_lock:
            self._wants.setdefault(view_id, set())
            self._listeners[view_id] = listener
        _logger.debug("View opened view=%s", view_id)

    def close_view(self, view_id: str) -> None:
        """Disconnect a view and drop all of its wants.

        Vehicles no longer wanted by any view are kept for the retention
        window before :meth:`evict_stale` may remove them.
        """
        with self._view_lock:
            wants = self._wants.pop(view_id, None)
            self._listeners.pop(view_id, None)
            released = self._release(view_id, wants or set())
        if wants is None:
            return
        self._mark_unwanted(released)
        _logger.debug("View closed view=%s released=%d", view_id, len(released))

    def subscribe(self, view_id: str, vehicle_ids: Iterable[str]) -> dict[str, TrackedVehicle | None]:
        """Mark interest of *view_id* in *vehicle_ids*.

        Unknown views are opened without a listener. Unknown vehicle IDs are
        accepted; they show up once their first sample arrives.

        Returns
        -------
        dict
            Current state of every requested vehicle, ``None`` for those
            not yet available.
        """
        requested = list(dict.fromkeys(vehicle_ids))
        with self._view_lock:
            wants = self._wants.setdefault(view_id, set())
            self._listeners.setdefault(view_id, None)
            for vehicle_id in requested:
                wants.add(vehicle_id)
                self._interest.setdefault(vehicle_id, set()).add(view_id)
        for vehicle_id in requested:
            with self._shard(vehicle_id):
                self._store.mark_wanted(vehicle_id)
        return {vehicle_id: self._store.get(vehicle_id) for vehicle_id in requested}

    def unsubscribe(self, view_id: str, vehicle_ids: Iterable[str]) -> None:
        """Drop interest of *view_id*; absent wants are ignored."""
        with self._view_lock:
            wants = self._wants.get(view_id)
            if wants is None:
                return
            dropped = {vehicle_id for vehicle_id in vehicle_ids if vehicle_id in wants}
            wants -= dropped
            released = self._release(view_id, dropped)
        self._mark_unwanted(released)

    def _release(self, view_id: str, vehicle_ids: Iterable[str]) -> list[str]:
        # Caller holds the view lock.
        released: list[str] = []
        for vehicle_id in vehicle_ids:
            views = self._interest.get(vehicle_id)
            if views is None:
                continue
            views.discard(view_id)
            if not views:
                del self._interest[vehicle_id]
                released.append(vehicle_id)
        return released

    def _mark_unwanted(self, vehicle_ids: Iterable[str]) -> None:
        now = self._clock()
        for vehicle_id in vehicle_ids:
            with self._shard(vehicle_id):
                if not self.is_wanted(vehicle_id):
                    self._store.mark_unwanted(vehicle_id, now)

    def is_wanted(self, vehicle_id: str) -> bool:
        with self._view_lock:
            return vehicle_id in self._interest

    def wanted_ids(self) -> frozenset[str]:
        """Global union of every view's want-set."""
        with self._view_lock:
            return frozenset(self._interest)

    def view_ids(self) -> list[str]:
        with self._view_lock:
            return list(self._wants)

    def view_wants(self, view_id: str) -> frozenset[str]:
        with self._view_lock:
            return frozenset(self._wants.get(view_id, ()))

    def _targets(self, vehicle_id: str) -> list[tuple[str, ViewListener]]:
        with self._view_lock:
            views = self._interest.get(vehicle_id, ())
            targets: list[tuple[str, ViewListener]] = []
            for view_id in sorted(views):
                listener = self._listeners.get(view_id)
                if listener is not None:
                    targets.append((view_id, listener))
            return targets

    def _deliver(self, vehicle: TrackedVehicle) -> None:
        for view_id, listener in self._targets(vehicle.vehicle_id):
            try:
                listener(vehicle)
            except Exception:
                _logger.debug("View listener failed view=%s vehicle=%s", view_id, vehicle.vehicle_id, exc_info=True)

    # ------------------------------------------------------------------
    # Samples
    # ------------------------------------------------------------------

    def on_sample(self, sample: TelemetrySample) -> TrackedVehicle | None:
        """Classify, store and fan out one sample.

        Samples for unwanted vehicles are still stored so a later subscribe
        sees current state. Returns the updated vehicle, or ``None`` when
        the sample was older than the stored one.
        """
        with self._shard(sample.vehicle_id):
            vehicle = self._store.apply(sample)
            if vehicle is None:
                return None
            self._deliver(vehicle)
            return vehicle

    def register_vehicle(self, vehicle_id: str, info: VehicleInfo) -> TrackedVehicle | None:
        """Attach plate/order metadata to a vehicle ID.

        Interested views are notified when the vehicle is already tracked.
        """
        with self._shard(vehicle_id):
            vehicle = self._store.set_info(vehicle_id, info)
            if vehicle is not None:
                self._deliver(vehicle)
            return vehicle

    def refresh(self, now: datetime | None = None) -> list[TrackedVehicle]:
        """Reclassify every vehicle against the clock.

        Views are notified of vehicles whose connection status changed;
        those vehicles are returned.
        """
        now = now or self._clock()
        changed: list[TrackedVehicle] = []
        for vehicle_id in self._store.vehicle_ids():
            with self._shard(vehicle_id):
                vehicle = self._store.refresh(vehicle_id, now)
                if vehicle is None:
                    continue
                changed.append(vehicle)
                self._deliver(vehicle)
        if changed:
            _logger.debug("Refresh changed connection status of %d vehicles", len(changed))
        return changed

    def evict_stale(self, now: datetime | None = None) -> list[str]:
        """Remove unwanted vehicles idle for longer than the retention window.

        Returns the evicted vehicle IDs.
        """
        now = now or self._clock()
        evicted: list[str] = []
        for vehicle_id in self._store.vehicle_ids():
            with self._shard(vehicle_id):
                if self.is_wanted(vehicle_id):
                    continue
                if self._store.is_stale(vehicle_id, now, self._retention) and self._store.remove(vehicle_id):
                    evicted.append(vehicle_id)
        if evicted:
            _logger.debug("Evicted %d stale vehicles", len(evicted))
        return evicted

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, vehicle_id: str) -> TrackedVehicle | None:
        """Latest state of *vehicle_id*, ``None`` while not yet available."""
        return self._store.get(vehicle_id)

    def view_snapshot(self, view_id: str) -> dict[str, TrackedVehicle | None]:
        """State of every vehicle *view_id* wants, ``None`` for placeholders."""
        return {vehicle_id: self._store.get(vehicle_id) for vehicle_id in sorted(self.view_wants(view_id))}

    def vehicles(self) -> list[TrackedVehicle]:
        return self._store.vehicles()

    def records(self, now: datetime | None = None) -> list[RetransmissionRecord]:
        """Retransmission records for every tracked vehicle, classified at *now*."""
        now = now or self._clock()
        records: list[RetransmissionRecord] = []
        for vehicle in self._store.vehicles():
            current = reclassify(
                vehicle,
                now=now,
                temporary_loss_seconds=self._config.temporary_loss_seconds,
                disconnected_seconds=self._config.disconnected_seconds,
            )
            records.append(build_retransmission_record(current, now=now, thresholds=self._config.priority))
        return records

    def disconnected(self, now: datetime | None = None) -> list[RetransmissionRecord]:
        """Records for every vehicle that is not ``online``, most urgent first."""
        return sort_by_priority(
            record for record in self.records(now) if record.connection_status != ConnectionStatus.ONLINE
        )

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, vehicle_id: object) -> bool:
        return vehicle_id in self._store
