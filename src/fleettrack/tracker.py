"""High-level async facade wiring the tracking core together."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from fleettrack._mqtt import MqttFeedSettings, TelemetryMqttRuntime
from fleettrack.config import TrackingConfig
from fleettrack.eta import estimate_eta
from fleettrack.exceptions import FeedError, TelemetryValidationError
from fleettrack.ingestion.telemetry import parse_sample
from fleettrack.models.milestone import EtaResult, Milestone
from fleettrack.models.retransmission import RetransmissionRecord, RetransmissionStats
from fleettrack.models.route import HistoricalRoutePoint
from fleettrack.models.telemetry import TelemetrySample, TrackedVehicle
from fleettrack.panels import DEFAULT_VIEW_ID, PanelGrid
from fleettrack.playback import PlaybackController, Scheduler
from fleettrack.priority import retransmission_stats
from fleettrack.registry import SubscriptionRegistry, ViewListener

_logger = logging.getLogger(__name__)

DEFAULT_MAINTENANCE_INTERVAL = 30.0


def _utcnow() -> datetime:
    return datetime.now(UTC)


class FleetTracker:
    """Live tracking service.

    Usage::

        async with FleetTracker(TrackingConfig.from_env()) as tracker:
            tracker.registry.open_view("map", on_update)
            tracker.registry.subscribe("map", ["truck-7"])
            tracker.ingest({"vehicleId": "truck-7", "lat": 4.6, "lng": -74.1, ...})

    Entering the context starts the MQTT feed (when enabled) and a
    periodic task that reclassifies silent vehicles and evicts stale ones.
    """

    def __init__(
        self,
        config: TrackingConfig | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
        maintenance_interval: float | None = DEFAULT_MAINTENANCE_INTERVAL,
        on_sample: Callable[[TrackedVehicle], None] | None = None,
    ) -> None:
        self._config = config or TrackingConfig.from_env()
        self._clock = clock
        self._maintenance_interval = maintenance_interval
        self._on_sample_cb = on_sample
        self._registry = SubscriptionRegistry(self._config, clock=clock)
        self._loop: asyncio.AbstractEventLoop | None = None
        self._mqtt_runtime: TelemetryMqttRuntime | None = None
        self._maintenance_task: asyncio.Task[None] | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FleetTracker:
        self._loop = asyncio.get_running_loop()
        self._start_mqtt()
        if self._maintenance_interval is not None and self._maintenance_interval > 0:
            self._maintenance_task = self._loop.create_task(self._maintenance_loop())
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self._stop_mqtt()
        task = self._maintenance_task
        self._maintenance_task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._loop = None

    @property
    def config(self) -> TrackingConfig:
        return self._config

    @property
    def registry(self) -> SubscriptionRegistry:
        return self._registry

    @property
    def feed_running(self) -> bool:
        return self._mqtt_runtime is not None and self._mqtt_runtime.is_running

    # ------------------------------------------------------------------
    # MQTT feed
    # ------------------------------------------------------------------

    def _start_mqtt(self) -> None:
        """Best-effort MQTT startup; failures are logged and tracking continues without the feed."""
        if not self._config.mqtt_enabled or self._loop is None:
            return
        runtime = TelemetryMqttRuntime(loop=self._loop, on_sample=self.on_sample, logger=_logger)
        try:
            runtime.start(MqttFeedSettings.from_config(self._config))
        except FeedError as exc:
            _logger.warning("MQTT feed unavailable host=%s port=%s: %s", exc.host, exc.port, exc)
            return
        self._mqtt_runtime = runtime

    def _stop_mqtt(self) -> None:
        runtime = self._mqtt_runtime
        self._mqtt_runtime = None
        if runtime is not None:
            runtime.stop()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def on_sample(self, sample: TelemetrySample) -> TrackedVehicle | None:
        """Feed one validated sample into the registry."""
        vehicle = self._registry.on_sample(sample)
        if vehicle is not None and self._on_sample_cb is not None:
            try:
                self._on_sample_cb(vehicle)
            except Exception:
                _logger.debug("on_sample callback failed", exc_info=True)
        return vehicle

    def ingest(self, payload: Any) -> TrackedVehicle | None:
        """Validate a raw feed payload and feed it into the registry.

        Raises :class:`TelemetryValidationError` for invalid payloads.
        """
        return self.on_sample(parse_sample(payload))

    def ingest_many(self, payloads: Iterable[Any]) -> list[TelemetryValidationError]:
        """Ingest a batch, collecting validation errors instead of raising."""
        errors: list[TelemetryValidationError] = []
        for payload in payloads:
            try:
                self.ingest(payload)
            except TelemetryValidationError as exc:
                errors.append(exc)
        if errors:
            _logger.warning("Rejected %d telemetry payloads in batch", len(errors))
        return errors

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def maintain(self, now: datetime | None = None) -> tuple[list[TrackedVehicle], list[str]]:
        """Reclassify silent vehicles and evict stale ones.

        Returns the vehicles whose connection status changed and the
        evicted vehicle IDs.
        """
        now = now or self._clock()
        changed = self._registry.refresh(now)
        evicted = self._registry.evict_stale(now)
        return changed, evicted

    async def _maintenance_loop(self) -> None:
        assert self._maintenance_interval is not None  # noqa: S101
        while True:
            await asyncio.sleep(self._maintenance_interval)
            try:
                self.maintain()
            except Exception:
                _logger.debug("Tracker maintenance failed", exc_info=True)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def panel_grid(
        self,
        *,
        view_id: str = DEFAULT_VIEW_ID,
        listener: ViewListener | None = None,
        max_panels: int | None = None,
    ) -> PanelGrid:
        """Multi-window grid backed by this tracker's registry."""
        return PanelGrid(
            self._registry,
            view_id=view_id,
            listener=listener,
            max_panels=max_panels,
            clock=self._clock,
        )

    def playback(
        self,
        points: Sequence[HistoricalRoutePoint] | None = None,
        *,
        scheduler: Scheduler | None = None,
        speed: int = 1,
    ) -> PlaybackController:
        """Playback controller using the configured base tick interval."""
        return PlaybackController(
            points,
            scheduler=scheduler,
            base_interval=self._config.playback_base_interval,
            speed=speed,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def eta(
        self,
        vehicle_id: str,
        milestones: Iterable[Milestone],
        *,
        now: datetime | None = None,
    ) -> EtaResult | None:
        """ETA of a tracked vehicle; ``None`` when not tracked or nothing is pending."""
        vehicle = self._registry.get(vehicle_id)
        if vehicle is None:
            return None
        return estimate_eta(
            vehicle,
            milestones,
            now=now or self._clock(),
            fallback_speed_kmh=self._config.fallback_speed_kmh,
            delay_tolerance_minutes=self._config.delay_tolerance_minutes,
        )

    def disconnected(self, now: datetime | None = None) -> list[RetransmissionRecord]:
        return self._registry.disconnected(now)

    def retransmission_stats(self, now: datetime | None = None) -> RetransmissionStats:
        """Connection-status breakdown over every tracked vehicle."""
        return retransmission_stats(self._registry.records(now))
