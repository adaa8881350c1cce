"""Multi-window panel grid on top of a registry view.

A :class:`PanelGrid` owns one registry view. Each panel pins one vehicle
and keeps that vehicle in the view's want-set; removing the panel drops
it from this view only, so other views keep receiving it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from fleettrack.models.panel import (
    GRID_DIMENSIONS,
    AddPanelsResult,
    GridConfig,
    GridLayout,
    Panel,
    PanelPosition,
    PanelRequest,
)
from fleettrack.models.telemetry import TrackedVehicle
from fleettrack.registry import SubscriptionRegistry, ViewListener

_logger = logging.getLogger(__name__)

DEFAULT_VIEW_ID = "multi-window"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def auto_layout(panel_count: int) -> GridLayout:
    """Smallest fixed layout that fits *panel_count* panels."""
    if panel_count <= 4:
        return GridLayout.GRID_2X2
    if panel_count <= 9:
        return GridLayout.GRID_3X3
    if panel_count <= 16:
        return GridLayout.GRID_4X4
    return GridLayout.GRID_5X4


def panel_position(index: int, columns: int) -> PanelPosition:
    return PanelPosition(row=index // columns, col=index % columns)


def _as_request(item: PanelRequest | str) -> PanelRequest:
    if isinstance(item, PanelRequest):
        return item
    return PanelRequest(vehicle_id=item)


class PanelGrid:
    """Capacity-bounded, ordered list of vehicle panels.

    Parameters
    ----------
    registry : SubscriptionRegistry
        Registry whose view this grid drives.
    view_id : str
        ID of the registry view owned by the grid.
    max_panels : int or None
        Capacity; defaults to the registry's configured ``max_panels``.
    listener : callable or None
        Receives :class:`TrackedVehicle` updates for paneled vehicles.
    clock : callable
        Source of ``added_at`` timestamps.
    """

    def __init__(
        self,
        registry: SubscriptionRegistry,
        *,
        view_id: str = DEFAULT_VIEW_ID,
        max_panels: int | None = None,
        listener: ViewListener | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        max_panels = registry.config.max_panels if max_panels is None else max_panels
        if max_panels < 1:
            raise ValueError("max_panels must be >= 1")
        self._registry = registry
        self._view_id = view_id
        self._max_panels = max_panels
        self._clock = clock
        self._lock = threading.Lock()
        self._panels: list[Panel] = []
        self._manual_layout: GridLayout | None = None
        self._sequence = 0
        registry.open_view(view_id, listener)

    @property
    def view_id(self) -> str:
        return self._view_id

    @property
    def max_panels(self) -> int:
        return self._max_panels

    @property
    def panels(self) -> list[Panel]:
        with self._lock:
            return list(self._panels)

    @property
    def panel_count(self) -> int:
        with self._lock:
            return len(self._panels)

    @property
    def capacity(self) -> int:
        """Number of panels that can still be added."""
        with self._lock:
            return self._max_panels - len(self._panels)

    @property
    def is_at_limit(self) -> bool:
        return self.capacity <= 0

    @property
    def grid_config(self) -> GridConfig:
        with self._lock:
            return self._grid_config()

    def _grid_config(self) -> GridConfig:
        layout = self._manual_layout or auto_layout(len(self._panels))
        columns, rows = GRID_DIMENSIONS[layout]
        return GridConfig(
            columns=columns,
            rows=rows,
            layout=layout,
            max_panels=self._max_panels,
            manual=self._manual_layout is not None,
        )

    def _relayout(self) -> None:
        # Caller holds the lock.
        columns = self._grid_config().columns
        self._panels = [
            panel.model_copy(update={"position": panel_position(index, columns)})
            for index, panel in enumerate(self._panels)
        ]

    def has_panel(self, vehicle_id: str) -> bool:
        with self._lock:
            return any(panel.vehicle_id == vehicle_id for panel in self._panels)

    def add_panels(self, requests: Iterable[PanelRequest | str]) -> AddPanelsResult:
        """Add panels for as many vehicles as capacity allows.

        Vehicles that already have a panel (or appear twice in *requests*)
        are reported as duplicates and use no capacity. Requests beyond the
        remaining capacity are reported as rejected; the others are still
        added.
        """
        added: list[Panel] = []
        rejected: list[PanelRequest] = []
        duplicates: list[PanelRequest] = []
        with self._lock:
            paneled = {panel.vehicle_id for panel in self._panels}
            capacity = self._max_panels - len(self._panels)
            now = self._clock()
            for item in requests:
                request = _as_request(item)
                if request.vehicle_id in paneled:
                    duplicates.append(request)
                    continue
                if len(added) >= capacity:
                    rejected.append(request)
                    continue
                self._sequence += 1
                panel = Panel(
                    panel_id=f"panel-{int(now.timestamp() * 1000)}-{request.vehicle_id}-{self._sequence}",
                    vehicle_id=request.vehicle_id,
                    vehicle_plate=request.vehicle_plate or request.vehicle_id,
                    position=PanelPosition(row=0, col=0),
                    added_at=now,
                )
                paneled.add(request.vehicle_id)
                added.append(panel)
                self._panels.append(panel)
            self._relayout()
            positioned = {panel.panel_id: panel for panel in self._panels}
            added = [positioned[panel.panel_id] for panel in added]

        if added:
            self._registry.subscribe(self._view_id, [panel.vehicle_id for panel in added])
        if rejected:
            _logger.debug(
                "Panel capacity reached view=%s max=%d rejected=%d",
                self._view_id,
                self._max_panels,
                len(rejected),
            )
        return AddPanelsResult(added=added, rejected=rejected, duplicates=duplicates)

    def add_panel(self, vehicle_id: str, vehicle_plate: str = "") -> bool:
        """Add one panel; ``False`` when full or already paneled."""
        result = self.add_panels([PanelRequest(vehicle_id=vehicle_id, vehicle_plate=vehicle_plate)])
        return bool(result.added)

    def _remove_where(self, predicate: Callable[[Panel], bool]) -> list[Panel]:
        with self._lock:
            removed = [panel for panel in self._panels if predicate(panel)]
            if not removed:
                return []
            self._panels = [panel for panel in self._panels if not predicate(panel)]
            self._relayout()
        self._registry.unsubscribe(self._view_id, [panel.vehicle_id for panel in removed])
        return removed

    def remove_panel(self, panel_id: str) -> bool:
        """Remove a panel by ID; unknown IDs are a no-op returning ``False``."""
        return bool(self._remove_where(lambda panel: panel.panel_id == panel_id))

    def remove_panel_by_vehicle(self, vehicle_id: str) -> bool:
        return bool(self._remove_where(lambda panel: panel.vehicle_id == vehicle_id))

    def reorder_panels(self, start_index: int, end_index: int) -> bool:
        """Move the panel at *start_index* to *end_index*.

        Out-of-range indexes leave the grid untouched and return ``False``.
        """
        with self._lock:
            count = len(self._panels)
            if not (0 <= start_index < count and 0 <= end_index < count):
                return False
            panel = self._panels.pop(start_index)
            self._panels.insert(end_index, panel)
            self._relayout()
        return True

    def clear_all_panels(self) -> None:
        with self._lock:
            vehicle_ids = [panel.vehicle_id for panel in self._panels]
            self._panels = []
        if vehicle_ids:
            self._registry.unsubscribe(self._view_id, vehicle_ids)

    def set_layout(self, layout: GridLayout | str) -> GridConfig:
        """Pick a fixed layout, or ``auto`` to size the grid from the panel count."""
        layout = GridLayout(layout)
        with self._lock:
            self._manual_layout = None if layout == GridLayout.AUTO else layout
            self._relayout()
            return self._grid_config()

    def snapshot(self) -> dict[str, TrackedVehicle | None]:
        """Current panels paired with the latest state of their vehicles."""
        panels = self.panels
        return {panel.panel_id: self._registry.get(panel.vehicle_id) for panel in panels}

    def close(self) -> None:
        """Drop every panel and disconnect the grid's view."""
        with self._lock:
            self._panels = []
        self._registry.close_view(self._view_id)
