"""Multi-window grid models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import Field

from fleettrack.models._base import FleetBaseModel


class GridLayout(StrEnum):
    GRID_2X2 = "2x2"
    GRID_3X3 = "3x3"
    GRID_4X4 = "4x4"
    GRID_5X4 = "5x4"
    AUTO = "auto"


#: ``(columns, rows)`` for every fixed layout.
GRID_DIMENSIONS: dict[GridLayout, tuple[int, int]] = {
    GridLayout.GRID_2X2: (2, 2),
    GridLayout.GRID_3X3: (3, 3),
    GridLayout.GRID_4X4: (4, 4),
    GridLayout.GRID_5X4: (5, 4),
}


class GridConfig(FleetBaseModel):
    columns: int = Field(ge=1)
    rows: int = Field(ge=1)
    layout: GridLayout
    """Effective layout; ``auto`` is resolved to a fixed one."""
    max_panels: int = Field(ge=1)
    manual: bool = False
    """Whether the layout was picked explicitly rather than from panel count."""


class PanelPosition(FleetBaseModel):
    row: int = Field(ge=0)
    col: int = Field(ge=0)


class PanelRequest(FleetBaseModel):
    """A vehicle a caller wants to pin to the grid."""

    vehicle_id: str
    vehicle_plate: str = ""


class Panel(FleetBaseModel):
    """One grid slot, bound to exactly one vehicle."""

    panel_id: str
    vehicle_id: str
    vehicle_plate: str
    position: PanelPosition
    added_at: datetime


class AddPanelsResult(FleetBaseModel):
    """Outcome of :meth:`fleettrack.panels.PanelGrid.add_panels`.

    ``rejected`` lists the requests that did not fit in the remaining
    capacity; ``duplicates`` those whose vehicle already had a panel.
    """

    added: list[Panel] = Field(default_factory=list)
    rejected: list[PanelRequest] = Field(default_factory=list)
    duplicates: list[PanelRequest] = Field(default_factory=list)

    @property
    def overflow(self) -> bool:
        return bool(self.rejected)
