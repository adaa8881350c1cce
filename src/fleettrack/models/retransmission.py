"""Retransmission (connectivity follow-up) models."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import Field, ValidationInfo, field_validator, model_validator

from fleettrack._constants import MAX_COMMENT_LENGTH
from fleettrack.config import PriorityThresholds
from fleettrack.models._base import FleetBaseModel, UtcTimestamp
from fleettrack.models.telemetry import ConnectionStatus, MovementStatus


class PriorityLevel(StrEnum):
    """Operator urgency, in ascending severity.

    Members compare by severity rather than alphabetically, so
    ``PriorityLevel.CRITICAL > PriorityLevel.HIGH`` holds.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return list(type(self)).index(self)

    def __lt__(self, other: Any) -> bool:
        if isinstance(other, PriorityLevel):
            return self.rank < other.rank
        return NotImplemented

    def __le__(self, other: Any) -> bool:
        if isinstance(other, PriorityLevel):
            return self.rank <= other.rank
        return NotImplemented

    def __gt__(self, other: Any) -> bool:
        if isinstance(other, PriorityLevel):
            return self.rank > other.rank
        return NotImplemented

    def __ge__(self, other: Any) -> bool:
        if isinstance(other, PriorityLevel):
            return self.rank >= other.rank
        return NotImplemented

    @classmethod
    def for_silence(
        cls,
        duration_seconds: float,
        has_active_order: bool,
        thresholds: PriorityThresholds | None = None,
    ) -> PriorityLevel:
        """Urgency of a vehicle silent for *duration_seconds*.

        Rules are evaluated top to bottom, first match wins:

        - ``critical``: past ``critical``, or past ``high`` with an active order
        - ``high``: past ``high``, or past ``medium`` with an active order
        - ``medium``: past ``medium``
        - ``low``: otherwise
        """
        if thresholds is None:
            thresholds = PriorityThresholds()
        if duration_seconds > thresholds.critical or (has_active_order and duration_seconds > thresholds.high):
            return cls.CRITICAL
        if duration_seconds > thresholds.high or (has_active_order and duration_seconds > thresholds.medium):
            return cls.HIGH
        if duration_seconds > thresholds.medium:
            return cls.MEDIUM
        return cls.LOW


class RetransmissionRecord(FleetBaseModel):
    """A vehicle whose telemetry needs operator follow-up.

    ``priority`` is always derived from ``disconnected_duration`` and
    ``has_active_order``; a value passed in is replaced. Thresholds other
    than the defaults are taken from the validation context key
    ``"thresholds"`` (see
    :func:`fleettrack.priority.build_retransmission_record`).
    """

    vehicle_id: str
    plate: str
    company: str | None = None
    last_connection: UtcTimestamp
    disconnected_duration: float = Field(ge=0.0)
    """Seconds since the last sample."""
    connection_status: ConnectionStatus
    movement_status: MovementStatus
    comment: str | None = Field(default=None, max_length=MAX_COMMENT_LENGTH)
    has_active_order: bool = False
    priority: PriorityLevel = PriorityLevel.LOW
    last_location: tuple[float, float] | None = None

    @field_validator("comment", mode="before")
    @classmethod
    def _strip_comment(cls, value: Any) -> Any:
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return value

    @model_validator(mode="after")
    def _derive_priority(self, info: ValidationInfo) -> RetransmissionRecord:
        context = info.context if isinstance(info.context, dict) else {}
        thresholds = context.get("thresholds")
        if not isinstance(thresholds, PriorityThresholds):
            thresholds = None
        derived = PriorityLevel.for_silence(self.disconnected_duration, self.has_active_order, thresholds)
        object.__setattr__(self, "priority", derived)
        return self


class RetransmissionStats(FleetBaseModel):
    total: int = 0
    online: int = 0
    temporary_loss: int = 0
    disconnected: int = 0
    online_percentage: int = 0
    temporary_loss_percentage: int = 0
    disconnected_percentage: int = 0


class RetransmissionFilter(FleetBaseModel):
    """Record filter; every ``None`` criterion matches everything."""

    plate_search: str | None = None
    company: str | None = None
    movement_status: MovementStatus | None = None
    connection_status: ConnectionStatus | None = None
    min_priority: PriorityLevel | None = None
    has_comments: bool | None = None
    last_connection_from: datetime | None = None
    last_connection_to: datetime | None = None
