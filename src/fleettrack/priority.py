"""Retransmission priority and follow-up records.

Vehicles that stopped reporting are ranked by how long they have been
silent and whether they are carrying an order, so operators can chase
the most urgent units first.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from fleettrack._constants import percentage
from fleettrack.config import PriorityThresholds
from fleettrack.models.retransmission import (
    PriorityLevel,
    RetransmissionFilter,
    RetransmissionRecord,
    RetransmissionStats,
)
from fleettrack.models.telemetry import ConnectionStatus, TrackedVehicle

_DEFAULT_THRESHOLDS = PriorityThresholds()


def classify_priority(
    duration_seconds: float,
    has_active_order: bool,
    thresholds: PriorityThresholds = _DEFAULT_THRESHOLDS,
) -> PriorityLevel:
    """Urgency of a silent vehicle; see :meth:`PriorityLevel.for_silence`."""
    return PriorityLevel.for_silence(duration_seconds, has_active_order, thresholds)


def build_retransmission_record(
    vehicle: TrackedVehicle,
    *,
    now: datetime,
    company: str | None = None,
    comment: str | None = None,
    thresholds: PriorityThresholds = _DEFAULT_THRESHOLDS,
) -> RetransmissionRecord:
    """Follow-up record for *vehicle* with its priority derived at *now*.

    *company* defaults to the vehicle's registered company name.
    """
    duration = max(0.0, (now - vehicle.last_update).total_seconds())
    return RetransmissionRecord.model_validate(
        {
            "vehicle_id": vehicle.vehicle_id,
            "plate": vehicle.plate,
            "company": company if company is not None else vehicle.company_name,
            "last_connection": vehicle.last_update,
            "disconnected_duration": duration,
            "connection_status": vehicle.connection_status,
            "movement_status": vehicle.movement_status,
            "comment": comment,
            "has_active_order": vehicle.has_active_order,
            "last_location": vehicle.position,
        },
        context={"thresholds": thresholds},
    )


def retransmission_stats(records: Iterable[RetransmissionRecord]) -> RetransmissionStats:
    counts = dict.fromkeys(ConnectionStatus, 0)
    total = 0
    for record in records:
        counts[record.connection_status] += 1
        total += 1
    return RetransmissionStats(
        total=total,
        online=counts[ConnectionStatus.ONLINE],
        temporary_loss=counts[ConnectionStatus.TEMPORARY_LOSS],
        disconnected=counts[ConnectionStatus.DISCONNECTED],
        online_percentage=percentage(counts[ConnectionStatus.ONLINE], total),
        temporary_loss_percentage=percentage(counts[ConnectionStatus.TEMPORARY_LOSS], total),
        disconnected_percentage=percentage(counts[ConnectionStatus.DISCONNECTED], total),
    )


def _matches(record: RetransmissionRecord, criteria: RetransmissionFilter) -> bool:
    if criteria.plate_search:
        if criteria.plate_search.strip().lower() not in record.plate.lower():
            return False
    if criteria.company is not None and record.company != criteria.company:
        return False
    if criteria.movement_status is not None and record.movement_status != criteria.movement_status:
        return False
    if criteria.connection_status is not None and record.connection_status != criteria.connection_status:
        return False
    if criteria.min_priority is not None and record.priority < criteria.min_priority:
        return False
    if criteria.has_comments is not None and bool(record.comment) != criteria.has_comments:
        return False
    if criteria.last_connection_from is not None and record.last_connection < criteria.last_connection_from:
        return False
    if criteria.last_connection_to is not None and record.last_connection > criteria.last_connection_to:
        return False
    return True


def filter_records(
    records: Iterable[RetransmissionRecord],
    criteria: RetransmissionFilter | None = None,
) -> list[RetransmissionRecord]:
    """Records matching every set criterion of *criteria*, in input order."""
    if criteria is None:
        return list(records)
    return [record for record in records if _matches(record, criteria)]


def sort_by_priority(records: Iterable[RetransmissionRecord]) -> list[RetransmissionRecord]:
    """Most urgent first; ties broken by the longest disconnection."""
    return sorted(records, key=lambda r: (r.priority.rank, r.disconnected_duration), reverse=True)
