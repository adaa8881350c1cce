"""Dynamic ETA and delay detection against order milestones.

All functions here are pure: ``now`` is always passed in and nothing is
cached, so they are safe to call from any thread.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta

from fleettrack._constants import (
    DEFAULT_DELAY_TOLERANCE_MINUTES,
    DEFAULT_FALLBACK_SPEED_KMH,
    percentage,
    round_half_up,
)
from fleettrack.geo import haversine_km
from fleettrack.models.milestone import EtaResult, Milestone, MilestoneTrackingStatus, OrderProgress
from fleettrack.models.telemetry import TelemetrySample, TrackedVehicle


def next_pending_milestone(milestones: Iterable[Milestone]) -> Milestone | None:
    """First ``pending`` or ``in_progress`` milestone by ascending sequence.

    Returns ``None`` when the order has no milestones or all are completed.
    """
    for milestone in sorted(milestones, key=lambda m: m.sequence):
        if milestone.is_open:
            return milestone
    return None


def estimate_eta(
    vehicle: TrackedVehicle | TelemetrySample,
    milestones: Iterable[Milestone],
    *,
    now: datetime,
    fallback_speed_kmh: float = DEFAULT_FALLBACK_SPEED_KMH,
    delay_tolerance_minutes: float = DEFAULT_DELAY_TOLERANCE_MINUTES,
) -> EtaResult | None:
    """Estimate arrival at the next pending milestone.

    Parameters
    ----------
    vehicle : TrackedVehicle or TelemetrySample
        Current position and speed of the vehicle.
    milestones : iterable of Milestone
        Milestones of the vehicle's active order, in any order.
    now : datetime
        Reference time for the calculated arrival.
    fallback_speed_kmh : float
        Speed used while the vehicle is stopped.
    delay_tolerance_minutes : float
        Slack past the milestone's estimated arrival before flagging a delay.

    Returns
    -------
    EtaResult or None
        ``None`` when there is no pending milestone.

    Notes
    -----
    A delay is only reported while the milestone's estimated arrival is
    still ahead of *now*. Once that time has passed the milestone is
    already known to be overdue and no delay is flagged.
    """
    milestone = next_pending_milestone(milestones)
    if milestone is None:
        return None

    sample = vehicle.sample if isinstance(vehicle, TrackedVehicle) else vehicle
    distance_km = haversine_km(sample.latitude, sample.longitude, milestone.latitude, milestone.longitude)

    used_fallback = sample.speed <= 0
    speed_kmh = fallback_speed_kmh if used_fallback else sample.speed
    eta_minutes = round_half_up(distance_km / speed_kmh * 60)
    calculated = now + timedelta(minutes=eta_minutes)

    is_delayed = False
    delay_minutes = 0
    planned = milestone.estimated_arrival
    if planned is not None and planned > now:
        behind_minutes = (calculated - planned).total_seconds() / 60
        if behind_minutes > delay_tolerance_minutes:
            is_delayed = True
            delay_minutes = round_half_up(behind_minutes)

    return EtaResult(
        milestone=milestone,
        distance_km=distance_km,
        eta_minutes=eta_minutes,
        estimated_arrival=calculated,
        effective_speed_kmh=speed_kmh,
        used_fallback_speed=used_fallback,
        is_delayed=is_delayed,
        delay_minutes=delay_minutes,
        calculated_at=now,
    )


def order_progress(milestones: Iterable[Milestone]) -> OrderProgress:
    """Completed/total milestone counts and the rounded completion percentage."""
    ordered = sorted(milestones, key=lambda m: m.sequence)
    completed = sum(1 for m in ordered if m.tracking_status == MilestoneTrackingStatus.COMPLETED)
    total = len(ordered)
    return OrderProgress(
        completed=completed,
        total=total,
        percent=percentage(completed, total),
        current=next_pending_milestone(ordered),
    )
