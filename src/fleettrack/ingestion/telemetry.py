"""Telemetry payload parsing.

Feed payloads arrive in two shapes:

- flat samples: ``{"vehicleId": .., "lat": .., "lng": .., "speed": ..,
  "heading": .., "timestamp": ..}``
- ``position_update`` envelopes: ``{"type": "position_update",
  "vehicleId": .., "position": {...}, "timestamp": ..}``

Both are merged into a flat dict and validated by :class:`TelemetrySample`.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import TypeAdapter, ValidationError

from fleettrack.exceptions import TelemetryValidationError
from fleettrack.ingestion.normalize import safe_str
from fleettrack.models.milestone import Milestone
from fleettrack.models.route import HistoricalRoutePoint
from fleettrack.models.telemetry import TelemetrySample

POSITION_UPDATE = "position_update"

_MILESTONES = TypeAdapter(list[Milestone])
_ROUTE_POINTS = TypeAdapter(list[HistoricalRoutePoint])


def _flatten(payload: dict[str, Any]) -> dict[str, Any]:
    merged = dict(payload)
    for key in ("data", "position"):
        nested = payload.get(key)
        if isinstance(nested, dict):
            merged.pop(key)
            for nested_key, value in nested.items():
                # Position timestamps win over envelope timestamps.
                if nested_key == "timestamp" or nested_key not in merged:
                    merged[nested_key] = value
    return merged


def _format_errors(exc: ValidationError) -> list[str]:
    errors: list[str] = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "<payload>"
        errors.append(f"{location}: {error.get('msg', 'invalid')}")
    return errors


def is_position_message(payload: Any) -> bool:
    """Whether *payload* looks like a position message (and not an alert/status one)."""
    if not isinstance(payload, dict):
        return False
    message_type = payload.get("type")
    return message_type is None or message_type == POSITION_UPDATE


def parse_sample(payload: Any) -> TelemetrySample:
    """Validate a raw feed payload into a :class:`TelemetrySample`.

    Raises
    ------
    TelemetryValidationError
        When the payload is not an object, or a field is missing or out
        of range (latitude, longitude, negative speed, bad timestamp).
    """
    if not isinstance(payload, dict):
        raise TelemetryValidationError(f"telemetry payload must be an object, got {type(payload).__name__}")

    flat = _flatten(payload)
    vehicle_id = safe_str(flat.get("vehicleId") or flat.get("vehicle_id") or flat.get("id"))
    try:
        return TelemetrySample.model_validate(flat)
    except ValidationError as exc:
        errors = _format_errors(exc)
        raise TelemetryValidationError(
            f"invalid telemetry for vehicle {vehicle_id or '<unknown>'}: {'; '.join(errors)}",
            vehicle_id=vehicle_id,
            errors=errors,
        ) from exc


def parse_milestones(payload: Iterable[dict[str, Any]]) -> list[Milestone]:
    """Parse milestones and return them in ascending sequence order.

    Raises :class:`ValueError` when two milestones share a sequence number.
    """
    milestones = sorted(_MILESTONES.validate_python(list(payload)), key=lambda m: m.sequence)
    for previous, current in zip(milestones, milestones[1:], strict=False):
        if previous.sequence == current.sequence:
            raise ValueError(f"duplicate milestone sequence {current.sequence}")
    return milestones


def parse_route_points(payload: Iterable[dict[str, Any]]) -> list[HistoricalRoutePoint]:
    """Parse a pre-ordered historical point sequence.

    Raises :class:`ValueError` when indexes are not contiguous from ``0``.
    """
    points = _ROUTE_POINTS.validate_python(list(payload))
    for expected, point in enumerate(points):
        if point.index != expected:
            raise ValueError(f"route point indexes must be contiguous from 0, got {point.index} at position {expected}")
    return points
