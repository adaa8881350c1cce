"""Custom exception hierarchy for fleettrack."""

from __future__ import annotations


class FleetTrackError(Exception):
    """Base exception for all fleettrack errors."""


class FleetTrackConfigError(FleetTrackError):
    """Invalid or missing configuration."""


class TelemetryValidationError(FleetTrackError):
    """Inbound telemetry payload rejected at the ingestion boundary.

    ``errors`` holds one human-readable entry per offending field so the
    feed adapter can log them without re-parsing the payload.
    """

    def __init__(
        self,
        message: str,
        *,
        vehicle_id: str | None = None,
        errors: list[str] | None = None,
    ) -> None:
        self.vehicle_id = vehicle_id
        self.errors = errors or []
        super().__init__(message)


class FeedError(FleetTrackError):
    """Telemetry feed (MQTT) could not be started or configured."""

    def __init__(self, message: str, *, host: str = "", port: int | None = None) -> None:
        self.host = host
        self.port = port
        super().__init__(message)
