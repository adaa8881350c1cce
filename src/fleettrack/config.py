"""Tracker configuration for fleettrack."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from fleettrack._constants import (
    DEFAULT_DELAY_TOLERANCE_MINUTES,
    DEFAULT_DISCONNECTED_SECONDS,
    DEFAULT_FALLBACK_SPEED_KMH,
    DEFAULT_MAX_PANELS,
    DEFAULT_PLAYBACK_BASE_INTERVAL,
    DEFAULT_RETENTION_SECONDS,
    DEFAULT_TEMPORARY_LOSS_SECONDS,
)
from fleettrack.exceptions import FleetTrackConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env_key: str, value: str, cast: type[int] | type[float]) -> int | float:
    try:
        return cast(value)
    except ValueError as exc:
        raise FleetTrackConfigError(f"{env_key} must be numeric, got {value!r}") from exc


@dataclasses.dataclass(frozen=True)
class PriorityThresholds:
    """Disconnected-duration thresholds (seconds) for priority levels.

    A unit is ``medium`` past ``medium``, ``high`` past ``high`` and
    ``critical`` past ``critical``. An active order bumps a unit one
    level earlier (see :func:`fleettrack.priority.classify_priority`).
    """

    medium: float = 900.0
    high: float = 1800.0
    critical: float = 3600.0

    def __post_init__(self) -> None:
        if not 0 <= self.medium <= self.high <= self.critical:
            raise FleetTrackConfigError(
                f"priority thresholds must satisfy 0 <= medium <= high <= critical, "
                f"got {self.medium}/{self.high}/{self.critical}"
            )


@dataclasses.dataclass(frozen=True)
class TrackingConfig:
    """Tracker configuration.

    Parameters
    ----------
    temporary_loss_seconds : float
        Age (seconds since the last sample) from which a vehicle is
        reported as ``temporary_loss``.
    disconnected_seconds : float
        Age from which a vehicle is reported as ``disconnected``.
        Must be greater than ``temporary_loss_seconds``.
    fallback_speed_kmh : float
        Speed used for ETA while a vehicle is stopped.
    delay_tolerance_minutes : float
        Slack allowed past a milestone's estimated arrival before the
        vehicle is flagged as delayed.
    priority : PriorityThresholds
        Disconnected-duration thresholds for retransmission priority.
    max_panels : int
        Maximum number of panels in a multi-window grid.
    retention_seconds : float
        How long an unwanted vehicle is kept after its last sample or
        after the last view lost interest in it.
    playback_base_interval : float
        Seconds between playback ticks at speed ``1``.
    mqtt_enabled : bool
        Start the MQTT telemetry feed when the tracker is entered.
    mqtt_host : str
        MQTT broker host.
    mqtt_port : int
        MQTT broker port.
    mqtt_topic : str
        Topic filter carrying JSON position messages.
    mqtt_username : str or None
        Broker username, if the broker requires authentication.
    mqtt_password : str or None
        Broker password.
    mqtt_tls : bool
        Wrap the broker connection in TLS.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    """

    temporary_loss_seconds: float = DEFAULT_TEMPORARY_LOSS_SECONDS
    disconnected_seconds: float = DEFAULT_DISCONNECTED_SECONDS
    fallback_speed_kmh: float = DEFAULT_FALLBACK_SPEED_KMH
    delay_tolerance_minutes: float = DEFAULT_DELAY_TOLERANCE_MINUTES
    priority: PriorityThresholds = dataclasses.field(default_factory=PriorityThresholds)
    max_panels: int = DEFAULT_MAX_PANELS
    retention_seconds: float = DEFAULT_RETENTION_SECONDS
    playback_base_interval: float = DEFAULT_PLAYBACK_BASE_INTERVAL
    mqtt_enabled: bool = False
    mqtt_host: str = "localhost"
    mqtt_port: int = 1883
    mqtt_topic: str = "fleet/telemetry/#"
    mqtt_username: str | None = None
    mqtt_password: str | None = None
    mqtt_tls: bool = False
    mqtt_keepalive: int = 60

    def __post_init__(self) -> None:
        if self.temporary_loss_seconds < 0:
            raise FleetTrackConfigError("temporary_loss_seconds must be >= 0")
        if self.temporary_loss_seconds >= self.disconnected_seconds:
            raise FleetTrackConfigError(
                "temporary_loss_seconds must be lower than disconnected_seconds, "
                f"got {self.temporary_loss_seconds} >= {self.disconnected_seconds}"
            )
        if self.fallback_speed_kmh <= 0:
            raise FleetTrackConfigError("fallback_speed_kmh must be > 0")
        if self.delay_tolerance_minutes < 0:
            raise FleetTrackConfigError("delay_tolerance_minutes must be >= 0")
        if self.max_panels < 1:
            raise FleetTrackConfigError("max_panels must be >= 1")
        if self.retention_seconds < 0:
            raise FleetTrackConfigError("retention_seconds must be >= 0")
        if self.playback_base_interval <= 0:
            raise FleetTrackConfigError("playback_base_interval must be > 0")

    @classmethod
    def from_env(cls, **overrides: Any) -> TrackingConfig:
        """Create configuration from environment variables.

        Reads optional ``FLEETTRACK_*`` variables. Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        TrackingConfig
            Populated configuration.
        """
        env = os.environ

        priority_kwargs: dict[str, float] = {}
        _ENV_PRIORITY_MAP = {
            "FLEETTRACK_PRIORITY_MEDIUM_SECONDS": "medium",
            "FLEETTRACK_PRIORITY_HIGH_SECONDS": "high",
            "FLEETTRACK_PRIORITY_CRITICAL_SECONDS": "critical",
        }
        for env_key, field_name in _ENV_PRIORITY_MAP.items():
            val = env.get(env_key)
            if val is not None:
                priority_kwargs[field_name] = float(_env_number(env_key, val, float))

        # Allow overriding priority thresholds via a nested dict
        priority_overrides = overrides.pop("priority", None)
        if isinstance(priority_overrides, dict):
            priority_kwargs.update(priority_overrides)
        elif isinstance(priority_overrides, PriorityThresholds):
            priority_kwargs = dataclasses.asdict(priority_overrides)

        priority = PriorityThresholds(**priority_kwargs) if priority_kwargs else PriorityThresholds()

        _ENV_NUMERIC_MAP: dict[str, tuple[str, type[int] | type[float]]] = {
            "FLEETTRACK_TEMPORARY_LOSS_SECONDS": ("temporary_loss_seconds", float),
            "FLEETTRACK_DISCONNECTED_SECONDS": ("disconnected_seconds", float),
            "FLEETTRACK_FALLBACK_SPEED_KMH": ("fallback_speed_kmh", float),
            "FLEETTRACK_DELAY_TOLERANCE_MINUTES": ("delay_tolerance_minutes", float),
            "FLEETTRACK_MAX_PANELS": ("max_panels", int),
            "FLEETTRACK_RETENTION_SECONDS": ("retention_seconds", float),
            "FLEETTRACK_PLAYBACK_BASE_INTERVAL": ("playback_base_interval", float),
            "FLEETTRACK_MQTT_PORT": ("mqtt_port", int),
            "FLEETTRACK_MQTT_KEEPALIVE": ("mqtt_keepalive", int),
        }
        _ENV_STRING_MAP = {
            "FLEETTRACK_MQTT_HOST": "mqtt_host",
            "FLEETTRACK_MQTT_TOPIC": "mqtt_topic",
            "FLEETTRACK_MQTT_USERNAME": "mqtt_username",
            "FLEETTRACK_MQTT_PASSWORD": "mqtt_password",
        }

        config_kwargs: dict[str, Any] = {"priority": priority}
        for env_key, (field_name, cast) in _ENV_NUMERIC_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_number(env_key, val, cast)
        for env_key, field_name in _ENV_STRING_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        if "mqtt_enabled" not in overrides:
            config_kwargs["mqtt_enabled"] = _env_bool(env.get("FLEETTRACK_MQTT_ENABLED"), False)
        if "mqtt_tls" not in overrides:
            config_kwargs["mqtt_tls"] = _env_bool(env.get("FLEETTRACK_MQTT_TLS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
