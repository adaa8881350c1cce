"""Internal constants shared across the library."""

import math

EARTH_RADIUS_KM = 6371.0

# ------------------------------------------------------------------
# Connection freshness windows (seconds)
# ------------------------------------------------------------------

DEFAULT_TEMPORARY_LOSS_SECONDS = 120.0
DEFAULT_DISCONNECTED_SECONDS = 300.0

# ------------------------------------------------------------------
# ETA
# ------------------------------------------------------------------

#: Speed assumed for a stopped vehicle so ETA stays finite.
DEFAULT_FALLBACK_SPEED_KMH = 40.0
DEFAULT_DELAY_TOLERANCE_MINUTES = 5.0

# ------------------------------------------------------------------
# Multi-window grid
# ------------------------------------------------------------------

DEFAULT_MAX_PANELS = 20
DEFAULT_RETENTION_SECONDS = 300.0

# ------------------------------------------------------------------
# Playback
# ------------------------------------------------------------------

PLAYBACK_SPEEDS: tuple[int, ...] = (1, 2, 4, 8, 16, 32)
DEFAULT_PLAYBACK_BASE_INTERVAL = 1.0

# ------------------------------------------------------------------
# Retransmission
# ------------------------------------------------------------------

MAX_COMMENT_LENGTH = 500


def validate_playback_speed(speed: int) -> int:
    """Return *speed* if it is a supported playback multiplier.

    Raises :class:`ValueError` for anything outside :data:`PLAYBACK_SPEEDS`.
    """
    if speed not in PLAYBACK_SPEEDS:
        raise ValueError(f"playback speed must be one of {PLAYBACK_SPEEDS}, got {speed}")
    return speed


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ``.5`` going up (``12.5`` becomes ``13``).

    Used for every operator-facing whole number.
    """
    return math.floor(value + 0.5)


def percentage(part: float, total: float) -> int:
    """``part`` as a whole percentage of ``total``; ``0`` when ``total`` is ``0``."""
    return round_half_up(part / total * 100) if total else 0
