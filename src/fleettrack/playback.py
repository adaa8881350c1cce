"""Historical route playback.

:class:`PlaybackController` replays a pre-fetched sequence of
:class:`HistoricalRoutePoint` like a media player. It advances one point
per tick; the tick interval is ``base_interval / speed``.

Ticks come from an injected :class:`Scheduler`. The default
:class:`AsyncioScheduler` uses the running event loop; tests pass a
manual scheduler and fire ticks themselves.

When the last point is reached the controller stays on it in ``playing``
mode, flags ``is_complete`` and notifies completion listeners once.
Calling :meth:`PlaybackController.play` after completion restarts from
the first point.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable, Sequence
from datetime import timedelta
from typing import Protocol

from fleettrack._constants import DEFAULT_PLAYBACK_BASE_INTERVAL, percentage, validate_playback_speed
from fleettrack.models.playback import PlaybackMode, PlaybackState
from fleettrack.models.route import HistoricalRoutePoint

_logger = logging.getLogger(__name__)

PointListener = Callable[[HistoricalRoutePoint, int], None]
CompletionListener = Callable[[], None]


class Cancellable(Protocol):
    def cancel(self) -> object: ...


class Scheduler(Protocol):
    """Schedules one-shot callbacks."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop.

    The loop is resolved lazily so the controller can be built outside a
    running loop.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop.call_later(delay, callback)


def _emit(listeners: list[PointListener], point: HistoricalRoutePoint, index: int) -> None:
    for listener in list(listeners):
        try:
            listener(point, index)
        except Exception:
            _logger.debug("Playback listener failed index=%d", index, exc_info=True)


class PlaybackController:
    """Play/pause/seek state machine over a historical route.

    Parameters
    ----------
    points : sequence of HistoricalRoutePoint or None
        Route to load initially.
    scheduler : Scheduler or None
        Tick source; defaults to :class:`AsyncioScheduler`.
    base_interval : float
        Seconds between ticks at speed ``1``.
    speed : int
        Initial speed multiplier, one of :data:`PLAYBACK_SPEEDS`.
    """

    def __init__(
        self,
        points: Sequence[HistoricalRoutePoint] | None = None,
        *,
        scheduler: Scheduler | None = None,
        base_interval: float = DEFAULT_PLAYBACK_BASE_INTERVAL,
        speed: int = 1,
    ) -> None:
        if base_interval <= 0:
            raise ValueError("base_interval must be > 0")
        self._scheduler = scheduler or AsyncioScheduler()
        self._base_interval = base_interval
        self._speed = validate_playback_speed(speed)
        self._points: list[HistoricalRoutePoint] = list(points or [])
        self._index = 0
        self._mode = PlaybackMode.IDLE
        self._complete = False
        self._handle: Cancellable | None = None
        # Bumped whenever the pending tick must be discarded.
        self._generation = 0
        self._listeners: list[PointListener] = []
        self._completion_listeners: list[CompletionListener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: PointListener) -> Callable[[], None]:
        """Subscribe to index changes; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def add_completion_listener(self, listener: CompletionListener) -> Callable[[], None]:
        self._completion_listeners.append(listener)

        def _remove() -> None:
            if listener in self._completion_listeners:
                self._completion_listeners.remove(listener)

        return _remove

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def points(self) -> list[HistoricalRoutePoint]:
        return list(self._points)

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def mode(self) -> PlaybackMode:
        return self._mode

    @property
    def speed(self) -> int:
        return self._speed

    @property
    def is_complete(self) -> bool:
        return self._complete

    @property
    def current_point(self) -> HistoricalRoutePoint | None:
        if not self._points:
            return None
        return self._points[self._index]

    @property
    def tick_interval(self) -> float:
        """Seconds between ticks at the current speed."""
        return self._base_interval / self._speed

    @property
    def progress(self) -> int:
        """Percentage of the route played, rounded."""
        count = len(self._points)
        if count <= 1:
            return 0
        return percentage(self._index, count - 1)

    @property
    def elapsed(self) -> timedelta:
        """Recorded time between the first point and the current one."""
        if not self._points:
            return timedelta(0)
        return self._points[self._index].timestamp - self._points[0].timestamp

    @property
    def total_duration(self) -> timedelta:
        if not self._points:
            return timedelta(0)
        return self._points[-1].timestamp - self._points[0].timestamp

    @property
    def state(self) -> PlaybackState:
        return PlaybackState(
            current_index=self._index,
            mode=self._mode,
            speed=self._speed,
            progress=self.progress,
            elapsed=self.elapsed,
            total_points=len(self._points),
            current_point=self.current_point,
            is_complete=self._complete,
        )

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self) -> None:
        generation = self._generation
        self._handle = self._scheduler.call_later(self.tick_interval, lambda: self._tick(generation))

    def _tick(self, generation: int) -> None:
        if generation != self._generation or self._mode != PlaybackMode.PLAYING:
            return
        self._handle = None
        last = len(self._points) - 1
        if self._index < last:
            self._set_index(self._index + 1)
            if generation != self._generation or self._handle is not None:
                # A listener changed the playback state.
                return
        if self._index >= last:
            self._finish()
            return
        self._schedule()

    def _finish(self) -> None:
        self._cancel_timer()
        if self._complete:
            return
        self._complete = True
        _logger.debug("Playback complete points=%d", len(self._points))
        for listener in list(self._completion_listeners):
            try:
                listener()
            except Exception:
                _logger.debug("Playback completion listener failed", exc_info=True)

    def _set_index(self, index: int) -> None:
        if not self._points:
            return
        index = max(0, min(index, len(self._points) - 1))
        if index == self._index:
            return
        self._index = index
        if index < len(self._points) - 1:
            self._complete = False
        _emit(self._listeners, self._points[index], index)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def load(self, points: Sequence[HistoricalRoutePoint]) -> None:
        """Replace the route; resets to index 0 in ``idle`` without emitting."""
        self._cancel_timer()
        self._points = list(points)
        self._index = 0
        self._mode = PlaybackMode.IDLE
        self._complete = False
        _logger.debug("Playback loaded points=%d", len(self._points))

    def play(self) -> None:
        """Start or resume advancing. No-op for an empty route or while playing."""
        if not self._points:
            return
        if self._mode == PlaybackMode.PLAYING and not self._complete:
            return
        if self._complete or self._index >= len(self._points) - 1:
            self._complete = False
            self._set_index(0)
        self._cancel_timer()
        self._mode = PlaybackMode.PLAYING
        if len(self._points) == 1:
            self._finish()
            return
        self._schedule()

    def pause(self) -> None:
        if self._mode != PlaybackMode.PLAYING:
            return
        self._cancel_timer()
        self._mode = PlaybackMode.PAUSED

    def stop(self) -> None:
        """Halt and rewind to the first point, keeping the route."""
        self._cancel_timer()
        self._complete = False
        if self._points:
            self._mode = PlaybackMode.STOPPED
        self._set_index(0)

    def reset(self) -> None:
        """Rewind to the first point and return to ``idle``."""
        self._cancel_timer()
        self._complete = False
        self._mode = PlaybackMode.IDLE
        self._set_index(0)

    def toggle(self) -> None:
        """Pause when playing, play otherwise."""
        if self._mode == PlaybackMode.PLAYING and not self._complete:
            self.pause()
        else:
            self.play()

    def step_forward(self) -> None:
        """Advance one point; no-op while playing or on the last point."""
        if self._mode == PlaybackMode.PLAYING:
            return
        self._set_index(self._index + 1)

    def step_backward(self) -> None:
        """Go back one point; no-op while playing or on the first point."""
        if self._mode == PlaybackMode.PLAYING:
            return
        self._set_index(self._index - 1)

    def seek_to(self, index: int) -> None:
        """Jump to *index*, clamped to the route bounds."""
        self._set_index(index)
        if self._mode == PlaybackMode.PLAYING and not self._complete and self._handle is None:
            self._schedule()

    def seek_to_progress(self, percent: float) -> None:
        """Jump to the point at *percent* of the route.

        The index is ``floor(percent / 100 * (count - 1))`` with *percent*
        clamped to ``[0, 100]``, so 50% of a 10-point route is index 4.
        """
        if not self._points:
            return
        percent = max(0.0, min(100.0, float(percent)))
        self.seek_to(math.floor(percent / 100 * (len(self._points) - 1)))

    def set_speed(self, speed: int) -> None:
        """Change the multiplier; a running playback continues at the new rate.

        Raises :class:`ValueError` for speeds outside :data:`PLAYBACK_SPEEDS`.
        """
        self._speed = validate_playback_speed(speed)
        if self._mode == PlaybackMode.PLAYING and not self._complete:
            self._cancel_timer()
            self._schedule()

    def close(self) -> None:
        """Cancel any pending tick and drop listeners."""
        self._cancel_timer()
        self._listeners.clear()
        self._completion_listeners.clear()
