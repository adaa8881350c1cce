from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from fleettrack.models.playback import PlaybackMode
from fleettrack.models.route import HistoricalRoutePoint
from fleettrack.playback import AsyncioScheduler, PlaybackController


class _Handle:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class _ManualScheduler:
    """Collects scheduled ticks; tests fire them explicitly."""

    def __init__(self) -> None:
        self.handles: list[_Handle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> _Handle:
        handle = _Handle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[_Handle]:
        return [handle for handle in self.handles if not handle.cancelled]

    def fire(self) -> bool:
        pending = self.pending
        if not pending:
            return False
        handle = pending[0]
        self.handles.remove(handle)
        handle.callback()
        return True

    def run(self, limit: int = 1000) -> int:
        fired = 0
        while fired < limit and self.fire():
            fired += 1
        return fired


def _points(count: int) -> list[HistoricalRoutePoint]:
    start = datetime(2026, 1, 1, tzinfo=UTC)
    return [
        HistoricalRoutePoint(
            index=i,
            latitude=4.6,
            longitude=-74.1 + i * 0.001,
            speed=30.0,
            timestamp=start + timedelta(seconds=10 * i),
        )
        for i in range(count)
    ]


@pytest.fixture
def scheduler() -> _ManualScheduler:
    return _ManualScheduler()


def _controller(scheduler: _ManualScheduler, count: int = 5, **kwargs: object) -> PlaybackController:
    return PlaybackController(_points(count), scheduler=scheduler, **kwargs)


def test_initial_state(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)
    state = controller.state

    assert state.mode == PlaybackMode.IDLE
    assert state.current_index == 0
    assert state.total_points == 5
    assert state.progress == 0
    assert not state.is_complete
    assert controller.total_duration == timedelta(seconds=40)


def test_play_advances_one_point_per_tick(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)
    seen: list[int] = []
    controller.add_listener(lambda _point, index: seen.append(index))

    controller.play()
    assert controller.mode == PlaybackMode.PLAYING
    scheduler.fire()
    scheduler.fire()

    assert seen == [1, 2]
    assert controller.current_index == 2
    assert controller.progress == 50
    assert controller.elapsed == timedelta(seconds=20)


def test_completion_stays_on_last_point(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)
    completions: list[bool] = []
    controller.add_completion_listener(lambda: completions.append(True))

    controller.play()
    assert scheduler.run() == 4

    assert controller.current_index == 4
    assert controller.is_complete
    assert controller.mode == PlaybackMode.PLAYING
    assert controller.progress == 100
    assert completions == [True]
    assert scheduler.pending == []


def test_play_after_completion_restarts(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)
    seen: list[int] = []
    controller.play()
    scheduler.run()
    controller.add_listener(lambda _point, index: seen.append(index))

    controller.play()

    assert seen == [0]
    assert not controller.is_complete
    assert controller.mode == PlaybackMode.PLAYING
    scheduler.fire()
    assert controller.current_index == 1


def test_pause_cancels_pending_tick(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)
    controller.play()
    scheduler.fire()
    stale = scheduler.pending[0]

    controller.pause()

    assert controller.mode == PlaybackMode.PAUSED
    assert scheduler.pending == []
    # A tick that slipped past cancellation is discarded.
    stale.callback()
    assert controller.current_index == 1


def test_play_is_noop_while_playing(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)
    controller.play()
    controller.play()
    assert len(scheduler.pending) == 1


def test_play_empty_route_is_noop(scheduler: _ManualScheduler) -> None:
    controller = PlaybackController(scheduler=scheduler)
    controller.play()

    assert controller.mode == PlaybackMode.IDLE
    assert controller.current_point is None
    assert scheduler.pending == []


def test_single_point_route_completes_immediately(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler, count=1)
    completions: list[bool] = []
    controller.add_completion_listener(lambda: completions.append(True))

    controller.play()

    assert controller.is_complete
    assert completions == [True]
    assert controller.progress == 0


def test_stop_rewinds_and_keeps_route(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)
    controller.play()
    scheduler.fire()
    scheduler.fire()

    controller.stop()

    assert controller.mode == PlaybackMode.STOPPED
    assert controller.current_index == 0
    assert len(controller.points) == 5
    assert scheduler.pending == []


def test_reset_returns_to_idle(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)
    controller.play()
    scheduler.fire()

    controller.reset()

    assert controller.mode == PlaybackMode.IDLE
    assert controller.current_index == 0


def test_toggle(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)
    controller.toggle()
    assert controller.mode == PlaybackMode.PLAYING
    controller.toggle()
    assert controller.mode == PlaybackMode.PAUSED


def test_step_forward_and_backward_at_bounds(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler, count=3)
    seen: list[int] = []
    controller.add_listener(lambda _point, index: seen.append(index))

    controller.step_backward()
    controller.step_forward()
    controller.step_forward()
    controller.step_forward()

    assert seen == [1, 2]
    assert controller.current_index == 2


def test_steps_ignored_while_playing(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)
    controller.play()
    controller.step_forward()
    assert controller.current_index == 0


def test_seek_to_is_clamped(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)
    controller.seek_to(99)
    assert controller.current_index == 4
    controller.seek_to(-3)
    assert controller.current_index == 0


@pytest.mark.parametrize(
    ("percent", "expected"),
    [(0, 0), (50, 4), (99, 8), (100, 9), (150, 9), (-10, 0)],
)
def test_seek_to_progress_floors(scheduler: _ManualScheduler, percent: float, expected: int) -> None:
    controller = _controller(scheduler, count=10)
    controller.seek_to_progress(percent)
    assert controller.current_index == expected


def test_seek_back_after_completion_resumes(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)
    controller.play()
    scheduler.run()

    controller.seek_to(1)

    assert not controller.is_complete
    assert controller.mode == PlaybackMode.PLAYING
    scheduler.fire()
    assert controller.current_index == 2


def test_speed_sets_tick_interval(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler, base_interval=2.0)
    controller.set_speed(4)
    controller.play()

    assert controller.tick_interval == 0.5
    assert scheduler.pending[0].delay == 0.5


def test_speed_change_while_playing_reschedules(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)
    controller.play()

    controller.set_speed(8)

    assert [handle.delay for handle in scheduler.pending] == [0.125]
    scheduler.fire()
    assert controller.current_index == 1


@pytest.mark.parametrize("speed", [0, 3, 64, -1])
def test_invalid_speed_rejected(scheduler: _ManualScheduler, speed: int) -> None:
    controller = _controller(scheduler)
    with pytest.raises(ValueError):
        controller.set_speed(speed)
    with pytest.raises(ValueError):
        PlaybackController(scheduler=scheduler, speed=speed)


def test_load_resets_without_emitting(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)
    seen: list[int] = []
    controller.add_listener(lambda _point, index: seen.append(index))
    controller.play()
    scheduler.fire()

    controller.load(_points(3))

    assert seen == [1]
    assert controller.mode == PlaybackMode.IDLE
    assert controller.current_index == 0
    assert controller.state.total_points == 3
    assert scheduler.pending == []


def test_listener_pausing_during_tick_stops_advance(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)

    def _pause_at_two(_point: HistoricalRoutePoint, index: int) -> None:
        if index == 2:
            controller.pause()

    controller.add_listener(_pause_at_two)
    controller.play()
    scheduler.run()

    assert controller.current_index == 2
    assert controller.mode == PlaybackMode.PAUSED


def test_failing_listener_does_not_stop_playback(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)

    def _boom(_point: HistoricalRoutePoint, _index: int) -> None:
        raise RuntimeError("render failed")

    controller.add_listener(_boom)
    controller.play()
    scheduler.run()

    assert controller.is_complete


def test_removed_listener_not_called(scheduler: _ManualScheduler) -> None:
    controller = _controller(scheduler)
    seen: list[int] = []
    remove = controller.add_listener(lambda _point, index: seen.append(index))
    remove()
    controller.step_forward()
    assert seen == []


@pytest.mark.asyncio
async def test_asyncio_scheduler_plays_to_completion() -> None:
    done = asyncio.Event()
    controller = PlaybackController(_points(3), scheduler=AsyncioScheduler(), base_interval=0.01, speed=2)
    controller.add_completion_listener(done.set)

    controller.play()
    await asyncio.wait_for(done.wait(), timeout=2.0)

    assert controller.current_index == 2
    assert controller.is_complete
    controller.close()
