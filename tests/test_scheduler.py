import asyncio

import pytest

from asciiplayer.scheduler import AsyncioFrameClock, ManualFrameClock, PlaybackScheduler


def test_manual_clock_runs_only_requested_callbacks():
    clock = ManualFrameClock()
    calls = []
    handle = clock.request(lambda: calls.append("a"))
    clock.request(lambda: calls.append("b"))
    clock.cancel(handle)

    assert clock.tick() == 1
    assert calls == ["b"]
    assert clock.tick() == 0


def test_first_cycle_runs_immediately_then_once_per_tick():
    clock = ManualFrameClock()
    scheduler = PlaybackScheduler(clock)
    cycles = []

    scheduler.start(lambda: cycles.append(len(cycles)), lambda: True)
    assert cycles == [0]
    assert scheduler.running

    clock.tick()
    clock.tick()
    assert cycles == [0, 1, 2]
    assert scheduler.cycles == 3


def test_loop_stops_when_source_goes_inactive(caplog):
    clock = ManualFrameClock()
    scheduler = PlaybackScheduler(clock)
    active = [True]
    stopped = []
    caplog.set_level("DEBUG")

    scheduler.start(lambda: None, lambda: active[0], stopped.append)
    active[0] = False
    clock.tick()

    assert not scheduler.running
    assert clock.pending == 0
    assert stopped == [None]
    assert "render loop ended" in caplog.text


def test_cancel_is_idempotent_and_drops_pending_tick():
    clock = ManualFrameClock()
    scheduler = PlaybackScheduler(clock)
    cycles = []

    scheduler.start(lambda: cycles.append(1), lambda: True)
    scheduler.cancel()
    scheduler.cancel()

    assert clock.pending == 0
    clock.tick()
    assert cycles == [1]


def test_cancel_from_inside_a_cycle_stops_rescheduling():
    clock = ManualFrameClock()
    scheduler = PlaybackScheduler(clock)

    scheduler.start(scheduler.cancel, lambda: True)

    assert not scheduler.running
    assert clock.pending == 0


def test_restart_invalidates_previous_loop():
    clock = ManualFrameClock()
    scheduler = PlaybackScheduler(clock)
    first, second = [], []

    scheduler.start(lambda: first.append(1), lambda: True)
    scheduler.start(lambda: second.append(1), lambda: True)
    clock.tick()

    assert first == [1]
    assert second == [1, 1]


def test_failing_first_cycle_raises_to_the_caller(caplog):
    clock = ManualFrameClock()
    scheduler = PlaybackScheduler(clock)
    stopped = []

    def boom():
        raise RuntimeError("decoder exploded")

    with pytest.raises(RuntimeError, match="decoder exploded"):
        scheduler.start(boom, lambda: True, stopped.append)

    assert isinstance(scheduler.last_error, RuntimeError)
    assert stopped == [scheduler.last_error]
    assert clock.pending == 0
    assert "Frame cycle failed: decoder exploded" in caplog.text


def test_failing_later_cycle_is_logged_and_stops_loop(caplog):
    clock = ManualFrameClock()
    scheduler = PlaybackScheduler(clock)
    stopped = []
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) == 2:
            raise RuntimeError("lost frame")

    scheduler.start(flaky, lambda: True, stopped.append)
    clock.tick()

    assert isinstance(scheduler.last_error, RuntimeError)
    assert stopped == [scheduler.last_error]
    assert clock.pending == 0
    assert "Frame cycle failed: lost frame" in caplog.text


def test_asyncio_clock_rejects_bad_rate():
    with pytest.raises(ValueError):
        AsyncioFrameClock(fps=0)


@pytest.mark.anyio
async def test_asyncio_clock_drives_cycles_on_the_event_loop():
    scheduler = PlaybackScheduler(AsyncioFrameClock(fps=200.0))
    cycles = []

    scheduler.start(lambda: cycles.append(1), lambda: len(cycles) < 5)
    for _ in range(200):
        if not scheduler.running:
            break
        await asyncio.sleep(0.01)

    assert len(cycles) == 5
    assert not scheduler.running
