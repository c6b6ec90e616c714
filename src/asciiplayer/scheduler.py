"""Cooperative render loop driven by a host frame clock."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Hashable
from enum import Enum
from functools import partial
import itertools
from typing import Any, Protocol

from loguru import logger


class PlaybackState(Enum):
    """Lifecycle states of a player session."""

    IDLE = "idle"
    LOADED = "loaded"
    PLAYING = "playing"
    PAUSED = "paused"
    CONVERTED = "converted"


class FrameClock(Protocol):
    """Host primitive that runs a callback before the next repaint."""

    def request(self, callback: Callable[[], None]) -> Hashable: ...
    def cancel(self, handle: Any) -> None: ...


class AsyncioFrameClock:
    """Frame clock backed by the running asyncio event loop.

    Callbacks run on the loop thread ``1 / fps`` seconds after they are
    requested, so the render loop yields to other tasks between frames.
    """

    def __init__(self, fps: float = 60.0, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self.set_rate(fps)
        self._loop = loop

    @property
    def interval(self) -> float:
        return self._interval

    def set_rate(self, fps: float) -> None:
        if fps <= 0:
            raise ValueError(f"Frame clock rate must be positive, got {fps}")
        self._interval = 1.0 / fps

    def request(self, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(self._interval, callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()


class ManualFrameClock:
    """Frame clock fired explicitly by calling ``tick``.

    Useful for hosts with their own repaint loop and for tests.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._pending: dict[int, Callable[[], None]] = {}

    @property
    def pending(self) -> int:
        return len(self._pending)

    def request(self, callback: Callable[[], None]) -> int:
        handle = next(self._ids)
        self._pending[handle] = callback
        return handle

    def cancel(self, handle: int) -> None:
        self._pending.pop(handle, None)

    def tick(self) -> int:
        """Run every callback requested before this call. Returns how many ran."""
        callbacks = list(self._pending.values())
        self._pending.clear()
        for callback in callbacks:
            callback()
        return len(callbacks)


class PlaybackScheduler:
    """Repeats a capture cycle once per clock tick while the source is active.

    Each ``start`` issues a fresh cancel token; a pending tick whose token is
    stale does nothing. The loop stops rescheduling on its own as soon as
    ``is_active`` returns False, and also when a cycle raises.
    """

    def __init__(self, clock: FrameClock) -> None:
        self._clock = clock
        self._token = 0
        self._handle: Hashable | None = None
        self.last_error: Exception | None = None
        self.cycles = 0

    @property
    def clock(self) -> FrameClock:
        return self._clock

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(
        self,
        cycle: Callable[[], None],
        is_active: Callable[[], bool],
        on_stop: Callable[[Exception | None], None] | None = None,
    ) -> None:
        """Run ``cycle`` now and then on every clock tick while ``is_active()``.

        Raises:
            Exception: Whatever the first cycle raised, after ``on_stop`` has run.
                Failures on later ticks are only logged and kept in ``last_error``.
        """
        self.cancel()
        self.last_error = None
        self._tick(self._token, cycle, is_active, on_stop)
        if self.last_error is not None:
            raise self.last_error

    def cancel(self) -> None:
        """Drop the pending tick. Safe to call at any time, including from a cycle."""
        self._token += 1
        if self._handle is not None:
            self._clock.cancel(self._handle)
            self._handle = None

    def _tick(
        self,
        token: int,
        cycle: Callable[[], None],
        is_active: Callable[[], bool],
        on_stop: Callable[[Exception | None], None] | None,
    ) -> None:
        self._handle = None
        if token != self._token:
            return

        if not is_active():
            logger.debug("PlaybackScheduler: Source stopped playing after {} cycles, render loop ended.", self.cycles)
            if on_stop is not None:
                on_stop(None)
            return

        try:
            cycle()
        except Exception as ex:
            self.last_error = ex
            logger.exception("PlaybackScheduler: Frame cycle failed: {}", ex)
            if on_stop is not None:
                on_stop(ex)
            return
        self.cycles += 1

        # The cycle may have paused or restarted playback through a callback.
        if token != self._token:
            return
        self._handle = self._clock.request(partial(self._tick, token, cycle, is_active, on_stop))
