from __future__ import annotations

from _pytest.logging import LogCaptureFixture
from loguru import logger
import numpy as np
from numpy.typing import NDArray
import pytest

from asciiplayer.frame_buffer import FrameBuffer


@pytest.fixture
def caplog(caplog: LogCaptureFixture):
    """Route loguru records into pytest's caplog."""
    handler_id = logger.add(
        caplog.handler,
        format="{message}",
        level=0,
        filter=lambda record: record["level"].no >= caplog.handler.level,
        enqueue=False,
    )
    yield caplog
    logger.remove(handler_id)


class FakeVideo:
    """In-memory video that advances one frame per draw and ends after the last one."""

    kind = "video"

    def __init__(self, frames: list[NDArray[np.uint8]], loop: bool = False) -> None:
        self.frames = frames
        self.height, self.width = frames[0].shape[:2]
        self.loop = loop
        self.index = 0
        self.draws = 0
        self.released = False
        self._paused = True

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def current_time(self) -> float:
        return float(self.index)

    @current_time.setter
    def current_time(self, value: float) -> None:
        self.index = int(value)

    def play(self) -> None:
        self._paused = False

    def pause(self) -> None:
        self._paused = True

    def draw(self, target: FrameBuffer) -> None:
        target.write_rgb(self.frames[self.index])
        self.draws += 1
        self.index += 1
        if self.index >= len(self.frames):
            if self.loop:
                self.index = 0
            else:
                self.index = len(self.frames) - 1
                self._paused = True

    @property
    def closed(self) -> bool:
        return self.released

    def release(self) -> None:
        self.released = True


def solid_frame(width: int, height: int, value: int) -> NDArray[np.uint8]:
    return np.full((height, width, 3), value, dtype=np.uint8)


@pytest.fixture
def make_video():
    def factory(count: int = 3, width: int = 4, height: int = 4, loop: bool = False) -> FakeVideo:
        frames = [solid_frame(width, height, (index * 80) % 256) for index in range(count)]
        return FakeVideo(frames, loop=loop)

    return factory


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
