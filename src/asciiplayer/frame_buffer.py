"""Offscreen RGBA frame buffer that sources draw into before sampling."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray


class FrameBuffer:
    """Offscreen RGBA pixel surface owned by a single player session.

    Pixels are stored row-major as ``height x width x 4`` uint8 values. The
    array is reallocated only when the requested dimensions change.
    """

    CHANNELS = 4

    def __init__(self) -> None:
        self._pixels: NDArray[np.uint8] = np.zeros((0, 0, self.CHANNELS), dtype=np.uint8)

    @property
    def width(self) -> int:
        return int(self._pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self._pixels.shape[0])

    @property
    def pixels(self) -> NDArray[np.uint8]:
        return self._pixels

    @property
    def is_allocated(self) -> bool:
        return self._pixels.size > 0

    def resize(self, width: int, height: int) -> bool:
        """Size the surface to ``width x height``.

        Returns:
            True if a new array was allocated, False if the size was unchanged
        """
        if width < 0 or height < 0:
            raise ValueError(f"Frame buffer dimensions must be non-negative, got {width}x{height}")
        if (width, height) == (self.width, self.height):
            return False
        self._pixels = np.zeros((height, width, self.CHANNELS), dtype=np.uint8)
        return True

    def write_rgb(self, rgb: NDArray[np.uint8]) -> None:
        """Copy an RGB or RGBA frame of matching size into the surface."""
        height, width = rgb.shape[:2]
        if (width, height) != (self.width, self.height):
            raise ValueError(
                f"Frame of {width}x{height} does not fit a {self.width}x{self.height} buffer"
            )
        if rgb.ndim == 2:
            self._pixels[..., :3] = rgb[..., np.newaxis]
            self._pixels[..., 3] = 255
        elif rgb.shape[2] == 3:
            self._pixels[..., :3] = rgb
            self._pixels[..., 3] = 255
        else:
            self._pixels[...] = rgb[..., : self.CHANNELS]

    def release(self) -> None:
        """Drop the pixel array, leaving a 0x0 surface."""
        self._pixels = np.zeros((0, 0, self.CHANNELS), dtype=np.uint8)
