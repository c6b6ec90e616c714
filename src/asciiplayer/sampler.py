"""Block-averaged brightness sampling of RGBA pixel buffers."""

from __future__ import annotations

from typing import Final, Literal

import numpy as np
from numpy.typing import NDArray

LuminanceMode = Literal["red", "weighted"]

# ITU-R BT.601 luma weights for R, G, B
BT601_WEIGHTS: Final[tuple[float, float, float]] = (0.299, 0.587, 0.114)


def grid_shape(width: int, height: int, step: int) -> tuple[int, int]:
    """Return ``(rows, columns)`` of the grid produced for a ``width x height`` source."""
    if step < 1:
        raise ValueError(f"step must be >= 1, got {step}")
    return -(-height // step), -(-width // step)


def step_for_columns(width: int, columns: int) -> int:
    """Pick the block size that yields roughly ``columns`` glyphs per row."""
    return max(1, round(width / max(1, columns)))


def _brightness_plane(pixels: NDArray[np.uint8], mode: LuminanceMode) -> NDArray[np.float64]:
    if pixels.ndim == 2:
        return pixels.astype(np.float64)
    if pixels.ndim != 3:
        raise ValueError(f"Expected an HxW or HxWxC pixel buffer, got shape {pixels.shape}")

    if mode == "weighted" and pixels.shape[2] >= 3:
        rgb = pixels[..., :3].astype(np.float64)
        return rgb @ np.asarray(BT601_WEIGHTS)
    if mode not in ("red", "weighted"):
        raise ValueError(f"Unknown luminance mode: {mode}")
    # Only the first (red) channel is sampled as a gray-scale approximation.
    return pixels[..., 0].astype(np.float64)


def sample_luminance(
    pixels: NDArray[np.uint8],
    step: int,
    mode: LuminanceMode = "red",
) -> NDArray[np.float64]:
    """Reduce a pixel buffer to a grid of block-averaged brightness values.

    Each output cell covers a ``step x step`` block of source pixels. Blocks
    clipped by the right or bottom edge are still divided by ``step * step``,
    so the missing pixels count as black.

    Args:
        pixels: Row-major buffer of shape ``(H, W, C)`` or ``(H, W)``, values 0-255
        step: Block size in pixels, at least 1
        mode: ``"red"`` samples channel 0, ``"weighted"`` uses BT.601 RGB weights

    Returns:
        Float array of shape ``(ceil(H / step), ceil(W / step))`` in ``[0, 255]``
    """
    plane = _brightness_plane(pixels, mode)
    height, width = plane.shape
    rows, cols = grid_shape(width, height, step)

    padded = np.zeros((rows * step, cols * step), dtype=np.float64)
    padded[:height, :width] = plane

    sums = padded.reshape(rows, step, cols, step).sum(axis=(1, 3))
    return sums / float(step * step)
