"""Brightness to glyph mapping."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
import math

import numpy as np
from numpy.typing import NDArray

GlyphGrid = list[list[str]]


class Palette(Sequence[str]):
    """Immutable ordered glyph set, index 0 is the darkest glyph."""

    __slots__ = ("_glyphs",)

    def __init__(self, chars: str | Sequence[str]) -> None:
        glyphs = tuple(chars)
        if len(glyphs) < 2:
            raise ValueError(f"A palette needs at least 2 glyphs, got {len(glyphs)}")
        if any(len(glyph) != 1 for glyph in glyphs):
            raise ValueError("Palette glyphs must be single characters")
        self._glyphs = glyphs

    def __getitem__(self, index):  # type: ignore[override]
        return self._glyphs[index]

    def __len__(self) -> int:
        return len(self._glyphs)

    def __iter__(self) -> Iterator[str]:
        return iter(self._glyphs)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Palette):
            return self._glyphs == other._glyphs
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._glyphs)

    def __repr__(self) -> str:
        return f"Palette({''.join(self._glyphs)!r})"

    def __str__(self) -> str:
        return "".join(self._glyphs)


def glyph_index(value: float, length: int, threshold: float, invert: bool = False) -> int:
    """Return the palette index for a single brightness value."""
    if invert:
        value = 255 - value
    if value > threshold:
        value = 255
    index = math.floor((value / 255) * (length - 1))
    return min(max(index, 0), length - 1)


def map_value(value: float, palette: Palette, threshold: float, invert: bool = False) -> str:
    """Map one brightness value in ``[0, 255]`` to its glyph."""
    return palette[glyph_index(value, len(palette), threshold, invert)]


def map_indices(
    values: NDArray[np.float64],
    length: int,
    threshold: float,
    invert: bool = False,
) -> NDArray[np.intp]:
    """Vectorised ``glyph_index`` over a whole brightness grid."""
    levels = np.asarray(values, dtype=np.float64)
    if invert:
        levels = 255 - levels
    levels = np.where(levels > threshold, 255.0, levels)
    indices = np.floor((levels / 255) * (length - 1)).astype(np.intp)
    return np.clip(indices, 0, length - 1)


def map_grid(
    values: NDArray[np.float64],
    palette: Palette,
    threshold: float,
    invert: bool = False,
) -> GlyphGrid:
    """Convert a brightness grid into rows of glyphs."""
    indices = map_indices(values, len(palette), threshold, invert)
    glyphs = np.asarray(tuple(palette), dtype=object)
    return glyphs[indices].tolist()


def grid_to_text(grid: GlyphGrid) -> str:
    """Join a glyph grid into newline separated lines."""
    return "\n".join("".join(row) for row in grid)
