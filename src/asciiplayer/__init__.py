"""asciiplayer - plays videos and images as grids of text glyphs."""

from .config import PlayerConfig
from .errors import (
    AsciiPlayerError,
    MediaLoadError,
    NoSourceError,
    NoVideoLoadedError,
    UnsupportedMediaError,
)
from .mapper import Palette, grid_to_text
from .player import AsciiPlayer
from .scheduler import AsyncioFrameClock, ManualFrameClock, PlaybackState

__version__ = "0.1.0"
__all__ = [
    "AsciiPlayer",
    "AsciiPlayerError",
    "AsyncioFrameClock",
    "ManualFrameClock",
    "MediaLoadError",
    "NoSourceError",
    "NoVideoLoadedError",
    "Palette",
    "PlaybackState",
    "PlayerConfig",
    "UnsupportedMediaError",
    "grid_to_text",
]
