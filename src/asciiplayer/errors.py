"""Exception types raised by the ASCII player."""

from __future__ import annotations


class AsciiPlayerError(Exception):
    """Base class for all player errors."""


class MediaLoadError(AsciiPlayerError):
    """Raised when a video or image cannot be decoded or reports no metadata."""

    def __init__(self, message: str, src: str | None = None) -> None:
        super().__init__(message)
        self.src = src


class NoSourceError(AsciiPlayerError):
    """Raised when an operation needs an active source and none is set."""


class UnsupportedMediaError(AsciiPlayerError):
    """Raised when a source decodes but does not fit the requested operation."""


class NoVideoLoadedError(UnsupportedMediaError):
    """Raised by video-only operations on an image session."""
