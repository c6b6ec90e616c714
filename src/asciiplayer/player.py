"""
ASCII player - converts video or image sources into glyph grids.

The player owns one session at a time: a frame source bound to an offscreen
frame buffer, a palette and a playback state. Videos are converted once per
frame clock tick while they play; images are converted once when set.
"""

from __future__ import annotations

from collections.abc import Callable
import math
from typing import Any

from loguru import logger

from .config import PlayerConfig
from .errors import NoSourceError, NoVideoLoadedError, UnsupportedMediaError
from .frame_buffer import FrameBuffer
from .mapper import GlyphGrid, Palette, map_grid
from .sampler import sample_luminance
from .scheduler import AsyncioFrameClock, FrameClock, PlaybackScheduler, PlaybackState
from . import sources
from .sources import FrameSource, ImageSource, MediaInput, PlayableSource, VideoSource

FrameCallback = Callable[[GlyphGrid], None]


class AsciiPlayer:
    """Plays a video or converts an image as a grid of text glyphs.

    Example:
        >>> player = AsciiPlayer(step=4, chars="@%#*+=-:. ")
        >>> video = await player.load_video("clip.mp4")
        >>> player.set_video(video)
        >>> player.play(lambda grid: print(grid_to_text(grid)))

    Options given as keywords override the matching fields of ``config``.
    """

    def __init__(
        self,
        config: PlayerConfig | None = None,
        *,
        clock: FrameClock | None = None,
        **options: Any,
    ) -> None:
        config = config or PlayerConfig()
        self._config = config.with_updates(**options) if options else config
        self._palette = Palette(self._config.chars)
        self._pending_chars: str | None = None

        self._scheduler = PlaybackScheduler(clock or AsyncioFrameClock(self._config.refresh_rate))
        self._buffer = FrameBuffer()
        self._source: FrameSource | None = None
        self._data: GlyphGrid = []
        self._on_frame: FrameCallback | None = None
        self._state = PlaybackState.IDLE

    # Properties

    @property
    def config(self) -> PlayerConfig:
        return self._config

    @property
    def palette(self) -> Palette:
        return self._palette

    @property
    def frame_buffer(self) -> FrameBuffer:
        return self._buffer

    @property
    def source(self) -> FrameSource | None:
        return self._source

    @property
    def scheduler(self) -> PlaybackScheduler:
        return self._scheduler

    @property
    def last_frame(self) -> GlyphGrid:
        """The most recent glyph grid, valid until the next cycle replaces it."""
        return self._data

    @property
    def state(self) -> PlaybackState:
        if self._state is PlaybackState.PLAYING and not self.is_playing():
            self._state = PlaybackState.PAUSED
        return self._state

    def is_playing(self) -> bool:
        source = self._video_or_none()
        return source is not None and not source.paused

    # Loading

    async def load_video(self, src: MediaInput) -> VideoSource:
        """Open a video; does not change the current session."""
        return await sources.load_video(src, loop=self._config.loop, fallback_fps=self._config.fallback_fps)

    async def load_image(self, src: MediaInput) -> ImageSource:
        """Decode an image; does not change the current session."""
        return await sources.load_image(src)

    async def open(self, src: MediaInput) -> FrameSource:
        """Load ``src`` and make it the active session.

        The current session is left untouched if loading fails.
        """
        source = await sources.load_media(src, loop=self._config.loop, fallback_fps=self._config.fallback_fps)
        if source.kind == "video":
            self.set_video(source)
        else:
            self.set_image(source)
        return source

    def set_video(self, video: PlayableSource) -> None:
        """Make ``video`` the active session, releasing any previous source."""
        if getattr(video, "kind", None) != "video":
            raise UnsupportedMediaError("set_video() requires a video source.")
        self._check_open(video)
        self._attach(video)
        logger.info("AsciiPlayer: Video session ready ({}x{}).", video.width, video.height)

    def set_image(self, image: FrameSource) -> None:
        """Make ``image`` the active session and convert it once."""
        if getattr(image, "kind", None) != "image":
            raise UnsupportedMediaError("set_image() requires an image source.")
        self._check_open(image)
        # Draw before teardown so a failing image leaves the current session intact.
        prepared = FrameBuffer()
        prepared.resize(image.width, image.height)
        image.draw(prepared)
        self._attach(image, prepared)
        self.process_image()
        logger.info("AsciiPlayer: Image converted to {} rows.", len(self._data))

    def process_image(self) -> GlyphGrid:
        """Recompute the grid of the current image with the current settings."""
        source = self._require_source()
        if source.kind != "image":
            raise UnsupportedMediaError("process_image() requires an image session.")
        self._convert()
        self._state = PlaybackState.CONVERTED
        return self._data

    # Playback

    def play(self, on_frame: FrameCallback | None = None) -> None:
        """Start the video and deliver a new grid to ``on_frame`` each clock tick.

        Raises:
            NoSourceError: If no source is set
            NoVideoLoadedError: If the session holds an image
            Exception: Whatever the first frame cycle raises, such as an error from
                ``on_frame``. Playback is paused before it propagates
        """
        video = self._require_video()
        self._on_frame = on_frame
        if self._scheduler.running and not video.paused:
            return

        video.play()
        self._state = PlaybackState.PLAYING
        logger.debug("AsciiPlayer: Playback started.")
        self._scheduler.start(self._render_cycle, self.is_playing, self._on_loop_stopped)

    def pause(self) -> None:
        video = self._video_or_none()
        if video is not None:
            video.pause()
        self._scheduler.cancel()
        if self._state is PlaybackState.PLAYING:
            self._state = PlaybackState.PAUSED

    def stop(self) -> None:
        """Pause and rewind to the start. Leaves the session loaded."""
        video = self._video_or_none()
        if video is not None:
            video.pause()
            video.current_time = 0
        self._scheduler.cancel()
        if self._state in (PlaybackState.PLAYING, PlaybackState.PAUSED):
            self._state = PlaybackState.LOADED

    def get_frame(self) -> GlyphGrid:
        """Return a grid for the current frame.

        Videos are captured and converted on demand; images return the grid
        computed by the last ``process_image``.
        """
        source = self._require_source()
        if source.kind == "video":
            self._update_ascii_data()
        return self._data

    # Settings

    def set_step(self, step: float) -> None:
        """Change the block size; takes effect on the next cycle."""
        self._config = self._config.with_updates(step=max(1, math.floor(step)))

    def set_threshold(self, threshold: float | None) -> None:
        self._config = self._config.with_updates(threshold=threshold)

    def set_invert(self, invert: bool) -> None:
        self._config = self._config.with_updates(invert=bool(invert))

    def set_chars(self, chars: str) -> None:
        """Replace the palette.

        The palette is fixed for a session, so while a source is set the new
        glyphs are used from the next ``set_video``/``set_image`` on.
        """
        Palette(chars)
        if self._source is None:
            self._apply_chars(chars)
        else:
            self._pending_chars = chars
            logger.info("AsciiPlayer: New palette will apply to the next session.")

    # Teardown

    def destroy(self) -> None:
        """Release the source, the frame buffer and the last grid. Idempotent."""
        self._teardown_session()
        self._buffer.release()
        self._data = []
        self._state = PlaybackState.IDLE

    def __enter__(self) -> "AsciiPlayer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.destroy()

    # Internals

    def _check_open(self, source: FrameSource) -> None:
        if source.closed:
            raise NoSourceError("The source has been released; load it again.")

    def _attach(self, source: FrameSource, prepared: FrameBuffer | None = None) -> None:
        if source is not self._source:
            self._teardown_session()
        else:
            self.stop()
        if self._pending_chars is not None:
            self._apply_chars(self._pending_chars)
            self._pending_chars = None

        self._source = source
        if prepared is not None:
            self._buffer.release()
            self._buffer = prepared
        elif self._buffer.resize(source.width, source.height):
            logger.debug("AsciiPlayer: Frame buffer resized to {}x{}.", source.width, source.height)
        self._data = []
        self._state = PlaybackState.LOADED

    def _teardown_session(self) -> None:
        source = self._source
        if source is None:
            self._scheduler.cancel()
            self._on_frame = None
            return
        self.stop()
        self._on_frame = None
        self._source = None
        source.release()
        logger.debug("AsciiPlayer: Released previous source.")

    def _apply_chars(self, chars: str) -> None:
        self._config = self._config.with_updates(chars=chars)
        self._palette = Palette(chars)

    def _require_source(self) -> FrameSource:
        if self._source is None:
            raise NoSourceError("No video loaded. Call set_video() first.")
        return self._source

    def _require_video(self) -> PlayableSource:
        source = self._require_source()
        if source.kind != "video":
            raise NoVideoLoadedError("The current session holds an image; play() needs a video.")
        return source  # type: ignore[return-value]

    def _video_or_none(self) -> PlayableSource | None:
        if self._source is not None and self._source.kind == "video":
            return self._source  # type: ignore[return-value]
        return None

    def _render_cycle(self) -> None:
        self._update_ascii_data()
        if self._on_frame is not None:
            self._on_frame(self._data)

    def _on_loop_stopped(self, error: Exception | None) -> None:
        if error is not None:
            video = self._video_or_none()
            if video is not None:
                video.pause()
        if self._state is PlaybackState.PLAYING:
            self._state = PlaybackState.PAUSED

    def _update_ascii_data(self) -> None:
        source = self._require_source()
        if self._buffer.resize(source.width, source.height):
            logger.debug("AsciiPlayer: Source changed size, frame buffer now {}x{}.", source.width, source.height)
        source.draw(self._buffer)
        self._convert()

    def _convert(self) -> None:
        config = self._config
        values = sample_luminance(self._buffer.pixels, config.step, config.luminance)
        self._data = map_grid(values, self._palette, config.resolved_threshold, config.invert)
