"""
Frame sources - decoding of videos and still images into RGB frames.

Sources accept a filesystem path, an ``http(s)://`` URL, a ``data:`` URL or raw
encoded bytes. In-memory sources never touch the network. Every source draws
its current visual state into a ``FrameBuffer`` on request.
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Callable
import math
import mimetypes
import os
from pathlib import Path
import tempfile
import time
from typing import Literal, Protocol
from urllib.parse import unquote_to_bytes, urlparse

import cv2
from loguru import logger
import numpy as np
from numpy.typing import NDArray
import requests

from .errors import MediaLoadError, NoSourceError, UnsupportedMediaError
from .frame_buffer import FrameBuffer

MediaKind = Literal["video", "image"]
MediaInput = str | bytes | os.PathLike[str]

REQUEST_TIMEOUT_SECONDS = 15.0

# Beyond this many frames ahead a seek is cheaper than grabbing sequentially.
SEEK_AHEAD_FRAMES = 90

_IMAGE_SIGNATURES: tuple[bytes, ...] = (b"\x89PNG\r\n\x1a\n", b"\xff\xd8\xff", b"GIF87a", b"GIF89a", b"BM")
_MKV_SIGNATURE = b"\x1a\x45\xdf\xa3"
_STILL_IMAGE_BRANDS = frozenset({b"heic", b"heix", b"heif", b"mif1", b"avif"})


class FrameSource(Protocol):
    """Anything that can paint its current frame into a frame buffer."""

    kind: MediaKind
    width: int
    height: int

    @property
    def closed(self) -> bool: ...

    def draw(self, target: FrameBuffer) -> None: ...
    def release(self) -> None: ...


class PlayableSource(FrameSource, Protocol):
    """A frame source with its own playback clock."""

    @property
    def paused(self) -> bool: ...

    @property
    def current_time(self) -> float: ...

    @current_time.setter
    def current_time(self, value: float) -> None: ...

    def play(self) -> None: ...
    def pause(self) -> None: ...


def _describe(src: MediaInput) -> str:
    if isinstance(src, bytes):
        return f"<{len(src)} bytes>"
    text = os.fspath(src)
    if text.startswith("data:"):
        return text[: text.find(",") if "," in text else 32] + ",..."
    return text


def _is_remote(src: str) -> bool:
    return src.startswith(("http://", "https://"))


def decode_data_url(src: str) -> tuple[str | None, bytes]:
    """Split a ``data:`` URL into its MIME type and decoded payload."""
    header, sep, payload = src.partition(",")
    if not header.startswith("data:") or not sep:
        raise MediaLoadError("Malformed data URL", src=_describe(src))
    params = header[len("data:"):].split(";")
    mime = params[0] or None
    try:
        if "base64" in params[1:]:
            return mime, base64.b64decode(payload, validate=False)
        return mime, unquote_to_bytes(payload)
    except ValueError as ex:
        raise MediaLoadError(f"Could not decode data URL payload: {ex}", src=_describe(src)) from ex


def _sniff_bytes(data: bytes) -> MediaKind | None:
    if data.startswith(_IMAGE_SIGNATURES):
        return "image"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image"
    if data[:4] == b"RIFF" and data[8:12] == b"AVI ":
        return "video"
    if data[4:8] == b"ftyp":
        # ISO-BMFF also carries HEIF and AVIF stills; the major brand tells them apart.
        return "image" if data[8:12] in _STILL_IMAGE_BRANDS else "video"
    if data.startswith(_MKV_SIGNATURE):
        return "video"
    return None


def _kind_from_mime(mime: str | None) -> MediaKind | None:
    if not mime:
        return None
    major = mime.split("/", 1)[0]
    if major == "video":
        return "video"
    if major == "image":
        return "image"
    return None


def guess_media_kind(src: MediaInput) -> MediaKind | None:
    """Guess whether ``src`` holds a video or an image.

    Uses the MIME type of data URLs, the extension of paths and URLs, and
    the leading signature of raw bytes. Returns None when unknown.
    """
    if isinstance(src, bytes):
        return _sniff_bytes(src)
    text = os.fspath(src)
    if text.startswith("data:"):
        mime = text[len("data:"):].split(",", 1)[0].split(";", 1)[0]
        return _kind_from_mime(mime)
    path = urlparse(text).path if _is_remote(text) else text
    mime, _ = mimetypes.guess_type(path)
    return _kind_from_mime(mime)


def _read_bytes(src: MediaInput) -> bytes:
    """Return the encoded bytes of an image source."""
    if isinstance(src, bytes):
        return src
    text = os.fspath(src)
    if text.startswith("data:"):
        return decode_data_url(text)[1]
    if _is_remote(text):
        try:
            response = requests.get(text, timeout=REQUEST_TIMEOUT_SECONDS)
            response.raise_for_status()
        except requests.RequestException as ex:
            raise MediaLoadError(f"Failed to fetch image: {ex}", src=text) from ex
        return response.content
    try:
        return Path(text).read_bytes()
    except OSError as ex:
        raise MediaLoadError(f"Failed to read image file: {ex}", src=text) from ex


class ImageSource:
    """A decoded still image."""

    kind: MediaKind = "image"

    def __init__(self, rgb: NDArray[np.uint8], label: str = "<array>") -> None:
        if rgb.ndim not in (2, 3) or rgb.shape[0] == 0 or rgb.shape[1] == 0:
            raise MediaLoadError(f"Image has no usable pixels (shape {rgb.shape})", src=label)
        self._frame: NDArray[np.uint8] | None = rgb
        self.label = label
        self.height, self.width = int(rgb.shape[0]), int(rgb.shape[1])

    @classmethod
    def from_array(cls, rgb: NDArray[np.uint8], label: str = "<array>") -> "ImageSource":
        """Wrap an already decoded RGB, RGBA or gray frame."""
        return cls(np.ascontiguousarray(rgb, dtype=np.uint8), label=label)

    @property
    def closed(self) -> bool:
        return self._frame is None

    def draw(self, target: FrameBuffer) -> None:
        if self._frame is None:
            raise NoSourceError("Image source has been released.")
        target.write_rgb(self._frame)

    def release(self) -> None:
        self._frame = None


def open_image(src: MediaInput) -> ImageSource:
    """Decode an image synchronously.

    Raises:
        MediaLoadError: If the data cannot be read or decoded
    """
    label = _describe(src)
    data = _read_bytes(src)
    buffer = np.frombuffer(data, dtype=np.uint8)
    bgr = cv2.imdecode(buffer, cv2.IMREAD_COLOR) if buffer.size else None
    if bgr is None:
        raise MediaLoadError("Image failed to decode, check that the format is supported (PNG, JPEG, WebP, BMP).", src=label)

    image = ImageSource(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB), label=label)
    logger.info("ImageSource: Loaded {} ({}x{}).", label, image.width, image.height)
    return image


class VideoSource:
    """A decoded video with a wall-clock driven playback position.

    The source starts paused at time 0. While playing, the frame returned by
    ``draw`` is the one whose timestamp matches the elapsed playback time. At
    the end of the media the source either loops or pauses itself and
    reports ``ended``.
    """

    kind: MediaKind = "video"

    def __init__(
        self,
        capture: cv2.VideoCapture,
        label: str,
        *,
        loop: bool = True,
        fallback_fps: float = 30.0,
        temp_path: Path | None = None,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._capture = capture
        self.label = label
        self.loop = loop
        self._temp_path = temp_path
        self._clock = clock

        ok, frame = capture.read()
        if not ok or frame is None:
            self.release()
            raise MediaLoadError(
                "Video failed to load, check that the format is supported (MP4, WebM, AVI).", src=label
            )
        self._frame: NDArray[np.uint8] | None = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        self._frame_index = 0
        self._next_index = 1
        self.height, self.width = int(frame.shape[0]), int(frame.shape[1])

        fps = float(capture.get(cv2.CAP_PROP_FPS) or 0.0)
        self.fps = fps if math.isfinite(fps) and fps > 0 else fallback_fps
        frame_count = int(capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0)
        self.frame_count: int | None = frame_count if frame_count > 0 else None

        self._paused = True
        self._ended = False
        self._position = 0.0
        self._anchor: float | None = None

    @property
    def closed(self) -> bool:
        return self._capture is None

    @property
    def duration(self) -> float | None:
        if self.frame_count is None:
            return None
        return self.frame_count / self.fps

    @property
    def paused(self) -> bool:
        self._check_end()
        return self._paused

    @property
    def ended(self) -> bool:
        self._check_end()
        return self._ended

    @property
    def current_time(self) -> float:
        if self._anchor is None:
            return self._position
        return self._position + (self._clock() - self._anchor)

    @current_time.setter
    def current_time(self, value: float) -> None:
        value = max(0.0, float(value))
        duration = self.duration
        if duration is not None:
            value = min(value, duration)
        self._position = value
        if self._anchor is not None:
            self._anchor = self._clock()
        self._ended = False

    def play(self) -> None:
        if self._capture is None:
            raise NoSourceError("Video source has been released.")
        if self._ended:
            self._position = 0.0
            self._ended = False
        if self._paused:
            self._anchor = self._clock()
            self._paused = False

    def pause(self) -> None:
        if not self._paused:
            self._position = self.current_time
        self._anchor = None
        self._paused = True

    def draw(self, target: FrameBuffer) -> None:
        if self._capture is None:
            raise NoSourceError("Video source has been released.")
        self._check_end()
        frame = self._frame_at(int(self.current_time * self.fps))
        target.write_rgb(frame)

    def release(self) -> None:
        if self._capture is not None:
            self._capture.release()
            self._capture = None
        self._frame = None
        self._anchor = None
        self._paused = True
        if self._temp_path is not None:
            self._temp_path.unlink(missing_ok=True)
            self._temp_path = None

    def _check_end(self) -> None:
        duration = self.duration
        if self._paused or duration is None:
            return
        elapsed = self.current_time
        if elapsed < duration:
            return
        if self.loop:
            self._position = math.fmod(elapsed, duration)
            self._anchor = self._clock()
        else:
            self._finish(duration)

    def _finish(self, at: float) -> None:
        self._position = at
        self._anchor = None
        self._paused = True
        self._ended = True
        logger.debug("VideoSource: {} reached its end.", self.label)

    def _frame_at(self, index: int) -> NDArray[np.uint8]:
        assert self._capture is not None
        if self.frame_count is not None:
            index = min(index, self.frame_count - 1)
        if index == self._frame_index and self._frame is not None:
            return self._frame

        if index < self._next_index or index - self._next_index > SEEK_AHEAD_FRAMES:
            self._capture.set(cv2.CAP_PROP_POS_FRAMES, index)
            self._next_index = index

        while self._next_index < index and self._capture.grab():
            self._next_index += 1

        ok, frame = self._capture.read()
        if not ok or frame is None:
            # Stream without a reliable frame count ran dry: learn its length.
            self.frame_count = max(1, self._next_index)
            self._check_end()
            assert self._frame is not None
            return self._frame

        self._next_index += 1
        self._frame_index = index
        self._frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        return self._frame


def _video_suffix(data: bytes, mime: str | None) -> str:
    if mime:
        suffix = mimetypes.guess_extension(mime)
        if suffix:
            return suffix
    if data[:4] == b"RIFF" and data[8:12] == b"AVI ":
        return ".avi"
    if data.startswith(_MKV_SIGNATURE):
        return ".mkv"
    return ".mp4"


def _spool_to_file(data: bytes, mime: str | None) -> Path:
    suffix = _video_suffix(data, mime)
    with tempfile.NamedTemporaryFile(prefix="asciiplayer-", suffix=suffix, delete=False) as handle:
        handle.write(data)
    return Path(handle.name)


def open_video(src: MediaInput, *, loop: bool = True, fallback_fps: float = 30.0) -> VideoSource:
    """Open a video synchronously.

    In-memory videos (bytes or data URLs) are spooled to a temporary file
    that is removed when the source is released.

    Raises:
        MediaLoadError: If the video cannot be opened or yields no frame
    """
    label = _describe(src)
    temp_path: Path | None = None

    if isinstance(src, bytes):
        temp_path = _spool_to_file(src, None)
        target = str(temp_path)
    else:
        text = os.fspath(src)
        if text.startswith("data:"):
            mime, data = decode_data_url(text)
            temp_path = _spool_to_file(data, mime)
            target = str(temp_path)
        elif _is_remote(text):
            target = text
        else:
            if not Path(text).is_file():
                raise MediaLoadError("Video file does not exist.", src=label)
            target = text

    capture = cv2.VideoCapture(target)
    if not capture.isOpened():
        capture.release()
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise MediaLoadError("Video failed to open, check that the format is supported (MP4, WebM, AVI).", src=label)

    video = VideoSource(capture, label, loop=loop, fallback_fps=fallback_fps, temp_path=temp_path)
    logger.info(
        "VideoSource: Loaded {} ({}x{} @ {:.2f} fps, {} frames).",
        label,
        video.width,
        video.height,
        video.fps,
        video.frame_count if video.frame_count is not None else "unknown",
    )
    return video


async def load_image(src: MediaInput) -> ImageSource:
    """Decode an image without blocking the event loop."""
    return await asyncio.to_thread(open_image, src)


async def load_video(src: MediaInput, *, loop: bool = True, fallback_fps: float = 30.0) -> VideoSource:
    """Open a video without blocking the event loop."""
    return await asyncio.to_thread(open_video, src, loop=loop, fallback_fps=fallback_fps)


async def load_media(
    src: MediaInput, *, loop: bool = True, fallback_fps: float = 30.0
) -> VideoSource | ImageSource:
    """Load ``src`` as a video or an image depending on its detected kind.

    Raises:
        UnsupportedMediaError: If ``src`` is neither a video nor an image
    """
    kind = guess_media_kind(src)
    if kind == "video":
        return await load_video(src, loop=loop, fallback_fps=fallback_fps)
    if kind == "image":
        return await load_image(src)
    raise UnsupportedMediaError(f"Select a video (MP4, WebM, MOV) or image (PNG, JPG, WebP) file, got {_describe(src)}")
