"""
Player configuration - Pydantic models and YAML loading.

The sampling configuration controls both the output resolution and the
brightness-to-glyph mapping. It can be built directly, from keyword options
on ``AsciiPlayer``, or loaded from a YAML file.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_CHARS = "@%#*+=-:. "


def default_threshold(chars: str) -> int:
    """Return the saturation threshold used when none is configured."""
    length = len(chars)
    return math.floor(255 * ((length - 1) / length))


class PlayerConfig(BaseModel):
    """
    Sampling and playback settings for an ``AsciiPlayer``.

    Attributes:
        chars (str): Palette string, darkest glyph first
        step (int): Block size in source pixels for one output glyph
        threshold (float | None): Blocks brighter than this are forced to full brightness.
            ``None`` selects ``floor(255 * (L - 1) / L)`` for a palette of length ``L``
        invert (bool): Map ``v`` to ``255 - v`` before thresholding
        luminance (str): ``"red"`` samples the first channel only, ``"weighted"``
            uses BT.601 RGB weights
        loop (bool): Restart videos when they reach their end
        fallback_fps (float): Frame rate used when a video does not report one
        refresh_rate (float): Ticks per second of the default asyncio frame clock
    """

    chars: str = Field(default=DEFAULT_CHARS, min_length=2)
    step: int = Field(default=2, ge=1)
    threshold: float | None = Field(default=None, ge=0, le=255)
    invert: bool = False
    luminance: Literal["red", "weighted"] = "red"
    loop: bool = True
    fallback_fps: float = Field(default=30.0, gt=0.0)
    refresh_rate: float = Field(default=60.0, gt=0.0)

    @field_validator("chars")
    @classmethod
    def _no_line_breaks(cls, value: str) -> str:
        if "\n" in value:
            raise ValueError("chars must not contain line breaks")
        return value

    @property
    def resolved_threshold(self) -> float:
        """The configured threshold, or the palette-derived default."""
        if self.threshold is None:
            return default_threshold(self.chars)
        return self.threshold

    def with_updates(self, **updates: Any) -> "PlayerConfig":
        """Return a validated copy with ``updates`` applied."""
        return type(self).model_validate({**self.model_dump(), **updates})

    @classmethod
    def from_yaml(
        cls,
        path: str | Path,
        key_to_config: tuple[str, ...] = ("AsciiPlayer",),
    ) -> "PlayerConfig":
        """
        Load a PlayerConfig from a YAML file.

        Parameters:
            path (str | Path): Path to the YAML configuration file
            key_to_config (tuple[str, ...]): Keys to walk down to reach the player
                section. Defaults to ``("AsciiPlayer",)``

        Returns:
            PlayerConfig: The validated configuration

        Raises:
            OSError: If the file cannot be read
            KeyError: If a navigation key is missing
            pydantic.ValidationError: If a value is out of range
        """
        path = Path(path)

        for encoding in ["utf-8", "utf-8-sig"]:
            try:
                data = yaml.safe_load(path.read_text(encoding=encoding))
                break
            except UnicodeDecodeError:
                if encoding == "utf-8-sig":
                    raise

        config = data
        for key in key_to_config:
            config = config[key]

        return cls.model_validate(config or {})
