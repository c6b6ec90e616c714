"""Terminal front end: plays a video or prints an image as ASCII art."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
import sys
from typing import Any

from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.live import Live
from rich.text import Text

from .config import PlayerConfig
from .errors import AsciiPlayerError
from .mapper import GlyphGrid, grid_to_text
from .player import AsciiPlayer
from .sampler import step_for_columns
from .scheduler import AsyncioFrameClock
from .sources import load_media

POLL_INTERVAL_SECONDS = 0.1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="asciiplayer", description="Play a video or show an image as ASCII art.")
    parser.add_argument("source", help="Path, http(s) URL or data URL of a video or image")
    parser.add_argument("--config", type=Path, help="YAML file with an 'AsciiPlayer' section")
    parser.add_argument("--step", type=int, help="Block size in pixels per glyph")
    parser.add_argument("--columns", type=int, help="Pick the block size that gives about this many glyphs per row")
    parser.add_argument("--chars", help="Palette, darkest glyph first")
    parser.add_argument("--threshold", type=float, help="Brightness above which blocks are drawn at full brightness")
    parser.add_argument("--invert", action="store_true", default=None, help="Invert brightness")
    parser.add_argument("--weighted", action="store_true", help="Use weighted RGB luminance instead of the red channel")
    parser.add_argument("--no-loop", dest="loop", action="store_false", default=None, help="Stop at the end of a video")
    parser.add_argument("--fps", type=float, help="Render rate; defaults to the video's own frame rate")
    parser.add_argument("--output", type=Path, help="Write an image's ASCII text to this file instead of printing it")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR"],
        help="Log level for messages on stderr",
    )
    return parser


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    options: dict[str, Any] = {}
    for name in ("step", "chars", "threshold", "invert", "loop"):
        value = getattr(args, name)
        if value is not None:
            options[name] = value
    if args.weighted:
        options["luminance"] = "weighted"
    return options


async def _play_video(player: AsciiPlayer, console: Console) -> None:
    with Live(console=console, auto_refresh=False, transient=True) as live:

        def on_frame(grid: GlyphGrid) -> None:
            live.update(Text(grid_to_text(grid)), refresh=True)

        player.play(on_frame)
        while player.is_playing():
            await asyncio.sleep(POLL_INTERVAL_SECONDS)

    if player.scheduler.last_error is not None:
        raise player.scheduler.last_error


async def run(player: AsciiPlayer, args: argparse.Namespace, console: Console) -> None:
    config = player.config
    source = await load_media(args.source, loop=config.loop, fallback_fps=config.fallback_fps)
    if args.columns:
        player.set_step(step_for_columns(source.width, args.columns))

    if source.kind == "image":
        player.set_image(source)
        text = grid_to_text(player.last_frame)
        if args.output:
            args.output.write_text(text + "\n", encoding="utf-8")
            logger.success("Wrote {} rows to {}.", len(player.last_frame), args.output)
        else:
            console.print(Text(text))
        return

    player.set_video(source)
    clock = player.scheduler.clock
    if isinstance(clock, AsyncioFrameClock):
        clock.set_rate(args.fps or source.fps)
    await _play_video(player, console)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logger.remove()
    logger.add(sys.stderr, level=args.log_level)

    console = Console()
    try:
        config = PlayerConfig.from_yaml(args.config) if args.config else PlayerConfig()
        player = AsciiPlayer(config, **_overrides(args))
    except (OSError, KeyError, ValidationError) as ex:
        logger.error("Invalid configuration: {}", ex)
        return 2

    try:
        asyncio.run(run(player, args, console))
    except KeyboardInterrupt:
        logger.info("Interrupted, stopping playback.")
    except AsciiPlayerError as ex:
        logger.error("{}", ex)
        return 1
    finally:
        player.destroy()
    return 0
