#!/usr/bin/env python3
# Copyright 2026 Firefly Software Solutions Inc
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
PageReel CLI.

Usage:
    pagereel frames [OPTIONS]     # Capture PNG frames until the animation finishes
    pagereel record [OPTIONS]     # Record the screen region to video with ffmpeg
    pagereel version              # Show version information

Environment Variables:
    PAGEREEL_URL           Target page URL (default: http://127.0.0.1:3000)
    PAGEREEL_OUTPUT_DIR    Output directory for frames or videos
    PAGEREEL_LOG_LEVEL     Log level (default: info)
    PAGEREEL_FFMPEG_PATH   Path to the ffmpeg binary
    PAGEREEL_AUDIO_DEVICE  Audio input device, "none" or empty to record without audio

Examples:
    # Capture frames from the default local page
    pagereel frames

    # Record with a custom region and no audio
    pagereel record --region 480x916+20+90 --audio-device none
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import platform
import re
import signal
import sys
from typing import Awaitable, List, Optional

from pagereel.config import (
    DEFAULT_AUDIO_DEVICE,
    DEFAULT_URL,
    AudioSource,
    CaptureConfig,
    EncoderConfig,
    PageConfig,
    RecordingConfig,
    ScreenRegion,
)
from pagereel.core.frame_capture import FrameCaptureLoop
from pagereel.core.recording import RecordingSessionController
from pagereel.exceptions import PageReelError
from pagereel.utils.logger import logger, setup_logger

EXIT_INTERRUPTED = 130

_REGION_RE = re.compile(r"^(\d+)x(\d+)\+(\d+)\+(\d+)$")


def get_version() -> str:
    """Get the PageReel version."""
    import pagereel
    return getattr(pagereel, "__version__", "unknown")


def parse_region(value: str) -> ScreenRegion:
    """Parse a ``WIDTHxHEIGHT+X+Y`` region argument."""
    match = _REGION_RE.match(value.strip())
    if not match:
        raise argparse.ArgumentTypeError(
            f"Invalid region '{value}', expected WIDTHxHEIGHT+X+Y (e.g. 480x916+20+90)"
        )
    width, height, x, y = (int(part) for part in match.groups())
    try:
        return ScreenRegion(x=x, y=y, width=width, height=height)
    except PageReelError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def run_session(coro: Awaitable) -> int:
    """
    Run a capture coroutine, turning interrupts and PageReel errors into exit codes.

    SIGINT and SIGTERM cancel the running session so its cleanup (encoder
    stop, browser close) runs before the process exits.
    """

    async def _main():
        loop = asyncio.get_running_loop()
        task = asyncio.current_task()
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, task.cancel)
                installed.append(sig)
            except (NotImplementedError, RuntimeError):
                # Windows event loops have no signal handler support
                pass
        try:
            return await coro
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)

    try:
        asyncio.run(_main())
    except (asyncio.CancelledError, KeyboardInterrupt):
        logger.warning("Interrupted, session resources released")
        return EXIT_INTERRUPTED
    except PageReelError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    return 0


def _page_config(args: argparse.Namespace, headless: bool) -> PageConfig:
    return PageConfig(
        url=args.url,
        ready_selector=args.ready_selector,
        headless=headless,
        browser_type=args.browser,
    )


def cmd_frames(args: argparse.Namespace) -> int:
    """Capture PNG frames until the animation finishes."""
    try:
        config = CaptureConfig(
            page=_page_config(args, headless=not args.headed),
            output_dir=args.output_dir or os.environ.get("PAGEREEL_OUTPUT_DIR", "frames"),
            settle_delay_ms=args.settle_ms,
            sample_interval_ms=args.interval_ms,
            min_duration_ms=args.min_duration_ms,
            max_duration_ms=args.max_duration_ms or None,
            target_fps=args.target_fps,
        )
    except PageReelError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    return run_session(FrameCaptureLoop(config).run())


def cmd_record(args: argparse.Namespace) -> int:
    """Record the page animation to video."""
    audio = None
    device = (args.audio_device or "").strip()
    if device and device.lower() != "none":
        audio = AudioSource(device=device, input_format=args.audio_format)
    try:
        config = RecordingConfig(
            page=_page_config(args, headless=False),
            encoder=EncoderConfig(
                ffmpeg_path=args.ffmpeg_path or None,
                grab_format=args.grab_format,
                display=args.display or ("desktop" if args.grab_format == "gdigrab" else ":0.0"),
                region=args.region,
                audio=audio,
            ),
            output_dir=args.output_dir or os.environ.get("PAGEREEL_OUTPUT_DIR", "."),
            pre_roll_ms=args.pre_roll_ms,
            post_roll_ms=args.post_roll_ms,
            finish_timeout_ms=args.timeout_ms,
        )
    except PageReelError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    return run_session(RecordingSessionController(config).run())


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    version = get_version()
    if args.json:
        info = {
            "pagereel": version,
            "python": platform.python_version(),
            "platform": platform.system(),
        }
        print(json.dumps(info, indent=2))
    else:
        print(f"PageReel {version}")
    return 0


def _add_page_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--url",
        default=os.environ.get("PAGEREEL_URL", DEFAULT_URL),
        help=f"Page to capture (default: {DEFAULT_URL})",
    )
    parser.add_argument(
        "--ready-selector",
        default="#chat-container",
        help="Selector that marks the page as ready (default: #chat-container)",
    )
    parser.add_argument(
        "--browser",
        default="chromium",
        choices=["chromium", "firefox", "webkit"],
        help="Browser engine (default: chromium)",
    )
    parser.add_argument(
        "-o", "--output-dir",
        default=None,
        help="Output directory (default: ./frames for frames, . for record)",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="pagereel",
        description="Record a web page animation to frames or video",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("PAGEREEL_LOG_LEVEL", "info"),
        choices=["debug", "info", "warning", "error", "critical"],
        help="Log level (default: info)",
    )
    subparsers = parser.add_subparsers(dest="command")

    frames = subparsers.add_parser("frames", help="Capture PNG frames until the animation finishes")
    _add_page_arguments(frames)
    frames.add_argument("--headed", action="store_true", help="Show the browser window")
    frames.add_argument("--settle-ms", type=int, default=1000,
                        help="Delay before the first frame (default: 1000)")
    frames.add_argument("--interval-ms", type=int, default=10,
                        help="Sleep between frames (default: 10)")
    frames.add_argument("--min-duration-ms", type=int, default=5000,
                        help="Never stop before this much time (default: 5000)")
    frames.add_argument("--max-duration-ms", type=int, default=60000,
                        help="Stop after this much time, 0 for no limit (default: 60000)")
    frames.add_argument("--target-fps", type=int, default=30,
                        help="Output rate in the suggested ffmpeg command (default: 30)")
    frames.set_defaults(func=cmd_frames)

    record = subparsers.add_parser("record", help="Record the screen region to video with ffmpeg")
    _add_page_arguments(record)
    record.add_argument("--timeout-ms", type=int, default=60000,
                        help="Give up if the animation has not finished (default: 60000)")
    record.add_argument("--pre-roll-ms", type=int, default=2000,
                        help="Delay before ffmpeg starts (default: 2000)")
    record.add_argument("--post-roll-ms", type=int, default=2000,
                        help="Delay after ffmpeg is stopped (default: 2000)")
    record.add_argument("--region", type=parse_region, default=ScreenRegion(),
                        help="Screen region WIDTHxHEIGHT+X+Y (default: 480x916+20+90)")
    record.add_argument("--grab-format", default="gdigrab", choices=["gdigrab", "x11grab"],
                        help="ffmpeg screen grabber (default: gdigrab)")
    record.add_argument("--display", default=None,
                        help="Grabber input (default: desktop for gdigrab, :0.0 for x11grab)")
    record.add_argument("--audio-device",
                        default=os.environ.get("PAGEREEL_AUDIO_DEVICE", DEFAULT_AUDIO_DEVICE),
                        help="Audio input device, 'none' or empty to disable audio")
    record.add_argument("--audio-format", default="dshow",
                        choices=["dshow", "pulse", "alsa", "avfoundation"],
                        help="ffmpeg audio input format (default: dshow)")
    record.add_argument("--ffmpeg-path", default=os.environ.get("PAGEREEL_FFMPEG_PATH"),
                        help="Path to ffmpeg (default: looked up on PATH)")
    record.set_defaults(func=cmd_record)

    version = subparsers.add_parser("version", help="Show version information")
    version.add_argument("--json", action="store_true", help="Output as JSON")
    version.set_defaults(func=cmd_version)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logger(level=args.log_level)

    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
