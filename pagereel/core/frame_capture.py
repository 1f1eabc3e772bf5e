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

"""Frame-by-frame capture of a page animation.

The capture loop takes a PNG still of the page on every iteration and stops
once the page reports ``window.animationFinished === true``, but never
before the minimum run time has passed. Frames are written as
``frame_0000.png``, ``frame_0001.png``, ... and the run ends with a summary
that includes the ffmpeg command turning the sequence into a video.

Lifecycle:
    INIT       output directory emptied
    ARMED      page open, readiness marker present, settle delay observed
    CAPTURING  sample, check flag, sleep, repeat
    DONE       summary computed and logged
"""

from __future__ import annotations

import asyncio
import shutil
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

from pagereel.config import CaptureConfig
from pagereel.core.page import PageController
from pagereel.exceptions import OutputError
from pagereel.utils.logger import logger

FRAME_PATTERN = "frame_%04d.png"


class CaptureState(str, Enum):
    """State of a frame capture run."""
    INIT = "init"
    ARMED = "armed"
    CAPTURING = "capturing"
    DONE = "done"


@dataclass
class CaptureSession:
    """Mutable state of one pass through the capture loop.

    Times are monotonic clock readings in seconds; budgets are milliseconds.
    """

    start_time: float
    min_duration_ms: int = 5000
    max_duration_ms: Optional[int] = 60000
    sample_interval_ms: int = 10
    frame_count: int = 0
    finished: bool = False
    timed_out: bool = False

    def elapsed_ms(self, now: float) -> float:
        """Milliseconds since the session started."""
        return (now - self.start_time) * 1000

    def should_stop(self, elapsed_ms: float) -> bool:
        """Decide whether the loop ends after the frame just taken.

        The finished flag only counts once the minimum run time has passed.
        Hitting the maximum run time marks the session as timed out.
        """
        if self.finished and elapsed_ms > self.min_duration_ms:
            return True
        if self.max_duration_ms is not None and elapsed_ms >= self.max_duration_ms:
            self.timed_out = True
            return True
        return False


@dataclass
class CaptureSummary:
    """Outcome of a frame capture run."""

    frame_count: int
    duration_seconds: float
    output_dir: str
    finished: bool = True
    timed_out: bool = False
    target_fps: int = 30

    @property
    def actual_framerate(self) -> float:
        """Frames captured per second of wall time."""
        if self.duration_seconds <= 0:
            return 0.0
        return self.frame_count / self.duration_seconds

    def ffmpeg_command(
        self, target_fps: Optional[int] = None, output: str = "output.mp4"
    ) -> str:
        """Command that encodes the frame sequence at the observed source rate."""
        pattern = Path(self.output_dir, FRAME_PATTERN).as_posix()
        return (
            f"ffmpeg -framerate {self.actual_framerate:.3f} -i {pattern} "
            f"-c:v libx264 -r {target_fps or self.target_fps} -pix_fmt yuv420p {output}"
        )


def frame_path(output_dir: Union[str, Path], index: int) -> Path:
    """Path of the frame with the given zero-based index."""
    return Path(output_dir) / (FRAME_PATTERN % index)


def prepare_output_dir(output_dir: Union[str, Path]) -> Path:
    """Create ``output_dir`` if needed and empty it, keeping the directory itself.

    A symlink to a directory is followed and its target emptied.

    Raises:
        OutputError: If the path is not a directory or cannot be emptied
    """
    path = Path(output_dir)
    try:
        path.mkdir(parents=True, exist_ok=True)
        for child in path.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
    except OSError as e:
        raise OutputError(f"Cannot prepare output directory {path}: {e}") from e
    return path


class FrameCaptureLoop:
    """Capture PNG frames of the page until its animation reports completion.

    The loop polls: each iteration reads the finished flag, writes one
    still, and sleeps ``sample_interval_ms``. The sleep is much shorter than
    the nominal frame period, so the real frame rate is whatever the browser
    sustains and is reported in the summary.

    Capture and flag failures are not retried; they close the page and
    propagate.

    Example:
        >>> loop = FrameCaptureLoop(CaptureConfig(output_dir="frames"))
        >>> summary = await loop.run()
        >>> print(summary.ffmpeg_command())
    """

    def __init__(
        self,
        config: Optional[CaptureConfig] = None,
        page: Optional[PageController] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.config = config or CaptureConfig()
        self.page = page or PageController(self.config.page)
        self.state = CaptureState.INIT
        self._clock = clock
        self._sleep = sleep

    async def run(self) -> CaptureSummary:
        """Run the full INIT -> ARMED -> CAPTURING -> DONE lifecycle."""
        self.state = CaptureState.INIT
        output_dir = prepare_output_dir(self.config.output_dir)
        logger.info(f"[CAPTURE] Frames will be written to {output_dir}")

        async with self.page:
            self.state = CaptureState.ARMED
            # Let layout settle before the first frame
            await self._sleep(self.config.settle_delay_ms / 1000)
            summary = await self.capture()

        logger.info(f"[CAPTURE] Capture complete! {summary.frame_count} frames saved.")
        return summary

    async def capture(self) -> CaptureSummary:
        """Run the capture loop against an already open page."""
        config = self.config
        self.state = CaptureState.CAPTURING
        session = CaptureSession(
            start_time=self._clock(),
            min_duration_ms=config.min_duration_ms,
            max_duration_ms=config.max_duration_ms,
            sample_interval_ms=config.sample_interval_ms,
        )
        logger.info("[CAPTURE] Capturing frames until animationFinished = true...")

        while True:
            elapsed_ms = session.elapsed_ms(self._clock())
            session.finished = await self.page.is_finished()

            await self.page.capture_still(frame_path(config.output_dir, session.frame_count))
            session.frame_count += 1

            if session.should_stop(elapsed_ms):
                break

            await self._sleep(session.sample_interval_ms / 1000)

        if session.timed_out:
            logger.warning(
                f"[CAPTURE] Animation did not finish within {session.max_duration_ms}ms, "
                f"stopping capture"
            )
        else:
            logger.info("[CAPTURE] Animation finished! Stopping capture.")

        summary = CaptureSummary(
            frame_count=session.frame_count,
            duration_seconds=self._clock() - session.start_time,
            output_dir=str(config.output_dir),
            finished=session.finished,
            timed_out=session.timed_out,
            target_fps=config.target_fps,
        )
        self.state = CaptureState.DONE
        self._log_summary(summary)
        return summary

    def _log_summary(self, summary: CaptureSummary) -> None:
        logger.info(
            f"[CAPTURE] Total Duration: {summary.duration_seconds:.2f} seconds\n"
            f"  Frame Count: {summary.frame_count}\n"
            f"  Actual Framerate: {summary.actual_framerate:.3f} FPS (nominal {self.config.nominal_fps})"
        )
        logger.info(f"[CAPTURE] Suggested FFmpeg command:\n  {summary.ffmpeg_command()}")
