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
Direct screen-to-video recording of a page animation.

The RecordingSessionController opens the page in a visible browser window,
starts ffmpeg on the screen region the window occupies, waits for the page
to set ``window.animationFinished``, and shuts ffmpeg down cleanly.

Lifecycle:
    INIT -> ARMED       page open and ready, pre-roll delay observed
    ARMED -> RECORDING  timestamped output chosen, encoder started
    RECORDING -> STOPPING  finished flag observed (or timeout), encoder signalled
    STOPPING -> CLOSED  post-roll delay, encoder exit awaited, page closed

The encoder is signalled to stop on every path out of RECORDING, including
timeouts and cancellation, so no ffmpeg process outlives the session.
"""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Optional

from pagereel.config import RecordingConfig
from pagereel.core.encoder import FFmpegEncoder
from pagereel.core.page import PageController
from pagereel.exceptions import EncoderError, OutputError, RecordingTimeoutError, TimeoutError
from pagereel.utils.logger import logger


class RecordingState(str, Enum):
    """State of a recording session."""
    INIT = "init"
    ARMED = "armed"
    RECORDING = "recording"
    STOPPING = "stopping"
    CLOSED = "closed"


def recording_filename(prefix: str = "recording", now: Optional[datetime] = None) -> str:
    """
    Build a filesystem-safe output name from a UTC timestamp.

    The timestamp is ISO-8601 with millisecond precision and a ``Z`` suffix,
    with ``:`` and ``.`` replaced by ``-``.

    Example:
        >>> recording_filename(now=datetime(2025, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc))
        'recording-2025-01-02T03-04-05-678Z.mp4'
    """
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    iso = now.strftime("%Y-%m-%dT%H:%M:%S") + f".{now.microsecond // 1000:03d}Z"
    return f"{prefix}-{re.sub(r'[:.]', '-', iso)}.mp4"


@dataclass
class RecordingSession:
    """One armed recording and the encoder it owns."""

    started_at: datetime
    output_path: str
    encoder: FFmpegEncoder
    finished: bool = False
    stop_requested: bool = False
    exit_code: Optional[int] = None
    ended_at: Optional[datetime] = field(default=None)

    @property
    def duration_seconds(self) -> float:
        if self.ended_at is None:
            return 0.0
        return (self.ended_at - self.started_at).total_seconds()


class RecordingSessionController:
    """
    Record the page animation to a video file through ffmpeg.

    Attributes:
        config: Recording settings
        page: Controller for the browser session
        encoder: External encoder owned by this controller's sessions
        state: Current lifecycle state
        session: The session armed by the last ``run()``

    Example:
        >>> controller = RecordingSessionController(RecordingConfig())
        >>> session = await controller.run()
        >>> print(session.output_path)
    """

    def __init__(
        self,
        config: Optional[RecordingConfig] = None,
        page: Optional[PageController] = None,
        encoder: Optional[FFmpegEncoder] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.config = config or RecordingConfig()
        self.page = page or PageController(self.config.page)
        self.encoder = encoder or FFmpegEncoder(self.config.encoder)
        self.state = RecordingState.INIT
        self.session: Optional[RecordingSession] = None
        self._sleep = sleep
        self._now = now

    async def run(self) -> RecordingSession:
        """
        Run one recording from page load to browser close.

        Returns:
            The finished session

        Raises:
            NavigationError: If the page cannot be opened (no encoder is started)
            EncoderSpawnError: If ffmpeg cannot be started
            RecordingTimeoutError: If the animation does not finish in time
        """
        self.state = RecordingState.INIT
        logger.info("[RECORDING] Page loading...")

        try:
            async with self.page:
                self.state = RecordingState.ARMED
                await self._sleep(self.config.pre_roll_ms / 1000)

                session = self._arm()
                logger.info(f"[RECORDING] Starting FFmpeg recording -> {session.output_path}")
                await self.encoder.start(session.output_path)
                self.state = RecordingState.RECORDING

                try:
                    logger.info("[RECORDING] Page loaded. Waiting for animation to complete...")
                    await self.page.wait_until_finished(self.config.finish_timeout_ms)
                    session.finished = True
                    logger.info("[RECORDING] Animation finished, stopping FFmpeg...")
                except TimeoutError as e:
                    logger.error(f"[RECORDING] {e}, stopping FFmpeg...")
                    raise RecordingTimeoutError(
                        f"Animation did not finish within {self.config.finish_timeout_ms}ms; "
                        f"partial recording left at {session.output_path}"
                    ) from e
                finally:
                    await self._shutdown(session)
        finally:
            # The page is released once the async with exits, on every path
            self.state = RecordingState.CLOSED
            logger.info("[RECORDING] Browser closed.")

        return session

    def _arm(self) -> RecordingSession:
        started_at = self._now()
        output_dir = Path(self.config.output_dir)
        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputError(f"Cannot create recording directory {output_dir}: {e}") from e
        output_path = output_dir / recording_filename(self.config.filename_prefix, started_at)
        self.session = RecordingSession(
            started_at=started_at,
            output_path=str(output_path),
            encoder=self.encoder,
        )
        return self.session

    async def _shutdown(self, session: RecordingSession) -> None:
        """Stop the encoder, let it flush, and wait for it to exit."""
        self.state = RecordingState.STOPPING
        session.stop_requested = True
        try:
            self.encoder.stop()
        except EncoderError as e:
            # Fall through to the bounded wait, which kills ffmpeg if it lingers
            logger.warning(f"[RECORDING] Could not signal FFmpeg to stop: {e}")

        # Post-roll before the browser window goes away
        await self._sleep(self.config.post_roll_ms / 1000)

        timeout = self.config.encoder_exit_timeout_s
        try:
            session.exit_code = await self.encoder.wait(timeout=timeout)
        except TimeoutError:
            logger.warning(f"[RECORDING] FFmpeg still running after {timeout}s")
            self.encoder.kill()
            session.exit_code = await self.encoder.wait()
        session.ended_at = self._now()
