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

"""FFmpeg-based screen recorder for PageReel.

This module drives an external ffmpeg process that grabs a fixed screen
rectangle together with a named audio input and encodes both to a file:
- gdigrab (Windows) or x11grab (Linux) screen input
- dshow / pulse / avfoundation audio input
- H.264 video and AAC audio by default
- ffmpeg diagnostics forwarded line by line to the log
- Graceful stop through ffmpeg's interactive "q" command
- Awaitable process exit

Each FFmpegEncoder owns at most one live process. Starting it again while
that process is alive raises EncoderBusyError instead of abandoning the
running process.
"""

from __future__ import annotations

import asyncio
import re
import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from pagereel.config import AudioSource, EncoderConfig, ScreenRegion
from pagereel.exceptions import (
    EncoderBusyError,
    EncoderError,
    EncoderSpawnError,
    TimeoutError,
)
from pagereel.utils.logger import logger

_LINE_SPLIT = re.compile(rb"[\r\n]")
_UNSET = object()


@dataclass
class EncoderProcess:
    """Handle to one running ffmpeg process."""

    process: asyncio.subprocess.Process
    output_path: str
    command: List[str]
    started_at: float = field(default_factory=time.time)
    stop_requested: bool = False
    exit_code: Optional[int] = None

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def is_running(self) -> bool:
        return self.process.returncode is None


class FFmpegEncoder:
    """Screen and audio recorder backed by an ffmpeg child process.

    Example:
        >>> encoder = FFmpegEncoder(EncoderConfig())
        >>> await encoder.start("recording.mp4")
        >>> # ... animation plays ...
        >>> encoder.stop()
        >>> exit_code = await encoder.wait(timeout=10)
    """

    def __init__(self, config: Optional[EncoderConfig] = None) -> None:
        self.config = config or EncoderConfig()
        self._handle: Optional[EncoderProcess] = None
        self._stderr_task: Optional[asyncio.Task] = None
        self._exit_task: Optional[asyncio.Task] = None

    @property
    def handle(self) -> Optional[EncoderProcess]:
        """The most recently started process, running or not."""
        return self._handle

    @property
    def is_running(self) -> bool:
        """Check if an ffmpeg process is alive."""
        return self._handle is not None and self._handle.is_running

    def _resolve_ffmpeg(self) -> str:
        path = self.config.ffmpeg_path or shutil.which("ffmpeg")
        if not path:
            raise EncoderSpawnError(
                "ffmpeg not found in PATH. Please install ffmpeg or provide ffmpeg_path."
            )
        return path

    def build_command(
        self,
        output_path: Union[str, Path],
        region: Optional[ScreenRegion] = None,
        audio_source: Optional[AudioSource] = _UNSET,
        ffmpeg_path: str = "ffmpeg",
    ) -> List[str]:
        """Build the ffmpeg argument list.

        Args:
            output_path: File to write, overwritten if present
            region: Screen rectangle, ``config.region`` when omitted
            audio_source: Audio input, ``config.audio`` when omitted, None for no audio
            ffmpeg_path: Executable placed at the head of the command
        """
        config = self.config
        region = region or config.region
        if audio_source is _UNSET:
            audio_source = config.audio

        cmd = [ffmpeg_path, "-y", "-f", config.grab_format, "-framerate", str(config.frame_rate)]

        if config.grab_format == "gdigrab":
            cmd.extend([
                "-offset_x", str(region.x),
                "-offset_y", str(region.y),
                "-video_size", region.size,
                "-i", config.display,
            ])
        else:
            # x11grab takes the offset as part of the display name
            cmd.extend([
                "-video_size", region.size,
                "-i", f"{config.display}+{region.x},{region.y}",
            ])

        if audio_source is not None:
            cmd.extend(["-f", audio_source.input_format, "-i", audio_source.input_spec])

        cmd.extend(["-c:v", config.video_codec])
        if audio_source is not None:
            cmd.extend(["-c:a", config.audio_codec])
        cmd.extend([
            "-pix_fmt", config.pixel_format,
            "-r", str(config.output_frame_rate),
            str(output_path),
        ])
        return cmd

    async def start(
        self,
        output_path: Union[str, Path],
        region: Optional[ScreenRegion] = None,
        audio_source: Optional[AudioSource] = _UNSET,
    ) -> EncoderProcess:
        """Spawn ffmpeg recording ``region`` and ``audio_source`` to ``output_path``.

        Returns:
            Handle to the started process

        Raises:
            EncoderBusyError: If a process started by this encoder is still alive
            EncoderSpawnError: If ffmpeg is missing or cannot be executed
        """
        if self.is_running:
            raise EncoderBusyError(
                f"Encoder already recording to {self._handle.output_path} "
                f"(pid {self._handle.pid}); stop it before starting again"
            )

        cmd = self.build_command(
            output_path, region, audio_source, ffmpeg_path=self._resolve_ffmpeg()
        )
        logger.info(f"[ENCODER] FFmpeg command: {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise EncoderSpawnError(f"FFmpeg not found: {cmd[0]}") from e
        except PermissionError as e:
            raise EncoderSpawnError(f"Permission denied starting FFmpeg: {e}") from e
        except OSError as e:
            raise EncoderSpawnError(f"Failed to start FFmpeg: {e}") from e

        handle = EncoderProcess(process=process, output_path=str(output_path), command=cmd)
        self._handle = handle
        self._stderr_task = asyncio.create_task(self._forward_stderr(process.stderr))
        self._exit_task = asyncio.create_task(self._watch_exit(handle, self._stderr_task))
        logger.info(f"[ENCODER] FFmpeg started (pid {process.pid}) -> {output_path}")
        return handle

    def stop(self) -> bool:
        """Ask ffmpeg to finish the file and exit.

        Sends ffmpeg's "q" command and returns without waiting for exit.
        Does nothing when no process is running.

        Returns:
            True if the stop signal was sent
        """
        handle = self._handle
        if handle is None or not handle.is_running:
            logger.debug("[ENCODER] Stop requested but no FFmpeg process is running")
            return False
        if handle.stop_requested:
            return True

        stdin = handle.process.stdin
        if stdin is None or stdin.is_closing():
            raise EncoderError("FFmpeg control channel is closed")
        try:
            stdin.write(b"q")
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.warning(f"[ENCODER] Could not send stop signal: {e}")
            return False
        handle.stop_requested = True
        logger.info("[ENCODER] Stop signal sent to FFmpeg")
        return True

    def kill(self) -> None:
        """Forcibly terminate the running process, if any."""
        if self.is_running:
            logger.warning(f"[ENCODER] Killing FFmpeg (pid {self._handle.pid})")
            self._handle.process.kill()

    async def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """Wait for the process to exit.

        Args:
            timeout: Seconds to wait, None to wait indefinitely

        Returns:
            The exit code, or None if nothing was ever started

        Raises:
            TimeoutError: If the process is still running after ``timeout``
        """
        if self._exit_task is None:
            return None
        try:
            await asyncio.wait_for(asyncio.shield(self._exit_task), timeout)
        except asyncio.TimeoutError as e:
            raise TimeoutError(f"FFmpeg did not exit within {timeout}s") from e
        return self._handle.exit_code

    async def _forward_stderr(self, stream: Optional[asyncio.StreamReader]) -> None:
        """Log ffmpeg diagnostics as they arrive, one line per record."""
        if stream is None:
            return
        buffer = b""
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            buffer += chunk
            # ffmpeg ends progress lines with \r, everything else with \n
            *lines, buffer = _LINE_SPLIT.split(buffer)
            for line in lines:
                self._log_line(line)
        self._log_line(buffer)

    @staticmethod
    def _log_line(line: bytes) -> None:
        text = line.decode("utf-8", errors="replace").strip()
        if text:
            logger.info(f"FFmpeg: {text}")

    async def _watch_exit(self, handle: EncoderProcess, stderr_task: asyncio.Task) -> None:
        handle.exit_code = await handle.process.wait()
        await stderr_task
        if handle.exit_code == 0:
            logger.info("[ENCODER] FFmpeg recording finished.")
        else:
            logger.warning(f"[ENCODER] FFmpeg exited with code {handle.exit_code}")
