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
Configuration for PageReel capture and recording runs.

Defaults reproduce the fixed setup PageReel was built around: a chat
animation served on http://127.0.0.1:3000, rendered in a 500x1100 viewport,
and recorded from a 480x916 screen region through ffmpeg's gdigrab and
dshow inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from pagereel.exceptions import ConfigurationError

DEFAULT_URL = "http://127.0.0.1:3000"
DEFAULT_READY_SELECTOR = "#chat-container"
FINISHED_EXPRESSION = "() => window.animationFinished === true"
DEFAULT_AUDIO_DEVICE = "CABLE Output (VB-Audio Virtual Cable)"


def _positive(name: str, value: float) -> None:
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")


def _non_negative(name: str, value: float) -> None:
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative, got {value}")


@dataclass
class Viewport:
    """Logical page size in CSS pixels."""

    width: int = 500
    height: int = 1100

    def __post_init__(self) -> None:
        _positive("viewport width", self.width)
        _positive("viewport height", self.height)

    def to_dict(self) -> dict:
        return {"width": self.width, "height": self.height}


@dataclass
class ScreenRegion:
    """Screen rectangle grabbed by the encoder, offset from the screen origin."""

    x: int = 20
    y: int = 90
    width: int = 480
    height: int = 916

    def __post_init__(self) -> None:
        _non_negative("region x offset", self.x)
        _non_negative("region y offset", self.y)
        _positive("region width", self.width)
        _positive("region height", self.height)

    @property
    def size(self) -> str:
        """Size in ffmpeg's WxH notation."""
        return f"{self.width}x{self.height}"


@dataclass
class AudioSource:
    """Named system audio input multiplexed into the recording.

    Attributes:
        device: Device name as the capture backend knows it
        input_format: ffmpeg input format (dshow, pulse, alsa, avfoundation)
    """

    device: str = DEFAULT_AUDIO_DEVICE
    input_format: str = "dshow"

    @property
    def input_spec(self) -> str:
        """Value passed to ffmpeg's ``-i`` for this source."""
        if self.input_format == "dshow":
            return f"audio={self.device}"
        if self.input_format == "avfoundation":
            return f":{self.device}"
        return self.device


@dataclass
class PageConfig:
    """Browser and target page settings.

    Attributes:
        url: Page to open
        ready_selector: Selector whose presence marks initial layout as done
        viewport: Page viewport size
        headless: Run the browser without a visible window
        browser_type: Playwright browser type (chromium, firefox, webkit)
        launch_args: Extra command-line arguments for the browser
        navigation_timeout_ms: Timeout for navigation and the readiness wait
    """

    url: str = DEFAULT_URL
    ready_selector: str = DEFAULT_READY_SELECTOR
    viewport: Viewport = field(default_factory=Viewport)
    headless: bool = True
    browser_type: str = "chromium"
    launch_args: List[str] = field(
        default_factory=lambda: [
            "--window-position=0,0",
            "--window-size=500,1080",
            "--autoplay-policy=no-user-gesture-required",
        ]
    )
    navigation_timeout_ms: int = 30000

    def __post_init__(self) -> None:
        if not self.url:
            raise ConfigurationError("url must not be empty")
        _positive("navigation_timeout_ms", self.navigation_timeout_ms)


@dataclass
class CaptureConfig:
    """Settings for frame-by-frame capture.

    Attributes:
        page: Browser and target page settings
        output_dir: Directory that receives the frame images, emptied per run
        settle_delay_ms: Delay after readiness before the first frame
        sample_interval_ms: Sleep between iterations
        nominal_fps: Advertised capture rate, not enforced by the loop
        min_duration_ms: Capture never stops before this much time has passed
        max_duration_ms: Hard cap on capture time, None for no cap
        target_fps: Output rate used in the suggested ffmpeg command
    """

    page: PageConfig = field(default_factory=PageConfig)
    output_dir: str = "frames"
    settle_delay_ms: int = 1000
    sample_interval_ms: int = 10
    nominal_fps: int = 5
    min_duration_ms: int = 5000
    max_duration_ms: Optional[int] = 60000
    target_fps: int = 30

    def __post_init__(self) -> None:
        _non_negative("settle_delay_ms", self.settle_delay_ms)
        _non_negative("sample_interval_ms", self.sample_interval_ms)
        _non_negative("min_duration_ms", self.min_duration_ms)
        _positive("target_fps", self.target_fps)
        if self.max_duration_ms is not None:
            _positive("max_duration_ms", self.max_duration_ms)
            if self.max_duration_ms < self.min_duration_ms:
                raise ConfigurationError(
                    f"max_duration_ms ({self.max_duration_ms}) is shorter than "
                    f"min_duration_ms ({self.min_duration_ms})"
                )


@dataclass
class EncoderConfig:
    """Settings for the external ffmpeg screen recorder.

    Attributes:
        ffmpeg_path: Path to ffmpeg, looked up on PATH when None
        grab_format: Screen grabber input format (gdigrab, x11grab)
        display: Grabber input name ("desktop" for gdigrab, ":0.0" for x11grab)
        frame_rate: Capture frame rate
        region: Screen rectangle to capture
        audio: Audio input, None to record video only
        video_codec: Video encoder
        audio_codec: Audio encoder
        pixel_format: Output pixel format
        output_frame_rate: Output frame rate
    """

    ffmpeg_path: Optional[str] = None
    grab_format: str = "gdigrab"
    display: str = "desktop"
    frame_rate: int = 30
    region: ScreenRegion = field(default_factory=ScreenRegion)
    audio: Optional[AudioSource] = field(default_factory=AudioSource)
    video_codec: str = "libx264"
    audio_codec: str = "aac"
    pixel_format: str = "yuv420p"
    output_frame_rate: int = 30

    def __post_init__(self) -> None:
        _positive("frame_rate", self.frame_rate)
        _positive("output_frame_rate", self.output_frame_rate)
        if self.grab_format not in ("gdigrab", "x11grab"):
            raise ConfigurationError(f"Unsupported grab format: {self.grab_format}")


@dataclass
class RecordingConfig:
    """Settings for a direct screen-to-video recording session.

    Attributes:
        page: Browser and target page settings, headed by default
        encoder: External encoder settings
        output_dir: Directory that receives the video file
        filename_prefix: Prefix of the timestamped output file name
        pre_roll_ms: Delay after readiness before the encoder starts
        post_roll_ms: Delay after the stop signal before the browser closes
        finish_timeout_ms: How long to wait for the finished flag
        encoder_exit_timeout_s: How long to wait for ffmpeg to exit after stop
    """

    page: PageConfig = field(default_factory=lambda: PageConfig(headless=False))
    encoder: EncoderConfig = field(default_factory=EncoderConfig)
    output_dir: str = "."
    filename_prefix: str = "recording"
    pre_roll_ms: int = 2000
    post_roll_ms: int = 2000
    finish_timeout_ms: int = 60000
    encoder_exit_timeout_s: float = 10.0

    def __post_init__(self) -> None:
        _non_negative("pre_roll_ms", self.pre_roll_ms)
        _non_negative("post_roll_ms", self.post_roll_ms)
        _positive("finish_timeout_ms", self.finish_timeout_ms)
        _positive("encoder_exit_timeout_s", self.encoder_exit_timeout_s)
