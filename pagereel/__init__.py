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
PageReel - Record web page animations to PNG frame sequences or video.

Two capture modes share one trigger: the page sets
``window.animationFinished = true`` when its animation is complete.

- FrameCaptureLoop writes a PNG per iteration until the flag is set.
- RecordingSessionController drives ffmpeg to grab the screen region the
  browser window occupies while the animation plays.
"""

__version__ = "1.0.0"
__license__ = "Apache-2.0"

from pagereel.config import (
    AudioSource,
    CaptureConfig,
    EncoderConfig,
    PageConfig,
    RecordingConfig,
    ScreenRegion,
    Viewport,
)
from pagereel.core.encoder import EncoderProcess, FFmpegEncoder
from pagereel.core.frame_capture import CaptureSummary, FrameCaptureLoop
from pagereel.core.page import PageController
from pagereel.core.recording import RecordingSession, RecordingSessionController

__all__ = [
    # Config
    "AudioSource",
    "CaptureConfig",
    "EncoderConfig",
    "PageConfig",
    "RecordingConfig",
    "ScreenRegion",
    "Viewport",
    # Core
    "CaptureSummary",
    "EncoderProcess",
    "FFmpegEncoder",
    "FrameCaptureLoop",
    "PageController",
    "RecordingSession",
    "RecordingSessionController",
]
