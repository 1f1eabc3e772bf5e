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

"""Custom exceptions for PageReel.

This module defines the exception hierarchy used throughout PageReel.
All exceptions inherit from PageReelError for easy catching and handling.

Exception Hierarchy:
    PageReelError (base)
    ├── BrowserError - Browser launch and lifecycle errors
    ├── NavigationError - Target unreachable or readiness marker missing
    ├── PageError - Script evaluation and page state errors
    ├── CaptureError - Still image capture failures
    ├── TimeoutError - Finished flag never observed in time
    │   └── RecordingTimeoutError - Timeout during a recording session
    ├── EncoderError - External encoder failures
    │   ├── EncoderSpawnError - Encoder process could not be started
    │   └── EncoderBusyError - Encoder already owns a live process
    ├── ConfigurationError - Invalid configuration values
    └── OutputError - Output directory cannot be prepared

Example:
    try:
        await controller.run()
    except RecordingTimeoutError:
        # The animation never finished, encoder was already stopped
        pass
    except PageReelError:
        # Catch all PageReel errors
        pass
"""


class PageReelError(Exception):
    """Base exception for all PageReel errors.

    All custom exceptions in PageReel inherit from this class,
    allowing callers to catch every PageReel-specific error with
    a single except clause.
    """
    pass


class BrowserError(PageReelError):
    """Exception raised for browser-related errors.

    Examples:
        - Browser failed to launch
        - Browser resources failed to close
    """
    pass


class NavigationError(PageReelError):
    """Exception raised when the target page cannot be opened.

    Examples:
        - URL is unreachable
        - Readiness element never appeared
    """
    pass


class PageError(PageReelError):
    """Exception raised for page-related errors.

    Examples:
        - Finished flag could not be evaluated
        - Page used before it was opened
    """
    pass


class CaptureError(PageReelError):
    """Exception raised when a still image cannot be written."""
    pass


class TimeoutError(PageReelError):
    """Exception raised when the finished flag is not observed in time."""
    pass


class RecordingTimeoutError(TimeoutError):
    """Exception raised when a recording session times out.

    The encoder has already been signalled to stop by the time this
    error reaches the caller.
    """
    pass


class EncoderError(PageReelError):
    """Base exception for external encoder failures."""
    pass


class EncoderSpawnError(EncoderError):
    """Exception raised when the encoder process cannot be started.

    Examples:
        - ffmpeg is not installed or not on PATH
        - Permission denied executing ffmpeg
    """
    pass


class EncoderBusyError(EncoderError):
    """Exception raised when starting an encoder that is already running."""
    pass


class ConfigurationError(PageReelError):
    """Exception raised for configuration errors.

    Examples:
        - Non-positive viewport or region size
        - Minimum duration larger than maximum duration
    """
    pass


class OutputError(PageReelError):
    """Exception raised when an output location cannot be prepared.

    Examples:
        - Frames directory path is a regular file
        - Permission denied creating the recording directory
    """
    pass
