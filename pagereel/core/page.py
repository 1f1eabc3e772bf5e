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
Page controller for the animation under capture.

This module provides the PageController class which opens the target page
in its own browser session, waits for the readiness marker, and exposes the
two things the capture pipelines need from the page: the state of the
``window.animationFinished`` flag and still images of the current render.

The PageController wraps Playwright's Page API with error handling
and logging for production use.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from pagereel.config import FINISHED_EXPRESSION, PageConfig, Viewport
from pagereel.core.browser import BrowserManager
from pagereel.exceptions import (
    BrowserError,
    CaptureError,
    NavigationError,
    PageError,
    TimeoutError,
)
from pagereel.utils.logger import logger


class PageController:
    """
    Controls the browser session that renders the target animation.

    Every successful ``open()`` must be paired with one ``close()``; using
    the controller as an async context manager guarantees this.

    Attributes:
        config: Browser and target page settings

    Example:
        >>> async with PageController(PageConfig()) as controller:
        ...     await controller.capture_still("frames/frame_0000.png")
        ...     done = await controller.is_finished()
    """

    def __init__(self, config: Optional[PageConfig] = None) -> None:
        """
        Initialize the page controller.

        Args:
            config: Browser and target page settings, defaults when omitted
        """
        self.config = config or PageConfig()
        self._browser: Optional[BrowserManager] = None

    @property
    def is_open(self) -> bool:
        """Whether a browser session is currently held."""
        return self._browser is not None

    @property
    def page(self) -> Page:
        """Get the open page."""
        if self._browser is None:
            raise PageError("Page is not open. Call open() first.")
        return self._browser.page

    async def open(
        self, url: Optional[str] = None, viewport: Optional[Viewport] = None
    ) -> None:
        """
        Launch a browser session, navigate to the page and wait until it is ready.

        Args:
            url: Page to open, ``config.url`` when omitted
            viewport: Viewport size, ``config.viewport`` when omitted

        Raises:
            BrowserError: If the browser cannot be launched
            NavigationError: If the page does not load or the readiness
                element never appears
            PageError: If the controller is already open
        """
        if self._browser is not None:
            raise PageError("Page is already open")

        url = url or self.config.url
        browser = BrowserManager(
            headless=self.config.headless,
            browser_type=self.config.browser_type,
            viewport=viewport or self.config.viewport,
            args=list(self.config.launch_args),
        )
        await browser.start()
        self._browser = browser

        try:
            page = browser.page
            page.on("console", self._on_console)

            logger.info(f"Navigating to {url}")
            await page.goto(url, timeout=self.config.navigation_timeout_ms)
            await page.wait_for_selector(
                self.config.ready_selector,
                state="attached",
                timeout=self.config.navigation_timeout_ms,
            )
            logger.info(f"Page ready: {self.config.ready_selector} present")
        except Exception as e:
            logger.error(f"Navigation failed: {e}")
            try:
                await self.close()
            except BrowserError as close_error:
                logger.warning(f"Error closing browser after failed navigation: {close_error}")
            raise NavigationError(f"Failed to open {url}: {e}") from e

    def _on_console(self, message: Any) -> None:
        logger.info(f"PAGE LOG: {message.text}")

    async def is_finished(self) -> bool:
        """
        Read the page's finished flag.

        Returns:
            True once ``window.animationFinished`` is ``true``, False while it
            is absent or has any other value

        Raises:
            PageError: If the flag cannot be evaluated
        """
        try:
            return bool(await self.page.evaluate(FINISHED_EXPRESSION))
        except PageError:
            raise
        except Exception as e:
            logger.error(f"Failed to read finished flag: {e}")
            raise PageError(f"Failed to evaluate finished flag: {e}") from e

    async def wait_until_finished(self, timeout_ms: int) -> None:
        """
        Suspend until the finished flag becomes true.

        Args:
            timeout_ms: Maximum time to wait in milliseconds

        Raises:
            TimeoutError: If the flag is not set within ``timeout_ms``
            PageError: If the wait fails for another reason
        """
        try:
            await self.page.wait_for_function(FINISHED_EXPRESSION, timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise TimeoutError(
                f"Animation did not finish within {timeout_ms}ms"
            ) from e
        except PageError:
            raise
        except Exception as e:
            logger.error(f"Wait for finished flag failed: {e}")
            raise PageError(f"Failed to wait for finished flag: {e}") from e

    async def capture_still(self, path: Union[str, Path]) -> None:
        """
        Write a PNG of the current viewport to ``path``.

        Raises:
            CaptureError: If the screenshot cannot be taken or written
        """
        try:
            await self.page.screenshot(path=str(path), type="png")
        except PageError as e:
            raise CaptureError(str(e)) from e
        except Exception as e:
            logger.error(f"Screenshot failed: {e}")
            raise CaptureError(f"Failed to capture still to {path}: {e}") from e

    async def close(self) -> None:
        """Release the browser session. Does nothing when not open."""
        browser, self._browser = self._browser, None
        if browser is not None:
            await browser.stop()

    async def __aenter__(self) -> "PageController":
        """Async context manager entry."""
        await self.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
