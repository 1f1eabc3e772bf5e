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
Browser management for PageReel.

This module provides the BrowserManager class which handles the lifecycle
of a Playwright browser instance: launching, creating an isolated context
sized to the capture viewport, opening the page, and cleanup.
"""

from __future__ import annotations

from typing import Any, Optional

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from pagereel.config import Viewport
from pagereel.exceptions import BrowserError
from pagereel.utils.logger import logger


class BrowserManager:
    """
    Manages a Playwright browser instance and its lifecycle.

    Attributes:
        headless: Whether browser runs in headless mode (no visible window)
        browser_type: Type of browser (chromium, firefox, webkit)
        viewport: Viewport of the browser context
        launch_options: Additional Playwright launch options
        page: The page opened in the context

    Example:
        >>> manager = BrowserManager(headless=True, viewport=Viewport(500, 1100))
        >>> await manager.start()
        >>> await manager.page.goto("http://127.0.0.1:3000")
        >>> await manager.stop()
    """

    def __init__(
        self,
        headless: bool = True,
        browser_type: str = "chromium",
        viewport: Optional[Viewport] = None,
        **launch_options: Any,
    ) -> None:
        """
        Initialize the browser manager with configuration.

        Args:
            headless: Whether to run browser in headless mode. Default: True
            browser_type: "chromium" (default), "firefox" or "webkit"
            viewport: Context viewport, 500x1100 when omitted
            **launch_options: Additional Playwright launch options such as
                args, slow_mo or executable_path
        """
        self.headless = headless
        self.browser_type = browser_type
        self.viewport = viewport or Viewport()
        self.launch_options = launch_options
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    async def start(self) -> None:
        """
        Start the browser, create an isolated context and open a page.

        Raises:
            BrowserError: If browser fails to start or unsupported browser type
        """
        try:
            logger.info(f"Starting {self.browser_type} browser (headless={self.headless})")
            self._playwright = await async_playwright().start()

            if self.browser_type == "chromium":
                browser_launcher = self._playwright.chromium
            elif self.browser_type == "firefox":
                browser_launcher = self._playwright.firefox
            elif self.browser_type == "webkit":
                browser_launcher = self._playwright.webkit
            else:
                raise BrowserError(f"Unsupported browser type: {self.browser_type}")

            self._browser = await browser_launcher.launch(
                headless=self.headless, **self.launch_options
            )

            # Isolated session with the fixed capture viewport
            self._context = await self._browser.new_context(
                viewport=self.viewport.to_dict()
            )
            self._page = await self._context.new_page()

            logger.info("Browser started successfully")
        except Exception as e:
            logger.error(f"Failed to start browser: {e}")
            # Release whatever was acquired before the failure
            await self._release()
            if isinstance(e, BrowserError):
                raise
            raise BrowserError(f"Failed to start browser: {e}") from e

    async def stop(self) -> None:
        """
        Stop the browser and cleanup all resources.

        Safe to call more than once.

        Raises:
            BrowserError: If cleanup fails
        """
        if self._playwright is None:
            return
        try:
            logger.info("Stopping browser")
            await self._release()
            logger.info("Browser stopped successfully")
        except Exception as e:
            logger.error(f"Error stopping browser: {e}")
            raise BrowserError(f"Failed to stop browser: {e}") from e

    async def _release(self) -> None:
        page, context, browser, playwright = (
            self._page, self._context, self._browser, self._playwright
        )
        self._page = self._context = self._browser = self._playwright = None
        if page:
            await page.close()
        if context:
            await context.close()
        if browser:
            await browser.close()
        if playwright:
            await playwright.stop()

    @property
    def is_running(self) -> bool:
        """Whether a page is currently open."""
        return self._page is not None

    @property
    def page(self) -> Page:
        """Get the current page."""
        if not self._page:
            raise BrowserError("No active page. Call start() first.")
        return self._page

    async def __aenter__(self) -> "BrowserManager":
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.stop()
