# Copyright 2026 Firefly Software Solutions Inc
# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures for PageReel tests."""

import asyncio
from pathlib import Path
from typing import List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest


class FakeClock:
    """Monotonic clock that only moves when told to, or when slept on."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakePage:
    """Stand-in for PageController driven by a FakeClock.

    ``finished_after`` is measured in seconds from the first captured frame;
    None means the page never finishes.
    """

    def __init__(
        self,
        clock: FakeClock,
        finished_after: Optional[float] = None,
        frame_cost: float = 0.05,
    ) -> None:
        self.clock = clock
        self.finished_after = finished_after
        self.frame_cost = frame_cost
        self.captured: List[Path] = []
        self.flag_reads: List[bool] = []
        self.events: List[str] = []
        self.capture_error: Optional[Exception] = None
        self.fail_on_frame: Optional[int] = None
        self.wait_error: Optional[BaseException] = None
        self.wait_timeouts: List[int] = []
        self._first_frame_at: Optional[float] = None

    async def open(self, url=None, viewport=None) -> None:
        self.events.append("open")

    async def close(self) -> None:
        self.events.append("close")

    async def __aenter__(self) -> "FakePage":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def is_finished(self) -> bool:
        if self._first_frame_at is None:
            self._first_frame_at = self.clock.now
        done = (
            self.finished_after is not None
            and self.clock.now - self._first_frame_at >= self.finished_after
        )
        self.flag_reads.append(done)
        return done

    async def capture_still(self, path) -> None:
        if self.fail_on_frame is not None and len(self.captured) == self.fail_on_frame:
            raise self.capture_error
        Path(path).write_bytes(b"\x89PNG")
        self.captured.append(Path(path))
        self.clock.advance(self.frame_cost)

    async def wait_until_finished(self, timeout_ms: int) -> None:
        self.events.append("wait")
        self.wait_timeouts.append(timeout_ms)
        if self.wait_error is not None:
            raise self.wait_error


class FakeProcess:
    """Stand-in for asyncio.subprocess.Process running ffmpeg."""

    def __init__(self, pid: int = 4242, quit_on_q: bool = True) -> None:
        self.pid = pid
        self.returncode: Optional[int] = None
        self.stderr = asyncio.StreamReader()
        self.stdin = MagicMock()
        self.stdin.is_closing.return_value = False
        if quit_on_q:
            self.stdin.write.side_effect = lambda data: self.exit(0) if data == b"q" else None
        self._exited = asyncio.Event()

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode

    def exit(self, code: int = 0) -> None:
        if self.returncode is None:
            self.returncode = code
            self.stderr.feed_eof()
            self._exited.set()

    def kill(self) -> None:
        self.exit(-9)


@pytest.fixture
def clock():
    """A fresh FakeClock."""
    return FakeClock()


@pytest.fixture
def mock_playwright():
    """Playwright instance whose launchers return a mock browser, context and page."""
    playwright = MagicMock()
    page = MagicMock()
    page.close = AsyncMock()
    context = MagicMock()
    context.close = AsyncMock()
    context.new_page = AsyncMock(return_value=page)
    browser = MagicMock()
    browser.close = AsyncMock()
    browser.new_context = AsyncMock(return_value=context)
    for name in ("chromium", "firefox", "webkit"):
        getattr(playwright, name).launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock()
    return playwright


@pytest.fixture
def make_page(clock):
    """Factory for FakePage instances sharing the test's clock."""

    def _make(finished_after: Optional[float] = None, frame_cost: float = 0.05) -> FakePage:
        return FakePage(clock, finished_after=finished_after, frame_cost=frame_cost)

    return _make


@pytest.fixture
def make_process():
    """Factory for FakeProcess instances; must be called inside a running loop."""
    return FakeProcess
