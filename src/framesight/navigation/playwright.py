"""Playwright-backed browser navigator.

Drives a Chromium page with Playwright's async API. Player control goes
through the page's ``<video>`` element via JavaScript; anything that
needs page understanding (picking a video from a listing, answering
questions about a frame) is delegated to the configured vision model.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from framesight.inference.base import InferenceError, InferenceProvider
from framesight.navigation.base import (
    BrowserNavigator,
    NavigationError,
    PlayerDetectionError,
    PlayerHandle,
    parse_time_to_seconds,
)

logger = logging.getLogger(__name__)

VIDEO_SELECTOR = "video"
_COOKIE_BUTTON_RE = re.compile(r"accept|agree|allow all|got it|i understand", re.IGNORECASE)
_JSON_OBJECT_RE = re.compile(r"\{.*?\}", re.DOTALL)

_SEEK_JS = """([selector, pct]) => {
    const v = document.querySelector(selector);
    if (!v || !isFinite(v.duration) || v.duration <= 0) return false;
    v.pause();
    v.currentTime = v.duration * pct / 100;
    return true;
}"""

_READY_JS = """(selector) => {
    const v = document.querySelector(selector);
    return !!v && !v.seeking && v.readyState >= 2;
}"""


class PlaywrightNavigator(BrowserNavigator):
    """Navigator running a real Chromium page.

    Args:
        provider: Vision model used for ``ask`` and ``act``.
        headless: Run the browser without a window.
        timeout: Default action timeout in milliseconds.
        navigation_timeout: Page-load timeout in milliseconds.
        viewport: (width, height) of the page.
    """

    def __init__(
        self,
        provider: InferenceProvider,
        headless: bool = True,
        timeout: int = 30000,
        navigation_timeout: int = 60000,
        viewport: tuple[int, int] = (1280, 720),
    ) -> None:
        super().__init__()
        self._provider = provider
        self._headless = headless
        self._timeout = timeout
        self._navigation_timeout = navigation_timeout
        self._viewport = viewport
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page: Page | None = None

    @property
    def page(self) -> Page:
        if self._page is None:
            raise NavigationError("Browser is not open. Call open() first.")
        return self._page

    async def open(self) -> None:
        if self._is_open:
            return
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(headless=self._headless)
            self._page = await self._browser.new_page(
                viewport={"width": self._viewport[0], "height": self._viewport[1]}
            )
        except PlaywrightError as e:
            await self.close()
            raise NavigationError(f"Failed to start browser: {e}") from e
        self._page.set_default_timeout(self._timeout)
        self._page.set_default_navigation_timeout(self._navigation_timeout)
        self._is_open = True
        logger.info("Browser started (%s mode)", "headless" if self._headless else "visible")

    async def close(self) -> None:
        browser, pw = self._browser, self._playwright
        self._page = None
        self._browser = None
        self._playwright = None
        was_open = self._is_open
        self._is_open = False
        try:
            if browser is not None:
                await browser.close()
        except PlaywrightError as e:
            logger.warning("Error closing browser: %s", e)
        finally:
            if pw is not None:
                await pw.stop()
        if was_open:
            logger.info("Browser stopped")

    async def navigate(self, url: str) -> None:
        logger.info("Navigating to %s", url)
        try:
            await self.page.goto(url, wait_until="domcontentloaded")
        except PlaywrightError as e:
            raise NavigationError(f"Failed to load {url}: {e}", url=url) from e

    async def dismiss_cookie_dialog(self) -> bool:
        try:
            buttons = self.page.get_by_role("button", name=_COOKIE_BUTTON_RE)
            if await buttons.count() == 0:
                return False
            await buttons.first.click(timeout=3000)
        except PlaywrightError as e:
            logger.debug("Cookie dialog dismissal failed: %s", e)
            return False
        logger.info("Dismissed cookie dialog")
        return True

    async def ask(self, question: str, image: bytes | None = None) -> str:
        if image is None:
            image = await self._page_screenshot()
        try:
            response = await self._provider.infer(image, question, max_tokens=300, temperature=0.0)
        except InferenceError as e:
            raise NavigationError(f"Page question failed: {e}") from e
        return response.text.strip()

    async def act(self, instruction: str) -> bool:
        """Ask the model where to click for ``instruction`` and click there."""
        width, height = self._viewport
        answer = await self.ask(
            f"The screenshot is {width}x{height} pixels. To do the following on this page: "
            f'"{instruction}", where should I click?\n'
            'Respond with JSON only: {"x": <int>, "y": <int>} or {"x": null, "y": null} if impossible.'
        )
        point = _parse_click_point(answer)
        if point is None:
            logger.info("No click target for instruction: %s", instruction)
            return False
        try:
            await self.page.mouse.click(*point)
            await self.page.wait_for_load_state("domcontentloaded")
        except PlaywrightError as e:
            logger.warning("Click for '%s' failed: %s", instruction, e)
            return False
        return True

    async def detect_player(self, hint: str = "") -> PlayerHandle:
        if await self._has_video():
            return self._handle()

        instruction = "open the video most relevant to: " + hint if hint else "open the main video on this page"
        if await self.act(instruction):
            for _ in range(5):
                if await self._has_video():
                    return self._handle()
                await asyncio.sleep(1.0)

        raise PlayerDetectionError("No video player detected on the page", url=self.page.url)

    async def seek(self, handle: PlayerHandle, percentage: float) -> None:
        pct = max(0.0, min(100.0, percentage))
        try:
            ok = await self.page.evaluate(_SEEK_JS, [handle.selector, pct])
        except PlaywrightError as e:
            raise NavigationError(f"Seek to {pct:.1f}% failed: {e}") from e
        if not ok:
            raise NavigationError(f"Seek to {pct:.1f}% failed: video has no known duration")

    async def wait_stable(self, handle: PlayerHandle, timeout: float) -> bool:
        try:
            await self.page.wait_for_function(_READY_JS, arg=handle.selector, timeout=timeout * 1000)
        except PlaywrightError:
            return False
        return True

    async def screenshot(self, handle: PlayerHandle) -> bytes:
        try:
            return await self.page.locator(handle.selector).first.screenshot(type="png")
        except PlaywrightError as e:
            raise NavigationError(f"Player screenshot failed: {e}") from e

    async def current_time(self, handle: PlayerHandle) -> float | None:
        return await self._video_property(handle, "currentTime")

    async def duration(self, handle: PlayerHandle) -> float | None:
        value = await self._video_property(handle, "duration")
        if value:
            return value
        # Custom players may hide the media element's duration; read the on-screen display.
        answer = await self.ask(
            "Look at the video player and find the total duration display "
            '(e.g. "10:30" or "1:45:20"). Respond with just the duration value.'
        )
        return parse_time_to_seconds(answer)

    async def _video_property(self, handle: PlayerHandle, name: str) -> float | None:
        try:
            value = await self.page.evaluate(
                f"(s) => {{ const v = document.querySelector(s); return v ? v.{name} : null; }}",
                handle.selector,
            )
        except PlaywrightError as e:
            logger.debug("Reading video %s failed: %s", name, e)
            return None
        if value is None or not isinstance(value, (int, float)) or value != value or value == float("inf"):
            return None
        return float(value)

    async def _has_video(self) -> bool:
        try:
            return await self.page.locator(VIDEO_SELECTOR).count() > 0
        except PlaywrightError:
            return False

    async def _page_screenshot(self) -> bytes:
        try:
            return await self.page.screenshot(type="png")
        except PlaywrightError as e:
            raise NavigationError(f"Page screenshot failed: {e}") from e

    def _handle(self) -> PlayerHandle:
        logger.info("Detected HTML5 video player on %s", self.page.url)
        return PlayerHandle(selector=VIDEO_SELECTOR, player_type="html5", page_url=self.page.url)


def _parse_click_point(answer: str) -> tuple[float, float] | None:
    match = _JSON_OBJECT_RE.search(answer)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    x, y = data.get("x"), data.get("y")
    if not isinstance(x, (int, float)) or not isinstance(y, (int, float)):
        return None
    return float(x), float(y)
