# webstream/browser.py
from __future__ import annotations

import logging
from typing import Any, List, Optional

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from . import settings
from .errors import BrowserNotReady

logger = logging.getLogger(__name__)


class BrowserPool:
    """One shared Chromium process handing out isolated, cookie-scoped contexts."""

    def __init__(self, headless: bool = settings.HEADLESS, args: Optional[List[str]] = None,
                 navigation_timeout: int = settings.NAVIGATION_TIMEOUT_MS) -> None:
        self.headless = headless
        self.args = args if args is not None else list(settings.BROWSER_ARGS)
        self.navigation_timeout = navigation_timeout
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    @classmethod
    def from_browser(cls, browser: Any, **kwargs) -> "BrowserPool":
        """Wrap a browser that was launched elsewhere."""
        pool = cls(**kwargs)
        pool._browser = browser
        return pool

    @property
    def ready(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(PlaywrightError),
        reraise=True,
    )
    async def _launch(self) -> Browser:
        return await self._playwright.chromium.launch(headless=self.headless, args=self.args)

    async def start(self) -> None:
        if self.ready:
            return
        self._playwright = await async_playwright().start()
        self._browser = await self._launch()
        logger.info("Chromium %s launched (headless=%s)", self._browser.version, self.headless)

    async def new_context(self) -> BrowserContext:
        if not self.ready:
            raise BrowserNotReady("Browser not initialized yet, try again shortly")
        context = await self._browser.new_context()
        context.set_default_navigation_timeout(self.navigation_timeout)
        return context

    async def stop(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        logger.info("Browser stopped")


async def close_quietly(target: Any) -> None:
    """Close a page or context during cleanup; a dead browser is not an error here."""
    try:
        await target.close()
    except PlaywrightError as e:
        logger.debug("close() failed during cleanup: %s", e.message)
