from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from ..config import BROWSER_ARGS
from ..errors import BrowserStartupError


class BrowserSession:
    """
    Owns the one headless Chromium of the process.

    Use as `async with BrowserSession() as browser:`; pages are handed out with
    `async with browser.new_page() as page:` and are always closed again.
    """

    def __init__(self, headless: bool = True, args: Optional[List[str]] = None, logger=None):
        self.headless = headless
        self.args = list(BROWSER_ARGS if args is None else args)
        self.logger = logger
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    @property
    def started(self) -> bool:
        return self._browser is not None

    async def start(self) -> "BrowserSession":
        if self._browser is not None:
            return self
        try:
            pw = await async_playwright().start()
        except Exception as e:
            raise BrowserStartupError(f"Could not start Playwright: {e}") from e
        try:
            browser = await pw.chromium.launch(headless=self.headless, args=self.args)
        except Exception as e:
            # release the driver process before reporting
            await pw.stop()
            raise BrowserStartupError(f"Could not launch Chromium: {e}") from e
        self._playwright, self._browser = pw, browser
        if self.logger:
            self.logger.info("browser_start", headless=self.headless)
        return self

    async def close(self) -> None:
        browser, pw = self._browser, self._playwright
        self._browser, self._playwright = None, None
        try:
            if browser is not None:
                await browser.close()
        finally:
            if pw is not None:
                await pw.stop()
                if self.logger:
                    self.logger.info("browser_stop")

    async def __aenter__(self) -> "BrowserSession":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @asynccontextmanager
    async def new_page(self) -> AsyncIterator[Page]:
        if self._browser is None:
            raise RuntimeError("Browser not initialized")
        page = await self._browser.new_page()
        try:
            yield page
        finally:
            try:
                await page.close()
            except PlaywrightError as e:
                if self.logger:
                    self.logger.debug("page_close_failed", error=str(e))
