"""Headless browser control for pages hosting the 3D viewer element."""

import asyncio
from pathlib import PurePosixPath
from urllib.parse import urlparse

import structlog
from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    async_playwright,
)
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from critique.config import settings
from critique.core.capture.surfaces import PlaywrightSurface
from critique.utils.exceptions import CaptureError

logger = structlog.get_logger(__name__)


class ViewerAutomation:
    """Playwright automation for a review page with a model viewer."""

    def __init__(
        self,
        headless: bool = True,
        viewport_width: int | None = None,
        viewport_height: int | None = None,
        selector: str | None = None,
    ):
        """
        Initialize viewer automation.

        Args:
            headless: Run browser in headless mode
            viewport_width: Browser viewport width in pixels (defaults to settings.viewer_width)
            viewport_height: Browser viewport height in pixels (defaults to settings.viewer_height)
            selector: CSS selector of the viewer element (defaults to settings.viewer_selector)
        """
        self.headless = headless
        self.viewport_width = viewport_width or settings.viewer_width
        self.viewport_height = viewport_height or settings.viewer_height
        self.selector = selector or settings.viewer_selector
        self.browser: Browser | None = None
        self.context: BrowserContext | None = None
        self.page: Page | None = None
        self._playwright: Playwright | None = None

    async def launch(self) -> None:
        """Launch browser and create context."""
        self._playwright = await async_playwright().start()
        self.browser = await self._playwright.chromium.launch(headless=self.headless)
        self.context = await self.browser.new_context(
            viewport={"width": self.viewport_width, "height": self.viewport_height},
        )
        self.page = await self.context.new_page()
        logger.info("viewer_browser_launched", headless=self.headless)

    async def close(self) -> None:
        """Close browser and cleanup resources."""
        if self.page:
            await self.page.close()
        if self.context:
            await self.context.close()
        if self.browser:
            await self.browser.close()
        if self._playwright:
            await self._playwright.stop()

    async def __aenter__(self) -> "ViewerAutomation":
        """Async context manager entry."""
        await self.launch()
        return self

    async def __aexit__(
        self, exc_type: object, exc_val: object, exc_tb: object
    ) -> None:
        """Async context manager exit."""
        await self.close()

    async def open(
        self, url: str, max_retries: int = 3, timeout_ms: int = 30000
    ) -> PlaywrightSurface:
        """
        Navigate to a review page and wait for the viewer element.

        Args:
            url: Page URL
            max_retries: Maximum navigation attempts
            timeout_ms: Navigation and element wait timeout

        Returns:
            A surface attached to the viewer element

        Raises:
            RuntimeError: If browser not launched
            CaptureError: If the viewer never appears after retries
        """
        if not self.page:
            raise RuntimeError("Browser not launched. Call launch() first.")

        for attempt in range(1, max_retries + 1):
            try:
                logger.info("viewer_navigating", url=url, attempt=attempt, max_retries=max_retries)
                await self.page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
                await self.page.wait_for_selector(self.selector, state="visible", timeout=timeout_ms)
                surface = await PlaywrightSurface.attach(self.page, self.selector)
                logger.info(
                    "viewer_ready",
                    url=url,
                    width=surface.width,
                    height=surface.height,
                )
                return surface
            except PlaywrightTimeoutError as e:
                logger.error("viewer_navigation_timeout", attempt=attempt, error=str(e))
                if attempt == max_retries:
                    raise CaptureError(
                        f"Viewer '{self.selector}' did not load after {max_retries} attempts"
                    ) from e
                await asyncio.sleep(2)

        raise CaptureError("Unexpected navigation loop exit")

    async def model_label(self) -> str:
        """
        Return a label for the model currently shown in the viewer.

        Uses the viewer's ``src`` file name, falling back to the page title.
        """
        if not self.page:
            raise RuntimeError("Browser not launched. Call launch() first.")
        src = await self.page.locator(self.selector).first.get_attribute("src")
        if src:
            name = PurePosixPath(urlparse(src).path).name
            if name:
                return name
        return await self.page.title() or "Unknown model"
