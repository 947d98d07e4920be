"""
Headless browser session for JavaScript-driven auction sites.

Owns the Playwright lifecycle (driver, browser, context, page). Adapters
borrow the page for one run; the session is always torn down by the
orchestrator, even when the adapter fails.
"""

import asyncio
import logging
import os
from typing import Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page

logger = logging.getLogger(__name__)


class BrowserSession:
    """
    Single-page Chromium session configured for Korean sites.

    Usage:
        async with BrowserSession(headless=True) as session:
            page = session.page
            await page.goto(url)
    """

    def __init__(
        self,
        headless: bool = True,
        user_agent: Optional[str] = None,
        timeout: float = 30.0,
        cleanup_timeout: float = 2.0,
    ):
        """
        Initialize the session (nothing is launched until start()).

        Args:
            headless: Run browser in headless mode
            user_agent: Override the browser user agent
            timeout: Default navigation timeout in seconds
            cleanup_timeout: Per-resource close timeout in seconds
        """
        self.headless = headless
        self.user_agent = user_agent
        self.timeout = timeout
        self.cleanup_timeout = cleanup_timeout
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None

    @property
    def page(self) -> Optional[Page]:
        return self._page

    @property
    def is_open(self) -> bool:
        return self._page is not None

    async def start(self) -> Page:
        """
        Launch Chromium and open the working page.

        Returns:
            The page adapters drive

        Raises:
            Exception: If the browser cannot be launched; partial state is cleaned up
        """
        if self._page is not None:
            return self._page

        try:
            self._playwright = await async_playwright().start()

            chromium_path = self._playwright.chromium.executable_path
            if not chromium_path or not os.path.exists(chromium_path):
                raise RuntimeError("Chromium browser not found. Run: playwright install chromium")

            logger.debug("Launching Chromium browser...")
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=[
                    '--disable-dev-shm-usage',
                    '--no-sandbox',
                    '--disable-gpu',
                ],
                handle_sigint=False,
                handle_sigterm=False,
                handle_sighup=False,
            )

            context_options = {
                'viewport': {'width': 1920, 'height': 1080},
                'locale': 'ko-KR',
                'timezone_id': 'Asia/Seoul',
                'ignore_https_errors': True,
                'extra_http_headers': {
                    'Accept-Language': 'ko-KR,ko;q=0.9,en-US;q=0.8,en;q=0.7',
                },
            }
            if self.user_agent:
                context_options['user_agent'] = self.user_agent
            self._context = await self._browser.new_context(**context_options)
            self._context.set_default_navigation_timeout(int(self.timeout * 1000))

            self._page = await asyncio.wait_for(self._context.new_page(), timeout=10.0)
            logger.debug("Browser initialization successful")
            return self._page

        except Exception as e:
            logger.error(f"Failed to initialize browser: {e}")
            await self.close()
            raise

    async def close(self):
        """Close page, context, browser and driver with per-step timeouts."""
        if self._page:
            try:
                await asyncio.wait_for(self._page.close(), timeout=self.cleanup_timeout)
            except asyncio.TimeoutError:
                logger.warning("Page close timed out, forcing cleanup")
            except Exception as e:
                logger.debug(f"Error closing page: {e}")
            self._page = None

        if self._context:
            try:
                await asyncio.wait_for(self._context.close(), timeout=self.cleanup_timeout)
            except asyncio.TimeoutError:
                logger.warning("Context close timed out, forcing cleanup")
            except Exception as e:
                logger.warning(f"Error closing context: {e}")
            self._context = None

        if self._browser:
            try:
                await asyncio.wait_for(self._browser.close(), timeout=self.cleanup_timeout)
            except asyncio.TimeoutError:
                logger.warning("Browser close timed out, forcing cleanup")
            except Exception as e:
                logger.warning(f"Error closing browser: {e}")
            self._browser = None

        if self._playwright:
            try:
                await asyncio.wait_for(self._playwright.stop(), timeout=self.cleanup_timeout)
            except asyncio.TimeoutError:
                logger.warning("Playwright stop timed out, forcing cleanup")
            except Exception as e:
                logger.warning(f"Error stopping playwright: {e}")
            self._playwright = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
