"""Headless Chromium session for pages that render client-side."""
import logging
from typing import Optional

from playwright.async_api import async_playwright

logger = logging.getLogger(__name__)


class HeadlessBrowser:
    """
    Async context manager around one headless Chromium instance.

    Usage:
        async with HeadlessBrowser(navigation_timeout=30) as browser:
            html = await browser.render(url)
    """

    USER_AGENT = (
        'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/133.0.0.0 Safari/537.36'
    )
    LAUNCH_ARGS = ['--no-sandbox', '--disable-setuid-sandbox']

    def __init__(self, navigation_timeout: float = 30.0):
        """
        Args:
            navigation_timeout: Default per-navigation timeout in seconds
        """
        self.navigation_timeout = navigation_timeout
        self._playwright = None
        self._browser = None

    async def __aenter__(self) -> 'HeadlessBrowser':
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=True,
                args=self.LAUNCH_ARGS
            )
        except Exception:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    async def render(
        self,
        url: str,
        timeout: Optional[float] = None,
        settle_seconds: float = 0.0
    ) -> str:
        """
        Load a page and return its rendered HTML.

        Args:
            url: Page to load
            timeout: Navigation timeout in seconds (defaults to the session's)
            settle_seconds: Extra wait after network idle for late rendering

        Returns:
            The page's HTML after rendering

        Raises:
            playwright.async_api.TimeoutError: If navigation exceeds the timeout
        """
        if self._browser is None:
            raise RuntimeError('HeadlessBrowser used outside its context')

        timeout_ms = (timeout or self.navigation_timeout) * 1000
        page = await self._browser.new_page(user_agent=self.USER_AGENT)
        try:
            logger.info(f"Rendering {url}")
            await page.goto(url, wait_until='networkidle', timeout=timeout_ms)
            if settle_seconds:
                await page.wait_for_timeout(settle_seconds * 1000)
            return await page.content()
        finally:
            await page.close()
