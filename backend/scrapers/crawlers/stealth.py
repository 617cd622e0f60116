"""
Local stealth browser for sites with bot detection.

Launches Chromium through Playwright with automation indicators hidden.
Each page gets its own browser context so cookies and storage never leak
between lookups.
"""

import os
import logging

from playwright.async_api import async_playwright

from .session import BrowserSession, BrowserSessionManager

logger = logging.getLogger(__name__)


LAUNCH_ARGS = [
    '--disable-blink-features=AutomationControlled',
    '--disable-dev-shm-usage',
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-features=IsolateOrigins,site-per-process',
    '--disable-background-timer-throttling',
    '--disable-backgrounding-occluded-windows',
    '--disable-renderer-backgrounding',
    '--disable-gpu',
]

# Hides the most common automation indicators from page scripts
STEALTH_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined
    });

    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5]
    });

    Object.defineProperty(navigator, 'languages', {
        get: () => ['de-DE', 'de', 'en-US', 'en']
    });
"""


class StealthBrowserManager(BrowserSessionManager):
    """Session manager for a locally launched headless Chromium."""

    def __init__(self, name: str = 'browser', headless: bool = True, page_timeout: float = 30.0):
        super().__init__(name=name, page_timeout=page_timeout)
        self.headless = headless

    async def _create_session(self) -> BrowserSession:
        playwright = await async_playwright().start()
        try:
            chromium_path = playwright.chromium.executable_path
            if not chromium_path or not os.path.exists(chromium_path):
                raise RuntimeError("Chromium browser not found. Run: playwright install chromium")

            logger.debug(f"{self.name}: launching Chromium (headless={self.headless})")
            browser = await playwright.chromium.launch(
                headless=self.headless,
                args=LAUNCH_ARGS,
                handle_sigint=False,
                handle_sigterm=False,
                handle_sighup=False,
            )
            if not browser.is_connected():
                raise RuntimeError("Browser launched but not connected")
        except Exception:
            await playwright.stop()
            raise

        return BrowserSession(browser=browser, driver=playwright)

    async def new_page(self, session: BrowserSession):
        page = await super().new_page(session)
        await page.add_init_script(STEALTH_SCRIPT)
        return page
