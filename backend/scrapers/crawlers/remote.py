"""
Remote browser access over the Chrome DevTools Protocol.

Connects to a managed scraping browser (Bright Data) instead of launching
one locally. Used for retailers that block datacenter traffic.
"""

import logging
from typing import Optional

from playwright.async_api import async_playwright

from .session import BrowserSession, BrowserSessionManager

logger = logging.getLogger(__name__)


BRIGHTDATA_HOST = 'brd.superproxy.io:9222'


def build_endpoint(customer_id: Optional[str], zone: Optional[str], password: Optional[str]) -> str:
    """
    Build the scraping browser websocket endpoint.

    Raises:
        ValueError: If any credential is missing
    """
    missing = [
        name for name, value in (
            ('customer_id', customer_id),
            ('zone', zone),
            ('password', password),
        )
        if not value
    ]
    if missing:
        raise ValueError(f"Missing remote browser credentials: {', '.join(missing)}")
    return f"wss://brd-customer-{customer_id}-zone-{zone}:{password}@{BRIGHTDATA_HOST}"


class RemoteBrowserManager(BrowserSessionManager):
    """Session manager for a remote browser reached over CDP."""

    def __init__(
        self,
        endpoint: str,
        name: str = 'remote',
        connect_timeout: float = 60.0,
        page_timeout: float = 60.0,
    ):
        super().__init__(name=name, page_timeout=page_timeout)
        self.endpoint = endpoint
        self.connect_timeout = connect_timeout

    async def _create_session(self) -> BrowserSession:
        playwright = await async_playwright().start()
        try:
            logger.info(f"{self.name}: connecting to remote browser at {BRIGHTDATA_HOST}")
            browser = await playwright.chromium.connect_over_cdp(
                self.endpoint,
                timeout=int(self.connect_timeout * 1000),
            )
        except Exception:
            await playwright.stop()
            raise

        return BrowserSession(browser=browser, driver=playwright)
