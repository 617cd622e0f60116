"""
METRO wholesale scraper.

Two access paths share one extractor:
- MetroScraper: local stealth browser
- MetroRemoteScraper: managed remote browser over CDP, for hosts whose
  traffic METRO blocks

Site structure:
- Search page: `.sd-articlecard` cards with `a.title` links to `/shop/pv/...`
- Price: `.price-display-main-row .primary`
"""

import asyncio
from typing import Optional

from ..base import BaseScraper
from ..crawlers.remote import RemoteBrowserManager
from ..crawlers.session import BrowserSessionManager
from ..extraction import SiteExtractor, css_strategy, link_strategy


METRO_STRATEGIES = [
    css_strategy('article card', '.sd-articlecard'),
    css_strategy('product tile', '.product-tile, [class*="article-card"]'),
    link_strategy('product link', '/shop/pv/'),
]

METRO_LINK_SELECTORS = [
    'a.title[href*="/shop/pv/"]',
    'a[href*="/shop/pv/"]',
]

METRO_PRICE_SELECTORS = [
    '.price-display-main-row .primary span span',
    '.price-display-main-row .primary',
    '[class*="price-display"] [class*="primary"]',
    '[data-testid*="price"]',
    '.product-price',
    '.price',
]

METRO_NAME_SELECTORS = ['a.title', '.description', 'h3', 'h4']

METRO_NO_RESULTS_SELECTORS = [
    '.no-results',
    '.search-no-results',
    '[data-testid="no-results"]',
    '.empty-state',
]


def create_metro_extractor(scraper: BaseScraper) -> SiteExtractor:
    return SiteExtractor(
        site_key=scraper.config.key,
        base_url=scraper.config.base_url,
        strategies=METRO_STRATEGIES,
        link_selectors=METRO_LINK_SELECTORS,
        price_selectors=METRO_PRICE_SELECTORS,
        name_selectors=METRO_NAME_SELECTORS,
        no_results_selectors=METRO_NO_RESULTS_SELECTORS,
        detail_timeout=scraper.options.detail_timeout,
    )


class MetroScraper(BaseScraper):
    """Scraper for produkte.metro.de through the local browser."""

    site_key = 'metro'

    def create_extractor(self) -> SiteExtractor:
        return create_metro_extractor(self)


class MetroRemoteScraper(BaseScraper):
    """
    Scraper for produkte.metro.de through a remote scraping browser.

    The remote browser manages its own fingerprint, so only resource
    blocking is applied to pages. Results render late; the page is given
    a settle delay after network quiescence.
    """

    site_key = 'metro_remote'
    settle_delay = 3.0

    def __init__(self, *args, endpoint: Optional[str] = None, **kwargs):
        self.endpoint = endpoint
        super().__init__(*args, **kwargs)

    def create_extractor(self) -> SiteExtractor:
        return create_metro_extractor(self)

    def create_session_manager(self) -> BrowserSessionManager:
        if not self.endpoint:
            raise ValueError("Remote browser endpoint is not configured for metro_remote")
        return RemoteBrowserManager(
            endpoint=self.endpoint,
            name=self.config.key,
            page_timeout=self.options.timeout * 2,
        )

    async def setup_page(self, page) -> None:
        await page.route('**/*', self._route_request)

    async def navigate(self, page, url: str) -> None:
        await super().navigate(page, url)
        if self.settle_delay:
            await asyncio.sleep(self.settle_delay)
