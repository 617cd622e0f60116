"""
dm-drogerie markt scraper.

Search results are rendered client-side. Product links end in
``-p<GTIN>.html``, so the identifier check on the link is reliable.

Site structure:
- Search page: `[data-dmid="product-tile"]` tiles (older markup: `product-card`)
- Price: `[data-dmid="price-localized"]` on both tile and product page
"""

from ..base import BaseScraper
from ..extraction import SiteExtractor, css_strategy, link_strategy


DM_STRATEGIES = [
    css_strategy('product tile', '[data-dmid="product-tile"]'),
    css_strategy('product card', '[data-dmid="product-card"]'),
    css_strategy('product class', '[class*="product-tile"], [class*="product-card"]'),
    # Last resort: any product detail link on the page
    link_strategy('product link', '.html', container_selector='main'),
    link_strategy('product link (page)', '.html'),
]

DM_LINK_SELECTORS = [
    'a[data-dmid="product-link"]',
    'a[href*=".html"]',
    'a[href]',
]

DM_PRICE_SELECTORS = [
    '[data-dmid="price-localized"]',
    '[data-dmid="price"]',
    '.price',
    '[class*="price"]',
    '[class*="Price"]',
]

DM_NAME_SELECTORS = [
    '[data-dmid="product-description"]',
    '[data-dmid="product-title"]',
    'h2',
    'h3',
]

DM_NO_RESULTS_SELECTORS = [
    '[data-dmid="search-no-results"]',
    '[data-dmid="zero-results"]',
]


class DMScraper(BaseScraper):
    """Scraper for dm.de."""

    site_key = 'dm'

    def create_extractor(self) -> SiteExtractor:
        return SiteExtractor(
            site_key=self.config.key,
            base_url=self.config.base_url,
            strategies=DM_STRATEGIES,
            link_selectors=DM_LINK_SELECTORS,
            price_selectors=DM_PRICE_SELECTORS,
            name_selectors=DM_NAME_SELECTORS,
            no_results_selectors=DM_NO_RESULTS_SELECTORS,
            detail_timeout=self.options.detail_timeout,
        )
