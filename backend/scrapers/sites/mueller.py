"""
Müller scraper.

Search results mix real hits with sponsored placements that link through a
tracking parameter. Tiles rarely show a price, so most lookups continue to
the product page.

Site structure:
- Search page: `.product-tile_component_product-tile__*` tiles inside a product list
- Product links: `/p/<slug>/`; sponsored links carry `itemId=`
- Empty search: redirect to `/no-results/` or title "Keine Ergebnisse"
"""

from ..base import BaseScraper
from ..extraction import Candidate, SiteExtractor, css_strategy, link_strategy


MUELLER_STRATEGIES = [
    css_strategy('product tile', '.product-tile_component_product-tile__20XP8'),
    css_strategy('product tile class', 'div[class*="product-tile_component_product-tile"]:has(> a[href^="/p/"])'),
    link_strategy('product link', '/p/', container_selector='[class*="product-list"]'),
]

MUELLER_LINK_SELECTORS = ['a[href^="/p/"]', 'a[href*="/p/"]']

MUELLER_NAME_SELECTORS = [
    '.product-tile_component_product-tile__product-name__xG25c',
    '[class*="product-name"]',
    'h3',
    'h4',
]

MUELLER_TILE_PRICE_SELECTORS = [
    '[class*="main-price"]',
    '[class*="product-price"]',
]

MUELLER_DETAIL_PRICE_SELECTORS = [
    'span.h1.h2-desktop-only',
    '.product-price_component_product-price__main-price-accent__zHz13',
    '[class*="main-price-accent"]',
    '[class*="product-price__main-price"]',
    '[class*="product-price"]',
]

# Parent container class fragments of sponsored placements
SPONSORED_CONTAINER_MARKERS = ('promotion', 'nav-flyout')


def is_sponsored(candidate: Candidate) -> bool:
    """True for promoted tiles and tracking links."""
    if candidate.url and 'itemId=' in candidate.url:
        return True
    parent = candidate.element.parent
    classes = ' '.join(parent.get('class', [])) if parent is not None else ''
    return any(marker in classes for marker in SPONSORED_CONTAINER_MARKERS)


class MuellerExtractor(SiteExtractor):
    """Skips sponsored tiles and links that are not product pages."""

    def is_eligible(self, candidate: Candidate) -> bool:
        if is_sponsored(candidate):
            self.logger.debug(f"Skipping sponsored tile: {candidate.url}")
            return False
        return bool(candidate.url) and '/p/' in candidate.url


class MuellerScraper(BaseScraper):
    """Scraper for mueller.de."""

    site_key = 'mueller'

    def create_extractor(self) -> SiteExtractor:
        return MuellerExtractor(
            site_key=self.config.key,
            base_url=self.config.base_url,
            strategies=MUELLER_STRATEGIES,
            link_selectors=MUELLER_LINK_SELECTORS,
            price_selectors=MUELLER_TILE_PRICE_SELECTORS,
            detail_price_selectors=MUELLER_DETAIL_PRICE_SELECTORS,
            name_selectors=MUELLER_NAME_SELECTORS,
            no_results_url_markers=['/no-results/'],
            no_results_title_markers=['Keine Ergebnisse'],
            detail_timeout=self.options.detail_timeout,
        )
