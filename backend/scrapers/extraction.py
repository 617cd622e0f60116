"""
Locating and validating the product that matches an identifier.

Retailers render search results with shifting markup, so candidates are
located by an ordered list of strategies and the first strategy that finds
anything wins. A candidate is only accepted when its product URL contains
the searched identifier; the first tile on a fuzzy result page is never
assumed to be the right product.
"""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError
from playwright.async_api import Error as PlaywrightError

from .base import ErrorKind, ScrapeResult
from .utils.extractors import (
    absolute_url,
    extract_href,
    extract_price,
    extract_text,
    is_blocked_page,
)


@dataclass
class CandidateStrategy:
    """A named way of finding result tiles in a search page."""
    name: str
    locate: Callable[[BeautifulSoup], List[Tag]]


def css_strategy(name: str, selector: str) -> CandidateStrategy:
    """Strategy matching elements by CSS selector."""
    def locate(soup: BeautifulSoup) -> List[Tag]:
        try:
            return soup.select(selector)
        except SelectorSyntaxError:
            return []
    return CandidateStrategy(name=name, locate=locate)


def link_strategy(name: str, href_marker: str, container_selector: Optional[str] = None) -> CandidateStrategy:
    """
    Strategy falling back to product links found anywhere on the page.

    Args:
        name: Strategy name for logs
        href_marker: Substring every product link href contains (e.g., '.html')
        container_selector: Only consider links under elements matching this

    Returns:
        Strategy yielding the link elements themselves as candidates
    """
    def locate(soup: BeautifulSoup) -> List[Tag]:
        roots = soup.select(container_selector) if container_selector else [soup]
        links: List[Tag] = []
        for root in roots:
            for link in root.find_all('a', href=True):
                if href_marker in link['href'] and link not in links:
                    links.append(link)
        return links
    return CandidateStrategy(name=name, locate=locate)


@dataclass
class Candidate:
    """A result tile resolved to its product URL."""
    element: Tag
    url: Optional[str]
    name: Optional[str]
    strategy: str

    def matches(self, identifier: str) -> bool:
        return bool(identifier) and bool(self.url) and identifier in self.url


class SiteExtractor:
    """
    Extracts price and product URL for one identifier from a search page.

    Sites differ only in their strategies and selectors; subclasses override
    is_eligible() when some tiles must be skipped outright.
    """

    def __init__(
        self,
        site_key: str,
        base_url: str,
        strategies: Sequence[CandidateStrategy],
        link_selectors: Sequence[str],
        price_selectors: Sequence[str],
        detail_price_selectors: Optional[Sequence[str]] = None,
        name_selectors: Sequence[str] = (),
        no_results_selectors: Sequence[str] = (),
        no_results_url_markers: Sequence[str] = (),
        no_results_title_markers: Sequence[str] = (),
        detail_timeout: float = 10.0,
    ):
        """
        Initialize the extractor.

        Args:
            site_key: Site key used for the logger name
            base_url: Base for resolving relative product links
            strategies: Candidate strategies in priority order
            link_selectors: Selectors for the product link inside a tile
            price_selectors: Selectors for the price inside a tile
            detail_price_selectors: Selectors on the product page (defaults to price_selectors)
            name_selectors: Selectors for the product name inside a tile
            no_results_selectors: Elements only present on an empty result page
            no_results_url_markers: URL fragments of an empty result page
            no_results_title_markers: Title fragments of an empty result page
            detail_timeout: Product page navigation timeout in seconds
        """
        self.base_url = base_url
        self.strategies = list(strategies)
        self.link_selectors = list(link_selectors)
        self.price_selectors = list(price_selectors)
        self.detail_price_selectors = list(detail_price_selectors or price_selectors)
        self.name_selectors = list(name_selectors)
        self.no_results_selectors = list(no_results_selectors)
        self.no_results_url_markers = list(no_results_url_markers)
        self.no_results_title_markers = list(no_results_title_markers)
        self.detail_timeout = detail_timeout
        self.logger = logging.getLogger(f"scraper.{site_key}")

    def locate_candidates(self, soup: BeautifulSoup) -> Tuple[Optional[str], List[Tag]]:
        """
        Run strategies in order; the first non-empty one wins.

        Returns:
            Tuple of (strategy name, elements); (None, []) when nothing matched
        """
        for strategy in self.strategies:
            elements = strategy.locate(soup)
            if elements:
                self.logger.debug(f"Strategy '{strategy.name}' found {len(elements)} candidates")
                return strategy.name, elements
        return None, []

    def resolve_candidate(self, element: Tag, strategy: str) -> Candidate:
        href = extract_href(element, self.link_selectors)
        return Candidate(
            element=element,
            url=absolute_url(href, self.base_url),
            name=extract_text(element, self.name_selectors) if self.name_selectors else None,
            strategy=strategy,
        )

    def is_eligible(self, candidate: Candidate) -> bool:
        """Hook for skipping tiles (e.g., sponsored placements)."""
        return True

    def is_no_results_page(self, soup: BeautifulSoup, page_url: str = '') -> bool:
        if any(marker in page_url for marker in self.no_results_url_markers):
            return True
        title = soup.title.get_text(strip=True) if soup.title else ''
        if any(marker in title for marker in self.no_results_title_markers):
            return True
        for selector in self.no_results_selectors:
            try:
                if soup.select_one(selector) is not None:
                    return True
            except SelectorSyntaxError:
                continue
        return False

    def match(self, html: str, identifier: str, page_url: str = '') -> Tuple[ScrapeResult, Optional[Candidate]]:
        """
        Find the candidate matching the identifier in a search page.

        Returns:
            Tuple of (result, matched candidate). The result carries the tile
            price when the tile shows one; the candidate is None on failure.
        """
        soup = BeautifulSoup(html, 'html.parser')

        if self.is_no_results_page(soup, page_url):
            self.logger.info(f"No results page for {identifier}")
            return ScrapeResult.no_match(ErrorKind.NO_MATCH), None

        strategy, elements = self.locate_candidates(soup)
        if not elements:
            if is_blocked_page(html):
                self.logger.warning(f"Search page for {identifier} looks blocked (no visible content)")
                return ScrapeResult.no_match(ErrorKind.BLOCKED), None
            self.logger.warning(f"No candidate strategy matched the search page for {identifier}")
            return ScrapeResult.no_match(ErrorKind.EXTRACTION), None

        candidates = [self.resolve_candidate(element, strategy) for element in elements]
        eligible = [candidate for candidate in candidates if self.is_eligible(candidate)]

        match = next((candidate for candidate in eligible if candidate.matches(identifier)), None)
        if match is None:
            self.logger.info(
                f"{len(eligible)}/{len(candidates)} eligible candidates via '{strategy}', "
                f"none with {identifier} in the product URL"
            )
            return ScrapeResult.no_match(ErrorKind.NO_MATCH), None

        price, selector = extract_price(match.element, self.price_selectors)
        if price is not None:
            self.logger.debug(f"Price {price} for {identifier} via selector '{selector}'")

        return ScrapeResult(price=price, product_url=match.url, product_name=match.name), match

    def detail_price(self, html: str) -> Optional[Decimal]:
        soup = BeautifulSoup(html, 'html.parser')
        price, selector = extract_price(soup, self.detail_price_selectors)
        if price is not None:
            self.logger.debug(f"Product page price {price} via selector '{selector}'")
        return price

    async def extract(self, page, identifier: str) -> ScrapeResult:
        """
        Extract the result for an identifier from the loaded search page.

        When the matched tile shows no price, the product page is opened and
        the price selectors are tried again there. A product page failure
        still yields the URL-only result.
        """
        html = await page.content()
        result, match = self.match(html, identifier, page_url=page.url or '')
        if match is None or result.price is not None:
            return result

        self.logger.debug(f"No price on search tile for {identifier}, opening {match.url}")
        try:
            await page.goto(
                match.url,
                wait_until='domcontentloaded',
                timeout=int(self.detail_timeout * 1000),
            )
            result.price = self.detail_price(await page.content())
        except (PlaywrightError, asyncio.TimeoutError) as e:
            self.logger.warning(f"Product page failed for {identifier}, keeping URL only: {e}")

        return result
