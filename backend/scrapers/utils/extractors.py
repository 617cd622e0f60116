"""
Data extraction utilities for scrapers.

These functions pull text, links and prices out of parsed HTML
(BeautifulSoup nodes). They never raise on missing markup; absence is
reported as None.
"""

from decimal import Decimal
from typing import Iterable, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from .normalizers import normalize_whitespace, parse_price


# Below this many characters of visible text a loaded page is treated as blocked
BLOCKED_PAGE_TEXT_THRESHOLD = 50


def select_first(node: Tag, selectors: Iterable[str]) -> Optional[Tag]:
    """
    Return the first element matching the selectors, tried in order.

    Args:
        node: Element (or soup) to search under
        selectors: CSS selectors in priority order

    Returns:
        First matching element or None
    """
    for selector in selectors:
        try:
            element = node.select_one(selector)
        except SelectorSyntaxError:
            continue
        if element is not None:
            return element
    return None


def extract_text(node: Optional[Tag], selectors: Iterable[str] = ()) -> Optional[str]:
    """
    Extract normalized text from a node, optionally through selectors.

    With no selectors the node's own text is returned.
    """
    if node is None:
        return None
    selectors = list(selectors)
    target = select_first(node, selectors) if selectors else node
    if target is None:
        return None
    return normalize_whitespace(target.get_text(' ', strip=True))


def extract_href(node: Optional[Tag], selectors: Iterable[str] = ('a[href]',)) -> Optional[str]:
    """
    Extract an href from a node.

    The node's own href wins when the node itself is a link.
    """
    if node is None:
        return None
    if node.name == 'a' and node.get('href'):
        return node['href'].strip()
    link = select_first(node, selectors)
    if link is not None and link.get('href'):
        return link['href'].strip()
    return None


def absolute_url(href: Optional[str], base_url: str) -> Optional[str]:
    """
    Resolve an href against the site base URL.

    Examples:
        ("/ariel-p4005808730735.html", "https://www.dm.de") ->
            "https://www.dm.de/ariel-p4005808730735.html"
    """
    if not href:
        return None
    if href.startswith(('javascript:', 'mailto:', '#')):
        return None
    return urljoin(base_url, href)


def extract_price(node: Optional[Tag], selectors: Iterable[str]) -> Tuple[Optional[Decimal], Optional[str]]:
    """
    Try price selectors in order and parse the first parsable text.

    Returns:
        Tuple of (price, selector that produced it); (None, None) on a miss
    """
    if node is None:
        return None, None

    for selector in selectors:
        try:
            elements = node.select(selector)
        except SelectorSyntaxError:
            continue
        for element in elements:
            price = parse_price(element.get_text(' ', strip=True))
            if price is not None:
                return price, selector
    return None, None


def page_text_length(soup: BeautifulSoup) -> int:
    """Length of the visible body text, scripts and styles excluded."""
    body = soup.body or soup
    for hidden in body.find_all(['script', 'style', 'noscript', 'template']):
        hidden.extract()
    return len(body.get_text(' ', strip=True))


def is_blocked_page(html: str) -> bool:
    """
    Detect an anti-bot block: the page loaded but is materially empty.

    Args:
        html: Raw page HTML

    Returns:
        True when the visible text is below the block threshold
    """
    if not html:
        return True
    soup = BeautifulSoup(html, 'html.parser')
    return page_text_length(soup) < BLOCKED_PAGE_TEXT_THRESHOLD
