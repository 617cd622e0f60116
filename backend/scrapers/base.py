"""
Base classes for the browser-based price scraper system.

This module defines the data structures shared by every retailer scraper
and the abstract base class that composes the result cache, the browser
session manager and the site extractor behind one contract.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Optional, Any, Iterable, Tuple, TYPE_CHECKING
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
import asyncio
import logging
import time

from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from .cache import ResultCache, DEFAULT_TTL_SECONDS
from .crawlers.session import BrowserSessionManager, SessionError
from .utils.normalizers import normalize_identifier

if TYPE_CHECKING:
    from .batch import BatchConfig
    from .extraction import SiteExtractor

logger = logging.getLogger(__name__)

# ANSI color codes for terminal output
class Colors:
    """ANSI color codes for colorized logging."""
    RESET = '\033[0m'
    BOLD = '\033[1m'

    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    CYAN = '\033[96m'
    GRAY = '\033[90m'

    @staticmethod
    def green(text):
        return f"{Colors.GREEN}{text}{Colors.RESET}"

    @staticmethod
    def yellow(text):
        return f"{Colors.YELLOW}{text}{Colors.RESET}"

    @staticmethod
    def red(text):
        return f"{Colors.RED}{text}{Colors.RESET}"

    @staticmethod
    def cyan(text):
        return f"{Colors.CYAN}{text}{Colors.RESET}"

    @staticmethod
    def gray(text):
        return f"{Colors.GRAY}{text}{Colors.RESET}"

    @staticmethod
    def bold(text):
        return f"{Colors.BOLD}{text}{Colors.RESET}"


class ScraperType(Enum):
    """How a scraper reaches the retailer."""
    LOCAL = "local"     # Stealth Chromium launched on this host
    REMOTE = "remote"   # Managed remote browsing endpoint over CDP


class ErrorKind(Enum):
    """Why a scrape produced no usable result."""
    NETWORK = "network"         # Navigation failed or timed out
    NO_MATCH = "no_match"       # Candidates found, none matched the identifier
    EXTRACTION = "extraction"   # No candidate strategy matched the markup
    BLOCKED = "blocked"         # Page loaded but was materially empty
    SESSION = "session"         # Browser session could not be created or died


RETRYABLE_ERRORS = frozenset({ErrorKind.NETWORK, ErrorKind.SESSION})

NO_MATCH_MESSAGE = "No matching product found"


@dataclass
class SiteConfig:
    """Configuration for a retailer."""
    key: str                            # Registry key (e.g., 'dm')
    name: str                           # Full display name
    search_url_template: str            # Search URL with an {identifier} slot
    base_url: str                       # Base URL for resolving relative links
    scraper_type: ScraperType           # How the site is reached
    catalog_prefix: str                 # Catalog meta key prefix (e.g., '_dm')
    variant_of: Optional[str] = None    # Site key this entry is an access variant of
    accept_language: str = 'de-DE,de;q=0.9,en-US;q=0.8,en;q=0.7'
    rate_limit_seconds: float = 0.5     # Delay between item starts in a batch
    enabled: bool = True

    def search_url(self, identifier: str) -> str:
        return self.search_url_template.format(identifier=identifier)

    @property
    def group(self) -> str:
        """Site key shared by all access variants of one retailer."""
        return self.variant_of or self.key


@dataclass
class ScraperOptions:
    """Runtime knobs shared by all scrapers."""
    timeout: float = 30.0               # Navigation timeout in seconds
    detail_timeout: float = 10.0        # Product page navigation timeout
    headless: bool = True
    user_agent: str = (
        'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'
    )
    viewport_width: int = 1366
    viewport_height: int = 768
    cache_ttl: float = DEFAULT_TTL_SECONDS
    wait_until: str = 'networkidle'
    # Heavy resources only; markup, styles and scripts are needed for rendering
    blocked_resource_types: Tuple[str, ...] = ('image', 'media')


@dataclass
class ScrapeResult:
    """Normalized price lookup result for one identifier."""
    price: Optional[Decimal] = None
    product_url: Optional[str] = None
    product_name: Optional[str] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    cached: bool = False

    @property
    def found(self) -> bool:
        """True when the result carries a price or a product URL."""
        return self.price is not None or bool(self.product_url)

    @property
    def retryable(self) -> bool:
        return self.error_kind in RETRYABLE_ERRORS

    @classmethod
    def failure(cls, message: str, kind: ErrorKind = ErrorKind.NETWORK) -> 'ScrapeResult':
        return cls(error=message, error_kind=kind)

    @classmethod
    def no_match(cls, kind: ErrorKind = ErrorKind.NO_MATCH) -> 'ScrapeResult':
        return cls(error=NO_MATCH_MESSAGE, error_kind=kind)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.price is not None:
            data['price'] = float(self.price)
        if self.product_url:
            data['product_url'] = self.product_url
        if self.product_name:
            data['product_name'] = self.product_name
        if self.error:
            data['error'] = self.error
        return data


# Consent banners that block interaction until dismissed, tried in order
COOKIE_CONSENT_SELECTORS = [
    '[data-testid="uc-accept-all-button"]',
    '#onetrust-accept-btn-handler',
    'button[id*="accept"]',
    'button[class*="cookie"]',
    'button[class*="accept"]',
    'button[class*="consent"]',
    '.cookie-accept',
]


class BaseScraper(ABC):
    """
    Abstract base class for all retailer scrapers.

    A scraper owns exactly one result cache and one browser session manager
    for its whole lifetime. Neither is shared with other scrapers.

    Subclasses must implement:
    - create_extractor(): Build the site extractor (strategies and selectors)

    Optional overrides:
    - create_session_manager(): Choose the browser access path
    - setup_page(): Page configuration before navigation
    - cookie_selectors: Site-specific consent buttons
    """

    site_key: str = ''
    cookie_selectors: List[str] = COOKIE_CONSENT_SELECTORS

    def __init__(
        self,
        config: Optional[SiteConfig] = None,
        options: Optional[ScraperOptions] = None,
        session_manager: Optional[BrowserSessionManager] = None,
        cache: Optional[ResultCache] = None,
        batch_config: Optional['BatchConfig'] = None,
    ):
        """
        Initialize the scraper.

        Args:
            config: Site configuration (defaults to the registry entry for site_key)
            options: Runtime options (timeouts, user agent, viewport)
            session_manager: Browser session manager (built by create_session_manager if omitted)
            cache: Result cache (a fresh private cache if omitted)
            batch_config: Pacing used by scrape_products
        """
        if config is None:
            from .config import get_site_config
            config = get_site_config(self.site_key)

        self.config = config
        self.options = options or ScraperOptions()
        self.logger = logging.getLogger(f"scraper.{config.key}")
        self.cache = cache if cache is not None else ResultCache(
            ttl_seconds=self.options.cache_ttl,
            name=config.key,
        )
        self.session_manager = session_manager or self.create_session_manager()
        self.extractor = self.create_extractor()
        self.batch_config = batch_config

    @abstractmethod
    def create_extractor(self) -> 'SiteExtractor':
        """Build the extractor holding this site's strategies and selectors."""

    def create_session_manager(self) -> BrowserSessionManager:
        from .crawlers.stealth import StealthBrowserManager
        return StealthBrowserManager(name=self.config.key, headless=self.options.headless)

    def search_url(self, identifier: str) -> str:
        return self.config.search_url(identifier)

    async def setup_page(self, page) -> None:
        """
        Configure a fresh page before navigation.

        Sets a realistic user agent, viewport and headers, and aborts heavy
        resource types while letting markup, styles and scripts through.
        """
        await page.set_viewport_size({
            'width': self.options.viewport_width,
            'height': self.options.viewport_height,
        })
        await page.set_extra_http_headers({
            'User-Agent': self.options.user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8',
            'Accept-Language': self.config.accept_language,
            'DNT': '1',
            'Upgrade-Insecure-Requests': '1',
        })
        await page.route('**/*', self._route_request)

    async def _route_request(self, route) -> None:
        if route.request.resource_type in self.options.blocked_resource_types:
            await route.abort()
        else:
            await route.continue_()

    async def navigate(self, page, url: str) -> None:
        """Load a URL and wait for network quiescence within the timeout."""
        self.logger.debug(f"Navigating to {url}")
        response = await page.goto(
            url,
            wait_until=self.options.wait_until,
            timeout=int(self.options.timeout * 1000),
        )
        if response is not None and response.status >= 500:
            raise PlaywrightError(f"HTTP {response.status} for {url}")

    async def dismiss_cookie_banner(self, page) -> bool:
        """
        Click the first visible consent button, if any.

        Returns:
            True when a banner was dismissed
        """
        for selector in self.cookie_selectors:
            try:
                element = await page.query_selector(selector)
                if element is None:
                    continue
                await element.click(timeout=2000)
                self.logger.debug(f"Accepted cookies with selector: {selector}")
                return True
            except PlaywrightError as e:
                self.logger.debug(f"Cookie selector {selector} failed: {e}")
        return False

    async def scrape_product(self, identifier: str) -> ScrapeResult:
        """
        Look up price and product URL for one identifier.

        Never raises: every failure is encoded in the returned result.
        Results with a price or URL are cached; errors never are.
        """
        identifier = normalize_identifier(identifier)
        if not identifier:
            self.logger.warning("Empty identifier, skipping lookup")
            return ScrapeResult.no_match()

        cached = self.cache.get(identifier)
        if cached is not None:
            self.logger.info(f"Cache hit for {identifier}")
            return replace(cached, cached=True)

        started = time.monotonic()
        try:
            async with self.session_manager.page() as page:
                await self.setup_page(page)
                await self.navigate(page, self.search_url(identifier))
                await self.dismiss_cookie_banner(page)
                result = await self.extractor.extract(page, identifier)

        except SessionError as e:
            self.logger.error(f"Browser session failed for {identifier}: {e}")
            result = ScrapeResult.failure(str(e), ErrorKind.SESSION)

        except (PlaywrightTimeoutError, asyncio.TimeoutError) as e:
            self.logger.warning(f"Navigation timed out for {identifier}: {e}")
            result = ScrapeResult.failure(f"Navigation timed out: {e}", ErrorKind.NETWORK)

        except Exception as e:
            message = str(e) or e.__class__.__name__
            if not self.session_manager.is_alive():
                self.logger.error(f"Browser session died while scraping {identifier}: {message}")
                result = ScrapeResult.failure(message, ErrorKind.SESSION)
            else:
                self.logger.warning(f"Scraping failed for {identifier}: {message}")
                result = ScrapeResult.failure(message, ErrorKind.NETWORK)

        if not result.found and not result.error:
            result = ScrapeResult.no_match()

        if result.found:
            self.cache.set(identifier, result)

        elapsed = time.monotonic() - started
        if result.price is not None:
            self.logger.info(Colors.green(f"✓ {identifier}: €{result.price} ({elapsed:.1f}s)"))
        elif result.found:
            self.logger.info(Colors.yellow(f"~ {identifier}: URL only ({elapsed:.1f}s)"))
        else:
            self.logger.info(Colors.gray(f"✗ {identifier}: {result.error} ({elapsed:.1f}s)"))

        return result

    async def scrape_products(self, identifiers: Iterable[str]) -> Dict[str, ScrapeResult]:
        """
        Scrape many identifiers through the batch processor.

        Returns:
            Dictionary mapping identifier to ScrapeResult, one entry per
            distinct identifier
        """
        from .batch import BatchConfig, BatchItem, BatchProcessor

        unique: List[str] = []
        for identifier in identifiers:
            identifier = normalize_identifier(identifier)
            if identifier and identifier not in unique:
                unique.append(identifier)

        config = self.batch_config or BatchConfig(delay_between_items=self.config.rate_limit_seconds)
        processor = BatchProcessor(config)

        self.logger.info(f"Starting batch scraping of {len(unique)} identifiers")
        items = [BatchItem(id=identifier, payload=identifier) for identifier in unique]
        batch_results = await processor.process_batch(items, self.scrape_product)

        results: Dict[str, ScrapeResult] = {}
        for batch_result in batch_results:
            if batch_result.data is not None:
                results[batch_result.id] = batch_result.data
            else:
                results[batch_result.id] = ScrapeResult.failure(batch_result.error or 'Unknown error')
        return results

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_stats(self) -> Dict[str, Any]:
        return {
            'site': self.config.key,
            'cache': self.cache.stats(),
            'session': self.session_manager.stats(),
        }

    async def close(self) -> None:
        """Shut down the browser session; the cache is kept."""
        await self.session_manager.shutdown()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
