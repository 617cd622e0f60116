"""
Pytest configuration and fixtures for the price scraper tests.

Browser automation is replaced by in-memory doubles: FakePage serves HTML
from a URL map, FakeSessionManager runs the real session lifecycle on top
of fake browsers and counts every acquisition.
"""

import asyncio
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from api.catalog import CatalogProduct, InMemoryCatalog
from api.main import app, get_catalog, get_manager
from scrapers.batch import BatchConfig
from scrapers.crawlers.session import BrowserSession, BrowserSessionManager
from scrapers.manager import ScraperManager
from scrapers.sites.dm import DMScraper


GTIN = "4005808730735"
DM_SEARCH_URL = f"https://www.dm.de/search?query={GTIN}"
DM_PRODUCT_URL = f"https://www.dm.de/ariel-waschmittel-pulver-p{GTIN}.html"


def dm_tile(href: str, name: str, price: Optional[str] = None) -> str:
    price_html = f'<div data-dmid="price-localized">{price}</div>' if price else ''
    return (
        '<div data-dmid="product-tile">'
        f'<a href="{href}"><div data-dmid="product-description">{name}</div></a>'
        f'{price_html}'
        '</div>'
    )


def dm_search_page(*tiles: str) -> str:
    return (
        '<html><head><title>dm.de Suche</title></head><body><main>'
        '<h1>Suchergebnisse</h1>'
        + ''.join(tiles) +
        '</main></body></html>'
    )


EMPTY_SEARCH_PAGE = (
    '<html><head><title>dm.de Suche</title></head><body><main>'
    '<p>Leider haben wir zu Ihrer Suche nichts gefunden. '
    'Bitte versuchen Sie es mit einem anderen Suchbegriff erneut.</p>'
    '</main></body></html>'
)


class FakeResponse:
    def __init__(self, status: int = 200):
        self.status = status


class FakeRequest:
    def __init__(self, resource_type: str):
        self.resource_type = resource_type


class FakeRoute:
    def __init__(self, resource_type: str):
        self.request = FakeRequest(resource_type)
        self.aborted = False
        self.continued = False

    async def abort(self):
        self.aborted = True

    async def continue_(self):
        self.continued = True


class FakePage:
    """Serves HTML by URL; goto to a URL in `timeouts` raises a Playwright timeout."""

    def __init__(
        self,
        pages: Dict[str, str],
        timeouts: Optional[set] = None,
        redirects: Optional[Dict[str, str]] = None,
        delay: float = 0.0,
    ):
        self.pages = pages
        self.timeouts = timeouts or set()
        self.redirects = redirects or {}
        self.delay = delay
        self.url = 'about:blank'
        self.visited: List[str] = []
        self.headers: Dict[str, str] = {}
        self.viewport = None
        self.route_handler = None
        self.closed = False

    async def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if url in self.timeouts:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")
        self.url = self.redirects.get(url, url)
        return FakeResponse(200)

    async def content(self):
        return self.pages.get(self.url, '')

    async def set_viewport_size(self, viewport):
        self.viewport = viewport

    async def set_extra_http_headers(self, headers):
        self.headers = headers

    async def route(self, pattern, handler):
        self.route_handler = handler

    async def query_selector(self, selector):
        return None

    async def add_init_script(self, script):
        pass

    def set_default_timeout(self, timeout):
        pass

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, manager: 'FakeSessionManager'):
        self.manager = manager
        self.connected = True

    async def new_page(self):
        page = FakePage(
            self.manager.pages,
            timeouts=self.manager.timeouts,
            redirects=self.manager.redirects,
            delay=self.manager.page_delay,
        )
        self.manager.opened_pages.append(page)
        return page

    def is_connected(self):
        return self.connected

    async def close(self):
        self.connected = False


class FakeSessionManager(BrowserSessionManager):
    """Real session lifecycle over fake browsers."""

    def __init__(
        self,
        pages: Optional[Dict[str, str]] = None,
        timeouts: Optional[set] = None,
        redirects: Optional[Dict[str, str]] = None,
        launch_failures: int = 0,
        launch_delay: float = 0.0,
        page_delay: float = 0.0,
    ):
        super().__init__(name='fake')
        self.pages = pages if pages is not None else {}
        self.timeouts = timeouts if timeouts is not None else set()
        self.redirects = redirects or {}
        self.launch_failures = launch_failures
        self.launch_delay = launch_delay
        self.page_delay = page_delay
        self.acquire_calls = 0
        self.create_calls = 0
        self.opened_pages: List[FakePage] = []

    async def acquire(self):
        self.acquire_calls += 1
        return await super().acquire()

    async def _create_session(self):
        self.create_calls += 1
        if self.launch_delay:
            await asyncio.sleep(self.launch_delay)
        if self.launch_failures > 0:
            self.launch_failures -= 1
            raise RuntimeError("Chromium failed to launch")
        return BrowserSession(browser=FakeBrowser(self))


# No pacing delays in tests
FAST_BATCH = dict(delay_between_batches=0, delay_between_items=0, retry_delay=0)


@pytest.fixture
def fast_batch_config():
    return BatchConfig(**FAST_BATCH)


@pytest.fixture
def session_manager():
    """Fake session manager serving one DM search page with a matching tile."""
    return FakeSessionManager(pages={
        DM_SEARCH_URL: dm_search_page(
            dm_tile(f"/ariel-waschmittel-pulver-p{GTIN}.html", "Ariel Waschmittel Pulver", "€3,99"),
        ),
    })


@pytest.fixture
def dm_scraper(session_manager, fast_batch_config):
    return DMScraper(session_manager=session_manager, batch_config=fast_batch_config)


@pytest.fixture
def catalog():
    return InMemoryCatalog([
        CatalogProduct(id='101', identifier=GTIN, name='Ariel Waschmittel'),
        CatalogProduct(id='102', identifier='0000000000000', name='Unbekannt'),
    ])


@pytest.fixture
def manager(dm_scraper, fast_batch_config):
    manager = ScraperManager(batch_config=fast_batch_config)
    manager.register_scraper(dm_scraper)
    return manager


@pytest.fixture(scope="function")
def client(manager, catalog):
    """Create a test client with manager and catalog overrides."""
    async def override_get_catalog():
        yield catalog

    app.dependency_overrides[get_manager] = lambda: manager
    app.dependency_overrides[get_catalog] = override_get_catalog

    # Use TestClient directly without context manager for compatibility
    test_client = TestClient(app)
    yield test_client

    app.dependency_overrides.clear()
