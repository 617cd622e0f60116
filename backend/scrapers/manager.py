"""
Scraper Manager - orchestrates the retailer scrapers.

Provides a unified interface for running scrapers and the scheduled price
update pipeline: read identifiers from the product catalog, scrape them,
summarize, and write usable results back.
"""

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Type, TYPE_CHECKING
import logging

from .base import BaseScraper, Colors, ScrapeResult, ScraperOptions, ScraperType
from .batch import BatchConfig
from .config import SITES, get_site_config, get_site_summary, get_site_variant
from .crawlers.remote import build_endpoint
from .utils.normalizers import format_price, normalize_identifier

# Import all implemented scrapers
from .sites.dm import DMScraper
from .sites.mueller import MuellerScraper
from .sites.metro import MetroScraper, MetroRemoteScraper

if TYPE_CHECKING:
    from api.catalog import ProductCatalog

logger = logging.getLogger(__name__)


# Registry of implemented scrapers
SCRAPER_REGISTRY: Dict[str, Type[BaseScraper]] = {
    'dm': DMScraper,
    'mueller': MuellerScraper,
    'metro': MetroScraper,
    'metro_remote': MetroRemoteScraper,
}


@dataclass
class ScrapeSummary:
    """Final counts reported to the observability sink."""
    total_processed: int = 0
    found_prices: int = 0
    found_urls: int = 0
    errors: int = 0

    @property
    def success_rate(self) -> str:
        if self.total_processed == 0:
            return '0.0%'
        return f"{self.found_prices / self.total_processed * 100:.1f}%"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['success_rate'] = self.success_rate
        return data


@dataclass
class PriceUpdateReport:
    """Outcome of one scheduled price update run."""
    site: str
    summary: ScrapeSummary
    updated: int = 0
    skipped: int = 0
    update_errors: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'site': self.site,
            'summary': self.summary.to_dict(),
            'updated': self.updated,
            'skipped': self.skipped,
            'update_errors': self.update_errors,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'duration_seconds': self.duration_seconds,
        }


def summarize_results(results: Dict[str, ScrapeResult]) -> ScrapeSummary:
    """
    Count found prices, found URLs and errors.

    A 0% success rate is a valid outcome and is reported, not raised.
    """
    summary = ScrapeSummary(total_processed=len(results))
    for result in results.values():
        if result.price is not None:
            summary.found_prices += 1
        if result.product_url:
            summary.found_urls += 1
        if result.error:
            summary.errors += 1
    return summary


class ScraperManager:
    """
    Manages the retailer scrapers.

    Each manager owns at most one scraper (and so one browser session and
    one cache) per site key. Independent pipelines should use independent
    managers.

    Usage:
        manager = ScraperManager(options=ScraperOptions(headless=True))

        results = await manager.scrape('dm', ['4005808730735'])
        report = await manager.run_price_update('dm', catalog)

        await manager.close()
    """

    def __init__(
        self,
        options: Optional[ScraperOptions] = None,
        batch_config: Optional[BatchConfig] = None,
        access: Optional[Dict[str, ScraperType]] = None,
        remote_endpoint: Optional[str] = None,
    ):
        """
        Initialize the scraper manager.

        Args:
            options: Runtime options shared by all scrapers
            batch_config: Pacing used for multi-identifier runs
            access: Preferred access path per site (e.g., {'metro': ScraperType.REMOTE})
            remote_endpoint: CDP endpoint for remote browser variants
        """
        self.options = options or ScraperOptions()
        self.batch_config = batch_config
        self.access = access or {}
        self.remote_endpoint = remote_endpoint
        self._scrapers: Dict[str, BaseScraper] = {}

    @classmethod
    def from_settings(cls, settings) -> 'ScraperManager':
        """Build a manager from application settings."""
        options = ScraperOptions(
            timeout=settings.scraper_timeout,
            headless=settings.scraper_headless,
            user_agent=settings.scraper_user_agent,
            viewport_width=settings.scraper_viewport_width,
            viewport_height=settings.scraper_viewport_height,
            cache_ttl=settings.scraper_cache_ttl,
        )
        batch_config = BatchConfig(
            batch_size=settings.batch_size,
            concurrency=settings.batch_concurrency,
            delay_between_batches=settings.batch_delay_between_batches,
            delay_between_items=settings.batch_delay_between_items,
            max_retries=settings.scraper_max_retries,
            retry_delay=settings.scraper_retry_delay,
            timeout=settings.pipeline_timeout,
        )
        access = {'metro': ScraperType(settings.metro_access)}

        remote_endpoint = None
        if access['metro'] == ScraperType.REMOTE:
            remote_endpoint = build_endpoint(
                settings.brightdata_customer_id,
                settings.brightdata_zone,
                settings.brightdata_password,
            )

        return cls(
            options=options,
            batch_config=batch_config,
            access=access,
            remote_endpoint=remote_endpoint,
        )

    def resolve_site_key(self, site_key: str) -> str:
        """
        Map a site key to the configured access variant.

        Raises:
            ValueError: If the site is unknown
        """
        config = get_site_config(site_key)
        preferred = self.access.get(config.group)
        if preferred is None:
            return site_key
        return get_site_variant(site_key, preferred)

    def get_scraper(self, site_key: str) -> BaseScraper:
        """
        Get the scraper for a site, creating it on first use.

        Args:
            site_key: Site identifier (e.g., 'dm', 'metro')

        Returns:
            Scraper instance owned by this manager

        Raises:
            ValueError: If the site is unknown or not implemented
        """
        key = self.resolve_site_key(site_key)
        if key in self._scrapers:
            return self._scrapers[key]

        if key not in SCRAPER_REGISTRY:
            raise ValueError(f"Scraper not implemented for site: {key}")

        scraper_class = SCRAPER_REGISTRY[key]
        kwargs: Dict[str, Any] = {
            'options': self.options,
            'batch_config': self.batch_config,
        }
        if SITES[key].scraper_type == ScraperType.REMOTE:
            kwargs['endpoint'] = self.remote_endpoint

        scraper = scraper_class(**kwargs)
        self._scrapers[key] = scraper
        logger.info(f"Created {scraper_class.__name__} for {key}")
        return scraper

    def register_scraper(self, scraper: BaseScraper) -> None:
        """Install a pre-built scraper (e.g., with its own session manager)."""
        self._scrapers[scraper.config.key] = scraper

    async def scrape(self, site_key: str, identifiers: Iterable[str]) -> Dict[str, ScrapeResult]:
        """Scrape identifiers on one site."""
        scraper = self.get_scraper(site_key)
        return await scraper.scrape_products(identifiers)

    async def run_price_update(self, site_key: str, catalog: 'ProductCatalog') -> PriceUpdateReport:
        """
        Run the scheduled price update for one site.

        Reads every product from the catalog, scrapes the distinct
        identifiers, writes price, URL and timestamp back for products with a
        usable result and leaves the rest untouched.

        Args:
            site_key: Site identifier
            catalog: Product catalog supplying identifiers and receiving results

        Returns:
            PriceUpdateReport with the summary and write-back counts
        """
        scraper = self.get_scraper(site_key)
        config = scraper.config
        report = PriceUpdateReport(site=config.key, summary=ScrapeSummary())

        products = await catalog.list_products()
        identifiers = [product.identifier for product in products if product.identifier]
        logger.info(Colors.bold(
            f"Price update for {config.name}: {len(products)} products, "
            f"{len(set(identifiers))} distinct identifiers"
        ))

        results = await scraper.scrape_products(identifiers)
        report.summary = summarize_results(results)

        timestamp = datetime.now(timezone.utc).isoformat()
        for product in products:
            result = results.get(normalize_identifier(product.identifier))
            if result is None or result.error or not result.found:
                report.skipped += 1
                continue

            try:
                await catalog.update_price_fields(
                    product,
                    prefix=config.catalog_prefix,
                    price=format_price(result.price),
                    product_url=result.product_url or '',
                    updated_at=timestamp,
                )
                report.updated += 1
            except Exception as e:
                logger.error(f"Failed to update product {product.id} ({product.identifier}): {e}")
                report.update_errors += 1

        report.completed_at = datetime.now(timezone.utc)
        logger.info(f"Price update summary: {json.dumps(report.to_dict())}")
        return report

    def clear_cache(self, site_key: str) -> None:
        self.get_scraper(site_key).clear_cache()

    def list_scrapers(self) -> List[Dict]:
        """
        List all configured sites and their implementation status.

        Returns:
            List of site info dictionaries
        """
        scrapers = get_site_summary(implemented=list(SCRAPER_REGISTRY.keys()))
        for entry in scrapers:
            scraper = self._scrapers.get(entry['key'])
            entry['active'] = scraper is not None
            if scraper is not None:
                entry['stats'] = scraper.get_stats()
        return scrapers

    def get_implemented_scrapers(self) -> List[str]:
        """Get list of implemented scraper keys."""
        return list(SCRAPER_REGISTRY.keys())

    async def close(self) -> None:
        """Shut down every browser session owned by this manager."""
        for key, scraper in self._scrapers.items():
            logger.info(f"Closing scraper {key}")
            await scraper.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
