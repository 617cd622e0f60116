"""
Browser-based competitor price scrapers.

This module provides a unified price lookup framework supporting:
- Local stealth Chromium sessions (Playwright)
- Remote scraping browsers reached over CDP
- Paced batch processing with retries and per-scraper result caches
"""

from .base import BaseScraper, ErrorKind, ScraperOptions, ScraperType, ScrapeResult, SiteConfig
from .batch import BatchConfig, BatchItem, BatchProcessor, BatchProgress, BatchResult
from .cache import ResultCache
from .config import SITES, get_site_config, get_enabled_sites
from .manager import ScraperManager, summarize_results

__all__ = [
    'BaseScraper',
    'ErrorKind',
    'ScraperOptions',
    'ScraperType',
    'ScrapeResult',
    'SiteConfig',
    'BatchConfig',
    'BatchItem',
    'BatchProcessor',
    'BatchProgress',
    'BatchResult',
    'ResultCache',
    'SITES',
    'get_site_config',
    'get_enabled_sites',
    'ScraperManager',
    'summarize_results',
]
