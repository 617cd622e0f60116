"""Site-specific scraper implementations."""

from .dm import DMScraper
from .mueller import MuellerScraper
from .metro import MetroScraper, MetroRemoteScraper

__all__ = ['DMScraper', 'MuellerScraper', 'MetroScraper', 'MetroRemoteScraper']
