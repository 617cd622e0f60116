"""
Site configurations for the supported retailers.

Each site has a SiteConfig that defines:
- Search URL template and base URL
- Access path (local stealth browser or remote browser)
- Catalog meta key prefix and pacing
"""

from typing import Dict, List, Optional

from .base import SiteConfig, ScraperType


# ============================================================
# SITE CONFIGURATIONS
# ============================================================

SITES = {
    'dm': SiteConfig(
        key='dm',
        name='dm-drogerie markt',
        search_url_template='https://www.dm.de/search?query={identifier}',
        base_url='https://www.dm.de',
        scraper_type=ScraperType.LOCAL,
        catalog_prefix='_dm',
        rate_limit_seconds=0.5,
    ),

    'mueller': SiteConfig(
        key='mueller',
        name='Müller',
        search_url_template='https://www.mueller.de/search/?q={identifier}',
        base_url='https://www.mueller.de',
        scraper_type=ScraperType.LOCAL,
        catalog_prefix='_mueller',
        rate_limit_seconds=0.5,
    ),

    # ========== METRO (two access paths) ==========
    # Metro blocks most datacenter traffic; the remote variant goes
    # through a managed scraping browser

    'metro': SiteConfig(
        key='metro',
        name='METRO',
        search_url_template='https://produkte.metro.de/shop/search?q={identifier}',
        base_url='https://produkte.metro.de',
        scraper_type=ScraperType.LOCAL,
        catalog_prefix='_metro',
        rate_limit_seconds=1.0,
    ),

    'metro_remote': SiteConfig(
        key='metro_remote',
        name='METRO (remote browser)',
        search_url_template='https://produkte.metro.de/shop/search?q={identifier}',
        base_url='https://produkte.metro.de',
        scraper_type=ScraperType.REMOTE,
        catalog_prefix='_metro',
        variant_of='metro',
        rate_limit_seconds=1.0,
    ),
}


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_site_config(site_key: str) -> SiteConfig:
    """
    Get configuration for a site by its key.

    Args:
        site_key: Site identifier (e.g., 'dm', 'metro_remote')

    Returns:
        SiteConfig for the site

    Raises:
        ValueError: If site_key is not found
    """
    if site_key not in SITES:
        valid_keys = ', '.join(sorted(SITES.keys()))
        raise ValueError(f"Unknown site: '{site_key}'. Valid sites: {valid_keys}")
    return SITES[site_key]


def get_site_variant(site_key: str, scraper_type: ScraperType) -> str:
    """
    Pick the access variant of a site.

    Examples:
        ('metro', ScraperType.REMOTE) -> 'metro_remote'
        ('dm', ScraperType.REMOTE) -> 'dm'  # no remote variant

    Raises:
        ValueError: If site_key is not found
    """
    config = get_site_config(site_key)
    group = config.group
    for key, candidate in SITES.items():
        if candidate.group == group and candidate.scraper_type == scraper_type:
            return key
    return site_key


def get_enabled_sites() -> Dict[str, SiteConfig]:
    """Get all enabled sites."""
    return {k: v for k, v in SITES.items() if v.enabled}


def list_sites() -> List[str]:
    """List all site keys."""
    return list(SITES.keys())


def get_site_summary(implemented: Optional[List[str]] = None) -> List[dict]:
    """Get a summary of all sites for display."""
    summary = []
    for key, config in SITES.items():
        entry = {
            'key': key,
            'name': config.name,
            'type': config.scraper_type.value,
            'variant_of': config.variant_of,
            'enabled': config.enabled,
            'url': config.search_url_template,
        }
        if implemented is not None:
            entry['implemented'] = key in implemented
        summary.append(entry)
    return summary
