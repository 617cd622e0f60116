"""
Tests for application configuration and the site registry.
"""

import pytest

from api.config import Settings
from scrapers.base import ScraperType
from scrapers.config import SITES, get_enabled_sites, get_site_config, get_site_summary, get_site_variant
from scrapers.manager import ScraperManager
from scrapers.sites.metro import MetroRemoteScraper


class TestSettings:
    """Test the Settings configuration class."""

    def test_settings_defaults(self):
        """Test that settings have sensible defaults."""
        from api.config import settings

        assert settings.api_host == "0.0.0.0"
        assert settings.api_port == 8000
        assert settings.api_debug is False
        assert settings.scraper_timeout == 30
        assert settings.scraper_max_retries == 2
        assert settings.batch_size == 10
        assert settings.batch_concurrency == 3
        assert settings.metro_access == "local"
        assert settings.cron_user_agent == "vercel-cron"
        assert settings.log_level == "INFO"

    def test_settings_cors_origins(self):
        """Test that CORS origins are configured."""
        from api.config import settings

        assert isinstance(settings.cors_origins, list)
        assert len(settings.cors_origins) > 0

    def test_settings_log_paths(self):
        """Test that log paths are valid."""
        from api.config import settings

        assert settings.log_dir is not None
        assert settings.log_file.name == "backend.log"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("METRO_ACCESS", "remote")
        monkeypatch.setenv("BATCH_CONCURRENCY", "5")

        settings = Settings()

        assert settings.metro_access == "remote"
        assert settings.batch_concurrency == 5


class TestSiteRegistry:
    """Test site lookup helpers."""

    def test_get_site_config(self):
        config = get_site_config('dm')

        assert config.catalog_prefix == '_dm'
        assert config.search_url('4005808730735') == 'https://www.dm.de/search?query=4005808730735'

    def test_unknown_site(self):
        with pytest.raises(ValueError, match="Unknown site"):
            get_site_config('rossmann')

    def test_metro_variants_share_prefix(self):
        assert SITES['metro'].catalog_prefix == SITES['metro_remote'].catalog_prefix
        assert SITES['metro_remote'].group == 'metro'

    def test_get_site_variant(self):
        assert get_site_variant('metro', ScraperType.REMOTE) == 'metro_remote'
        assert get_site_variant('metro_remote', ScraperType.LOCAL) == 'metro'
        assert get_site_variant('dm', ScraperType.REMOTE) == 'dm'

    def test_enabled_sites_and_summary(self):
        assert set(get_enabled_sites()) == set(SITES)
        summary = get_site_summary(implemented=['dm'])
        assert {entry['key']: entry['implemented'] for entry in summary}['dm'] is True
        assert {entry['key']: entry['implemented'] for entry in summary}['mueller'] is False


class TestAccessResolution:
    """Test picking the local or remote METRO scraper from settings."""

    def test_local_by_default(self):
        manager = ScraperManager.from_settings(Settings(metro_access="local"))
        assert manager.resolve_site_key('metro') == 'metro'
        assert manager.remote_endpoint is None

    def test_remote_requires_credentials(self):
        with pytest.raises(ValueError, match="Missing remote browser credentials"):
            ScraperManager.from_settings(Settings(
                metro_access="remote",
                brightdata_customer_id=None,
                brightdata_zone=None,
                brightdata_password=None,
            ))

    def test_remote_access(self):
        manager = ScraperManager.from_settings(Settings(
            metro_access="remote",
            brightdata_customer_id="c1",
            brightdata_zone="scraping",
            brightdata_password="secret",
        ))

        assert manager.resolve_site_key('metro') == 'metro_remote'
        assert manager.resolve_site_key('dm') == 'dm'

        scraper = manager.get_scraper('metro')
        assert isinstance(scraper, MetroRemoteScraper)
        assert scraper.endpoint == manager.remote_endpoint
        assert manager.get_scraper('metro_remote') is scraper

    def test_batch_settings_flow_into_config(self):
        manager = ScraperManager.from_settings(Settings(
            batch_size=4,
            batch_concurrency=2,
            scraper_max_retries=1,
            pipeline_timeout=600,
        ))

        assert manager.batch_config.batch_size == 4
        assert manager.batch_config.concurrency == 2
        assert manager.batch_config.max_attempts == 2
        assert manager.batch_config.timeout == 600

    def test_invalid_access_value(self):
        with pytest.raises(ValueError):
            ScraperManager.from_settings(Settings(metro_access="satellite"))
