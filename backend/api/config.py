"""
Application Configuration
Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False

    # CORS Configuration
    cors_origins: List[str] = ["*"]

    # Scraper Configuration
    scraper_timeout: float = 30.0
    scraper_max_retries: int = 2
    scraper_retry_delay: float = 1.0
    scraper_headless: bool = True
    scraper_user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    scraper_viewport_width: int = 1366
    scraper_viewport_height: int = 768
    scraper_cache_ttl: float = 1800.0

    # Batch Configuration
    batch_size: int = 10
    batch_concurrency: int = 3
    batch_delay_between_batches: float = 2.0
    batch_delay_between_items: float = 0.5
    pipeline_timeout: Optional[float] = None  # Whole-run limit in seconds

    # Metro access path: "local" browser or "remote" scraping browser
    metro_access: str = "local"

    # Remote scraping browser (Bright Data) credentials
    brightdata_customer_id: Optional[str] = None
    brightdata_zone: Optional[str] = None
    brightdata_password: Optional[str] = None

    # Product catalog (WooCommerce REST API)
    woocommerce_url: Optional[str] = None
    woocommerce_consumer_key: Optional[str] = None
    woocommerce_consumer_secret: Optional[str] = None

    # Scheduler calls are recognized by this user agent marker
    cron_user_agent: str = "vercel-cron"

    # Logging Configuration
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Paths
    @property
    def log_dir(self) -> Path:
        """Get the log directory path."""
        return Path(__file__).parent.parent.parent / "logs"

    @property
    def log_file(self) -> Path:
        """Get the log file path."""
        return self.log_dir / "backend.log"

    class Config:
        # Only load .env if it exists to avoid permission errors
        env_file = ".env" if __import__("pathlib").Path(".env").exists() else None
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra environment variables


# Global settings instance
settings = Settings()
