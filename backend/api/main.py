from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from typing import AsyncIterator, List, Optional
from datetime import datetime, timezone
import logging
import asyncio

from api.config import settings
from api.catalog import ProductCatalog, WooCommerceCatalog
from scrapers.config import SITES
from scrapers.manager import ScraperManager, summarize_results
from pydantic import BaseModel, Field

# Setup logging directory
settings.log_dir.mkdir(exist_ok=True)

# Configure logging using settings
import re

# Custom formatter to strip ANSI color codes from file logs
class ColorStripFormatter(logging.Formatter):
    """Formatter that strips ANSI color codes from log messages."""
    ansi_escape = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

    def format(self, record):
        message = super().format(record)
        return self.ansi_escape.sub('', message)

# Setup logging with color support for console, stripped for file
file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
file_handler.setFormatter(ColorStripFormatter(settings.log_format))

console_handler = logging.StreamHandler()
console_handler.setFormatter(logging.Formatter(settings.log_format))

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    handlers=[file_handler, console_handler],
    force=True  # Override any existing configuration
)

# Per-site scraper loggers ('scraper.dm', ...) get their own handlers so
# messages appear once
scraper_logger = logging.getLogger('scraper')
scraper_logger.propagate = False
# Only add handlers if not already present (prevents duplicates on module reload)
if not scraper_logger.handlers:
    # File handler with color stripping
    scraper_file_handler = logging.FileHandler(settings.log_file, encoding='utf-8')
    scraper_file_handler.setFormatter(ColorStripFormatter(settings.log_format))
    scraper_logger.addHandler(scraper_file_handler)

    # Console handler with colors
    scraper_console_handler = logging.StreamHandler()
    scraper_console_handler.setFormatter(logging.Formatter(settings.log_format))
    scraper_logger.addHandler(scraper_console_handler)
scraper_logger.setLevel(getattr(logging, settings.log_level.upper()))

logger = logging.getLogger(__name__)


# Filter to suppress noisy polling endpoint access logs
class PollingEndpointFilter(logging.Filter):
    # Endpoints that poll frequently and clutter logs
    SUPPRESSED_ENDPOINTS = ['/api/scrapers', '/favicon.ico']

    def filter(self, record):
        try:
            msg = record.getMessage()
        except Exception:
            msg = str(record.msg)
        # Suppress requests to polling endpoints
        for endpoint in self.SUPPRESSED_ENDPOINTS:
            if endpoint in msg:
                return False
        return True

# Apply filter to uvicorn access logger at module load time
uvicorn_access_logger = logging.getLogger("uvicorn.access")
uvicorn_access_logger.addFilter(PollingEndpointFilter())


# One manager (and so one browser session per site) for the whole process
_manager: Optional[ScraperManager] = None


def get_manager() -> ScraperManager:
    """Return the process-wide scraper manager, creating it on first use."""
    global _manager
    if _manager is None:
        try:
            _manager = ScraperManager.from_settings(settings)
        except ValueError as e:
            logger.error(f"Invalid scraper configuration: {e}")
            raise HTTPException(status_code=500, detail=f"Invalid scraper configuration: {e}")
    return _manager


async def get_catalog() -> AsyncIterator[ProductCatalog]:
    """Open a WooCommerce catalog client for one request."""
    try:
        catalog = WooCommerceCatalog.from_settings(settings)
    except ValueError as e:
        logger.error(f"Product catalog not configured: {e}")
        raise HTTPException(status_code=500, detail="Product catalog is not configured")
    try:
        yield catalog
    finally:
        await catalog.close()


async def cleanup_resources():
    """Clean up all resources on shutdown."""
    global _manager
    logger.info("Cleaning up resources...")

    if _manager is not None:
        try:
            logger.info("Closing browser sessions...")
            await _manager.close()
            logger.info("Browser sessions closed")
        except Exception as e:
            logger.warning(f"Error closing browser sessions: {e}")
        _manager = None

    logger.info("Resource cleanup complete")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info("Price Intelligence Backend Starting Up")
    logger.info("=" * 60)
    logger.info(f"Log file: {settings.log_file}")
    logger.info(f"Metro access: {settings.metro_access}")
    logger.info(
        f"Batch: size={settings.batch_size}, concurrency={settings.batch_concurrency}, "
        f"retries={settings.scraper_max_retries}"
    )
    logger.info("Backend ready to accept requests")

    yield  # Application runs here

    # Shutdown
    logger.info("=" * 60)
    logger.info("Price Intelligence Backend Shutting Down")
    logger.info("=" * 60)

    # Clean up resources with timeout
    try:
        await asyncio.wait_for(cleanup_resources(), timeout=5.0)
    except asyncio.TimeoutError:
        logger.warning("Shutdown cleanup timed out, forcing exit")
    except Exception as e:
        logger.error(f"Error during shutdown cleanup: {e}")

    logger.info("Shutdown complete")


app = FastAPI(
    title="Price Intelligence API",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware - allow all origins for development
# Note: allow_credentials must be False when allow_origins is ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    """Return empty response for favicon requests"""
    return Response(status_code=204)


# Pydantic models for API requests
class ScrapeRequest(BaseModel):
    identifiers: List[str] = Field(..., min_length=1, description="GTIN/EAN codes to look up")


def require_site(site_key: str) -> str:
    """Validate a site key from the path."""
    if site_key not in SITES:
        raise HTTPException(
            status_code=404,
            detail=f"Unknown site: {site_key}. Available: {sorted(SITES.keys())}"
        )
    return site_key


@app.get("/")
async def root():
    return {"message": "Price Intelligence API", "version": app.version}


@app.get("/api/scrapers")
async def list_scrapers(manager: ScraperManager = Depends(get_manager)):
    """List all available scrapers and their implementation status"""
    return {
        "scrapers": manager.list_scrapers(),
        "implemented": manager.get_implemented_scrapers()
    }


@app.post("/api/scrape/{site_key}")
async def scrape_identifiers(
    request: ScrapeRequest,
    site_key: str = Depends(require_site),
    manager: ScraperManager = Depends(get_manager),
):
    """Look up prices for an ad-hoc list of identifiers on one site"""
    logger.info(f"Ad-hoc scrape on {site_key}: {len(request.identifiers)} identifiers")
    results = await manager.scrape(site_key, request.identifiers)
    return {
        "site": site_key,
        "results": {identifier: result.to_dict() for identifier, result in results.items()},
        "summary": summarize_results(results).to_dict(),
    }


@app.post("/api/scrapers/{site_key}/cache/clear")
async def clear_scraper_cache(
    site_key: str = Depends(require_site),
    manager: ScraperManager = Depends(get_manager),
):
    """Drop every cached result for a site"""
    manager.clear_cache(site_key)
    return {"site": site_key, "cleared": True}


def require_cron(request: Request) -> str:
    """Only the scheduler may trigger price updates."""
    user_agent = request.headers.get("user-agent", "")
    if settings.cron_user_agent not in user_agent:
        logger.warning(f"Unauthorized cron call from user agent: {user_agent!r}")
        raise HTTPException(status_code=401, detail="Unauthorized - Not a cron request")
    return user_agent


@app.get("/api/cron/{site_key}")
async def scheduled_price_update(
    site_key: str = Depends(require_site),
    user_agent: str = Depends(require_cron),
    manager: ScraperManager = Depends(get_manager),
    catalog: ProductCatalog = Depends(get_catalog),
):
    """Scheduler-triggered price update: scrape every catalog product and write results back"""
    timestamp = datetime.now(timezone.utc).isoformat()
    logger.info(f"Cron price update started for {site_key} (user agent: {user_agent})")

    report = await manager.run_price_update(site_key, catalog)
    return {"success": True, "timestamp": timestamp, **report.to_dict()}


if __name__ == "__main__":
    import uvicorn

    # Configure uvicorn for faster shutdown
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        access_log=True,
        log_config=None,  # Use default but our filter will handle it
        timeout_keep_alive=5,
        timeout_graceful_shutdown=5.0,
    )
