"""
Browser session lifecycle shared by all access paths.

A session manager lazily creates one browser per scraper and hands out
isolated pages on top of it. Concurrent first callers share a single
in-flight creation; a failed creation is never cached.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional

logger = logging.getLogger(__name__)


class SessionError(Exception):
    """Raised when a browser session cannot be created or used."""


@dataclass
class BrowserSession:
    """A live browser plus the driver that owns it."""
    browser: Any
    driver: Any = None
    created_at: float = field(default_factory=time.monotonic)
    closed: bool = False

    def is_alive(self) -> bool:
        if self.closed:
            return False
        try:
            return self.browser.is_connected()
        except Exception:
            return False


class BrowserSessionManager(ABC):
    """
    Base class for browser session managers.

    Subclasses implement _create_session() for their access path.
    """

    # Per operation when tearing down browser resources
    cleanup_timeout = 2.0

    def __init__(self, name: str = 'browser', page_timeout: float = 30.0):
        """
        Initialize the manager.

        Args:
            name: Label used in log messages (usually the site key)
            page_timeout: Default timeout for page operations, in seconds
        """
        self.name = name
        self.page_timeout = page_timeout
        self._session: Optional[BrowserSession] = None
        self._pending: Optional[asyncio.Future] = None
        self._launches = 0
        self._open_pages = 0

    @abstractmethod
    async def _create_session(self) -> BrowserSession:
        """Start or connect to a browser. Raise on failure."""

    async def acquire(self) -> BrowserSession:
        """
        Return the live session, creating it on first use.

        Raises:
            SessionError: If the browser could not be started
        """
        session = self._session
        if session is not None and session.is_alive():
            return session

        if session is not None:
            logger.warning(f"{self.name}: browser session lost, relaunching")
            self._session = None
            await self._dispose(session)

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._launch())

        # Shielded so one cancelled caller does not abort the launch for the rest
        return await asyncio.shield(self._pending)

    async def _launch(self) -> BrowserSession:
        try:
            logger.info(f"{self.name}: starting browser session")
            session = await self._create_session()
        except Exception as e:
            logger.error(f"{self.name}: failed to start browser session: {e}")
            raise SessionError(f"Failed to start browser session: {e}") from e
        finally:
            self._pending = None

        self._launches += 1
        self._session = session
        return session

    def is_alive(self) -> bool:
        return self._session is not None and self._session.is_alive()

    async def new_page(self, session: BrowserSession):
        """Open a page in its own browser context."""
        page = await session.browser.new_page()
        page.set_default_timeout(self.page_timeout * 1000)
        return page

    async def close_page(self, page) -> None:
        """Close a page and the context it owns, never raising."""
        try:
            await asyncio.wait_for(page.close(), timeout=self.cleanup_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{self.name}: page close timed out")
        except Exception as e:
            logger.debug(f"{self.name}: error closing page: {e}")

    @asynccontextmanager
    async def page(self) -> AsyncIterator[Any]:
        """Acquire the session and yield a fresh page, closed on exit."""
        session = await self.acquire()
        try:
            page = await self.new_page(session)
        except Exception as e:
            if not session.is_alive():
                raise SessionError(f"Browser session died: {e}") from e
            raise

        self._open_pages += 1
        try:
            yield page
        finally:
            self._open_pages -= 1
            await self.close_page(page)

    async def shutdown(self) -> None:
        """Close the browser; the next acquire() starts a new one."""
        session = self._session
        self._session = None
        if session is not None:
            logger.info(f"{self.name}: shutting down browser session")
            await self._dispose(session)

    async def _dispose(self, session: BrowserSession) -> None:
        session.closed = True
        try:
            await asyncio.wait_for(session.browser.close(), timeout=self.cleanup_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{self.name}: browser close timed out, forcing cleanup")
        except Exception as e:
            logger.warning(f"{self.name}: error closing browser: {e}")

        if session.driver is not None:
            try:
                await asyncio.wait_for(session.driver.stop(), timeout=self.cleanup_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"{self.name}: playwright stop timed out, forcing cleanup")
            except Exception as e:
                logger.warning(f"{self.name}: error stopping playwright: {e}")

    def stats(self) -> Dict[str, Any]:
        return {
            'alive': self.is_alive(),
            'launches': self._launches,
            'open_pages': self._open_pages,
        }
