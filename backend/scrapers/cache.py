"""
Per-scraper result cache.

Maps identifier -> ScrapeResult with a time-to-live. Each scraper owns its
own instance; nothing here is shared across scrapers or processes.
"""

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

if TYPE_CHECKING:
    from .base import ScrapeResult

logger = logging.getLogger(__name__)


DEFAULT_TTL_SECONDS = 30 * 60

# Expired entries are swept in bulk once the store grows past this size
CLEANUP_THRESHOLD = 1000


@dataclass
class CacheEntry:
    """A cached result and the moment it was stored."""
    result: "ScrapeResult"
    stored_at: float


class ResultCache:
    """
    Identifier-keyed cache with lazy expiry.

    Entries are evicted when read at or after ``stored_at + ttl``, or in a
    bulk sweep once the cache grows past CLEANUP_THRESHOLD entries.
    Operations are synchronous; the owning scraper is the only caller.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        name: str = 'cache',
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Entry lifetime in seconds
            clock: Monotonic time source (injectable for tests)
            name: Label used in log messages
        """
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, identifier: str) -> Optional["ScrapeResult"]:
        """Return the cached result, or None on a miss or expired entry."""
        entry = self._entries.get(identifier)
        if entry is None:
            return None

        if self._clock() - entry.stored_at >= self.ttl_seconds:
            del self._entries[identifier]
            logger.debug(f"{self.name}: expired entry for {identifier}")
            return None

        return entry.result

    def set(self, identifier: str, result: "ScrapeResult") -> None:
        """Store a result under the identifier, replacing any older entry."""
        self._entries[identifier] = CacheEntry(result=result, stored_at=self._clock())

        if len(self._entries) > CLEANUP_THRESHOLD:
            self.cleanup()

    def cleanup(self) -> int:
        """
        Drop every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [
            key for key, entry in self._entries.items()
            if now - entry.stored_at >= self.ttl_seconds
        ]
        for key in expired:
            del self._entries[key]
        logger.info(f"{self.name}: cache cleanup removed {len(expired)}, {len(self._entries)} entries remaining")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
        logger.info(f"{self.name}: cache cleared")

    def stats(self) -> Dict[str, object]:
        keys: List[str] = list(self._entries.keys())
        return {'size': len(keys), 'keys': keys, 'ttl_seconds': self.ttl_seconds}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identifier: str) -> bool:
        return self.get(identifier) is not None
