"""
Recently-seen URL cache.

Best-effort, process-local deduplication for the ingestion path. Entries are
dropped in bulk: the whole set is cleared when it reaches capacity or when
the expiry window has elapsed since the last clear.
"""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class DedupCache:
    """Bounded, expiring set of URL strings, safe for concurrent use."""

    def __init__(
        self,
        max_size: int = 1000,
        expiry_seconds: float = 1800,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Initialize the cache.

        Args:
            max_size: Hard cap on the number of entries
            expiry_seconds: Window after which every entry is forgotten
            clock: Monotonic time source (default: time.monotonic)
        """
        if max_size <= 0:
            raise ValueError(f"max_size must be positive, got {max_size}")
        if expiry_seconds <= 0:
            raise ValueError(f"expiry_seconds must be positive, got {expiry_seconds}")

        self.max_size = max_size
        self.expiry_seconds = expiry_seconds
        self._clock = clock or time.monotonic
        self._entries = set()
        self._lock = threading.Lock()
        self._window_started = self._clock()

    def _expire_if_due(self) -> None:
        # Caller holds the lock
        now = self._clock()
        if now - self._window_started >= self.expiry_seconds:
            if self._entries:
                logger.debug(f"Clearing URL cache after expiry period (size: {len(self._entries)})")
            self._entries.clear()
            self._window_started = now

    def add_if_absent(self, url: str) -> bool:
        """
        Atomically record a URL unless it is already present.

        Returns:
            True if the URL was added, False if it was already cached
        """
        with self._lock:
            self._expire_if_due()

            if url in self._entries:
                return False

            if len(self._entries) >= self.max_size:
                logger.debug(f"Clearing URL cache (size: {len(self._entries)})")
                self._entries.clear()

            self._entries.add(url)
            return True

    def discard(self, url: str) -> None:
        """Forget a URL so a later delivery is processed again."""
        with self._lock:
            self._entries.discard(url)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._window_started = self._clock()

    def __contains__(self, url: str) -> bool:
        with self._lock:
            self._expire_if_due()
            return url in self._entries

    def __len__(self) -> int:
        with self._lock:
            self._expire_if_due()
            return len(self._entries)

    def __repr__(self) -> str:
        return f"DedupCache(size={len(self)}, max_size={self.max_size}, expiry={self.expiry_seconds}s)"
