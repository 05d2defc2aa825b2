"""Time-bounded cache for fetched URL content.

Entries are keyed by URL alone. Presentation parameters (character
offsets, sections, paragraph ranges) are applied by the reader after
lookup, so one fetch serves every pagination of the same document.

An entry is valid while ``now - created_at < ttl``. Expired entries are
filtered on read and removed by a background sweep thread, so no entry
outlives ``ttl + sweep_interval``.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable

from searxng_mcp.logging_config import StructuredLogger
from searxng_mcp.models import CacheEntry, CacheEntryStats, CacheStats

logger = StructuredLogger(__name__)

DEFAULT_TTL_MS = 60_000


class ContentCache:
    """URL -> (html, markdown) cache with TTL and periodic eviction.

    Thread-safe: all map access goes through one lock, and the sweep
    holds it only for a single pass.
    """

    def __init__(
        self,
        ttl_ms: int = DEFAULT_TTL_MS,
        sweep_interval_ms: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_ms <= 0:
            raise ValueError(f"ttl_ms must be positive, got {ttl_ms}")

        self.ttl_ms = ttl_ms
        self.sweep_interval_ms = sweep_interval_ms or ttl_ms
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

        self._stop = threading.Event()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            name="content-cache-sweep",
            daemon=True,
        )
        self._sweeper.start()

    # --- Lifecycle ---

    def destroy(self) -> None:
        """Stop the sweep thread.

        The cache keeps answering get/set afterwards, it just no longer
        evicts in the background. Safe to call more than once.
        """
        self._stop.set()
        if self._sweeper.is_alive() and self._sweeper is not threading.current_thread():
            self._sweeper.join()

    @property
    def destroyed(self) -> bool:
        return self._stop.is_set()

    def __enter__(self) -> ContentCache:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.destroy()

    # --- Map operations ---

    def set(self, url: str, html_content: str, markdown_content: str) -> None:
        """Store content for a URL, replacing any previous entry."""
        entry = CacheEntry(
            url=url,
            html_content=html_content,
            markdown_content=markdown_content,
            created_at=self._clock(),
        )
        with self._lock:
            self._entries[url] = entry

    def get(self, url: str) -> CacheEntry | None:
        """Return the entry for a URL if it has not expired.

        An expired entry found here is deleted immediately.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(url)
            if entry is None:
                return None
            if self._is_expired(entry, now):
                del self._entries[url]
                return None
            return entry

    def clear(self) -> None:
        """Drop every entry regardless of remaining TTL."""
        with self._lock:
            self._entries.clear()

    def get_stats(self) -> CacheStats:
        """Live entries with their age, for diagnostics."""
        now = self._clock()
        with self._lock:
            live = [e for e in self._entries.values() if not self._is_expired(e, now)]

        return CacheStats(
            size=len(live),
            entries=[
                CacheEntryStats(url=e.url, age_ms=round((now - e.created_at) * 1000))
                for e in live
            ],
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # --- Eviction ---

    def evict_expired(self) -> int:
        """Remove all expired entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._lock:
            expired = [url for url, e in self._entries.items() if self._is_expired(e, now)]
            for url in expired:
                del self._entries[url]

        if expired:
            logger.debug("Evicted expired cache entries", count=len(expired))
        return len(expired)

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return (now - entry.created_at) * 1000 >= self.ttl_ms

    def _sweep_loop(self) -> None:
        interval_s = self.sweep_interval_ms / 1000
        while not self._stop.wait(interval_s):
            self.evict_expired()
