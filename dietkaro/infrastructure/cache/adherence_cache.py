"""
Adherence read-model cache with TTL support.

Caches daily/weekly/history adherence views for a short time so
dashboards polling the same client do not recompute on every request.
Scoring a meal invalidates the client's entries, so the current day is
never stale for more than one meal-log mutation.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Hashable, Optional

import structlog

logger = structlog.get_logger(__name__)


class AdherenceCache:
    """In-memory per-client TTL cache."""

    def __init__(self, ttl_seconds: int = 30) -> None:
        """Initialize cache.

        Args:
            ttl_seconds: Entry lifetime; 0 disables caching
        """
        self.ttl_seconds = ttl_seconds
        self._entries: dict[tuple[str, Hashable], tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def get(self, client_id: str, key: Hashable) -> Optional[Any]:
        """Get a cached view, or None if missing or expired."""
        with self._lock:
            entry = self._entries.get((client_id, key))
            if entry is None:
                return None
            value, expires_at = entry
            if time.time() >= expires_at:
                del self._entries[(client_id, key)]
                return None

        logger.debug("Adherence cache hit", client_id=client_id, key=key)
        return value

    def set(self, client_id: str, key: Hashable, value: Any) -> None:
        """Cache a view for ``ttl_seconds``."""
        if self.ttl_seconds <= 0:
            return
        with self._lock:
            self._entries[(client_id, key)] = (value, time.time() + self.ttl_seconds)

    def invalidate_client(self, client_id: str) -> int:
        """Drop every view of a client.

        Returns:
            Number of entries removed
        """
        with self._lock:
            stale = [k for k in self._entries if k[0] == client_id]
            for k in stale:
                del self._entries[k]
        if stale:
            logger.debug("Adherence cache invalidated", client_id=client_id, count=len(stale))
        return len(stale)

    def clear(self) -> None:
        """Clear all cache entries."""
        with self._lock:
            self._entries.clear()
        logger.info("Adherence cache cleared")

    def size(self) -> int:
        """Get number of cached entries."""
        with self._lock:
            return len(self._entries)
