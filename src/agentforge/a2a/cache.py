"""Response cache for remote agent outputs.

Entries are keyed by an opaque task fingerprint and expire lazily: an entry
whose time-to-live has elapsed is treated as absent (and evicted) on the
next ``get``. Memory is bounded by an LRU policy.
"""

import asyncio
import hashlib
import json
import logging
import time
from typing import Any, Callable, Optional

import cachetools

from agentforge.a2a.models import CacheEntry

logger = logging.getLogger(__name__)

VOLATILE_CONTEXT_KEYS = frozenset({"request_id", "timestamp", "trace_id", "task_id"})


def generate_fingerprint(task: Any, context: Optional[dict[str, Any]] = None) -> str:
    """Generate a deterministic fingerprint for a task.

    The fingerprint is a SHA256 hash of the canonical JSON form of the task
    and of the context keys that affect the result. Keys that change on
    every request (request_id, timestamp, trace_id, task_id) are excluded.

    Args:
        task: Task description (string or JSON-serialisable value)
        context: Optional context forwarded with the task

    Returns:
        SHA256 hash string (hexadecimal)

    Example:
        >>> a = generate_fingerprint("summarize", {"lang": "en", "request_id": "1"})
        >>> b = generate_fingerprint("summarize", {"lang": "en", "request_id": "2"})
        >>> a == b
        True
    """
    stable_context = {
        key: value
        for key, value in (context or {}).items()
        if key not in VOLATILE_CONTEXT_KEYS
    }
    payload = json.dumps(
        {"task": task, "context": stable_context}, sort_keys=True, default=str
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


class ResponseCache:
    """Time-bounded, size-bounded cache of remote agent outputs.

    Attributes:
        _entries: LRU map of fingerprint to CacheEntry
        _clock: Monotonic time source in seconds
        _lock: Asyncio lock for concurrent access
        _hit_count: Number of cache hits
        _miss_count: Number of cache misses (including expired entries)
    """

    def __init__(
        self,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the response cache.

        Args:
            max_entries: Maximum number of entries kept in memory
            clock: Time source in seconds (injectable for tests)
        """
        self._entries: cachetools.LRUCache[str, CacheEntry] = cachetools.LRUCache(
            maxsize=max_entries
        )
        self._clock = clock
        self._lock = asyncio.Lock()
        self._hit_count = 0
        self._miss_count = 0

    async def get(self, fingerprint: str) -> Optional[CacheEntry]:
        """Return the live entry for a fingerprint, or None on a miss.

        Args:
            fingerprint: Task fingerprint

        Returns:
            The cached entry if present and not expired, None otherwise
        """
        async with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                self._miss_count += 1
                return None

            if entry.is_expired(self._clock()):
                del self._entries[fingerprint]
                self._miss_count += 1
                logger.debug(f"Expired cache entry evicted: {fingerprint[:16]}...")
                return None

            self._hit_count += 1
            return entry

    async def put(self, fingerprint: str, value: Any, ttl: float) -> CacheEntry:
        """Store a value, overwriting any previous entry for the fingerprint.

        Args:
            fingerprint: Task fingerprint
            value: Output to cache
            ttl: Time-to-live in seconds

        Returns:
            The stored entry

        Raises:
            ValueError: If ttl is not positive
        """
        if ttl <= 0:
            raise ValueError("Cache ttl must be positive")

        entry = CacheEntry(
            fingerprint=fingerprint,
            value=value,
            inserted_at=self._clock(),
            ttl=ttl,
        )
        async with self._lock:
            self._entries[fingerprint] = entry
        logger.debug(f"Cached response for {fingerprint[:16]}... ttl={ttl}s")
        return entry

    async def invalidate(self, fingerprint: str) -> bool:
        """Remove an entry. Returns True if one was present."""
        async with self._lock:
            return self._entries.pop(fingerprint, None) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def stats(self) -> dict[str, Any]:
        """Get current cache statistics."""
        return {
            "size": len(self._entries),
            "max_size": self._entries.maxsize,
            "hit_count": self._hit_count,
            "miss_count": self._miss_count,
        }
