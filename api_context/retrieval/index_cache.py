"""Bounded cache of built BM25 indexes, keyed by collection fingerprint."""

import logging
import threading
import time
from collections.abc import Callable

from api_context.models import Collection
from api_context.retrieval.bm25_index import (
    RelevanceIndex,
    build_index,
    collection_fingerprint,
)

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 5


class IndexCache:
    """Holds the most recently built indexes.

    When full, the entry with the oldest build timestamp is evicted before a
    new one is inserted. Lookups are by fingerprint. Eviction and insertion
    happen under a lock, so one cache may be shared between threads; two
    threads building the same collection at once both do the work and the
    last one wins, which is harmless because the results are equivalent.

    Attributes:
        capacity: Maximum number of indexes kept.
        clock: Returns the timestamp stamped on each new index.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an empty cache.

        Args:
            capacity: Maximum number of indexes to keep (must be >= 1).
            clock: Timestamp source; inject a counter in tests to control
                eviction order.

        Raises:
            ValueError: If capacity is less than 1.
        """
        if capacity < 1:
            raise ValueError(f"Cache capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self.clock = clock
        self._entries: dict[str, RelevanceIndex] = {}
        self._lock = threading.Lock()

    def get(self, fingerprint: str) -> RelevanceIndex | None:
        return self._entries.get(fingerprint)

    def get_or_build(self, collection: Collection) -> RelevanceIndex:
        """Return the cached index for a collection, building it if needed.

        Args:
            collection: The collection to index.

        Returns:
            The cached RelevanceIndex (the same object on repeated calls).
        """
        fingerprint = collection_fingerprint(collection)
        cached = self._entries.get(fingerprint)
        if cached is not None:
            return cached

        index = build_index(collection, built_at=self.clock())
        logger.debug(
            "Built index %s for '%s' (%d endpoints)",
            fingerprint,
            collection.title,
            len(index),
        )

        with self._lock:
            if fingerprint not in self._entries and len(self._entries) >= self.capacity:
                self._evict_oldest()
            self._entries[fingerprint] = index
        return index

    def invalidate(self, fingerprint: str) -> None:
        """Drop one entry. Unknown fingerprints are ignored."""
        with self._lock:
            self._entries.pop(fingerprint, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _evict_oldest(self) -> None:
        oldest = min(self._entries.values(), key=lambda index: index.built_at)
        del self._entries[oldest.fingerprint]
        logger.debug("Evicted index %s from cache", oldest.fingerprint)

    def __contains__(self, fingerprint: object) -> bool:
        return fingerprint in self._entries

    def __len__(self) -> int:
        return len(self._entries)
