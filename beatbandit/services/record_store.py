"""
Record Store

Durable key/value storage over named collections, backed by diskcache.
Writes go straight to disk, so a read after a write in the same process
always sees the write.

Every operation logs and swallows storage errors: callers keep working on
their in-memory state when the store is unavailable.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import structlog
from diskcache import Cache

logger = structlog.get_logger(__name__)

COLLECTIONS = (
    "sessions",
    "bandit_arms",
    "preferences",
    "feedback",
    "liked_tracks",
    "disliked_tracks",
    "listening_history",
    "queue_history",
    "mixes",
)


class RecordStore:
    """
    File-based record store with one diskcache Cache per collection.

    Collections:
    - sessions, bandit_arms, preferences: engine state
    - feedback, liked_tracks, disliked_tracks, listening_history: feedback log
    - queue_history, mixes: generated queues and mixes
    """

    def __init__(self, store_dir: str = "data/store", collections: Iterable[str] = COLLECTIONS):
        """
        Initialize record store.

        Args:
            store_dir: Directory for store files
            collections: Collection names to open
        """
        self.store_dir = Path(store_dir)
        self.caches: Dict[str, Cache] = {}

        try:
            self.store_dir.mkdir(parents=True, exist_ok=True)
            for name in collections:
                self.caches[name] = Cache(str(self.store_dir / name))
        except Exception as e:
            logger.warning(
                "Record store unavailable, running in memory only",
                store_dir=str(self.store_dir),
                error=str(e)
            )

        logger.info(
            "Record store initialized",
            store_dir=str(self.store_dir),
            collections=list(self.caches.keys())
        )

    @property
    def available(self) -> bool:
        return bool(self.caches)

    def _cache(self, collection: str) -> Optional[Cache]:
        cache = self.caches.get(collection)
        if cache is None:
            logger.warning("Unknown or unavailable collection", collection=collection)
        return cache

    def get(self, collection: str, key: str, default: Any = None) -> Any:
        """
        Get a record.

        Args:
            collection: Collection name
            key: Record key
            default: Value returned when missing or on failure

        Returns:
            Stored record or default
        """
        cache = self._cache(collection)
        if cache is None:
            return default

        try:
            return cache.get(key, default)
        except Exception as e:
            logger.error("Store get failed", collection=collection, key=key, error=str(e))
            return default

    def put(self, collection: str, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Store a record under ``key``, replacing any previous one.

        Args:
            collection: Collection name
            key: Record key
            value: Record (picklable, normally a dict)
            ttl: Time to live in seconds (never expires if None)

        Returns:
            True if successful
        """
        cache = self._cache(collection)
        if cache is None:
            return False

        try:
            cache.set(key, value, expire=ttl)
            logger.debug("Store put", collection=collection, key=key)
            return True
        except Exception as e:
            logger.error("Store put failed", collection=collection, key=key, error=str(e))
            return False

    def append(self, collection: str, value: Any) -> Optional[int]:
        """Append a record under an auto-increment key; returns the key."""
        cache = self._cache(collection)
        if cache is None:
            return None

        try:
            return cache.push(value)
        except Exception as e:
            logger.error("Store append failed", collection=collection, error=str(e))
            return None

    def delete(self, collection: str, key: Any) -> bool:
        cache = self._cache(collection)
        if cache is None:
            return False

        try:
            return bool(cache.delete(key))
        except Exception as e:
            logger.error("Store delete failed", collection=collection, key=key, error=str(e))
            return False

    def get_all(self, collection: str) -> List[Any]:
        """All records in a collection, in key order."""
        cache = self._cache(collection)
        if cache is None:
            return []

        try:
            records = []
            for key in cache.iterkeys():
                value = cache.get(key)
                if value is not None:
                    records.append(value)
            return records
        except Exception as e:
            logger.error("Store scan failed", collection=collection, error=str(e))
            return []

    def get_all_by_index(self, collection: str, field: str, value: Any) -> List[Dict[str, Any]]:
        """Records whose ``field`` equals ``value``."""
        return [
            record for record in self.get_all(collection)
            if isinstance(record, dict) and record.get(field) == value
        ]

    def count(self, collection: str) -> int:
        cache = self._cache(collection)
        if cache is None:
            return 0
        try:
            return len(cache)
        except Exception as e:
            logger.error("Store count failed", collection=collection, error=str(e))
            return 0

    def clear(self, collection: Optional[str] = None) -> bool:
        """
        Clear one collection, or all of them.

        Returns:
            True if successful
        """
        try:
            if collection:
                cache = self._cache(collection)
                if cache is None:
                    return False
                cache.clear()
                logger.info("Collection cleared", collection=collection)
            else:
                for cache in self.caches.values():
                    cache.clear()
                logger.info("All collections cleared")
            return True
        except Exception as e:
            logger.error("Store clear failed", collection=collection, error=str(e))
            return False

    def close(self) -> None:
        """Close all collections."""
        for name, cache in self.caches.items():
            try:
                cache.close()
            except Exception as e:
                logger.error("Failed to close collection", collection=name, error=str(e))
