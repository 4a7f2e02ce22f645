"""
Cache stores used by the resource cache service.

CacheStore is the contract; MemoryCacheStore is the in-process
implementation with per-entry TTL and a tag -> keys inverted index so
tag-scoped invalidation touches only the tagged keys.
"""

import logging
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class CacheStore:
    """Key-value store with TTL and optional tag support."""

    supports_tags: bool = False

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def put(self, key: str, value: Any, ttl: Optional[int] = None, tags: Iterable[str] = ()) -> None:
        raise NotImplementedError

    def forget(self, key: str) -> bool:
        raise NotImplementedError

    def flush_tags(self, tags: Iterable[str]) -> int:
        raise NotImplementedError

    def flush(self) -> None:
        raise NotImplementedError


@dataclass
class _Entry:
    value: Any
    expires_at: Optional[float]
    tags: Tuple[str, ...] = ()

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    size: int = 0
    tags: Dict[str, int] = field(default_factory=dict)


class MemoryCacheStore(CacheStore):
    """Thread-safe in-process store."""

    def __init__(self, supports_tags: bool = True):
        self.supports_tags = supports_tags
        self._store: Dict[str, _Entry] = {}
        # Inverted index: tag -> set of keys
        self._tag_index: Dict[str, Set[str]] = defaultdict(set)
        self._lock = threading.Lock()
        self._stats = CacheStats()

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._stats.misses += 1
                return None
            if entry.is_expired:
                self._evict_key(key)
                self._stats.misses += 1
                return None
            self._stats.hits += 1
            return entry.value

    def put(self, key: str, value: Any, ttl: Optional[int] = None, tags: Iterable[str] = ()) -> None:
        tags = tuple(tags) if self.supports_tags else ()
        expires_at = time.monotonic() + ttl if ttl is not None and ttl > 0 else None
        with self._lock:
            if key in self._store:
                self._evict_key(key)
            self._store[key] = _Entry(value=value, expires_at=expires_at, tags=tags)
            for tag in tags:
                self._tag_index[tag].add(key)
            self._stats.sets += 1

    def forget(self, key: str) -> bool:
        with self._lock:
            if key in self._store:
                self._evict_key(key)
                self._stats.deletes += 1
                return True
            return False

    def flush_tags(self, tags: Iterable[str]) -> int:
        """Drop every key carrying any of the tags; returns the number dropped."""
        if not self.supports_tags:
            raise NotImplementedError("This cache store does not support tags")
        with self._lock:
            keys: Set[str] = set()
            for tag in tags:
                keys.update(self._tag_index.get(tag, set()))
            for key in keys:
                self._evict_key(key)
            self._stats.deletes += len(keys)
            return len(keys)

    def flush(self) -> None:
        with self._lock:
            self._store.clear()
            self._tag_index.clear()

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def stats(self) -> CacheStats:
        with self._lock:
            self._stats.size = len(self._store)
            self._stats.tags = {tag: len(keys) for tag, keys in self._tag_index.items()}
            return CacheStats(**vars(self._stats))

    def _evict_key(self, key: str) -> None:
        entry = self._store.pop(key, None)
        if entry is None:
            return
        for tag in entry.tags:
            keys = self._tag_index.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tag_index[tag]
