"""Content-addressed TTL cache for fetched page content."""

import hashlib
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from models.errors import CacheError

DEFAULT_TTL_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class CacheEntry:
    key: str
    content: str
    stored_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


class CacheStore(ABC):
    """Backing key-value store for CacheEntry objects."""

    @abstractmethod
    def read(self, key: str) -> CacheEntry | None:
        pass

    @abstractmethod
    def write(self, entry: CacheEntry) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class InMemoryCacheStore(CacheStore):
    """Process-local dict store."""

    def __init__(self):
        self._entries: dict[str, CacheEntry] = {}

    def read(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def write(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry

    def clear(self) -> None:
        self._entries.clear()


class ContentCache:
    """
    Maps a URL to previously fetched content, keyed by the sha256 digest of the URL.

    Expiration is lazy: an expired entry reads as a miss and is overwritten on
    the next set(). Access is serialized per key, not globally, so concurrent
    fetches of different URLs never wait on each other. One lock is kept per
    distinct URL seen until clear() is called.
    """

    def __init__(
        self,
        store: CacheStore | None = None,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            store: Backing store (defaults to an in-memory dict)
            default_ttl: TTL in seconds applied when set() gets none
            clock: Returns "now" in seconds; injectable for tests
        """
        self._store = store or InMemoryCacheStore()
        self._default_ttl = default_ttl
        self._clock = clock
        self._registry_lock = threading.Lock()
        self._key_locks: dict[str, threading.Lock] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(url: str) -> str:
        """Stable, case-sensitive digest of the URL."""
        # Lone surrogates can arrive from JSON escapes; they still need a key.
        return hashlib.sha256(url.encode("utf-8", "surrogatepass")).hexdigest()

    def _key_for(self, url: str) -> str:
        try:
            return self.make_key(url)
        except (AttributeError, UnicodeError) as e:
            raise CacheError(f"Cannot derive a cache key for {url!r}", cause=e) from e

    def _lock_for(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def _count(self, hit: bool) -> None:
        with self._registry_lock:
            if hit:
                self.hits += 1
            else:
                self.misses += 1

    def get(self, url: str) -> str | None:
        """
        Return cached content for url, or None on a miss or expired entry.

        Raises:
            CacheError: If no key can be derived or the backing store fails
        """
        key = self._key_for(url)
        with self._lock_for(key):
            try:
                entry = self._store.read(key)
            except Exception as e:
                raise CacheError(f"Cache read failed for {url!r}", cause=e) from e

            if entry is None or entry.is_expired(self._clock()):
                self._count(hit=False)
                return None
            self._count(hit=True)
            return entry.content

    def set(self, url: str, content: str, ttl: float | None = None) -> None:
        """
        Store content for url.

        Raises:
            CacheError: If no key can be derived or the backing store fails
        """
        key = self._key_for(url)
        entry = CacheEntry(
            key=key,
            content=content,
            stored_at=self._clock(),
            ttl=self._default_ttl if ttl is None else ttl,
        )
        with self._lock_for(key):
            try:
                self._store.write(entry)
            except Exception as e:
                raise CacheError(f"Cache write failed for {url!r}", cause=e) from e

    def clear(self) -> None:
        with self._registry_lock:
            self._store.clear()
            self._key_locks.clear()
            self.hits = 0
            self.misses = 0

    def stats(self) -> dict[str, int]:
        with self._registry_lock:
            return {"hits": self.hits, "misses": self.misses}
