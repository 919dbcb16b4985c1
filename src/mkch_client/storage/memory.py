from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    payload: bytes
    stored_at: float
    ttl: float

    def age(self, now: float) -> float:
        return now - self.stored_at

    def is_expired(self, now: float) -> bool:
        return self.age(now) > self.ttl


class ReadWriteLock:
    """Many concurrent readers or one writer; waiting writers block new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class MemoryStore:
    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = ReadWriteLock()
        self._generation = 0

    @property
    def generation(self) -> int:
        """Incremented on every removal."""
        with self._lock.read_locked():
            return self._generation

    def get(self, key: str) -> CacheEntry | None:
        with self._lock.read_locked():
            return self._entries.get(key)

    def put(self, entry: CacheEntry) -> None:
        with self._lock.write_locked():
            self._entries[entry.key] = entry

    def promote(self, entry: CacheEntry, generation: int) -> CacheEntry:
        """Store ``entry`` unless a removal or a newer write happened since ``generation``."""
        with self._lock.write_locked():
            if self._generation != generation:
                return entry
            current = self._entries.get(entry.key)
            if current is not None and current.stored_at >= entry.stored_at:
                return current
            self._entries[entry.key] = entry
            return entry

    def pop(self, key: str) -> CacheEntry | None:
        with self._lock.write_locked():
            self._generation += 1
            return self._entries.pop(key, None)

    def clear(self) -> int:
        with self._lock.write_locked():
            count = len(self._entries)
            self._entries.clear()
            self._generation += 1
        return count

    def evict_expired(self, now: float) -> list[str]:
        with self._lock.write_locked():
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
            if expired:
                self._generation += 1
        if expired:
            logger.debug("memory_store evicted count=%d", len(expired))
        return expired

    def keys(self) -> list[str]:
        with self._lock.read_locked():
            return list(self._entries)

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._entries)
