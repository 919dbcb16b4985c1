from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json

from .disk import DiskStore
from .memory import CacheEntry, MemoryStore

logger = logging.getLogger(__name__)

T = TypeVar("T")
Clock = Callable[[], float]

DEFAULT_SWEEP_INTERVAL_SECONDS = 300.0


@lru_cache(maxsize=64)
def _adapter(value_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(value_type)


@dataclass(slots=True)
class SweepStats:
    memory_evicted: int = 0
    disk_evicted: int = 0


class ResponseCache:
    """Two-tier TTL cache: memory is authoritative, disk survives restarts.

    Values are stored as JSON bytes, so callers pass the value type back on
    reads. Misses, decode failures and disk errors all come back as ``None``;
    nothing here raises into the caller for those.
    """

    def __init__(
        self,
        *,
        memory: MemoryStore | None = None,
        disk: DiskStore,
        clock: Clock = time.time,
    ) -> None:
        self.memory = memory or MemoryStore()
        self.disk = disk
        self.clock = clock
        # Serializes writers so memory and disk agree on the last write per key.
        self._write_lock = threading.Lock()

    @classmethod
    def open(cls, directory: str | Path, *, clock: Clock = time.time) -> ResponseCache:
        return cls(disk=DiskStore(directory), clock=clock)

    def set(self, key: str, value: Any, ttl: float) -> None:
        if ttl < 0:
            raise ValueError("ttl must be >= 0")

        try:
            payload = to_json(value)
        except (PydanticSerializationError, TypeError, ValueError):
            logger.exception("response_cache encode failed key=%s", key)
            return

        with self._write_lock:
            entry = CacheEntry(key=key, payload=payload, stored_at=self.clock(), ttl=ttl)
            self.memory.put(entry)
            try:
                self.disk.write(entry)
            except OSError:
                logger.warning("response_cache persist failed key=%s", key, exc_info=True)
                return
        logger.info("response_cache set key=%s ttl_seconds=%s", key, ttl)

    def get(self, key: str, value_type: type[T] | Any) -> T | None:
        entry = self._lookup(key, include_expired=False)
        if entry is None:
            return None
        return self._decode(entry, value_type)

    def get_stale(self, key: str, value_type: type[T] | Any) -> T | None:
        entry = self._lookup(key, include_expired=True)
        if entry is None:
            return None
        if entry.is_expired(self.clock()):
            logger.info("response_cache stale hit key=%s age=%.0f", key, entry.age(self.clock()))
        return self._decode(entry, value_type)

    def contains(self, key: str) -> bool:
        return self._lookup(key, include_expired=True) is not None

    def delete(self, key: str) -> None:
        # Disk first: a reader that misses memory after the pop cannot find the file.
        with self._write_lock:
            self._discard_disk(key)
            self.memory.pop(key)
        logger.info("response_cache delete key=%s", key)

    def clear(self) -> None:
        with self._write_lock:
            try:
                removed = self.disk.clear()
            except OSError:
                logger.warning("response_cache disk clear failed", exc_info=True)
                removed = 0
            self.memory.clear()
        logger.info("response_cache cleared disk_records=%d", removed)

    def sweep(self) -> SweepStats:
        with self._write_lock:
            now = self.clock()
            stats = SweepStats(memory_evicted=len(self.memory.evict_expired(now)))
            try:
                stats.disk_evicted = self.disk.sweep(now)
            except OSError:
                logger.warning("response_cache disk sweep failed", exc_info=True)
        logger.info(
            "response_cache sweep memory_evicted=%d disk_evicted=%d",
            stats.memory_evicted,
            stats.disk_evicted,
        )
        return stats

    def _lookup(self, key: str, *, include_expired: bool) -> CacheEntry | None:
        now = self.clock()
        entry = self.memory.get(key)
        if entry is not None:
            if include_expired or not entry.is_expired(now):
                logger.debug("response_cache hit key=%s layer=memory", key)
                return entry
            logger.info("response_cache miss key=%s reason=expired", key)
            return None

        generation = self.memory.generation
        try:
            entry = self.disk.read(key)
        except OSError:
            logger.warning("response_cache disk read failed key=%s", key, exc_info=True)
            return None
        except ValueError:
            logger.warning("response_cache dropping unreadable record key=%s", key)
            self._discard_disk(key)
            return None

        if entry is None:
            logger.info("response_cache miss key=%s reason=not_found", key)
            return None
        if not include_expired and entry.is_expired(now):
            logger.info("response_cache miss key=%s reason=expired", key)
            return None

        logger.info("response_cache hit key=%s layer=disk", key)
        return self.memory.promote(entry, generation)

    def _decode(self, entry: CacheEntry, value_type: Any) -> Any:
        try:
            return _adapter(value_type).validate_json(entry.payload)
        except ValidationError:
            logger.warning("response_cache decode failed key=%s", entry.key, exc_info=True)
            return None

    def _discard_disk(self, key: str) -> None:
        try:
            self.disk.delete(key)
        except OSError:
            logger.warning("response_cache disk delete failed key=%s", key, exc_info=True)


class CacheSweeper:
    """Runs ``ResponseCache.sweep`` on a fixed period in a daemon thread."""

    def __init__(
        self,
        cache: ResponseCache,
        *,
        interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")

        self.cache = cache
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run,
            name="response-cache-sweeper",
            daemon=True,
        )
        self._thread.start()
        logger.info("cache sweeper started interval_seconds=%s", self.interval_seconds)

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.cache.sweep()
            except Exception:
                logger.exception("cache sweep failed")
