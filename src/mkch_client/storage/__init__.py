"""Storage layer: two-tier response cache and persisted user settings."""

from .cache import CacheSweeper, ResponseCache, SweepStats
from .disk import DiskStore, PersistedRecord
from .memory import CacheEntry, MemoryStore, ReadWriteLock
from .settings import SettingsStore, UserSettings

__all__ = [
    "CacheEntry",
    "CacheSweeper",
    "DiskStore",
    "MemoryStore",
    "PersistedRecord",
    "ReadWriteLock",
    "ResponseCache",
    "SettingsStore",
    "SweepStats",
    "UserSettings",
]
