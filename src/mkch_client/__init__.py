"""Offline-capable mkch imageboard client."""

from .config import AppConfig, CacheTTLConfig, load_config
from .schemas import Board, Comment, Thread, ThreadDetail

__all__ = [
    "AppConfig",
    "Board",
    "CacheTTLConfig",
    "Comment",
    "Thread",
    "ThreadDetail",
    "load_config",
]
