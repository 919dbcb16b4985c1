"""mkch HTTP client and cache-aware fetch orchestration."""

from .client import MkchClient, UploadFile, extract_csrf_token
from .errors import MkchApiError, MkchError, OfflineError, OfflineNoDataError
from .fetcher import MkchFetcher

__all__ = [
    "MkchApiError",
    "MkchClient",
    "MkchError",
    "MkchFetcher",
    "OfflineError",
    "OfflineNoDataError",
    "UploadFile",
    "extract_csrf_token",
]
