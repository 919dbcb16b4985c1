from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

import requests

from mkch_client.config import CacheTTLConfig
from mkch_client.network import ReachabilityMonitor
from mkch_client.schemas import Board, Comment, Thread, ThreadDetail, sort_threads
from mkch_client.storage import ResponseCache
from mkch_client.storage.keys import BOARDS_KEY, comments_key, thread_detail_key, threads_key

from .client import MkchClient, UploadFile
from .errors import MkchApiError, OfflineError, OfflineNoDataError

logger = logging.getLogger(__name__)

T = TypeVar("T")

FETCH_ERRORS = (requests.RequestException, MkchApiError)


class MkchFetcher:
    """Decides between cache, network and stale fallback for each resource.

    Order for every read: offline -> stale cache or ``OfflineNoDataError``;
    fresh cache unless ``force_reload``; network, written back to the cache;
    on network failure the stale value, or the original error.
    """

    def __init__(
        self,
        *,
        client: MkchClient,
        cache: ResponseCache,
        reachability: ReachabilityMonitor,
        ttl: CacheTTLConfig | None = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.reachability = reachability
        self.ttl = ttl or CacheTTLConfig()

    def get_boards(self, *, force_reload: bool = False) -> list[Board]:
        return self._load(
            key=BOARDS_KEY,
            value_type=list[Board],
            ttl=self.ttl.boards,
            fetch=self.client.fetch_boards,
            force_reload=force_reload,
            require_items=True,
        )

    def get_threads(self, board_code: str, *, force_reload: bool = False) -> list[Thread]:
        board_code = _require_board(board_code)
        return self._load(
            key=threads_key(board_code),
            value_type=list[Thread],
            ttl=self.ttl.threads,
            fetch=lambda: sort_threads(self.client.fetch_threads(board_code)),
            force_reload=force_reload,
            require_items=True,
        )

    def get_thread_detail(
        self, board_code: str, thread_id: int, *, force_reload: bool = False
    ) -> ThreadDetail:
        board_code = _require_board(board_code)
        return self._load(
            key=thread_detail_key(thread_id),
            value_type=ThreadDetail,
            ttl=self.ttl.thread_detail,
            fetch=lambda: self.client.fetch_thread_detail(board_code, thread_id),
            force_reload=force_reload,
            require_items=False,
        )

    def get_comments(
        self, board_code: str, thread_id: int, *, force_reload: bool = False
    ) -> list[Comment]:
        board_code = _require_board(board_code)
        return self._load(
            key=comments_key(thread_id),
            value_type=list[Comment],
            ttl=self.ttl.comments,
            fetch=lambda: self.client.fetch_comments(board_code, thread_id),
            force_reload=force_reload,
            require_items=True,
        )

    def get_full_thread(
        self, board_code: str, thread_id: int, *, force_reload: bool = False
    ) -> tuple[ThreadDetail, list[Comment]]:
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="mkch-thread") as pool:
            detail_future = pool.submit(
                self.get_thread_detail, board_code, thread_id, force_reload=force_reload
            )
            comments_future = pool.submit(
                self.get_comments, board_code, thread_id, force_reload=force_reload
            )
            # Thread errors take precedence over comment errors.
            detail = detail_future.result()
            comments = comments_future.result()
        return detail, comments

    def create_thread(
        self,
        board_code: str,
        *,
        title: str,
        text: str,
        files: Sequence[UploadFile] = (),
    ) -> None:
        board_code = _require_board(board_code)
        self._ensure_online()
        self.client.create_thread(board_code, title=title, text=text, files=files)
        self.cache.delete(threads_key(board_code))

    def add_comment(
        self,
        board_code: str,
        thread_id: int,
        *,
        text: str,
        files: Sequence[UploadFile] = (),
    ) -> None:
        board_code = _require_board(board_code)
        self._ensure_online()
        self.client.add_comment(board_code, thread_id, text=text, files=files)
        self.cache.delete(comments_key(thread_id))

    def _load(
        self,
        *,
        key: str,
        value_type: Any,
        ttl: float,
        fetch: Callable[[], T],
        force_reload: bool,
        require_items: bool,
    ) -> T:
        if self.reachability.effective_offline:
            stale = self._stale(key, value_type, require_items=require_items)
            if stale is None:
                raise OfflineNoDataError(key)
            logger.info("fetcher offline serving cached key=%s", key)
            return stale

        if not force_reload:
            cached = self.cache.get(key, value_type)
            if cached is not None:
                return cached

        try:
            value = fetch()
        except FETCH_ERRORS as exc:
            stale = self._stale(key, value_type, require_items=require_items)
            if stale is None:
                raise
            logger.warning("fetcher network failed, serving stale key=%s error=%s", key, exc)
            return stale

        self.cache.set(key, value, ttl)
        return value

    def _stale(self, key: str, value_type: Any, *, require_items: bool) -> Any:
        stale = self.cache.get_stale(key, value_type)
        if require_items and not stale:
            return None
        return stale

    def _ensure_online(self) -> None:
        if self.reachability.effective_offline:
            raise OfflineError("cannot post while offline")


def _require_board(board_code: str) -> str:
    normalized = board_code.strip()
    if not normalized:
        raise ValueError("board_code must not be empty")
    return normalized
