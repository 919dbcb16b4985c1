"""Cache key namespace shared by the fetcher and the CLI."""

from __future__ import annotations

BOARDS_KEY = "boards"


def threads_key(board_code: str) -> str:
    return f"threads_{board_code}"


def thread_detail_key(thread_id: int) -> str:
    return f"thread_detail_{thread_id}"


def comments_key(thread_id: int) -> str:
    return f"comments_{thread_id}"
