from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

import requests
import typer

from mkch_client.api import MkchError
from mkch_client.config import AppConfig, load_config
from mkch_client.context import ClientContext, build_context
from mkch_client.schemas import Board, Comment, FavoriteThread, FileInfo, Thread

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

app = typer.Typer(help="mkch client CLI")
cache_app = typer.Typer(help="Response cache commands")
app.add_typer(cache_app, name="cache")
favorites_app = typer.Typer(help="Favorite thread commands")
app.add_typer(favorites_app, name="favorites")

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    help="Config file path (JSON or YAML). Defaults are used when omitted.",
    exists=True,
    dir_okay=False,
    readable=True,
)


@app.command("boards")
def list_boards(
    reload: bool = typer.Option(False, "--reload", help="Bypass fresh cache entries."),
    config_path: Path | None = CONFIG_OPTION,
) -> None:
    """List boards."""
    with _context(config_path) as ctx, _user_errors():
        boards = ctx.fetcher.get_boards(force_reload=reload)
    typer.echo(_render_boards(boards, base_url=ctx.config.api.base_url))


@app.command("threads")
def list_threads(
    board: str = typer.Argument(..., help="Board code."),
    reload: bool = typer.Option(False, "--reload", help="Bypass fresh cache entries."),
    config_path: Path | None = CONFIG_OPTION,
) -> None:
    """List threads of a board, pinned first."""
    with _context(config_path) as ctx, _user_errors():
        threads = ctx.fetcher.get_threads(board, force_reload=reload)
    typer.echo(_render_threads(threads))


@app.command("thread")
def show_thread(
    board: str = typer.Argument(..., help="Board code."),
    thread_id: int = typer.Argument(..., help="Thread id."),
    reload: bool = typer.Option(False, "--reload", help="Bypass fresh cache entries."),
    config_path: Path | None = CONFIG_OPTION,
) -> None:
    """Show a thread with its comments."""
    with _context(config_path) as ctx, _user_errors():
        detail, comments = ctx.fetcher.get_full_thread(board, thread_id, force_reload=reload)
    typer.echo(f"#{detail.id} /{detail.board}/ {detail.title}")
    typer.echo(detail.text)
    base_url = ctx.config.api.base_url
    if detail.files:
        typer.echo(_render_files(detail.files, base_url=base_url))
    typer.echo(_render_comments(comments, base_url=base_url))


@app.command("post")
def post_thread(
    board: str = typer.Argument(..., help="Board code."),
    title: str = typer.Option(..., "--title", help="Thread title."),
    text: str = typer.Option(..., "--text", help="Thread body."),
    config_path: Path | None = CONFIG_OPTION,
) -> None:
    """Create a thread."""
    with _context(config_path) as ctx, _user_errors():
        ctx.fetcher.create_thread(board, title=title, text=text)
    typer.echo(f"thread created board={board}")


@app.command("comment")
def post_comment(
    board: str = typer.Argument(..., help="Board code."),
    thread_id: int = typer.Argument(..., help="Thread id."),
    text: str = typer.Option(..., "--text", help="Comment body."),
    config_path: Path | None = CONFIG_OPTION,
) -> None:
    """Add a comment to a thread."""
    with _context(config_path) as ctx, _user_errors():
        ctx.fetcher.add_comment(board, thread_id, text=text)
    typer.echo(f"comment added board={board} thread={thread_id}")


@app.command("offline")
def offline_mode(
    mode: str = typer.Argument("status", help="on, off or status."),
    config_path: Path | None = CONFIG_OPTION,
) -> None:
    """Show or toggle forced offline mode."""
    normalized = mode.strip().lower()
    if normalized not in {"on", "off", "status"}:
        typer.echo(f"unknown mode: {mode}", err=True)
        raise typer.Exit(code=2)

    with _context(config_path, probe=False) as ctx:
        if normalized != "status":
            ctx.reachability.set_force_offline(normalized == "on")
        state = ctx.reachability.state
    typer.echo(
        f"force_offline={state.force_offline} "
        f"path_satisfied={state.path_satisfied} "
        f"effective_offline={state.effective_offline}"
    )


@favorites_app.command("add")
def favorites_add(
    board: str = typer.Argument(..., help="Board code."),
    thread_id: int = typer.Argument(..., help="Thread id."),
    config_path: Path | None = CONFIG_OPTION,
) -> None:
    """Add a thread to favorites."""
    with _context(config_path) as ctx, _user_errors():
        board_info = _find_board(ctx.fetcher.get_boards(), board)
        detail = ctx.fetcher.get_thread_detail(board, thread_id)
        added = ctx.settings.add_favorite(detail, board_info)
    if not added:
        typer.echo(f"already a favorite board={board} thread={thread_id}")
        return
    typer.echo(f"favorite added board={board} thread={thread_id}")


@favorites_app.command("remove")
def favorites_remove(
    board: str = typer.Argument(..., help="Board code."),
    thread_id: int = typer.Argument(..., help="Thread id."),
    config_path: Path | None = CONFIG_OPTION,
) -> None:
    """Remove a thread from favorites."""
    with _context(config_path, probe=False) as ctx:
        removed = ctx.settings.remove_favorite(thread_id, board)
    if not removed:
        typer.echo(f"not a favorite board={board} thread={thread_id}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"favorite removed board={board} thread={thread_id}")


@favorites_app.command("list")
def favorites_list(config_path: Path | None = CONFIG_OPTION) -> None:
    """List favorite threads, most recently added first."""
    with _context(config_path, probe=False) as ctx:
        favorites = ctx.settings.load().favorite_threads
    typer.echo(_render_favorites(favorites))


@cache_app.command("show")
def cache_show(
    key: str = typer.Argument(..., help="Cache key, e.g. boards or threads_b."),
    config_path: Path | None = CONFIG_OPTION,
) -> None:
    """Show whether a key is cached and whether it is still fresh."""
    with _context(config_path, probe=False) as ctx:
        present = ctx.cache.contains(key)
        entry = ctx.cache.memory.get(key) if present else None
        now = ctx.cache.clock()
    if entry is None:
        typer.echo(f"key={key} cached=false")
        return
    typer.echo(
        f"key={key} cached=true age={entry.age(now):.0f}s ttl={entry.ttl:.0f}s "
        f"expired={str(entry.is_expired(now)).lower()} bytes={len(entry.payload)}"
    )


@cache_app.command("clear")
def cache_clear(config_path: Path | None = CONFIG_OPTION) -> None:
    """Remove every cached response."""
    with _context(config_path, probe=False) as ctx:
        ctx.cache.clear()
    typer.echo("cache cleared")


@cache_app.command("sweep")
def cache_sweep(config_path: Path | None = CONFIG_OPTION) -> None:
    """Evict expired entries once."""
    with _context(config_path, probe=False) as ctx:
        stats = ctx.cache.sweep()
    typer.echo(f"memory_evicted={stats.memory_evicted} disk_evicted={stats.disk_evicted}")


@contextmanager
def _context(config_path: Path | None, *, probe: bool | None = None) -> Iterator[ClientContext]:
    try:
        config = load_config(config_path) if config_path is not None else AppConfig()
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    ctx = build_context(config, probe=probe)
    ctx.start()
    try:
        yield ctx
    finally:
        ctx.close()


@contextmanager
def _user_errors() -> Iterator[None]:
    try:
        yield
    except (MkchError, requests.RequestException, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc


def _find_board(boards: Sequence[Board], code: str) -> Board:
    for board in boards:
        if board.code == code:
            return board
    raise ValueError(f"unknown board: {code}")


def _render_boards(boards: Sequence[Board], *, base_url: str) -> str:
    if not boards:
        return "no boards found"
    return _render_table(
        ("code", "description", "banner"),
        [
            (board.code, _truncate(board.description, limit=70), board.banner_url(base_url) or "")
            for board in boards
        ],
    )


def _render_threads(threads: Sequence[Thread]) -> str:
    if not threads:
        return "no threads found"
    return _render_table(
        ("id", "pin", "rating", "title"),
        [
            (
                str(thread.id),
                "*" if thread.is_pinned else "",
                str(thread.rating_value),
                _truncate(thread.title, limit=70),
            )
            for thread in threads
        ],
    )


def _render_comments(comments: Sequence[Comment], *, base_url: str) -> str:
    if not comments:
        return "no comments"
    blocks = []
    for comment in comments:
        block = f"--- #{comment.id} {comment.creation}\n{comment.formatted_text}"
        if comment.files:
            block += "\n" + _render_files(comment.files, base_url=base_url)
        blocks.append(block)
    return "\n".join(blocks)


def _render_files(paths: Sequence[str], *, base_url: str) -> str:
    lines = []
    for path in paths:
        info = FileInfo.from_path(path, base_url=base_url)
        if info.is_gif:
            kind = "gif"
        elif info.is_image:
            kind = "image"
        elif info.is_video:
            kind = "video"
        else:
            kind = "file"
        lines.append(f"[{kind}] {info.url}")
    return "\n".join(lines)


def _render_favorites(favorites: Sequence[FavoriteThread]) -> str:
    if not favorites:
        return "no favorites"
    ordered = sorted(favorites, key=lambda favorite: favorite.added_date, reverse=True)
    return _render_table(
        ("board", "id", "added", "title"),
        [
            (
                favorite.board,
                str(favorite.id),
                favorite.added_date.strftime("%Y-%m-%d %H:%M"),
                _truncate(favorite.title, limit=60),
            )
            for favorite in ordered
        ],
    )


def _render_table(headers: tuple[str, ...], rows: list[tuple[str, ...]]) -> str:
    widths = [
        max(len(headers[column]), *(len(row[column]) for row in rows))
        for column in range(len(headers))
    ]

    def _line(values: tuple[str, ...]) -> str:
        return " | ".join(
            value.ljust(widths[index]) for index, value in enumerate(values)
        )

    divider = "-+-".join("-" * width for width in widths)
    body = [_line(headers), divider]
    body.extend(_line(row) for row in rows)
    return "\n".join(body)


def _truncate(text: str, *, limit: int) -> str:
    if len(text) <= limit:
        return text
    return f"{text[: limit - 3]}..."


def main() -> None:
    """CLI entrypoint."""
    app()


if __name__ == "__main__":
    main()
