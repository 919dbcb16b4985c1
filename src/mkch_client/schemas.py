from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from .config import DEFAULT_BASE_URL

_IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png", ".gif", ".webp")
_VIDEO_SUFFIXES = (".mp4", ".webm")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_creation(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def absolute_url(path: str, base_url: str) -> str:
    if path.startswith(("http://", "https://")):
        return path
    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


class DTOBase(BaseModel):
    # Server payloads are external; tolerate fields this client does not use.
    model_config = ConfigDict(extra="ignore")


class Board(DTOBase):
    code: str
    description: str
    banner: str | None = None

    def banner_url(self, base_url: str = DEFAULT_BASE_URL) -> str | None:
        if not self.banner:
            return None
        return absolute_url(self.banner, base_url)


class Thread(DTOBase):
    id: int
    title: str
    text: str
    creation: str
    board: str
    rating: int | None = None
    pinned: bool | None = None
    files: list[str] = Field(default_factory=list)

    @property
    def creation_date(self) -> datetime | None:
        return parse_creation(self.creation)

    @property
    def rating_value(self) -> int:
        return self.rating or 0

    @property
    def is_pinned(self) -> bool:
        return bool(self.pinned)


class ThreadDetail(DTOBase):
    id: int
    creation: str
    title: str
    text: str
    board: str
    files: list[str] = Field(default_factory=list)

    @property
    def creation_date(self) -> datetime | None:
        return parse_creation(self.creation)


class Comment(DTOBase):
    id: int
    text: str
    creation: str
    files: list[str] = Field(default_factory=list)

    @property
    def creation_date(self) -> datetime | None:
        return parse_creation(self.creation)

    @property
    def formatted_text(self) -> str:
        return self.text.replace("#", ">>")


class FavoriteThread(DTOBase):
    id: int
    title: str
    board: str
    board_description: str
    added_date: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))

    @classmethod
    def from_thread(cls, thread: Thread | ThreadDetail, board: Board) -> FavoriteThread:
        return cls(
            id=thread.id,
            title=thread.title,
            board=board.code,
            board_description=board.description,
        )


class FileInfo(DTOBase):
    url: str
    filename: str
    is_image: bool
    is_video: bool
    is_gif: bool

    @classmethod
    def from_path(cls, file_path: str, *, base_url: str = DEFAULT_BASE_URL) -> FileInfo:
        lowered = file_path.lower()
        is_gif = lowered.endswith(".gif")
        return cls(
            url=absolute_url(file_path, base_url),
            filename=file_path.rsplit("/", 1)[-1],
            is_image=lowered.endswith(_IMAGE_SUFFIXES),
            is_video=lowered.endswith(_VIDEO_SUFFIXES),
            is_gif=is_gif,
        )


def sort_threads(threads: Iterable[Thread]) -> list[Thread]:
    """Order pinned threads first, then by rating and creation time, newest first."""
    return sorted(
        threads,
        key=lambda thread: (
            not thread.is_pinned,
            -thread.rating_value,
            -(thread.creation_date or _EPOCH).timestamp(),
        ),
    )
