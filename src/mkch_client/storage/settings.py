from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from mkch_client.schemas import Board, FavoriteThread, Thread, ThreadDetail

logger = logging.getLogger(__name__)

SETTINGS_KEY = "MobileMkchSettings"


class UserSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    theme: str = "dark"
    last_board: str = ""
    auto_refresh: bool = True
    show_files: bool = True
    compact_mode: bool = False
    page_size: int = Field(default=10, ge=1)
    enable_pagination: bool = False
    enable_unstable_features: bool = False
    passcode: str = ""
    key: str = ""
    notifications_enabled: bool = False
    notification_interval: int = Field(default=300, ge=0)
    favorite_threads: list[FavoriteThread] = Field(default_factory=list)
    force_offline: bool = False


class SettingsStore:
    """User preferences persisted as one JSON blob under ``SETTINGS_KEY``."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> UserSettings:
        with self._lock:
            return self._load_unlocked()

    def save(self, settings: UserSettings) -> None:
        with self._lock:
            self._save_unlocked(settings)

    def update(self, **changes: Any) -> UserSettings:
        with self._lock:
            current = self._load_unlocked()
            updated = UserSettings.model_validate({**current.model_dump(), **changes})
            self._save_unlocked(updated)
        return updated

    def reset(self) -> UserSettings:
        settings = UserSettings()
        self.save(settings)
        return settings

    def add_favorite(self, thread: Thread | ThreadDetail, board: Board) -> bool:
        with self._lock:
            current = self._load_unlocked()
            if _find_favorite(current, thread.id, board.code) is not None:
                return False
            current.favorite_threads.append(FavoriteThread.from_thread(thread, board))
            self._save_unlocked(current)
        return True

    def remove_favorite(self, thread_id: int, board_code: str) -> bool:
        with self._lock:
            current = self._load_unlocked()
            kept = [
                favorite
                for favorite in current.favorite_threads
                if not (favorite.id == thread_id and favorite.board == board_code)
            ]
            if len(kept) == len(current.favorite_threads):
                return False
            current.favorite_threads = kept
            self._save_unlocked(current)
        return True

    def is_favorite(self, thread_id: int, board_code: str) -> bool:
        return _find_favorite(self.load(), thread_id, board_code) is not None

    def _load_unlocked(self) -> UserSettings:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return UserSettings()

        try:
            document = json.loads(raw)
            return UserSettings.model_validate(document.get(SETTINGS_KEY, {}))
        except (json.JSONDecodeError, AttributeError, ValidationError):
            logger.warning("settings unreadable, using defaults path=%s", self.path)
            return UserSettings()

    def _save_unlocked(self, settings: UserSettings) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {SETTINGS_KEY: settings.model_dump(mode="json")}
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".settings-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def _find_favorite(
    settings: UserSettings, thread_id: int, board_code: str
) -> FavoriteThread | None:
    for favorite in settings.favorite_threads:
        if favorite.id == thread_id and favorite.board == board_code:
            return favorite
    return None
