from __future__ import annotations

import json

from mkch_client.schemas import Board, Thread
from mkch_client.storage import SettingsStore, UserSettings
from mkch_client.storage.settings import SETTINGS_KEY


def _thread() -> Thread:
    return Thread(id=7, title="t", text="x", creation="2026-01-01T00:00:00Z", board="b")


def test_missing_file_loads_defaults(tmp_path) -> None:
    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings == UserSettings()
    assert not settings.force_offline


def test_update_persists_single_blob(tmp_path) -> None:
    path = tmp_path / "nested" / "settings.json"
    store = SettingsStore(path)

    store.update(force_offline=True, last_board="b")

    document = json.loads(path.read_text(encoding="utf-8"))
    assert list(document) == [SETTINGS_KEY]
    assert document[SETTINGS_KEY]["force_offline"] is True
    assert SettingsStore(path).load().last_board == "b"


def test_corrupt_file_falls_back_to_defaults(tmp_path) -> None:
    path = tmp_path / "settings.json"
    path.write_text("not json", encoding="utf-8")

    assert SettingsStore(path).load() == UserSettings()


def test_favorites_add_and_remove(tmp_path) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    board = Board(code="b", description="Random")

    assert store.add_favorite(_thread(), board)
    assert not store.add_favorite(_thread(), board)
    assert store.is_favorite(7, "b")

    favorite = store.load().favorite_threads[0]
    assert favorite.board_description == "Random"

    assert store.remove_favorite(7, "b")
    assert not store.remove_favorite(7, "b")
    assert not store.is_favorite(7, "b")


def test_reset_restores_defaults(tmp_path) -> None:
    store = SettingsStore(tmp_path / "settings.json")
    store.update(theme="light", force_offline=True)

    store.reset()

    assert store.load() == UserSettings()
