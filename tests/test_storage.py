from __future__ import annotations

import hashlib
import json
import threading
from collections.abc import Callable

import pytest

from mkch_client.schemas import Board, ThreadDetail
from mkch_client.storage import CacheEntry, DiskStore, MemoryStore, ResponseCache


class _FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class _FailingDisk(DiskStore):
    def write(self, entry: CacheEntry) -> None:
        raise OSError("disk full")


def _boards() -> list[Board]:
    return [
        Board(code="b", description="Random"),
        Board(code="a", description="Anime", banner="/media/banners/a.png"),
    ]


def _cache(tmp_path, clock: _FakeClock) -> ResponseCache:
    return ResponseCache(disk=DiskStore(tmp_path / "cache"), clock=clock)


def test_set_then_get_round_trips_value(tmp_path) -> None:
    cache = _cache(tmp_path, _FakeClock())

    cache.set("boards", _boards(), 600)

    assert cache.get("boards", list[Board]) == _boards()


def test_get_respects_ttl_boundary(tmp_path) -> None:
    clock = _FakeClock()
    cache = _cache(tmp_path, clock)
    cache.set("thread_detail_7", {"value": 1}, 5)

    clock.advance(5)
    assert cache.get("thread_detail_7", dict[str, int]) == {"value": 1}

    clock.advance(0.001)
    assert cache.get("thread_detail_7", dict[str, int]) is None


def test_boards_expire_but_remain_available_as_stale(tmp_path) -> None:
    clock = _FakeClock()
    cache = _cache(tmp_path, clock)
    boards_a = _boards()

    cache.set("boards", boards_a, 600)
    assert cache.get("boards", list[Board]) == boards_a

    clock.advance(601)
    assert cache.get("boards", list[Board]) is None
    assert cache.get_stale("boards", list[Board]) == boards_a


def test_stale_read_survives_long_after_expiry_until_delete(tmp_path) -> None:
    clock = _FakeClock()
    cache = _cache(tmp_path, clock)
    cache.set("comments_5", ["first"], 180)

    clock.advance(86_400)
    assert cache.get_stale("comments_5", list[str]) == ["first"]
    assert cache.get_stale("comments_5", list[str]) == ["first"]

    cache.delete("comments_5")
    assert cache.get_stale("comments_5", list[str]) is None


def test_delete_removes_both_layers_and_file(tmp_path) -> None:
    cache = _cache(tmp_path, _FakeClock())
    cache.set("threads_b", ["x"], 300)
    path = cache.disk.path_for("threads_b")
    assert path.exists()

    cache.delete("threads_b")
    cache.delete("threads_b")

    assert cache.get("threads_b", list[str]) is None
    assert cache.get_stale("threads_b", list[str]) is None
    assert cache.memory.get("threads_b") is None
    assert not path.exists()


def test_clear_removes_everything(tmp_path) -> None:
    cache = _cache(tmp_path, _FakeClock())
    cache.set("boards", ["b"], 600)
    cache.set("threads_b", ["t"], 300)

    cache.clear()

    assert len(cache.memory) == 0
    assert list(cache.disk.directory.glob("*.json")) == []
    assert cache.get_stale("boards", list[str]) is None


def test_restart_rehydrates_from_disk(tmp_path) -> None:
    clock = _FakeClock()
    _cache(tmp_path, clock).set("boards", _boards(), 600)

    clock.advance(100)
    restarted = _cache(tmp_path, clock)

    assert len(restarted.memory) == 0
    assert restarted.get("boards", list[Board]) == _boards()
    assert restarted.memory.get("boards") is not None


def test_restart_with_expired_record_only_serves_stale(tmp_path) -> None:
    clock = _FakeClock()
    _cache(tmp_path, clock).set("threads_b", ["old"], 300)

    clock.advance(301)
    restarted = _cache(tmp_path, clock)

    assert restarted.get("threads_b", list[str]) is None
    assert restarted.get_stale("threads_b", list[str]) == ["old"]


def test_sweep_evicts_exactly_expired_entries(tmp_path) -> None:
    clock = _FakeClock()
    cache = _cache(tmp_path, clock)
    cache.set("boards", ["b"], 600)
    cache.set("threads_b", ["t"], 300)
    cache.set("comments_1", ["c"], 180)

    clock.advance(301)
    stats = cache.sweep()

    assert stats.memory_evicted == 2
    assert stats.disk_evicted == 2
    assert cache.memory.keys() == ["boards"]
    assert cache.get("boards", list[str]) == ["b"]
    assert not cache.disk.path_for("threads_b").exists()
    assert not cache.disk.path_for("comments_1").exists()
    assert cache.disk.path_for("boards").exists()


def test_disk_sweep_runs_independently_of_memory(tmp_path) -> None:
    clock = _FakeClock()
    _cache(tmp_path, clock).set("threads_b", ["t"], 300)

    clock.advance(400)
    fresh_process = _cache(tmp_path, clock)
    stats = fresh_process.sweep()

    assert stats.memory_evicted == 0
    assert stats.disk_evicted == 1


def test_disk_write_failure_keeps_memory_value(tmp_path) -> None:
    cache = ResponseCache(disk=_FailingDisk(tmp_path / "cache"), clock=_FakeClock())

    cache.set("boards", ["b"], 600)

    assert cache.get("boards", list[str]) == ["b"]
    assert list((tmp_path / "cache").glob("*.json")) == []


def test_unserializable_value_is_not_stored(tmp_path) -> None:
    cache = _cache(tmp_path, _FakeClock())

    cache.set("boards", object(), 600)

    assert cache.get_stale("boards", list[Board]) is None


def test_decode_with_wrong_type_returns_none(tmp_path) -> None:
    cache = _cache(tmp_path, _FakeClock())
    cache.set("boards", _boards(), 600)

    assert cache.get("boards", ThreadDetail) is None
    assert cache.get("boards", list[Board]) == _boards()


def test_corrupt_record_is_treated_as_miss_and_removed(tmp_path) -> None:
    cache = _cache(tmp_path, _FakeClock())
    path = cache.disk.path_for("boards")
    path.write_text("{not json", encoding="utf-8")

    assert cache.get("boards", list[Board]) is None
    assert not path.exists()


def test_negative_ttl_is_rejected(tmp_path) -> None:
    cache = _cache(tmp_path, _FakeClock())

    with pytest.raises(ValueError):
        cache.set("boards", [], -1)


def test_disk_record_layout(tmp_path) -> None:
    clock = _FakeClock(1_234.5)
    cache = _cache(tmp_path, clock)
    key = "thread_detail_42/../weird key ✓"

    cache.set(key, {"id": 42}, 180)

    expected_name = hashlib.sha256(key.encode("utf-8")).hexdigest() + ".json"
    path = cache.disk.directory / expected_name
    record = json.loads(path.read_text(encoding="utf-8"))
    assert record["key"] == key
    assert record["timestamp"] == 1_234.5
    assert record["ttl"] == 180
    assert DiskStore(cache.disk.directory).read(key).payload == b'{"id":42}'


def test_memory_promotion_does_not_overwrite_newer_write() -> None:
    memory = MemoryStore()
    newer = CacheEntry(key="boards", payload=b"[2]", stored_at=20.0, ttl=600)
    older = CacheEntry(key="boards", payload=b"[1]", stored_at=10.0, ttl=600)
    memory.put(newer)

    assert memory.promote(older, memory.generation) is newer
    assert memory.get("boards") is newer


class _DeleteAfterReadDisk(DiskStore):
    def __init__(self, directory) -> None:
        super().__init__(directory)
        self.on_read: Callable[[], None] | None = None

    def read(self, key: str) -> CacheEntry | None:
        entry = super().read(key)
        callback, self.on_read = self.on_read, None
        if callback is not None:
            callback()
        return entry


def test_delete_during_disk_read_is_not_undone(tmp_path) -> None:
    clock = _FakeClock()
    _cache(tmp_path, clock).set("comments_7", ["old"], 180)
    disk = _DeleteAfterReadDisk(tmp_path / "cache")
    cache = ResponseCache(disk=disk, clock=clock)
    disk.on_read = lambda: cache.delete("comments_7")

    cache.get("comments_7", list[str])

    assert not disk.path_for("comments_7").exists()
    assert cache.memory.get("comments_7") is None
    assert cache.get_stale("comments_7", list[str]) is None


def test_clear_during_disk_read_is_not_undone(tmp_path) -> None:
    clock = _FakeClock()
    _cache(tmp_path, clock).set("boards", ["b"], 600)
    disk = _DeleteAfterReadDisk(tmp_path / "cache")
    cache = ResponseCache(disk=disk, clock=clock)
    disk.on_read = cache.clear

    cache.get_stale("boards", list[str])

    assert len(cache.memory) == 0
    assert cache.get_stale("boards", list[str]) is None


def test_memory_promotion_is_refused_after_removal() -> None:
    memory = MemoryStore()
    entry = CacheEntry(key="comments_7", payload=b"[]", stored_at=10.0, ttl=180)
    generation = memory.generation

    memory.pop("comments_7")

    assert memory.promote(entry, generation) is entry
    assert memory.get("comments_7") is None


def test_concurrent_sets_leave_memory_and_disk_in_agreement(tmp_path) -> None:
    cache = _cache(tmp_path, _FakeClock())
    start = threading.Barrier(8)

    def _writer(value: int) -> None:
        start.wait()
        for _ in range(25):
            cache.set("threads_b", [value], 300)

    threads = [threading.Thread(target=_writer, args=(value,)) for value in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    in_memory = cache.get("threads_b", list[int])
    restarted = _cache(tmp_path, _FakeClock())
    assert restarted.get("threads_b", list[int]) == in_memory
