"""Tests for the bounded screenshot queues and their files on disk."""

import threading
from pathlib import Path

import pytest

from storage import ArtifactStore, Mode, QueueName, StorageFailure, queue_for_mode


def _fail_unlink_for(monkeypatch, names):
    original_unlink = Path.unlink

    def flaky_unlink(self, *args, **kwargs):
        if self.name in names:
            raise PermissionError(f"{self.name} is locked")
        return original_unlink(self, *args, **kwargs)

    monkeypatch.setattr(Path, "unlink", flaky_unlink)


def test_queue_for_mode():
    assert queue_for_mode(Mode.QUEUE) is QueueName.PRIMARY
    assert queue_for_mode("solutions") is QueueName.SECONDARY
    assert queue_for_mode("debug") is QueueName.SECONDARY
    with pytest.raises(ValueError):
        queue_for_mode("preview")


def test_append_writes_unique_png(store, dirs, png_bytes):
    first = store.append(Mode.QUEUE, png_bytes)
    second = store.append(Mode.QUEUE, png_bytes)

    assert first != second
    for path in (first, second):
        assert Path(path).is_absolute()
        assert Path(path).parent == dirs["primary"].resolve()
        assert Path(path).suffix == ".png"
        assert Path(path).read_bytes() == png_bytes
    assert store.primary == [first, second]


def test_append_provisions_missing_directory(dirs, png_bytes):
    store = ArtifactStore(dirs["primary"], dirs["secondary"])
    assert not dirs["secondary"].exists()

    path = store.append("debug", png_bytes)

    assert Path(path).exists()
    assert store.secondary == [path]


def test_sixth_append_evicts_oldest(store, png_bytes):
    paths = [store.append(Mode.QUEUE, png_bytes) for _ in range(6)]

    assert len(store.primary) == 5
    assert store.primary == paths[1:]
    assert not Path(paths[0]).exists()
    assert all(Path(p).exists() for p in paths[1:])


def test_queue_never_exceeds_capacity(dirs, png_bytes):
    store = ArtifactStore(dirs["primary"], dirs["secondary"], capacity=3)
    appended = []
    for _ in range(10):
        appended.append(store.append(Mode.SOLUTIONS, png_bytes))
        assert len(store.secondary) <= 3
        assert store.secondary == appended[-3:]

    assert sorted(p.name for p in dirs["secondary"].iterdir()) == sorted(Path(p).name for p in appended[-3:])


def test_capacity_is_per_queue(store, png_bytes):
    for _ in range(5):
        store.append(Mode.QUEUE, png_bytes)
        store.append(Mode.DEBUG, png_bytes)

    assert len(store.primary) == 5
    assert len(store.secondary) == 5


def test_eviction_delete_failure_still_drops_entry(store, png_bytes, monkeypatch, caplog):
    paths = [store.append(Mode.QUEUE, png_bytes) for _ in range(5)]
    _fail_unlink_for(monkeypatch, {Path(paths[0]).name})

    newest = store.append(Mode.QUEUE, png_bytes)

    assert store.primary == paths[1:] + [newest]
    assert Path(paths[0]).exists()
    assert "locked" in caplog.text


def test_write_failure_raises_and_leaves_queue(store, png_bytes, monkeypatch):
    store.append(Mode.QUEUE, png_bytes)

    def broken_write(self, data):
        raise OSError("disk full")

    monkeypatch.setattr(Path, "write_bytes", broken_write)

    with pytest.raises(StorageFailure, match="disk full"):
        store.append(Mode.QUEUE, png_bytes)
    assert len(store.primary) == 1


def test_snapshots_are_copies(store, png_bytes):
    store.append(Mode.QUEUE, png_bytes)

    snapshot = store.primary
    snapshot.append("/tmp/not-a-screenshot.png")
    snapshot.clear()

    assert len(store.primary) == 1


def test_remove_is_idempotent(store, png_bytes):
    keep = store.append(Mode.QUEUE, png_bytes)
    target = store.append(Mode.QUEUE, png_bytes)
    other = store.append(Mode.SOLUTIONS, png_bytes)

    first = store.remove(target)
    second = store.remove(target)

    assert first.ok and first.removed
    assert second.ok and not second.removed
    assert not Path(target).exists()
    assert store.primary == [keep]
    assert store.secondary == [other]


def test_remove_finds_path_in_either_queue(store, png_bytes):
    path = store.append(Mode.DEBUG, png_bytes)

    assert store.remove(Path(path)).ok
    assert store.secondary == []


def test_remove_os_failure_is_reported(store, png_bytes, monkeypatch):
    path = store.append(Mode.QUEUE, png_bytes)
    _fail_unlink_for(monkeypatch, {Path(path).name})

    outcome = store.remove(path)

    assert not outcome.ok
    assert "locked" in outcome.error
    assert store.primary == [path]


def test_clear_selected_queue(store, png_bytes):
    primary = store.append(Mode.QUEUE, png_bytes)
    secondary = [store.append(Mode.SOLUTIONS, png_bytes) for _ in range(2)]

    outcomes = store.clear(QueueName.SECONDARY)

    assert [o.path for o in outcomes] == secondary
    assert all(o.removed for o in outcomes)
    assert store.secondary == []
    assert store.primary == [primary]
    assert not any(Path(p).exists() for p in secondary)


def test_clear_all_empties_queues_despite_failures(store, png_bytes, monkeypatch):
    locked = store.append(Mode.QUEUE, png_bytes)
    fine = store.append(Mode.DEBUG, png_bytes)
    _fail_unlink_for(monkeypatch, {Path(locked).name})

    outcomes = store.clear()

    assert store.primary == []
    assert store.secondary == []
    assert {o.path: o.ok for o in outcomes} == {locked: False, fine: True}
    assert not Path(fine).exists()


def test_purge_on_start_removes_leftovers(dirs, png_bytes):
    for key in ("primary", "secondary"):
        dirs[key].mkdir(parents=True)
        (dirs[key] / "leftover-1.png").write_bytes(png_bytes)
        (dirs[key] / "leftover-2.png").write_bytes(png_bytes)
    notes = dirs["primary"] / "notes.txt"
    notes.write_text("keep me")

    store = ArtifactStore(dirs["primary"], dirs["secondary"])
    outcomes = store.purge_on_start()

    assert len(outcomes) == 4
    assert all(o.removed for o in outcomes)
    assert list(dirs["primary"].glob("*.png")) == []
    assert list(dirs["secondary"].glob("*.png")) == []
    assert notes.exists()
    assert store.primary == [] and store.secondary == []


def test_purge_on_start_without_directories(dirs):
    store = ArtifactStore(dirs["primary"], dirs["secondary"])
    assert store.purge_on_start() == []


def test_concurrent_appends_respect_capacity(store, dirs, png_bytes):
    def worker():
        for _ in range(10):
            store.append(Mode.QUEUE, png_bytes)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    queued = store.primary
    assert len(queued) == 5
    assert sorted(Path(p).name for p in queued) == sorted(p.name for p in dirs["primary"].iterdir())


def test_invalid_capacity(dirs):
    with pytest.raises(ValueError):
        ArtifactStore(dirs["primary"], dirs["secondary"], capacity=0)


def test_remove_when_file_vanishes_before_unlink(store, png_bytes, monkeypatch):
    path = store.append(Mode.QUEUE, png_bytes)
    keep = store.append(Mode.QUEUE, png_bytes)
    original_unlink = Path.unlink

    def racing_unlink(self, *args, **kwargs):
        # another thread evicts the same file first
        original_unlink(self)
        raise FileNotFoundError(2, "No such file or directory", str(self))

    monkeypatch.setattr(Path, "unlink", racing_unlink)

    outcome = store.remove(path)

    assert outcome.ok
    assert not outcome.removed
    assert not Path(path).exists()
    assert store.primary == [keep]


def test_remove_of_externally_deleted_file_drops_entry(store, png_bytes):
    path = store.append(Mode.SOLUTIONS, png_bytes)
    Path(path).unlink()

    outcome = store.remove(path)

    assert outcome.ok
    assert store.secondary == []
