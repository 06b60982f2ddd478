"""Tests for pkgsync.watch."""

from __future__ import annotations

import threading
from pathlib import Path

from pkgsync.watch import SourceWatcher, take_snapshot


def test_take_snapshot_lists_files_and_directories(tmp_path: Path) -> None:
    (tmp_path / "utils").mkdir()
    (tmp_path / "utils" / "format.ts").write_text("", encoding="utf-8")
    (tmp_path / "index.ts").write_text("", encoding="utf-8")

    assert sorted(take_snapshot(tmp_path)) == ["index.ts", "utils", "utils/format.ts"]
    assert take_snapshot(tmp_path / "missing") == {}


def test_poll_once_reacts_to_added_and_removed_files(tmp_path: Path) -> None:
    source = tmp_path / "src"
    source.mkdir()
    (source / "a.ts").write_text("", encoding="utf-8")
    runs: list[Path] = []
    watcher = SourceWatcher(runs.append)
    watcher.add(tmp_path, source)

    assert watcher.poll_once() == []
    (source / "b.ts").write_text("", encoding="utf-8")
    assert watcher.poll_once() == [tmp_path]
    watcher.wait(timeout=5)
    (source / "a.ts").write_text("changed", encoding="utf-8")
    assert watcher.poll_once() == []
    (source / "a.ts").unlink()
    assert watcher.poll_once() == [tmp_path]
    watcher.wait(timeout=5)

    assert runs == [tmp_path, tmp_path]


def test_changes_during_a_run_are_coalesced(tmp_path: Path) -> None:
    started = threading.Event()
    release = threading.Event()
    runs: list[Path] = []

    def on_change(root: Path) -> None:
        runs.append(root)
        started.set()
        release.wait(5)

    watcher = SourceWatcher(on_change)
    watcher.add(tmp_path, tmp_path / "src")

    watcher.schedule(tmp_path)
    assert started.wait(5)
    for _ in range(3):
        watcher.schedule(tmp_path)
    release.set()
    watcher.wait(timeout=5)

    assert len(runs) == 2


def test_failed_run_does_not_stop_watching(tmp_path: Path) -> None:
    runs: list[Path] = []

    def on_change(root: Path) -> None:
        runs.append(root)
        if len(runs) == 1:
            raise RuntimeError("boom")

    watcher = SourceWatcher(on_change)
    watcher.add(tmp_path, tmp_path)

    watcher.schedule(tmp_path)
    watcher.wait(timeout=5)
    watcher.schedule(tmp_path)
    watcher.wait(timeout=5)

    assert len(runs) == 2
