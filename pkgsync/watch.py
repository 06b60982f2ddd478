"""Polling watcher that re-runs a callback when files appear or disappear."""

from __future__ import annotations

import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .logging import get_logger

Snapshot = Dict[str, int]


@dataclass
class _Target:
    directory: Path
    snapshot: Snapshot
    busy: bool = False
    pending: bool = False
    worker: Optional[threading.Thread] = None


def take_snapshot(directory: Path, *, track_content: bool = False) -> Snapshot:
    """Relative paths under ``directory`` mapped to mtimes (0 unless ``track_content``)."""
    snapshot: Snapshot = {}
    if not directory.is_dir():
        return snapshot
    for current, dirs, files in os.walk(directory):
        dirs.sort()
        base = Path(current)
        for name in [*dirs, *files]:
            path = base / name
            relative = path.relative_to(directory).as_posix()
            if track_content and name in files:
                try:
                    snapshot[relative] = path.stat().st_mtime_ns
                except OSError:
                    continue
            else:
                snapshot[relative] = 0
    return snapshot


class SourceWatcher:
    """Runs ``on_change(root)`` for each watched package whose source tree changed.

    Runs for one package never overlap: changes seen while a run is in
    flight are folded into a single follow-up run.
    """

    def __init__(
        self,
        on_change: Callable[[Path], None],
        *,
        interval: float = 0.5,
        track_content: bool = False,
    ) -> None:
        self.on_change = on_change
        self.interval = interval
        self.track_content = track_content
        self.logger = get_logger("watch")
        self._targets: Dict[Path, _Target] = {}
        self._lock = threading.Lock()

    def add(self, root: Path, directory: Path) -> None:
        self._targets[root] = _Target(
            directory=directory,
            snapshot=take_snapshot(directory, track_content=self.track_content),
        )

    def poll_once(self) -> List[Path]:
        """Compare snapshots and schedule a run for every changed package."""
        changed: List[Path] = []
        for root, target in self._targets.items():
            current = take_snapshot(target.directory, track_content=self.track_content)
            if current == target.snapshot:
                continue
            added = sorted(set(current) - set(target.snapshot))
            removed = sorted(set(target.snapshot) - set(current))
            for path in added:
                self.logger.debug("File added: %s", path)
            for path in removed:
                self.logger.debug("File removed: %s", path)
            target.snapshot = current
            changed.append(root)
            self.schedule(root)
        return changed

    def schedule(self, root: Path) -> None:
        target = self._targets[root]
        with self._lock:
            if target.busy:
                target.pending = True
                return
            target.busy = True
        target.worker = threading.Thread(target=self._drain, args=(root,), daemon=True)
        target.worker.start()

    def wait(self, timeout: float | None = None) -> None:
        """Block until every in-flight run (and its follow-ups) finished."""
        for target in self._targets.values():
            if target.worker is not None:
                target.worker.join(timeout)

    def run(self) -> None:
        self.logger.info("Watching %d package(s); press Ctrl+C to stop", len(self._targets))
        try:
            while True:
                self.poll_once()
                time.sleep(self.interval)
        except KeyboardInterrupt:
            self.logger.info("Stopped watching")
        finally:
            self.wait(timeout=self.interval * 10)

    def _drain(self, root: Path) -> None:
        target = self._targets[root]
        while True:
            try:
                self.on_change(root)
            except Exception as exc:  # noqa: BLE001 - logged, polling continues
                self.logger.warning("Watch run failed for %s: %s", root, exc)
            with self._lock:
                if not target.pending:
                    target.busy = False
                    return
                target.pending = False


__all__ = ["SourceWatcher", "take_snapshot"]
