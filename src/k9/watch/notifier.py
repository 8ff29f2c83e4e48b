"""Change notifiers for a watched sketch: mtime polling and watchdog events."""
from __future__ import annotations

import logging
import queue
import time
from pathlib import Path
from typing import Callable, Iterator, Protocol

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

log = logging.getLogger(__name__)

# Sketch sources worth a restart when the whole directory is watched.
WATCHED_EXTS = {".rb", ".glsl"}


class Notifier(Protocol):
    def last_modified(self) -> float: ...

    def changes(self) -> list[float]: ...

    def close(self) -> None: ...


def tracked_paths(sketch: Path, watch_directory: bool = False) -> list[Path]:
    """The sketch file, plus its sibling sources when watch_directory is set."""
    paths = [sketch]
    if watch_directory and sketch.parent.is_dir():
        for sibling in sorted(sketch.parent.iterdir()):
            if sibling.suffix in WATCHED_EXTS and sibling != sketch:
                paths.append(sibling)
    return paths


def last_modified(paths: list[Path]) -> float:
    """Newest mtime among paths; files that vanished mid-save are skipped."""
    newest = 0.0
    for path in paths:
        try:
            newest = max(newest, path.stat().st_mtime)
        except FileNotFoundError:
            continue
    return newest


class PollingNotifier:
    """
    Reports a change whenever the newest mtime of the tracked files is
    strictly greater than the last value it reported.

    Equal timestamps never count, so coarse filesystem clocks cannot
    produce duplicate restarts.
    """

    def __init__(self, sketch: Path, watch_directory: bool = False):
        self.sketch = sketch
        self.watch_directory = watch_directory
        self._seen = self.last_modified()

    def paths(self) -> list[Path]:
        # Re-listed every poll so new files in the directory are picked up.
        return tracked_paths(self.sketch, self.watch_directory)

    def last_modified(self) -> float:
        return last_modified(self.paths())

    def changes(self) -> list[float]:
        current = self.last_modified()
        if current > self._seen:
            self._seen = current
            return [current]
        return []

    def close(self) -> None:
        pass


def observe(
    notifier: Notifier,
    interval: float,
    sleep: Callable[[float], None] = time.sleep,
) -> Iterator[float]:
    """
    Infinite stream of change timestamps from notifier, polled every interval.

    The blocking form of the notifier contract, for callers that wait on
    changes alone. The supervisor drains changes() itself between its own
    process checks.
    """
    while True:
        yield from notifier.changes()
        sleep(interval)


class _SketchEventHandler(FileSystemEventHandler):
    """watchdog handler that only forwards events touching tracked sources."""

    def __init__(self, notifier: EventNotifier):
        super().__init__()
        self.notifier = notifier

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        # Atomic saves arrive as a move of a temp file onto the sketch.
        candidates = [event.src_path, getattr(event, "dest_path", "") or ""]
        for candidate in candidates:
            if candidate and self.notifier.is_tracked(Path(candidate)):
                log.debug(f"Watchdog event: {event.event_type} on {candidate}")
                self.notifier.push(Path(candidate))
                return


class EventNotifier:
    """
    Event-based notifier backed by a watchdog Observer.

    The observer thread only enqueues timestamps; the supervisor drains them
    from its own thread via changes(), so all state changes stay on one thread.
    """

    def __init__(self, sketch: Path, watch_directory: bool = False, observer_factory=Observer):
        self.sketch = sketch.resolve()
        self.watch_directory = watch_directory
        self._queue: queue.Queue[float] = queue.Queue()
        self._observer = observer_factory()
        self._observer.schedule(_SketchEventHandler(self), str(self.sketch.parent), recursive=False)
        self._observer.start()
        log.debug(f"Watching {self.sketch.parent} for changes")

    def is_tracked(self, path: Path) -> bool:
        path = path.resolve()
        if path == self.sketch:
            return True
        return self.watch_directory and path.parent == self.sketch.parent and path.suffix in WATCHED_EXTS

    def push(self, path: Path) -> None:
        try:
            stamp = path.stat().st_mtime
        except FileNotFoundError:
            stamp = time.time()
        self._queue.put(stamp)

    def last_modified(self) -> float:
        return last_modified(tracked_paths(self.sketch, self.watch_directory))

    def changes(self) -> list[float]:
        stamps = []
        while True:
            try:
                stamps.append(self._queue.get_nowait())
            except queue.Empty:
                return stamps

    def close(self) -> None:
        self._observer.stop()
        self._observer.join()


def make_notifier(kind: str, sketch: Path, watch_directory: bool = False) -> Notifier:
    if kind == "events":
        return EventNotifier(sketch, watch_directory)
    return PollingNotifier(sketch, watch_directory)
