from __future__ import annotations

import logging
import queue
import threading
import time
from pathlib import Path
from typing import Callable, Iterable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

log = logging.getLogger(__name__)

RESCAN = "rescan"
CONFIG = "config"
HEATMAP = "heatmap"
_STOP = "stop"

_DIR_EVENTS = frozenset({"created", "deleted", "moved"})


def _event_paths(event: FileSystemEvent) -> list[str]:
    paths = [str(event.src_path)]
    dest = getattr(event, "dest_path", None)
    if dest:
        paths.append(str(dest))
    return paths


class DescriptorEventHandler(FileSystemEventHandler):
    def __init__(self, post: Callable[[str], None]) -> None:
        self._post = post

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in ("opened", "closed_no_write"):
            return
        if event.is_directory:
            if event.event_type in _DIR_EVENTS:
                self._post(RESCAN)
            return
        if any(p.endswith(".desktop") for p in _event_paths(event)):
            self._post(RESCAN)


class WatchedFileHandler(FileSystemEventHandler):
    def __init__(self, target: Path, kind: str, post: Callable[[str], None]) -> None:
        self._target = str(target)
        self._kind = kind
        self._post = post

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type in ("opened", "closed_no_write"):
            return
        if self._target in _event_paths(event):
            self._post(self._kind)


class RescanScheduler:
    """Single consumer of watch events.

    Bursts of events of the same kind arriving within ``debounce_s`` collapse
    into one callback. The same thread runs ``on_flush`` every
    ``flush_interval_s`` and once more when stopped.
    """

    def __init__(
        self,
        *,
        on_rescan: Callable[[], object],
        on_flush: Callable[[], object] | None = None,
        on_config: Callable[[], object] | None = None,
        on_heatmap: Callable[[], object] | None = None,
        debounce_s: float = 0.25,
        flush_interval_s: float = 30.0,
    ) -> None:
        self._handlers: dict[str, Callable[[], object] | None] = {
            RESCAN: on_rescan,
            CONFIG: on_config,
            HEATMAP: on_heatmap,
        }
        self._on_flush = on_flush
        self._debounce_s = max(0.0, debounce_s)
        self._flush_interval_s = flush_interval_s
        self._q: queue.Queue[str] = queue.Queue()
        self._thread: threading.Thread | None = None

    def post(self, kind: str) -> None:
        self._q.put(kind)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="hyprlauncher-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        t = self._thread
        if t is None:
            return
        self._q.put(_STOP)
        t.join(timeout)
        self._thread = None

    def _call(self, name: str, fn: Callable[[], object] | None) -> None:
        if fn is None:
            return
        try:
            fn()
        except Exception:
            log.exception("%s handler failed", name)

    def _run(self) -> None:
        due: dict[str, float] = {}
        next_flush = time.monotonic() + self._flush_interval_s
        while True:
            now = time.monotonic()
            deadline = min([next_flush, *due.values()])
            try:
                kind = self._q.get(timeout=max(0.0, deadline - now))
            except queue.Empty:
                kind = None

            if kind == _STOP:
                break
            now = time.monotonic()
            if kind is not None and kind not in due:
                due[kind] = now + self._debounce_s

            for k, at in list(due.items()):
                if at <= now:
                    del due[k]
                    log.debug("watch: %s", k)
                    self._call(k, self._handlers.get(k))

            if now >= next_flush:
                self._call("flush", self._on_flush)
                next_flush = now + self._flush_interval_s

        self._call("flush", self._on_flush)


class DirectoryWatcher:
    def __init__(self, post: Callable[[str], None]) -> None:
        self._post = post
        self._observer: Observer | None = None
        self.watched: list[Path] = []

    def start(self, dirs: Iterable[Path], files: Iterable[tuple[Path, str]] = ()) -> None:
        self.stop()
        observer = Observer()
        watched: list[Path] = []
        handler = DescriptorEventHandler(self._post)
        for d in dirs:
            if not d.is_dir():
                continue
            try:
                observer.schedule(handler, str(d), recursive=True)
                watched.append(d)
            except OSError as e:
                log.warning("cannot watch %s: %s", d, e)
        for target, kind in files:
            parent = target.parent
            if not parent.is_dir():
                continue
            try:
                observer.schedule(WatchedFileHandler(target, kind, self._post), str(parent), recursive=False)
            except OSError as e:
                log.warning("cannot watch %s: %s", target, e)
        observer.daemon = True
        observer.start()
        self._observer = observer
        self.watched = watched
        log.info("watching %d directories", len(watched))

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        self.watched = []
