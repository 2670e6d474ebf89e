from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Callable, Protocol

from hyprlauncher import files, scorer
from hyprlauncher.config_model import ConfigModel
from hyprlauncher.entries import ApplicationEntry, current_desktops
from hyprlauncher.errors import QueryError
from hyprlauncher.heatmap import HeatmapStore, UsageStat
from hyprlauncher.index import IndexSnapshot, build_index, desktop_dirs, xdg_data_dirs

log = logging.getLogger(__name__)


class EngineState(enum.Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    READY = "ready"


class WindowState(Protocol):
    def is_window_open(self, identity: str) -> bool:
        ...


@dataclass(frozen=True)
class SearchResult:
    entry: ApplicationEntry
    score: float

    @property
    def identity(self) -> str:
        return self.entry.identity

    @property
    def display_name(self) -> str:
        return self.entry.display_name

    def as_dict(self) -> dict[str, Any]:
        e = self.entry
        return {
            "identity": e.identity,
            "display_name": e.display_name,
            "description": e.description,
            "icon_name": e.icon_name,
            "path": e.path,
            "exec_command": e.exec_command,
            "score": self.score,
        }


def _sort_key(r: SearchResult) -> tuple[float, int]:
    return (-r.score, r.entry.position)


class SearchEngine:
    """Answers queries against the latest published :class:`IndexSnapshot`.

    The snapshot reference is replaced as a whole; readers grab it once per
    query and never see a partially built index. Rebuilds run under a
    separate lock so only one scan writes at a time, and a scan that was
    superseded by a newer request is dropped instead of published.
    """

    def __init__(
        self,
        *,
        config: ConfigModel | None = None,
        heatmap: HeatmapStore | None = None,
        window_state: WindowState | None = None,
        snapshot: IndexSnapshot | None = None,
        clock: Callable[[], float] = time.time,
        env: dict[str, str] | None = None,
    ) -> None:
        self._config = config or ConfigModel()
        self._heatmap = heatmap if heatmap is not None else HeatmapStore()
        self._window_state = window_state
        self._clock = clock
        self._env = env
        self._snapshot = snapshot if snapshot is not None else IndexSnapshot()
        self._state = EngineState.READY if snapshot is not None else EngineState.IDLE
        self._build_lock = threading.Lock()
        self._gen_lock = threading.Lock()
        self._requested = self._snapshot.generation
        self._listeners: list[Callable[[IndexSnapshot], None]] = []
        self._pending: threading.Thread | None = None

    @property
    def snapshot(self) -> IndexSnapshot:
        return self._snapshot

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def heatmap(self) -> HeatmapStore:
        return self._heatmap

    @property
    def config(self) -> ConfigModel:
        return self._config

    def entry(self, identity: str) -> ApplicationEntry | None:
        return self._snapshot.get(identity)

    def add_listener(self, fn: Callable[[IndexSnapshot], None]) -> None:
        self._listeners.append(fn)

    def update_config(self, config: ConfigModel) -> bool:
        """Swaps in a new config; returns True when the index must be rebuilt."""
        old = self._config
        self._config = config
        return old.index != config.index

    # --- index ---
    def scan_paths(self) -> tuple[list[Path], list[Path]]:
        idx = self._config.index
        paths = desktop_dirs(idx.dirs, env=self._env, include_defaults=idx.include_default_dirs)
        extra = xdg_data_dirs(self._env) if idx.include_xdg_data_dirs else []
        return paths, extra

    def rebuild_index(self) -> IndexSnapshot:
        with self._gen_lock:
            self._requested += 1
            generation = self._requested

        with self._build_lock:
            if generation < self._requested:
                log.debug("rescan %d superseded before start", generation)
                return self._snapshot
            self._state = EngineState.SCANNING
            try:
                paths, extra = self.scan_paths()
                snap = build_index(
                    paths,
                    extra,
                    workers=self._config.index.workers,
                    show_actions=self._config.index.show_actions,
                    desktops=current_desktops(self._env),
                    generation=generation,
                )
            except Exception:
                log.exception("rescan %d failed; keeping generation %d", generation, self._snapshot.generation)
                self._state = EngineState.READY if self._snapshot.generation else EngineState.IDLE
                return self._snapshot

            if generation < self._requested:
                log.debug("rescan %d superseded, discarding", generation)
                return self._snapshot
            self._snapshot = snap
            self._state = EngineState.READY

        for fn in list(self._listeners):
            try:
                fn(snap)
            except Exception:
                log.exception("snapshot listener failed")
        self._state = EngineState.IDLE
        return snap

    def request_rebuild(self) -> threading.Thread:
        t = threading.Thread(target=self.rebuild_index, name="hyprlauncher-rescan", daemon=True)
        t.start()
        self._pending = t
        return t

    def wait_idle(self, timeout: float | None = None) -> None:
        t = self._pending
        if t is not None:
            t.join(timeout)

    # --- usage ---
    def notify_launch(self, identity: str) -> UsageStat:
        stat = self._heatmap.record_launch(identity)
        log.debug("launch recorded: %s -> %d", identity, stat.launch_count)
        return stat

    def _window_open(self, entry: ApplicationEntry) -> bool:
        if self._window_state is None or not self._config.search.window_penalty:
            return False
        try:
            return bool(self._window_state.is_window_open(entry.identity))
        except Exception:
            log.debug("window state lookup failed for %s", entry.identity, exc_info=True)
            return False

    # --- queries ---
    def search(self, query: str, max_entries: int | None = None) -> list[SearchResult]:
        if not isinstance(query, str):
            raise QueryError(f"query must be text, got {type(query).__name__}")
        limit = self._config.window.max_entries if max_entries is None else int(max_entries)
        if limit <= 0:
            return []

        raw = query.strip()
        if raw and self._config.search.calculator and files.is_calc_query(raw):
            return [SearchResult(entry=files.calc_entry(raw), score=files.CALC_SCORE)]
        if raw and self._config.search.path_browsing and files.is_path_query(raw):
            return [SearchResult(entry=e, score=s) for e, s in files.path_results(raw, limit=limit)]

        snap = self._snapshot
        now = float(self._clock())
        q = scorer.normalize_query(query)

        results: list[SearchResult] = []
        exact_name = False
        for entry in snap.entries:
            s = scorer.score(q, entry, self._heatmap.get(entry.identity), self._window_open(entry), now=now)
            if s is None:
                continue
            if q and entry.search_name == q:
                exact_name = True
            results.append(SearchResult(entry=entry, score=s))

        if q and not exact_name and self._config.search.binary_fallback:
            b = files.binary_entry(q)
            if b is not None:
                b = replace(b, position=len(snap.entries))
                results.append(SearchResult(entry=b, score=files.BINARY_SCORE))

        results.sort(key=_sort_key)
        return results[:limit]

    def __repr__(self) -> str:
        return f"SearchEngine(state={self._state.value}, entries={len(self._snapshot)}, gen={self._snapshot.generation})"
