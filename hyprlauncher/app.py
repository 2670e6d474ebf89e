from __future__ import annotations

import logging
from pathlib import Path

from hyprlauncher.config import last_config_error, load_config
from hyprlauncher.config_model import ConfigModel
from hyprlauncher.errors import HeatmapWriteError
from hyprlauncher.heatmap import HeatmapStore
from hyprlauncher.index import IndexSnapshot
from hyprlauncher.paths import resolve_heatmap_path
from hyprlauncher.search import SearchEngine
from hyprlauncher.watcher import CONFIG, HEATMAP, DirectoryWatcher, RescanScheduler
from hyprlauncher.windows import HyprlandWindowState, detect_window_state

log = logging.getLogger(__name__)


class LauncherService:
    """Owns the engine, the heatmap store and the background watcher."""

    def __init__(
        self,
        *,
        config_path: Path | None = None,
        config: ConfigModel | None = None,
        heatmap_path: Path | None = None,
    ) -> None:
        self.config_path = config_path
        self.config = config if config is not None else load_config(config_path)
        self.heatmap_path = heatmap_path or resolve_heatmap_path(self.config.heatmap.path)

        self.heatmap = HeatmapStore(path=self.heatmap_path)
        windows = detect_window_state(self.config.search.window_backend)
        self.engine = SearchEngine(config=self.config, heatmap=self.heatmap, window_state=windows)
        if isinstance(windows, HyprlandWindowState):
            windows.resolve = self.engine.entry

        self._scheduler: RescanScheduler | None = None
        self._watcher: DirectoryWatcher | None = None

    def __enter__(self) -> "LauncherService":
        return self

    def __exit__(self, *exc: object) -> None:
        self.shutdown()

    @property
    def watching(self) -> bool:
        return self._scheduler is not None

    def start(self, *, watch: bool | None = None) -> IndexSnapshot:
        snap = self.engine.rebuild_index()
        if watch is None:
            watch = self.config.index.watch
        if watch:
            self._start_watching()
        return snap

    def _start_watching(self) -> None:
        cfg = self.config
        self._scheduler = RescanScheduler(
            on_rescan=self.engine.rebuild_index,
            on_flush=self.flush,
            on_config=self.reload_config,
            on_heatmap=self.heatmap.reload,
            debounce_s=cfg.index.rescan_debounce_ms / 1000.0,
            flush_interval_s=cfg.heatmap.flush_interval_s,
        )
        self._scheduler.start()
        self._watcher = DirectoryWatcher(self._scheduler.post)
        self._watch_dirs()

    def _watch_dirs(self) -> None:
        if self._watcher is None:
            return
        paths, extra = self.engine.scan_paths()
        files: list[tuple[Path, str]] = [(self.heatmap_path, HEATMAP)]
        if self.config_path is not None:
            files.append((self.config_path, CONFIG))
        self._watcher.start([*paths, *extra], files)

    def reload_config(self) -> None:
        cfg = load_config(self.config_path)
        err = last_config_error()
        if err is not None:
            log.warning("config reload ignored, keeping previous settings (line %d: %s)", err.line, err.message)
            return
        self.config = cfg
        if self.engine.update_config(cfg):
            log.info("index settings changed, rescanning")
            self.engine.rebuild_index()
            self._watch_dirs()

    def flush(self) -> bool:
        try:
            return self.heatmap.flush_if_dirty()
        except HeatmapWriteError as e:
            log.warning("heatmap flush failed, will retry: %s", e)
            return False

    def shutdown(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        if self._scheduler is not None:
            # the scheduler flushes once more on its way out
            self._scheduler.stop()
            self._scheduler = None
        else:
            self.flush()
