from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from hyprlauncher.errors import HeatmapLoadError, HeatmapWriteError

log = logging.getLogger(__name__)

FORMAT_VERSION = 1


@dataclass(frozen=True)
class UsageStat:
    launch_count: int = 0
    last_used: float | None = None


ZERO_STAT = UsageStat()


class HeatmapRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    count: int = Field(default=0, ge=0)
    last_used: float | None = Field(default=None, ge=0)

    def to_stat(self) -> UsageStat:
        return UsageStat(launch_count=self.count, last_used=self.last_used)


def _records(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise HeatmapLoadError(f"expected a JSON object, got {type(raw).__name__}")
    entries = raw.get("entries")
    if isinstance(entries, dict) and "version" in raw:
        return entries
    # flat layout: {identity: {"count": .., "last_used": ..}}
    return {k: v for k, v in raw.items() if isinstance(v, dict)}


def parse_heatmap(raw: Any) -> dict[str, UsageStat]:
    out: dict[str, UsageStat] = {}
    for identity, rec in _records(raw).items():
        if not isinstance(identity, str) or not identity:
            continue
        try:
            out[identity] = HeatmapRecord.model_validate(rec).to_stat()
        except ValidationError:
            log.debug("heatmap: dropping invalid record for %s", identity)
    return out


def load(path: Path) -> dict[str, UsageStat]:
    """Reads the heatmap file. Any problem yields an empty mapping."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as e:
        log.warning("%s", HeatmapLoadError(f"cannot read {path}: {e}"))
        return {}
    if not text.strip():
        return {}
    try:
        return parse_heatmap(json.loads(text))
    except (ValueError, HeatmapLoadError) as e:
        log.warning("%s", HeatmapLoadError(f"ignoring corrupt heatmap {path}: {e}"))
        return {}


def dump(stats: dict[str, UsageStat]) -> dict[str, Any]:
    return {
        "version": FORMAT_VERSION,
        "entries": {
            k: {"count": s.launch_count, "last_used": s.last_used} for k, s in sorted(stats.items())
        },
    }


def _signature(path: Path) -> tuple[int, int] | None:
    try:
        st = path.stat()
    except OSError:
        return None
    return (st.st_mtime_ns, st.st_size)


class HeatmapStore:
    def __init__(self, *, path: Path | None = None, clock: Callable[[], float] = time.time) -> None:
        self._path = path
        self._clock = clock
        self._lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._stats: dict[str, UsageStat] = {}
        self._dirty = False
        # launches recorded since the last successful flush, as count deltas
        self._pending: dict[str, UsageStat] = {}
        self._written_sig: tuple[int, int] | None = None
        if path is not None:
            self._stats = load(path)
            self._written_sig = _signature(path)

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def dirty(self) -> bool:
        return self._dirty

    def __len__(self) -> int:
        return len(self._stats)

    def get(self, identity: str) -> UsageStat:
        return self._stats.get(identity, ZERO_STAT)

    def snapshot(self) -> dict[str, UsageStat]:
        with self._lock:
            return dict(self._stats)

    def record_launch(self, identity: str) -> UsageStat:
        now = float(self._clock())
        with self._lock:
            cur = self._stats.get(identity, ZERO_STAT)
            stat = UsageStat(launch_count=cur.launch_count + 1, last_used=now)
            self._stats[identity] = stat
            pend = self._pending.get(identity, ZERO_STAT)
            self._pending[identity] = UsageStat(launch_count=pend.launch_count + 1, last_used=now)
            self._dirty = True
        return stat

    def top(self, n: int = 10) -> list[tuple[str, UsageStat]]:
        items = self.snapshot().items()
        ranked = sorted(items, key=lambda kv: (-kv[1].launch_count, -(kv[1].last_used or 0.0), kv[0]))
        return ranked[: max(0, n)]

    def reload(self) -> bool:
        """Re-reads the file after an external edit.

        Launches recorded here but not flushed yet are applied again on top of
        the file content, so another writer never makes a count go backwards.
        """
        if self._path is None:
            return False
        sig = _signature(self._path)
        if sig is not None and sig == self._written_sig:
            return False
        fresh = load(self._path)
        with self._lock:
            for identity, delta in self._pending.items():
                fresh[identity] = _merge(fresh.get(identity, ZERO_STAT), delta)
            self._stats = fresh
            self._dirty = bool(self._pending)
            self._written_sig = sig
        log.info("heatmap reloaded from %s (%d entries)", self._path, len(fresh))
        return True

    def flush(self, path: Path | None = None) -> None:
        target = path or self._path
        if target is None:
            raise HeatmapWriteError("no heatmap path configured")
        with self._flush_lock:
            with self._lock:
                payload = dump(self._stats)
                sent: dict[str, UsageStat] = {}
                if target == self._path:
                    sent, self._pending = self._pending, {}
                self._dirty = bool(self._pending)
            try:
                _atomic_write_json(target, payload)
            except OSError as e:
                with self._lock:
                    for identity, delta in sent.items():
                        self._pending[identity] = _merge(delta, self._pending.get(identity, ZERO_STAT))
                    self._dirty = True
                raise HeatmapWriteError(f"cannot write {target}: {e}") from e
            if target == self._path:
                self._written_sig = _signature(target)
        log.debug("heatmap flushed to %s", target)

    def flush_if_dirty(self) -> bool:
        if not self._dirty or self._path is None:
            return False
        self.flush()
        return True


def _merge(base: UsageStat, delta: UsageStat) -> UsageStat:
    stamps = [t for t in (base.last_used, delta.last_used) if t is not None]
    return UsageStat(
        launch_count=base.launch_count + delta.launch_count,
        last_used=max(stamps) if stamps else None,
    )


def _atomic_write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        tmp.replace(path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
