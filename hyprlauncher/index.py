from __future__ import annotations

import dataclasses
import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Mapping, Sequence

from hyprlauncher.entries import ApplicationEntry, current_desktops, expand_actions, parse_desktop_file
from hyprlauncher.errors import DescriptorParseError, ScanIoError

log = logging.getLogger(__name__)

USER_DIRS = (
    "~/.local/share/flatpak/exports/share/applications",
)
SYSTEM_DIRS = (
    "/usr/local/share/applications",
    "/usr/share/applications",
    "/var/lib/flatpak/exports/share/applications",
    "/var/lib/snapd/desktop/applications",
)


@dataclass(frozen=True)
class IndexSnapshot:
    entries: tuple[ApplicationEntry, ...] = ()
    generation: int = 0
    built_at: float = 0.0
    skipped: int = 0
    roots: tuple[str, ...] = ()
    _by_id: dict[str, ApplicationEntry] = field(default_factory=dict, init=False, compare=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_by_id", {e.identity: e for e in self.entries})

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[ApplicationEntry]:
        return iter(self.entries)

    def get(self, identity: str) -> ApplicationEntry | None:
        return self._by_id.get(identity)

    def identities(self) -> list[str]:
        return [e.identity for e in self.entries]


@dataclass
class _Partial:
    root: Path
    entries: list[ApplicationEntry] = field(default_factory=list)
    skipped: int = 0
    scanned: bool = False


def _expand(p: str | Path) -> Path:
    return Path(os.path.expandvars(os.path.expanduser(str(p))))


def _dedupe(paths: Sequence[Path]) -> list[Path]:
    seen: set[str] = set()
    out: list[Path] = []
    for p in paths:
        try:
            key = str(p.resolve())
        except OSError:
            key = str(p.absolute())
        if key in seen:
            continue
        seen.add(key)
        out.append(p)
    return out


def desktop_dirs(
    configured: Sequence[str | Path] = (),
    *,
    env: Mapping[str, str] | None = None,
    include_defaults: bool = True,
) -> list[Path]:
    """Configured directories, then user-local, then system-wide ones."""
    env = os.environ if env is None else env
    dirs = [_expand(p) for p in configured]
    if include_defaults:
        data_home = env.get("XDG_DATA_HOME") or "~/.local/share"
        dirs.append(_expand(data_home) / "applications")
        dirs.extend(_expand(p) for p in USER_DIRS)
        dirs.extend(Path(p) for p in SYSTEM_DIRS)
    return _dedupe(dirs)


def xdg_data_dirs(env: Mapping[str, str] | None = None) -> list[Path]:
    env = os.environ if env is None else env
    raw = env.get("XDG_DATA_DIRS") or ""
    return [_expand(d) / "applications" for d in raw.split(":") if d.strip()]


def _scan_root(root: Path, desktops: Sequence[str]) -> _Partial:
    part = _Partial(root=root)
    if not root.is_dir():
        log.debug("skipping missing directory %s", root)
        return part
    part.scanned = True

    visited: set[tuple[int, int]] = set()

    def on_error(err: OSError) -> None:
        log.warning("%s", ScanIoError(err.filename or root, err.strerror or str(err)))

    for dirpath, dirnames, filenames in os.walk(root, onerror=on_error, followlinks=True):
        try:
            st = os.stat(dirpath)
        except OSError as e:
            on_error(e)
            dirnames[:] = []
            continue
        key = (st.st_dev, st.st_ino)
        if key in visited:
            # symlink loop or a second link to an already scanned tree
            dirnames[:] = []
            continue
        visited.add(key)
        dirnames.sort()

        for name in sorted(filenames):
            if not name.endswith(".desktop"):
                continue
            path = Path(dirpath) / name
            try:
                entry = parse_desktop_file(path, root=root, desktops=desktops)
            except DescriptorParseError as e:
                log.debug("skipping descriptor: %s", e)
                part.skipped += 1
                continue
            if entry is not None:
                part.entries.append(entry)
    return part


def build_index(
    paths: Sequence[str | Path],
    extra_env_paths: Sequence[str | Path] = (),
    *,
    workers: int = 4,
    show_actions: bool = True,
    desktops: Sequence[str] | None = None,
    generation: int = 0,
) -> IndexSnapshot:
    """Scans descriptor directories into a new immutable snapshot.

    ``paths`` are in priority order and come before ``extra_env_paths``; when
    two descriptors share an identity the one found first wins. The result
    is ordered by identity, each application followed by its actions.
    """
    started = time.monotonic()
    roots = _dedupe([_expand(p) for p in [*paths, *extra_env_paths]])
    if desktops is None:
        desktops = current_desktops()

    n = max(1, min(int(workers), len(roots) or 1))
    if n == 1:
        partials = [_scan_root(r, desktops) for r in roots]
    else:
        with ThreadPoolExecutor(max_workers=n, thread_name_prefix="hyprlauncher-scan") as pool:
            partials = list(pool.map(lambda r: _scan_root(r, desktops), roots))

    chosen: dict[str, ApplicationEntry] = {}
    skipped = 0
    for part in partials:
        skipped += part.skipped
        for entry in part.entries:
            if entry.identity in chosen:
                log.debug("%s shadowed by %s", entry.path, chosen[entry.identity].path)
                continue
            chosen[entry.identity] = entry

    ordered: list[ApplicationEntry] = []
    for identity in sorted(chosen):
        entry = chosen[identity]
        ordered.append(entry)
        if show_actions:
            ordered.extend(a for a in expand_actions(entry) if a.identity not in chosen)
    entries = tuple(dataclasses.replace(e, position=i) for i, e in enumerate(ordered))

    snap = IndexSnapshot(
        entries=entries,
        generation=generation,
        built_at=time.time(),
        skipped=skipped,
        roots=tuple(str(p.root) for p in partials if p.scanned),
    )
    log.info(
        "indexed %d entries from %d directories (%d skipped) in %.1fms",
        len(entries),
        len(snap.roots),
        skipped,
        (time.monotonic() - started) * 1000.0,
    )
    return snap
