from __future__ import annotations

import json
import logging
import os
import subprocess
import threading
import time
from shutil import which
from typing import Callable

from hyprlauncher.entries import ApplicationEntry

log = logging.getLogger(__name__)


class NullWindowState:
    def is_window_open(self, identity: str) -> bool:
        return False


class HyprlandWindowState:
    """Open-window lookup through ``hyprctl clients -j``.

    The client list is cached for ``ttl_s`` so a search-as-you-type burst
    runs hyprctl at most once per interval.
    """

    def __init__(
        self,
        *,
        resolve: Callable[[str], ApplicationEntry | None] | None = None,
        ttl_s: float = 1.0,
        hyprctl: str | None = None,
    ) -> None:
        self.resolve = resolve
        self._ttl_s = ttl_s
        self._hyprctl = hyprctl or which("hyprctl")
        self._lock = threading.Lock()
        self._classes: frozenset[str] = frozenset()
        self._fetched: float | None = None

    def _query(self) -> frozenset[str]:
        if not self._hyprctl:
            return frozenset()
        try:
            out = subprocess.check_output([self._hyprctl, "clients", "-j"], timeout=1.0, stderr=subprocess.DEVNULL)
            clients = json.loads(out.decode("utf-8", errors="ignore") or "[]")
        except (OSError, subprocess.SubprocessError, ValueError) as e:
            log.debug("hyprctl clients failed: %s", e)
            return frozenset()
        classes: set[str] = set()
        for c in clients if isinstance(clients, list) else []:
            if not isinstance(c, dict):
                continue
            for key in ("class", "initialClass"):
                v = str(c.get(key) or "").strip().lower()
                if v:
                    classes.add(v)
        return frozenset(classes)

    def open_classes(self) -> frozenset[str]:
        now = time.monotonic()
        with self._lock:
            if self._fetched is None or now - self._fetched >= self._ttl_s:
                self._classes = self._query()
                self._fetched = now
            return self._classes

    def is_window_open(self, identity: str) -> bool:
        classes = self.open_classes()
        if not classes:
            return False
        entry = self.resolve(identity) if self.resolve else None
        candidates = {identity.lower(), identity.rsplit(".", 1)[-1].lower()}
        if entry is not None:
            if entry.wm_class:
                candidates.add(entry.wm_class.lower())
            if entry.binary_name:
                candidates.add(entry.binary_name)
            if entry.parent_identity:
                candidates.add(entry.parent_identity.lower())
        return not classes.isdisjoint(candidates)


def detect_window_state(backend: str = "auto") -> NullWindowState | HyprlandWindowState:
    if backend == "none":
        return NullWindowState()
    if backend == "hyprland" or os.environ.get("HYPRLAND_INSTANCE_SIGNATURE"):
        return HyprlandWindowState()
    return NullWindowState()
