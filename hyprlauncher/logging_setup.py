from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from hyprlauncher.paths import get_paths

LEVEL_ENV = "HYPRLAUNCHER_LOG_LEVEL"
# rescans and flushes run on their own threads
LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"
NOISY_LOGGERS = ("watchdog",)


def resolve_level(*, debug: bool = False) -> int:
    if debug:
        return logging.DEBUG
    raw = (os.environ.get(LEVEL_ENV) or "INFO").strip()
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw.upper())
    return level if isinstance(level, int) else logging.INFO


def _owned(root: logging.Logger, kind: type[logging.Handler]) -> logging.Handler | None:
    for h in root.handlers:
        if type(h) is kind and getattr(h, "_hyprlauncher", False):
            return h
    return None


def _install(root: logging.Logger, handler: logging.Handler) -> None:
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._hyprlauncher = True  # type: ignore[attr-defined]
    root.addHandler(handler)


def setup_logging(
    *,
    name: str = "hyprlauncher",
    debug: bool = False,
    log_path: Path | None = None,
) -> logging.Logger:
    """Routes launcher logs to stderr and a rotating file in the state dir.

    Safe to call again (the CLI does when the config turns on debug logging);
    only the level changes on repeat calls.
    """
    level = resolve_level(debug=debug)
    root = logging.getLogger()
    root.setLevel(level)

    if _owned(root, logging.StreamHandler) is None:
        _install(root, logging.StreamHandler())

    problem: OSError | None = None
    if _owned(root, RotatingFileHandler) is None:
        target = log_path or get_paths().log_path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            _install(root, RotatingFileHandler(str(target), maxBytes=1_000_000, backupCount=3, encoding="utf-8"))
        except OSError as e:
            problem = e

    for h in root.handlers:
        if getattr(h, "_hyprlauncher", False):
            h.setLevel(level)
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.DEBUG if debug else logging.WARNING)

    log = logging.getLogger(name)
    if problem is not None:
        log.warning("file logging disabled: %s", problem)
    return log
