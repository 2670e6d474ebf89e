from __future__ import annotations

import logging
import os
import shlex
import subprocess
from typing import Protocol

from hyprlauncher.entries import KIND_DIRECTORY, ApplicationEntry

log = logging.getLogger(__name__)

DEFAULT_TERMINAL = "xterm"


class LaunchRecorder(Protocol):
    def notify_launch(self, identity: str) -> object:
        ...


def terminal_command(command: str, *, terminal: str | None = None) -> str:
    term = terminal or os.environ.get("TERMINAL") or DEFAULT_TERMINAL
    return f"{term} -e {command}"


def build_command(entry: ApplicationEntry, *, terminal: str | None = None) -> str | None:
    if entry.kind == KIND_DIRECTORY:
        return f"xdg-open {shlex.quote(entry.path)}"
    command = entry.exec_command.strip()
    if not command:
        return None
    if entry.is_terminal_app:
        return terminal_command(command, terminal=terminal)
    return command


def launch(entry: ApplicationEntry, *, terminal: str | None = None) -> bool:
    command = build_command(entry, terminal=terminal)
    if command is None:
        log.warning("nothing to launch for %s", entry.identity)
        return False
    log.info("launching %s: %s", entry.identity, command)
    try:
        subprocess.Popen(
            ["sh", "-c", command],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )
        return True
    except OSError as e:
        log.warning("launch of %s failed: %s", entry.identity, e)
        return False


def launch_and_record(recorder: LaunchRecorder, entry: ApplicationEntry, *, terminal: str | None = None) -> bool:
    ok = launch(entry, terminal=terminal)
    recorder.notify_launch(entry.identity)
    return ok
