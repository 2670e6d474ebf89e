from __future__ import annotations

import logging
import textwrap
from pathlib import Path

import pytest

from hyprlauncher.config_model import ConfigModel, IndexModel, SearchModel
from hyprlauncher.entries import ApplicationEntry
from hyprlauncher.index import IndexSnapshot


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "xdg-state"))
    for name in (
        "HYPRLAUNCHER_CONFIG",
        "HYPRLAUNCHER_LOG_LEVEL",
        "XDG_CURRENT_DESKTOP",
        "XDG_DATA_DIRS",
        "HYPRLAND_INSTANCE_SIGNATURE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    watchdog_level = logging.getLogger("watchdog").level
    yield
    for h in list(root.handlers):
        if h not in before:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)
    logging.getLogger("watchdog").setLevel(watchdog_level)


def write_desktop(directory: Path, name: str, body: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(textwrap.dedent(body).lstrip(), encoding="utf-8")
    return path


def app(identity: str, name: str, **kw) -> ApplicationEntry:
    kw.setdefault("exec_command", identity)
    kw.setdefault("binary_name", identity)
    return ApplicationEntry(identity=identity, display_name=name, **kw)


def snapshot_of(*entries: ApplicationEntry, generation: int = 1) -> IndexSnapshot:
    from dataclasses import replace

    return IndexSnapshot(
        entries=tuple(replace(e, position=i) for i, e in enumerate(entries)),
        generation=generation,
    )


def local_config(*dirs: Path, **index) -> ConfigModel:
    """Config that only scans ``dirs`` and never touches PATH or the filesystem root."""
    index.setdefault("workers", 2)
    return ConfigModel(
        index=IndexModel(
            dirs=tuple(str(d) for d in dirs),
            include_default_dirs=False,
            include_xdg_data_dirs=False,
            **index,
        ),
        search=SearchModel(binary_fallback=False, path_browsing=False, window_penalty=True, window_backend="none"),
    )


FIREFOX = """
[Desktop Entry]
Type=Application
Name=Firefox
GenericName=Web Browser
Comment=Browse the World Wide Web
Exec=firefox %u
Icon=firefox
Categories=Network;WebBrowser;
Keywords=web;browser;internet;
StartupWMClass=firefox
Actions=new-window;new-private-window;

[Desktop Action new-window]
Name=New Window
Exec=firefox --new-window %u

[Desktop Action new-private-window]
Name=New Private Window
Exec=firefox --private-window %u
"""

FILES = """
[Desktop Entry]
Type=Application
Name=FileManager
Exec=nautilus --new-window %U
Icon=org.gnome.Nautilus
Categories=GNOME;Utility;Core;FileManager;
"""
