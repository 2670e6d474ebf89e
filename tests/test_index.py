from __future__ import annotations

import os
from pathlib import Path

import pytest

from conftest import FILES, FIREFOX, write_desktop
from hyprlauncher.index import IndexSnapshot, build_index, desktop_dirs, xdg_data_dirs


def _names(snap: IndexSnapshot) -> list[str]:
    return [e.identity for e in snap]


def test_missing_exec_is_skipped_and_rest_indexed(tmp_path: Path):
    apps = tmp_path / "apps"
    write_desktop(apps, "broken.desktop", "[Desktop Entry]\nName=Broken\nType=Application\n")
    write_desktop(apps, "files.desktop", FILES)
    write_desktop(apps, "notes.txt", "not a descriptor")

    snap = build_index([apps], desktops=())
    assert _names(snap) == ["files"]
    assert snap.skipped == 1
    assert snap.get("broken") is None


def test_higher_priority_directory_wins(tmp_path: Path):
    user = tmp_path / "user"
    system = tmp_path / "system"
    write_desktop(user, "firefox.desktop", "[Desktop Entry]\nName=Firefox Nightly\nExec=firefox-nightly\n")
    write_desktop(system, "firefox.desktop", FIREFOX)

    snap = build_index([user, system], desktops=(), show_actions=False)
    assert _names(snap) == ["firefox"]
    e = snap.get("firefox")
    assert e is not None
    assert e.display_name == "Firefox Nightly"
    assert e.path == str(user / "firefox.desktop")


def test_extra_env_paths_come_after_configured(tmp_path: Path):
    primary = tmp_path / "primary"
    extra = tmp_path / "extra"
    write_desktop(primary, "a.desktop", "[Desktop Entry]\nName=Primary A\nExec=a\n")
    write_desktop(extra, "a.desktop", "[Desktop Entry]\nName=Extra A\nExec=a\n")
    write_desktop(extra, "b.desktop", "[Desktop Entry]\nName=Extra B\nExec=b\n")

    snap = build_index([primary], [extra], desktops=())
    assert _names(snap) == ["a", "b"]
    assert snap.get("a").display_name == "Primary A"


def test_actions_follow_parent(tmp_path: Path):
    apps = tmp_path / "apps"
    write_desktop(apps, "firefox.desktop", FIREFOX)
    write_desktop(apps, "files.desktop", FILES)

    snap = build_index([apps], desktops=())
    assert _names(snap) == ["files", "firefox", "firefox:new-window", "firefox:new-private-window"]
    assert [e.position for e in snap] == [0, 1, 2, 3]

    plain = build_index([apps], desktops=(), show_actions=False)
    assert _names(plain) == ["files", "firefox"]


def test_subdirectory_identity(tmp_path: Path):
    apps = tmp_path / "apps"
    write_desktop(apps / "kde", "konsole.desktop", "[Desktop Entry]\nName=Konsole\nExec=konsole\n")
    snap = build_index([apps], desktops=())
    assert _names(snap) == ["kde-konsole"]


def test_two_scans_are_identical(tmp_path: Path):
    apps = tmp_path / "apps"
    for i in range(20):
        write_desktop(apps, f"app{i:02d}.desktop", f"[Desktop Entry]\nName=App {i}\nExec=app{i}\n")
    write_desktop(apps, "firefox.desktop", FIREFOX)

    first = build_index([apps], desktops=(), workers=4, generation=1)
    second = build_index([apps], desktops=(), workers=1, generation=2)
    assert first.entries == second.entries
    assert (first.generation, second.generation) == (1, 2)


def test_missing_directory_is_ignored(tmp_path: Path):
    apps = tmp_path / "apps"
    write_desktop(apps, "files.desktop", FILES)
    snap = build_index([tmp_path / "nope", apps], desktops=())
    assert _names(snap) == ["files"]
    assert snap.roots == (str(apps),)


@pytest.mark.skipif(not hasattr(os, "symlink"), reason="needs symlinks")
def test_symlink_loop_terminates(tmp_path: Path):
    apps = tmp_path / "apps"
    write_desktop(apps / "sub", "files.desktop", FILES)
    (apps / "sub" / "loop").symlink_to(apps, target_is_directory=True)

    snap = build_index([apps], desktops=())
    assert _names(snap) == ["sub-files"]


def test_lookup_by_identity(tmp_path: Path):
    apps = tmp_path / "apps"
    write_desktop(apps, "files.desktop", FILES)
    snap = build_index([apps], desktops=())
    assert snap.get("files").display_name == "FileManager"
    assert snap.get("unknown") is None
    assert len(snap) == 1
    assert snap.identities() == ["files"]


def test_desktop_dirs_order_and_dedupe(tmp_path: Path):
    custom = tmp_path / "custom"
    env = {"XDG_DATA_HOME": str(tmp_path / "data")}
    dirs = desktop_dirs([custom, custom], env=env)
    assert dirs[0] == custom
    assert dirs[1] == tmp_path / "data" / "applications"
    assert dirs.count(custom) == 1
    assert Path("/usr/share/applications") in dirs

    assert desktop_dirs([custom], env=env, include_defaults=False) == [custom]


def test_xdg_data_dirs():
    env = {"XDG_DATA_DIRS": "/opt/a:/opt/b::"}
    assert xdg_data_dirs(env) == [Path("/opt/a/applications"), Path("/opt/b/applications")]
    assert xdg_data_dirs({}) == []
