from __future__ import annotations

import json
import os
import subprocess
from pathlib import Path

import pytest

from conftest import app
from hyprlauncher import files, windows
from hyprlauncher.entries import KIND_BINARY, KIND_CALCULATION, KIND_DIRECTORY, KIND_FILE
from hyprlauncher.windows import HyprlandWindowState, NullWindowState, detect_window_state


def test_is_path_query():
    assert files.is_path_query("/usr")
    assert files.is_path_query("~/Documents")
    assert files.is_path_query("$HOME")
    assert not files.is_path_query("firefox")


def test_path_results_filters_by_prefix(tmp_path: Path):
    root = tmp_path / "home"
    (root / "Downloads").mkdir(parents=True)
    (root / "Documents").mkdir()
    (root / "doc.txt").write_text("x", encoding="utf-8")
    (root / "music.mp3").write_bytes(b"")

    results = files.path_results(str(root / "do"), limit=10)
    names = [e.display_name for e, _ in results]
    assert names == ["..", "Documents", "Downloads", "doc.txt"]
    scores = [s for _, s in results]
    assert scores == [files.PARENT_SCORE, files.DIRECTORY_SCORE, files.DIRECTORY_SCORE, files.FILE_SCORE]


def test_path_results_expands_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    home = tmp_path / "home"
    (home / "projects").mkdir(parents=True)
    monkeypatch.setenv("HOME", str(home))
    results = files.path_results("~/pro", limit=10)
    assert [e.display_name for e, _ in results] == ["..", "projects"]


def test_path_results_limit_and_missing(tmp_path: Path):
    assert files.path_results(str(tmp_path / "nope" / "x"), limit=10) == []
    (tmp_path / "d").mkdir()
    assert len(files.path_results(str(tmp_path) + "/", limit=1)) == 1


def test_path_results_unlistable(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    assert files.path_results("/" + "a" * 300, limit=10) == []
    assert files.path_results(str(tmp_path / ("b" * 300) / "c"), limit=10) == []

    def denied(self):
        raise PermissionError(13, "Permission denied", str(self))

    monkeypatch.setattr(Path, "iterdir", denied)
    assert files.path_results(str(tmp_path) + "/", limit=10) == []


def test_evaluate_arithmetic():
    assert files.evaluate("1 + 2 * 3") == "7"
    assert files.evaluate("6 / 2") == "3"
    assert files.evaluate("1 / 4") == "0.25"
    assert files.evaluate("2 ** 10") == "1024"
    assert files.evaluate("") == "0"


@pytest.mark.parametrize("expression", ["1 / 0", "2 +", "__import__('os')", "open('/etc/passwd')", "x * 2"])
def test_evaluate_rejects_to_zero(expression: str):
    assert files.evaluate(expression) == "0"


def test_calc_entry():
    assert files.is_calc_query("=1+1")
    assert not files.is_calc_query("calc")
    entry = files.calc_entry("= 12 * 12 ")
    assert entry.display_name == "144"
    assert entry.description == "12 * 12"
    assert entry.kind == KIND_CALCULATION
    assert entry.identity == "calculation:12 * 12"
    assert entry.exec_command == ""


def test_file_entry_kinds(tmp_path: Path):
    script = tmp_path / "run.sh"
    script.write_text("#!/bin/sh\n", encoding="utf-8")
    os.chmod(script, 0o755)
    text = tmp_path / "notes.txt"
    text.write_text("x", encoding="utf-8")

    d = files.file_entry(tmp_path)
    assert d is not None and d.kind == KIND_DIRECTORY and d.icon_name == "folder"

    s = files.file_entry(script)
    assert s is not None and s.kind == KIND_FILE
    assert s.exec_command == str(script)

    t = files.file_entry(text)
    assert t is not None
    assert t.exec_command == f"xdg-open {text}"
    assert t.icon_name == "text-x-generic"

    assert files.file_entry(tmp_path / "missing") is None


def test_binary_entry(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(files.shutil, "which", lambda name: "/usr/bin/htop" if name == "htop" else None)
    e = files.binary_entry("htop -d 5")
    assert e is not None
    assert e.identity == "binary:htop"
    assert e.kind == KIND_BINARY
    assert e.exec_command == "/usr/bin/htop -d 5"
    assert files.binary_entry("nothing-here") is None
    assert files.binary_entry("   ") is None


def _fake_hyprctl(monkeypatch: pytest.MonkeyPatch, clients: list[dict]) -> list[int]:
    runs: list[int] = []

    def check_output(args, **kw):
        runs.append(1)
        return json.dumps(clients).encode()

    monkeypatch.setattr(windows.subprocess, "check_output", check_output)
    return runs


def test_hyprland_window_state_matches_classes(monkeypatch: pytest.MonkeyPatch):
    _fake_hyprctl(monkeypatch, [{"class": "firefox", "initialClass": "firefox"}, {"class": "org.gnome.Nautilus"}])
    entries = {
        "firefox:new-window": app("firefox:new-window", "New Window", parent_identity="firefox"),
        "code": app("code", "Code", wm_class="Code-OSS"),
    }
    state = HyprlandWindowState(resolve=entries.get, hyprctl="/usr/bin/hyprctl")

    assert state.is_window_open("org.gnome.Nautilus")
    assert state.is_window_open("firefox:new-window")
    assert not state.is_window_open("code")


def test_hyprland_client_list_is_cached(monkeypatch: pytest.MonkeyPatch):
    runs = _fake_hyprctl(monkeypatch, [{"class": "kitty"}])
    state = HyprlandWindowState(hyprctl="/usr/bin/hyprctl", ttl_s=60.0)
    for _ in range(5):
        assert state.is_window_open("kitty")
    assert len(runs) == 1


def test_hyprctl_failure_means_no_windows(monkeypatch: pytest.MonkeyPatch):
    def check_output(args, **kw):
        raise subprocess.CalledProcessError(1, args)

    monkeypatch.setattr(windows.subprocess, "check_output", check_output)
    state = HyprlandWindowState(hyprctl="/usr/bin/hyprctl")
    assert not state.is_window_open("kitty")


def test_detect_window_state(monkeypatch: pytest.MonkeyPatch):
    assert isinstance(detect_window_state("none"), NullWindowState)
    assert isinstance(detect_window_state("auto"), NullWindowState)
    monkeypatch.setenv("HYPRLAND_INSTANCE_SIGNATURE", "abc")
    assert isinstance(detect_window_state("auto"), HyprlandWindowState)
    assert isinstance(detect_window_state("hyprland"), HyprlandWindowState)
