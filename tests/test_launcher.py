from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from conftest import app
from hyprlauncher import launcher
from hyprlauncher.entries import KIND_DIRECTORY
from hyprlauncher.heatmap import HeatmapStore
from hyprlauncher.search import SearchEngine


class FakePopen:
    calls: list[list[str]] = []
    kwargs: list[dict] = []
    fail = False

    def __init__(self, args, **kw) -> None:
        if FakePopen.fail:
            raise FileNotFoundError(2, "No such file or directory", args[0])
        FakePopen.calls.append(list(args))
        FakePopen.kwargs.append(kw)


@pytest.fixture
def popen(monkeypatch: pytest.MonkeyPatch):
    FakePopen.calls = []
    FakePopen.kwargs = []
    FakePopen.fail = False
    monkeypatch.setattr(launcher.subprocess, "Popen", FakePopen)
    return FakePopen


def test_launch_runs_through_shell(popen):
    assert launcher.launch(app("firefox", "Firefox", exec_command="firefox --new-window"))
    assert popen.calls == [["sh", "-c", "firefox --new-window"]]


def test_terminal_apps_are_wrapped(popen, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("TERMINAL", "foot")
    entry = app("htop", "htop", is_terminal_app=True)
    assert launcher.build_command(entry) == "foot -e htop"
    assert launcher.build_command(entry, terminal="kitty") == "kitty -e htop"
    monkeypatch.delenv("TERMINAL")
    assert launcher.build_command(entry) == f"{launcher.DEFAULT_TERMINAL} -e htop"


def test_directory_opens_with_xdg_open(tmp_path: Path):
    d = tmp_path / "My Files"
    entry = app(f"directory:{d}", "My Files", exec_command="", path=str(d), kind=KIND_DIRECTORY)
    assert launcher.build_command(entry) == f"xdg-open '{d}'"


def test_empty_command_is_not_launched(popen):
    assert launcher.launch(app("x", "X", exec_command="  ")) is False
    assert popen.calls == []


def test_spawn_failure_returns_false(popen):
    popen.fail = True
    assert launcher.launch(app("x", "X")) is False


def test_launch_and_record_updates_heatmap(popen):
    engine = SearchEngine(heatmap=HeatmapStore(clock=lambda: 42.0))
    entry = app("firefox", "Firefox")
    assert launcher.launch_and_record(engine, entry)
    assert engine.heatmap.get("firefox").launch_count == 1
    assert engine.heatmap.get("firefox").last_used == 42.0


def test_launch_detaches(popen):
    launcher.launch(app("a", "A"))
    kw = popen.kwargs[0]
    assert kw["start_new_session"] is True
    assert kw["stdin"] is subprocess.DEVNULL
    assert kw["stdout"] is subprocess.DEVNULL
