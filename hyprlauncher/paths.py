from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_config_path, user_data_path, user_state_path

APP_NAME = "hyprlauncher"


@dataclass(frozen=True)
class LauncherPaths:
    config_dir: Path
    data_dir: Path
    state_dir: Path

    @property
    def config_path(self) -> Path:
        return self.config_dir / "config.yaml"

    @property
    def heatmap_path(self) -> Path:
        return self.data_dir / "heatmap.json"

    @property
    def log_path(self) -> Path:
        return self.state_dir / "hyprlauncher.log"


def get_paths(*, app_name: str = APP_NAME, create: bool = True) -> LauncherPaths:
    cfg = user_config_path(app_name, ensure_exists=create)
    data = user_data_path(app_name, ensure_exists=create)
    state = user_state_path(app_name, ensure_exists=create)
    return LauncherPaths(config_dir=Path(cfg), data_dir=Path(data), state_dir=Path(state))


def find_config_path(explicit: str | None = None) -> Path:
    if explicit:
        return Path(explicit).expanduser().resolve()

    env = os.environ.get("HYPRLAUNCHER_CONFIG")
    if env:
        return Path(env).expanduser().resolve()

    p = get_paths().config_path
    if p.exists():
        return p

    # portable fallback
    candidate = Path.cwd() / "config.yaml"
    if candidate.exists():
        return candidate.resolve()
    return p


def resolve_heatmap_path(value: str | None) -> Path:
    s = (value or "").strip()
    if not s or s.lower() in ("auto", "xdg"):
        return get_paths().heatmap_path
    return Path(os.path.expandvars(s)).expanduser()


def ensure_default_config(*, dest_path: Path, text: str) -> bool:
    dest_path.parent.mkdir(parents=True, exist_ok=True)
    if dest_path.exists():
        return False
    dest_path.write_text(text, encoding="utf-8")
    return True
