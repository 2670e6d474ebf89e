from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _Section(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class IndexModel(_Section):
    dirs: tuple[str, ...] = ()
    include_default_dirs: bool = True
    include_xdg_data_dirs: bool = True
    show_actions: bool = True
    workers: int = Field(default=4, ge=1, le=32)
    watch: bool = True
    rescan_debounce_ms: int = Field(default=250, ge=0, le=10_000)


class WindowModel(_Section):
    max_entries: int = Field(default=50, ge=1, le=1000)


class HeatmapModel(_Section):
    # "auto" uses the XDG data dir (e.g. ~/.local/share/hyprlauncher/heatmap.json).
    path: str = "auto"
    flush_interval_s: float = Field(default=30.0, gt=0.0, le=3600.0)


class SearchModel(_Section):
    binary_fallback: bool = True
    path_browsing: bool = True
    calculator: bool = True
    window_penalty: bool = True
    window_backend: Literal["auto", "hyprland", "none"] = "auto"


class DmenuModel(_Section):
    allow_invalid: bool = False
    case_sensitive: bool = False


class SearchPrefixModel(_Section):
    prefix: str
    url: str


class WebSearchModel(_Section):
    enabled: bool = False
    engine: str = "duckduckgo"
    prefixes: tuple[SearchPrefixModel, ...] = ()


class DebugModel(_Section):
    enable_logging: bool = False


class ConfigModel(_Section):
    index: IndexModel = Field(default_factory=IndexModel)
    window: WindowModel = Field(default_factory=WindowModel)
    heatmap: HeatmapModel = Field(default_factory=HeatmapModel)
    search: SearchModel = Field(default_factory=SearchModel)
    dmenu: DmenuModel = Field(default_factory=DmenuModel)
    web_search: WebSearchModel = Field(default_factory=WebSearchModel)
    debug: DebugModel = Field(default_factory=DebugModel)
