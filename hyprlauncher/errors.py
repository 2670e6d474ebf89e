from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


class LauncherError(Exception):
    pass


class DescriptorParseError(LauncherError):
    def __init__(self, path: Path | str | None, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"{path or '<descriptor>'}: {reason}")


class ScanIoError(LauncherError):
    def __init__(self, path: Path | str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"cannot scan {path}: {reason}")


class HeatmapLoadError(LauncherError):
    pass


class HeatmapWriteError(LauncherError):
    pass


class QueryError(LauncherError):
    pass


@dataclass(frozen=True)
class ConfigError:
    line: int
    message: str
    suggestion: str
