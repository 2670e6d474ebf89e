from __future__ import annotations

import io
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap

from hyprlauncher.config import load_config, parse_config
from hyprlauncher.config_model import ConfigModel


def _yaml() -> YAML:
    y = YAML()
    y.preserve_quotes = True
    y.indent(mapping=2, sequence=4, offset=2)
    return y


def _split(dotted_key: str) -> list[str]:
    parts = [p for p in (dotted_key or "").split(".") if p]
    if not parts:
        raise ValueError("key must be non-empty, e.g. 'window.max_entries'")
    return parts


def read_document(path: Path) -> CommentedMap:
    if not path.exists():
        return CommentedMap()
    with path.open("r", encoding="utf-8") as f:
        data = _yaml().load(f)
    return data if isinstance(data, CommentedMap) else CommentedMap()


def write_document(path: Path, data: CommentedMap) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        _yaml().dump(data, f)
    tmp.replace(path)


def parse_scalar(s: str) -> Any:
    low = s.strip().lower()
    if low in ("null", "none", "~"):
        return None
    if low in ("true", "yes", "on"):
        return True
    if low in ("false", "no", "off"):
        return False
    try:
        if "." in low:
            return float(low)
        return int(low)
    except ValueError:
        return s


def get_key(path: Path, dotted_key: str) -> Any:
    """Effective value of a key: the file's value, or the built-in default."""
    parts = _split(dotted_key)
    cur: Any = load_config(path).model_dump(mode="json")
    for p in parts:
        if not isinstance(cur, dict) or p not in cur:
            raise KeyError(dotted_key)
        cur = cur[p]
    return cur


def set_key(path: Path, dotted_key: str, value: Any) -> ConfigModel:
    """Sets ``dotted_key`` keeping comments and layout of the rest of the file.

    The edited document is validated first; an invalid value leaves the file
    untouched and raises ``ValidationError``.
    """
    parts = _split(dotted_key)
    if isinstance(value, str):
        value = parse_scalar(value)

    data = read_document(path)
    cur: Any = data
    for p in parts[:-1]:
        nxt = cur.get(p)
        if not isinstance(nxt, dict):
            nxt = CommentedMap()
            cur[p] = nxt
        cur = nxt
    cur[parts[-1]] = value

    buf = io.StringIO()
    _yaml().dump(data, buf)
    cfg = parse_config(buf.getvalue())
    _check_known(parts, cfg)
    write_document(path, data)
    return cfg


def _check_known(parts: list[str], cfg: ConfigModel) -> None:
    cur: Any = cfg.model_dump()
    for p in parts:
        if not isinstance(cur, dict) or p not in cur:
            raise KeyError(".".join(parts))
        cur = cur[p]

