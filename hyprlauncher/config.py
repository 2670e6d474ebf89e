from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Sequence

import yaml
from pydantic import ValidationError

from hyprlauncher.config_model import ConfigModel
from hyprlauncher.errors import ConfigError

log = logging.getLogger(__name__)

_error_lock = threading.Lock()
_last_error: ConfigError | None = None


def last_config_error() -> ConfigError | None:
    with _error_lock:
        return _last_error


def _set_error(err: ConfigError | None) -> None:
    global _last_error
    with _error_lock:
        _last_error = err


def _line_of(text: str, loc: Sequence[Any]) -> int:
    try:
        node = yaml.compose(text)
    except yaml.YAMLError:
        return 0
    line = 0
    for part in loc:
        if node is None:
            break
        line = node.start_mark.line + 1
        if isinstance(node, yaml.MappingNode):
            node = next((v for k, v in node.value if k.value == str(part)), None)
        elif isinstance(node, yaml.SequenceNode) and isinstance(part, int) and part < len(node.value):
            node = node.value[part]
        else:
            break
    if node is not None:
        line = node.start_mark.line + 1
    return line


def _suggestion(kind: str) -> str:
    if "missing" in kind:
        return "Add the missing field with an appropriate value"
    if "type" in kind or "parsing" in kind:
        return "Check the type of this value matches what's expected in the config"
    if "greater" in kind or "less" in kind:
        return "Use a value inside the allowed range"
    return "Verify the option name and value"


def parse_config(text: str) -> ConfigModel:
    """Strict variant: raises ``yaml.YAMLError`` or ``ValidationError``."""
    raw = yaml.safe_load(text) if text.strip() else None
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("top level of config must be a mapping")
    return ConfigModel.model_validate(raw)


def load_config(config_path: str | Path | None) -> ConfigModel:
    if config_path is None:
        _set_error(None)
        return ConfigModel()
    path = Path(config_path)
    if not path.exists():
        log.debug("config %s not found, using defaults", path)
        _set_error(None)
        return ConfigModel()

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        log.warning("cannot read config %s: %s", path, e)
        _set_error(None)
        return ConfigModel()

    try:
        cfg = parse_config(text)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        err = ConfigError(
            line=(mark.line + 1) if mark is not None else 0,
            message=f"Failed to parse config file: {getattr(e, 'problem', None) or e}",
            suggestion="Verify the YAML syntax is correct",
        )
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ()))
        err = ConfigError(
            line=_line_of(text, first.get("loc", ())),
            message=f"{where}: {first.get('msg', 'invalid value')}",
            suggestion=_suggestion(str(first.get("type", ""))),
        )
    except ValueError as e:
        err = ConfigError(line=1, message=str(e), suggestion="Start the file with section names like 'index:'")
    else:
        _set_error(None)
        return cfg

    log.warning("config %s: line %d: %s (%s)", path, err.line, err.message, err.suggestion)
    _set_error(err)
    return ConfigModel()


def default_config_text() -> str:
    data = ConfigModel().model_dump(mode="json")
    header = "# hyprlauncher configuration; unknown keys are ignored.\n"
    return header + yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
