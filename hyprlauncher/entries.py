from __future__ import annotations

import configparser
import os
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

from hyprlauncher.errors import DescriptorParseError

MAIN_SECTION = "Desktop Entry"
ACTION_SECTION = "Desktop Action {}"
ACTION_SEPARATOR = ":"

KIND_APPLICATION = "application"
KIND_ACTION = "action"
KIND_BINARY = "binary"
KIND_FILE = "file"
KIND_DIRECTORY = "directory"
KIND_CALCULATION = "calculation"

_FIELD_CODE = re.compile(r"%[fFuUikdDnNvm]")


@dataclass(frozen=True)
class DesktopAction:
    action_id: str
    name: str
    exec_command: str
    icon_name: str | None = None


@dataclass(frozen=True)
class ApplicationEntry:
    identity: str
    display_name: str
    exec_command: str
    description: str | None = None
    icon_name: str | None = None
    is_terminal_app: bool = False
    categories: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()
    actions: tuple[DesktopAction, ...] = ()
    path: str = ""
    wm_class: str | None = None
    binary_name: str = ""
    parent_identity: str | None = None
    kind: str = KIND_APPLICATION
    position: int = -1
    # lower-cased views used by the scorer
    search_name: str = field(default="", compare=False, repr=False)
    search_keywords: frozenset[str] = field(default=frozenset(), compare=False, repr=False)
    search_categories: frozenset[str] = field(default=frozenset(), compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.search_name:
            object.__setattr__(self, "search_name", self.display_name.lower())
        if not self.search_keywords and self.keywords:
            object.__setattr__(self, "search_keywords", frozenset(k.lower() for k in self.keywords))
        if not self.search_categories and self.categories:
            object.__setattr__(self, "search_categories", frozenset(c.lower() for c in self.categories))

    @property
    def is_action(self) -> bool:
        return self.parent_identity is not None


def current_desktops(env: dict[str, str] | None = None) -> tuple[str, ...]:
    raw = (env if env is not None else os.environ).get("XDG_CURRENT_DESKTOP", "")
    return tuple(d.strip().upper() for d in raw.split(":") if d.strip())


def split_list(value: str | None) -> tuple[str, ...]:
    """Splits a ``;``-separated desktop entry list, dropping empties and duplicates."""
    if not value:
        return ()
    seen: dict[str, None] = {}
    for part in value.split(";"):
        part = part.strip()
        if part and part not in seen:
            seen[part] = None
    return tuple(seen)


def clean_exec(raw: str, *, name: str = "") -> str:
    s = raw.replace("%%", "\0")
    s = s.replace("%c", shlex.quote(name) if name else "")
    s = _FIELD_CODE.sub("", s)
    s = s.replace("\0", "%")
    return " ".join(s.split())


def binary_name_of(command: str) -> str:
    try:
        tokens = shlex.split(command)
    except ValueError:
        tokens = command.split()
    for i, tok in enumerate(tokens):
        if i == 0 and os.path.basename(tok) == "env":
            continue
        if "=" in tok and not tok.startswith(("/", ".")) and i < len(tokens) - 1:
            # VAR=value prefix
            continue
        return os.path.basename(tok).lower()
    return ""


def _is_true(value: str | None) -> bool:
    return (value or "").strip().lower() == "true"


def _opt(section: configparser.SectionProxy, key: str) -> str | None:
    v = section.get(key)
    if v is None:
        return None
    v = v.strip()
    return v or None


def _read(text: str, path: Path | str | None) -> configparser.ConfigParser:
    cp = configparser.ConfigParser(
        interpolation=None,
        strict=False,
        delimiters=("=",),
        comment_prefixes=("#",),
        empty_lines_in_values=False,
    )
    cp.optionxform = str  # type: ignore[assignment,method-assign]
    try:
        cp.read_string(text, source=str(path or "<descriptor>"))
    except configparser.Error as e:
        raise DescriptorParseError(path, f"malformed descriptor: {e.__class__.__name__}") from e
    return cp


def _shown_in(section: configparser.SectionProxy, desktops: Sequence[str]) -> bool:
    only = split_list(section.get("OnlyShowIn"))
    if only:
        allowed = {d.upper() for d in only}
        if not any(d in allowed for d in desktops):
            return False
    excluded = {d.upper() for d in split_list(section.get("NotShowIn"))}
    if excluded and any(d in excluded for d in desktops):
        return False
    return True


def _parse_actions(
    cp: configparser.ConfigParser,
    ids: Iterable[str],
    *,
    name: str,
    icon: str | None,
) -> tuple[DesktopAction, ...]:
    out: list[DesktopAction] = []
    for action_id in ids:
        sec_name = ACTION_SECTION.format(action_id)
        if not cp.has_section(sec_name):
            continue
        sec = cp[sec_name]
        raw_exec = _opt(sec, "Exec")
        if not raw_exec:
            continue
        command = clean_exec(raw_exec, name=name)
        if not command:
            continue
        out.append(
            DesktopAction(
                action_id=action_id,
                name=_opt(sec, "Name") or action_id,
                exec_command=command,
                icon_name=_opt(sec, "Icon") or icon,
            )
        )
    return tuple(out)


def parse_desktop(
    data: bytes | str,
    *,
    identity: str,
    path: Path | str | None = None,
    desktops: Sequence[str] | None = None,
) -> ApplicationEntry | None:
    """Turns the raw bytes of a ``.desktop`` file into an :class:`ApplicationEntry`.

    Returns ``None`` for descriptors that are valid but must not be listed
    (hidden, NoDisplay, not an Application, filtered by OnlyShowIn/NotShowIn).
    Raises :class:`DescriptorParseError` when the descriptor is unusable.
    """
    if isinstance(data, bytes):
        text = data.decode("utf-8", errors="replace")
    else:
        text = data

    cp = _read(text, path)
    if not cp.has_section(MAIN_SECTION):
        raise DescriptorParseError(path, f"missing [{MAIN_SECTION}] section")

    e = cp[MAIN_SECTION]
    if _is_true(e.get("NoDisplay")) or _is_true(e.get("Hidden")):
        return None
    if (e.get("Type") or "Application").strip() != "Application":
        return None
    if desktops is None:
        desktops = current_desktops()
    if not _shown_in(e, desktops):
        return None

    name = _opt(e, "Name")
    if not name:
        raise DescriptorParseError(path, "empty Name")
    raw_exec = _opt(e, "Exec")
    command = clean_exec(raw_exec, name=name) if raw_exec else ""
    if not command:
        raise DescriptorParseError(path, "empty Exec")

    icon = _opt(e, "Icon")
    return ApplicationEntry(
        identity=identity,
        display_name=name,
        exec_command=command,
        description=_opt(e, "Comment") or _opt(e, "GenericName"),
        icon_name=icon,
        is_terminal_app=_is_true(e.get("Terminal")),
        categories=split_list(e.get("Categories")),
        keywords=split_list(e.get("Keywords")),
        actions=_parse_actions(cp, split_list(e.get("Actions")), name=name, icon=icon),
        path=str(path) if path is not None else "",
        wm_class=_opt(e, "StartupWMClass"),
        binary_name=binary_name_of(command),
    )


def desktop_file_id(path: Path, root: Path) -> str:
    """XDG desktop-file id without the suffix: ``kde/foo.desktop`` -> ``kde-foo``."""
    try:
        rel = path.relative_to(root)
    except ValueError:
        rel = Path(path.name)
    parts = list(rel.parts)
    parts[-1] = parts[-1][: -len(".desktop")] if parts[-1].endswith(".desktop") else parts[-1]
    return "-".join(parts)


def parse_desktop_file(
    path: Path,
    *,
    root: Path | None = None,
    desktops: Sequence[str] | None = None,
) -> ApplicationEntry | None:
    identity = desktop_file_id(path, root) if root is not None else path.stem
    try:
        data = path.read_bytes()
    except OSError as e:
        raise DescriptorParseError(path, f"unreadable: {e.strerror or e}") from e
    return parse_desktop(data, identity=identity, path=path, desktops=desktops)


def expand_actions(entry: ApplicationEntry) -> list[ApplicationEntry]:
    """Derived, individually searchable entries for each action of ``entry``."""
    return [
        ApplicationEntry(
            identity=f"{entry.identity}{ACTION_SEPARATOR}{a.action_id}",
            display_name=a.name,
            exec_command=a.exec_command,
            description=entry.display_name,
            icon_name=a.icon_name,
            is_terminal_app=entry.is_terminal_app,
            categories=entry.categories,
            keywords=entry.keywords,
            path=entry.path,
            wm_class=entry.wm_class,
            binary_name=binary_name_of(a.exec_command),
            parent_identity=entry.identity,
            kind=KIND_ACTION,
        )
        for a in entry.actions
    ]
