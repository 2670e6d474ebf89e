from __future__ import annotations

import logging
import mimetypes
import os
import shlex
import shutil
from pathlib import Path

from simpleeval import InvalidExpression, simple_eval

from hyprlauncher.entries import KIND_BINARY, KIND_CALCULATION, KIND_DIRECTORY, KIND_FILE, ApplicationEntry

log = logging.getLogger(__name__)

PATH_PREFIXES = ("~", "$", "/")
CALC_PREFIX = "="

BINARY_SCORE = 3000.0
PARENT_SCORE = 3000.0
DIRECTORY_SCORE = 2000.0
FILE_SCORE = 1000.0
CALC_SCORE = 5000.0

EXECUTABLE_ICON = "application-x-executable"


def is_path_query(query: str) -> bool:
    return query.startswith(PATH_PREFIXES)


def expand(query: str) -> Path:
    return Path(os.path.expandvars(os.path.expanduser(query.strip())))


def _icon_for(path: Path) -> str:
    mime, _ = mimetypes.guess_type(path.name)
    if mime is None:
        return "application-x-generic"
    if mime.startswith("text/"):
        return "text-x-generic"
    return mime.replace("/", "-")


def file_entry(path: Path, *, name: str | None = None) -> ApplicationEntry | None:
    try:
        is_dir = path.is_dir()
        is_file = path.is_file()
    except OSError:
        return None
    if not is_dir and not is_file:
        return None

    label = name or path.name or str(path)
    quoted = shlex.quote(str(path))
    if is_dir:
        kind, icon, command = KIND_DIRECTORY, "folder", ""
    elif os.access(path, os.X_OK):
        kind, icon, command = KIND_FILE, EXECUTABLE_ICON, quoted
    else:
        kind, icon, command = KIND_FILE, _icon_for(path), f"xdg-open {quoted}"
    return ApplicationEntry(
        identity=f"{kind}:{path}",
        display_name=label,
        exec_command=command,
        icon_name=icon,
        path=str(path),
        kind=kind,
    )


def path_results(query: str, *, limit: int) -> list[tuple[ApplicationEntry, float]]:
    """Lists the directory a path-like query points into.

    ``..`` comes first, then directories, then files, each alphabetically.
    """
    path = expand(query)
    try:
        is_dir = path.is_dir()
        directory = path if is_dir else path.parent
        needle = "" if is_dir else path.name.lower()
        children = list(directory.iterdir())
    except OSError as e:
        log.debug("path browsing: cannot list %s: %s", path, e)
        return []

    out: list[tuple[ApplicationEntry, float]] = []
    if directory.parent != directory:
        parent = file_entry(directory.parent, name="..")
        if parent is not None:
            out.append((parent, PARENT_SCORE))

    listed: list[tuple[ApplicationEntry, float]] = []
    for child in children:
        if needle and not child.name.lower().startswith(needle):
            continue
        entry = file_entry(child)
        if entry is None:
            continue
        listed.append((entry, DIRECTORY_SCORE if entry.kind == KIND_DIRECTORY else FILE_SCORE))
    listed.sort(key=lambda es: (es[0].kind != KIND_DIRECTORY, es[0].display_name.lower()))
    out.extend(listed)
    return out[: max(0, limit)]


def binary_entry(query: str) -> ApplicationEntry | None:
    parts = query.split()
    if not parts:
        return None
    resolved = shutil.which(parts[0])
    if not resolved:
        return None
    command = " ".join([shlex.quote(resolved), *parts[1:]])
    return ApplicationEntry(
        identity=f"{KIND_BINARY}:{parts[0]}",
        display_name=query.strip(),
        exec_command=command,
        icon_name=EXECUTABLE_ICON,
        path=resolved,
        binary_name=os.path.basename(resolved).lower(),
        kind=KIND_BINARY,
    )


def is_calc_query(query: str) -> bool:
    return query.startswith(CALC_PREFIX)


def _format_number(value: object) -> str:
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return str(value)


def evaluate(expression: str) -> str:
    """Evaluates an arithmetic expression, yielding ``"0"`` when it cannot."""
    expression = expression.strip()
    if not expression:
        return "0"
    try:
        value = simple_eval(expression)
    except (InvalidExpression, SyntaxError, ArithmeticError, TypeError, ValueError, KeyError) as e:
        log.debug("calculator: cannot evaluate %r: %s", expression, e)
        return "0"
    return _format_number(value)


def calc_entry(query: str) -> ApplicationEntry:
    expression = query.strip()[len(CALC_PREFIX):].strip()
    result = evaluate(expression)
    return ApplicationEntry(
        identity=f"{KIND_CALCULATION}:{expression}",
        display_name=result,
        description=expression or None,
        exec_command="",
        icon_name="accessories-calculator",
        kind=KIND_CALCULATION,
    )
