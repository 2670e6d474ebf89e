from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path

import yaml
from pydantic import ValidationError
from ruamel.yaml.error import YAMLError

from hyprlauncher.app import LauncherService
from hyprlauncher.config import default_config_text, last_config_error
from hyprlauncher.errors import LauncherError
from hyprlauncher.launcher import launch_and_record
from hyprlauncher.logging_setup import setup_logging
from hyprlauncher.paths import ensure_default_config, find_config_path, get_paths
from hyprlauncher.yaml_config import get_key, set_key


def _service(args: argparse.Namespace) -> LauncherService:
    svc = LauncherService(config_path=find_config_path(args.config))
    if svc.config.debug.enable_logging:
        setup_logging(debug=True)
    err = last_config_error()
    if err is not None:
        print(f"config error (line {err.line}): {err.message}. {err.suggestion}", file=sys.stderr)
    return svc


def _fmt_row(d: dict) -> str:
    desc = f" - {d['description']}" if d.get("description") else ""
    return f"{d['score']:>9.1f}  {d['identity']:<32} {d['display_name']}{desc}"


def _cmd_search(args: argparse.Namespace) -> int:
    with _service(args) as svc:
        svc.start(watch=False)
        started = time.perf_counter()
        results = svc.engine.search(" ".join(args.query), args.limit)
        took_ms = (time.perf_counter() - started) * 1000.0
        rows = [r.as_dict() for r in results]
        if args.json:
            print(json.dumps(rows, ensure_ascii=False, indent=2))
        else:
            for d in rows:
                print(_fmt_row(d))
            print(f"({len(rows)} results, {took_ms:.1f}ms)", file=sys.stderr)
    return 0


def _cmd_list(args: argparse.Namespace) -> int:
    with _service(args) as svc:
        snap = svc.start(watch=False)
        for e in snap:
            print(f"{e.identity:<40} {e.display_name}")
        print(f"({len(snap)} entries, {snap.skipped} skipped)", file=sys.stderr)
    return 0


def _cmd_launch(args: argparse.Namespace) -> int:
    with _service(args) as svc:
        svc.start(watch=False)
        entry = svc.engine.entry(args.identity)
        if entry is None:
            raise LauncherError(f"unknown application: {args.identity}")
        ok = launch_and_record(svc.engine, entry, terminal=args.terminal)
    return 0 if ok else 1


def _cmd_stats(args: argparse.Namespace) -> int:
    with _service(args) as svc:
        for identity, stat in svc.heatmap.top(args.limit):
            last = time.strftime("%Y-%m-%d %H:%M", time.localtime(stat.last_used)) if stat.last_used else "-"
            print(f"{stat.launch_count:>6}  {last:<16}  {identity}")
    return 0


def _cmd_rebuild(args: argparse.Namespace) -> int:
    with _service(args) as svc:
        snap = svc.start(watch=False)
        print(f"generation {snap.generation}: {len(snap)} entries from {len(snap.roots)} directories")
        for root in snap.roots:
            print(f"  {root}")
    return 0


def _cmd_watch(args: argparse.Namespace) -> int:
    with _service(args) as svc:
        svc.engine.add_listener(lambda s: print(f"index generation {s.generation}: {len(s)} entries", flush=True))
        svc.start(watch=True)
        try:
            while True:
                time.sleep(1.0)
        except KeyboardInterrupt:
            print()
    return 0


def _cmd_paths(args: argparse.Namespace) -> int:
    paths = get_paths()
    with _service(args) as svc:
        print(f"Config:  {svc.config_path}")
        print(f"Heatmap: {svc.heatmap_path}")
        print(f"Log:     {paths.log_path}")
        dirs, extra = svc.engine.scan_paths()
        for d in [*dirs, *extra]:
            mark = "" if d.is_dir() else "  (missing)"
            print(f"Scan:    {d}{mark}")
    return 0


def _cmd_init(args: argparse.Namespace) -> int:
    dest = get_paths().config_path if args.dest is None else Path(args.dest).expanduser().resolve()
    created = ensure_default_config(dest_path=dest, text=default_config_text())
    print(f"Config: {dest}{'' if created else ' (exists, left unchanged)'}")
    return 0


def _cmd_config_get(args: argparse.Namespace) -> int:
    try:
        val = get_key(find_config_path(args.config), args.key)
    except KeyError:
        raise LauncherError(f"unknown key: {args.key}") from None
    print(json.dumps(val, ensure_ascii=False) if isinstance(val, (dict, list)) else val)
    return 0


def _cmd_config_set(args: argparse.Namespace) -> int:
    cfg_path = find_config_path(args.config)
    try:
        set_key(cfg_path, args.key, args.value)
    except KeyError:
        raise LauncherError(f"unknown key: {args.key}") from None
    except ValidationError as e:
        first = e.errors()[0]
        raise LauncherError(f"invalid value for {args.key}: {first.get('msg', 'invalid value')}") from None
    except (YAMLError, yaml.YAMLError, ValueError) as e:
        raise LauncherError(f"cannot update {cfg_path}: {e}") from None
    print(f"OK: {args.key} = {args.value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="hyprlauncher", description="Application index with adaptive ranking")
    p.add_argument("--config", default=None, help="Path to config.yaml (default: XDG or ./config.yaml)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_search = sub.add_parser("search", help="Rank applications for a query")
    p_search.add_argument("query", nargs="*", help="Query (empty lists the most used)")
    p_search.add_argument("-n", "--limit", type=int, default=None, help="Max results (default: window.max_entries)")
    p_search.add_argument("--json", action="store_true", help="Print JSON records")
    p_search.set_defaults(func=_cmd_search)

    p_list = sub.add_parser("list", help="List indexed entries in snapshot order")
    p_list.set_defaults(func=_cmd_list)

    p_launch = sub.add_parser("launch", help="Launch an application and record it")
    p_launch.add_argument("identity")
    p_launch.add_argument("--terminal", default=None, help="Terminal for Terminal=true apps (default: $TERMINAL)")
    p_launch.set_defaults(func=_cmd_launch)

    p_stats = sub.add_parser("stats", help="Most launched applications")
    p_stats.add_argument("-n", "--limit", type=int, default=10)
    p_stats.set_defaults(func=_cmd_stats)

    p_rebuild = sub.add_parser("rebuild", help="Rescan descriptor directories")
    p_rebuild.set_defaults(func=_cmd_rebuild)

    p_watch = sub.add_parser("watch", help="Keep the index live until Ctrl-C")
    p_watch.set_defaults(func=_cmd_watch)

    p_paths = sub.add_parser("paths", help="Show config, heatmap and scanned directories")
    p_paths.set_defaults(func=_cmd_paths)

    p_init = sub.add_parser("init", help="Write a default config.yaml")
    p_init.add_argument("--dest", default=None, help="Where to write config.yaml (default: XDG)")
    p_init.set_defaults(func=_cmd_init)

    p_cfg = sub.add_parser("config", help="Read or change config values")
    cfg_sub = p_cfg.add_subparsers(dest="cfg_cmd", required=True)

    p_get = cfg_sub.add_parser("get", help="Print the effective value of a key")
    p_get.add_argument("key", help="e.g. window.max_entries")
    p_get.set_defaults(func=_cmd_config_get)

    p_set = cfg_sub.add_parser("set", help="Set a key (validated before writing)")
    p_set.add_argument("key", help="e.g. heatmap.flush_interval_s")
    p_set.add_argument("value", help="e.g. true / 20 / auto")
    p_set.set_defaults(func=_cmd_config_set)

    return p


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    setup_logging(debug=bool(args.verbose))
    try:
        return int(args.func(args))
    except LauncherError as e:
        print(f"hyprlauncher: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
