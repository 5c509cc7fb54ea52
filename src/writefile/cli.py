"""CLI for writefile."""

from __future__ import annotations

import argparse
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Any

import questionary
from rich.console import Console

from . import settings as cfg
from .directory import ensure_directory
from .errors import WriteFileError
from .logging_setup import configure
from .sweep import find_temp_files, remove_temp_files
from .writer import write_file

console = Console(stderr=True)

_CHUNK = 64 * 1024


class _NoTTYError(SystemExit):
    def __init__(self, flag: str) -> None:
        super().__init__(f"No TTY detected. Use {flag} to run non-interactively.")


def _is_tty() -> bool:
    return sys.stdin.isatty()


def _confirm(message: str, *, default: bool = False) -> bool:
    if not _is_tty():
        raise _NoTTYError("--yes")
    result = questionary.confirm(message, default=default).ask()
    if result is None:
        raise SystemExit(1)
    return result


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "directory_mode": getattr(args, "dir_mode", None),
        "file_mode": getattr(args, "file_mode", None),
        "directory_owner": getattr(args, "dir_owner", None),
        "file_owner": getattr(args, "file_owner", None),
        "temp_pattern": getattr(args, "temp_pattern", None),
        "sync": True if getattr(args, "sync", False) else None,
    }


def _setup(args: argparse.Namespace) -> dict[str, Any]:
    settings = cfg.load_settings()
    debug = bool(getattr(args, "debug", False)) or cfg.parse_bool(settings.get("debug", False))
    configure(cfg.log_file(settings), debug=debug)
    return settings


def _copy_stream(src: Any):
    def _op(f: Any) -> None:
        while True:
            chunk = src.read(_CHUNK)
            if not chunk:
                break
            f.write(chunk)
    return _op


def cmd_write(args: argparse.Namespace) -> int:
    settings = _setup(args)
    config = cfg.build_config(args.directory, settings, **_overrides(args))
    if args.input and args.input != "-":
        with open(args.input, "rb") as src:
            path = write_file(config, args.name, _copy_stream(src))
    else:
        path = write_file(config, args.name, _copy_stream(sys.stdin.buffer))
    console.print(f"[green]Wrote[/green] {path}")
    return 0


def cmd_ensure_dir(args: argparse.Namespace) -> int:
    settings = _setup(args)
    config = cfg.build_config(args.directory, settings, **_overrides(args))
    ensure_directory(config)
    console.print(f"[green]Ready.[/green] {config.directory} ({config.effective_directory_mode:04o})")
    return 0


def cmd_sweep(args: argparse.Namespace) -> int:
    settings = _setup(args)
    config = cfg.build_config(args.directory, settings, temp_pattern=args.temp_pattern)
    stray = find_temp_files(config, recursive=args.recursive)
    if not stray:
        console.print(f"[green]No stray temp files[/green] in {config.directory}")
        return 0

    console.print(f"[yellow]Found {len(stray)} stray temp file(s):[/yellow]")
    for path in stray:
        console.print(f"  [red]- {path}[/red]")

    if not args.yes and not _confirm("Remove them?"):
        return 1

    removed = remove_temp_files(stray)
    console.print(f"[green]Removed {len(removed)} file(s).[/green]")
    return 0


def cmd_config_show(args: argparse.Namespace) -> int:
    from rich.table import Table

    settings = _setup(args)
    table = Table(title="writefile settings")
    table.add_column("Key")
    table.add_column("Value")
    for key in cfg.KNOWN_KEYS:
        value = settings.get(key)
        table.add_row(key, "(not set)" if value in (None, "") else str(value))
    console.print(table)
    return 0


def cmd_config_set(args: argparse.Namespace) -> int:
    _setup(args)
    try:
        cfg.validate_value(args.key, args.value)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    scope = cfg.Scope.PROJECT if args.project else cfg.Scope.GLOBAL
    data = cfg.load_raw_settings(scope)
    data[args.key] = args.value
    path = cfg.save_settings(data, scope)
    console.print(f"[green]Saved.[/green] {args.key} in {path}")
    return 0


def cmd_version(_args: argparse.Namespace) -> int:
    try:
        console.print(version("writefile"))
    except PackageNotFoundError:
        from . import __version__
        console.print(__version__)
    return 0


def _add_config_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--dir-mode", help="Directory permission bits (octal, default 0755)")
    parser.add_argument("--dir-owner", metavar="UID:GID", help="Enforce directory ownership")
    parser.add_argument("--temp-pattern", help="Temp file name pattern (default .temp*~)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging to stderr")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="writefile",
        description="Atomic, permission-controlled file writes",
    )
    sub = parser.add_subparsers(dest="command")

    p_write = sub.add_parser("write", help="Atomically write stdin (or --input) to DIRECTORY/NAME")
    p_write.add_argument("directory")
    p_write.add_argument("name")
    p_write.add_argument("--input", "-i", help="Read content from this file instead of stdin")
    p_write.add_argument("--file-mode", help="File permission bits (octal, default 0644)")
    p_write.add_argument("--file-owner", metavar="UID:GID", help="Enforce file ownership")
    p_write.add_argument("--sync", action="store_true", help="fsync before publishing")
    _add_config_flags(p_write)
    p_write.set_defaults(func=cmd_write)

    p_ensure = sub.add_parser("ensure-dir", help="Create a directory with the configured mode/owner")
    p_ensure.add_argument("directory")
    _add_config_flags(p_ensure)
    p_ensure.set_defaults(func=cmd_ensure_dir)

    p_sweep = sub.add_parser("sweep", help="Remove temp files left behind by interrupted writes")
    p_sweep.add_argument("directory")
    p_sweep.add_argument("--recursive", "-r", action="store_true", help="Descend into subdirectories")
    p_sweep.add_argument("--temp-pattern", help="Temp file name pattern (default .temp*~)")
    p_sweep.add_argument("--yes", "-y", action="store_true", help="Remove without confirmation")
    p_sweep.add_argument("--debug", action="store_true", help="Verbose logging to stderr")
    p_sweep.set_defaults(func=cmd_sweep)

    p_config = sub.add_parser("config", help="Show or change settings")
    config_sub = p_config.add_subparsers(dest="config_command", required=True)
    p_show = config_sub.add_parser("show", help="Show merged settings")
    p_show.set_defaults(func=cmd_config_show)
    p_set = config_sub.add_parser("set", help="Persist a setting")
    p_set.add_argument("key", choices=cfg.KNOWN_KEYS)
    p_set.add_argument("value")
    scope = p_set.add_mutually_exclusive_group()
    scope.add_argument("--global", dest="global_", action="store_true", help="Use global scope (default)")
    scope.add_argument("--project", action="store_true", help="Use project scope")
    p_set.set_defaults(func=cmd_config_set)

    p_version = sub.add_parser("version", help="Show version")
    p_version.set_defaults(func=cmd_version)

    return parser


def run(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except (WriteFileError, ValueError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
