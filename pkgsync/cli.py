"""CLI entrypoints for pkgsync commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import NoReturn

from .config import load_config
from .errors import PkgsyncError
from .logging import configure_logging, format_error, log_fatal_error
from .models import Mode
from .orchestrator import Orchestrator, group_paths_by_package
from .watch import SourceWatcher


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Show debug output and full error details.",
    }
    kwargs["default"] = argparse.SUPPRESS if suppress_default else False
    parser.add_argument("-v", "--verbose", **kwargs)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pkgsync",
        description="Keep package.json, submodule manifests and build output in sync.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        help="Also write log records to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser(
        "build",
        help="Clean, compile types, bundle and finalize package.json for production.",
    )
    _add_verbose_option(build_parser, suppress_default=True)
    build_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the package root (defaults to current directory).",
    )
    build_parser.add_argument(
        "--watch",
        action="store_true",
        help="Rebuild whenever source files change.",
    )
    build_parser.add_argument(
        "--types-only",
        action="store_true",
        help="Only emit type declarations and finalize in production-types mode.",
    )

    clean_parser = subparsers.add_parser(
        "clean",
        help="Revert package.json to development mode and remove build artifacts.",
    )
    _add_verbose_option(clean_parser, suppress_default=True)
    clean_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the package root (defaults to current directory).",
    )

    sync_parser = subparsers.add_parser(
        "sync",
        help="Rewrite package.json for a mode without building.",
    )
    _add_verbose_option(sync_parser, suppress_default=True)
    sync_parser.add_argument(
        "paths",
        nargs="*",
        help="Files or directories; each is resolved to its nearest package.",
    )
    sync_parser.add_argument(
        "--mode",
        choices=[mode.value for mode in Mode],
        default=Mode.DEVELOPMENT.value,
        help="Target mode (defaults to development).",
    )
    sync_parser.add_argument(
        "--check",
        action="store_true",
        help="Fail if package.json differs from the target mode instead of writing.",
    )
    sync_parser.add_argument(
        "--watch",
        action="store_true",
        help="Keep package.json in sync as source files are added or removed.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for pkgsync commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    verbose = bool(args.verbose)

    configure_logging(verbose=verbose, log_file=args.log_file)

    orchestrator = Orchestrator()

    if args.command == "build":
        _run_build(parser, orchestrator, args.path, types_only=args.types_only, verbose=verbose)
        if args.watch:
            _watch_build(orchestrator, args.path, types_only=args.types_only, verbose=verbose)
    elif args.command == "clean":
        try:
            orchestrator.clean(args.path)
        except PkgsyncError as exc:
            _fail(parser, exc, verbose)
        except Exception as exc:  # pragma: no cover - defensive guard
            _unexpected(parser, exc, "clean")
        print(f"Cleaned build artifacts in {_relativize(Path(args.path).resolve())}")
    elif args.command == "sync":
        if args.check and args.watch:
            parser.error("--check cannot be combined with --watch")
        try:
            outcomes = orchestrator.sync(
                args.paths, args.mode, check=args.check, verbose=verbose
            )
        except PkgsyncError as exc:
            _fail(parser, exc, verbose)
        except Exception as exc:  # pragma: no cover - defensive guard
            _unexpected(parser, exc, "sync")
        for outcome in outcomes:
            if outcome.skipped:
                print(f"{outcome.name}: skipped (pure CLI package)")
            elif args.check:
                print(f"{outcome.name}: {args.mode} package.json is up to date")
            elif outcome.written:
                print(f"{outcome.name}: updated package.json ({args.mode})")
            else:
                print(f"{outcome.name}: package.json already up to date ({args.mode})")
        if args.watch:
            _watch_sync(orchestrator, args.paths, args.mode)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _run_build(
    parser: argparse.ArgumentParser,
    orchestrator: Orchestrator,
    path: str,
    *,
    types_only: bool,
    verbose: bool,
) -> None:
    result = orchestrator.build(path, types_only=types_only, verbose=verbose)
    if result.error is not None:
        if result.reverted:
            print("package.json was reverted to development mode")
        _fail(parser, result.error, verbose)
    print(f"Build completed ({result.mode.value})")


def _watch_build(orchestrator: Orchestrator, path: str, *, types_only: bool, verbose: bool) -> None:
    root = Path(path).expanduser().resolve()
    config = load_config(root)

    def rebuild(package_root: Path) -> None:
        result = orchestrator.build(package_root, types_only=types_only, verbose=verbose)
        if result.error is not None:
            print(format_error(result.error, detailed=verbose), file=sys.stderr)

    watcher = SourceWatcher(rebuild, track_content=True)
    watcher.add(root, config.source_path)
    watcher.run()


def _watch_sync(orchestrator: Orchestrator, paths: list[str], mode: str) -> None:
    watcher = SourceWatcher(lambda root: orchestrator.sync_package(root, mode))
    for root in group_paths_by_package(paths or ["."]):
        watcher.add(root, load_config(root).source_path)
    watcher.run()


def _fail(parser: argparse.ArgumentParser, exc: BaseException, verbose: bool) -> NoReturn:
    parser.exit(1, f"{format_error(exc, detailed=verbose)}\n")


def _unexpected(parser: argparse.ArgumentParser, exc: BaseException, command: str) -> NoReturn:
    log_fatal_error(exc, f"pkgsync {command} failed unexpectedly")
    parser.exit(1, f"pkgsync {command} failed: {exc}\nRun with --verbose for more details.\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
