"""Source tree scanning and build/export classification."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .config import BuildConfig
from .errors import ConfigurationError
from .logging import get_logger
from .models import PackageManifest, SourceEntry, SourceTree
from .patterns import matches_any, strip_source_prefix
from .paths import normalize_path, remove_ext

_INDEX_PATTERN = re.compile(r"^index\.(ts|tsx|js|jsx|cjs|mjs|cts|mts)$")

_CLI_INDEX_EXTENSIONS = (".ts", ".js", ".cjs", ".mjs", ".tsx", ".jsx", ".cts", ".mts")

_EMPTY_SOURCE_SUGGESTIONS = (
    "Add TypeScript (.ts, .tsx, .cts, .mts) or JavaScript (.js, .jsx, .cjs, .mjs) files "
    "to the source directory",
    "Ensure files are not test files (avoid .test.* or .spec.* naming)",
    "Create at least an index file (src/index.ts, src/index.js or src/index.cjs)",
)


class SourceScanner:
    """Walks the source directory once and classifies every entry."""

    def __init__(self) -> None:
        self.logger = get_logger("scanner")

    def scan(self, config: BuildConfig, manifest: PackageManifest) -> SourceTree:
        """Return the classified source tree for a package."""
        source_path = resolve_source_path(config)

        if manifest.is_pure_cli:
            index = _find_cli_index(source_path)
            self.logger.debug("Pure CLI package; using %s as the only entry", index.name)
            entry = SourceEntry(
                path=index.name, is_dir=False, build_eligible=True, export_eligible=True
            )
            return SourceTree(root=source_path, entries=[entry], pure_cli=True)

        build_patterns = strip_source_prefix(config.ignore_build_paths, config.source_dir)
        export_patterns = strip_source_prefix(config.ignore_export_paths, config.source_dir)
        entries = self._scan_dir(
            source_path, "", config.extensions, build_patterns, export_patterns
        )
        tree = SourceTree(root=source_path, entries=entries)
        if not any(not entry.is_dir for entry in tree.walk()):
            raise ConfigurationError(
                f"No valid source files found in: {source_path}", _EMPTY_SOURCE_SUGGESTIONS
            )
        self.logger.debug("Scanned %d top-level source entries", len(entries))
        return tree

    def _scan_dir(
        self,
        directory: Path,
        prefix: str,
        extensions: Sequence[str],
        build_patterns: Sequence[str],
        export_patterns: Sequence[str],
    ) -> List[SourceEntry]:
        try:
            names = sorted(os.listdir(directory))
        except OSError as exc:
            raise ConfigurationError(
                f"Failed to analyze source files in {directory}: {exc}",
                ["Check file permissions and directory structure"],
            ) from exc

        entries: List[SourceEntry] = []
        for name in names:
            rel_path = f"{prefix}/{name}" if prefix else name
            full_path = directory / name
            is_dir = full_path.is_dir()

            if matches_any(rel_path, build_patterns):
                continue
            if not is_dir and not name.endswith(tuple(extensions)):
                continue

            entry = SourceEntry(
                path=rel_path,
                is_dir=is_dir,
                build_eligible=True,
                export_eligible=not matches_any(rel_path, export_patterns),
            )
            if is_dir:
                entry.children = self._scan_dir(
                    full_path, rel_path, extensions, build_patterns, export_patterns
                )
            entries.append(entry)
        return entries


def resolve_source_path(config: BuildConfig) -> Path:
    """Return the source directory, failing when it is missing or not a directory."""
    source_path = config.source_path
    if not source_path.exists():
        raise ConfigurationError(
            f"Source directory not found: {source_path}",
            [
                f"Create a {config.source_dir}/ directory in your package root",
                f"Add your TypeScript/JavaScript source files to {config.source_dir}/",
                f"Ensure {config.source_dir}/index.ts, index.js or index.cjs exists "
                "as the main entry point",
            ],
        )
    if not source_path.is_dir():
        raise ConfigurationError(
            f"Source path is not a directory: {source_path}",
            [f"Ensure {config.source_dir}/ is a directory, not a file"],
        )
    return source_path


def _find_cli_index(source_path: Path) -> Path:
    for ext in _CLI_INDEX_EXTENSIONS:
        candidate = source_path / f"index{ext}"
        if candidate.is_file():
            return candidate
    raise ConfigurationError(
        "Pure CLI package missing index file",
        [
            "Create src/index.ts, src/index.js or src/index.cjs as the main entry point",
            "Ensure the file exports the main CLI functionality",
        ],
    )


def build_files(tree: SourceTree) -> Dict[str, str]:
    """Map extensionless source-relative keys to absolute files for the bundler."""
    files: Dict[str, str] = {}
    for entry in tree.walk():
        if entry.is_dir or not entry.build_eligible:
            continue
        files[remove_ext(entry.path)] = normalize_path(str(tree.root / entry.path))
    return files


def public_files(tree: SourceTree) -> Dict[str, str]:
    """Map export names to absolute source files.

    A directory holding an index file is exported under the directory's own
    name instead of ``<dir>/index``; other files in it keep their own names.
    Directories without exportable files contribute nothing.
    """
    return _collect_exports(tree.root, tree.entries)


def _collect_exports(root: Path, entries: Sequence[SourceEntry]) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for entry in entries:
        if not entry.export_eligible:
            continue
        if not entry.is_dir:
            result[remove_ext(entry.path)] = normalize_path(str(root / entry.path))
            continue

        child_exports = _collect_exports(root, entry.children)
        index = _index_child(entry)
        if index is not None:
            index_key = f"{entry.path}/index"
            collapsed: Dict[str, str] = {}
            for key, value in child_exports.items():
                if key == index_key:
                    continue
                collapsed[key] = value
            collapsed[entry.path] = normalize_path(str(root / index.path))
            child_exports = collapsed
        result.update(child_exports)
    return result


def _index_child(entry: SourceEntry) -> Optional[SourceEntry]:
    for child in entry.children:
        if not child.is_dir and child.build_eligible and _INDEX_PATTERN.match(child.name):
            return child
    return None


def export_key(name: str) -> str:
    """Convert an export name (``index``, ``utils/index``, ``foo``) to an exports key."""
    if name == "index":
        return "."
    stripped = name[: -len("/index")] if name.endswith("/index") else name
    return f"./{stripped}"


__all__ = [
    "SourceScanner",
    "build_files",
    "export_key",
    "public_files",
    "resolve_source_path",
]
