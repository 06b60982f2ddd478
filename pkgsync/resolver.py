"""Filesystem probing for the real extension of a logical file."""

from __future__ import annotations

from pathlib import Path

from .config import BuildConfig

FALLBACK_EXTENSION = ".js"
DECLARATION_SUFFIX = ".d.ts"


class ExtensionResolver:
    """Finds which extension a logical (extensionless) path actually has on disk.

    Candidates are tried in the configured extension order; the first file
    that exists wins. When nothing matches the resolver falls back to ``.js``.
    """

    def __init__(self, config: BuildConfig) -> None:
        self.config = config
        self.root = config.root

    def source_extension(self, relative_path: str) -> str:
        """Extension of ``<source_dir>/<relative_path>`` as it exists on disk."""
        return self._probe(self.root / self.config.source_dir, relative_path)

    def build_extension(self, relative_path: str) -> str:
        """Extension of a package-relative build path such as ``esm/index``."""
        return self._probe(self.root, relative_path)

    def has_declaration(self, relative_path: str) -> bool:
        """Whether ``<relative_path>.d.ts`` exists relative to the package root."""
        return (self.root / f"{_strip(relative_path)}{DECLARATION_SUFFIX}").is_file()

    def _probe(self, base: Path, relative_path: str) -> str:
        stem = _strip(relative_path)
        for ext in self.config.extensions:
            if (base / f"{stem}{ext}").is_file():
                return ext
        return FALLBACK_EXTENSION


def _strip(relative_path: str) -> str:
    path = relative_path.replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")


__all__ = ["DECLARATION_SUFFIX", "ExtensionResolver", "FALLBACK_EXTENSION"]
