"""Reading, validating and writing package.json."""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from .config import BuildConfig
from .errors import ConfigurationError, PackageError
from .logging import get_logger
from .models import Mode, PACKAGE_JSON, PackageManifest, SourceTree
from .synthesizer import ManifestSynthesizer, SynthesisResult

_MANIFEST_SUGGESTIONS = (
    'Ensure package.json has a valid "name" field',
    'Add "main", "module" or "bin" fields for buildable packages',
    'Consider adding "type": "module" for ES module packages',
    "Verify all field values match expected formats",
)

_STRING_FIELDS = ("version", "main", "module", "types", "typings")
_MAPPING_FIELDS = ("dependencies", "devDependencies", "peerDependencies", "scripts")


def validate_manifest(data: Any) -> List[str]:
    """Return every violated constraint of a parsed package.json."""
    if not isinstance(data, dict):
        return ["(root): expected a JSON object"]

    problems: List[str] = []
    name = data.get("name")
    if not isinstance(name, str) or not name:
        problems.append("name: Package name is required")
    for key in _STRING_FIELDS:
        if key in data and not isinstance(data[key], str):
            problems.append(f"{key}: expected a string")
    if "private" in data and not isinstance(data["private"], bool):
        problems.append("private: expected a boolean")
    for key in _MAPPING_FIELDS:
        value = data.get(key)
        if key in data and (
            not isinstance(value, dict) or not all(isinstance(v, str) for v in value.values())
        ):
            problems.append(f"{key}: expected a mapping of strings")
    if "bin" in data:
        bin_field = data["bin"]
        valid = isinstance(bin_field, str) or (
            isinstance(bin_field, dict) and all(isinstance(v, str) for v in bin_field.values())
        )
        if not valid:
            problems.append("bin: expected a string or a mapping of strings")
    if "exports" in data and not isinstance(data["exports"], (dict, str)):
        problems.append("exports: expected an object")
    if "type" in data and data["type"] not in ("module", "commonjs"):
        problems.append("type: expected 'module' or 'commonjs'")
    return problems


def read_manifest_text(root: Path) -> str:
    path = Path(root) / PACKAGE_JSON
    if not path.exists():
        raise PackageError(f"File not found: {path}", str(root))
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise PackageError(f"Error reading {path}: {exc}", str(root)) from exc


def parse_manifest(text: str, path: Path) -> PackageManifest:
    """Parse and validate package.json text, keeping its key order."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise PackageError(f"Invalid JSON syntax in {path}: {exc}", str(path.parent)) from exc

    problems = validate_manifest(data)
    if problems:
        details = "\n".join(f"  - {problem}" for problem in problems)
        raise ConfigurationError(
            f"Invalid package.json at {path}:\n{details}", _MANIFEST_SUGGESTIONS
        )
    return PackageManifest(list(data.items()))


def read_manifest(root: Path) -> PackageManifest:
    """Read and validate ``<root>/package.json``."""
    root = Path(root)
    return parse_manifest(read_manifest_text(root), root / PACKAGE_JSON)


def atomic_write(path: Path, content: str) -> None:
    """Write the whole file through a temporary sibling and an atomic rename."""
    handle = tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", delete=False
    )
    try:
        with handle:
            handle.write(content)
        if path.exists():
            os.chmod(handle.name, path.stat().st_mode & 0o777)
        os.replace(handle.name, path)
    except BaseException:
        Path(handle.name).unlink(missing_ok=True)
        raise


@dataclass
class WriteResult:
    """Outcome of writing (or checking) one package.json."""

    path: Path
    changed: bool
    written: bool
    synthesis: SynthesisResult

    @property
    def package_name(self) -> str:
        return self.synthesis.manifest.name


class ManifestWriter:
    """Synthesizes the manifest for a mode and writes it only when it changed."""

    def __init__(self, synthesizer: ManifestSynthesizer | None = None) -> None:
        self.synthesizer = synthesizer or ManifestSynthesizer()
        self.logger = get_logger("writer")

    def render(
        self, config: BuildConfig, mode: Mode | str, *, tree: Optional[SourceTree] = None
    ) -> tuple[str, str, SynthesisResult]:
        """Return ``(current_text, next_text, synthesis)`` without touching disk."""
        path = config.root / PACKAGE_JSON
        current = read_manifest_text(config.root)
        manifest = parse_manifest(current, path)
        synthesis = self.synthesizer.synthesize(manifest, config, mode, tree=tree)
        return current, manifest.dumps(), synthesis

    def write(
        self,
        config: BuildConfig,
        mode: Mode | str,
        *,
        check: bool = False,
        tree: Optional[SourceTree] = None,
    ) -> WriteResult:
        """Bring package.json in line with ``mode``.

        In check mode nothing is written; ``changed`` reports whether a
        write would have happened.
        """
        path = config.root / PACKAGE_JSON
        current, next_text, synthesis = self.render(config, mode, tree=tree)
        changed = current != next_text

        if check or not changed:
            return WriteResult(path=path, changed=changed, written=False, synthesis=synthesis)

        try:
            atomic_write(path, next_text)
        except OSError as exc:
            raise PackageError(f"Failed to write package.json: {exc}", str(config.root)) from exc
        self.logger.info("%s - Updated package.json", synthesis.manifest.name)
        return WriteResult(path=path, changed=True, written=True, synthesis=synthesis)


__all__ = [
    "ManifestWriter",
    "WriteResult",
    "atomic_write",
    "parse_manifest",
    "read_manifest",
    "read_manifest_text",
    "validate_manifest",
]
