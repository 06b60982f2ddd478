"""Conversion between source-relative and build-relative package paths."""

from __future__ import annotations

import re
from typing import Dict, Optional, Sequence, Union

from .config import BuildConfig
from .models import CJS, ESM, Mode
from .resolver import ExtensionResolver

BinField = Union[str, Dict[str, str], None]

_EXT_PATTERN = re.compile(r"\.[^./]+$")

TARGET_EXTENSIONS = {CJS: ".cjs", ESM: ".js"}


def normalize_path(path: str) -> str:
    """Use forward slashes regardless of platform."""
    return path.replace("\\", "/")


def ensure_relative(path: str) -> str:
    """Normalize a package path so it starts with ``./``."""
    if not path:
        return path
    path = normalize_path(path)
    if path.startswith("./"):
        return path
    if path.startswith("/"):
        return f".{path}"
    return f"./{path}"


def remove_ext(path: str) -> str:
    return _EXT_PATTERN.sub("", path)


def join(*parts: str) -> str:
    """Join package path segments with single forward slashes."""
    cleaned = [normalize_path(part).strip("/") for part in parts if part and part.strip("/")]
    return "/".join(cleaned)


def _strip_dir(path: str, directory: str) -> Optional[str]:
    prefix = f"./{directory}/"
    if path.startswith(prefix):
        return path[len(prefix):]
    return None


def to_build(
    source_path: str, config: BuildConfig, formats: Optional[Sequence[str]] = None
) -> str:
    """Map a source path to its compiled equivalent.

    CommonJS output wins when enabled and always ends in ``.cjs``; otherwise
    ESM output ending in ``.js`` is used. Paths outside the source directory
    come back unchanged apart from ``./`` normalization.
    """
    if not source_path:
        return source_path
    path = ensure_relative(source_path)
    relative = _strip_dir(path, config.source_dir)
    if relative is None:
        return path

    if formats is None:
        enabled = {CJS: config.cjs_enabled, ESM: config.esm_enabled}
        formats = [fmt for fmt in (CJS, ESM) if enabled[fmt]]
    for fmt in (CJS, ESM):
        if fmt in formats:
            target = f"./{join(config.format_dir(fmt), remove_ext(relative))}"
            return f"{target}{TARGET_EXTENSIONS[fmt]}"
    return path


def to_source(build_path: str, config: BuildConfig, resolver: ExtensionResolver) -> str:
    """Map a compiled path back to the source file that actually exists."""
    if not build_path:
        return build_path
    path = ensure_relative(build_path)
    for fmt in (CJS, ESM):
        relative = _strip_dir(path, config.format_dir(fmt))
        if relative is None:
            continue
        suffix = TARGET_EXTENSIONS[fmt]
        if relative.endswith(suffix):
            relative = relative[: -len(suffix)]
        else:
            relative = remove_ext(relative)
        extension = resolver.source_extension(relative)
        return f"./{join(config.source_dir, relative)}{extension}"
    return path


def convert_bin(
    bin_field: BinField,
    mode: Mode,
    config: BuildConfig,
    resolver: ExtensionResolver,
    formats: Optional[Sequence[str]] = None,
) -> BinField:
    """Convert a ``bin`` string or name-to-path mapping for the requested mode."""
    if not bin_field:
        return bin_field

    def convert(value: str) -> str:
        if mode is Mode.PRODUCTION:
            return to_build(value, config, formats)
        return to_source(value, config, resolver)

    if isinstance(bin_field, str):
        return convert(bin_field)
    if isinstance(bin_field, dict):
        return {name: convert(value) for name, value in bin_field.items() if isinstance(value, str)}
    return bin_field


__all__ = [
    "TARGET_EXTENSIONS",
    "convert_bin",
    "ensure_relative",
    "join",
    "normalize_path",
    "remove_ext",
    "to_build",
    "to_source",
]
