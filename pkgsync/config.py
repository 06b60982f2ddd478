"""Configuration loading for pkgsync (pkgsync.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

from .errors import ConfigurationError
from .patterns import invalid_patterns

CONFIG_FILENAME = "pkgsync.yml"

DEFAULT_EXTENSIONS: Tuple[str, ...] = (
    ".js",
    ".jsx",
    ".ts",
    ".tsx",
    ".cjs",
    ".mjs",
    ".cts",
    ".mts",
    ".json",
)

DEFAULT_IGNORE_BUILD_PATHS: Tuple[str, ...] = (
    "**/*.test.*",
    "**/*.spec.*",
    "**/__tests__/**",
)

_RUNNERS = ("tsc", "tsgo")

_CONFIG_SUGGESTIONS = (
    f"Check your {CONFIG_FILENAME} for the listed problems",
    "Directory names must be non-empty strings",
    "formats.cjs / formats.esm accept true, false or a directory name",
)


@dataclass(frozen=True)
class TypeScriptConfig:
    """Type checker invocation settings."""

    runner: str = "tsc"
    build_config_file: str = "tsconfig.build.json"
    build_cache_file: str = ".cache/tsbuildinfo.json"


@dataclass(frozen=True)
class BundlerConfig:
    """External bundler command and per-format extra arguments."""

    command: Tuple[str, ...] = ("tsup",)
    args: Tuple[str, ...] = ()
    esm_args: Tuple[str, ...] = ()
    cjs_args: Tuple[str, ...] = ()

    def args_for(self, fmt: str) -> Tuple[str, ...]:
        extra = self.esm_args if fmt == "esm" else self.cjs_args
        return self.args + extra


@dataclass(frozen=True)
class BuildConfig:
    """Resolved settings for one command invocation."""

    root: Path
    source_dir: str = "src"
    cjs_dir: str = "cjs"
    esm_dir: str = "esm"
    cjs_enabled: bool = True
    esm_enabled: bool = True
    types_enabled: bool = True
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    ignore_build_paths: Tuple[str, ...] = DEFAULT_IGNORE_BUILD_PATHS
    ignore_export_paths: Tuple[str, ...] = ()
    write_to_gitignore: bool = True
    typescript: TypeScriptConfig = field(default_factory=TypeScriptConfig)
    bundler: BundlerConfig = field(default_factory=BundlerConfig)

    @property
    def source_path(self) -> Path:
        return self.root / self.source_dir

    def format_dir(self, fmt: str) -> str:
        return self.cjs_dir if fmt == "cjs" else self.esm_dir


def load_config(config_path: Path) -> BuildConfig:
    """Load configuration from disk, returning defaults when no file exists."""
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()

    if not config_file.exists():
        return BuildConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"{CONFIG_FILENAME} must contain a mapping at the root", _CONFIG_SUGGESTIONS
        )
    return parse_config(data, root)


def parse_config(data: Dict[str, Any], root: Path) -> BuildConfig:
    """Validate a raw configuration mapping and build a BuildConfig."""
    errors: List[str] = []

    directories = _section(data, "directories", errors)
    source_dir = _dir_name(directories, "source", "src", "directories.source", errors)
    cjs_dir = _dir_name(directories, "cjs", "cjs", "directories.cjs", errors)
    esm_dir = _dir_name(directories, "esm", "esm", "directories.esm", errors)

    build = _section(data, "build", errors)
    formats = _section(build, "formats", errors, label="build.formats")
    cjs_enabled, cjs_dir = _format(formats, "cjs", cjs_dir, errors)
    esm_enabled, esm_dir = _format(formats, "esm", esm_dir, errors)
    types_enabled = _bool(formats, "types", True, "build.formats.types", errors)

    typescript_data = _section(data, "typescript", errors)
    runner = _string(typescript_data, "runner", "tsc", "typescript.runner", errors)
    if runner not in _RUNNERS:
        errors.append(f"typescript.runner: expected one of {', '.join(_RUNNERS)}, got {runner!r}")
    typescript = TypeScriptConfig(
        runner=runner,
        build_config_file=_string(
            typescript_data,
            "build_config_file",
            "tsconfig.build.json",
            "typescript.build_config_file",
            errors,
        ),
        build_cache_file=_string(
            typescript_data,
            "build_cache_file",
            ".cache/tsbuildinfo.json",
            "typescript.build_cache_file",
            errors,
        ),
    )

    files = _section(data, "files", errors)
    user_extensions = _str_list(files, "extensions", "files.extensions", errors)
    for ext in user_extensions:
        if not ext.startswith(".") or len(ext) < 2:
            errors.append(f"files.extensions: {ext!r} must start with '.'")
    if user_extensions:
        extensions = tuple(dict.fromkeys(user_extensions))
    else:
        if files.get("extensions") == []:
            errors.append("files.extensions: must list at least one extension")
        extensions = DEFAULT_EXTENSIONS

    if "ignore_build_paths" in files:
        ignore_build = tuple(
            _str_list(files, "ignore_build_paths", "files.ignore_build_paths", errors)
        )
    else:
        ignore_build = DEFAULT_IGNORE_BUILD_PATHS
    ignore_export = tuple(
        _str_list(files, "ignore_export_paths", "files.ignore_export_paths", errors)
    )
    for label, patterns in (
        ("files.ignore_build_paths", ignore_build),
        ("files.ignore_export_paths", ignore_export),
    ):
        errors.extend(f"{label}: {error}" for error in invalid_patterns(patterns))
    write_to_gitignore = _bool(
        files, "write_to_gitignore", True, "files.write_to_gitignore", errors
    )

    bundler_data = _section(build, "bundler", errors, label="build.bundler")
    command = _str_list(bundler_data, "command", "build.bundler.command", errors) or ["tsup"]
    bundler = BundlerConfig(
        command=tuple(command),
        args=tuple(_str_list(bundler_data, "args", "build.bundler.args", errors)),
        esm_args=tuple(_str_list(bundler_data, "esm_args", "build.bundler.esm_args", errors)),
        cjs_args=tuple(_str_list(bundler_data, "cjs_args", "build.bundler.cjs_args", errors)),
    )

    dirs = [name for name, enabled in ((cjs_dir, cjs_enabled), (esm_dir, esm_enabled)) if enabled]
    if source_dir in dirs:
        errors.append(f"directories: source directory {source_dir!r} collides with a build output")
    if cjs_enabled and esm_enabled and cjs_dir == esm_dir:
        errors.append(f"directories: cjs and esm outputs both use {cjs_dir!r}")

    if errors:
        issues = "\n".join(f"  - {error}" for error in errors)
        raise ConfigurationError(f"Invalid {CONFIG_FILENAME}:\n{issues}", _CONFIG_SUGGESTIONS)

    return BuildConfig(
        root=root,
        source_dir=source_dir,
        cjs_dir=cjs_dir,
        esm_dir=esm_dir,
        cjs_enabled=cjs_enabled,
        esm_enabled=esm_enabled,
        types_enabled=types_enabled,
        extensions=extensions,
        ignore_build_paths=ignore_build,
        ignore_export_paths=ignore_export,
        write_to_gitignore=write_to_gitignore,
        typescript=typescript,
        bundler=bundler,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            f"Failed to parse {path.name}: {exc}",
            [
                "Check for YAML syntax errors in your configuration file",
                "Try: directories: {source: src}",
            ],
        ) from exc
    return {} if loaded is None else loaded


def _section(
    data: Dict[str, Any], key: str, errors: List[str], *, label: str | None = None
) -> Dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        errors.append(f"{label or key}: expected a mapping")
        return {}
    return value


def _string(
    data: Dict[str, Any], key: str, default: str, label: str, errors: List[str]
) -> str:
    value = data.get(key, default)
    if not isinstance(value, str) or not value.strip():
        errors.append(f"{label}: expected a non-empty string")
        return default
    return value.strip()


def _dir_name(
    data: Dict[str, Any], key: str, default: str, label: str, errors: List[str]
) -> str:
    value = _string(data, key, default, label, errors)
    cleaned = value.replace("\\", "/").strip("/")
    if cleaned.startswith("./"):
        cleaned = cleaned[2:]
    if not cleaned or cleaned in {".", ".."}:
        errors.append(f"{label}: {value!r} is not a usable directory name")
        return default
    return cleaned


def _bool(
    data: Dict[str, Any], key: str, default: bool, label: str, errors: List[str]
) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        errors.append(f"{label}: expected true or false")
        return default
    return value


def _format(
    data: Dict[str, Any], key: str, directory: str, errors: List[str]
) -> tuple[bool, str]:
    value = data.get(key, True)
    if value is False:
        return False, directory
    if value is True:
        return True, directory
    if isinstance(value, str) and value.strip():
        return True, _dir_name(data, key, directory, f"build.formats.{key}", errors)
    errors.append(f"build.formats.{key}: expected true, false or a directory name")
    return True, directory


def _str_list(data: Dict[str, Any], key: str, label: str, errors: List[str]) -> List[str]:
    value = data.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        result: List[str] = []
        for item in value:
            if isinstance(item, str):
                result.append(item)
            else:
                errors.append(f"{label}: {item!r} is not a string")
        return result
    errors.append(f"{label}: expected a list of strings")
    return []


__all__ = [
    "BuildConfig",
    "BundlerConfig",
    "CONFIG_FILENAME",
    "DEFAULT_EXTENSIONS",
    "DEFAULT_IGNORE_BUILD_PATHS",
    "TypeScriptConfig",
    "load_config",
    "parse_config",
]
