"""Manifest field synthesis for development, production and production-types modes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from .config import BuildConfig
from .errors import ConfigurationError
from .logging import get_logger
from .models import CJS, CONDITION_ORDER, ESM, FORMAT_ORDER, Mode, PackageManifest, SourceTree
from .paths import convert_bin, join, normalize_path, remove_ext
from .resolver import DECLARATION_SUFFIX, ExtensionResolver
from .scanner import SourceScanner, export_key, public_files

ExportValue = Union[str, Dict[str, str]]

_ENTRY_FIELDS = {CJS: "main", ESM: "module"}


@dataclass
class SynthesisResult:
    """Outcome of one synthesis pass."""

    manifest: PackageManifest
    mode: Mode
    formats: Tuple[str, ...]
    public: Dict[str, str]
    tree: SourceTree
    declares_types: bool


def resolve_formats(config: BuildConfig, manifest: PackageManifest) -> Tuple[str, ...]:
    """Return enabled output formats, in ``cjs, esm`` order.

    Binary packages with every format disabled still get an ESM build; any
    other package with nothing enabled has nothing to publish.
    """
    enabled = {CJS: config.cjs_enabled, ESM: config.esm_enabled}
    formats = tuple(fmt for fmt in FORMAT_ORDER if enabled[fmt])
    if formats:
        return formats
    if manifest.is_binary:
        return (ESM,)
    raise ConfigurationError(
        "No build formats enabled in the pkgsync configuration",
        [
            "Set build.formats.cjs to true or a directory name to enable CJS output",
            "Set build.formats.esm to true or a directory name to enable ESM output",
            'Set the "bin" field in package.json for CLI applications',
        ],
    )


class ManifestSynthesizer:
    """Builds the owned manifest fields (main, module, types, exports, bin) for a mode."""

    def __init__(self, scanner: SourceScanner | None = None) -> None:
        self.scanner = scanner or SourceScanner()
        self.logger = get_logger("synthesizer")

    def synthesize(
        self,
        manifest: PackageManifest,
        config: BuildConfig,
        mode: Mode | str,
        *,
        tree: Optional[SourceTree] = None,
    ) -> SynthesisResult:
        """Mutate ``manifest`` in place so its owned fields match ``mode``."""
        mode = Mode.parse(mode)
        declares_types = manifest.declares_types
        formats = resolve_formats(config, manifest)
        if tree is None:
            tree = self.scanner.scan(config, manifest)
        resolver = ExtensionResolver(config)
        public = public_files(tree)

        context = ModePaths(config, resolver, mode, formats, declares_types)

        exports: Dict[str, ExportValue] = {}
        for name, file_path in public.items():
            relative = _relative_to(tree, file_path)
            exports[export_key(name)] = context.export_entry(relative)
        exports["./package.json"] = "./package.json"

        if not tree.pure_cli:
            self._apply_entry_points(manifest, context, has_index="index" in public)
            if context.declares_types and mode is not Mode.DEVELOPMENT:
                if "index" in public and context.declaration("index") is None:
                    self.logger.warning(
                        "No index.d.ts in the build output; keeping types=%s",
                        manifest.get("types"),
                    )

        if manifest.get("bin"):
            manifest.set("bin", convert_bin(manifest.get("bin"), mode, config, resolver, formats))

        manifest.set("exports", exports)
        self.logger.debug(
            "Synthesized %s manifest for %s with %d exports",
            mode.value,
            manifest.name or config.root.name,
            len(exports),
        )
        return SynthesisResult(
            manifest=manifest,
            mode=mode,
            formats=formats,
            public=public,
            tree=tree,
            declares_types=declares_types,
        )

    @staticmethod
    def _apply_entry_points(
        manifest: PackageManifest, context: "ModePaths", *, has_index: bool
    ) -> None:
        for fmt, entry_field in _ENTRY_FIELDS.items():
            if fmt not in context.formats:
                manifest.remove(entry_field)

        if not has_index:
            for fmt in context.formats:
                manifest.remove(_ENTRY_FIELDS[fmt])
            manifest.remove("types")
            return

        for fmt in context.formats:
            manifest.set(_ENTRY_FIELDS[fmt], context.entry_point(fmt, "index"))

        if context.declares_types:
            types = context.types_target("index")
            if types is not None:
                manifest.set("types", types)


class ModePaths:
    """Mode-specific path decisions shared by the root and submodule manifests."""

    def __init__(
        self,
        config: BuildConfig,
        resolver: ExtensionResolver,
        mode: Mode,
        formats: Tuple[str, ...],
        declares_types: bool,
        prefix: str = "./",
    ) -> None:
        self.config = config
        self.resolver = resolver
        self.mode = mode
        self.formats = formats
        self.declares_types = declares_types
        self.prefix = prefix

    def _path(self, *parts: str) -> str:
        return f"{self.prefix}{join(*parts)}"

    def source_path(self, stem: str, ext: Optional[str] = None) -> str:
        """Source file for a source-relative stem; the extension is probed when not given."""
        ext = ext or self.resolver.source_extension(stem)
        return self._path(self.config.source_dir, f"{stem}{ext}")

    def build_path(self, fmt: str, stem: str) -> str:
        build_stem = join(self.config.format_dir(fmt), stem)
        return self._path(f"{build_stem}{self.resolver.build_extension(build_stem)}")

    def declaration(self, stem: str) -> Optional[str]:
        for fmt in (ESM, CJS):
            if fmt not in self.formats:
                continue
            build_stem = join(self.config.format_dir(fmt), stem)
            if self.resolver.has_declaration(build_stem):
                return self._path(f"{build_stem}{DECLARATION_SUFFIX}")
        return None

    def entry_point(self, fmt: str, stem: str, ext: Optional[str] = None) -> str:
        if self.mode is Mode.PRODUCTION:
            return self.build_path(fmt, stem)
        return self.source_path(stem, ext)

    def types_target(self, stem: str, ext: Optional[str] = None) -> Optional[str]:
        if self.mode is Mode.DEVELOPMENT:
            return self.source_path(stem, ext)
        return self.declaration(stem)

    def export_entry(self, relative: str) -> ExportValue:
        """Export value for one source file given relative to the source root."""
        stem = remove_ext(relative)
        ext = relative[len(stem):] or None
        record: Dict[str, str] = {}
        if self.declares_types:
            types = self.types_target(stem, ext)
            if types is not None:
                record["types"] = types
        if ESM in self.formats:
            record["import"] = (
                self.build_path(ESM, stem)
                if self.mode is Mode.PRODUCTION
                else self.source_path(stem, ext)
            )
        if CJS in self.formats:
            record["require"] = (
                self.build_path(CJS, stem)
                if self.mode is Mode.PRODUCTION
                else self.source_path(stem, ext)
            )
        if self.mode is Mode.DEVELOPMENT and len(record) == 1:
            return next(iter(record.values()))
        return {key: record[key] for key in CONDITION_ORDER if key in record}


def _relative_to(tree: SourceTree, file_path: str) -> str:
    root = normalize_path(str(tree.root)).rstrip("/") + "/"
    normalized = normalize_path(file_path)
    if normalized.startswith(root):
        return normalized[len(root):]
    return normalized


__all__ = [
    "ExportValue",
    "ManifestSynthesizer",
    "ModePaths",
    "SynthesisResult",
    "resolve_formats",
]
