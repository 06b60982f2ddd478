"""Build, clean and sync pipelines over one or more packages."""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from .config import BuildConfig, load_config
from .errors import ConfigurationError, PackageError, PkgsyncError
from .gitignore import IgnoreSectionManager
from .logging import get_logger, log_non_fatal_error
from .models import Mode, PACKAGE_JSON, PackageManifest
from .scanner import SourceScanner, build_files
from .submodules import SubmoduleGenerator, plan_submodules
from .synthesizer import ManifestSynthesizer, SynthesisResult, resolve_formats
from .toolchain import Bundler, TypeChecker, purge_declarations
from .writer import ManifestWriter, read_manifest


class BuildState(str, Enum):
    """Stages of a build; ``reverting`` is entered from any stage on failure."""

    CLEANING = "cleaning"
    SCANNING = "scanning"
    COMPILING_TYPES = "compiling-types"
    BUNDLING = "bundling"
    FINALIZING = "finalizing"
    DONE = "done"
    REVERTING = "reverting"


@dataclass
class BuildResult:
    """Outcome of a build; ``state`` is the stage that failed when ``error`` is set."""

    mode: Mode
    state: BuildState
    error: Optional[PkgsyncError] = None
    reverted: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SyncOutcome:
    """Result of syncing one package."""

    root: Path
    name: str
    changed: bool = False
    written: bool = False
    skipped: bool = False
    submodules: List[str] = field(default_factory=list)


def find_package_root(path: Path | str) -> Optional[Path]:
    """Return the nearest directory at or above ``path`` holding a package.json."""
    current = Path(path).expanduser().resolve()
    if current.is_file():
        current = current.parent
    for candidate in (current, *current.parents):
        if (candidate / PACKAGE_JSON).is_file():
            return candidate
    return None


def group_paths_by_package(paths: Iterable[Path | str]) -> Dict[Path, List[str]]:
    """Group paths under their owning package, in first-seen order."""
    logger = get_logger("orchestrator")
    groups: Dict[Path, List[str]] = {}
    for path in paths:
        root = find_package_root(path)
        if root is None:
            logger.warning("Could not find package.json for path: %s", path)
            continue
        groups.setdefault(root, []).append(str(path))
    return groups


class Orchestrator:
    """Coordinates the scanner, synthesizer, writer and external toolchain."""

    def __init__(
        self,
        scanner: SourceScanner | None = None,
        writer: ManifestWriter | None = None,
        submodules: SubmoduleGenerator | None = None,
        gitignore: IgnoreSectionManager | None = None,
        type_checker: TypeChecker | None = None,
        bundler: Bundler | None = None,
        config_loader: Callable[[Path], BuildConfig] = load_config,
    ) -> None:
        self.scanner = scanner or SourceScanner()
        self.writer = writer or ManifestWriter(ManifestSynthesizer(self.scanner))
        self.submodules = submodules or SubmoduleGenerator()
        self.gitignore = gitignore or IgnoreSectionManager()
        self.type_checker = type_checker or TypeChecker()
        self.bundler = bundler or Bundler()
        self._load_config = config_loader
        self.logger = get_logger("orchestrator")

    # ------------------------------------------------------------------
    # Commands

    def build(
        self, path: Path | str, *, types_only: bool = False, verbose: bool = False
    ) -> BuildResult:
        """Run the full build, or the declaration-only build when ``types_only``.

        Any PackageError (and any unexpected error) reverts package.json to
        development mode before the failure is reported.
        """
        root = Path(path).expanduser().resolve()
        mode = Mode.PRODUCTION_TYPES if types_only else Mode.PRODUCTION
        self.logger.info("Building package at: %s", root)
        if types_only:
            self.logger.info("Types-only mode: building type definitions only")

        state = BuildState.SCANNING
        config: Optional[BuildConfig] = None
        try:
            config = self._load_config(root)
            manifest = read_manifest(root)
            formats = resolve_formats(config, manifest)

            if not types_only:
                state = BuildState.CLEANING
                self._clean_artifacts(config)

            state = BuildState.SCANNING
            tree = self.scanner.scan(config, manifest)
            entries = build_files(tree)
            self.logger.debug("Entry points: %s", ", ".join(entries))
            self.logger.debug("Build formats: %s", ", ".join(formats))
            for fmt in formats:
                (config.root / config.format_dir(fmt)).mkdir(parents=True, exist_ok=True)

            if config.types_enabled:
                state = BuildState.COMPILING_TYPES
                if types_only:
                    purge_declarations(config.root, [config.format_dir(fmt) for fmt in formats])
                self.type_checker.compile(config, formats)
            else:
                self.logger.info("Skipping TypeScript compilation (types disabled)")

            if not types_only:
                state = BuildState.BUNDLING
                self.bundler.bundle(config, entries, formats)

            state = BuildState.FINALIZING
            self.process_package(config, mode)
        except ConfigurationError as exc:
            self.logger.error("Build failed while %s", state.value)
            return BuildResult(mode=mode, state=state, error=exc)
        except Exception as exc:  # noqa: BLE001 - wrapped and reverted below
            error = exc if isinstance(exc, PackageError) else PackageError(
                f"Build failed while {state.value}: {exc}", str(root)
            )
            if error is not exc:
                error.__cause__ = exc
            self.logger.error("Build failed while %s", state.value)
            reverted = self._revert(root, config, verbose=verbose)
            return BuildResult(mode=mode, state=state, error=error, reverted=reverted)

        self.logger.info("Build completed successfully")
        return BuildResult(mode=mode, state=BuildState.DONE)

    def clean(self, path: Path | str) -> None:
        """Return a package to development mode and delete generated artifacts."""
        root = Path(path).expanduser().resolve()
        config = self._load_config(root)
        self._clean_artifacts(config)

    def sync(
        self,
        paths: Sequence[Path | str],
        mode: Mode | str,
        *,
        check: bool = False,
        verbose: bool = False,
    ) -> List[SyncOutcome]:
        """Rewrite (or check) package.json for ``mode`` in every package owning ``paths``."""
        mode = Mode.parse(mode)
        targets = list(paths) or ["."]
        groups = group_paths_by_package(targets)
        if not groups:
            self.logger.warning("No valid packages found for the provided paths")
            return []
        if len(targets) > 1:
            self.logger.info("Found %d unique package(s) to process", len(groups))

        outcomes: List[SyncOutcome] = []
        for root, associated in groups.items():
            self.logger.info("Processing package at: %s", root)
            self.logger.debug("Associated paths: %s", ", ".join(associated))
            try:
                manifest = read_manifest(root)
            except PkgsyncError as exc:
                if len(groups) == 1:
                    raise
                log_non_fatal_error(exc, f"Skipping {root}", verbose=verbose, logger=self.logger)
                continue
            outcomes.append(self.sync_package(root, mode, check=check, manifest=manifest))
        return outcomes

    def sync_package(
        self,
        root: Path,
        mode: Mode | str,
        *,
        check: bool = False,
        manifest: Optional[PackageManifest] = None,
    ) -> SyncOutcome:
        mode = Mode.parse(mode)
        config = self._load_config(root)
        if manifest is None:
            manifest = read_manifest(root)
        if manifest.is_pure_cli:
            self.logger.info("Skipping pure CLI package: %s", manifest.name)
            return SyncOutcome(root=root, name=manifest.name, skipped=True)
        return self.process_package(config, mode, check=check)

    # ------------------------------------------------------------------
    # Steps

    def process_package(
        self, config: BuildConfig, mode: Mode | str, *, check: bool = False
    ) -> SyncOutcome:
        """Write the manifest, regenerate submodules and refresh the ignore block."""
        mode = Mode.parse(mode)
        result = self.writer.write(config, mode, check=check)
        name = result.package_name
        if check:
            if result.changed:
                raise PackageError(
                    f"package.json for {name} does not match expected {mode.value} configuration",
                    str(config.root),
                )
            self.logger.info("%s is up to date", name)
            return SyncOutcome(root=config.root, name=name)

        previous = self._previous_submodules(config)
        created = self.submodules.generate(config, result.synthesis, previous)
        if config.write_to_gitignore:
            self.gitignore.write(config.root, ignore_entries(config, result.synthesis, created))
        self.logger.info("Updated %s", name)
        return SyncOutcome(
            root=config.root,
            name=name,
            changed=result.changed,
            written=result.written,
            submodules=created,
        )

    def _clean_artifacts(self, config: BuildConfig) -> None:
        self.logger.info("Cleaning build artifacts in %s", config.root)
        synthesis = self.writer.write(config, Mode.DEVELOPMENT).synthesis
        planned = plan_submodules(synthesis.public, synthesis.tree.root)
        names = [*self._previous_submodules(config), *(submodule.name for submodule in planned)]
        self.submodules.clean(config, names)

        for directory in dict.fromkeys((config.esm_dir, config.cjs_dir)):
            if directory == config.source_dir:
                continue
            target = config.root / directory
            if not target.exists():
                continue
            try:
                shutil.rmtree(target)
            except OSError as exc:
                self.logger.warning("Could not remove %s: %s", directory, exc)
                continue
            self.logger.debug("Removed: %s", directory)

    def _previous_submodules(self, config: BuildConfig) -> List[str]:
        reserved = {config.cjs_dir, config.esm_dir, config.source_dir, _cache_dir(config)}
        return [
            name for name in self.gitignore.current_entries(config.root) if name not in reserved
        ]

    def _revert(self, root: Path, config: Optional[BuildConfig], *, verbose: bool) -> bool:
        if config is None:
            return False
        self.logger.error("Reverting package.json to development mode...")
        try:
            self.process_package(config, Mode.DEVELOPMENT)
        except Exception as exc:  # noqa: BLE001 - the original failure takes precedence
            log_non_fatal_error(
                exc,
                "Failed to revert package.json to development mode",
                verbose=verbose,
                logger=self.logger,
            )
            return False
        return True


def ignore_entries(
    config: BuildConfig, synthesis: SynthesisResult, submodules: Sequence[str]
) -> List[str]:
    """Build directories, submodule names and the type-checker cache directory."""
    entries = [config.format_dir(fmt) for fmt in synthesis.formats]
    entries.extend(submodules)
    cache_dir = _cache_dir(config)
    if cache_dir:
        entries.append(cache_dir)
    return list(dict.fromkeys(entries))


def _cache_dir(config: BuildConfig) -> str:
    parent = Path(config.typescript.build_cache_file).parent.as_posix()
    return "" if parent == "." else parent


__all__ = [
    "BuildResult",
    "BuildState",
    "Orchestrator",
    "SyncOutcome",
    "find_package_root",
    "group_paths_by_package",
    "ignore_entries",
]
