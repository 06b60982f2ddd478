"""Generation of per-export submodule manifests for deep-import resolution."""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Sequence

from .config import BuildConfig
from .errors import PackageError
from .logging import get_logger
from .models import CJS, ESM, PACKAGE_JSON, serialize_json
from .paths import normalize_path, remove_ext
from .resolver import ExtensionResolver
from .synthesizer import ModePaths, SynthesisResult


@dataclass(frozen=True)
class Submodule:
    """One generated submodule: its directory name and the source file it fronts."""

    name: str
    source: str

    @property
    def depth(self) -> int:
        return len(self.name.split("/"))


def plan_submodules(public: Mapping[str, str], source_root: Path) -> List[Submodule]:
    """Derive submodule names from export names, skipping the root export.

    ``utils/index`` and ``utils`` both become ``utils``.
    """
    root = normalize_path(str(source_root)).rstrip("/") + "/"
    submodules: List[Submodule] = []
    for name, file_path in public.items():
        submodule_name = name[: -len("/index")] if name.endswith("/index") else name
        if submodule_name == "index":
            continue
        normalized = normalize_path(file_path)
        relative = normalized[len(root):] if normalized.startswith(root) else normalized
        submodules.append(Submodule(name=submodule_name, source=relative))
    return submodules


def root_directories(names: Sequence[str]) -> List[str]:
    """Unique first path segments, in first-seen order."""
    return list(dict.fromkeys(name.split("/")[0] for name in names))


class SubmoduleGenerator:
    """Deletes and recreates every submodule directory on each pass."""

    def __init__(self) -> None:
        self.logger = get_logger("submodules")

    def generate(
        self,
        config: BuildConfig,
        result: SynthesisResult,
        previous: Sequence[str] = (),
    ) -> List[str]:
        """Write submodule manifests for ``result`` and return their names.

        ``previous`` names submodules written by an earlier pass; they are
        removed together with the current ones so nothing stale survives.
        """
        submodules = plan_submodules(result.public, result.tree.root)
        self.clean(config, [*previous, *(submodule.name for submodule in submodules)])
        if not submodules:
            self.logger.debug("No submodules to generate")
            return []

        package_name = result.manifest.name
        resolver = ExtensionResolver(config)
        created: List[str] = []
        for submodule in submodules:
            payload = self._manifest_for(config, resolver, result, package_name, submodule)
            target_dir = config.root / submodule.name
            try:
                target_dir.mkdir(parents=True, exist_ok=True)
                (target_dir / PACKAGE_JSON).write_text(serialize_json(payload), encoding="utf-8")
            except OSError as exc:
                raise PackageError(
                    f"Could not create submodule {submodule.name}: {exc}", str(config.root)
                ) from exc
            created.append(submodule.name)

        self.logger.info(
            "Created %d %s submodule %s: %s",
            len(created),
            result.mode.value,
            "package" if len(created) == 1 else "packages",
            ", ".join(created),
        )
        return created

    def clean(self, config: BuildConfig, names: Sequence[str]) -> int:
        """Remove the root-level directory of every named submodule."""
        protected = {config.source_dir, config.cjs_dir, config.esm_dir, "node_modules", ".git"}
        removed = 0
        for directory in root_directories(names):
            if directory in protected:
                self.logger.warning("Refusing to remove protected directory %s", directory)
                continue
            target = config.root / directory
            if not target.exists():
                continue
            try:
                shutil.rmtree(target)
            except OSError as exc:
                self.logger.warning("Could not remove submodule directory %s: %s", directory, exc)
                continue
            removed += 1
        if removed:
            self.logger.debug(
                "Cleaned %d root submodule %s",
                removed,
                "directory" if removed == 1 else "directories",
            )
        return removed

    @staticmethod
    def _manifest_for(
        config: BuildConfig,
        resolver: ExtensionResolver,
        result: SynthesisResult,
        package_name: str,
        submodule: Submodule,
    ) -> Dict[str, object]:
        paths = ModePaths(
            config,
            resolver,
            result.mode,
            result.formats,
            result.declares_types,
            prefix="../" * submodule.depth,
        )
        stem = remove_ext(submodule.source)
        ext = submodule.source[len(stem):] or None

        payload: Dict[str, object] = {
            "name": f"{package_name}/{submodule.name}",
            "private": True,
            "sideEffects": False,
        }
        if CJS in result.formats:
            payload["main"] = paths.entry_point(CJS, stem, ext)
        if ESM in result.formats:
            payload["module"] = paths.entry_point(ESM, stem, ext)
        if result.declares_types:
            types = paths.types_target(stem, ext)
            if types is not None:
                payload["types"] = types
        return payload


__all__ = ["Submodule", "SubmoduleGenerator", "plan_submodules", "root_directories"]
