"""Tests for pkgsync.submodules."""

from __future__ import annotations

import json
from pathlib import Path

from pkgsync.models import Mode, PackageManifest
from pkgsync.submodules import SubmoduleGenerator, plan_submodules, root_directories
from pkgsync.synthesizer import ManifestSynthesizer

SOURCES = ["src/index.ts", "src/utils/index.ts", "src/utils/format.ts", "src/hooks/use-theme.ts"]


def _synthesize(package_builder, mode: Mode):
    manifest = PackageManifest(
        [("name", "demo"), ("main", "./cjs/index.cjs"), ("types", "./esm/index.d.ts")]
    )
    config = package_builder.config()
    return config, ManifestSynthesizer().synthesize(manifest, config, mode)


def _read(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


def test_plan_submodules_skips_root_and_strips_index() -> None:
    public = {
        "index": "/pkg/src/index.ts",
        "utils/index": "/pkg/src/utils/index.ts",
        "utils/format": "/pkg/src/utils/format.ts",
    }

    submodules = plan_submodules(public, Path("/pkg/src"))

    assert [(item.name, item.source) for item in submodules] == [
        ("utils", "utils/index.ts"),
        ("utils/format", "utils/format.ts"),
    ]
    assert [item.depth for item in submodules] == [1, 2]
    assert root_directories(["utils", "utils/format", "hooks/use-theme"]) == ["utils", "hooks"]


def test_generate_writes_development_submodules(package_builder) -> None:
    package_builder.touch(SOURCES)
    config, result = _synthesize(package_builder, Mode.DEVELOPMENT)

    created = SubmoduleGenerator().generate(config, result)

    root = package_builder.path()
    assert created == ["hooks/use-theme", "utils/format", "utils"]
    assert _read(root / "utils" / "package.json") == {
        "name": "demo/utils",
        "private": True,
        "sideEffects": False,
        "main": "../src/utils/index.ts",
        "module": "../src/utils/index.ts",
        "types": "../src/utils/index.ts",
    }
    nested = _read(root / "utils" / "format" / "package.json")
    assert nested["main"] == "../../src/utils/format.ts"
    assert nested["types"] == "../../src/utils/format.ts"
    assert _read(root / "hooks" / "use-theme" / "package.json")["name"] == "demo/hooks/use-theme"


def test_generate_writes_production_submodules(package_builder) -> None:
    package_builder.touch(
        SOURCES
        + [
            "cjs/index.cjs",
            "esm/index.js",
            "cjs/utils/index.cjs",
            "esm/utils/index.js",
            "esm/utils/index.d.ts",
        ]
    )
    config, result = _synthesize(package_builder, Mode.PRODUCTION)

    SubmoduleGenerator().generate(config, result)

    payload = _read(package_builder.path() / "utils" / "package.json")
    assert payload["main"] == "../cjs/utils/index.cjs"
    assert payload["module"] == "../esm/utils/index.js"
    assert payload["types"] == "../esm/utils/index.d.ts"


def test_generate_replaces_stale_directories(package_builder) -> None:
    package_builder.touch(SOURCES)
    package_builder.write(
        {
            "utils/leftover/package.json": "{}\n",
            "old/package.json": "{}\n",
        }
    )
    config, result = _synthesize(package_builder, Mode.DEVELOPMENT)

    SubmoduleGenerator().generate(config, result, previous=["old", "src"])

    root = package_builder.path()
    assert not (root / "old").exists()
    assert not (root / "utils" / "leftover").exists()
    assert (root / "src" / "index.ts").exists()


def test_clean_removes_without_regenerating(package_builder) -> None:
    package_builder.touch(SOURCES)
    config, result = _synthesize(package_builder, Mode.DEVELOPMENT)
    generator = SubmoduleGenerator()
    created = generator.generate(config, result)

    removed = generator.clean(config, created)

    root = package_builder.path()
    assert removed == 2
    assert not (root / "utils").exists()
    assert not (root / "hooks").exists()
