"""Tests for pkgsync.synthesizer."""

from __future__ import annotations

import pytest

from pkgsync.errors import ConfigurationError
from pkgsync.models import Mode, PackageManifest
from pkgsync.synthesizer import ManifestSynthesizer, resolve_formats

SOURCES = ["src/index.ts", "src/utils/index.ts", "src/utils/format.ts"]

BUILD_OUTPUTS = [
    "esm/index.js",
    "esm/index.d.ts",
    "esm/utils/index.js",
    "esm/utils/index.d.ts",
    "esm/utils/format.js",
    "esm/utils/format.d.ts",
    "cjs/index.cjs",
    "cjs/index.d.ts",
    "cjs/utils/index.cjs",
    "cjs/utils/format.cjs",
]


def _manifest(**extra) -> PackageManifest:
    fields = [
        ("name", "demo"),
        ("version", "1.0.0"),
        ("main", "./cjs/index.cjs"),
        ("module", "./esm/index.js"),
        ("types", "./esm/index.d.ts"),
    ]
    fields.extend(extra.items())
    return PackageManifest(fields)


def test_development_points_everything_at_sources(package_builder) -> None:
    package_builder.touch(SOURCES)
    manifest = _manifest()

    result = ManifestSynthesizer().synthesize(manifest, package_builder.config(), "development")

    assert result.mode is Mode.DEVELOPMENT
    assert manifest.get("main") == "./src/index.ts"
    assert manifest.get("module") == "./src/index.ts"
    assert manifest.get("types") == "./src/index.ts"
    exports = manifest.get("exports")
    assert list(exports) == [".", "./utils/format", "./utils", "./package.json"]
    assert exports["./utils"] == {
        "types": "./src/utils/index.ts",
        "import": "./src/utils/index.ts",
        "require": "./src/utils/index.ts",
    }
    assert exports["./package.json"] == "./package.json"
    assert manifest.keys() == ["name", "version", "main", "module", "types", "exports"]


def test_production_points_at_build_output(package_builder) -> None:
    package_builder.touch(SOURCES + BUILD_OUTPUTS)
    manifest = _manifest()

    ManifestSynthesizer().synthesize(manifest, package_builder.config(), Mode.PRODUCTION)

    assert manifest.get("main") == "./cjs/index.cjs"
    assert manifest.get("module") == "./esm/index.js"
    assert manifest.get("types") == "./esm/index.d.ts"
    root_export = manifest.get("exports")["."]
    assert list(root_export) == ["types", "import", "require"]
    assert root_export == {
        "types": "./esm/index.d.ts",
        "import": "./esm/index.js",
        "require": "./cjs/index.cjs",
    }
    assert manifest.get("exports")["./utils/format"]["require"] == "./cjs/utils/format.cjs"


def test_production_types_keeps_code_on_sources(package_builder) -> None:
    package_builder.touch(SOURCES + BUILD_OUTPUTS)
    manifest = _manifest()

    ManifestSynthesizer().synthesize(manifest, package_builder.config(), Mode.PRODUCTION_TYPES)

    assert manifest.get("main") == "./src/index.ts"
    assert manifest.get("types") == "./esm/index.d.ts"
    assert manifest.get("exports")["./utils"] == {
        "types": "./esm/utils/index.d.ts",
        "import": "./src/utils/index.ts",
        "require": "./src/utils/index.ts",
    }


def test_types_only_when_manifest_declares_them(package_builder) -> None:
    package_builder.touch(SOURCES)
    manifest = PackageManifest([("name", "demo"), ("main", "./cjs/index.cjs")])

    ManifestSynthesizer().synthesize(manifest, package_builder.config(), Mode.DEVELOPMENT)

    assert "types" not in manifest
    assert manifest.get("exports")["."] == {
        "import": "./src/index.ts",
        "require": "./src/index.ts",
    }


def test_synthesis_is_idempotent(package_builder) -> None:
    package_builder.touch(SOURCES + BUILD_OUTPUTS)
    config = package_builder.config()
    manifest = _manifest()
    synthesizer = ManifestSynthesizer()

    synthesizer.synthesize(manifest, config, Mode.PRODUCTION)
    first = manifest.dumps()
    synthesizer.synthesize(manifest, config, Mode.PRODUCTION)

    assert manifest.dumps() == first


def test_development_after_production_types_matches_fresh_development(package_builder) -> None:
    package_builder.touch(SOURCES + BUILD_OUTPUTS)
    config = package_builder.config()
    synthesizer = ManifestSynthesizer()

    fresh = _manifest()
    synthesizer.synthesize(fresh, config, Mode.DEVELOPMENT)
    coerced = _manifest()
    synthesizer.synthesize(coerced, config, Mode.PRODUCTION_TYPES)
    synthesizer.synthesize(coerced, config, Mode.DEVELOPMENT)

    assert coerced.dumps() == fresh.dumps()


def test_esm_only_package_with_mjs_sources(package_builder) -> None:
    package_builder.touch(["src/index.mjs", "src/helpers.mjs"])
    config = package_builder.config(cjs_enabled=False)
    manifest = PackageManifest(
        [("name", "demo"), ("type", "module"), ("module", "./esm/index.js")]
    )

    ManifestSynthesizer().synthesize(manifest, config, Mode.DEVELOPMENT)

    assert "main" not in manifest
    assert manifest.get("module") == "./src/index.mjs"
    assert manifest.get("exports") == {
        "./helpers": "./src/helpers.mjs",
        ".": "./src/index.mjs",
        "./package.json": "./package.json",
    }

    package_builder.touch(["esm/index.js", "esm/helpers.js"])
    ManifestSynthesizer().synthesize(manifest, config, Mode.PRODUCTION)

    assert manifest.get("module") == "./esm/index.js"
    assert manifest.get("exports")["."] == {"import": "./esm/index.js"}


def test_missing_root_index_removes_entry_points(package_builder) -> None:
    package_builder.touch(["src/a.ts", "src/b.ts"])
    manifest = _manifest()

    ManifestSynthesizer().synthesize(manifest, package_builder.config(), Mode.DEVELOPMENT)

    assert "main" not in manifest
    assert "module" not in manifest
    assert "types" not in manifest
    assert list(manifest.get("exports")) == ["./a", "./b", "./package.json"]


def test_bin_is_converted_per_mode(package_builder) -> None:
    package_builder.touch(["src/index.ts", "src/cli.ts", "cjs/index.cjs", "esm/index.js"])
    config = package_builder.config()
    manifest = PackageManifest(
        [("name", "demo"), ("main", "./cjs/index.cjs"), ("bin", {"demo": "./cjs/cli.cjs"})]
    )

    ManifestSynthesizer().synthesize(manifest, config, Mode.DEVELOPMENT)
    assert manifest.get("bin") == {"demo": "./src/cli.ts"}

    ManifestSynthesizer().synthesize(manifest, config, Mode.PRODUCTION)
    assert manifest.get("bin") == {"demo": "./cjs/cli.cjs"}


def test_pure_cli_package_gets_no_entry_points(package_builder) -> None:
    package_builder.touch(["src/index.ts", "src/commands/run.ts"])
    manifest = PackageManifest([("name", "demo-cli"), ("bin", "./esm/index.js")])

    result = ManifestSynthesizer().synthesize(
        manifest, package_builder.config(cjs_enabled=False), Mode.DEVELOPMENT
    )

    assert result.tree.pure_cli is True
    assert "main" not in manifest and "module" not in manifest
    assert manifest.get("bin") == "./src/index.ts"
    assert manifest.get("exports") == {".": "./src/index.ts", "./package.json": "./package.json"}


def test_resolve_formats(package_builder) -> None:
    library = PackageManifest([("name", "demo")])
    cli = PackageManifest([("name", "demo"), ("bin", "./esm/cli.js")])
    nothing = package_builder.config(cjs_enabled=False, esm_enabled=False)

    assert resolve_formats(package_builder.config(), library) == ("cjs", "esm")
    assert resolve_formats(package_builder.config(cjs_enabled=False), library) == ("esm",)
    assert resolve_formats(nothing, cli) == ("esm",)
    with pytest.raises(ConfigurationError, match="No build formats"):
        resolve_formats(nothing, library)


def test_unknown_mode_is_rejected(package_builder) -> None:
    package_builder.touch(SOURCES)

    with pytest.raises(ValueError, match="Unknown mode"):
        ManifestSynthesizer().synthesize(_manifest(), package_builder.config(), "staging")


def test_esm_only_production_drops_authored_main(package_builder) -> None:
    package_builder.touch(["src/index.ts", "esm/index.mjs", "esm/index.d.ts"])
    manifest = _manifest()

    ManifestSynthesizer().synthesize(
        manifest, package_builder.config(cjs_enabled=False), Mode.PRODUCTION
    )

    assert "main" not in manifest
    assert manifest.get("module") == "./esm/index.mjs"
    assert manifest.get("types") == "./esm/index.d.ts"


def test_configured_extension_order_breaks_ties(package_builder) -> None:
    package_builder.touch(["src/index.js", "src/index.ts"])
    config = package_builder.config(extensions=(".ts", ".js"))
    manifest = _manifest()

    ManifestSynthesizer().synthesize(manifest, config, Mode.DEVELOPMENT)

    assert manifest.get("main") == "./src/index.ts"
    assert manifest.get("module") == "./src/index.ts"


def test_production_without_declarations_warns_about_stale_types(
    package_builder, caplog
) -> None:
    package_builder.touch(["src/index.ts", "cjs/index.cjs", "esm/index.js"])
    manifest = _manifest()
    manifest.set("types", "./src/index.ts")

    with caplog.at_level("WARNING", logger="pkgsync"):
        ManifestSynthesizer().synthesize(manifest, package_builder.config(), Mode.PRODUCTION)

    assert manifest.get("types") == "./src/index.ts"
    assert "No index.d.ts in the build output; keeping types=./src/index.ts" in caplog.text
