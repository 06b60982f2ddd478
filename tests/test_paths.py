"""Tests for pkgsync.paths."""

from __future__ import annotations

from pkgsync.config import BuildConfig
from pkgsync.models import Mode
from pkgsync.paths import convert_bin, ensure_relative, join, remove_ext, to_build, to_source
from pkgsync.resolver import ExtensionResolver


def test_helpers_normalize_paths() -> None:
    assert ensure_relative("src/index.ts") == "./src/index.ts"
    assert ensure_relative("/src/index.ts") == "./src/index.ts"
    assert ensure_relative("./src/index.ts") == "./src/index.ts"
    assert ensure_relative("src\\utils\\index.ts") == "./src/utils/index.ts"
    assert remove_ext("utils/format.test.ts") == "utils/format.test"
    assert remove_ext("utils/format") == "utils/format"
    assert join("esm/", "/utils", "", "index") == "esm/utils/index"


def test_to_build_prefers_cjs(package_builder) -> None:
    config = package_builder.config()

    assert to_build("./src/utils/helper.ts", config) == "./cjs/utils/helper.cjs"
    assert to_build("src/index.mts", config) == "./cjs/index.cjs"


def test_to_build_uses_esm_when_cjs_disabled(package_builder) -> None:
    config = package_builder.config(cjs_enabled=False)

    assert to_build("./src/utils/helper.ts", config) == "./esm/utils/helper.js"


def test_to_build_leaves_foreign_paths_alone(package_builder) -> None:
    config = package_builder.config()

    assert to_build("lib/cli.js", config) == "./lib/cli.js"
    assert to_build("", config) == ""


def test_to_source_probes_real_extension(package_builder) -> None:
    package_builder.touch(["src/utils/helper.ts", "src/cli.mts"])
    config = package_builder.config()
    resolver = ExtensionResolver(config)

    assert to_source("./cjs/utils/helper.cjs", config, resolver) == "./src/utils/helper.ts"
    assert to_source("./esm/cli.js", config, resolver) == "./src/cli.mts"
    assert to_source("./esm/missing.js", config, resolver) == "./src/missing.js"
    assert to_source("./bin/run.js", config, resolver) == "./bin/run.js"


def test_source_build_round_trip(package_builder) -> None:
    sources = ["src/index.ts", "src/cli.mts", "src/utils/format.tsx", "src/legacy.cjs"]
    package_builder.touch(sources)
    config = package_builder.config()
    resolver = ExtensionResolver(config)

    for source in sources:
        path = f"./{source}"
        assert to_source(to_build(path, config), config, resolver) == path


def test_convert_bin_follows_mode(package_builder) -> None:
    package_builder.touch(["src/cli.ts", "src/admin.ts"])
    config = package_builder.config()
    resolver = ExtensionResolver(config)
    bin_field = {"demo": "./cjs/cli.cjs", "demo-admin": "./esm/admin.js"}

    assert convert_bin(bin_field, Mode.DEVELOPMENT, config, resolver) == {
        "demo": "./src/cli.ts",
        "demo-admin": "./src/admin.ts",
    }
    assert convert_bin("./src/cli.ts", Mode.PRODUCTION, config, resolver) == "./cjs/cli.cjs"
    assert convert_bin("./src/cli.ts", Mode.PRODUCTION, config, resolver, ["esm"]) == "./esm/cli.js"
    assert convert_bin(None, Mode.PRODUCTION, config, resolver) is None
