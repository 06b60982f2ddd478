"""Runners for the external type checker and bundler."""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Sequence

from .config import BuildConfig
from .errors import ConfigurationError, PackageError
from .logging import get_logger
from .models import CJS, ESM

Runner = Callable[..., str]


def _default_runner(
    args: Iterable[str],
    *,
    cwd: Path,
    env: dict[str, str] | None = None,
    capture_output: bool = True,
) -> str:
    completed = subprocess.run(
        list(args),
        cwd=str(cwd),
        env=env,
        check=True,
        text=True,
        capture_output=capture_output,
    )
    if capture_output:
        return completed.stdout
    return ""


def _process_output(exc: subprocess.CalledProcessError) -> str:
    for stream in (exc.stderr, exc.output):
        if stream and str(stream).strip():
            return str(stream).strip()
    return ""


def _production_env() -> dict[str, str]:
    env = os.environ.copy()
    env["NODE_ENV"] = "production"
    return env


class TypeChecker:
    """Emits declaration files with ``tsc`` or ``tsgo``."""

    def __init__(self, runner: Runner | None = None) -> None:
        self._runner = runner or _default_runner
        self.logger = get_logger("toolchain")

    def command(self, config: BuildConfig, out_dir: str) -> List[str]:
        typescript = config.typescript
        return [
            typescript.runner,
            "--project",
            str(config.root / typescript.build_config_file),
            "--emitDeclarationOnly",
            "--noEmit",
            "false",
            "--outDir",
            out_dir,
            "--tsBuildInfoFile",
            str(config.root / typescript.build_cache_file),
        ]

    def compile(self, config: BuildConfig, formats: Sequence[str]) -> bool:
        """Compile declarations into the ESM (else CJS) directory.

        Returns False when there is no build tsconfig and compilation was skipped.
        """
        build_tsconfig = config.root / config.typescript.build_config_file
        if not build_tsconfig.exists():
            self.logger.warning(
                "%s not found, skipping TypeScript compilation", config.typescript.build_config_file
            )
            return False

        out_dirs = {fmt: config.format_dir(fmt) for fmt in formats}
        out_dir = out_dirs.get(ESM) or out_dirs.get(CJS)
        if not out_dir:
            raise ConfigurationError(
                "No output directory available for TypeScript compilation",
                ["Enable the esm or cjs build format"],
            )

        self.clear_cache(config)
        args = self.command(config, out_dir)
        self.logger.debug("Running: %s", " ".join(args))
        runner_name = config.typescript.runner
        try:
            self._runner(args, cwd=config.root, env=_production_env(), capture_output=True)
        except FileNotFoundError as exc:
            if runner_name == "tsgo":
                raise PackageError(
                    "TypeScript runner 'tsgo' not found. Install with: "
                    "npm install -g @typescript/native-preview\n"
                    "Or switch to 'tsc' in your pkgsync.yml",
                    str(config.root),
                ) from exc
            raise PackageError(
                f"Failed to run TypeScript compiler: {exc}", str(config.root)
            ) from exc
        except subprocess.CalledProcessError as exc:
            output = _process_output(exc)
            message = (
                f"TypeScript compilation failed:\n{output}"
                if output
                else f"TypeScript compilation failed with exit code {exc.returncode}"
            )
            raise PackageError(message, str(config.root)) from exc
        self.logger.info("TypeScript compilation completed")

        esm_dir, cjs_dir = out_dirs.get(ESM), out_dirs.get(CJS)
        if esm_dir and cjs_dir and esm_dir != cjs_dir:
            self.logger.debug("Copying %s -> %s", esm_dir, cjs_dir)
            try:
                shutil.copytree(config.root / esm_dir, config.root / cjs_dir, dirs_exist_ok=True)
            except OSError as exc:
                raise PackageError(
                    f"Could not copy type definitions to {cjs_dir}: {exc}", str(config.root)
                ) from exc
            self.logger.info("Copied type definitions to CJS output")
        return True

    def clear_cache(self, config: BuildConfig) -> None:
        cache = config.root / config.typescript.build_cache_file
        if cache.is_dir():
            shutil.rmtree(cache, ignore_errors=True)
        elif cache.exists():
            cache.unlink()
        else:
            return
        self.logger.debug("Cleared TS cache: %s", cache)


def purge_declarations(root: Path, directories: Iterable[str]) -> int:
    """Delete stale ``.d.ts`` files (and their maps) under the given build directories."""
    removed = 0
    for directory in directories:
        base = Path(root) / directory
        if not base.is_dir():
            continue
        for pattern in ("*.d.ts", "*.d.ts.map"):
            for path in base.rglob(pattern):
                if path.is_file():
                    path.unlink()
                    removed += 1
    if removed:
        get_logger("toolchain").debug("Removed %d stale declaration files", removed)
    return removed


class Bundler:
    """Invokes the configured bundler once per format, sequentially."""

    def __init__(self, runner: Runner | None = None) -> None:
        self._runner = runner or _default_runner
        self.logger = get_logger("toolchain")

    def command(self, config: BuildConfig, entries: Dict[str, str], fmt: str) -> List[str]:
        args = list(config.bundler.command)
        for name, path in entries.items():
            args.extend([f"--entry.{name}", path])
        args.extend(["--format", fmt, "--out-dir", str(config.root / config.format_dir(fmt))])
        args.extend(config.bundler.args_for(fmt))
        return args

    def bundle(self, config: BuildConfig, entries: Dict[str, str], formats: Sequence[str]) -> None:
        for fmt in formats:
            self.logger.info("Building %s format...", fmt)
            args = self.command(config, entries, fmt)
            self.logger.debug("Running: %s", " ".join(args))
            try:
                self._runner(args, cwd=config.root, env=_production_env(), capture_output=True)
            except FileNotFoundError as exc:
                raise PackageError(
                    f"Failed to build {fmt} format: bundler {args[0]!r} not found",
                    str(config.root),
                ) from exc
            except subprocess.CalledProcessError as exc:
                output = _process_output(exc) or f"exit code {exc.returncode}"
                raise PackageError(
                    f"Failed to build {fmt} format: {output}", str(config.root)
                ) from exc
            self.logger.info("%s build completed", fmt)


__all__ = ["Bundler", "Runner", "TypeChecker", "purge_declarations"]
