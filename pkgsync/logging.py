"""Logging utilities for pkgsync commands."""

from __future__ import annotations

import logging
import traceback
from pathlib import Path

from .errors import ConfigurationError, PackageError

_LOGGER_NAME = "pkgsync"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the pkgsync hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Configure root logger for pkgsync with console output and optional file sink."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when CLI is invoked multiple times.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[pkgsync] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


def format_error(exc: BaseException, *, detailed: bool = True) -> str:
    """Render an error as a human-readable diagnostic block."""
    if isinstance(exc, ConfigurationError):
        lines = ["Configuration error:", f"  {exc}"]
        if exc.suggestions:
            lines.append("Suggestions to fix this:")
            lines.extend(f"  - {suggestion}" for suggestion in exc.suggestions)
    elif isinstance(exc, PackageError):
        lines = ["Package error:", f"  {exc}"]
        if exc.package_path:
            lines.append(f"  Package: {exc.package_path}")
    else:
        lines = ["Unexpected error:", f"  {exc}"]

    if detailed and exc.__traceback__ is not None:
        lines.append("Full error details:")
        lines.append(
            "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)).rstrip()
        )
    return "\n".join(lines)


def log_fatal_error(
    exc: BaseException, context: str | None = None, *, logger: logging.Logger | None = None
) -> None:
    """Log an error that aborts the command, always with full details."""
    log = logger or get_logger()
    if context:
        log.error(context)
    log.error(format_error(exc, detailed=True))


def log_non_fatal_error(
    exc: BaseException,
    context: str | None = None,
    *,
    verbose: bool = False,
    logger: logging.Logger | None = None,
) -> None:
    """Log a recoverable error as a one-line summary unless verbose output is on."""
    log = logger or get_logger()
    summary = f"{context}: {exc}" if context else str(exc)
    if verbose:
        log.warning(summary)
        log.debug(format_error(exc, detailed=True))
    else:
        log.warning("%s (use --verbose to see full error details)", summary)


__all__ = [
    "configure_logging",
    "format_error",
    "get_logger",
    "log_fatal_error",
    "log_non_fatal_error",
]
