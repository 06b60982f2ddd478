"""Error types raised by pkgsync components."""

from __future__ import annotations

from typing import Iterable, List, Optional


class PkgsyncError(RuntimeError):
    """Base class for errors surfaced at the command boundary."""


class ConfigurationError(PkgsyncError):
    """Raised for invalid or ambiguous configuration, with suggested fixes."""

    def __init__(self, message: str, suggestions: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.suggestions: List[str] = list(suggestions)


class PackageError(PkgsyncError):
    """Raised for I/O failures, malformed manifests or failed build steps."""

    def __init__(self, message: str, package_path: Optional[str] = None) -> None:
        super().__init__(message)
        self.package_path = package_path


__all__ = ["ConfigurationError", "PackageError", "PkgsyncError"]
