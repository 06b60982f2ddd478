"""Core data models shared across pkgsync components."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

CJS = "cjs"
ESM = "esm"
FORMAT_ORDER: Tuple[str, ...] = (CJS, ESM)

# Consumers resolve conditions in this order; types must come first.
CONDITION_ORDER: Tuple[str, ...] = ("types", "import", "require")

PACKAGE_JSON = "package.json"


class Mode(str, Enum):
    """Target orientation of a synthesized manifest."""

    DEVELOPMENT = "development"
    PRODUCTION = "production"
    PRODUCTION_TYPES = "production-types"

    @classmethod
    def parse(cls, value: "str | Mode") -> "Mode":
        if isinstance(value, Mode):
            return value
        try:
            return cls(value)
        except ValueError:
            choices = ", ".join(mode.value for mode in cls)
            raise ValueError(f"Unknown mode {value!r}; expected one of {choices}") from None


@dataclass
class SourceEntry:
    """One file or directory under the source tree."""

    path: str
    is_dir: bool
    build_eligible: bool
    export_eligible: bool
    children: List["SourceEntry"] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclass
class SourceTree:
    """Scanned source directory; entries are sorted by name at every level."""

    root: Path
    entries: List[SourceEntry]
    pure_cli: bool = False

    def walk(self) -> Iterator[SourceEntry]:
        stack = list(reversed(self.entries))
        while stack:
            entry = stack.pop()
            yield entry
            stack.extend(reversed(entry.children))


class PackageManifest:
    """Ordered view over a parsed package.json.

    Setting an existing key keeps its position; new keys are appended.
    Keys this system does not own are never touched.
    """

    def __init__(self, items: Optional[List[Tuple[str, Any]]] = None) -> None:
        self._keys: List[str] = []
        self._values: Dict[str, Any] = {}
        for key, value in items or []:
            self.set(key, value)

    @classmethod
    def from_json(cls, text: str) -> "PackageManifest":
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("package.json must contain a JSON object")
        return cls(list(data.items()))

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        if key not in self._values:
            self._keys.append(key)
        self._values[key] = value

    def remove(self, key: str) -> None:
        if key in self._values:
            self._keys.remove(key)
            del self._values[key]

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def keys(self) -> List[str]:
        return list(self._keys)

    def items(self) -> List[Tuple[str, Any]]:
        return [(key, self._values[key]) for key in self._keys]

    def to_dict(self) -> Dict[str, Any]:
        return {key: self._values[key] for key in self._keys}

    def copy(self) -> "PackageManifest":
        return PackageManifest(json.loads(json.dumps(self.items())))

    def dumps(self) -> str:
        return serialize_json(self.to_dict())

    @property
    def name(self) -> str:
        return str(self._values.get("name", ""))

    @property
    def is_binary(self) -> bool:
        return self._values.get("bin") is not None

    @property
    def is_pure_cli(self) -> bool:
        return self.is_binary and not self._values.get("main") and not self._values.get("module")

    @property
    def declares_types(self) -> bool:
        return "types" in self._values


def serialize_json(data: Any) -> str:
    """Serialize with two-space indent and a trailing newline."""
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


__all__ = [
    "CJS",
    "CONDITION_ORDER",
    "ESM",
    "FORMAT_ORDER",
    "Mode",
    "PACKAGE_JSON",
    "PackageManifest",
    "SourceEntry",
    "SourceTree",
    "serialize_json",
]
