"""Glob and regex matching for ignore patterns."""

from __future__ import annotations

import re
from fnmatch import fnmatchcase
from typing import Iterable, List, Optional


def matches_any(path: str, patterns: Iterable[str]) -> bool:
    """Return True when the path matches any glob or ``/regex/`` pattern."""
    return any(pattern_matches(path, pattern) for pattern in patterns)


def pattern_matches(path: str, pattern: str) -> bool:
    """Match a slash-separated relative path against one pattern.

    Patterns wrapped in slashes (``/internal/``) are regular expressions
    searched anywhere in the path. Everything else is a glob where ``**/``
    spans zero or more leading directories and a trailing ``/**`` matches
    the directory itself as well as anything beneath it.
    """
    normalized = path.replace("\\", "/").strip("/")
    expression = regex_body(pattern)
    if expression is not None:
        return re.search(expression, normalized) is not None

    pattern = pattern.strip()
    if not pattern:
        return False
    if pattern.endswith("/**"):
        prefix = pattern[:-3]
        parts = normalized.split("/")
        return any(
            pattern_matches("/".join(parts[:index]), prefix)
            for index in range(1, len(parts) + 1)
        )
    if pattern.startswith("**/"):
        rest = pattern[3:]
        parts = normalized.split("/")
        return any(
            pattern_matches("/".join(parts[index:]), rest) for index in range(len(parts))
        )
    return fnmatchcase(normalized, pattern)


def regex_body(pattern: str) -> Optional[str]:
    """The expression inside a ``/regex/`` pattern, or None for a glob."""
    if len(pattern) > 2 and pattern.startswith("/") and pattern.endswith("/"):
        return pattern[1:-1]
    return None


def invalid_patterns(patterns: Iterable[str]) -> List[str]:
    """Describe every ``/regex/`` pattern that does not compile."""
    problems: List[str] = []
    for pattern in patterns:
        expression = regex_body(pattern)
        if expression is None:
            continue
        try:
            re.compile(expression)
        except re.error as exc:
            problems.append(f"invalid regular expression {pattern!r}: {exc}")
    return problems


def strip_source_prefix(patterns: Iterable[str], source_dir: str) -> List[str]:
    """Drop a leading ``src/`` or ``./src/`` so patterns read as if inside the source tree."""
    prefixes = (f"{source_dir}/", f"./{source_dir}/")
    normalized: List[str] = []
    for pattern in patterns:
        for prefix in prefixes:
            if pattern.startswith(prefix):
                pattern = pattern[len(prefix):]
                break
        normalized.append(pattern)
    return normalized


__all__ = [
    "invalid_patterns",
    "matches_any",
    "pattern_matches",
    "regex_body",
    "strip_source_prefix",
]
