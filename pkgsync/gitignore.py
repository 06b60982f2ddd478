"""Managed build-artifacts block inside a package's .gitignore."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .logging import get_logger

GITIGNORE = ".gitignore"


class IgnoreSectionManager:
    """Owns one marker-delimited block; everything outside it is left alone."""

    START_MARKER = "# Build artifacts (auto-generated by pkgsync)"
    NOTICE = "# Do not edit this section manually - it will be overwritten"
    END_MARKER = "# End build artifacts"

    def __init__(self) -> None:
        self.logger = get_logger("gitignore")

    def render_block(self, entries: Iterable[str]) -> str:
        """Render the block for ``entries`` (sorted, de-duplicated, rooted with ``/``)."""
        names = sorted({entry.strip("/") for entry in entries if entry.strip("/")})
        lines = [self.START_MARKER, self.NOTICE, *(f"/{name}" for name in names), self.END_MARKER]
        return "\n".join(lines)

    def update(self, content: str, entries: Iterable[str]) -> str:
        """Return ``content`` with the managed block replaced or appended."""
        block = self.render_block(entries)
        if not content.strip():
            return f"{block}\n"

        span = self._find_block(content)
        if span is None:
            return f"{content.rstrip()}\n\n{block}\n"

        before, after = self._surrounding(content, span)
        lines = [*before]
        if before:
            lines.append("")
        lines.append(block)
        if after:
            lines.extend(["", *after])
        return _with_newline("\n".join(lines))

    def remove(self, content: str) -> str:
        """Return ``content`` without the managed block; unchanged when there is none."""
        span = self._find_block(content)
        if span is None:
            return content
        before, after = self._surrounding(content, span)
        lines = [*before]
        if before and after:
            lines.append("")
        lines.extend(after)
        return _with_newline("\n".join(lines))

    def read_entries(self, content: str) -> List[str]:
        """Names currently listed inside the managed block."""
        span = self._find_block(content)
        if span is None:
            return []
        start, end = span
        lines = content.split("\n")[start + 1 : end]
        return [line.strip().lstrip("/") for line in lines if line.strip().startswith("/")]

    def write(self, root: Path, entries: Iterable[str]) -> bool:
        """Update ``<root>/.gitignore``; returns True when the file changed."""
        entries = list(entries)
        if not entries:
            self.logger.debug("No build folders to add to %s", GITIGNORE)
            return False
        path = Path(root) / GITIGNORE
        existed = path.exists()
        try:
            current = path.read_text(encoding="utf-8") if existed else ""
            updated = self.update(current, entries)
            if updated == current:
                return False
            path.write_text(updated, encoding="utf-8")
        except OSError as exc:
            self.logger.warning("Could not update %s: %s", GITIGNORE, exc)
            return False

        count = len(set(entries))
        self.logger.info(
            "%s %s with %d build %s",
            "Updated" if existed else "Created",
            GITIGNORE,
            count,
            "directory" if count == 1 else "directories",
        )
        return True

    def clean(self, root: Path) -> bool:
        """Strip the managed block from ``<root>/.gitignore`` if present."""
        path = Path(root) / GITIGNORE
        if not path.exists():
            return False
        try:
            current = path.read_text(encoding="utf-8")
            updated = self.remove(current)
            if updated == current:
                return False
            path.write_text(updated, encoding="utf-8")
        except OSError as exc:
            self.logger.warning("Could not clean %s: %s", GITIGNORE, exc)
            return False
        self.logger.info("Cleaned %s build artifacts section", GITIGNORE)
        return True

    def current_entries(self, root: Path) -> List[str]:
        path = Path(root) / GITIGNORE
        if not path.exists():
            return []
        try:
            return self.read_entries(path.read_text(encoding="utf-8"))
        except OSError as exc:
            self.logger.warning("Could not read %s: %s", GITIGNORE, exc)
            return []

    def _find_block(self, content: str) -> Optional[Tuple[int, int]]:
        lines = [line.strip() for line in content.split("\n")]
        try:
            start = lines.index(self.START_MARKER)
            end = lines.index(self.END_MARKER, start + 1)
        except ValueError:
            return None
        return start, end

    @staticmethod
    def _surrounding(content: str, span: Tuple[int, int]) -> Tuple[List[str], List[str]]:
        lines = content.split("\n")
        before = lines[: span[0]]
        after = lines[span[1] + 1 :]
        while before and not before[-1].strip():
            before.pop()
        while after and not after[0].strip():
            after.pop(0)
        while after and not after[-1].strip():
            after.pop()
        return before, after


def _with_newline(text: str) -> str:
    return text if text.endswith("\n") else f"{text}\n"


__all__ = ["GITIGNORE", "IgnoreSectionManager"]
