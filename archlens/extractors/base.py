"""Base classes for language processor plugins."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence, Set, Tuple

from ..models import Dependency, InterfaceInfo, RepoManifest

IMPORTANT_COMMENT_MARKERS = ("TODO", "FIXME", "NOTE", "HACK")


class LanguageProcessor(ABC):
    """Contract for lexical extractors of a single language or file kind.

    Implementations scan text line by line with a fixed set of patterns. They
    never build a syntax tree and never fail on partial input: a line that
    does not match simply yields nothing.
    """

    @abstractmethod
    def supported_extensions(self) -> Set[str]:
        """Return file suffixes (without the dot) claimed by this processor."""

    @abstractmethod
    def extract_dependencies(self, content: str, path: Path) -> List[Dependency]:
        """Return dependency edges referenced by ``content``."""

    @abstractmethod
    def extract_interfaces(self, content: str, path: Path) -> List[InterfaceInfo]:
        """Return declared symbols found in ``content``."""

    @abstractmethod
    def determine_component_type(self, path: Path, content: str) -> str:
        """Classify the whole file into a single component tag."""

    @abstractmethod
    def is_important_line(self, line: str) -> bool:
        """Return True for declaration-level lines worth keeping in summaries."""

    @abstractmethod
    def language_name(self) -> str:
        """Display label for the language."""

    def prepare(self, manifest: RepoManifest) -> None:
        """Hook called once per scan before any file is extracted."""

    @property
    def name(self) -> str:
        return self.language_name().lower()


def iter_lines(content: str) -> Iterator[Tuple[int, str]]:
    """Yield ``(line_number, line)`` pairs with 1-based numbering."""
    for index, line in enumerate(content.splitlines()):
        yield index + 1, line


def extension_of(path: Path) -> str:
    return path.suffix.lower().lstrip(".")


def has_important_marker(line: str) -> bool:
    return any(marker in line for marker in IMPORTANT_COMMENT_MARKERS)


def doc_comment_above(
    lines: Sequence[str],
    index: int,
    *,
    comment_text: Callable[[str], Optional[str]],
    is_attribute: Callable[[str], bool],
) -> Optional[str]:
    """Collect the contiguous documentation block directly above ``lines[index]``.

    ``comment_text`` returns the cleaned text of a documentation line (possibly
    empty) or None when the line is not documentation. The walk stops at the
    first line that is neither documentation, an attribute nor blank.
    """
    collected: List[str] = []
    for position in range(index - 1, -1, -1):
        stripped = lines[position].strip()
        text = comment_text(stripped)
        if text is not None:
            if text:
                collected.insert(0, text)
            continue
        if not stripped or is_attribute(stripped):
            continue
        break
    if not collected:
        return None
    return " ".join(collected)


__all__ = [
    "IMPORTANT_COMMENT_MARKERS",
    "LanguageProcessor",
    "doc_comment_above",
    "extension_of",
    "has_important_marker",
    "iter_lines",
]
