"""Core data models shared across archlens components."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class FileMeta:
    """Metadata for an individual repository file."""

    path: str
    size: int
    language: Optional[str]
    role: str
    hash: str


@dataclass
class RepoManifest:
    """Normalized view of the repository for extractors and data sources."""

    root: str
    files: List[FileMeta]

    def paths(self) -> List[str]:
        return [file.path for file in self.files]


@dataclass(frozen=True)
class Dependency:
    """Directed edge from a source file to a named unit it references.

    Duplicates are expected: the same dependency referenced on several lines
    yields one record per usage site.
    """

    name: str
    source_path: str
    is_external: bool
    line_number: Optional[int] = None
    dependency_type: str = "import"
    version: Optional[str] = None

    def __post_init__(self) -> None:
        if self.line_number is not None and self.line_number < 1:
            raise ValueError("line_number is 1-based")


@dataclass
class ParameterInfo:
    """Formal parameter of an extracted callable."""

    name: str
    declared_type: str
    is_optional: bool = False
    description: Optional[str] = None


@dataclass
class InterfaceInfo:
    """One declared symbol; ``interface_type`` is an open tag such as ``abstract_method``."""

    name: str
    interface_type: str
    visibility: str
    parameters: List[ParameterInfo] = field(default_factory=list)
    return_type: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.interface_type or not self.interface_type.strip():
            raise ValueError("interface_type must be a non-empty tag")


@dataclass
class CodeInsight:
    """Everything the extraction layer learned about a single file."""

    path: str
    language: str
    component_type: str
    dependencies: List[Dependency] = field(default_factory=list)
    interfaces: List[InterfaceInfo] = field(default_factory=list)
    important_lines: List[str] = field(default_factory=list)

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)


def insight_from_payload(payload: Dict[str, Any]) -> CodeInsight:
    """Rebuild a :class:`CodeInsight` from :meth:`CodeInsight.to_payload` output."""
    dependencies = [Dependency(**item) for item in payload.get("dependencies", [])]
    interfaces = []
    for item in payload.get("interfaces", []):
        data = dict(item)
        params = [ParameterInfo(**param) for param in data.pop("parameters", [])]
        interfaces.append(InterfaceInfo(parameters=params, **data))
    return CodeInsight(
        path=payload["path"],
        language=payload["language"],
        component_type=payload["component_type"],
        dependencies=dependencies,
        interfaces=interfaces,
        important_lines=list(payload.get("important_lines", [])),
    )
