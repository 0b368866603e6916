"""Named data sources and their resolution into per-agent bundles."""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from ..integrations.local_docs import LocalDocsProcessor
from ..logging import get_logger
from .memory import MemoryScope

if TYPE_CHECKING:  # pragma: no cover - import cycle guard
    from ..context import GeneratorContext

logger = get_logger("sources")

_README_CANDIDATES = ("README.md", "README.rst", "README.txt", "README", "readme.md")
_MAX_README_CHARS = 20000


class DataSource(str, Enum):
    """Artifacts produced outside of the research agents."""

    PROJECT_STRUCTURE = "project_structure"
    CODE_INSIGHTS = "code_insights"
    DEPENDENCY_ANALYSIS = "dependency_analysis"
    README_CONTENT = "readme_content"
    CONFLUENCE_PAGES = "confluence_pages"
    LOCAL_DOCS = "local_docs"

    @property
    def bundle_key(self) -> str:
        return self.value


@dataclass(frozen=True)
class MemorySource:
    """Another agent's committed output, addressed by memory scope and key."""

    scope: str
    key: str

    @property
    def bundle_key(self) -> str:
        return f"{self.scope}.{self.key}"


SourceRef = Union[DataSource, MemorySource]


@dataclass(frozen=True)
class AgentDataConfig:
    """Input contract of an agent: the sets of sources it must and may read."""

    required_sources: FrozenSet[SourceRef] = frozenset()
    optional_sources: FrozenSet[SourceRef] = frozenset()

    def __post_init__(self) -> None:
        object.__setattr__(self, "required_sources", frozenset(self.required_sources))
        object.__setattr__(self, "optional_sources", frozenset(self.optional_sources))

    def all_sources(self) -> FrozenSet[SourceRef]:
        return self.required_sources | self.optional_sources

    def memory_sources(self) -> FrozenSet[MemorySource]:
        return frozenset(source for source in self.all_sources() if isinstance(source, MemorySource))


@dataclass
class ResolvedBundle:
    """Materialised inputs for one agent, keyed by source."""

    values: Dict[str, Any] = field(default_factory=dict)
    missing_required: List[str] = field(default_factory=list)
    missing_optional: List[str] = field(default_factory=list)
    source_files: List[str] = field(default_factory=list)

    @property
    def blocked(self) -> bool:
        return bool(self.missing_required)

    def serialize(self) -> str:
        """Canonical JSON of the resolved values; equal bundles serialise identically."""
        return json.dumps(self.values, sort_keys=True, separators=(",", ":"), default=str)


class DataSourceAggregator:
    """Resolves declared sources against a run context.

    Each resolver is a pure read of the context, so all sources of a bundle are
    resolved concurrently.
    """

    def __init__(self, context: "GeneratorContext", *, max_workers: int = 4) -> None:
        self.context = context
        self.max_workers = max(1, max_workers)
        self._resolvers: Dict[DataSource, Callable[[], Tuple[Any, List[str]]]] = {
            DataSource.PROJECT_STRUCTURE: self._project_structure,
            DataSource.CODE_INSIGHTS: self._code_insights,
            DataSource.DEPENDENCY_ANALYSIS: self._dependency_analysis,
            DataSource.README_CONTENT: self._readme_content,
            DataSource.CONFLUENCE_PAGES: self._external_knowledge,
            DataSource.LOCAL_DOCS: self._local_docs,
        }

    def resolve(self, config: AgentDataConfig) -> ResolvedBundle:
        required = _sorted_sources(config.required_sources)
        optional = _sorted_sources(config.optional_sources - config.required_sources)
        ordered = [*required, *optional]

        if not ordered:
            return ResolvedBundle()

        workers = min(self.max_workers, len(ordered))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="archlens-sources") as pool:
            results = list(pool.map(self._resolve_one, ordered))

        bundle = ResolvedBundle()
        required_set = set(required)
        for source, (value, files) in zip(ordered, results):
            if _is_missing(value):
                target = bundle.missing_required if source in required_set else bundle.missing_optional
                target.append(source.bundle_key)
                continue
            bundle.values[source.bundle_key] = value
            bundle.source_files.extend(files)

        if bundle.missing_optional:
            logger.debug("Optional sources unavailable: %s", ", ".join(bundle.missing_optional))
        if bundle.blocked:
            logger.debug("Required sources unavailable: %s", ", ".join(bundle.missing_required))
        return bundle

    def _resolve_one(self, source: SourceRef) -> Tuple[Any, List[str]]:
        try:
            if isinstance(source, MemorySource):
                return self.context.get_from_memory(source.scope, source.key), []
            return self._resolvers[source]()
        except Exception as exc:
            # An unreadable source is reported as missing, never propagated.
            logger.warning("Unable to resolve source %s: %s", source.bundle_key, exc)
            return None, []

    # ------------------------------------------------------------------
    # Resolvers

    def _project_structure(self) -> Tuple[Any, List[str]]:
        return self.context.get_from_memory(MemoryScope.PREPROCESS, DataSource.PROJECT_STRUCTURE.value), []

    def _code_insights(self) -> Tuple[Any, List[str]]:
        return self.context.get_from_memory(MemoryScope.PREPROCESS, DataSource.CODE_INSIGHTS.value), []

    def _dependency_analysis(self) -> Tuple[Any, List[str]]:
        return self.context.get_from_memory(MemoryScope.PREPROCESS, DataSource.DEPENDENCY_ANALYSIS.value), []

    def _readme_content(self) -> Tuple[Any, List[str]]:
        root = Path(self.context.config.root)
        for name in _README_CANDIDATES:
            candidate = root / name
            if candidate.is_file():
                text = candidate.read_text(encoding="utf-8", errors="replace")
                # The text itself is fingerprinted, so no mtime tracking is needed.
                return text[:_MAX_README_CHARS], []
        return None, []

    def _external_knowledge(self) -> Tuple[Any, List[str]]:
        knowledge = self.context.load_external_knowledge()
        return knowledge, self.context.knowledge.source_files() if knowledge else []

    def _local_docs(self) -> Tuple[Any, List[str]]:
        docs_config = self.context.knowledge.local_docs_config
        if docs_config is None or not docs_config.enabled:
            return None, []
        metadata = self.context.knowledge.load_metadata()
        if metadata is None or not metadata.documents:
            return None, []
        return (
            LocalDocsProcessor.format_for_llm(metadata.documents),
            [doc.file_path for doc in metadata.documents],
        )


def _sorted_sources(sources: Iterable[SourceRef]) -> List[SourceRef]:
    return sorted(sources, key=lambda source: source.bundle_key)


def _is_missing(value: Optional[Any]) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, dict, tuple)) and not value:
        return True
    return False


__all__ = [
    "AgentDataConfig",
    "DataSource",
    "DataSourceAggregator",
    "MemorySource",
    "ResolvedBundle",
    "SourceRef",
]
