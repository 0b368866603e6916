"""Per-run context threaded through extraction, data sources and agents."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import ArchLensConfig
from .extractors import ProcessorRegistry, build_registry
from .extractors.preprocess import CodeInsightExtractor, summarize_dependencies
from .integrations.knowledge_sync import KnowledgeSyncer
from .logging import get_logger
from .models import CodeInsight, RepoManifest
from .repo_scanner import RepoScanner
from .research.memory import Memory, MemoryScope
from .research.sources import DataSource
from .stores.cache import CacheManager

logger = get_logger("context")

_STRUCTURE_FILE_LIMIT = 500


@dataclass
class GeneratorContext:
    """Everything one pipeline run shares; constructed explicitly, never global."""

    config: ArchLensConfig
    manifest: RepoManifest
    registry: ProcessorRegistry
    reasoning: Any
    memory: Memory = field(default_factory=Memory)
    cache: CacheManager = field(default_factory=lambda: CacheManager(None, enabled=False))
    knowledge: KnowledgeSyncer = field(init=False)
    insights: List[CodeInsight] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.knowledge = KnowledgeSyncer(self.config)

    @classmethod
    def build(
        cls,
        root: Path | str,
        config: ArchLensConfig,
        reasoning: Any,
        *,
        use_cache: bool = True,
    ) -> "GeneratorContext":
        """Scan ``root``, extract insights and seed the preprocessing scope."""
        manifest = RepoScanner().scan(str(root), config)
        extraction = config.extraction
        registry = build_registry(
            extraction.enabled_processors or None,
            important_line_limit=extraction.important_line_limit,
        )
        cache_enabled = use_cache and config.research.cache_enabled
        context = cls(
            config=config,
            manifest=manifest,
            registry=registry,
            reasoning=reasoning,
            cache=CacheManager(config.internal_path / "cache", enabled=cache_enabled),
        )
        context.insights = CodeInsightExtractor(registry, max_workers=extraction.max_workers).extract(manifest)
        context.store_preprocessing()
        return context

    def store_preprocessing(self) -> None:
        self.store_to_memory(
            MemoryScope.PREPROCESS, DataSource.PROJECT_STRUCTURE.value, project_structure(self.manifest)
        )
        self.store_to_memory(
            MemoryScope.PREPROCESS,
            DataSource.CODE_INSIGHTS.value,
            [insight.to_payload() for insight in self.insights],
        )
        self.store_to_memory(
            MemoryScope.PREPROCESS, DataSource.DEPENDENCY_ANALYSIS.value, summarize_dependencies(self.insights)
        )

    # ------------------------------------------------------------------
    # Memory helpers

    def store_to_memory(self, scope: str, key: str, value: Any) -> None:
        self.memory.store(scope, key, value)

    def get_from_memory(self, scope: str, key: str, default: Any = None) -> Any:
        return self.memory.get(scope, key, default)

    def has_memory_data(self, scope: str, key: str) -> bool:
        return self.memory.has(scope, key)

    def list_memory_keys(self, scope: str) -> List[str]:
        return self.memory.list_keys(scope)

    def get_memory_stats(self) -> Dict[str, int]:
        return self.memory.usage_stats()

    # ------------------------------------------------------------------
    # External knowledge

    def load_external_knowledge(self) -> Optional[str]:
        knowledge = self.knowledge.load_cached_knowledge()
        if knowledge is None:
            logger.debug("No external knowledge cache found (%s)", self.config.target_language)
        else:
            logger.debug("Loaded external knowledge base (%s)", self.config.target_language)
        return knowledge

    def knowledge_synced_at(self) -> Optional[datetime]:
        return self.knowledge.last_synced()


def project_structure(manifest: RepoManifest) -> Dict[str, Any]:
    """Summarise a manifest by language, role and top-level directory."""
    languages = Counter(file.language or "unknown" for file in manifest.files)
    roles = Counter(file.role for file in manifest.files)
    directories = Counter(
        file.path.split("/", 1)[0] if "/" in file.path else "." for file in manifest.files
    )
    paths = manifest.paths()
    return {
        "project_name": Path(manifest.root).name,
        "file_count": len(manifest.files),
        "languages": dict(sorted(languages.items())),
        "roles": dict(sorted(roles.items())),
        "top_level_directories": dict(sorted(directories.items())),
        "files": paths[:_STRUCTURE_FILE_LIMIT],
        "files_truncated": len(paths) > _STRUCTURE_FILE_LIMIT,
    }


__all__ = ["GeneratorContext", "project_structure"]
