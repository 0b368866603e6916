"""Runs language processors across a repository manifest."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional

from ..logging import get_logger
from ..models import CodeInsight, FileMeta, RepoManifest
from . import ProcessorRegistry

logger = get_logger("preprocess")

_MAX_FILE_BYTES = 2 * 1024 * 1024


class CodeInsightExtractor:
    """Extracts per-file insights in parallel; files share no mutable state."""

    def __init__(self, registry: ProcessorRegistry, *, max_workers: int = 8) -> None:
        self.registry = registry
        self.max_workers = max(1, max_workers)

    def extract(self, manifest: RepoManifest) -> List[CodeInsight]:
        root = Path(manifest.root)
        supported = self.registry.supported_extensions()
        candidates = [
            file for file in manifest.files if Path(file.path).suffix.lower().lstrip(".") in supported
        ]
        skipped = len(manifest.files) - len(candidates)
        if skipped:
            logger.info("Skipping %d files without a registered processor", skipped)

        self.registry.prepare(manifest)
        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="archlens-extract") as pool:
            results = list(pool.map(lambda file: self._extract_file(root, file), candidates))

        insights = [insight for insight in results if insight is not None]
        insights.sort(key=lambda insight: insight.path)
        logger.info("Extracted insights from %d of %d files", len(insights), len(manifest.files))
        return insights

    def _extract_file(self, root: Path, file: FileMeta) -> Optional[CodeInsight]:
        if file.size > _MAX_FILE_BYTES:
            logger.debug("Skipping %s: %d bytes exceeds extraction limit", file.path, file.size)
            return None
        try:
            raw = (root / file.path).read_bytes()
        except OSError as exc:
            logger.debug("Unable to read %s: %s", file.path, exc)
            return None
        if b"\0" in raw[:8192]:
            logger.debug("Skipping binary file %s", file.path)
            return None
        content = raw.decode("utf-8", errors="replace").lstrip("\ufeff")
        return self.registry.extract(file.path, content)


def summarize_dependencies(insights: List[CodeInsight]) -> Dict[str, object]:
    """Aggregate dependency edges into internal/external usage counts."""
    external: Dict[str, int] = {}
    internal: Dict[str, int] = {}
    by_type: Dict[str, int] = {}
    for insight in insights:
        for dependency in insight.dependencies:
            bucket = external if dependency.is_external else internal
            bucket[dependency.name] = bucket.get(dependency.name, 0) + 1
            by_type[dependency.dependency_type] = by_type.get(dependency.dependency_type, 0) + 1
    return {
        "external": dict(sorted(external.items(), key=lambda item: (-item[1], item[0]))),
        "internal": dict(sorted(internal.items(), key=lambda item: (-item[1], item[0]))),
        "by_type": dict(sorted(by_type.items())),
        "files": len(insights),
    }


__all__ = ["CodeInsightExtractor", "summarize_dependencies"]
