"""Configuration loading for archlens (.archlens.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".archlens.yml"


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class LLMConfig:
    """Reasoning service settings from .archlens.yml."""

    runner: Optional[str] = None
    model: Optional[str] = None
    executable: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    request_timeout: Optional[float] = None


@dataclass
class ExtractionConfig:
    """Language processor enablement and extraction limits."""

    enabled_processors: List[str] = field(default_factory=list)
    exclude_paths: List[str] = field(default_factory=list)
    max_workers: int = 8
    important_line_limit: int = 40


@dataclass
class ResearchConfig:
    """Research agent scheduling options."""

    max_workers: int = 4
    cache_enabled: bool = True
    agents: List[str] = field(default_factory=list)


@dataclass
class LocalDocsConfig:
    """Local documentation files ingested as external knowledge."""

    enabled: bool = True
    pdf_paths: List[str] = field(default_factory=list)
    markdown_paths: List[str] = field(default_factory=list)
    text_paths: List[str] = field(default_factory=list)
    cache_dir: Optional[Path] = None
    watch_for_changes: bool = True


@dataclass
class KnowledgeConfig:
    """External knowledge integrations."""

    local_docs: Optional[LocalDocsConfig] = None


@dataclass
class ArchLensConfig:
    """Represents the high-level settings defined in .archlens.yml."""

    root: Path
    internal_dir: str = ".archlens"
    target_language: str = "English"
    llm: Optional[LLMConfig] = None
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    research: ResearchConfig = field(default_factory=ResearchConfig)
    knowledge: KnowledgeConfig = field(default_factory=KnowledgeConfig)
    exclude_paths: List[str] = field(default_factory=list)

    @property
    def internal_path(self) -> Path:
        return self.root / self.internal_dir


def load_config(config_path: Path) -> ArchLensConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return ArchLensConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    llm_data = _as_dict(data.get("llm"))
    llm = None
    if llm_data:
        llm = LLMConfig(
            runner=_as_str(llm_data.get("runner")),
            model=_as_str(llm_data.get("model")),
            executable=_as_str(llm_data.get("executable")),
            temperature=_as_float(llm_data.get("temperature")),
            max_tokens=_as_int(llm_data.get("max_tokens")),
            base_url=_as_str(llm_data.get("base_url")),
            api_key=_as_str(llm_data.get("api_key")),
            request_timeout=_as_float(llm_data.get("request_timeout")),
        )

    extraction = ExtractionConfig()
    extraction_data = _as_dict(data.get("extraction"))
    if extraction_data:
        extraction.enabled_processors = _as_str_list(extraction_data.get("processors"))
        extraction.exclude_paths = _as_str_list(extraction_data.get("exclude_paths"))
        workers = _as_int(extraction_data.get("max_workers"))
        if workers is not None and workers > 0:
            extraction.max_workers = workers
        limit = _as_int(extraction_data.get("important_line_limit"))
        if limit is not None and limit >= 0:
            extraction.important_line_limit = limit

    research = ResearchConfig()
    research_data = _as_dict(data.get("research"))
    if research_data:
        workers = _as_int(research_data.get("max_workers"))
        if workers is not None and workers > 0:
            research.max_workers = workers
        cache_enabled = _as_bool(research_data.get("cache"))
        if cache_enabled is not None:
            research.cache_enabled = cache_enabled
        research.agents = _as_str_list(research_data.get("agents"))

    knowledge = KnowledgeConfig()
    knowledge_data = _as_dict(data.get("knowledge"))
    local_docs_data = _as_dict(knowledge_data.get("local_docs"))
    if local_docs_data:
        cache_dir_str = _as_str(local_docs_data.get("cache_dir"))
        enabled = _as_bool(local_docs_data.get("enabled"))
        watch = _as_bool(local_docs_data.get("watch_for_changes"))
        knowledge.local_docs = LocalDocsConfig(
            enabled=True if enabled is None else enabled,
            pdf_paths=_resolve_paths(root, local_docs_data.get("pdf_paths")),
            markdown_paths=_resolve_paths(root, local_docs_data.get("markdown_paths")),
            text_paths=_resolve_paths(root, local_docs_data.get("text_paths")),
            cache_dir=root / cache_dir_str if cache_dir_str else None,
            watch_for_changes=True if watch is None else watch,
        )

    return ArchLensConfig(
        root=root,
        internal_dir=_as_str(data.get("internal_dir")) or ".archlens",
        target_language=_as_str(data.get("target_language")) or "English",
        llm=llm,
        extraction=extraction,
        research=research,
        knowledge=knowledge,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _resolve_paths(root: Path, value: Any) -> List[str]:
    paths: List[str] = []
    for item in _as_str_list(value):
        candidate = Path(item).expanduser()
        if not candidate.is_absolute():
            candidate = root / candidate
        paths.append(str(candidate))
    return paths


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []
