"""Language processor plugins, discovery and extension-based dispatch."""

from __future__ import annotations

from importlib import metadata
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set

from ..logging import get_logger
from ..models import CodeInsight, RepoManifest
from .base import LanguageProcessor, extension_of
from .csharp import CSharpProcessor
from .python import PythonProcessor

_ENTRY_POINT_GROUP = "archlens.processors"

_BUILTIN_FACTORIES: dict[str, Callable[[], LanguageProcessor]] = {
    "csharp": CSharpProcessor,
    "python": PythonProcessor,
}

logger = get_logger("extractors")


class ProcessorRegistry:
    """Maps file extensions to processors; the first processor registered for an extension wins."""

    def __init__(
        self,
        processors: Iterable[LanguageProcessor] = (),
        *,
        important_line_limit: int = 40,
    ) -> None:
        self._processors: List[LanguageProcessor] = []
        self._by_extension: Dict[str, LanguageProcessor] = {}
        self.important_line_limit = important_line_limit
        for processor in processors:
            self.register(processor)

    def register(self, processor: LanguageProcessor) -> None:
        if not isinstance(processor, LanguageProcessor):
            raise TypeError("Processors must implement LanguageProcessor")
        self._processors.append(processor)
        for extension in sorted(processor.supported_extensions()):
            key = extension.lower().lstrip(".")
            existing = self._by_extension.get(key)
            if existing is not None:
                logger.warning(
                    "Extension .%s already handled by %s; ignoring claim from %s",
                    key,
                    existing.language_name(),
                    processor.language_name(),
                )
                continue
            self._by_extension[key] = processor

    @property
    def processors(self) -> List[LanguageProcessor]:
        return list(self._processors)

    def supported_extensions(self) -> Set[str]:
        return set(self._by_extension)

    def processor_for(self, path: Path | str) -> Optional[LanguageProcessor]:
        return self._by_extension.get(extension_of(Path(path)))

    def prepare(self, manifest: RepoManifest) -> None:
        for processor in self._processors:
            processor.prepare(manifest)

    def extract(self, path: Path | str, content: str) -> Optional[CodeInsight]:
        """Run every contract operation for ``path``; returns None for unsupported files."""
        file_path = Path(path)
        processor = self.processor_for(file_path)
        if processor is None:
            logger.debug("No processor registered for %s; skipping", file_path)
            return None

        label = processor.language_name()
        dependencies = _guarded(
            label,
            "dependencies",
            file_path,
            lambda: processor.extract_dependencies(content, file_path),
            [],
        )
        interfaces = _guarded(
            label,
            "interfaces",
            file_path,
            lambda: processor.extract_interfaces(content, file_path),
            [],
        )
        component_type = _guarded(
            label,
            "component type",
            file_path,
            lambda: processor.determine_component_type(file_path, content),
            "file",
        )
        important: List[str] = []
        for line in content.splitlines():
            if len(important) >= self.important_line_limit:
                break
            if _guarded(label, "important line", file_path, lambda: processor.is_important_line(line), False):
                important.append(line.strip())

        return CodeInsight(
            path=file_path.as_posix(),
            language=label,
            component_type=component_type or "file",
            dependencies=list(dependencies),
            interfaces=list(interfaces),
            important_lines=important,
        )


def _guarded(label: str, operation: str, path: Path, call: Callable[[], object], default):
    # Extraction is best-effort: a processor error costs this file's result, never the run.
    try:
        return call()
    except Exception as exc:
        logger.debug("%s processor failed to extract %s from %s: %s", label, operation, path, exc)
        return default


def discover_processors(enabled: Sequence[str] | None = None) -> List[LanguageProcessor]:
    """Return instantiated processors, honoring optional enabled names."""

    enabled_set: Set[str] | None = None
    if enabled is not None:
        enabled_set = {name.lower() for name in enabled}

    processors: List[LanguageProcessor] = []
    seen: Set[str] = set()

    def _add(name: str, factory: Callable[[], LanguageProcessor]) -> None:
        key = name.lower()
        if enabled_set is not None and key not in enabled_set:
            return
        if key in seen:
            return
        instance = factory()
        if not isinstance(instance, LanguageProcessor):
            raise TypeError(f"Processor factory for '{name}' did not return a LanguageProcessor")
        processors.append(instance)
        seen.add(key)
        if enabled_set is not None:
            enabled_set.discard(key)

    for name, factory in _BUILTIN_FACTORIES.items():
        _add(name, factory)

    for entry in _iter_entry_points():
        try:
            loaded = entry.load()
        except Exception as exc:
            raise RuntimeError(f"Failed to load processor entry point '{entry.name}': {exc}") from exc

        def _factory(obj: object = loaded) -> LanguageProcessor:
            return _coerce_processor(obj)

        _add(entry.name, _factory)

    if enabled_set:
        missing = ", ".join(sorted(enabled_set))
        raise ValueError(f"Unknown processors requested: {missing}")

    return processors


def build_registry(
    enabled: Sequence[str] | None = None, *, important_line_limit: int = 40
) -> ProcessorRegistry:
    return ProcessorRegistry(discover_processors(enabled), important_line_limit=important_line_limit)


def _coerce_processor(obj: object) -> LanguageProcessor:
    if isinstance(obj, LanguageProcessor):
        return obj
    if isinstance(obj, type) and issubclass(obj, LanguageProcessor):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, LanguageProcessor):
            return instance
    raise TypeError("Processor entry point must be a LanguageProcessor subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points(group=_ENTRY_POINT_GROUP)


__all__ = [
    "CSharpProcessor",
    "LanguageProcessor",
    "ProcessorRegistry",
    "PythonProcessor",
    "build_registry",
    "discover_processors",
]
