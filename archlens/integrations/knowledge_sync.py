"""Syncs external knowledge sources into the local knowledge cache."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import ArchLensConfig, LocalDocsConfig
from ..logging import get_logger
from ..stores.cache import write_atomic
from .local_docs import LocalDocMetadata, LocalDocsProcessor

_METADATA_FILENAME = "_metadata.json"

logger = get_logger("knowledge")


@dataclass
class KnowledgeMetadata:
    """Persisted record of one knowledge domain's last sync."""

    last_synced: datetime
    documents: List[LocalDocMetadata] = field(default_factory=list)

    def to_json(self) -> str:
        payload = {
            "last_synced": self.last_synced.isoformat(),
            "documents": [doc.to_dict() for doc in self.documents],
        }
        return json.dumps(payload, indent=2)

    @classmethod
    def from_json(cls, text: str) -> "KnowledgeMetadata":
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("Knowledge metadata must be a JSON object")
        last_synced = datetime.fromisoformat(str(data["last_synced"]))
        if last_synced.tzinfo is None:
            last_synced = last_synced.replace(tzinfo=UTC)
        documents = [LocalDocMetadata.from_dict(item) for item in data.get("documents", [])]
        return cls(last_synced=last_synced, documents=documents)


class KnowledgeSyncer:
    """Ingests configured documentation and answers whether a re-sync is due."""

    def __init__(self, config: ArchLensConfig) -> None:
        self.config = config

    @property
    def local_docs_config(self) -> Optional[LocalDocsConfig]:
        return self.config.knowledge.local_docs

    def cache_dir(self) -> Path:
        docs_config = self.local_docs_config
        if docs_config is not None and docs_config.cache_dir is not None:
            return docs_config.cache_dir
        return self.config.internal_path / "knowledge" / "local_docs"

    def metadata_path(self) -> Path:
        return self.cache_dir() / _METADATA_FILENAME

    def sync_all(self) -> bool:
        """Sync every enabled source; returns True when anything was synced."""
        docs_config = self.local_docs_config
        if docs_config is None:
            logger.info("No knowledge sources are configured")
            return False
        if not docs_config.enabled:
            logger.info("Local docs integration is disabled")
            return False
        self.sync_local_docs(docs_config)
        logger.info("Knowledge sync completed")
        return True

    def sync_local_docs(self, docs_config: LocalDocsConfig) -> KnowledgeMetadata:
        documents: List[LocalDocMetadata] = []
        paths = [*docs_config.pdf_paths, *docs_config.markdown_paths, *docs_config.text_paths]
        for raw_path in paths:
            path = Path(raw_path)
            try:
                documents.append(LocalDocsProcessor.process_file(path))
            except Exception as exc:
                # A single unreadable document must not block the others.
                logger.warning("Failed to process %s: %s", path, exc)
                continue
            logger.debug("Processed documentation file %s", path)

        metadata = KnowledgeMetadata(last_synced=datetime.now(UTC), documents=documents)
        write_atomic(self.metadata_path(), metadata.to_json())
        logger.info("Processed %d local documentation files", len(documents))
        return metadata

    def should_sync(self) -> bool:
        docs_config = self.local_docs_config
        if docs_config is None or not docs_config.enabled:
            return False

        metadata_path = self.metadata_path()
        if not metadata_path.exists():
            return True

        metadata = self.load_metadata()
        if metadata is None:
            return True

        if not docs_config.watch_for_changes:
            return False

        for doc in metadata.documents:
            source = Path(doc.file_path)
            try:
                modified = datetime.fromtimestamp(source.stat().st_mtime, tz=UTC)
            except OSError:
                continue
            if modified > metadata.last_synced:
                logger.debug("%s changed after last sync", source)
                return True
        return False

    def load_metadata(self) -> Optional[KnowledgeMetadata]:
        """Return persisted metadata, or None when absent or unreadable."""
        try:
            text = self.metadata_path().read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.debug("Unable to read knowledge metadata: %s", exc)
            return None
        try:
            return KnowledgeMetadata.from_json(text)
        except (ValueError, KeyError, TypeError) as exc:
            logger.debug("Ignoring corrupt knowledge metadata: %s", exc)
            return None

    def last_synced(self) -> Optional[datetime]:
        metadata = self.load_metadata()
        return metadata.last_synced if metadata is not None else None

    def source_files(self) -> List[str]:
        metadata = self.load_metadata()
        return [doc.file_path for doc in metadata.documents] if metadata else []

    def load_cached_knowledge(self) -> Optional[str]:
        docs_config = self.local_docs_config
        if docs_config is None or not docs_config.enabled:
            return None
        metadata = self.load_metadata()
        if metadata is None or not metadata.documents:
            return None

        parts = [
            f"# Local Documentation ({self.config.target_language})",
            "",
            f"Last processed: {metadata.last_synced.strftime('%Y-%m-%d %H:%M:%S UTC')}",
            f"Total documents: {len(metadata.documents)}",
            "",
        ]
        for doc in metadata.documents:
            parts.extend(
                [
                    "---",
                    "",
                    f"# {doc.file_path}",
                    "",
                    f"Type: {doc.file_type.value}",
                    f"Last Modified: {doc.last_modified}",
                    "",
                    doc.processed_content,
                    "",
                ]
            )
        return "\n".join(parts)

    def status(self) -> Dict[str, Any]:
        metadata = self.load_metadata()
        return {
            "configured": self.local_docs_config is not None,
            "enabled": bool(self.local_docs_config and self.local_docs_config.enabled),
            "last_synced": metadata.last_synced.isoformat() if metadata else None,
            "documents": len(metadata.documents) if metadata else 0,
        }


__all__ = ["KnowledgeMetadata", "KnowledgeSyncer"]
