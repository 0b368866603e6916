"""External knowledge integrations."""

from .knowledge_sync import KnowledgeMetadata, KnowledgeSyncer
from .local_docs import DocFileType, LocalDocMetadata, LocalDocsProcessor

__all__ = [
    "DocFileType",
    "KnowledgeMetadata",
    "KnowledgeSyncer",
    "LocalDocMetadata",
    "LocalDocsProcessor",
]
