"""Reads local documentation files (PDF, Markdown, text) for external knowledge."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Sequence

from pypdf import PdfReader


class DocFileType(str, Enum):
    """Supported documentation file types."""

    PDF = "Pdf"
    MARKDOWN = "Markdown"
    TEXT = "Text"


_TYPES_BY_SUFFIX = {
    "pdf": DocFileType.PDF,
    "md": DocFileType.MARKDOWN,
    "markdown": DocFileType.MARKDOWN,
    "txt": DocFileType.TEXT,
    "text": DocFileType.TEXT,
}


@dataclass
class LocalDocMetadata:
    """Processed content of one documentation file."""

    file_path: str
    file_type: DocFileType
    last_modified: str
    processed_content: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_path": self.file_path,
            "file_type": self.file_type.value,
            "last_modified": self.last_modified,
            "processed_content": self.processed_content,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocalDocMetadata":
        return cls(
            file_path=str(data["file_path"]),
            file_type=DocFileType(data["file_type"]),
            last_modified=str(data.get("last_modified", "")),
            processed_content=str(data.get("processed_content", "")),
        )


def detect_file_type(path: Path) -> DocFileType:
    suffix = path.suffix.lower().lstrip(".")
    if not suffix:
        raise ValueError(f"No file extension found: {path}")
    try:
        return _TYPES_BY_SUFFIX[suffix]
    except KeyError:
        raise ValueError(f"Unsupported file type: {suffix}") from None


class LocalDocsProcessor:
    """Turns documentation files into :class:`LocalDocMetadata` records."""

    @staticmethod
    def extract_pdf_text(path: Path) -> str:
        reader = PdfReader(str(path))
        pages = []
        for page in reader.pages:
            extracted = page.extract_text()
            if extracted:
                pages.append(extracted)
        return "\n".join(pages)

    @staticmethod
    def read_text(path: Path) -> str:
        return path.read_text(encoding="utf-8", errors="replace")

    @classmethod
    def process_file(cls, path: Path) -> LocalDocMetadata:
        file_type = detect_file_type(path)
        if file_type is DocFileType.PDF:
            content = cls.extract_pdf_text(path)
        else:
            content = cls.read_text(path)
        modified = datetime.fromtimestamp(path.stat().st_mtime, tz=UTC)
        return LocalDocMetadata(
            file_path=str(path),
            file_type=file_type,
            last_modified=modified.isoformat(),
            processed_content=content,
        )

    @staticmethod
    def format_for_llm(docs: Sequence[LocalDocMetadata]) -> str:
        parts = ["# Local Technical Documentation", ""]
        for index, doc in enumerate(docs, start=1):
            parts.extend(
                [
                    "---",
                    "",
                    f"## Document {index} - {Path(doc.file_path).name}",
                    "",
                    f"**Source:** {doc.file_path}",
                    f"**Type:** {doc.file_type.value}",
                    f"**Last Modified:** {doc.last_modified}",
                    "",
                    "**Content:**",
                    "",
                    doc.processed_content,
                    "",
                ]
            )
        return "\n".join(parts)


__all__ = ["DocFileType", "LocalDocMetadata", "LocalDocsProcessor", "detect_file_type"]
