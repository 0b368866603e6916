"""Tests for local documentation processing."""

from __future__ import annotations

from pathlib import Path

import pytest

from archlens.integrations.local_docs import (
    DocFileType,
    LocalDocMetadata,
    LocalDocsProcessor,
    detect_file_type,
)


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("guide.pdf", DocFileType.PDF),
        ("guide.PDF", DocFileType.PDF),
        ("notes.md", DocFileType.MARKDOWN),
        ("notes.markdown", DocFileType.MARKDOWN),
        ("notes.txt", DocFileType.TEXT),
        ("notes.text", DocFileType.TEXT),
    ],
)
def test_detect_file_type(name: str, expected: DocFileType) -> None:
    assert detect_file_type(Path(name)) is expected


def test_detect_file_type_rejects_unknown() -> None:
    with pytest.raises(ValueError, match="No file extension"):
        detect_file_type(Path("Makefile"))
    with pytest.raises(ValueError, match="Unsupported file type: docx"):
        detect_file_type(Path("spec.docx"))


def test_process_markdown_file(tmp_path: Path) -> None:
    doc = tmp_path / "adr-001.md"
    doc.write_text("# Use a queue\nOrders are processed asynchronously.\n", encoding="utf-8")

    metadata = LocalDocsProcessor.process_file(doc)

    assert metadata.file_path == str(doc)
    assert metadata.file_type is DocFileType.MARKDOWN
    assert metadata.processed_content.startswith("# Use a queue")
    assert metadata.last_modified.endswith("+00:00")


def test_metadata_dict_round_trip(tmp_path: Path) -> None:
    doc = tmp_path / "runbook.txt"
    doc.write_text("restart the worker", encoding="utf-8")
    metadata = LocalDocsProcessor.process_file(doc)

    assert LocalDocMetadata.from_dict(metadata.to_dict()) == metadata
    assert metadata.to_dict()["file_type"] == "Text"


def test_process_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        LocalDocsProcessor.process_file(tmp_path / "missing.md")


def test_format_for_llm_numbers_documents() -> None:
    docs = [
        LocalDocMetadata("/docs/a.md", DocFileType.MARKDOWN, "2024-01-01T00:00:00+00:00", "alpha"),
        LocalDocMetadata("/docs/b.txt", DocFileType.TEXT, "2024-01-02T00:00:00+00:00", "beta"),
    ]

    text = LocalDocsProcessor.format_for_llm(docs)

    assert text.startswith("# Local Technical Documentation")
    assert "## Document 1 - a.md" in text
    assert "## Document 2 - b.txt" in text
    assert "**Type:** Text" in text
    assert text.index("alpha") < text.index("beta")
