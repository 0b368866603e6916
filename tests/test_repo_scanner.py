"""Tests for archlens.repo_scanner."""

from __future__ import annotations

import json
from hashlib import sha256
from pathlib import Path

import pytest

from archlens import repo_scanner
from archlens.repo_scanner import RepoScanner


def _write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_scan_builds_manifest_with_roles_and_language(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()

    _write(repo_root / "src" / "Orders" / "OrderService.cs", "public class OrderService {}\n")
    _write(repo_root / "src" / "app.py", "print('hi')\n")
    _write(repo_root / "tests" / "test_app.py", "def test_ok():\n    assert True\n")
    _write(repo_root / "docs" / "overview.md", "# Overview\n")
    _write(repo_root / "db" / "schema.sql", "CREATE TABLE t (id INT);\n")
    _write(repo_root / ".venv" / "should_ignore.py", "print('nope')\n")
    _write(repo_root / "bin" / "Debug" / "App.dll", "binary\n")

    manifest = RepoScanner().scan(str(repo_root))

    assert manifest.root == str(repo_root.resolve())
    paths = {file.path: file for file in manifest.files}

    assert paths["src/app.py"].language == "Python"
    assert paths["src/app.py"].role == "src"
    assert paths["src/Orders/OrderService.cs"].language == "C#"
    assert paths["db/schema.sql"].language == "SQL"
    assert paths["tests/test_app.py"].role == "test"
    assert paths["docs/overview.md"].role == "docs"

    assert ".venv/should_ignore.py" not in paths
    assert "bin/Debug/App.dll" not in paths

    expected_hash = sha256((repo_root / "src" / "app.py").read_bytes()).hexdigest()
    assert paths["src/app.py"].hash == expected_hash


def test_scan_rejects_missing_directory(tmp_path: Path) -> None:
    missing = tmp_path / "missing"

    with pytest.raises(FileNotFoundError, match="missing"):
        RepoScanner().scan(str(missing))


def test_scan_respects_gitignore(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()

    _write(repo_root / ".gitignore", "build/\n*.log\n!keep.log\n")
    _write(repo_root / "src" / "main.py", "print('ok')\n")
    _write(repo_root / "build" / "artifact.txt", "binary data\n")
    _write(repo_root / "notes.log", "ignore me\n")
    _write(repo_root / "keep.log", "keep me\n")

    paths = {file.path for file in RepoScanner().scan(str(repo_root)).files}

    assert "src/main.py" in paths
    assert "build/artifact.txt" not in paths
    assert "notes.log" not in paths
    assert "keep.log" in paths


def test_scan_respects_config_exclude_paths(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()

    _write(
        repo_root / ".archlens.yml",
        "exclude_paths:\n  - data/\n  - '*.generated'\nextraction:\n  exclude_paths: [Migrations/]\n",
    )
    _write(repo_root / "src" / "main.py", "print('ok')\n")
    _write(repo_root / "data" / "ignored.txt", "secret\n")
    _write(repo_root / "report.generated", "generated output\n")
    _write(repo_root / "src" / "Migrations" / "0001.cs", "class M {}\n")

    paths = {file.path for file in RepoScanner().scan(str(repo_root)).files}

    assert "src/main.py" in paths
    assert "data/ignored.txt" not in paths
    assert "report.generated" not in paths
    assert "src/Migrations/0001.cs" not in paths


def test_scan_writes_manifest_cache(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    _write(repo_root / "src" / "main.py", "print('ok')\n")

    RepoScanner().scan(str(repo_root))

    cache_path = repo_root / ".archlens" / "manifest_cache.json"
    payload = json.loads(cache_path.read_text(encoding="utf-8"))
    assert payload.get("version") == 1
    assert "src/main.py" in payload.get("files", {})


def test_scan_reuses_cache_for_unchanged_files(tmp_path: Path, monkeypatch) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    _write(repo_root / "src" / "main.py", "print('ok')\n")

    RepoScanner().scan(str(repo_root))

    def _fail_hash(path: Path) -> str:
        raise AssertionError("Hash should have been reused from cache")

    monkeypatch.setattr(repo_scanner, "_hash_file", _fail_hash)

    RepoScanner().scan(str(repo_root))


def test_scan_detects_dotnet_test_projects_and_migrations(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    _write(repo_root / "Orders.UnitTests" / "OrderServiceFacts.cs", "public class OrderServiceFacts {}\n")
    _write(repo_root / "Orders" / "Migrations" / "0001_Init.cs", "public class Init {}\n")
    _write(repo_root / "Orders" / "OrderService.cs", "public class OrderService {}\n")

    roles = {file.path: file.role for file in RepoScanner().scan(str(repo_root)).files}

    assert roles["Orders.UnitTests/OrderServiceFacts.cs"] == "test"
    assert roles["Orders/Migrations/0001_Init.cs"] == "migration"
    assert roles["Orders/OrderService.cs"] == "src"
