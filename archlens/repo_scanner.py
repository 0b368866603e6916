"""Repository scanning and manifest building utilities."""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, Iterator, List, Sequence

from .config import ArchLensConfig, ConfigError, load_config
from .logging import get_logger
from .models import FileMeta, RepoManifest

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    ".vs",
    ".archlens",
    "bin",
    "obj",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

_LANGUAGE_BY_SUFFIX = {
    ".py": "Python",
    ".pyi": "Python",
    ".cs": "C#",
    ".csproj": "C#",
    ".sln": "C#",
    ".sqlproj": "SQL",
    ".sql": "SQL",
    ".js": "JavaScript",
    ".ts": "TypeScript",
    ".java": "Java",
    ".go": "Go",
    ".rs": "Rust",
    ".md": "Markdown",
    ".yaml": "YAML",
    ".yml": "YAML",
    ".json": "JSON",
    ".toml": "TOML",
}

_ROLE_RULES: tuple[tuple[str, str], ...] = (
    ("tests", "test"),
    ("test", "test"),
    ("docs", "docs"),
    ("doc", "docs"),
    ("examples", "examples"),
    ("config", "config"),
    ("infra", "infra"),
    ("Migrations", "migration"),
    ("migrations", "migration"),
)

# .NET test projects live in directories such as Orders.Tests or Orders.UnitTests.
_TEST_PROJECT_SUFFIXES = (".Tests", ".Test", ".UnitTests", ".IntegrationTests", ".Specs")

_CACHE_FILENAME = "manifest_cache.json"
_CACHE_VERSION = 1

logger = get_logger("scanner")


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or .archlens.yml."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        if self.anchored or self.has_slash:
            if fnmatchcase(rel_path, self.pattern):
                return True
            return self.directory_only and rel_path.startswith(f"{self.pattern}/")

        return any(fnmatchcase(part, self.pattern) for part in rel_path.split("/"))


def _build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.exists():
        return []

    rules: List[IgnoreRule] = []
    for raw_line in path.read_text(encoding="utf-8", errors="ignore").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = _build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _config_rules(config: ArchLensConfig) -> List[IgnoreRule]:
    patterns = list(config.exclude_paths)
    patterns.extend(config.extraction.exclude_paths)
    rules: List[IgnoreRule] = []
    for pattern in patterns:
        rule = _build_ignore_rule(pattern)
        if rule is not None:
            rules.append(rule)
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def _load_manifest_cache(cache_path: Path) -> Dict[str, Dict[str, object]]:
    try:
        payload = json.loads(cache_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return {}
    except (OSError, ValueError):
        return {}

    if not isinstance(payload, dict) or payload.get("version") != _CACHE_VERSION:
        return {}

    files = payload.get("files")
    if not isinstance(files, dict):
        return {}

    valid: Dict[str, Dict[str, object]] = {}
    for rel_path, entry in files.items():
        if not isinstance(entry, dict):
            continue
        size = entry.get("size")
        mtime_ns = entry.get("mtime_ns")
        file_hash = entry.get("hash")
        if isinstance(size, int) and isinstance(mtime_ns, int) and isinstance(file_hash, str):
            valid[rel_path] = {"size": size, "mtime_ns": mtime_ns, "hash": file_hash}
    return valid


def _store_manifest_cache(cache_path: Path, entries: Dict[str, Dict[str, object]]) -> None:
    try:
        cache_path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"version": _CACHE_VERSION, "files": entries}
        cache_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    except OSError as exc:
        logger.debug("Unable to persist manifest cache at %s: %s", cache_path, exc)


def _iter_files(root: Path, rules: Sequence[IgnoreRule]) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        kept_dirs = []
        for name in dirnames:
            if name in _EXCLUDED_DIRS:
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if _should_ignore(rel_path, True, rules):
                continue
            kept_dirs.append(name)
        dirnames[:] = sorted(kept_dirs)

        for filename in sorted(filenames):
            if filename in _EXCLUDED_FILES:
                continue
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if _should_ignore(rel_path, False, rules):
                continue
            yield current_dir / filename


def _detect_language(path: Path) -> str | None:
    return _LANGUAGE_BY_SUFFIX.get(path.suffix.lower())


def _detect_role(relative_path: str) -> str:
    parts = relative_path.split("/")[:-1]
    for segment, role in _ROLE_RULES:
        if segment in parts:
            return role
    if any(part.endswith(_TEST_PROJECT_SUFFIXES) for part in parts):
        return "test"
    name = relative_path.rsplit("/", 1)[-1]
    if name.endswith((".md", ".rst")):
        return "docs"
    if name.startswith("test_") or name.endswith(("Test.cs", "Tests.cs", "_test.py")):
        return "test"
    return "src"


def _hash_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


class RepoScanner:
    """Walks the repository to produce a normalized manifest."""

    def scan(self, root: str, config: ArchLensConfig | None = None) -> RepoManifest:
        """Return a manifest describing project files and roles."""
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Repository path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {root}")

        if config is None:
            try:
                config = load_config(root_path)
            except ConfigError:
                config = ArchLensConfig(root=root_path)

        rules = _parse_gitignore(root_path / ".gitignore")
        rules.extend(_config_rules(config))
        cache_path = root_path / config.internal_dir / _CACHE_FILENAME
        cache = _load_manifest_cache(cache_path)
        cache_entries: Dict[str, Dict[str, object]] = {}

        files: List[FileMeta] = []
        for path in _iter_files(root_path, rules):
            rel_path = path.relative_to(root_path).as_posix()
            try:
                stat_result = path.stat()
            except OSError as exc:
                logger.debug("Skipping unreadable file %s: %s", rel_path, exc)
                continue
            size = stat_result.st_size
            mtime_ns = stat_result.st_mtime_ns

            cached = cache.get(rel_path)
            if cached and cached.get("size") == size and cached.get("mtime_ns") == mtime_ns:
                file_hash = str(cached["hash"])
            else:
                file_hash = _hash_file(path)

            files.append(
                FileMeta(
                    path=rel_path,
                    size=size,
                    language=_detect_language(path),
                    role=_detect_role(rel_path),
                    hash=file_hash,
                )
            )
            cache_entries[rel_path] = {"size": size, "mtime_ns": mtime_ns, "hash": file_hash}

        _store_manifest_cache(cache_path, cache_entries)
        logger.debug("Scanned %d files under %s", len(files), root_path)
        return RepoManifest(root=str(root_path), files=files)
