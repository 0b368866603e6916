"""Persistent, content-addressed cache for reasoning-service results."""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
import threading
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from ..logging import get_logger

_CACHE_VERSION = 1

logger = get_logger("cache")


def fingerprint(agent_identity: str, bundle_payload: str, template_version: str) -> str:
    """Hash agent identity, serialised inputs and template version into a cache key.

    Parts are length-prefixed so no two different triples share an encoding.
    """
    digest = hashlib.sha256()
    for part in (agent_identity, bundle_payload, template_version):
        encoded = part.encode("utf-8")
        digest.update(str(len(encoded)).encode("ascii"))
        digest.update(b"\0")
        digest.update(encoded)
    return digest.hexdigest()


@dataclass
class CachedResult:
    """Stored output of one agent computation."""

    agent: str
    fingerprint: str
    output: Any
    created_at: str = field(default_factory=lambda: _utc_now().isoformat())
    knowledge_synced_at: Optional[str] = None
    source_files: Sequence[str] = field(default_factory=list)


class CacheManager:
    """One JSON record per fingerprint under ``root``; unreadable records count as misses."""

    def __init__(self, root: Path | None, *, enabled: bool = True) -> None:
        self.root = root
        self.enabled = enabled and root is not None
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "writes": 0, "stale": 0}

    def lookup(
        self, key: str, *, knowledge_synced_at: datetime | None = None
    ) -> Optional[CachedResult]:
        """Return the cached result for ``key`` unless it is missing, corrupt or stale.

        ``knowledge_synced_at`` is the current external-knowledge sync time; an
        entry written against an older sync is stale.
        """
        if not self.enabled:
            return None
        with self._lock_for(key):
            result = self._read(key)
        if result is None:
            self._bump("misses")
            return None
        if self._is_stale(result, knowledge_synced_at):
            logger.debug("Cache entry %s for %s is stale", key[:12], result.agent)
            self._bump("stale")
            self._bump("misses")
            return None
        self._bump("hits")
        return result

    def store(self, key: str, result: CachedResult) -> None:
        if not self.enabled:
            return
        payload = {"version": _CACHE_VERSION, "entry": asdict(result)}
        path = self._path_for(key)
        with self._lock_for(key):
            try:
                write_atomic(path, json.dumps(payload, indent=2, sort_keys=True))
            except (OSError, TypeError, ValueError) as exc:
                logger.warning("Unable to persist cache entry for %s: %s", result.agent, exc)
                return
        self._bump("writes")

    def invalidate(self, key: str) -> bool:
        if self.root is None:
            return False
        with self._lock_for(key):
            try:
                self._path_for(key).unlink()
            except FileNotFoundError:
                return False
        return True

    def clear(self) -> None:
        if self.root is None or not self.root.exists():
            return
        for path in self.root.glob("*/*.json"):
            try:
                path.unlink()
            except OSError as exc:
                logger.debug("Unable to remove cache file %s: %s", path, exc)

    def stats(self) -> Dict[str, int]:
        with self._locks_guard:
            return dict(self._stats)

    # ------------------------------------------------------------------
    # Internal helpers

    def _path_for(self, key: str) -> Path:
        if self.root is None:
            raise RuntimeError("Cache has no storage directory")
        return self.root / key[:2] / f"{key}.json"

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _bump(self, counter: str) -> None:
        with self._locks_guard:
            self._stats[counter] += 1

    def _read(self, key: str) -> Optional[CachedResult]:
        path = self._path_for(key)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.debug("Ignoring unreadable cache entry %s: %s", path, exc)
            return None
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return None
        entry = data.get("entry")
        if not isinstance(entry, dict):
            return None
        agent = entry.get("agent")
        stored_key = entry.get("fingerprint")
        if not isinstance(agent, str) or stored_key != key or "output" not in entry:
            return None
        sources = entry.get("source_files")
        return CachedResult(
            agent=agent,
            fingerprint=key,
            output=entry["output"],
            created_at=str(entry.get("created_at") or ""),
            knowledge_synced_at=entry.get("knowledge_synced_at") or None,
            source_files=list(sources) if isinstance(sources, list) else [],
        )

    @staticmethod
    def _is_stale(result: CachedResult, knowledge_synced_at: datetime | None) -> bool:
        recorded = _parse_timestamp(result.knowledge_synced_at)
        if knowledge_synced_at is not None and recorded is not None and knowledge_synced_at > recorded:
            return True
        # Source files are compared with the write time of the entry itself.
        reference = _parse_timestamp(result.created_at)
        if reference is None:
            return bool(result.source_files)
        for source in result.source_files:
            try:
                modified = datetime.fromtimestamp(os.stat(source).st_mtime, tz=UTC)
            except OSError:
                continue
            if modified > reference:
                return True
        return False


def write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    handle, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(handle, "w", encoding="utf-8") as stream:
            stream.write(text)
        os.replace(temp_name, path)
    except BaseException:
        try:
            os.unlink(temp_name)
        except OSError:
            pass
        raise


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _utc_now() -> datetime:
    return datetime.now(UTC)


__all__ = ["CacheManager", "CachedResult", "fingerprint", "write_atomic"]

