"""Persistent stores used across archlens runs."""

from .cache import CacheManager, CachedResult, fingerprint

__all__ = ["CacheManager", "CachedResult", "fingerprint"]
