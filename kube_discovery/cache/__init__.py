"""Config fingerprint cache with single-flight construction."""

from kube_discovery.cache.models import EntryState
from kube_discovery.cache.store import CacheEntry, ConfigFingerprintCache


__all__ = [
    "CacheEntry",
    "ConfigFingerprintCache",
    "EntryState",
]
