"""Data models for the config fingerprint cache."""

from enum import Enum


class EntryState(str, Enum):
    """Construction state of a cache entry.

    - PENDING: Construction in flight; callers wait for it
    - READY: Value built; served without locking
    - FAILED: Construction failed; replayed until the retry interval passes
    """

    PENDING = "PENDING"
    READY = "READY"
    FAILED = "FAILED"
