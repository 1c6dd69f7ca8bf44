"""Config fingerprint cache with single-flight construction.

Maps the identity of a discovery config to the context built from it, so
that pollers sharing an unchanged config reuse one client and one set of
credentials instead of rebuilding them every poll or reload.
"""

import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Generic, TypeVar

import structlog

from kube_discovery.cache.models import EntryState
from kube_discovery.config.models import DiscoveryConfig
from kube_discovery.errors import DiscoveryError
from kube_discovery.observability.metrics import DiscoveryMetrics


logger = structlog.get_logger()

V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    """One config identity and the outcome of constructing its value.

    The future is the one-time construction guard: the caller that created
    the entry populates it, every other caller waits on it.
    """

    fingerprint: str
    future: "Future[V]" = field(default_factory=Future)
    failed_at: float | None = None

    @property
    def state(self) -> EntryState:
        """Get the construction state of this entry."""
        if not self.future.done():
            return EntryState.PENDING
        if self.future.exception() is not None:
            return EntryState.FAILED
        return EntryState.READY

    def result(self) -> V:
        """Wait for construction and return its value.

        Raises:
            Exception: The construction error, if construction failed.
        """
        return self.future.result()


class ConfigFingerprintCache(Generic[V]):
    """Memoizing store from config identity to a lazily built value.

    Guarantees:
    - At most one construction in flight per identity; concurrent callers
      for the same identity wait for it and share its outcome.
    - Constructions for different identities run in parallel.
    - Successful values are kept for the life of the cache.
    - Failures are never kept forever: by default the next call retries;
      with a retry interval, calls within the interval get the same error.

    Create one instance at startup and pass it to the pollers.
    """

    def __init__(
        self,
        builder: Callable[[DiscoveryConfig], V],
        failure_retry_interval: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
        metrics: DiscoveryMetrics | None = None,
    ) -> None:
        """Initialize the cache.

        Args:
            builder: Builds the value for a config; called at most once per
                identity per successful construction.
            failure_retry_interval: Seconds a failed construction is replayed
                before the next call retries it; 0 retries on every call.
            clock: Monotonic time source.
            metrics: Metrics sink; defaults to the shared instance.
        """
        self._builder = builder
        self._failure_retry_interval = failure_retry_interval
        self._clock = clock
        self._metrics = metrics or DiscoveryMetrics.get_instance()
        self._entries: dict[str, CacheEntry[V]] = {}
        self._lock = threading.Lock()
        self._log = logger.bind(component="cache")

    def resolve(self, config: DiscoveryConfig) -> V:
        """Get the value for a config, constructing it on first use.

        Args:
            config: Discovery config; equal configs share one value.

        Returns:
            The value shared by all configs with this identity.

        Raises:
            ConstructionError: If construction failed for this call or for
                the in-flight attempt this call waited on.
        """
        key = config.fingerprint()

        # Fast path: plain dict lookup, no lock
        entry = self._entries.get(key)
        if entry is not None and entry.state is EntryState.READY:
            self._metrics.record_cache_hit()
            return entry.result()

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_retryable(entry):
                del self._entries[key]
                entry = None
            owner = entry is None
            if entry is None:
                entry = CacheEntry(fingerprint=key)
                self._entries[key] = entry

        if not owner:
            if entry.state is EntryState.FAILED:
                self._metrics.record_failure_replay()
            else:
                self._metrics.record_cache_hit()
            self._log.debug("cache_wait", fingerprint=key[:12], state=entry.state.value)
            return entry.result()

        self._metrics.record_cache_miss()
        self._log.info("cache_miss", fingerprint=key[:12])
        return self._construct(config, entry)

    def _construct(self, config: DiscoveryConfig, entry: CacheEntry[V]) -> V:
        """Run the builder for an entry this caller owns."""
        try:
            value = self._builder(config)
        except BaseException as e:
            error_class = (
                e.error_class.value if isinstance(e, DiscoveryError) else "UNKNOWN"
            )
            self._metrics.record_construction(error_class)
            self._log.warning(
                "cache_construction_failed",
                fingerprint=entry.fingerprint[:12],
                error_class=error_class,
                error=str(e),
            )
            with self._lock:
                entry.failed_at = self._clock()
                # Interrupts are not remembered as failures of the config
                if self._failure_retry_interval <= 0 or not isinstance(e, Exception):
                    self._discard(entry)
                entry.future.set_exception(e)
            raise

        self._metrics.record_construction()
        entry.future.set_result(value)
        return value

    def _is_retryable(self, entry: CacheEntry[V]) -> bool:
        """Check if a failed entry should be replaced by a new attempt.

        Must be called while holding the lock.
        """
        if entry.state is not EntryState.FAILED or entry.failed_at is None:
            return False
        return self._clock() - entry.failed_at >= self._failure_retry_interval

    def _discard(self, entry: CacheEntry[V]) -> None:
        """Remove an entry if it is still the one stored for its identity.

        Must be called while holding the lock.
        """
        if self._entries.get(entry.fingerprint) is entry:
            del self._entries[entry.fingerprint]

    def invalidate(self, config: DiscoveryConfig) -> bool:
        """Drop the value for a config so the next call rebuilds it.

        Holders of the old value keep using it until they resolve again.

        Args:
            config: Config whose identity to drop.

        Returns:
            True if an entry was removed.
        """
        key = config.fingerprint()
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        if removed:
            self._log.info("cache_invalidated", fingerprint=key[:12])
        return removed

    def clear(self) -> None:
        """Drop all entries."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, config: object) -> bool:
        if not isinstance(config, DiscoveryConfig):
            return False
        entry = self._entries.get(config.fingerprint())
        return entry is not None and entry.state is EntryState.READY
