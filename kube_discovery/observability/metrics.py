"""Metrics collection for the config cache and API fetch layer."""

from collections import Counter
from dataclasses import dataclass, field
from threading import Lock


# Module-level singleton state
_metrics_instance: "DiscoveryMetrics | None" = None
_metrics_lock: Lock = Lock()


@dataclass
class DiscoveryMetrics:
    """Thread-safe metrics for config resolution and API fetches.

    Use get_instance() for the shared process-wide instance, or construct
    one directly to isolate a test.
    """

    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    cache_hits_total: int = 0
    cache_misses_total: int = 0
    cache_failure_replays_total: int = 0
    cache_constructions_total: int = 0
    cache_construction_failures_total: Counter[str] = field(default_factory=Counter)

    requests_total: Counter[int] = field(default_factory=Counter)
    request_failures_total: Counter[str] = field(default_factory=Counter)
    bytes_total: int = 0
    duration_ms_total: float = 0.0

    @classmethod
    def get_instance(cls) -> "DiscoveryMetrics":
        """Get the singleton instance (thread-safe).

        Returns:
            The shared DiscoveryMetrics instance.
        """
        global _metrics_instance  # noqa: PLW0603
        if _metrics_instance is None:
            with _metrics_lock:
                # Double-checked locking
                if _metrics_instance is None:
                    _metrics_instance = cls()
        return _metrics_instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton (for testing)."""
        global _metrics_instance  # noqa: PLW0603
        with _metrics_lock:
            _metrics_instance = None

    def record_cache_hit(self) -> None:
        """Record a lookup served by an existing context."""
        with self._lock:
            self.cache_hits_total += 1

    def record_cache_miss(self) -> None:
        """Record a lookup that started a construction."""
        with self._lock:
            self.cache_misses_total += 1

    def record_failure_replay(self) -> None:
        """Record a lookup answered with a remembered construction failure."""
        with self._lock:
            self.cache_failure_replays_total += 1

    def record_construction(self, error_class: str | None = None) -> None:
        """Record a finished construction attempt.

        Args:
            error_class: Error classification if the attempt failed.
        """
        with self._lock:
            self.cache_constructions_total += 1
            if error_class is not None:
                self.cache_construction_failures_total[error_class] += 1

    def record_request(
        self, status_code: int, bytes_received: int, duration_ms: float
    ) -> None:
        """Record a completed HTTP request.

        Args:
            status_code: HTTP status code.
            bytes_received: Number of body bytes returned to the caller.
            duration_ms: Request duration in milliseconds.
        """
        with self._lock:
            self.requests_total[status_code] += 1
            self.bytes_total += bytes_received
            self.duration_ms_total += duration_ms

    def record_request_failure(self, error_class: str) -> None:
        """Record a failed fetch.

        Args:
            error_class: Classification of the failure.
        """
        with self._lock:
            self.request_failures_total[error_class] += 1

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        with self._lock:
            return {
                "cache_hits_total": self.cache_hits_total,
                "cache_misses_total": self.cache_misses_total,
                "cache_failure_replays_total": self.cache_failure_replays_total,
                "cache_constructions_total": self.cache_constructions_total,
                "cache_construction_failures_total": dict(
                    self.cache_construction_failures_total
                ),
                "requests_total": dict(self.requests_total),
                "request_failures_total": dict(self.request_failures_total),
                "bytes_total": self.bytes_total,
                "duration_ms_total": self.duration_ms_total,
            }
