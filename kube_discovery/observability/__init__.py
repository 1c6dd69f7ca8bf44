"""Observability module for logging and metrics."""

from kube_discovery.observability.logging import (
    bind_source_context,
    clear_source_context,
    configure_logging,
)
from kube_discovery.observability.metrics import DiscoveryMetrics


__all__ = [
    "DiscoveryMetrics",
    "bind_source_context",
    "clear_source_context",
    "configure_logging",
]
