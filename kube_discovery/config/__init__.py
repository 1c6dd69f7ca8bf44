"""Declarative configuration for API discovery sources."""

from kube_discovery.config.loader import load_discovery_configs
from kube_discovery.config.models import (
    BasicAuth,
    DiscoveryConfig,
    Role,
    Selector,
    TLSConfig,
)


__all__ = [
    "BasicAuth",
    "DiscoveryConfig",
    "Role",
    "Selector",
    "TLSConfig",
    "load_discovery_configs",
]
