"""Kubernetes API discovery client.

Resolves discovery configs into pooled, authenticated API clients (cached
per config identity) and fetches resource listings from the API server.
"""

__version__ = "1.0.0"

from kube_discovery.api import ContextBuilder, DiscoveryAPI  # noqa: E402
from kube_discovery.config.models import DiscoveryConfig, Role, Selector  # noqa: E402
from kube_discovery.context import ResolvedContext  # noqa: E402


__all__ = [
    "ContextBuilder",
    "DiscoveryAPI",
    "DiscoveryConfig",
    "ResolvedContext",
    "Role",
    "Selector",
    "__version__",
]
