"""Process settings loading."""

from .app import DiscoverySettings


__all__ = ["DiscoverySettings"]
