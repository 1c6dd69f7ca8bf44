"""Resolved API context shared by all pollers of one discovery config."""

from dataclasses import dataclass

from kube_discovery.config.models import Role, Selector
from kube_discovery.fetch.client import PooledClient


@dataclass(frozen=True)
class ResolvedContext:
    """Client, address and credentials for one config identity.

    Built once per identity by the config cache and shared read-only.
    Credential rotation means a new config (and so a new identity) or an
    explicit cache invalidation, never an in-place edit.

    Attributes:
        client: Pooled HTTP client bound to host_port.
        server_url: Canonical API server URL.
        host_port: ``host:port`` of the API server.
        authorization: Authorization header value, if any.
        namespaces: Namespaces listings are restricted to.
        selectors: Per-role label/field selectors.
        fingerprint: Identity key of the config this was built from.
        server_name: TLS server name override.
    """

    client: PooledClient
    server_url: str
    host_port: str
    authorization: str | None
    namespaces: tuple[str, ...]
    selectors: tuple[Selector, ...]
    fingerprint: str
    server_name: str | None = None

    def selectors_for_role(self, role: Role) -> tuple[Selector, ...]:
        """Get the selectors that apply to a role."""
        return tuple(s for s in self.selectors if s.role == role)
