"""API server address and credential resolution.

Resolves a discovery config either from its explicit settings or, when no
API server is configured, from the pod environment (service host/port
variables, service-account token and CA certificate).
"""

from kube_discovery.auth.bootstrap import (
    AuthMaterial,
    BootstrapMode,
    BootstrapSource,
    EnvironmentBootstrap,
    ExplicitConfigSource,
    select_bootstrap_source,
)
from kube_discovery.auth.resolver import (
    CredentialResolver,
    ResolvedCredentials,
    ServerAddress,
    parse_api_server,
)


__all__ = [
    "AuthMaterial",
    "BootstrapMode",
    "BootstrapSource",
    "CredentialResolver",
    "EnvironmentBootstrap",
    "ExplicitConfigSource",
    "ResolvedCredentials",
    "ServerAddress",
    "parse_api_server",
    "select_bootstrap_source",
]
