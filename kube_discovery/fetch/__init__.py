"""HTTP fetch layer for Kubernetes API list requests.

This module provides:
- Pooled clients with fixed timeouts and a response size cap
- Authenticated GET requests with selector/namespace query composition
- gzip negotiation and bounded decompression
- Header redaction for logging
"""

from kube_discovery.fetch.client import ClientBuilder, PooledClient
from kube_discovery.fetch.constants import (
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    DEFAULT_READ_TIMEOUT_SECONDS,
    DEFAULT_WRITE_TIMEOUT_SECONDS,
    HTTP_STATUS_OK,
)
from kube_discovery.fetch.fetcher import AuthenticatedFetcher
from kube_discovery.fetch.query import join_selectors
from kube_discovery.fetch.redact import redact_headers, redact_url_credentials


__all__ = [
    # Client
    "ClientBuilder",
    "PooledClient",
    # Fetcher
    "AuthenticatedFetcher",
    "join_selectors",
    # Constants
    "DEFAULT_MAX_RESPONSE_SIZE_BYTES",
    "DEFAULT_READ_TIMEOUT_SECONDS",
    "DEFAULT_WRITE_TIMEOUT_SECONDS",
    "HTTP_STATUS_OK",
    # Redaction
    "redact_headers",
    "redact_url_credentials",
]
