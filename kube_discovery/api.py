"""Entry point for pollers: cached config resolution plus API fetches."""

import threading

import httpx
import structlog

from kube_discovery.auth.bootstrap import BootstrapSource
from kube_discovery.auth.resolver import CredentialResolver
from kube_discovery.cache.store import ConfigFingerprintCache
from kube_discovery.config.models import DiscoveryConfig, Role
from kube_discovery.context import ResolvedContext
from kube_discovery.fetch.client import ClientBuilder
from kube_discovery.fetch.fetcher import AuthenticatedFetcher
from kube_discovery.observability.metrics import DiscoveryMetrics
from kube_discovery.settings.app import DiscoverySettings


logger = structlog.get_logger()


class ContextBuilder:
    """Construction pipeline run by the cache: resolve credentials, build client."""

    def __init__(
        self,
        resolver: CredentialResolver,
        client_builder: ClientBuilder,
    ) -> None:
        """Initialize the pipeline.

        Args:
            resolver: Credential resolver.
            client_builder: Pooled client builder.
        """
        self._resolver = resolver
        self._client_builder = client_builder

    def __call__(self, config: DiscoveryConfig) -> ResolvedContext:
        """Build the resolved context for a config.

        Args:
            config: Discovery config.

        Returns:
            New resolved context.

        Raises:
            ConfigError: If explicit settings are malformed.
            BootstrapEnvironmentError: If in-cluster prerequisites are missing.
        """
        credentials = self._resolver.resolve(config)
        client = self._client_builder.build(
            credentials.host_port, credentials.ssl_context
        )
        return ResolvedContext(
            client=client,
            server_url=credentials.server_url,
            host_port=credentials.host_port,
            authorization=credentials.authorization,
            namespaces=config.namespaces,
            selectors=config.selectors,
            fingerprint=config.fingerprint(),
            server_name=credentials.server_name,
        )


class DiscoveryAPI:
    """Cached access to the Kubernetes API for discovery pollers.

    Create one instance at startup and share it between pollers. Each
    poll calls get_api_response with its config; unchanged configs reuse
    the context built on their first use.
    """

    def __init__(
        self,
        cache: ConfigFingerprintCache[ResolvedContext],
        fetcher: AuthenticatedFetcher,
    ) -> None:
        """Initialize the API.

        Args:
            cache: Config cache producing resolved contexts.
            fetcher: Fetcher executing requests against contexts.
        """
        self._cache = cache
        self._fetcher = fetcher

    @classmethod
    def from_settings(
        cls,
        settings: DiscoverySettings | None = None,
        environment: BootstrapSource | None = None,
        transport: httpx.BaseTransport | None = None,
        metrics: DiscoveryMetrics | None = None,
    ) -> "DiscoveryAPI":
        """Wire the resolver, client builder, cache and fetcher.

        Args:
            settings: Process settings; read from the environment if omitted.
            environment: In-cluster bootstrap source override.
            transport: Transport override for all built clients.
            metrics: Metrics sink; defaults to the shared instance.

        Returns:
            Ready-to-use API.
        """
        settings = settings or DiscoverySettings()
        metrics = metrics or DiscoveryMetrics.get_instance()
        builder = ContextBuilder(
            CredentialResolver(environment),
            ClientBuilder.from_settings(settings, transport=transport),
        )
        cache: ConfigFingerprintCache[ResolvedContext] = ConfigFingerprintCache(
            builder,
            failure_retry_interval=settings.failure_retry_interval_seconds,
            metrics=metrics,
        )
        return cls(cache, AuthenticatedFetcher(metrics))

    @property
    def cache(self) -> ConfigFingerprintCache[ResolvedContext]:
        """Get the config cache."""
        return self._cache

    def get_api_config(self, config: DiscoveryConfig) -> ResolvedContext:
        """Get the resolved context for a config.

        Args:
            config: Discovery config.

        Returns:
            Context shared by all equal configs.

        Raises:
            ConstructionError: If the context cannot be built.
        """
        return self._cache.resolve(config)

    def get_api_response(  # noqa: PLR0913
        self,
        config: DiscoveryConfig,
        role: Role | str,
        path: str,
        deadline: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> bytes:
        """Fetch a resource path for a role.

        Args:
            config: Discovery config.
            role: Role whose selectors apply.
            path: Resource path, e.g. ``/api/v1/pods``.
            deadline: Total seconds this request may take, body included.
            cancel_event: Aborts the request once set, even mid-read.

        Returns:
            Response body, decompressed if gzip-encoded.

        Raises:
            ConstructionError: If the context cannot be built.
            FetchError: If the request fails.
        """
        context = self.get_api_config(config)
        return self._fetcher.fetch(
            context, path, role, deadline=deadline, cancel_event=cancel_event
        )
