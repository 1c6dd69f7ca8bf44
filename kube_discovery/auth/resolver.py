"""Resolution of discovery configs into server address and credentials."""

import ssl
from dataclasses import dataclass
from urllib.parse import urlsplit

import structlog

from kube_discovery.auth.bootstrap import (
    BootstrapMode,
    BootstrapSource,
    join_host_port,
    select_bootstrap_source,
)
from kube_discovery.auth.constants import (
    DEFAULT_HTTP_PORT,
    DEFAULT_HTTPS_PORT,
    SCHEME_HTTP,
    SCHEME_HTTPS,
)
from kube_discovery.config.models import DiscoveryConfig
from kube_discovery.errors import ConfigError
from kube_discovery.fetch.redact import redact_url_credentials


logger = structlog.get_logger()


@dataclass(frozen=True)
class ServerAddress:
    """Parsed API server URL.

    Attributes:
        server_url: URL requests are built from, without trailing slash.
        host_port: ``host:port`` with the scheme's default port filled in.
        is_tls: Whether the scheme is https.
    """

    server_url: str
    host_port: str
    is_tls: bool


@dataclass(frozen=True)
class ResolvedCredentials:
    """Server address and credentials for one discovery config.

    Attributes:
        mode: Whether the address was configured or discovered in-cluster.
        server_url: Canonical server URL.
        host_port: ``host:port`` the client connects to.
        is_tls: Whether connections use TLS.
        ssl_context: TLS context, None for plain http.
        authorization: Authorization header value, if any.
        server_name: TLS server name override.
    """

    mode: BootstrapMode
    server_url: str
    host_port: str
    is_tls: bool
    ssl_context: ssl.SSLContext | None
    authorization: str | None
    server_name: str | None = None


def parse_api_server(api_server: str) -> ServerAddress:
    """Parse an API server URL.

    Args:
        api_server: URL such as ``https://api.example.com`` or
            ``http://10.0.0.1:8080``.

    Returns:
        Parsed address with default port filled in.

    Raises:
        ConfigError: If the URL has no host, an unsupported scheme or an
            invalid port.
    """
    parts = urlsplit(api_server)
    if parts.scheme not in (SCHEME_HTTP, SCHEME_HTTPS):
        msg = (
            f"unsupported scheme in api_server {api_server!r}; "
            "expecting http or https"
        )
        raise ConfigError(msg, api_server=api_server)
    if not parts.hostname:
        msg = f"missing host in api_server {api_server!r}"
        raise ConfigError(msg, api_server=api_server)

    try:
        port = parts.port
    except ValueError as e:
        msg = f"invalid port in api_server {api_server!r}: {e}"
        raise ConfigError(msg, api_server=api_server) from e

    is_tls = parts.scheme == SCHEME_HTTPS
    if port is None:
        port = DEFAULT_HTTPS_PORT if is_tls else DEFAULT_HTTP_PORT

    return ServerAddress(
        server_url=api_server.rstrip("/"),
        host_port=join_host_port(parts.hostname, port),
        is_tls=is_tls,
    )


class CredentialResolver:
    """Turns a discovery config into a server address and credentials.

    The bootstrap source is selected once per call: explicit settings when
    the config names an API server, the pod environment otherwise.
    """

    def __init__(self, environment: BootstrapSource | None = None) -> None:
        """Initialize the resolver.

        Args:
            environment: Source used for configs without api_server;
                defaults to the process environment.
        """
        self._environment = environment
        self._log = logger.bind(component="auth")

    def resolve(self, config: DiscoveryConfig) -> ResolvedCredentials:
        """Resolve address and credentials for a config.

        Reads credential files once, at call time.

        Args:
            config: Discovery config to resolve.

        Returns:
            Resolved credentials.

        Raises:
            ConfigError: If explicit settings are malformed.
            BootstrapEnvironmentError: If in-cluster prerequisites are missing.
        """
        source = select_bootstrap_source(config, self._environment)
        material = source.load()
        address = parse_api_server(material.api_server)

        credentials = ResolvedCredentials(
            mode=material.mode,
            server_url=address.server_url,
            host_port=address.host_port,
            is_tls=address.is_tls,
            ssl_context=material.ssl_context if address.is_tls else None,
            authorization=material.authorization,
            server_name=material.server_name,
        )

        self._log.info(
            "credentials_resolved",
            mode=credentials.mode.value,
            server_url=redact_url_credentials(credentials.server_url),
            host_port=credentials.host_port,
            is_tls=credentials.is_tls,
            has_authorization=credentials.authorization is not None,
        )
        return credentials
