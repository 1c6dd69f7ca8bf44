"""Sources of API server address and credentials.

A discovery config either names its API server explicitly or leaves it
empty, in which case the process is assumed to run inside a pod and the
address and credentials come from the pod environment.
"""

import os
import ssl
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Protocol
from urllib.parse import urlsplit

import structlog

from kube_discovery.auth.authorization import (
    EmptySecretFileError,
    bearer_authorization,
    build_authorization,
    build_ssl_context,
    read_secret_file,
)
from kube_discovery.auth.constants import (
    SCHEME_HTTPS,
    SERVICE_ACCOUNT_CA_FILE,
    SERVICE_ACCOUNT_TOKEN_FILE,
    SERVICE_HOST_ENV,
    SERVICE_PORT_ENV,
)
from kube_discovery.config.models import DiscoveryConfig, TLSConfig
from kube_discovery.errors import BootstrapEnvironmentError, ConfigError


logger = structlog.get_logger()


class BootstrapMode(str, Enum):
    """Where a resolved API server address came from."""

    EXPLICIT = "explicit"
    IN_CLUSTER = "in_cluster"


@dataclass(frozen=True)
class AuthMaterial:
    """Address and credentials produced by a bootstrap source.

    Attributes:
        mode: Which source produced the material.
        api_server: API server URL as configured or discovered.
        authorization: Authorization header value, if any.
        ssl_context: TLS context for https servers, None otherwise.
        server_name: TLS server name override.
    """

    mode: BootstrapMode
    api_server: str
    authorization: str | None
    ssl_context: ssl.SSLContext | None
    server_name: str | None = None


class BootstrapSource(Protocol):
    """Protocol for producers of API server address and credentials.

    Allows injecting a fake in-cluster environment in tests.
    """

    def load(self) -> AuthMaterial:
        """Load address and credentials.

        Returns:
            Material for the credential resolver.

        Raises:
            ConstructionError: If the material cannot be loaded.
        """
        ...


class ExplicitConfigSource:
    """Address and credentials taken from the discovery config itself."""

    def __init__(self, config: DiscoveryConfig) -> None:
        """Initialize the source.

        Args:
            config: Discovery config with a non-empty api_server.
        """
        self._config = config

    def load(self) -> AuthMaterial:
        """Build auth material from explicit settings.

        Returns:
            Material for the credential resolver.

        Raises:
            ConfigError: If a credential file cannot be read or parsed.
        """
        config = self._config
        api_server = config.api_server or ""

        try:
            authorization = build_authorization(
                config.base_dir,
                basic_auth=config.basic_auth,
                bearer_token=config.bearer_token,
                bearer_token_file=config.bearer_token_file,
            )
        except (OSError, EmptySecretFileError) as e:
            msg = f"cannot parse auth config: {e}"
            raise ConfigError(msg, api_server=api_server) from e

        ssl_context = None
        if urlsplit(api_server).scheme == SCHEME_HTTPS:
            try:
                ssl_context = build_ssl_context(config.tls_config, config.base_dir)
            except OSError as e:
                msg = f"cannot load TLS config for {api_server!r}: {e}"
                raise ConfigError(msg, api_server=api_server) from e

        return AuthMaterial(
            mode=BootstrapMode.EXPLICIT,
            api_server=api_server,
            authorization=authorization,
            ssl_context=ssl_context,
            server_name=config.tls_config.server_name if config.tls_config else None,
        )


class EnvironmentBootstrap:
    """Address and credentials discovered from the pod environment.

    Reads the API server host and port from the variables the kubelet
    injects into every pod, and the service-account token and CA
    certificate from their mounted files.
    """

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        ca_file: str = SERVICE_ACCOUNT_CA_FILE,
        token_file: str = SERVICE_ACCOUNT_TOKEN_FILE,
    ) -> None:
        """Initialize the source.

        Args:
            environ: Environment to read; defaults to the process environment.
            ca_file: Path of the cluster CA certificate.
            token_file: Path of the service-account bearer token.
        """
        self._environ = environ
        self._ca_file = ca_file
        self._token_file = token_file

    @property
    def environ(self) -> Mapping[str, str]:
        """Get the environment this source reads."""
        return os.environ if self._environ is None else self._environ

    def load(self) -> AuthMaterial:
        """Discover the API server and service-account credentials.

        Returns:
            Material for the credential resolver.

        Raises:
            BootstrapEnvironmentError: If a variable is missing or a
                service-account file cannot be read.
        """
        host = self.environ.get(SERVICE_HOST_ENV, "")
        port = self.environ.get(SERVICE_PORT_ENV, "")
        if not host:
            msg = (
                f"cannot find {SERVICE_HOST_ENV} env var; it must be defined when "
                "running in k8s; probably, api_server is missing in the "
                "discovery config?"
            )
            raise BootstrapEnvironmentError(msg, variable=SERVICE_HOST_ENV)
        if not port:
            msg = (
                f"cannot find {SERVICE_PORT_ENV} env var; it must be defined when "
                f"running in k8s; {SERVICE_HOST_ENV}={host!r}"
            )
            raise BootstrapEnvironmentError(msg, variable=SERVICE_PORT_ENV)

        api_server = f"{SCHEME_HTTPS}://{join_host_port(host, port)}"

        try:
            token = read_secret_file(self._token_file)
        except (OSError, EmptySecretFileError) as e:
            msg = (
                f"cannot initialize service account auth: {e}; probably, "
                "api_server is missing in the discovery config?"
            )
            raise BootstrapEnvironmentError(msg, path=self._token_file) from e

        try:
            ssl_context = build_ssl_context(TLSConfig(ca_file=self._ca_file), "/")
        except OSError as e:
            msg = f"cannot load service account CA certificate: {e}"
            raise BootstrapEnvironmentError(msg, path=self._ca_file) from e

        logger.debug(
            "in_cluster_bootstrap",
            component="auth",
            api_server=api_server,
        )

        return AuthMaterial(
            mode=BootstrapMode.IN_CLUSTER,
            api_server=api_server,
            authorization=bearer_authorization(token),
            ssl_context=ssl_context,
        )


def join_host_port(host: str, port: str | int) -> str:
    """Combine host and port, bracketing IPv6 literals.

    Args:
        host: Hostname or IP literal.
        port: Port number.

    Returns:
        ``host:port`` or ``[host]:port``.
    """
    if ":" in host and not host.startswith("["):
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def select_bootstrap_source(
    config: DiscoveryConfig,
    environment: BootstrapSource | None = None,
) -> BootstrapSource:
    """Pick the bootstrap source for a config.

    Args:
        config: Discovery config being resolved.
        environment: Source used for in-cluster configs; defaults to the
            process environment and standard service-account paths.

    Returns:
        Explicit source when api_server is set, in-cluster source otherwise.
    """
    if config.is_in_cluster:
        return environment if environment is not None else EnvironmentBootstrap()
    return ExplicitConfigSource(config)
