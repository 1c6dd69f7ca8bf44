"""Pooled HTTP clients bound to a single API server."""

import ssl
from typing import TYPE_CHECKING

import httpx
import structlog

from kube_discovery.fetch.constants import (
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    DEFAULT_READ_TIMEOUT_SECONDS,
    DEFAULT_WRITE_TIMEOUT_SECONDS,
    IPV4_ANY_ADDRESS,
    USER_AGENT,
)


if TYPE_CHECKING:
    from kube_discovery.settings.app import DiscoverySettings


logger = structlog.get_logger()


class PooledClient:
    """Connection-pooled HTTP client for one API server ``host:port``.

    Passive and shareable: safe for concurrent use by many fetches, and
    performs no I/O until the first request.
    """

    def __init__(
        self,
        http: httpx.Client,
        host_port: str,
        is_tls: bool,
        timeout: httpx.Timeout,
        max_response_size_bytes: int,
    ) -> None:
        """Initialize the pooled client.

        Args:
            http: Underlying httpx client.
            host_port: ``host:port`` the client is bound to.
            is_tls: Whether connections use TLS.
            timeout: Default request timeouts.
            max_response_size_bytes: Hard cap on response body size.
        """
        self._http = http
        self._host_port = host_port
        self._is_tls = is_tls
        self._timeout = timeout
        self._max_response_size_bytes = max_response_size_bytes

    @property
    def http(self) -> httpx.Client:
        """Get the underlying httpx client."""
        return self._http

    @property
    def host_port(self) -> str:
        """Get the ``host:port`` the client is bound to."""
        return self._host_port

    @property
    def is_tls(self) -> bool:
        """Check if connections use TLS."""
        return self._is_tls

    @property
    def timeout(self) -> httpx.Timeout:
        """Get the default request timeouts."""
        return self._timeout

    @property
    def max_response_size_bytes(self) -> int:
        """Get the response body size cap."""
        return self._max_response_size_bytes

    def timeout_for(self, deadline: float | None) -> httpx.Timeout:
        """Get request timeouts shortened to a caller deadline.

        Args:
            deadline: Seconds the caller is willing to wait, or None.

        Returns:
            Default timeouts, each capped at the deadline.
        """
        if deadline is None:
            return self._timeout

        def cap(value: float | None) -> float:
            return deadline if value is None else min(value, deadline)

        return httpx.Timeout(
            connect=cap(self._timeout.connect),
            read=cap(self._timeout.read),
            write=cap(self._timeout.write),
            pool=cap(self._timeout.pool),
        )

    def close(self) -> None:
        """Close pooled connections."""
        self._http.close()


class ClientBuilder:
    """Builds pooled clients with fixed timeouts and a response size cap."""

    def __init__(
        self,
        read_timeout_seconds: float = DEFAULT_READ_TIMEOUT_SECONDS,
        write_timeout_seconds: float = DEFAULT_WRITE_TIMEOUT_SECONDS,
        max_response_size_bytes: int = DEFAULT_MAX_RESPONSE_SIZE_BYTES,
        enable_tcp6: bool = False,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the builder.

        Args:
            read_timeout_seconds: Read timeout; also used for connect and pool.
            write_timeout_seconds: Write timeout.
            max_response_size_bytes: Hard cap on response body size.
            enable_tcp6: Dial over IPv6 as well as IPv4.
            transport: Transport to use instead of a real network transport.
        """
        self._timeout = httpx.Timeout(read_timeout_seconds, write=write_timeout_seconds)
        self._max_response_size_bytes = max_response_size_bytes
        self._enable_tcp6 = enable_tcp6
        self._transport = transport

    @classmethod
    def from_settings(
        cls,
        settings: "DiscoverySettings",
        transport: httpx.BaseTransport | None = None,
    ) -> "ClientBuilder":
        """Create a builder from process settings.

        Args:
            settings: Process settings.
            transport: Transport to use instead of a real network transport.

        Returns:
            Configured builder.
        """
        return cls(
            read_timeout_seconds=settings.read_timeout_seconds,
            write_timeout_seconds=settings.write_timeout_seconds,
            max_response_size_bytes=settings.max_response_size_bytes,
            enable_tcp6=settings.enable_tcp6,
            transport=transport,
        )

    def build(self, host_port: str, ssl_context: ssl.SSLContext | None) -> PooledClient:
        """Build a pooled client for one API server.

        Args:
            host_port: ``host:port`` of the API server.
            ssl_context: TLS context for https servers, None for plain http.

        Returns:
            Pooled client bound to host_port.
        """
        transport = self._transport
        if transport is None:
            transport = httpx.HTTPTransport(
                verify=ssl_context if ssl_context is not None else True,
                local_address=None if self._enable_tcp6 else IPV4_ANY_ADDRESS,
                retries=0,
            )

        http = httpx.Client(
            transport=transport,
            timeout=self._timeout,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=False,
            trust_env=False,
        )

        logger.debug(
            "client_built",
            component="fetch",
            host_port=host_port,
            is_tls=ssl_context is not None,
            dual_stack=self._enable_tcp6,
        )

        return PooledClient(
            http=http,
            host_port=host_port,
            is_tls=ssl_context is not None,
            timeout=self._timeout,
            max_response_size_bytes=self._max_response_size_bytes,
        )
