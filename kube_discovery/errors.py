"""Error types for API discovery.

This module defines the exception hierarchy shared by the resolver, the
HTTP client and the config cache. Construction errors (bad config, missing
in-cluster environment) are separated from fetch errors (network, protocol)
so the polling collaborator can decide how to retry each kind.
"""

from enum import Enum


class DiscoveryErrorClass(str, Enum):
    """Classification of discovery errors.

    - CONFIG: Malformed explicit server/auth/TLS settings
    - ENVIRONMENT: In-cluster bootstrap prerequisites missing or unreadable
    - NETWORK: Connect, timeout or transport failure during fetch
    - PROTOCOL: Unexpected status code or undecodable response
    - RESPONSE_SIZE_EXCEEDED: Response body exceeded the configured cap
    """

    CONFIG = "CONFIG"
    ENVIRONMENT = "ENVIRONMENT"
    NETWORK = "NETWORK"
    PROTOCOL = "PROTOCOL"
    RESPONSE_SIZE_EXCEEDED = "RESPONSE_SIZE_EXCEEDED"


class DiscoveryError(Exception):
    """Base exception for all discovery errors.

    Provides structured error information for logging.
    """

    def __init__(
        self,
        error_class: DiscoveryErrorClass,
        message: str,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        """Initialize the discovery error.

        Args:
            error_class: Classification of the error.
            message: Human-readable error message.
            details: Additional structured error details.
        """
        super().__init__(message)
        self.error_class = error_class
        self.message = message
        self.details = details or {}

    def to_dict(
        self,
    ) -> dict[str, str | int | bool | None | dict[str, str | int | bool | None]]:
        """Convert error to dictionary for logging.

        Returns:
            Dictionary representation of the error.
        """
        return {
            "error_class": self.error_class.value,
            "message": self.message,
            "details": self.details,
        }


class ConstructionError(DiscoveryError):
    """Raised when an API config cannot be turned into a resolved context."""


class ConfigError(ConstructionError):
    """Malformed explicit server, auth or TLS settings.

    Not retryable: the same config will fail the same way.
    """

    def __init__(self, message: str, api_server: str | None = None) -> None:
        """Initialize the config error.

        Args:
            message: Human-readable error message.
            api_server: The configured API server, if any.
        """
        super().__init__(
            error_class=DiscoveryErrorClass.CONFIG,
            message=message,
            details={"api_server": api_server},
        )
        self.api_server = api_server


class BootstrapEnvironmentError(ConstructionError):
    """In-cluster bootstrap prerequisites are missing or unreadable.

    Retryable: env vars and mounted files may appear later.
    """

    def __init__(
        self,
        message: str,
        variable: str | None = None,
        path: str | None = None,
    ) -> None:
        """Initialize the environment error.

        Args:
            message: Human-readable error message.
            variable: Name of the missing environment variable.
            path: Path of the unreadable file.
        """
        super().__init__(
            error_class=DiscoveryErrorClass.ENVIRONMENT,
            message=message,
            details={"variable": variable, "path": path},
        )
        self.variable = variable
        self.path = path


class FetchError(DiscoveryError):
    """Base class for errors raised while fetching from the API server."""

    def __init__(
        self,
        error_class: DiscoveryErrorClass,
        message: str,
        url: str,
        details: dict[str, str | int | bool | None] | None = None,
    ) -> None:
        """Initialize the fetch error.

        Args:
            error_class: Classification of the error.
            message: Human-readable error message.
            url: Request URL (credentials redacted).
            details: Additional structured error details.
        """
        merged: dict[str, str | int | bool | None] = {"url": url}
        if details:
            merged.update(details)
        super().__init__(error_class=error_class, message=message, details=merged)
        self.url = url


class NetworkError(FetchError):
    """Connect, timeout or transport failure."""

    def __init__(self, message: str, url: str) -> None:
        super().__init__(DiscoveryErrorClass.NETWORK, message, url)


class ProtocolError(FetchError):
    """Unexpected status code or undecodable response body."""

    def __init__(
        self,
        message: str,
        url: str,
        status_code: int | None = None,
        body_preview: bytes = b"",
        error_class: DiscoveryErrorClass = DiscoveryErrorClass.PROTOCOL,
    ) -> None:
        """Initialize the protocol error.

        Args:
            message: Human-readable error message.
            url: Request URL (credentials redacted).
            status_code: HTTP status code, if a response was received.
            body_preview: Bounded prefix of the response body.
            error_class: Classification of the error.
        """
        super().__init__(
            error_class,
            message,
            url,
            details={"status_code": status_code},
        )
        self.status_code = status_code
        self.body_preview = body_preview


class ResponseSizeExceededError(ProtocolError):
    """Raised when a response body exceeds the configured limit."""

    def __init__(
        self, url: str, limit: int, size: int, status_code: int | None = None
    ) -> None:
        """Initialize the size error.

        Args:
            url: Request URL (credentials redacted).
            limit: Configured maximum body size in bytes.
            size: Declared or observed body size in bytes.
            status_code: HTTP status code of the response.
        """
        super().__init__(
            f"response from {url!r} exceeds limit of {limit} bytes "
            f"(at least {size} bytes)",
            url,
            status_code=status_code,
            error_class=DiscoveryErrorClass.RESPONSE_SIZE_EXCEEDED,
        )
        self.limit = limit
        self.size = size
