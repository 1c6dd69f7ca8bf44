"""Authenticated API requests over a resolved context."""

import threading
import time
import zlib
from io import BytesIO

import httpx
import structlog

from kube_discovery.config.models import Role
from kube_discovery.context import ResolvedContext
from kube_discovery.errors import (
    FetchError,
    NetworkError,
    ProtocolError,
    ResponseSizeExceededError,
)
from kube_discovery.fetch.constants import BODY_PREVIEW_BYTES, HTTP_STATUS_OK
from kube_discovery.fetch.query import join_selectors
from kube_discovery.fetch.redact import redact_headers, redact_url_credentials
from kube_discovery.fetch.watchdog import FetchWatchdog, abort_reason
from kube_discovery.observability.metrics import DiscoveryMetrics


logger = structlog.get_logger()

# gzip container, as opposed to raw deflate or zlib
_GZIP_WBITS = 16 + zlib.MAX_WBITS


class AuthenticatedFetcher:
    """Executes GET requests against the API server of a resolved context.

    Composes the namespace/selector query, attaches the authorization
    header, negotiates gzip and enforces the size cap and the success
    status. Never mutates the shared context.
    """

    def __init__(self, metrics: DiscoveryMetrics | None = None) -> None:
        """Initialize the fetcher.

        Args:
            metrics: Metrics sink; defaults to the shared instance.
        """
        self._metrics = metrics or DiscoveryMetrics.get_instance()
        self._log = logger.bind(component="fetch")

    def fetch(
        self,
        context: ResolvedContext,
        path: str,
        role: Role | str,
        deadline: float | None = None,
        cancel_event: threading.Event | None = None,
    ) -> bytes:
        """Fetch a resource path for a role.

        Blocks for up to the client's read timeout per phase. A
        ``deadline`` bounds the whole request, body download included, and
        a set ``cancel_event`` interrupts it even while a read is blocked.

        Args:
            context: Resolved context of the discovery source.
            path: Resource path, e.g. ``/api/v1/pods``.
            role: Role whose selectors apply to the request.
            deadline: Total seconds this request may take.
            cancel_event: Aborts the request once set.

        Returns:
            Response body, decompressed if gzip-encoded.

        Raises:
            NetworkError: On connect, timeout, transport failure or cancel.
            ProtocolError: On a non-200 status or an undecodable body.
            ResponseSizeExceededError: If the body exceeds the size cap.
        """
        role = Role(role)
        query = join_selectors(role, context.namespaces, context.selectors)
        if query:
            path += "?" + query
        request_url = context.server_url + path

        headers = {"Accept-Encoding": "gzip"}
        if context.authorization:
            headers["Authorization"] = context.authorization

        log = self._log.bind(
            url=redact_url_credentials(request_url),
            role=role.value,
            host_port=context.host_port,
        )

        start_time_ns = time.perf_counter_ns()
        expires_at = None if deadline is None else time.monotonic() + deadline
        try:
            status_code, data = self._execute(
                context, request_url, headers, expires_at, cancel_event, log
            )
        except FetchError as e:
            self._metrics.record_request_failure(e.error_class.value)
            log.warning(
                "fetch_failed",
                error_class=e.error_class.value,
                error=e.message,
                headers=redact_headers(headers),
            )
            raise

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_request(status_code, len(data), duration_ms)
        log.info(
            "fetch_complete",
            status_code=status_code,
            bytes=len(data),
            duration_ms=round(duration_ms, 2),
        )
        return data

    def _execute(  # noqa: PLR0913
        self,
        context: ResolvedContext,
        request_url: str,
        headers: dict[str, str],
        expires_at: float | None,
        cancel_event: threading.Event | None,
        log: structlog.stdlib.BoundLogger,
    ) -> tuple[int, bytes]:
        """Execute a single request and validate the response.

        Args:
            expires_at: Monotonic time by which the whole request, body
                included, must finish; None for no deadline.

        Returns:
            Status code and decoded body.
        """
        client = context.client
        safe_url = redact_url_credentials(request_url)

        reason = abort_reason(expires_at, cancel_event)
        if reason is not None:
            msg = f"fetch of {safe_url!r} {reason} before request"
            raise NetworkError(msg, safe_url)

        remaining = None if expires_at is None else expires_at - time.monotonic()
        watchdog = FetchWatchdog(cancel_event, expires_at)
        extensions: dict[str, object] = {"trace": watchdog.trace}
        if context.server_name:
            extensions["sni_hostname"] = context.server_name

        watchdog.start()
        try:
            request = client.http.build_request(
                "GET",
                request_url,
                headers=headers,
                timeout=client.timeout_for(remaining),
                extensions=extensions,
            )
            response = client.http.send(request, stream=True)
            try:
                watchdog.attach(response.extensions.get("network_stream"))
                raw = self._read_body_with_limit(
                    response,
                    client.max_response_size_bytes,
                    safe_url,
                    expires_at,
                    cancel_event,
                )
                if watchdog.reason is not None:
                    # Shutdown ends a close-delimited body early without error
                    msg = f"fetch of {safe_url!r} {watchdog.reason}"
                    raise NetworkError(msg, safe_url)
            finally:
                response.close()
        except httpx.TransportError as e:
            # A read woken by the watchdog reports the abort, not the socket error
            reason = watchdog.reason or abort_reason(expires_at, cancel_event)
            if reason is not None:
                msg = f"fetch of {safe_url!r} {reason}: {e}"
            elif isinstance(e, httpx.TimeoutException):
                msg = f"cannot fetch {safe_url!r}: timed out: {e}"
            else:
                msg = f"cannot fetch {safe_url!r}: {e}"
            raise NetworkError(msg, safe_url) from e
        finally:
            watchdog.stop()

        status_code = response.status_code
        content_encoding = response.headers.get("Content-Encoding", "").strip().lower()
        if content_encoding == "gzip":
            data = self._gunzip(
                raw, client.max_response_size_bytes, safe_url, status_code
            )
        else:
            data = raw

        log.debug(
            "response_received", status_code=status_code, encoding=content_encoding
        )

        if status_code != HTTP_STATUS_OK:
            preview = data[:BODY_PREVIEW_BYTES]
            msg = (
                f"unexpected status code returned from {safe_url!r}: {status_code}; "
                f"expecting {HTTP_STATUS_OK}; response body: {preview!r}"
            )
            raise ProtocolError(
                msg, safe_url, status_code=status_code, body_preview=preview
            )

        return status_code, data

    def _read_body_with_limit(  # noqa: PLR0913
        self,
        response: httpx.Response,
        max_size: int,
        url: str,
        expires_at: float | None,
        cancel_event: threading.Event | None,
    ) -> bytes:
        """Read the raw (still encoded) response body with a size limit.

        Chunks are taken as the transport delivers them, so the cancel
        event and the deadline are rechecked after every socket read.

        Args:
            response: Streaming HTTP response.
            max_size: Maximum body size in bytes.
            url: Request URL for error messages.
            expires_at: Monotonic time the read must finish by, or None.
            cancel_event: Aborts the read once set.

        Returns:
            Raw response body bytes.

        Raises:
            ResponseSizeExceededError: If the body exceeds max_size.
            NetworkError: If cancel_event is set or the deadline passes
                during the read.
        """
        content_length = response.headers.get("Content-Length")
        if content_length and content_length.isdigit():
            declared = int(content_length)
            if declared > max_size:
                raise ResponseSizeExceededError(
                    url, max_size, declared, status_code=response.status_code
                )

        buffer = BytesIO()
        total_read = 0
        for chunk in response.iter_raw():
            reason = abort_reason(expires_at, cancel_event)
            if reason is not None:
                msg = f"fetch of {url!r} {reason} after {total_read} bytes"
                raise NetworkError(msg, url)
            total_read += len(chunk)
            if total_read > max_size:
                raise ResponseSizeExceededError(
                    url, max_size, total_read, status_code=response.status_code
                )
            buffer.write(chunk)

        return buffer.getvalue()

    def _gunzip(self, raw: bytes, max_size: int, url: str, status_code: int) -> bytes:
        """Decompress a gzip body, bounded by the size cap.

        Raises:
            ProtocolError: If the body is not valid gzip.
            ResponseSizeExceededError: If the decompressed body exceeds max_size.
        """
        if not raw:
            return raw

        decompressor = zlib.decompressobj(_GZIP_WBITS)
        try:
            data = decompressor.decompress(raw, max_size + 1)
        except zlib.error as e:
            msg = f"cannot ungzip response from {url!r}: {e}"
            raise ProtocolError(msg, url, status_code=status_code) from e

        if len(data) > max_size:
            raise ResponseSizeExceededError(url, max_size, len(data), status_code)
        if not decompressor.eof:
            msg = f"cannot ungzip response from {url!r}: truncated gzip stream"
            raise ProtocolError(msg, url, status_code=status_code)
        return data
