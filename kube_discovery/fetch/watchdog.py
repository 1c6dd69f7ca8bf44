"""Abort of in-flight requests on caller cancel or deadline."""

import socket
import threading
import time
from typing import Any

import structlog

from kube_discovery.fetch.constants import WATCHDOG_POLL_SECONDS


logger = structlog.get_logger()

# httpcore trace events whose return value is the connection's network stream
_STREAM_EVENTS = (".connect_tcp.complete", ".start_tls.complete")

ABORT_CANCELLED = "cancelled"
ABORT_DEADLINE = "deadline exceeded"


def abort_reason(
    expires_at: float | None, cancel_event: threading.Event | None
) -> str | None:
    """Get why a request must stop, if it must.

    Args:
        expires_at: Monotonic time the request must finish by, or None.
        cancel_event: Caller's cancel signal, or None.

    Returns:
        ABORT_CANCELLED, ABORT_DEADLINE or None.
    """
    if cancel_event is not None and cancel_event.is_set():
        return ABORT_CANCELLED
    if expires_at is not None and time.monotonic() >= expires_at:
        return ABORT_DEADLINE
    return None


class FetchWatchdog:
    """Background watcher that cuts a request's connection when it must stop.

    A request blocked in a socket read does not notice a cancel event or an
    expired deadline. The watchdog polls both and, once either fires, shuts
    down the socket of the request's connection, which wakes the blocked
    read with a transport error.

    The socket is learned from httpcore's ``trace`` request extension when
    a new connection is opened, and from the response's ``network_stream``
    extension once headers arrive.
    """

    def __init__(
        self,
        cancel_event: threading.Event | None,
        expires_at: float | None,
    ) -> None:
        """Initialize the watchdog.

        Args:
            cancel_event: Caller's cancel signal, or None.
            expires_at: Monotonic time the request must finish by, or None.
        """
        self._cancel_event = cancel_event
        self._expires_at = expires_at
        self._stream: Any = None
        self._reason: str | None = None
        self._lock = threading.Lock()
        self._finished = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="fetch-watchdog", daemon=True
        )

    @property
    def reason(self) -> str | None:
        """Get why the watchdog cut the connection, if it did."""
        return self._reason

    def start(self) -> None:
        """Start watching."""
        self._thread.start()

    def stop(self) -> None:
        """Stop watching; the request has finished."""
        self._finished.set()
        self._thread.join()

    def trace(self, event_name: str, info: dict[str, Any]) -> None:
        """httpcore trace hook capturing newly opened network streams."""
        if event_name.endswith(_STREAM_EVENTS):
            self.attach(info.get("return_value"))

    def attach(self, stream: Any) -> None:
        """Record the network stream carrying the request.

        Args:
            stream: httpcore network stream, or None when the transport
                has no socket (mock transports).
        """
        if stream is None:
            return
        with self._lock:
            self._stream = stream
            tripped = self._reason is not None
        if tripped:
            self._shutdown()

    def _run(self) -> None:
        while not self._finished.is_set():
            wait = WATCHDOG_POLL_SECONDS
            if self._expires_at is not None:
                wait = min(wait, max(0.0, self._expires_at - time.monotonic()))
            if self._finished.wait(wait):
                return

            reason = abort_reason(self._expires_at, self._cancel_event)
            if reason is not None:
                with self._lock:
                    self._reason = reason
                logger.debug("fetch_aborting", component="fetch", reason=reason)
                self._shutdown()
                return

    def _shutdown(self) -> None:
        with self._lock:
            stream = self._stream
        if stream is None:
            return
        sock = stream.get_extra_info("socket")
        if sock is None:
            return
        try:
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already closed by the reading side
            return
