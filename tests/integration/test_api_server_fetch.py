"""Integration tests for cached API fetches against a local HTTP server."""

import gzip
import threading
import time
from collections.abc import Generator
from http.server import BaseHTTPRequestHandler, HTTPServer, ThreadingHTTPServer
from urllib.parse import parse_qs, urlsplit

import pytest

from kube_discovery.api import DiscoveryAPI
from kube_discovery.config.models import DiscoveryConfig, Role, Selector
from kube_discovery.errors import (
    NetworkError,
    ProtocolError,
    ResponseSizeExceededError,
)
from kube_discovery.observability.metrics import DiscoveryMetrics
from kube_discovery.settings.app import DiscoverySettings


TOKEN = "integration-token"  # noqa: S105
PODS_BODY = b'{"kind":"PodList","apiVersion":"v1","items":[]}'


def get_server_url(server: HTTPServer) -> str:
    """Get the base URL of a test server."""
    host, port = server.server_address[0], server.server_address[1]
    if isinstance(host, bytes):
        host = host.decode("utf-8")
    return f"http://{host}:{port}"


class FakeAPIServerHandler(BaseHTTPRequestHandler):
    """Minimal API server answering list requests."""

    # Class-level record of handled requests
    seen: list[dict[str, str]] = []

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002
        """Suppress log messages during tests."""

    def _send(self, status: int, body: bytes, gzip_body: bool = False) -> None:
        if gzip_body:
            body = gzip.compress(body)
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        if gzip_body:
            self.send_header("Content-Encoding", "gzip")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _trickle(self) -> None:
        """Send a close-delimited body one byte at a time."""
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.end_headers()
        try:
            for _ in range(10):
                self.wfile.write(b"x")
                self.wfile.flush()
                time.sleep(0.3)
        except (BrokenPipeError, ConnectionResetError):
            return

    def _stall_body(self) -> None:
        """Send headers, then hold the body back."""
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", "10")
        self.end_headers()
        self.wfile.flush()
        time.sleep(3.0)
        try:
            self.wfile.write(b"x" * 10)
        except (BrokenPipeError, ConnectionResetError):
            return

    def do_GET(self) -> None:  # noqa: N802
        """Handle GET requests by path."""
        parts = urlsplit(self.path)
        query = {key: values[0] for key, values in parse_qs(parts.query).items()}
        FakeAPIServerHandler.seen.append(
            {
                "path": parts.path,
                "authorization": self.headers.get("Authorization", ""),
                "accept_encoding": self.headers.get("Accept-Encoding", ""),
                **query,
            }
        )

        if self.headers.get("Authorization") != f"Bearer {TOKEN}":
            self._send(401, b'{"kind":"Status","reason":"Unauthorized"}')
        elif parts.path == "/api/v1/pods":
            wants_gzip = "gzip" in self.headers.get("Accept-Encoding", "")
            self._send(200, PODS_BODY, gzip_body=wants_gzip)
        elif parts.path == "/api/v1/large":
            self._send(200, b"x" * 8192)
        elif parts.path == "/api/v1/slow":
            time.sleep(1.0)
            self._send(200, PODS_BODY)
        elif parts.path == "/api/v1/trickle":
            self._trickle()
        elif parts.path == "/api/v1/stalled-body":
            self._stall_body()
        else:
            self._send(500, b"etcdserver: request timed out", gzip_body=True)


@pytest.fixture
def api_server() -> Generator[HTTPServer]:
    """Start a local API server."""
    FakeAPIServerHandler.seen = []
    server = ThreadingHTTPServer(("127.0.0.1", 0), FakeAPIServerHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever)
    thread.daemon = True
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def api() -> DiscoveryAPI:
    """Create an API with a small response cap and isolated metrics."""
    settings = DiscoverySettings(max_response_size_bytes=4096)
    return DiscoveryAPI.from_settings(settings, metrics=DiscoveryMetrics())


@pytest.fixture
def config(api_server: HTTPServer) -> DiscoveryConfig:
    """Create a config pointing at the local API server."""
    return DiscoveryConfig(
        api_server=get_server_url(api_server),
        bearer_token=TOKEN,
        namespaces=("default",),
        selectors=(Selector(role=Role.POD, label="app=web"),),
    )


class TestCachedFetch:
    """Integration tests for fetches through the config cache."""

    def test_fetch_gzip_list(self, api: DiscoveryAPI, config: DiscoveryConfig) -> None:
        """Lists are fetched with credentials, selectors and gzip."""
        data = api.get_api_response(config, Role.POD, "/api/v1/pods")

        assert data == PODS_BODY
        seen = FakeAPIServerHandler.seen[0]
        assert seen["authorization"] == f"Bearer {TOKEN}"
        assert "gzip" in seen["accept_encoding"]
        assert seen["labelSelector"] == "app=web"
        assert seen["fieldSelector"] == "metadata.namespace=default"

    def test_polls_reuse_context(
        self, api: DiscoveryAPI, config: DiscoveryConfig
    ) -> None:
        """Repeated polls with equal configs share one context."""
        reloaded = DiscoveryConfig.model_validate(config.model_dump())

        first = api.get_api_config(config)
        api.get_api_response(config, Role.POD, "/api/v1/pods")
        api.get_api_response(reloaded, Role.POD, "/api/v1/pods")

        assert api.get_api_config(reloaded) is first
        assert len(api.cache) == 1
        assert len(FakeAPIServerHandler.seen) == 2

    def test_role_without_selectors(
        self, api: DiscoveryAPI, config: DiscoveryConfig
    ) -> None:
        """Selectors for other roles are not sent."""
        api.get_api_response(config, Role.NODE, "/api/v1/pods")

        seen = FakeAPIServerHandler.seen[0]
        assert "labelSelector" not in seen
        assert seen["fieldSelector"] == "metadata.namespace=default"

    def test_unauthorized(self, api: DiscoveryAPI, api_server: HTTPServer) -> None:
        """Wrong credentials surface the status and body preview."""
        url = get_server_url(api_server)
        config = DiscoveryConfig(api_server=url, bearer_token="x")

        with pytest.raises(ProtocolError) as exc:
            api.get_api_response(config, Role.POD, "/api/v1/pods")

        assert exc.value.status_code == 401
        assert b"Unauthorized" in exc.value.body_preview

    def test_server_error_body_decoded(
        self, api: DiscoveryAPI, config: DiscoveryConfig
    ) -> None:
        """gzip error bodies are decoded for the error preview."""
        with pytest.raises(ProtocolError) as exc:
            api.get_api_response(config, Role.POD, "/api/v1/unknown")

        assert exc.value.status_code == 500
        assert exc.value.body_preview == b"etcdserver: request timed out"

    def test_response_size_cap(
        self, api: DiscoveryAPI, config: DiscoveryConfig
    ) -> None:
        """Bodies over the configured cap are rejected."""
        with pytest.raises(ResponseSizeExceededError):
            api.get_api_response(config, Role.POD, "/api/v1/large")

    def test_deadline(self, api: DiscoveryAPI, config: DiscoveryConfig) -> None:
        """A short deadline turns a slow response into a network error."""
        with pytest.raises(NetworkError):
            api.get_api_response(config, Role.POD, "/api/v1/slow", deadline=0.2)

    def test_deadline_covers_trickled_body(
        self, api: DiscoveryAPI, config: DiscoveryConfig
    ) -> None:
        """A body trickled in under the read timeout still honors the deadline."""
        start = time.monotonic()
        with pytest.raises(NetworkError, match="deadline exceeded"):
            api.get_api_response(config, Role.POD, "/api/v1/trickle", deadline=1.0)

        assert time.monotonic() - start < 2.0

    def test_cancel_interrupts_blocked_body_read(
        self, api: DiscoveryAPI, config: DiscoveryConfig
    ) -> None:
        """Cancelling while the body read is blocked returns promptly."""
        cancel = threading.Event()
        timer = threading.Timer(0.2, cancel.set)
        timer.start()

        start = time.monotonic()
        with pytest.raises(NetworkError, match="cancelled"):
            api.get_api_response(
                config, Role.POD, "/api/v1/stalled-body", cancel_event=cancel
            )

        assert time.monotonic() - start < 1.5
        timer.cancel()

    def test_cancel_interrupts_wait_for_headers(
        self, api: DiscoveryAPI, config: DiscoveryConfig
    ) -> None:
        """Cancelling before the server answers returns promptly."""
        cancel = threading.Event()
        timer = threading.Timer(0.2, cancel.set)
        timer.start()

        start = time.monotonic()
        with pytest.raises(NetworkError, match="cancelled"):
            api.get_api_response(
                config, Role.POD, "/api/v1/slow", cancel_event=cancel
            )

        assert time.monotonic() - start < 0.8
        timer.cancel()

    def test_connection_refused(self, api: DiscoveryAPI) -> None:
        """Unreachable servers are network errors, not construction errors."""
        server = HTTPServer(("127.0.0.1", 0), FakeAPIServerHandler)
        url = get_server_url(server)
        server.server_close()
        config = DiscoveryConfig(api_server=url, bearer_token=TOKEN)

        with pytest.raises(NetworkError):
            api.get_api_response(config, Role.POD, "/api/v1/pods")

        assert config in api.cache
